"""Assessment games — the eight preliminary cognitive/behavioral games."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping

from progress_engine.db.models import SkillCategoryEnum as Cat

_ALL_GRADES = (8, 9, 10)


@dataclass(frozen=True)
class GameConfig:
    id: str
    name: str
    description: str
    estimated_minutes: int
    difficulty: int  # 1-5
    order_index: int
    target_categories: tuple[Cat, ...]
    item_style: str  # selects the built-in item generator
    grade_applicability: tuple[int, ...] = _ALL_GRADES
    difficulty_by_grade: Mapping[int, str] = field(
        default_factory=lambda: MappingProxyType({8: "easy", 9: "medium", 10: "medium"})
    )

    def applies_to(self, grade: int) -> bool:
        return grade in self.grade_applicability

    def difficulty_for(self, grade: int) -> str:
        return self.difficulty_by_grade.get(grade, "medium")


ASSESSMENT_GAMES: tuple[GameConfig, ...] = (
    GameConfig(
        id="pattern_forge",
        name="Pattern Forge",
        description="Discover your logical reasoning abilities through pattern recognition",
        estimated_minutes=10,
        difficulty=2,
        order_index=1,
        target_categories=(Cat.COGNITIVE_REASONING,),
        item_style="number_pattern",
    ),
    GameConfig(
        id="many_ways_builder",
        name="Many Ways Builder",
        description="Explore your creativity by finding multiple solutions",
        estimated_minutes=12,
        difficulty=2,
        order_index=2,
        target_categories=(Cat.CREATIVITY,),
        item_style="open_ideas",
    ),
    GameConfig(
        id="story_lens",
        name="Story Lens",
        description="Express yourself through storytelling and narrative thinking",
        estimated_minutes=15,
        difficulty=2,
        order_index=3,
        target_categories=(Cat.LANGUAGE, Cat.CREATIVITY),
        item_style="story_prompt",
    ),
    GameConfig(
        id="visual_vault",
        name="Visual Vault",
        description="Test your visual memory and spatial reasoning",
        estimated_minutes=10,
        difficulty=2,
        order_index=4,
        target_categories=(Cat.MEMORY,),
        item_style="recall",
    ),
    GameConfig(
        id="focus_sprint",
        name="Focus Sprint",
        description="Measure your attention and concentration abilities",
        estimated_minutes=8,
        difficulty=2,
        order_index=5,
        target_categories=(Cat.ATTENTION,),
        item_style="odd_one_out",
    ),
    GameConfig(
        id="mission_planner",
        name="Mission Planner",
        description="Demonstrate your planning and organizational skills",
        estimated_minutes=12,
        difficulty=2,
        order_index=6,
        target_categories=(Cat.PLANNING,),
        item_style="ordering",
    ),
    GameConfig(
        id="dilemma_compass",
        name="Dilemma Compass",
        description="Navigate ethical decisions and show your values",
        estimated_minutes=15,
        difficulty=3,
        order_index=7,
        target_categories=(Cat.SOCIAL_EMOTIONAL, Cat.CHARACTER_VALUES),
        item_style="dilemma",
        difficulty_by_grade=MappingProxyType({8: "easy", 9: "medium", 10: "hard"}),
    ),
    GameConfig(
        id="replay_reflect",
        name="Replay & Reflect",
        description="Reflect on your learning and metacognitive awareness",
        estimated_minutes=10,
        difficulty=2,
        order_index=8,
        target_categories=(Cat.METACOGNITION,),
        item_style="strategy_check",
    ),
)

_GAMES_BY_ID = {g.id: g for g in ASSESSMENT_GAMES}


def get_game(game_id: str) -> GameConfig | None:
    return _GAMES_BY_ID.get(game_id)

