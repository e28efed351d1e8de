"""Career catalog for Explorer mode.

Each career lists the skill categories that signal it and an unlock rule.
Rarer careers demand a higher score: the rule's ``min_score`` is raised by
``RARITY_SCORE_RAISE`` for the career's tier.
"""

import enum
from dataclasses import dataclass, field

from progress_engine.db.models import SkillCategoryEnum as Cat
from progress_engine.db.models import SkillLevelEnum


class RarityTier(str, enum.Enum):
    COMMON = "COMMON"
    EMERGING = "EMERGING"
    ADVANCED = "ADVANCED"
    FRONTIER = "FRONTIER"


RARITY_SCORE_RAISE = {
    RarityTier.COMMON: 0.0,
    RarityTier.EMERGING: 5.0,
    RarityTier.ADVANCED: 10.0,
    RarityTier.FRONTIER: 15.0,
}

RARITY_CONFIDENCE_PENALTY = {
    RarityTier.COMMON: 0,
    RarityTier.EMERGING: 10,
    RarityTier.ADVANCED: 20,
    RarityTier.FRONTIER: 30,
}


@dataclass(frozen=True)
class UnlockRule:
    match: str = "any"  # "any" | "all"
    min_score: float = 60.0
    min_level: SkillLevelEnum | None = None
    required_quest_tags: tuple[str, ...] = ()


@dataclass(frozen=True)
class CareerConfig:
    id: str
    title: str
    short_pitch: str
    icon: str
    rarity_tier: RarityTier
    skill_signals: tuple[Cat, ...]
    unlock_rule: UnlockRule = field(default_factory=UnlockRule)
    recommended_subjects: tuple[str, ...] = ()

    @property
    def effective_min_score(self) -> float:
        return self.unlock_rule.min_score + RARITY_SCORE_RAISE[self.rarity_tier]


CAREERS: tuple[CareerConfig, ...] = (
    CareerConfig(
        id="data_detective",
        title="Data Detective",
        short_pitch="Find the hidden story inside numbers and patterns.",
        icon="🔍",
        rarity_tier=RarityTier.COMMON,
        skill_signals=(Cat.COGNITIVE_REASONING, Cat.ATTENTION),
        recommended_subjects=("Mathematics", "Computer Science"),
    ),
    CareerConfig(
        id="game_designer",
        title="Game Designer",
        short_pitch="Invent worlds, rules and challenges other people love to play.",
        icon="🎮",
        rarity_tier=RarityTier.COMMON,
        skill_signals=(Cat.CREATIVITY, Cat.PLANNING),
        recommended_subjects=("Art", "Computer Science"),
    ),
    CareerConfig(
        id="storyteller_journalist",
        title="Storyteller Journalist",
        short_pitch="Turn real events into stories people remember.",
        icon="📰",
        rarity_tier=RarityTier.COMMON,
        skill_signals=(Cat.LANGUAGE,),
        recommended_subjects=("English", "Social Studies"),
    ),
    CareerConfig(
        id="event_planner",
        title="Event Planner",
        short_pitch="Make big days run smoothly from the first idea to the last guest.",
        icon="📅",
        rarity_tier=RarityTier.COMMON,
        skill_signals=(Cat.PLANNING, Cat.SOCIAL_EMOTIONAL),
        recommended_subjects=("Business Studies",),
    ),
    CareerConfig(
        id="school_counselor",
        title="School Counselor",
        short_pitch="Help young people through tough choices and big feelings.",
        icon="🤝",
        rarity_tier=RarityTier.EMERGING,
        skill_signals=(Cat.SOCIAL_EMOTIONAL, Cat.CHARACTER_VALUES),
        unlock_rule=UnlockRule(match="all"),
        recommended_subjects=("Psychology",),
    ),
    CareerConfig(
        id="ux_researcher",
        title="UX Researcher",
        short_pitch="Watch how people use things and make them easier to use.",
        icon="🧭",
        rarity_tier=RarityTier.EMERGING,
        skill_signals=(Cat.ATTENTION, Cat.SOCIAL_EMOTIONAL, Cat.METACOGNITION),
        recommended_subjects=("Psychology", "Design"),
    ),
    CareerConfig(
        id="museum_archivist",
        title="Museum Archivist",
        short_pitch="Remember, catalogue and protect the treasures of the past.",
        icon="🏛️",
        rarity_tier=RarityTier.EMERGING,
        skill_signals=(Cat.MEMORY, Cat.ATTENTION),
        unlock_rule=UnlockRule(match="all"),
        recommended_subjects=("History",),
    ),
    CareerConfig(
        id="environmental_engineer",
        title="Environmental Engineer",
        short_pitch="Design systems that keep water, air and soil clean.",
        icon="🌱",
        rarity_tier=RarityTier.ADVANCED,
        skill_signals=(Cat.COGNITIVE_REASONING, Cat.PLANNING),
        unlock_rule=UnlockRule(match="all", required_quest_tags=("planning",)),
        recommended_subjects=("Physics", "Chemistry", "Geography"),
    ),
    CareerConfig(
        id="policy_advisor",
        title="Policy Advisor",
        short_pitch="Weigh hard trade-offs and help leaders make fair decisions.",
        icon="⚖️",
        rarity_tier=RarityTier.ADVANCED,
        skill_signals=(Cat.CHARACTER_VALUES, Cat.LANGUAGE),
        unlock_rule=UnlockRule(
            match="any",
            min_level=SkillLevelEnum.PROFICIENT,
            required_quest_tags=("decision_making",),
        ),
        recommended_subjects=("Civics", "Economics"),
    ),
    CareerConfig(
        id="learning_scientist",
        title="Learning Scientist",
        short_pitch="Study how people learn and build better ways to teach.",
        icon="🧠",
        rarity_tier=RarityTier.ADVANCED,
        skill_signals=(Cat.METACOGNITION,),
        unlock_rule=UnlockRule(required_quest_tags=("reflection",)),
        recommended_subjects=("Psychology", "Biology"),
    ),
    CareerConfig(
        id="ai_ethicist",
        title="AI Ethicist",
        short_pitch="Make sure intelligent machines treat people fairly.",
        icon="🤖",
        rarity_tier=RarityTier.FRONTIER,
        skill_signals=(Cat.COGNITIVE_REASONING, Cat.CHARACTER_VALUES),
        unlock_rule=UnlockRule(match="all"),
        recommended_subjects=("Computer Science", "Philosophy"),
    ),
    CareerConfig(
        id="space_mission_architect",
        title="Space Mission Architect",
        short_pitch="Plan journeys to places no one has been before.",
        icon="🚀",
        rarity_tier=RarityTier.FRONTIER,
        skill_signals=(Cat.PLANNING, Cat.COGNITIVE_REASONING, Cat.CREATIVITY),
        unlock_rule=UnlockRule(match="all", min_level=SkillLevelEnum.ADVANCED),
        recommended_subjects=("Physics", "Mathematics"),
    ),
)

_CAREERS_BY_ID = {c.id: c for c in CAREERS}


def get_career(career_id: str) -> CareerConfig | None:
    return _CAREERS_BY_ID.get(career_id)


def all_careers() -> list[CareerConfig]:
    return list(CAREERS)
