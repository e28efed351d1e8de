"""Daily quests for Explorer mode.

Three quest shapes exist: ``mini_game`` (graded items mapped to skill
categories), ``reflection`` (free-text, ungraded) and ``choice_scenario``
(one ungraded choice). Reflection and choice quests contribute XP and quest
tags, never normalized skill scores.
"""

from dataclasses import dataclass

from progress_engine.db.models import SkillCategoryEnum as Cat

MINI_GAME = "mini_game"
REFLECTION = "reflection"
CHOICE_SCENARIO = "choice_scenario"


@dataclass(frozen=True)
class QuestConfig:
    id: str
    quest_type: str
    title: str
    description: str
    estimated_minutes: int
    skill_signals: tuple[Cat, ...]
    tags: tuple[str, ...]
    item_style: str | None = None
    prompt: str | None = None
    choices: tuple[str, ...] = ()
    grade_applicability: tuple[int, ...] = (8, 9, 10)

    def applies_to(self, grade: int) -> bool:
        return grade in self.grade_applicability


QUESTS: tuple[QuestConfig, ...] = (
    QuestConfig(
        id="quick_pattern_challenge",
        quest_type=MINI_GAME,
        title="Quick Pattern Challenge",
        description="Complete a short pattern recognition game",
        estimated_minutes=5,
        skill_signals=(Cat.COGNITIVE_REASONING,),
        tags=("logic", "patterns"),
        item_style="number_pattern",
    ),
    QuestConfig(
        id="memory_flash",
        quest_type=MINI_GAME,
        title="Memory Flash",
        description="Remember what you saw a moment ago",
        estimated_minutes=5,
        skill_signals=(Cat.MEMORY,),
        tags=("memory",),
        item_style="recall",
    ),
    QuestConfig(
        id="plan_the_day",
        quest_type=MINI_GAME,
        title="Plan the Day",
        description="Put the steps of a small mission in a sensible order",
        estimated_minutes=6,
        skill_signals=(Cat.PLANNING,),
        tags=("planning", "organizing"),
        item_style="ordering",
    ),
    QuestConfig(
        id="spot_the_difference",
        quest_type=MINI_GAME,
        title="Spot the Difference",
        description="Find the item that does not belong, fast",
        estimated_minutes=4,
        skill_signals=(Cat.ATTENTION,),
        tags=("focus",),
        item_style="odd_one_out",
    ),
    QuestConfig(
        id="daily_reflection",
        quest_type=REFLECTION,
        title="Daily Reflection",
        description="Think about what you learned today",
        estimated_minutes=5,
        skill_signals=(),
        tags=("reflection", "self_awareness"),
        prompt=(
            "What did you learn today that surprised you? "
            "How might you use this learning in the future?"
        ),
    ),
    QuestConfig(
        id="future_self_letter",
        quest_type=REFLECTION,
        title="Letter to Future You",
        description="Write a short note to yourself one year from now",
        estimated_minutes=7,
        skill_signals=(),
        tags=("reflection", "career_curiosity"),
        prompt="What do you hope you will be better at one year from now, and why?",
        grade_applicability=(9, 10),
    ),
    QuestConfig(
        id="team_project_choice",
        quest_type=CHOICE_SCENARIO,
        title="Team Project Crossroads",
        description="Your team disagrees on the plan. What do you do?",
        estimated_minutes=3,
        skill_signals=(),
        tags=("decision_making", "collaboration"),
        prompt="Your group project is due in two days and the team disagrees on the plan.",
        choices=(
            "Call a quick vote and go with the majority",
            "Ask everyone to explain their idea, then combine the best parts",
            "Take over and do it your way",
            "Ask the teacher to decide",
        ),
    ),
    QuestConfig(
        id="weekend_build_choice",
        quest_type=CHOICE_SCENARIO,
        title="Weekend Build",
        description="Pick how you would spend a free Saturday",
        estimated_minutes=3,
        skill_signals=(),
        tags=("decision_making", "making"),
        prompt="You have a free Saturday and a box of spare parts.",
        choices=(
            "Build a gadget from a tutorial",
            "Invent something new and sketch it first",
            "Take something apart to see how it works",
            "Teach a friend what you already know",
        ),
    ),
)

_QUESTS_BY_ID = {q.id: q for q in QUESTS}


def get_quest(quest_id: str) -> QuestConfig | None:
    return _QUESTS_BY_ID.get(quest_id)

