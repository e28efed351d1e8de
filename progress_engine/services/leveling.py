"""XP awards, level tables and the internal maturity band classification.

Two level tables exist:
  - skill levels (1-10) over one category's cumulative XP, shown to students
    as fun titles ("Seedling" … "Transcendent")
  - player levels (1-12) over a student's total XP

Maturity bands are an adult-facing classification of a category score. They
are never exposed to students; see ``services/projections.py``.
"""

import enum
import math
from dataclasses import dataclass

from progress_engine.db.models import SkillCategoryEnum, SkillLevelEnum

# ── XP award ──────────────────────────────────────────────────────────────────

BASE_COMPLETION_XP = 50
MAX_ACCURACY_BONUS = 50
XP_PER_QUESTION = 2
MAX_QUESTIONS_FOR_XP = 20
HINT_PENALTY = 5
MIN_XP_AWARD = 10

# (average seconds per question below which, bonus)
_SPEED_BONUSES = ((30, 30), (60, 20), (90, 10))


def calculate_xp(
    accuracy: float,
    time_spent: float,
    questions_answered: int,
    hints_used: int,
) -> int:
    """XP for one completed attempt.

    ``accuracy`` is a fraction in [0, 1]. The award is never below
    ``MIN_XP_AWARD``, never decreases as accuracy rises and never increases
    as hints rise.
    """
    accuracy = min(1.0, max(0.0, accuracy))
    questions_answered = max(0, questions_answered)
    hints_used = max(0, hints_used)

    xp = BASE_COMPLETION_XP
    xp += math.floor(accuracy * MAX_ACCURACY_BONUS)
    xp += min(questions_answered, MAX_QUESTIONS_FOR_XP) * XP_PER_QUESTION

    if time_spent > 0 and questions_answered > 0:
        avg = time_spent / questions_answered
        for limit, bonus in _SPEED_BONUSES:
            if avg < limit:
                xp += bonus
                break

    xp -= hints_used * HINT_PENALTY
    return max(MIN_XP_AWARD, xp)


# ── Level tables ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class LevelInfo:
    level: int
    title: str
    min_xp: int


SKILL_LEVELS: tuple[LevelInfo, ...] = (
    LevelInfo(1, "Seedling", 0),
    LevelInfo(2, "Sprout", 100),
    LevelInfo(3, "Budding", 250),
    LevelInfo(4, "Growing", 450),
    LevelInfo(5, "Flourishing", 700),
    LevelInfo(6, "Thriving", 1000),
    LevelInfo(7, "Mastering", 1400),
    LevelInfo(8, "Expert", 1900),
    LevelInfo(9, "Legendary", 2500),
    LevelInfo(10, "Transcendent", 3200),
)

PLAYER_LEVELS: tuple[LevelInfo, ...] = (
    LevelInfo(1, "Curious Rookie", 0),
    LevelInfo(2, "Pattern Hunter", 100),
    LevelInfo(3, "Logic Explorer", 250),
    LevelInfo(4, "Strategy Crafter", 500),
    LevelInfo(5, "Mind Athlete", 1000),
    LevelInfo(6, "Insight Captain", 2000),
    LevelInfo(7, "Wisdom Seeker", 3500),
    LevelInfo(8, "Master Thinker", 5500),
    LevelInfo(9, "Genius Navigator", 8000),
    LevelInfo(10, "Legendary Scholar", 12000),
    LevelInfo(11, "Supreme Mind", 18000),
    LevelInfo(12, "Transcendent Master", 25000),
)


def level_for_xp(xp: int, table: tuple[LevelInfo, ...] = SKILL_LEVELS) -> LevelInfo:
    """Highest level whose threshold ``xp`` has reached."""
    current = table[0]
    for info in table:
        if xp >= info.min_xp:
            current = info
        else:
            break
    return current


def skill_level_for_xp(xp: int) -> LevelInfo:
    return level_for_xp(xp, SKILL_LEVELS)


def player_level_for_xp(xp: int) -> LevelInfo:
    return level_for_xp(xp, PLAYER_LEVELS)


def xp_progress(xp: int, table: tuple[LevelInfo, ...] = SKILL_LEVELS) -> dict:
    """Position of ``xp`` inside its level: level, title, next threshold, percent."""
    info = level_for_xp(xp, table)
    nxt = next((t for t in table if t.level == info.level + 1), None)
    if nxt is None:
        progress = 100.0
        xp_to_next = 0
    else:
        span = nxt.min_xp - info.min_xp
        progress = round(100.0 * (xp - info.min_xp) / span, 1)
        xp_to_next = nxt.min_xp - xp
    return {
        "level": info.level,
        "title": info.title,
        "xp": xp,
        "current_level_xp": info.min_xp,
        "next_level_xp": nxt.min_xp if nxt else None,
        "xp_to_next_level": xp_to_next,
        "progress_percent": progress,
    }


def leveled_up(before_xp: int, after_xp: int, table: tuple[LevelInfo, ...] = SKILL_LEVELS) -> bool:
    return level_for_xp(after_xp, table).level > level_for_xp(before_xp, table).level


# ── Skill level from normalized score ─────────────────────────────────────────


def skill_level_for_score(score: float) -> SkillLevelEnum:
    if score >= 80:
        return SkillLevelEnum.ADVANCED
    if score >= 60:
        return SkillLevelEnum.PROFICIENT
    if score >= 40:
        return SkillLevelEnum.DEVELOPING
    return SkillLevelEnum.EMERGING


_LEVEL_ORDER = {
    SkillLevelEnum.EMERGING: 0,
    SkillLevelEnum.DEVELOPING: 1,
    SkillLevelEnum.PROFICIENT: 2,
    SkillLevelEnum.ADVANCED: 3,
}


def level_at_least(level: SkillLevelEnum, minimum: SkillLevelEnum) -> bool:
    return _LEVEL_ORDER[level] >= _LEVEL_ORDER[minimum]


# ── Maturity bands (adult-facing only) ────────────────────────────────────────


class MaturityBand(str, enum.Enum):
    UNCLASSIFIED = "UNCLASSIFIED"
    DISCOVERING = "DISCOVERING"
    PRACTICING = "PRACTICING"
    CONSISTENT = "CONSISTENT"
    INDEPENDENT = "INDEPENDENT"
    ADAPTIVE = "ADAPTIVE"


BAND_ORDER = {band: i for i, band in enumerate(MaturityBand)}

BAND_DESCRIPTIONS = {
    MaturityBand.UNCLASSIFIED: "Not yet observed or assessed",
    MaturityBand.DISCOVERING: "First encounters, experimenting, learning what the skill feels like",
    MaturityBand.PRACTICING: "Using the skill with effort and some support",
    MaturityBand.CONSISTENT: "Showing the skill reliably in familiar situations",
    MaturityBand.INDEPENDENT: "Applying the skill confidently without guidance",
    MaturityBand.ADAPTIVE: "Flexibly using the skill across new or complex situations",
}


@dataclass(frozen=True)
class MaturityBandTable:
    """Score thresholds for each band, checked highest first.

    A category with fewer than ``min_evidence`` scored attempts stays
    UNCLASSIFIED regardless of its score.
    """

    rows: tuple[tuple[float, MaturityBand], ...] = (
        (90.0, MaturityBand.ADAPTIVE),
        (75.0, MaturityBand.INDEPENDENT),
        (60.0, MaturityBand.CONSISTENT),
        (40.0, MaturityBand.PRACTICING),
        (0.0, MaturityBand.DISCOVERING),
    )
    min_evidence: int = 1

    def band_for(self, score: float | None, evidence_count: int) -> MaturityBand:
        if score is None or evidence_count < self.min_evidence:
            return MaturityBand.UNCLASSIFIED
        for threshold, band in sorted(self.rows, key=lambda r: r[0], reverse=True):
            if score >= threshold:
                return band
        return MaturityBand.UNCLASSIFIED


DEFAULT_BAND_TABLE = MaturityBandTable()


# ── Teacher suggested actions ─────────────────────────────────────────────────

_Cat = SkillCategoryEnum
_B = MaturityBand

TEACHER_ACTIONS: dict[SkillCategoryEnum, dict[MaturityBand, list[str]]] = {
    _Cat.COGNITIVE_REASONING: {
        _B.UNCLASSIFIED: ["Observe and gather baseline evidence", "Provide varied problem-solving opportunities"],
        _B.DISCOVERING: ["Break complex problems into smaller steps", "Encourage think-aloud strategies"],
        _B.PRACTICING: ["Provide guided practice with worked examples", "Use scaffolded problem-solving prompts"],
        _B.CONSISTENT: ["Introduce more complex problem types", "Connect reasoning to real-world applications"],
        _B.INDEPENDENT: ["Provide challenging, open-ended problems", "Encourage peer teaching opportunities"],
        _B.ADAPTIVE: ["Offer advanced problem-solving challenges", "Encourage leadership in group problem-solving"],
    },
    _Cat.PLANNING: {
        _B.UNCLASSIFIED: ["Observe planning behaviors", "Provide planning opportunities"],
        _B.DISCOVERING: ["Use a 2-minute planning prompt before tasks", "Provide planning checklists"],
        _B.PRACTICING: ["Encourage daily planning routines", "Use visual planning tools"],
        _B.CONSISTENT: ["Introduce longer-term planning projects", "Connect planning to goal achievement"],
        _B.INDEPENDENT: ["Provide complex planning challenges", "Encourage planning for multiple goals"],
        _B.ADAPTIVE: ["Offer planning roles in group work", "Support strategic planning approaches"],
    },
    _Cat.CREATIVITY: {
        _B.UNCLASSIFIED: ["Observe creative behaviors", "Provide creative opportunities"],
        _B.DISCOVERING: ["Encourage creative exploration", "Provide open-ended prompts"],
        _B.PRACTICING: ["Support creative practice", "Celebrate creative attempts"],
        _B.CONSISTENT: ["Introduce creative challenges", "Support creative expression"],
        _B.INDEPENDENT: ["Provide advanced creative projects", "Encourage creative leadership"],
        _B.ADAPTIVE: ["Offer innovative challenges", "Support cross-subject creative work"],
    },
    _Cat.ATTENTION: {
        _B.UNCLASSIFIED: ["Observe attention patterns", "Provide focus opportunities"],
        _B.DISCOVERING: ["Use attention-building activities", "Provide focus breaks"],
        _B.PRACTICING: ["Support focus practice", "Teach simple attention strategies"],
        _B.CONSISTENT: ["Encourage sustained focus", "Support attention management"],
        _B.INDEPENDENT: ["Provide focus challenges", "Support independent focus"],
        _B.ADAPTIVE: ["Offer longer deep-work sessions", "Support flexible attention"],
    },
    _Cat.MEMORY: {
        _B.UNCLASSIFIED: ["Observe memory patterns", "Provide memory opportunities"],
        _B.DISCOVERING: ["Teach memory strategies", "Use mnemonic devices"],
        _B.PRACTICING: ["Support memory practice", "Celebrate memory successes"],
        _B.CONSISTENT: ["Encourage memory application", "Support spaced review"],
        _B.INDEPENDENT: ["Provide memory challenges", "Encourage self-made study aids"],
        _B.ADAPTIVE: ["Offer complex memory tasks", "Support teaching recall strategies to peers"],
    },
    _Cat.SOCIAL_EMOTIONAL: {
        _B.UNCLASSIFIED: ["Observe social patterns", "Provide social opportunities"],
        _B.DISCOVERING: ["Teach emotional awareness", "Model social skills"],
        _B.PRACTICING: ["Support social practice", "Celebrate emotional growth"],
        _B.CONSISTENT: ["Encourage social leadership", "Support emotional regulation"],
        _B.INDEPENDENT: ["Provide social challenges", "Support peer mentoring"],
        _B.ADAPTIVE: ["Offer advanced social opportunities", "Support conflict mediation roles"],
    },
    _Cat.METACOGNITION: {
        _B.UNCLASSIFIED: ["Observe metacognitive patterns", "Provide reflection opportunities"],
        _B.DISCOVERING: ["Encourage self-reflection", "Model thinking about thinking"],
        _B.PRACTICING: ["Support metacognitive practice", "Celebrate self-awareness"],
        _B.CONSISTENT: ["Encourage metacognitive application", "Support learning strategies"],
        _B.INDEPENDENT: ["Provide metacognitive challenges", "Support advanced reflection"],
        _B.ADAPTIVE: ["Offer complex metacognitive tasks", "Invite students to design study plans"],
    },
    _Cat.LANGUAGE: {
        _B.UNCLASSIFIED: ["Observe language patterns", "Provide language opportunities"],
        _B.DISCOVERING: ["Encourage language exploration", "Provide language-rich activities"],
        _B.PRACTICING: ["Support language practice", "Celebrate communication"],
        _B.CONSISTENT: ["Encourage language application", "Support communication skills"],
        _B.INDEPENDENT: ["Provide language challenges", "Support advanced communication"],
        _B.ADAPTIVE: ["Offer complex language tasks", "Support writing for real audiences"],
    },
    _Cat.CHARACTER_VALUES: {
        _B.UNCLASSIFIED: ["Observe character patterns", "Provide character opportunities"],
        _B.DISCOVERING: ["Encourage value exploration", "Model character traits"],
        _B.PRACTICING: ["Support value practice", "Celebrate character growth"],
        _B.CONSISTENT: ["Encourage value application", "Support character development"],
        _B.INDEPENDENT: ["Provide character challenges", "Support value leadership"],
        _B.ADAPTIVE: ["Offer advanced character opportunities", "Support community service projects"],
    },
}


def teacher_actions(category: SkillCategoryEnum, band: MaturityBand) -> list[str]:
    return list(TEACHER_ACTIONS.get(category, {}).get(band, ["Observe and provide opportunities"]))
