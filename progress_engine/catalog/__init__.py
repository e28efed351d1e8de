"""Static reference data: assessment games, quests and careers.

Loaded once per process and never mutated. Bump ``CATALOG_VERSION`` whenever
an entry changes in a way that affects scoring or unlocks.
"""

from progress_engine.catalog.careers import (  # noqa: F401
    CAREERS,
    CareerConfig,
    RarityTier,
    UnlockRule,
    all_careers,
    get_career,
)
from progress_engine.catalog.games import ASSESSMENT_GAMES, GameConfig, get_game  # noqa: F401
from progress_engine.catalog.quests import QUESTS, QuestConfig, get_quest  # noqa: F401
from progress_engine.core.errors import NotFoundError
from progress_engine.db.models import SkillCategoryEnum, SubjectKindEnum

CATALOG_VERSION = "2026.1"


def resolve_subject(subject_id: str, subject_kind: SubjectKindEnum) -> GameConfig | QuestConfig:
    """Look up a game or quest by kind; raise NotFoundError if unknown."""
    if subject_kind == SubjectKindEnum.ASSESSMENT:
        subject = get_game(subject_id)
    else:
        subject = get_quest(subject_id)
    if subject is None:
        raise NotFoundError(
            f"Unknown {subject_kind.value.lower()} '{subject_id}'",
            details={"subject_id": subject_id, "subject_kind": subject_kind.value},
        )
    return subject


def subject_categories(subject: GameConfig | QuestConfig) -> tuple[SkillCategoryEnum, ...]:
    """Skill categories a subject's graded items map to."""
    if isinstance(subject, GameConfig):
        return subject.target_categories
    return subject.skill_signals
