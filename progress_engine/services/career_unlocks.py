"""Career unlock evaluation.

``evaluate_unlocks`` is a pure function over a snapshot of skill scores and
completed quest tags. ``unlock_careers`` persists its candidates; every insert
runs in a savepoint so a concurrent duplicate on ``(student_id, career_id)``
is skipped instead of failing the surrounding transaction.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from progress_engine.catalog import CareerConfig, all_careers
from progress_engine.catalog.careers import RARITY_CONFIDENCE_PENALTY
from progress_engine.config import settings
from progress_engine.db.models import (
    Attempt,
    AttemptStatusEnum,
    CareerUnlock,
    SkillCategoryEnum,
    SkillLevelEnum,
    SkillScore,
    StudentProfile,
    SubjectKindEnum,
)
from progress_engine.services.leveling import level_at_least
from progress_engine.services.store import storage_boundary

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 50


@dataclass(frozen=True)
class SkillSnapshot:
    score: float
    level: SkillLevelEnum


@dataclass
class UnlockCandidate:
    career: CareerConfig
    confidence: float
    reason: str
    matched: list[dict] = field(default_factory=list)
    quest_tags: list[str] = field(default_factory=list)

    @property
    def linked_skills(self) -> list[str]:
        return [m["category"] for m in self.matched]


def _performance_bonus(mean_score: float, matched_count: int) -> int:
    bonus = 0
    if mean_score >= 80:
        bonus += 20
    elif mean_score >= 60:
        bonus += 10
    # each extra corroborating signal adds a little
    bonus += 5 * max(0, matched_count - 1)
    return bonus


def _reason(matched: list[dict]) -> str:
    names = " and ".join(m["category"].replace("_", " ").lower() for m in matched)
    return f"Your strength in {names} suggests this career might interest you"


def evaluate_unlocks(
    skill_scores: dict[SkillCategoryEnum, SkillSnapshot],
    completed_quest_tags: Iterable[str],
    careers: Iterable[CareerConfig],
    already_unlocked: Iterable[str],
    max_unlocks: int | None = None,
) -> list[UnlockCandidate]:
    """Careers whose unlock rule is now satisfied, best first, capped."""
    limit = max_unlocks if max_unlocks is not None else settings.MAX_UNLOCKS_PER_EVALUATION
    tags = set(completed_quest_tags)
    unlocked = set(already_unlocked)
    candidates: list[UnlockCandidate] = []

    for career in careers:
        if career.id in unlocked:
            continue
        rule = career.unlock_rule
        if not set(rule.required_quest_tags).issubset(tags):
            continue

        threshold = career.effective_min_score
        matched = []
        for category in career.skill_signals:
            snap = skill_scores.get(category)
            if snap is None or snap.score < threshold:
                continue
            if rule.min_level is not None and not level_at_least(snap.level, rule.min_level):
                continue
            matched.append({"category": category.value, "score": snap.score, "threshold": threshold})

        if rule.match == "all":
            satisfied = len(matched) == len(career.skill_signals) and bool(matched)
        else:
            satisfied = bool(matched)
        if not satisfied:
            continue

        mean_score = sum(m["score"] for m in matched) / len(matched)
        confidence = (
            BASE_CONFIDENCE
            + _performance_bonus(mean_score, len(matched))
            - RARITY_CONFIDENCE_PENALTY[career.rarity_tier]
        )
        candidates.append(
            UnlockCandidate(
                career=career,
                confidence=float(min(100, max(0, confidence))),
                reason=_reason(matched),
                matched=matched,
                quest_tags=sorted(set(rule.required_quest_tags)),
            )
        )

    candidates.sort(key=lambda c: c.confidence, reverse=True)
    return candidates[:limit]


# ── Persistence ───────────────────────────────────────────────────────────────


def completed_quest_tags(db: Session, student_id: uuid.UUID) -> set[str]:
    rows = db.execute(
        select(Attempt.quest_tags).where(
            Attempt.student_id == student_id,
            Attempt.subject_kind == SubjectKindEnum.QUEST,
            Attempt.status == AttemptStatusEnum.COMPLETED,
        )
    ).scalars()
    tags: set[str] = set()
    for row in rows:
        tags.update(row or [])
    return tags


def _skill_snapshot(db: Session, student_id: uuid.UUID) -> dict[SkillCategoryEnum, SkillSnapshot]:
    rows = db.execute(select(SkillScore).where(SkillScore.student_id == student_id)).scalars()
    return {row.category: SkillSnapshot(score=row.score, level=row.level) for row in rows}


def unlock_careers(
    db: Session,
    student: StudentProfile,
    *,
    source_attempt_id: uuid.UUID | None = None,
    now: datetime | None = None,
) -> list[CareerUnlock]:
    """Evaluate and insert new unlocks inside the caller's transaction."""
    now = now or datetime.now(timezone.utc)
    already = set(
        db.execute(
            select(CareerUnlock.career_id).where(CareerUnlock.student_id == student.id)
        ).scalars()
    )
    candidates = evaluate_unlocks(
        _skill_snapshot(db, student.id),
        completed_quest_tags(db, student.id),
        all_careers(),
        already,
    )

    created: list[CareerUnlock] = []
    for candidate in candidates:
        unlock = CareerUnlock(
            tenant_id=student.tenant_id,
            student_id=student.id,
            career_id=candidate.career.id,
            reason=candidate.reason,
            reason_evidence={"signals": candidate.matched, "quest_tags": candidate.quest_tags},
            linked_skills=candidate.linked_skills,
            confidence=candidate.confidence,
            source_attempt_id=source_attempt_id,
            unlocked_at=now,
        )
        try:
            with db.begin_nested():
                db.add(unlock)
        except IntegrityError:
            logger.info("Career %s already unlocked for student %s; skipping", candidate.career.id, student.id)
            continue
        created.append(unlock)
        logger.info(
            "Unlocked career %s for student %s (confidence %.0f)",
            candidate.career.id, student.id, candidate.confidence,
        )
    return created


def evaluate_career_unlocks(db: Session, student: StudentProfile, now: datetime | None = None) -> list[CareerUnlock]:
    """Standalone evaluation: one transaction, committed here."""
    with storage_boundary(db, "evaluate career unlocks"):
        created = unlock_careers(db, student, now=now)
        db.commit()
    return created


def list_unlocks(db: Session, student_id: uuid.UUID) -> list[CareerUnlock]:
    return list(
        db.execute(
            select(CareerUnlock)
            .where(CareerUnlock.student_id == student_id)
            .order_by(CareerUnlock.unlocked_at.desc())
        ).scalars()
    )
