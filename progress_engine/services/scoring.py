"""Scoring and normalization for completed attempts.

Pipeline for one submission:
  1. ``validate_answers`` / ``parse_telemetry_summary`` reject malformed input
     before any state changes.
  2. ``build_raw_scores`` grades every item and tallies accuracy per category.
  3. ``normalize_scores`` folds efficiency (time and hints) into each touched
     category's accuracy, producing a 0-100 score.
  4. ``apply_skill_updates`` writes the per-category ``SkillScore`` rows. It
     is the only writer of that table.
"""

import logging
import math
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from progress_engine.config import settings
from progress_engine.core.errors import ValidationError
from progress_engine.db.models import Attempt, SkillCategoryEnum, SkillScore, TrendEnum
from progress_engine.services.grading import answer_shape_error, grade_item
from progress_engine.services.leveling import leveled_up, skill_level_for_score, skill_level_for_xp

logger = logging.getLogger(__name__)

_SUMMARY_FIELDS = ("time_spent", "hints_used", "errors", "revisions")


# ── Input validation ──────────────────────────────────────────────────────────


def validate_answers(items: list[dict], answers: list[Any]) -> None:
    """Raise ValidationError unless ``answers`` fits the frozen item set."""
    if not isinstance(answers, list):
        raise ValidationError("answers must be a list")
    if len(answers) != len(items):
        raise ValidationError(
            f"Expected {len(items)} answers, got {len(answers)}",
            details={"expected": len(items), "received": len(answers)},
        )
    problems = []
    for index, (item, answer) in enumerate(zip(items, answers)):
        problem = answer_shape_error(item, answer)
        if problem:
            problems.append({"index": index, "item_id": item.get("id"), "problem": problem})
    if problems:
        raise ValidationError("Some answers have the wrong shape", details={"items": problems})


def parse_telemetry_summary(summary: dict | None) -> dict[str, float]:
    """Normalise the client's telemetry summary, rejecting negative or bad values."""
    summary = summary or {}
    parsed: dict[str, float] = {}
    for field in _SUMMARY_FIELDS:
        value = summary.get(field, 0)
        if value is None:
            value = 0
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            raise ValidationError(f"telemetry.{field} must be a number", details={"field": field})
        if value < 0:
            raise ValidationError(f"telemetry.{field} must not be negative", details={"field": field})
        parsed[field] = value
    parsed["hints_used"] = int(parsed["hints_used"])
    parsed["errors"] = int(parsed["errors"])
    parsed["revisions"] = int(parsed["revisions"])
    return parsed


# ── Raw scores ────────────────────────────────────────────────────────────────


def build_raw_scores(items: list[dict], answers: list[Any], summary: dict[str, float]) -> dict:
    """Grade the answers and assemble the raw-score bundle."""
    correct = 0
    graded = 0
    answered = 0
    per_category: dict[str, dict[str, float]] = {}

    for item, answer in zip(items, answers):
        if answer is not None:
            answered += 1
        outcome = grade_item(item, answer)
        if outcome is None:
            continue
        graded += 1
        correct += int(outcome)
        for category in item.get("categories", []):
            tally = per_category.setdefault(category, {"correct": 0, "total": 0})
            tally["total"] += 1
            tally["correct"] += int(outcome)

    for tally in per_category.values():
        tally["accuracy"] = round(100.0 * tally["correct"] / tally["total"], 2)

    time_spent = summary.get("time_spent", 0)
    return {
        "correct_count": correct,
        "total_count": graded,
        "answered_count": answered,
        "item_count": len(items),
        "accuracy": round(correct / graded, 4) if graded else 0.0,
        "avg_time_per_question": round(time_spent / graded, 2) if graded else 0.0,
        "time_spent": time_spent,
        "hints_used": summary.get("hints_used", 0),
        "errors": summary.get("errors", 0),
        "revisions": summary.get("revisions", 0),
        "per_category": per_category,
    }


# ── Normalization ─────────────────────────────────────────────────────────────


def efficiency(raw: dict, expected_seconds: float | None = None) -> float:
    """Blend of time and hint efficiency in [0, 1]."""
    expected = expected_seconds if expected_seconds is not None else settings.EXPECTED_SECONDS_PER_ITEM
    graded = raw["total_count"]
    if graded == 0:
        return 1.0
    avg = raw["avg_time_per_question"]
    if avg <= expected:
        time_eff = 1.0
    else:
        time_eff = max(0.0, 1.0 - (avg - expected) / expected)
    hint_eff = max(0.0, 1.0 - raw["hints_used"] / graded)
    return 0.5 * time_eff + 0.5 * hint_eff


def normalize_scores(
    raw: dict,
    accuracy_weight: float | None = None,
    expected_seconds: float | None = None,
) -> dict[str, float]:
    """Per-category score = accuracy% x (w + (1 - w) x efficiency), clamped to [0, 100]."""
    w = accuracy_weight if accuracy_weight is not None else settings.ACCURACY_WEIGHT
    e = efficiency(raw, expected_seconds)
    normalized = {}
    for category, tally in raw["per_category"].items():
        score = tally["accuracy"] * (w + (1.0 - w) * e)
        normalized[category] = round(min(100.0, max(0.0, score)), 2)
    return normalized


def compute_trend(
    history: list[dict],
    new_score: float,
    window: int | None = None,
    threshold: float | None = None,
) -> TrendEnum:
    """Compare ``new_score`` with the mean of the last ``window`` prior points."""
    window = window if window is not None else settings.TREND_WINDOW
    threshold = threshold if threshold is not None else settings.TREND_THRESHOLD
    recent = [point["score"] for point in history[-window:]] if window > 0 else []
    if not recent:
        return TrendEnum.STABLE
    delta = new_score - sum(recent) / len(recent)
    if delta > threshold:
        return TrendEnum.IMPROVING
    if delta < -threshold:
        return TrendEnum.NEEDS_ATTENTION
    return TrendEnum.STABLE


def build_evidence(raw: dict, normalized: dict[str, float]) -> dict:
    """Structured strengths/growth areas for the narrative collaborator."""
    strengths: list[str] = []
    growth: list[str] = []
    if raw["total_count"]:
        if raw["accuracy"] >= 0.8:
            strengths.append("high_accuracy")
        elif raw["accuracy"] < 0.5:
            growth.append("accuracy")
        avg = raw["avg_time_per_question"]
        if 0 < avg <= settings.EXPECTED_SECONDS_PER_ITEM:
            strengths.append("steady_pace")
        elif avg > 2 * settings.EXPECTED_SECONDS_PER_ITEM:
            growth.append("pace")
        if raw["hints_used"] == 0:
            strengths.append("independent_work")
        elif raw["hints_used"] > raw["total_count"] / 2:
            growth.append("reliance_on_hints")
    for category, score in normalized.items():
        if score >= 80:
            strengths.append(f"category:{category}")
        elif score < 40:
            growth.append(f"category:{category}")
    return {
        "strengths": strengths,
        "growth_areas": growth,
        "accuracy": raw["accuracy"],
        "avg_time_per_question": raw["avg_time_per_question"],
        "hints_used": raw["hints_used"],
    }


# ── Skill score updates ───────────────────────────────────────────────────────


def _load_or_create_skill(
    db: Session, tenant_id: uuid.UUID, student_id: uuid.UUID, category: SkillCategoryEnum
) -> SkillScore:
    stmt = select(SkillScore).where(
        SkillScore.student_id == student_id, SkillScore.category == category
    )
    skill = db.execute(stmt).scalar_one_or_none()
    if skill is not None:
        return skill
    skill = SkillScore(
        tenant_id=tenant_id,
        student_id=student_id,
        category=category,
        score=0.0,
        history=[],
        evidence=[],
        xp=0,
    )
    try:
        with db.begin_nested():
            db.add(skill)
    except IntegrityError:
        # a concurrent submit created the row first
        return db.execute(stmt).scalar_one()
    return skill


def apply_skill_updates(
    db: Session,
    attempt: Attempt,
    normalized: dict[str, float],
    xp_gained: int,
    now: datetime,
) -> list[dict]:
    """Fold one attempt's normalized scores into the student's skill rows.

    Returns the categories whose skill level went up.
    """
    leveled: list[dict] = []
    label = f"{attempt.subject_id}#{attempt.attempt_number}"
    for category_key, score in normalized.items():
        category = SkillCategoryEnum(category_key)
        skill = _load_or_create_skill(db, attempt.tenant_id, attempt.student_id, category)
        history = list(skill.history or [])

        skill.trend = compute_trend(history, score)
        skill.score = score
        skill.level = skill_level_for_score(score)
        skill.history = [*history, {"date": now.isoformat(), "score": score}]
        skill.evidence = [*(skill.evidence or []), label]

        before_xp = skill.xp or 0
        skill.xp = before_xp + xp_gained
        skill.updated_at = now
        if leveled_up(before_xp, skill.xp):
            info = skill_level_for_xp(skill.xp)
            leveled.append({"category": category.value, "level": info.level, "title": info.title})

    db.flush()
    logger.info(
        "Updated %d skill(s) for student %s from attempt %s",
        len(normalized), attempt.student_id, attempt.id,
    )
    return leveled
