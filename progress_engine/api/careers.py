"""Career catalog and unlock routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from progress_engine.api.deps import get_current_student, get_identity
from progress_engine.catalog import CATALOG_VERSION, all_careers, get_career
from progress_engine.core.security import Identity
from progress_engine.db.models import CareerUnlock, StudentProfile
from progress_engine.db.session import get_db
from progress_engine.schemas.career import (
    CareerCatalogRead,
    CareerEvaluationRead,
    CareerRead,
    CareerUnlockRead,
    UnlockRuleRead,
)
from progress_engine.services.career_unlocks import evaluate_career_unlocks, list_unlocks

router = APIRouter()


def _unlock_read(unlock: CareerUnlock) -> CareerUnlockRead:
    read = CareerUnlockRead.model_validate(unlock)
    career = get_career(unlock.career_id)
    read.title = career.title if career else None
    return read


@router.get("/catalog", response_model=CareerCatalogRead)
def career_catalog(_identity: Identity = Depends(get_identity)):
    careers = [
        CareerRead(
            id=c.id,
            title=c.title,
            short_pitch=c.short_pitch,
            icon=c.icon,
            rarity_tier=c.rarity_tier.value,
            skill_signals=[s.value for s in c.skill_signals],
            recommended_subjects=list(c.recommended_subjects),
            unlock_rule=UnlockRuleRead(
                match=c.unlock_rule.match,
                min_score=c.unlock_rule.min_score,
                effective_min_score=c.effective_min_score,
                min_level=c.unlock_rule.min_level.value if c.unlock_rule.min_level else None,
                required_quest_tags=list(c.unlock_rule.required_quest_tags),
            ),
        )
        for c in all_careers()
    ]
    return CareerCatalogRead(catalog_version=CATALOG_VERSION, careers=careers)


@router.post("/evaluate", response_model=CareerEvaluationRead)
def evaluate(
    student: StudentProfile = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    """Re-evaluate unlocks against current skill scores. Idempotent."""
    created = evaluate_career_unlocks(db, student)
    return CareerEvaluationRead(new_unlocks=[_unlock_read(u) for u in created])


@router.get("/unlocks", response_model=list[CareerUnlockRead])
def my_unlocks(
    student: StudentProfile = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    """Unlocked careers, newest first."""
    return [_unlock_read(u) for u in list_unlocks(db, student.id)]
