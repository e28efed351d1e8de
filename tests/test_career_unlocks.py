"""Tests for career unlock evaluation and the careers endpoints."""

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from progress_engine.catalog import all_careers
from progress_engine.db.models import SkillCategoryEnum as Cat
from progress_engine.db.models import RoleEnum, SkillLevelEnum, SkillScore
from progress_engine.services.career_unlocks import SkillSnapshot, evaluate_unlocks
from progress_engine.services.leveling import skill_level_for_score


def _snap(score: float, level: SkillLevelEnum | None = None) -> SkillSnapshot:
    return SkillSnapshot(score=score, level=level or skill_level_for_score(score))


def _ids(candidates) -> list[str]:
    return [c.career.id for c in candidates]


def _seed_skill(db: Session, student, category: Cat, score: float) -> None:
    db.add(
        SkillScore(
            tenant_id=student.tenant_id,
            student_id=student.id,
            category=category,
            score=score,
            level=skill_level_for_score(score),
            history=[{"date": "2026-01-10T00:00:00+00:00", "score": score}],
            evidence=["seed#1"],
            xp=100,
        )
    )
    db.commit()


# ── Pure evaluator ────────────────────────────────────────────────────────────


class TestEvaluateUnlocks:
    def test_single_strong_signal(self):
        scores = {Cat.COGNITIVE_REASONING: _snap(85), Cat.ATTENTION: _snap(30)}
        result = evaluate_unlocks(scores, [], all_careers(), [], max_unlocks=10)
        assert _ids(result) == ["data_detective"]
        candidate = result[0]
        # base 50 + 20 for a mean score ≥ 80, common tier has no penalty
        assert candidate.confidence == 70.0
        assert candidate.linked_skills == ["COGNITIVE_REASONING"]
        assert "cognitive reasoning" in candidate.reason

    def test_nothing_below_threshold(self):
        scores = {cat: _snap(55) for cat in Cat}
        assert evaluate_unlocks(scores, [], all_careers(), [], max_unlocks=10) == []

    def test_already_unlocked_is_skipped(self):
        scores = {Cat.COGNITIVE_REASONING: _snap(85)}
        assert evaluate_unlocks(scores, [], all_careers(), ["data_detective"], max_unlocks=10) == []

    def test_capped_and_sorted(self):
        scores = {cat: _snap(95) for cat in Cat}
        tags = ["planning", "decision_making", "reflection"]
        result = evaluate_unlocks(scores, tags, all_careers(), [], max_unlocks=2)
        assert len(result) == 2
        assert result[0].confidence >= result[1].confidence
        assert all(0 <= c.confidence <= 100 for c in result)

    def test_default_cap(self):
        scores = {cat: _snap(95) for cat in Cat}
        assert len(evaluate_unlocks(scores, [], all_careers(), [])) == 2

    def test_required_quest_tag(self):
        scores = {Cat.METACOGNITION: _snap(90)}
        without = evaluate_unlocks(scores, [], all_careers(), [], max_unlocks=10)
        with_tag = evaluate_unlocks(scores, ["reflection"], all_careers(), [], max_unlocks=10)
        assert "learning_scientist" not in _ids(without)
        assert "learning_scientist" in _ids(with_tag)
        scientist = next(c for c in with_tag if c.career.id == "learning_scientist")
        # advanced tier costs 20 confidence
        assert scientist.confidence == 50.0
        assert scientist.quest_tags == ["reflection"]

    def test_match_all(self):
        one = {Cat.SOCIAL_EMOTIONAL: _snap(70)}
        both = {Cat.SOCIAL_EMOTIONAL: _snap(70), Cat.CHARACTER_VALUES: _snap(70)}
        assert "school_counselor" not in _ids(evaluate_unlocks(one, [], all_careers(), [], max_unlocks=10))
        assert "school_counselor" in _ids(evaluate_unlocks(both, [], all_careers(), [], max_unlocks=10))

    def test_rarity_raises_threshold(self):
        # frontier needs 60 + 15 on every signal
        near = {Cat.COGNITIVE_REASONING: _snap(74), Cat.CHARACTER_VALUES: _snap(74)}
        over = {Cat.COGNITIVE_REASONING: _snap(76), Cat.CHARACTER_VALUES: _snap(76)}
        assert "ai_ethicist" not in _ids(evaluate_unlocks(near, [], all_careers(), [], max_unlocks=10))
        assert "ai_ethicist" in _ids(evaluate_unlocks(over, [], all_careers(), [], max_unlocks=10))

    def test_min_level(self):
        tags = ["decision_making"]
        low = {Cat.CHARACTER_VALUES: _snap(75, SkillLevelEnum.DEVELOPING)}
        ok = {Cat.CHARACTER_VALUES: _snap(75, SkillLevelEnum.PROFICIENT)}
        assert "policy_advisor" not in _ids(evaluate_unlocks(low, tags, all_careers(), [], max_unlocks=10))
        assert "policy_advisor" in _ids(evaluate_unlocks(ok, tags, all_careers(), [], max_unlocks=10))


# ── Endpoints ─────────────────────────────────────────────────────────────────


class TestCareerEndpoints:
    def test_catalog(self, client: TestClient, student_identity, auth):
        resp = client.get("/api/careers/catalog", headers=auth(student_identity))
        assert resp.status_code == 200
        data = resp.json()
        assert data["catalog_version"]
        ids = [c["id"] for c in data["careers"]]
        assert "data_detective" in ids
        frontier = next(c for c in data["careers"] if c["id"] == "ai_ethicist")
        assert frontier["unlock_rule"]["effective_min_score"] == 75.0

    def test_evaluate_is_idempotent(self, client: TestClient, db: Session, student, student_identity, auth):
        _seed_skill(db, student, Cat.COGNITIVE_REASONING, 85.0)

        first = client.post("/api/careers/evaluate", headers=auth(student_identity))
        assert first.status_code == 200
        unlocked = first.json()["new_unlocks"]
        assert [u["career_id"] for u in unlocked] == ["data_detective"]
        assert unlocked[0]["title"] == "Data Detective"

        second = client.post("/api/careers/evaluate", headers=auth(student_identity))
        assert second.status_code == 200
        assert second.json()["new_unlocks"] == []

        listed = client.get("/api/careers/unlocks", headers=auth(student_identity))
        assert [u["career_id"] for u in listed.json()] == ["data_detective"]

    def test_parent_cannot_evaluate(self, client: TestClient, identity_factory, auth):
        parent = identity_factory(RoleEnum.PARENT)
        resp = client.post("/api/careers/evaluate", headers=auth(parent))
        assert resp.status_code == 403
        assert resp.json()["error_code"] == "FORBIDDEN"

    def test_requires_auth(self, client: TestClient):
        assert client.get("/api/careers/unlocks").status_code == 401
