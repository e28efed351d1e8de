"""Tests for the attempt lifecycle.

Covers:
  POST /api/attempts/start
  PUT  /api/attempts/{id}/progress
  POST /api/attempts/{id}/submit
  POST /api/attempts/{id}/abandon
  GET  /api/attempts/
  GET  /api/attempts/{id}

plus the service-level rules that need a controlled clock (timeouts) or a
fake content source.
"""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from progress_engine.catalog import get_game
from progress_engine.core.errors import (
    ConflictError,
    InvalidStateError,
    NotFoundError,
    UpstreamUnavailableError,
    ValidationError,
)
from progress_engine.db.models import (
    Attempt,
    AttemptStatusEnum,
    CareerUnlock,
    SkillCategoryEnum,
    SkillScore,
    StudentProfile,
    SubjectKindEnum,
)
from progress_engine.services import lifecycle
from progress_engine.services.career_unlocks import completed_quest_tags
from progress_engine.services.content import ContentProvider
from progress_engine.services.students import get_or_create_student

T0 = datetime(2026, 2, 2, 9, 0, tzinfo=timezone.utc)


# ── Helpers ────────────────────────────────────────────────────────────────────


def _correct_answers(items: list[dict]) -> list:
    answers = []
    for item in items:
        if item["type"] in ("mcq", "numeric", "sequence"):
            answers.append(item["expected"])
        elif item["type"] == "text":
            answers.append(" ".join(["idea"] * item.get("min_words", 1)))
        elif item["type"] == "choice":
            answers.append(0)
        else:
            answers.append("Today I learned to slow down and check my work.")
    return answers


def _stored_items(db: Session, attempt_id) -> list[dict]:
    db.expire_all()
    return db.get(Attempt, uuid.UUID(str(attempt_id))).items


def _start(client: TestClient, headers: dict, subject_id: str = "pattern_forge", kind: str = "ASSESSMENT"):
    return client.post(
        "/api/attempts/start",
        json={"subject_id": subject_id, "subject_kind": kind},
        headers=headers,
    )


# ── Full flow through the API ─────────────────────────────────────────────────


class TestAttemptFlow:
    def test_start_returns_items_without_answers(self, client: TestClient, student_identity, auth):
        resp = _start(client, auth(student_identity))
        assert resp.status_code == 201, resp.text
        data = resp.json()
        assert data["status"] == "IN_PROGRESS"
        assert data["attempt_number"] == 1
        assert len(data["items"]) == 5
        assert all("expected" not in item for item in data["items"])
        assert all(item["categories"] == ["COGNITIVE_REASONING"] for item in data["items"])

    def test_second_start_conflicts(self, client: TestClient, student_identity, auth):
        headers = auth(student_identity)
        first = _start(client, headers)
        resp = _start(client, headers)
        assert resp.status_code == 409
        body = resp.json()
        assert body["success"] is False
        assert body["error_code"] == "CONFLICT"
        assert body["retryable"] is False
        assert body["details"]["attempt_id"] == first.json()["attempt_id"]

    def test_other_subjects_can_run_in_parallel(self, client: TestClient, student_identity, auth):
        headers = auth(student_identity)
        assert _start(client, headers).status_code == 201
        assert _start(client, headers, "visual_vault").status_code == 201

    def test_submit_scores_awards_xp_and_unlocks(self, client: TestClient, db: Session, student_identity, auth):
        headers = auth(student_identity)
        attempt_id = _start(client, headers).json()["attempt_id"]
        answers = _correct_answers(_stored_items(db, attempt_id))

        resp = client.post(
            f"/api/attempts/{attempt_id}/submit",
            json={"answers": answers, "telemetry": {"time_spent": 100, "hints_used": 0}},
            headers=headers,
        )
        assert resp.status_code == 200, resp.text
        result = resp.json()
        assert result["status"] == "COMPLETED"
        assert result["raw_scores"]["accuracy"] == 1.0
        assert result["normalized_scores"] == {"COGNITIVE_REASONING": 100.0}
        assert result["xp_gained"] == 140
        assert result["total_xp"] == 140
        assert result["player_level"] == {"level": 2, "title": "Pattern Hunter"}
        assert result["leveled_up"] is True
        assert [u["career_id"] for u in result["new_unlocks"]] == ["data_detective"]
        assert result["leveled_up_skills"] == [
            {"category": "COGNITIVE_REASONING", "level": 2, "title": "Sprout"}
        ]

    def test_resubmit_returns_stored_result(self, client: TestClient, db: Session, student_identity, auth):
        headers = auth(student_identity)
        attempt_id = _start(client, headers).json()["attempt_id"]
        answers = _correct_answers(_stored_items(db, attempt_id))

        first = client.post(f"/api/attempts/{attempt_id}/submit", json={"answers": answers}, headers=headers)
        again = client.post(
            f"/api/attempts/{attempt_id}/submit",
            json={"answers": [None] * len(answers)},
            headers=headers,
        )
        assert again.status_code == 200
        assert again.json() == first.json()

        xp = client.get("/api/students/me/xp", headers=headers).json()
        assert xp["total_xp"] == first.json()["total_xp"]

        unlocks = client.get("/api/careers/unlocks", headers=headers).json()
        career_ids = [u["career_id"] for u in unlocks]
        assert sorted(career_ids) == sorted(u["career_id"] for u in first.json()["new_unlocks"])
        assert len(career_ids) == len(set(career_ids))

    def test_invalid_submit_keeps_attempt_open(self, client: TestClient, student_identity, auth):
        headers = auth(student_identity)
        attempt_id = _start(client, headers).json()["attempt_id"]

        resp = client.post(f"/api/attempts/{attempt_id}/submit", json={"answers": [1, 2]}, headers=headers)
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "VALIDATION_ERROR"

        resp = client.post(
            f"/api/attempts/{attempt_id}/submit",
            json={"answers": [None] * 5, "telemetry": {"time_spent": -4}},
            headers=headers,
        )
        assert resp.status_code == 422

        detail = client.get(f"/api/attempts/{attempt_id}", headers=headers).json()
        assert detail["status"] == "IN_PROGRESS"

    def test_malformed_body_uses_error_envelope(self, client: TestClient, student_identity, auth):
        resp = client.post("/api/attempts/start", json={"subject_id": ""}, headers=auth(student_identity))
        assert resp.status_code == 422
        assert resp.json()["error_code"] == "VALIDATION_ERROR"

    def test_unknown_subject(self, client: TestClient, student_identity, auth):
        resp = _start(client, auth(student_identity), "no_such_game")
        assert resp.status_code == 404
        assert resp.json()["error_code"] == "NOT_FOUND"

    def test_abandon_frees_the_subject(self, client: TestClient, student_identity, auth):
        headers = auth(student_identity)
        attempt_id = _start(client, headers).json()["attempt_id"]

        resp = client.post(f"/api/attempts/{attempt_id}/abandon", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["status"] == "ABANDONED"
        assert resp.json()["abandon_reason"] == "user"

        # repeating the abandon is a no-op
        assert client.post(f"/api/attempts/{attempt_id}/abandon", headers=headers).status_code == 200

        restarted = _start(client, headers)
        assert restarted.status_code == 201
        assert restarted.json()["attempt_number"] == 2

    def test_abandon_completed_is_rejected(self, client: TestClient, db: Session, student_identity, auth):
        headers = auth(student_identity)
        attempt_id = _start(client, headers).json()["attempt_id"]
        answers = _correct_answers(_stored_items(db, attempt_id))
        client.post(f"/api/attempts/{attempt_id}/submit", json={"answers": answers}, headers=headers)

        resp = client.post(f"/api/attempts/{attempt_id}/abandon", headers=headers)
        assert resp.status_code == 409
        assert resp.json()["error_code"] == "INVALID_STATE"

    def test_submit_abandoned_is_rejected(self, client: TestClient, student_identity, auth):
        headers = auth(student_identity)
        attempt_id = _start(client, headers).json()["attempt_id"]
        client.post(f"/api/attempts/{attempt_id}/abandon", headers=headers)

        resp = client.post(f"/api/attempts/{attempt_id}/submit", json={"answers": [None] * 5}, headers=headers)
        assert resp.status_code == 409
        assert resp.json()["error_code"] == "INVALID_STATE"

    def test_autosave_is_accepted(self, client: TestClient, db: Session, student_identity, auth):
        headers = auth(student_identity)
        attempt_id = _start(client, headers).json()["attempt_id"]

        resp = client.put(
            f"/api/attempts/{attempt_id}/progress",
            json={"state": {"current_item": 2}, "telemetry": [{"event": "hint"}]},
            headers=headers,
        )
        assert resp.status_code == 202
        assert resp.json() == {"saved": True, "reason": None}

        detail = client.get(f"/api/attempts/{attempt_id}", headers=headers).json()
        assert detail["progress_state"] == {"current_item": 2}
        assert detail["last_saved_at"] is not None
        assert all("expected" not in item for item in detail["items"])

    def test_autosave_never_fails(self, client: TestClient, db: Session, student_identity, auth):
        headers = auth(student_identity)
        missing = client.put(f"/api/attempts/{uuid.uuid4()}/progress", json={"state": {}}, headers=headers)
        assert missing.status_code == 202
        assert missing.json() == {"saved": False, "reason": "not_found"}

        attempt_id = _start(client, headers).json()["attempt_id"]
        client.post(f"/api/attempts/{attempt_id}/abandon", headers=headers)
        closed = client.put(f"/api/attempts/{attempt_id}/progress", json={"state": {"x": 1}}, headers=headers)
        assert closed.status_code == 202
        assert closed.json() == {"saved": False, "reason": "not_in_progress"}

    def test_list_attempts_filters(self, client: TestClient, student_identity, auth):
        headers = auth(student_identity)
        first = _start(client, headers).json()["attempt_id"]
        client.post(f"/api/attempts/{first}/abandon", headers=headers)
        _start(client, headers, "visual_vault")

        everything = client.get("/api/attempts/", headers=headers).json()
        assert len(everything) == 2
        abandoned = client.get("/api/attempts/", params={"status": "ABANDONED"}, headers=headers).json()
        assert [a["id"] for a in abandoned] == [first]
        vault = client.get("/api/attempts/", params={"subject_id": "visual_vault"}, headers=headers).json()
        assert len(vault) == 1

    def test_attempts_are_private(self, client: TestClient, student_identity, identity_factory, auth):
        attempt_id = _start(client, auth(student_identity)).json()["attempt_id"]
        other = identity_factory()
        resp = client.get(f"/api/attempts/{attempt_id}", headers=auth(other))
        assert resp.status_code == 404

    def test_requires_student_token(self, client: TestClient):
        assert client.post("/api/attempts/start", json={"subject_id": "pattern_forge"}).status_code == 401


# ── Service rules ─────────────────────────────────────────────────────────────


class TestLifecycleService:
    def test_timed_out_attempt_is_replaced(self, db: Session, student):
        stale = lifecycle.start_attempt(db, student, "pattern_forge", SubjectKindEnum.ASSESSMENT, now=T0)
        later = T0 + timedelta(minutes=181)

        fresh = lifecycle.start_attempt(db, student, "pattern_forge", SubjectKindEnum.ASSESSMENT, now=later)
        assert fresh["attempt_number"] == 2

        old = db.get(Attempt, stale["attempt_id"])
        db.refresh(old)
        assert old.status == AttemptStatusEnum.ABANDONED
        assert old.abandon_reason == lifecycle.ABANDON_TIMEOUT

    def test_open_attempt_within_timeout_conflicts(self, db: Session, student):
        lifecycle.start_attempt(db, student, "pattern_forge", SubjectKindEnum.ASSESSMENT, now=T0)
        with pytest.raises(ConflictError):
            lifecycle.start_attempt(
                db, student, "pattern_forge", SubjectKindEnum.ASSESSMENT, now=T0 + timedelta(minutes=30)
            )

    def test_stale_sweep(self, db: Session, student):
        started = lifecycle.start_attempt(db, student, "focus_sprint", SubjectKindEnum.ASSESSMENT, now=T0)
        assert lifecycle.abandon_stale_attempts(db, now=T0 + timedelta(minutes=10)) == 0
        assert lifecycle.abandon_stale_attempts(db, now=T0 + timedelta(hours=4)) >= 1

        attempt = db.get(Attempt, started["attempt_id"])
        db.refresh(attempt)
        assert attempt.status == AttemptStatusEnum.ABANDONED

    def test_reflection_quest_earns_xp_and_tags_only(self, db: Session, student):
        started = lifecycle.start_attempt(db, student, "daily_reflection", SubjectKindEnum.QUEST, now=T0)
        assert [item["type"] for item in started["items"]] == ["reflection"]

        result = lifecycle.submit_attempt(
            db, student, started["attempt_id"], ["I asked for help when I was stuck."], now=T0
        )
        assert result["normalized_scores"] == {}
        assert result["xp_gained"] == 52
        assert "reflection" in completed_quest_tags(db, student.id)
        skills = db.execute(select(SkillScore).where(SkillScore.student_id == student.id)).scalars().all()
        assert skills == []

    def test_choice_quest(self, db: Session, student):
        started = lifecycle.start_attempt(db, student, "team_project_choice", SubjectKindEnum.QUEST, now=T0)
        item = started["items"][0]
        assert item["type"] == "choice"
        assert item["options"]
        with pytest.raises(ValidationError):
            lifecycle.submit_attempt(db, student, started["attempt_id"], [len(item["options"])], now=T0)
        lifecycle.submit_attempt(db, student, started["attempt_id"], [0], now=T0)
        assert "decision_making" in completed_quest_tags(db, student.id)

    def test_skill_history_and_evidence(self, db: Session, student):
        for n in range(2):
            started = lifecycle.start_attempt(
                db, student, "pattern_forge", SubjectKindEnum.ASSESSMENT, now=T0 + timedelta(days=n)
            )
            items = db.get(Attempt, started["attempt_id"]).items
            lifecycle.submit_attempt(db, student, started["attempt_id"], _correct_answers(items), now=T0)

        skill = db.execute(
            select(SkillScore).where(
                SkillScore.student_id == student.id,
                SkillScore.category == SkillCategoryEnum.COGNITIVE_REASONING,
            )
        ).scalar_one()
        assert len(skill.history) == 2
        assert skill.evidence == ["pattern_forge#1", "pattern_forge#2"]

    def test_better_attempt_raises_prior_score(self, db: Session, student):
        first = lifecycle.start_attempt(db, student, "pattern_forge", SubjectKindEnum.ASSESSMENT, now=T0)
        items = db.get(Attempt, first["attempt_id"]).items
        wrong = [item["expected"] + 1 for item in items]
        wrong[0] = items[0]["expected"]
        lifecycle.submit_attempt(db, student, first["attempt_id"], wrong, now=T0)

        skill = db.execute(
            select(SkillScore).where(
                SkillScore.student_id == student.id,
                SkillScore.category == SkillCategoryEnum.COGNITIVE_REASONING,
            )
        ).scalar_one()
        prior = skill.score
        assert prior < 50

        later = T0 + timedelta(days=1)
        second = lifecycle.start_attempt(db, student, "pattern_forge", SubjectKindEnum.ASSESSMENT, now=later)
        items = db.get(Attempt, second["attempt_id"]).items
        lifecycle.submit_attempt(db, student, second["attempt_id"], _correct_answers(items), now=later)

        db.refresh(skill)
        assert skill.score > prior
        assert [point["score"] for point in skill.history] == [prior, skill.score]

    def test_concurrent_submit_loser_gets_stored_result(self, db: Session, student):
        started = lifecycle.start_attempt(db, student, "pattern_forge", SubjectKindEnum.ASSESSMENT, now=T0)
        attempt_id = started["attempt_id"]

        stale = Session(bind=db.get_bind())
        try:
            stale_student = stale.get(StudentProfile, student.id)
            stale_attempt = stale.get(Attempt, attempt_id)
            assert stale_attempt.status == AttemptStatusEnum.IN_PROGRESS
            answers = _correct_answers(stale_attempt.items)

            winner = lifecycle.submit_attempt(db, student, attempt_id, answers, now=T0)
            loser = lifecycle.submit_attempt(stale, stale_student, attempt_id, answers, now=T0)
        finally:
            stale.close()

        assert loser["attempt_id"] == winner["attempt_id"]
        assert loser["xp_gained"] == winner["xp_gained"]
        assert loser["total_xp"] == winner["total_xp"]
        assert [u["career_id"] for u in loser["new_unlocks"]] == [u["career_id"] for u in winner["new_unlocks"]]
        db.refresh(student)
        assert student.total_xp == winner["xp_gained"]
        unlocks = db.execute(select(CareerUnlock).where(CareerUnlock.student_id == student.id)).scalars().all()
        assert len(unlocks) == len(winner["new_unlocks"])
        skill = db.execute(
            select(SkillScore).where(
                SkillScore.student_id == student.id,
                SkillScore.category == SkillCategoryEnum.COGNITIVE_REASONING,
            )
        ).scalar_one()
        assert len(skill.history) == 1

    def test_leveled_up_uses_committed_total(self, db: Session, student):
        started = lifecycle.start_attempt(db, student, "pattern_forge", SubjectKindEnum.ASSESSMENT, now=T0)

        stale = Session(bind=db.get_bind())
        try:
            stale_student = stale.get(StudentProfile, student.id)
            assert stale_student.total_xp == 0
            # another submit lands 100 XP after this session read the profile
            db.execute(update(StudentProfile).where(StudentProfile.id == student.id).values(total_xp=100))
            db.commit()

            items = stale.get(Attempt, started["attempt_id"]).items
            result = lifecycle.submit_attempt(stale, stale_student, started["attempt_id"], _correct_answers(items), now=T0)
        finally:
            stale.close()

        assert result["total_xp"] == 100 + result["xp_gained"]
        assert result["player_level"]["level"] == 2
        assert result["leveled_up"] is False

    def test_end_of_year_only_for_assessments(self, db: Session, student):
        with pytest.raises(ValidationError):
            lifecycle.start_attempt(
                db, student, "daily_reflection", SubjectKindEnum.QUEST, end_of_year=True, now=T0
            )

    def test_grade_restricted_quest(self, db: Session, student):
        # future_self_letter starts at grade 9
        with pytest.raises(ValidationError):
            lifecycle.start_attempt(db, student, "future_self_letter", SubjectKindEnum.QUEST, now=T0)

    def test_other_student_cannot_touch_attempt(self, db: Session, student, identity_factory):
        started = lifecycle.start_attempt(db, student, "pattern_forge", SubjectKindEnum.ASSESSMENT, now=T0)
        other = get_or_create_student(db, identity_factory())
        with pytest.raises(NotFoundError):
            lifecycle.submit_attempt(db, other, started["attempt_id"], [None] * 5)
        with pytest.raises(NotFoundError):
            lifecycle.abandon_attempt(db, other, started["attempt_id"])

    def test_completed_attempt_cannot_be_abandoned(self, db: Session, student):
        started = lifecycle.start_attempt(db, student, "pattern_forge", SubjectKindEnum.ASSESSMENT, now=T0)
        lifecycle.submit_attempt(db, student, started["attempt_id"], [None] * 5, now=T0)
        with pytest.raises(InvalidStateError):
            lifecycle.abandon_attempt(db, student, started["attempt_id"])

    def test_telemetry_events_are_capped(self, db: Session, student, monkeypatch):
        monkeypatch.setattr(lifecycle, "MAX_TELEMETRY_EVENTS", 3)
        started = lifecycle.start_attempt(db, student, "pattern_forge", SubjectKindEnum.ASSESSMENT, now=T0)
        events = [{"event": "tap", "n": i} for i in range(5)]
        receipt = lifecycle.record_progress(db, student, started["attempt_id"], {"page": 1}, events, now=T0)
        assert receipt.saved

        attempt = db.get(Attempt, started["attempt_id"])
        db.refresh(attempt)
        assert [e["n"] for e in attempt.telemetry["events"]] == [2, 3, 4]

    def test_throttled_autosave_is_dropped(self, db: Session, student, monkeypatch):
        started = lifecycle.start_attempt(db, student, "pattern_forge", SubjectKindEnum.ASSESSMENT, now=T0)
        monkeypatch.setattr(lifecycle, "allow_autosave", lambda attempt_id: False)
        receipt = lifecycle.record_progress(db, student, started["attempt_id"], {"page": 2})
        assert receipt == lifecycle.AutosaveReceipt(False, "throttled")


# ── Content source ────────────────────────────────────────────────────────────


class TestContentProvider:
    def test_generated_items_are_deterministic(self):
        game = get_game("mission_planner")
        provider = ContentProvider()
        first = provider.items_for(game, 8, seed="s:1", count=4)
        assert provider.items_for(game, 8, seed="s:1", count=4) == first
        assert [item["id"] for item in first] == [f"mission_planner-{i}" for i in range(1, 5)]
        assert all(item["type"] == "sequence" for item in first)

    def test_remote_items_are_used(self, db: Session, student):
        client = MagicMock()
        client.generate_items.return_value = [
            {"type": "mcq", "prompt": "Pick one", "options": ["a", "b"], "expected": 0},
        ]
        started = lifecycle.start_attempt(
            db, student, "focus_sprint", SubjectKindEnum.ASSESSMENT,
            now=T0, provider=ContentProvider(client),
        )
        assert started["items"] == [
            {"type": "mcq", "prompt": "Pick one", "options": ["a", "b"],
             "id": "focus_sprint-1", "categories": ["ATTENTION"]},
        ]

    def test_remote_failure_creates_no_attempt(self, db: Session, student):
        client = MagicMock()
        client.generate_items.side_effect = httpx.ConnectError("down")
        with pytest.raises(UpstreamUnavailableError):
            lifecycle.start_attempt(
                db, student, "focus_sprint", SubjectKindEnum.ASSESSMENT,
                now=T0, provider=ContentProvider(client),
            )
        assert lifecycle.list_attempts(db, student, subject_id="focus_sprint") == []

    def test_remote_garbage_is_rejected(self, db: Session, student):
        client = MagicMock()
        client.generate_items.return_value = [{"type": "drawing"}]
        with pytest.raises(UpstreamUnavailableError):
            lifecycle.start_attempt(
                db, student, "focus_sprint", SubjectKindEnum.ASSESSMENT,
                now=T0, provider=ContentProvider(client),
            )

    @pytest.mark.parametrize("categories", [["LOGIC"], "ATTENTION", [None]])
    def test_remote_unknown_categories_are_rejected(self, db: Session, student, categories):
        client = MagicMock()
        client.generate_items.return_value = [
            {"type": "mcq", "prompt": "Pick one", "options": ["a", "b"], "expected": 0, "categories": categories},
        ]
        with pytest.raises(UpstreamUnavailableError):
            lifecycle.start_attempt(
                db, student, "focus_sprint", SubjectKindEnum.ASSESSMENT,
                now=T0, provider=ContentProvider(client),
            )
        assert lifecycle.list_attempts(db, student, subject_id="focus_sprint") == []

    def test_remote_known_categories_are_kept(self, db: Session, student):
        client = MagicMock()
        client.generate_items.return_value = [
            {"type": "mcq", "prompt": "Pick one", "options": ["a", "b"], "expected": 0, "categories": ["MEMORY"]},
        ]
        started = lifecycle.start_attempt(
            db, student, "focus_sprint", SubjectKindEnum.ASSESSMENT,
            now=T0, provider=ContentProvider(client),
        )
        assert started["items"][0]["categories"] == ["MEMORY"]
