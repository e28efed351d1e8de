"""Unit tests for XP awards, level tables and maturity bands."""

from progress_engine.db.models import SkillCategoryEnum, SkillLevelEnum
from progress_engine.services.leveling import (
    MIN_XP_AWARD,
    PLAYER_LEVELS,
    MaturityBand,
    MaturityBandTable,
    calculate_xp,
    level_at_least,
    leveled_up,
    player_level_for_xp,
    skill_level_for_score,
    skill_level_for_xp,
    teacher_actions,
    xp_progress,
)


class TestCalculateXp:
    def test_perfect_fast_attempt(self):
        # 50 base + 50 accuracy + 5*2 questions + 30 speed (20s avg)
        assert calculate_xp(1.0, 100, 5, 0) == 140

    def test_slow_attempt_gets_no_speed_bonus(self):
        assert calculate_xp(1.0, 1000, 5, 0) == 110

    def test_question_bonus_is_capped(self):
        assert calculate_xp(0.0, 0, 50, 0) == 50 + 20 * 2

    def test_never_below_floor(self):
        assert calculate_xp(0.0, 0, 0, 100) == MIN_XP_AWARD

    def test_monotone_in_accuracy_and_hints(self):
        low = calculate_xp(0.2, 200, 5, 1)
        high = calculate_xp(0.9, 200, 5, 1)
        assert high >= low
        assert calculate_xp(0.9, 200, 5, 3) <= high

    def test_out_of_range_inputs_are_clamped(self):
        assert calculate_xp(1.7, 0, -3, -2) == calculate_xp(1.0, 0, 0, 0)


class TestLevels:
    def test_skill_level_thresholds(self):
        assert skill_level_for_xp(0).title == "Seedling"
        assert skill_level_for_xp(99).level == 1
        assert skill_level_for_xp(100).title == "Sprout"
        assert skill_level_for_xp(10_000).title == "Transcendent"

    def test_player_level_thresholds(self):
        assert player_level_for_xp(0).title == "Curious Rookie"
        assert player_level_for_xp(500).level == 4
        assert player_level_for_xp(25_000).level == 12

    def test_xp_progress_mid_level(self):
        progress = xp_progress(175)
        assert progress["level"] == 2
        assert progress["next_level_xp"] == 250
        assert progress["xp_to_next_level"] == 75
        assert progress["progress_percent"] == 50.0

    def test_xp_progress_at_top_level(self):
        progress = xp_progress(30_000, PLAYER_LEVELS)
        assert progress["next_level_xp"] is None
        assert progress["progress_percent"] == 100.0

    def test_leveled_up(self):
        assert leveled_up(90, 110)
        assert not leveled_up(110, 200)

    def test_skill_level_for_score(self):
        assert skill_level_for_score(39.9) == SkillLevelEnum.EMERGING
        assert skill_level_for_score(40) == SkillLevelEnum.DEVELOPING
        assert skill_level_for_score(60) == SkillLevelEnum.PROFICIENT
        assert skill_level_for_score(80) == SkillLevelEnum.ADVANCED

    def test_level_at_least(self):
        assert level_at_least(SkillLevelEnum.ADVANCED, SkillLevelEnum.PROFICIENT)
        assert not level_at_least(SkillLevelEnum.DEVELOPING, SkillLevelEnum.PROFICIENT)


class TestMaturityBands:
    def test_default_table(self):
        table = MaturityBandTable()
        assert table.band_for(95, 3) == MaturityBand.ADAPTIVE
        assert table.band_for(75, 3) == MaturityBand.INDEPENDENT
        assert table.band_for(10, 3) == MaturityBand.DISCOVERING

    def test_unscored_is_unclassified(self):
        assert MaturityBandTable().band_for(None, 0) == MaturityBand.UNCLASSIFIED

    def test_min_evidence(self):
        table = MaturityBandTable(min_evidence=3)
        assert table.band_for(95, 2) == MaturityBand.UNCLASSIFIED
        assert table.band_for(95, 3) == MaturityBand.ADAPTIVE

    def test_custom_rows(self):
        table = MaturityBandTable(rows=((50.0, MaturityBand.CONSISTENT), (0.0, MaturityBand.PRACTICING)))
        assert table.band_for(55, 1) == MaturityBand.CONSISTENT
        assert table.band_for(45, 1) == MaturityBand.PRACTICING

    def test_teacher_actions(self):
        actions = teacher_actions(SkillCategoryEnum.PLANNING, MaturityBand.DISCOVERING)
        assert "Provide planning checklists" in actions
