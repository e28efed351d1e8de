"""Initial migration - create all progress engine tables

Revision ID: 0_initial
Revises: 
Create Date: 2026-01-15 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


_ENUMS = {
    'subject_kind_enum': ('ASSESSMENT', 'QUEST'),
    'attempt_status_enum': ('IN_PROGRESS', 'COMPLETED', 'ABANDONED'),
    'skill_category_enum': (
        'COGNITIVE_REASONING', 'CREATIVITY', 'LANGUAGE', 'MEMORY', 'ATTENTION',
        'PLANNING', 'SOCIAL_EMOTIONAL', 'METACOGNITION', 'CHARACTER_VALUES',
    ),
    'skill_level_enum': ('EMERGING', 'DEVELOPING', 'PROFICIENT', 'ADVANCED'),
    'trend_enum': ('IMPROVING', 'STABLE', 'NEEDS_ATTENTION'),
    'grade_status_enum': ('IN_PROGRESS', 'COMPLETED'),
    'completion_type_enum': ('SOFT', 'HARD'),
    'badge_type_enum': ('MASTERY', 'COMPLETION_CERTIFICATE'),
}


def _enum(name: str):
    return postgresql.ENUM(*_ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    # ── Create enums ──────────────────────────────────────────────────
    for name, values in _ENUMS.items():
        labels = ", ".join(f"'{v}'" for v in values)
        op.execute(f"""
            DO $$ BEGIN
                CREATE TYPE {name} AS ENUM ({labels});
            EXCEPTION WHEN duplicate_object THEN null;
            END $$;
        """)

    # ── student_profiles table ────────────────────────────────────────
    op.create_table(
        'student_profiles',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('tenant_id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('current_grade', sa.Integer(), nullable=False, server_default='8'),
        sa.Column('total_xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'user_id', name='uq_student_tenant_user'),
        sa.Index('ix_student_profiles_tenant_id', 'tenant_id'),
        sa.Index('ix_student_profiles_user_id', 'user_id'),
    )

    # ── attempts table ────────────────────────────────────────────────
    op.create_table(
        'attempts',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('tenant_id', sa.UUID(), nullable=False),
        sa.Column('student_id', sa.UUID(), nullable=False),
        sa.Column('subject_id', sa.String(100), nullable=False),
        sa.Column('subject_kind', _enum('subject_kind_enum'), nullable=False),
        sa.Column('attempt_number', sa.Integer(), nullable=False),
        sa.Column('status', _enum('attempt_status_enum'), nullable=False, server_default='IN_PROGRESS'),
        sa.Column('open_subject_key', sa.String(100), nullable=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('progress_state', sa.JSON(), nullable=False),
        sa.Column('telemetry', sa.JSON(), nullable=False),
        sa.Column('answers', sa.JSON(), nullable=True),
        sa.Column('raw_scores', sa.JSON(), nullable=False),
        sa.Column('normalized_scores', sa.JSON(), nullable=False),
        sa.Column('xp_awarded', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('grade_at_time_of_attempt', sa.Integer(), nullable=False),
        sa.Column('is_end_year_assessment', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('quest_tags', sa.JSON(), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_saved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('abandoned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('abandon_reason', sa.String(50), nullable=True),
        sa.ForeignKeyConstraint(['student_id'], ['student_profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'subject_id', 'attempt_number', name='uq_attempt_number'),
        sa.UniqueConstraint('student_id', 'open_subject_key', name='uq_attempt_open_subject'),
        sa.Index('ix_attempts_tenant_id', 'tenant_id'),
        sa.Index('ix_attempts_student_id', 'student_id'),
        sa.Index('ix_attempts_subject_id', 'subject_id'),
        sa.Index('ix_attempts_status', 'status'),
    )

    # ── skill_scores table ────────────────────────────────────────────
    op.create_table(
        'skill_scores',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('tenant_id', sa.UUID(), nullable=False),
        sa.Column('student_id', sa.UUID(), nullable=False),
        sa.Column('category', _enum('skill_category_enum'), nullable=False),
        sa.Column('score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('level', _enum('skill_level_enum'), nullable=False, server_default='EMERGING'),
        sa.Column('trend', _enum('trend_enum'), nullable=False, server_default='STABLE'),
        sa.Column('history', sa.JSON(), nullable=False),
        sa.Column('evidence', sa.JSON(), nullable=False),
        sa.Column('xp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['student_id'], ['student_profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'category', name='uq_student_skill_category'),
        sa.Index('ix_skill_scores_tenant_id', 'tenant_id'),
    )

    # ── career_unlocks table ──────────────────────────────────────────
    op.create_table(
        'career_unlocks',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('tenant_id', sa.UUID(), nullable=False),
        sa.Column('student_id', sa.UUID(), nullable=False),
        sa.Column('career_id', sa.String(100), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('reason_evidence', sa.JSON(), nullable=False),
        sa.Column('linked_skills', sa.JSON(), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=False, server_default='0'),
        sa.Column('source_attempt_id', sa.UUID(), nullable=True),
        sa.Column('unlocked_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['student_id'], ['student_profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'career_id', name='uq_student_career'),
        sa.Index('ix_career_unlocks_tenant_id', 'tenant_id'),
    )

    # ── grade_journeys table ──────────────────────────────────────────
    op.create_table(
        'grade_journeys',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('tenant_id', sa.UUID(), nullable=False),
        sa.Column('student_id', sa.UUID(), nullable=False),
        sa.Column('grade', sa.Integer(), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completion_status', _enum('grade_status_enum'), nullable=False, server_default='IN_PROGRESS'),
        sa.Column('completion_type', _enum('completion_type_enum'), nullable=True),
        sa.Column('open_journey_key', sa.String(10), nullable=True),
        sa.Column('summary_snapshot', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['student_id'], ['student_profiles.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'open_journey_key', name='uq_student_open_journey'),
        sa.Index('ix_grade_journeys_tenant_id', 'tenant_id'),
    )

    # ── grade_mastery_badges table ────────────────────────────────────
    op.create_table(
        'grade_mastery_badges',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('tenant_id', sa.UUID(), nullable=False),
        sa.Column('student_id', sa.UUID(), nullable=False),
        sa.Column('grade', sa.Integer(), nullable=False),
        sa.Column('badge_type', _enum('badge_type_enum'), nullable=False, server_default='MASTERY'),
        sa.Column('grade_journey_id', sa.UUID(), nullable=True),
        sa.Column('requirements', sa.JSON(), nullable=False),
        sa.Column('met_requirements', sa.JSON(), nullable=False),
        sa.Column('awarded_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['student_id'], ['student_profiles.id']),
        sa.ForeignKeyConstraint(['grade_journey_id'], ['grade_journeys.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('student_id', 'grade', 'badge_type', name='uq_student_grade_badge'),
        sa.Index('ix_grade_mastery_badges_tenant_id', 'tenant_id'),
    )

    # ── academic_year_configs table ───────────────────────────────────
    op.create_table(
        'academic_year_configs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('tenant_id', sa.UUID(), nullable=True, unique=True),
        sa.Column('start_month', sa.Integer(), nullable=False, server_default='6'),
        sa.Column('start_day', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('end_month', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('end_day', sa.Integer(), nullable=False, server_default='31'),
        sa.Column('timezone', sa.String(64), nullable=False, server_default='Asia/Kolkata'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    # ── mastery_requirement_configs table ─────────────────────────────
    op.create_table(
        'mastery_requirement_configs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('tenant_id', sa.UUID(), nullable=False),
        sa.Column('grade', sa.Integer(), nullable=False),
        sa.Column('min_quests_completed', sa.Integer(), nullable=True),
        sa.Column('min_assessments_completed', sa.Integer(), nullable=True),
        sa.Column('min_average_skill_score', sa.Float(), nullable=True),
        sa.Column('end_year_assessment_required', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tenant_id', 'grade', name='uq_mastery_tenant_grade'),
    )


def downgrade() -> None:
    op.drop_table('mastery_requirement_configs')
    op.drop_table('academic_year_configs')
    op.drop_table('grade_mastery_badges')
    op.drop_table('grade_journeys')
    op.drop_table('career_unlocks')
    op.drop_table('skill_scores')
    op.drop_table('attempts')
    op.drop_table('student_profiles')
    for name in reversed(list(_ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
