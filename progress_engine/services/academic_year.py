"""Academic-year windows.

A tenant's academic year is a recurring (month, day) → (month, day) window in
a local timezone. When the end falls earlier in the calendar than the start
(June 1 → May 31) the window spans two calendar years.
"""

import calendar
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.orm import Session

from progress_engine.config import settings
from progress_engine.core.errors import ValidationError
from progress_engine.db.models import AcademicYearConfig
from progress_engine.services.store import ensure_aware, storage_boundary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class YearSettings:
    start_month: int
    start_day: int
    end_month: int
    end_day: int
    timezone: str

    @property
    def spans_calendar_years(self) -> bool:
        return (self.end_month, self.end_day) < (self.start_month, self.start_day)


@dataclass(frozen=True)
class AcademicYearWindow:
    start: datetime
    end: datetime
    label: str

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


def default_year_settings() -> YearSettings:
    return YearSettings(
        start_month=settings.ACADEMIC_YEAR_START_MONTH,
        start_day=settings.ACADEMIC_YEAR_START_DAY,
        end_month=settings.ACADEMIC_YEAR_END_MONTH,
        end_day=settings.ACADEMIC_YEAR_END_DAY,
        timezone=settings.ACADEMIC_YEAR_TIMEZONE,
    )


def validate_year_settings(cfg: YearSettings) -> None:
    for label, month, day in (
        ("start", cfg.start_month, cfg.start_day),
        ("end", cfg.end_month, cfg.end_day),
    ):
        if not 1 <= month <= 12:
            raise ValidationError(f"{label}_month must be between 1 and 12")
        if not 1 <= day <= 31:
            raise ValidationError(f"{label}_day must be between 1 and 31")
    if (cfg.start_month, cfg.start_day) == (cfg.end_month, cfg.end_day):
        raise ValidationError("Academic year start and end must differ")
    try:
        ZoneInfo(cfg.timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValidationError(f"Unknown timezone '{cfg.timezone}'") from e


def _clamped_date(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def academic_year_window(cfg: YearSettings, reference: datetime) -> AcademicYearWindow:
    """The window containing ``reference``, or the upcoming one for a gap date.

    Start is 00:00 local on the start day; end is the last microsecond of the
    end day, both in the config timezone.
    """
    tz = ZoneInfo(cfg.timezone)
    local = ensure_aware(reference).astimezone(tz)
    year = local.year
    today = local.date()

    # a date in the gap between an end and the next start belongs to the
    # upcoming window
    if cfg.spans_calendar_years:
        if today > _clamped_date(year, cfg.end_month, cfg.end_day):
            start_year, end_year = year, year + 1
        else:
            start_year, end_year = year - 1, year
    elif today > _clamped_date(year, cfg.end_month, cfg.end_day):
        start_year = end_year = year + 1
    else:
        start_year = end_year = year

    start = datetime.combine(_clamped_date(start_year, cfg.start_month, cfg.start_day), time.min, tzinfo=tz)
    end = datetime.combine(_clamped_date(end_year, cfg.end_month, cfg.end_day), time.max, tzinfo=tz)
    label = f"{start_year}-{end_year}" if start_year != end_year else str(start_year)
    return AcademicYearWindow(start=start, end=end, label=label)


def days_until(moment: datetime, now: datetime) -> int:
    """Whole days from ``now`` until ``moment`` (0 if already past)."""
    delta = ensure_aware(moment) - ensure_aware(now)
    if delta <= timedelta(0):
        return 0
    return delta.days + (1 if delta.seconds or delta.microseconds else 0)


# ── Config resolution ─────────────────────────────────────────────────────────


def _from_row(row: AcademicYearConfig) -> YearSettings:
    return YearSettings(
        start_month=row.start_month,
        start_day=row.start_day,
        end_month=row.end_month,
        end_day=row.end_day,
        timezone=row.timezone,
    )


def resolve_year_settings(db: Session, tenant_id: uuid.UUID) -> YearSettings:
    """Tenant row, else the global (tenant-less) row, else the settings default."""
    tenant_row = db.execute(
        select(AcademicYearConfig).where(AcademicYearConfig.tenant_id == tenant_id)
    ).scalar_one_or_none()
    if tenant_row is not None:
        return _from_row(tenant_row)
    global_row = db.execute(
        select(AcademicYearConfig).where(AcademicYearConfig.tenant_id.is_(None))
    ).scalar_one_or_none()
    if global_row is not None:
        return _from_row(global_row)
    return default_year_settings()


def upsert_tenant_year_settings(db: Session, tenant_id: uuid.UUID, cfg: YearSettings) -> YearSettings:
    validate_year_settings(cfg)
    with storage_boundary(db, "update academic year"):
        row = db.execute(
            select(AcademicYearConfig).where(AcademicYearConfig.tenant_id == tenant_id)
        ).scalar_one_or_none()
        if row is None:
            row = AcademicYearConfig(tenant_id=tenant_id)
            db.add(row)
        row.start_month = cfg.start_month
        row.start_day = cfg.start_day
        row.end_month = cfg.end_month
        row.end_day = cfg.end_day
        row.timezone = cfg.timezone
        db.commit()
    logger.info("Academic year for tenant %s set to %s", tenant_id, cfg)
    return cfg
