"""Resolve effective workspace settings from layered inputs."""

from __future__ import annotations

from datetime import datetime, time
from typing import Any

from autoplan.models import Settings, Weekday, WorkHoursConfig
from autoplan.validation import ValidationReport

DEFAULT_SETTINGS: dict[str, Any] = {
    "work_start": "09:00",
    "work_end": "17:00",
    "scheduling_days": ["mon", "tue", "wed", "thu", "fri"],
    "default_duration_minutes": 30,
    "min_split_minutes": 25,
}

_MINIMUMS = {
    "default_duration_minutes": 1,
    "min_split_minutes": 0,
}


def merge_settings(*layers: dict[str, Any] | None) -> dict[str, Any]:
    """Ordered merge: defaults first, then each layer in turn."""
    merged = dict(DEFAULT_SETTINGS)
    for layer in layers:
        if isinstance(layer, dict):
            merged.update({key: value for key, value in layer.items() if value is not None})
    return merged


def resolve_settings(source: dict[str, Any] | None, validation_report: ValidationReport) -> Settings:
    """Build engine-ready settings; invalid values fall back to defaults."""
    merged = merge_settings(source)

    for key in sorted(merged):
        if key not in DEFAULT_SETTINGS:
            validation_report.add_error(
                code="INVALID_OVERRIDE_KEY",
                message=f"Settings key {key!r} is not allowed",
                field_path=f"$.settings.{key}",
                suggested_fix=f"Use one of: {', '.join(sorted(DEFAULT_SETTINGS))}",
            )

    start = _resolve_time(merged, "work_start", validation_report)
    end = _resolve_time(merged, "work_end", validation_report)
    if end <= start:
        validation_report.add_error(
            code="INVALID_WORK_HOURS",
            message="work_end must be after work_start",
            field_path="$.settings.work_end",
            suggested_fix="Use a same-day range such as 09:00-17:00.",
        )

    work_hours = WorkHoursConfig(
        start=start,
        end=end,
        scheduling_days=_resolve_days(merged.get("scheduling_days"), validation_report),
    )
    return Settings(
        work_hours=work_hours,
        default_duration_minutes=_resolve_minutes(merged, "default_duration_minutes", validation_report),
        min_split_minutes=_resolve_minutes(merged, "min_split_minutes", validation_report),
    )


def parse_clock(value: str) -> time:
    """Parse ``HH:MM`` into a minute-resolution time of day."""
    return datetime.strptime(value.strip(), "%H:%M").time()


def _resolve_time(merged: dict[str, Any], key: str, validation_report: ValidationReport) -> time:
    raw = merged.get(key)
    try:
        return parse_clock(str(raw))
    except ValueError:
        validation_report.add_error(
            code="INVALID_TIME_FORMAT",
            message=f"{key} must be HH:MM, got {raw!r}",
            field_path=f"$.settings.{key}",
        )
        return parse_clock(DEFAULT_SETTINGS[key])


def _resolve_days(raw: Any, validation_report: ValidationReport) -> frozenset[Weekday]:
    if not isinstance(raw, list):
        validation_report.add_error(
            code="INVALID_TYPE",
            message="scheduling_days must be a list of weekday names",
            field_path="$.settings.scheduling_days",
        )
        raw = DEFAULT_SETTINGS["scheduling_days"]

    days: set[Weekday] = set()
    for idx, name in enumerate(raw):
        try:
            days.add(Weekday.from_label(str(name)))
        except KeyError:
            validation_report.add_error(
                code="INVALID_WEEKDAY",
                message=f"Unknown weekday {name!r}",
                field_path=f"$.settings.scheduling_days[{idx}]",
                suggested_fix="Use mon, tue, wed, thu, fri, sat or sun.",
            )
    return frozenset(days)


def _resolve_minutes(merged: dict[str, Any], key: str, validation_report: ValidationReport) -> int:
    raw = merged.get(key)
    if not isinstance(raw, int) or isinstance(raw, bool):
        validation_report.add_error(
            code="INVALID_TYPE",
            message=f"{key} must be an integer",
            field_path=f"$.settings.{key}",
        )
        return int(DEFAULT_SETTINGS[key])

    minimum = _MINIMUMS[key]
    if raw < minimum:
        validation_report.add_info(
            code=f"INFO_CLAMP_{key.upper()}_APPLIED",
            message=f"{key} was clamped to {minimum}",
            field_path=f"$.settings.{key}",
            extra={"applied_value": minimum},
        )
        return minimum
    return raw
