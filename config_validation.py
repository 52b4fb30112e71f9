"""Quest settings and their validation."""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from typing import Any, Dict, List, Mapping, Optional

from PySide6.QtCore import QSettings

from logger import LogCategory, get_logger

MEASUREMENT_SYSTEMS = ("metric", "us")

# QSettings key for every QuestSettings field
SETTINGS_KEYS: Dict[str, str] = {
    "gps_update_interval_s": "quest/gps_update_interval_s",
    "tick_interval_ms": "quest/tick_interval_ms",
    "default_activation_radius_m": "quest/default_activation_radius_m",
    "arrow_here_radius_m": "arrow/here_radius_m",
    "arrow_directional_tip_deg": "arrow/directional_tip_deg",
    "measurement_system": "arrow/measurement_system",
    "minimum_accuracy_m": "map/minimum_accuracy_m",
    "minimap_zoom_level": "map/zoom_level",
    "marker_smoothing_factor": "markers/smoothing_factor",
    "auto_spawn_markers": "markers/auto_spawn",
}


class ConfigurationError(ValueError):
    """Raised when settings cannot be applied."""

    def __init__(self, issues: List["ValidationIssue"]):
        self.issues = issues
        summary = "; ".join(f"{issue.field}: {issue.message}" for issue in issues)
        super().__init__(f"Invalid quest settings: {summary}")


@dataclass(frozen=True)
class ValidationIssue:
    """Represents a configuration validation problem."""

    field: str
    title: str
    message: str


@dataclass
class QuestSettings:
    """Tunable quest behaviour."""

    gps_update_interval_s: float = 1.0
    tick_interval_ms: int = 16
    default_activation_radius_m: float = 10.0
    arrow_here_radius_m: float = 3.0
    arrow_directional_tip_deg: float = 20.0
    measurement_system: str = "metric"
    minimum_accuracy_m: float = 10.0
    minimap_zoom_level: int = 16
    marker_smoothing_factor: float = 0.1
    auto_spawn_markers: bool = True

    @property
    def periodic_gps_updates(self) -> bool:
        """Zero interval means a single GPS snapshot instead of a stream."""
        return self.gps_update_interval_s > 0

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "QuestSettings":
        """Build settings from a mapping, raising ``ConfigurationError`` on bad values."""
        merged = {**asdict(cls()), **{k: v for k, v in values.items() if k in SETTINGS_KEYS}}
        issues = validate_quest_settings(merged)
        if issues:
            raise ConfigurationError(issues)
        return cls(
            gps_update_interval_s=float(_coerce_float(merged["gps_update_interval_s"])),
            tick_interval_ms=int(_coerce_int(merged["tick_interval_ms"])),
            default_activation_radius_m=float(_coerce_float(merged["default_activation_radius_m"])),
            arrow_here_radius_m=float(_coerce_float(merged["arrow_here_radius_m"])),
            arrow_directional_tip_deg=float(_coerce_float(merged["arrow_directional_tip_deg"])),
            measurement_system=str(merged["measurement_system"]).strip().lower(),
            minimum_accuracy_m=float(_coerce_float(merged["minimum_accuracy_m"])),
            minimap_zoom_level=int(_coerce_int(merged["minimap_zoom_level"])),
            marker_smoothing_factor=float(_coerce_float(merged["marker_smoothing_factor"])),
            auto_spawn_markers=_coerce_bool(merged["auto_spawn_markers"]),
        )

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _coerce_int(value: Any) -> int | None:
    """Best-effort conversion to ``int`` returning ``None`` on failure."""

    if isinstance(value, bool):
        # ``bool`` is a subclass of ``int`` in Python, but we treat it as invalid
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _coerce_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        result = float(str(value).strip())
    except (TypeError, ValueError):
        return None
    if result != result or result in (float("inf"), float("-inf")):
        return None
    return result


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _range_issue(issues: List[ValidationIssue], values: Mapping[str, Any], key: str, *,
                 title: str, low: float, high: Optional[float], unit: str,
                 low_inclusive: bool = True, integer: bool = False) -> None:
    raw = values.get(key)
    number = _coerce_int(raw) if integer else _coerce_float(raw)
    kind = "a whole number" if integer else "a number"
    bounds = f"at least {low:g}" if low_inclusive else f"greater than {low:g}"
    if high is not None:
        bounds += f" and at most {high:g}"
    if number is None:
        issues.append(ValidationIssue(
            field=key,
            title=f"{title} Invalid",
            message=f"{title} must be {kind} {bounds}{unit}.",
        ))
        return
    too_low = number < low if low_inclusive else number <= low
    if too_low or (high is not None and number > high):
        issues.append(ValidationIssue(
            field=key,
            title=f"{title} Out of Range",
            message=f"{title} must be {bounds}{unit}.",
        ))


def validate_quest_settings(values: Mapping[str, Any]) -> List[ValidationIssue]:
    """Validate a settings payload.

    Parameters
    ----------
    values:
        Mapping of ``QuestSettings`` field names to raw values, as read from
        ``QSettings`` or a command line.

    Returns
    -------
    list[ValidationIssue]
        A collection of validation issues. An empty list denotes success.
    """

    issues: List[ValidationIssue] = []

    _range_issue(issues, values, "gps_update_interval_s", title="GPS Update Interval",
                 low=0, high=3600, unit=" seconds (0 takes a single snapshot)")
    _range_issue(issues, values, "tick_interval_ms", title="Tick Interval",
                 low=1, high=1000, unit=" milliseconds", integer=True)
    _range_issue(issues, values, "default_activation_radius_m", title="Activation Radius",
                 low=0, high=None, unit=" meters", low_inclusive=False)
    _range_issue(issues, values, "arrow_here_radius_m", title="Arrival Radius",
                 low=0, high=None, unit=" meters")
    _range_issue(issues, values, "arrow_directional_tip_deg", title="Arrow Tip",
                 low=-90, high=90, unit=" degrees")
    _range_issue(issues, values, "minimum_accuracy_m", title="Minimum Accuracy",
                 low=0, high=None, unit=" meters")
    _range_issue(issues, values, "minimap_zoom_level", title="Zoom Level",
                 low=8, high=21, unit="", integer=True)
    _range_issue(issues, values, "marker_smoothing_factor", title="Marker Smoothing",
                 low=0, high=1, unit="", low_inclusive=False)

    system = str(values.get("measurement_system", "")).strip().lower()
    if system not in MEASUREMENT_SYSTEMS:
        issues.append(
            ValidationIssue(
                field="measurement_system",
                title="Unknown Measurement System",
                message="Use 'metric' for meters and kilometers or 'us' for feet and miles.",
            )
        )

    return issues


def load_settings(store: QSettings) -> QuestSettings:
    """Read settings from ``store``; invalid entries fall back to defaults."""
    defaults = QuestSettings()
    values: Dict[str, Any] = {}
    for name, key in SETTINGS_KEYS.items():
        values[name] = store.value(key, getattr(defaults, name))
    issues = validate_quest_settings(values)
    if issues:
        logger = get_logger()
        for issue in issues:
            logger.warning(
                f"Ignoring invalid setting {issue.field}",
                category=LogCategory.CONFIG,
                title=issue.title,
                detail=issue.message,
            )
            values[issue.field] = getattr(defaults, issue.field)
    return QuestSettings.from_mapping(values)


def save_settings(settings: QuestSettings, store: QSettings) -> None:
    """Persist ``settings`` into ``store``."""
    for item in fields(settings):
        store.setValue(SETTINGS_KEYS[item.name], getattr(settings, item.name))
    store.sync()


__all__ = [
    "ConfigurationError",
    "QuestSettings",
    "SETTINGS_KEYS",
    "ValidationIssue",
    "load_settings",
    "save_settings",
    "validate_quest_settings",
]
