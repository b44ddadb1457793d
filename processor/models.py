"""Data models for calendar feed processing."""
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple


DEFAULT_COLORS = {
    'banner_bg': '#3b556e',
    'banner_fg': '#ffffff',
    'strip_red': '#c62828',
    'panel_bg': '#ffffff',
    'panel_fg': '#000000',
    'rule': '#e5e7eb',
}


@dataclass(frozen=True)
class RawField:
    """A content line pulled out of one event block."""
    name: str
    value: str
    parameters: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NormalizedEvent:
    """Canonical event record handed to the renderer.

    ``start`` and ``end`` are timezone-aware datetimes in UTC, or None.
    ``start_date`` is the calendar date of an all-day start, as written.
    """
    title: str
    location: str
    description: str
    all_day: bool
    start: Optional[datetime]
    end: Optional[datetime]
    start_date: Optional[date] = None


@dataclass(frozen=True)
class NormalizationResult:
    """Outcome of normalizing one block; ``issues`` is empty for clean events."""
    event: NormalizedEvent
    issues: Tuple[str, ...] = ()

    @property
    def degraded(self) -> bool:
        return bool(self.issues)


@dataclass(frozen=True)
class AgendaConfig:
    """Build settings, read once at startup."""
    ics_url: str
    brand: str = 'This Week at VUMC'
    timezone: str = 'America/New_York'
    days_ahead: int = 45
    max_items: int = 120
    scroll_ms: int = 420000
    output_path: str = 'index.html'
    timeout_seconds: int = 30
    weather_latitude: Optional[float] = None
    weather_longitude: Optional[float] = None
    default_title: str = 'Untitled'
    colors: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(DEFAULT_COLORS))
    )

    def __post_init__(self):
        # Read-only copy of the caller's mapping
        object.__setattr__(self, 'colors', MappingProxyType(dict(self.colors)))

    @property
    def weather_enabled(self) -> bool:
        return (
            self.weather_latitude is not None
            and self.weather_longitude is not None
        )


@dataclass(frozen=True)
class WeatherReport:
    """Current conditions shown in the page header."""
    temperature_f: float
    code: Optional[int]
    summary: str


@dataclass
class BuildResult:
    """Summary of one build run."""
    blocks_parsed: int
    degraded_events: int
    events_selected: int
    output_path: str
    weather: Optional[WeatherReport] = None
    warnings: List[str] = field(default_factory=list)
