from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from utils.utcnow import ensure_utc, utcnow


class EventCategory(str, Enum):
    BATTLE = "battle"
    BOMBING = "bombing"
    AIRSTRIKE = "airstrike"
    VIOLENCE_AGAINST_CIVILIANS = "violence_against_civilians"
    CYBER_ATTACK = "cyber_attack"
    HUMANITARIAN = "humanitarian"
    PROTEST = "protest"
    RIOT = "riot"
    STRATEGIC_DEVELOPMENT = "strategic_development"
    OTHER = "other"


class DataSource(str, Enum):
    STRUCTURED_API = "structured_api"  # ACLED-style curated event API
    NEWS = "news"  # scraped news / RSS
    SOCIAL = "social"  # scraped social media posts
    INTELLIGENCE = "intelligence"
    MANUAL = "manual"


class SeverityLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self]


SEVERITY_RANK: dict[SeverityLevel, int] = {
    SeverityLevel.LOW: 1,
    SeverityLevel.MEDIUM: 2,
    SeverityLevel.HIGH: 3,
    SeverityLevel.CRITICAL: 4,
}


class ThreatLevel(str, Enum):
    MINIMAL = "minimal"
    ELEVATED = "elevated"
    HIGH = "high"
    SEVERE = "severe"
    CRITICAL = "critical"


class Coordinates(BaseModel):
    """Latitude/longitude pair. (0, 0) is the "unknown" sentinel."""

    lat: float = 0.0
    lng: float = 0.0

    @property
    def is_known(self) -> bool:
        return not (self.lat == 0.0 and self.lng == 0.0)

    @classmethod
    def unknown(cls) -> "Coordinates":
        return cls(lat=0.0, lng=0.0)


class ConflictEvent(BaseModel):
    """A normalized incident, the unit every consumer sees."""

    id: str
    title: str = ""
    description: str = ""
    location: str
    coordinates: Coordinates = Field(default_factory=Coordinates.unknown)
    timestamp: datetime
    category: EventCategory = EventCategory.OTHER
    source: DataSource
    fatalities: int = 0
    actors: list[str] = Field(default_factory=list)
    severity: SeverityLevel = SeverityLevel.LOW
    verified: bool = False
    tags: list[str] = Field(default_factory=list)
    source_url: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("fatalities")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        return max(0, value)


class PercentageChanges(BaseModel):
    events: float = 0.0
    fatalities: float = 0.0
    active_locations: float = 0.0
    critical_alerts: float = 0.0


class DashboardMetrics(BaseModel):
    """Point-in-time dashboard statistics. All-zero is a valid "no data" state."""

    events_today: int = 0
    fatalities_today: int = 0
    events_yesterday: int = 0
    fatalities_yesterday: int = 0
    active_locations: int = 0
    critical_alerts: int = 0
    global_threat_level: ThreatLevel = ThreatLevel.MINIMAL
    percentage_changes: PercentageChanges = Field(default_factory=PercentageChanges)
    data_last_updated: datetime = Field(default_factory=utcnow)
    stale: bool = False
