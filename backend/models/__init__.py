from .conflict import (
    ConflictEvent,
    Coordinates,
    DashboardMetrics,
    DataSource,
    EventCategory,
    PercentageChanges,
    SeverityLevel,
    ThreatLevel,
    SEVERITY_RANK,
)

__all__ = [
    "ConflictEvent",
    "Coordinates",
    "DashboardMetrics",
    "DataSource",
    "EventCategory",
    "PercentageChanges",
    "SeverityLevel",
    "ThreatLevel",
    "SEVERITY_RANK",
]
