from .link import DIRECT_REFERRER, LinkCreate, LinkRecord, LinkStats, LinkUpdate, VisitEvent

__all__ = [
    "DIRECT_REFERRER",
    "LinkCreate",
    "LinkRecord",
    "LinkStats",
    "LinkUpdate",
    "VisitEvent",
]
