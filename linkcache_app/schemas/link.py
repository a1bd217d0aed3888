from pydantic import BaseModel, ConfigDict, Field, HttpUrl, computed_field, field_validator
from typing import Any, List, Optional
from datetime import datetime, timezone
from linkcache_app.config import settings

DIRECT_REFERRER = "Direct"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VisitEvent(BaseModel):
    """
    One recorded visit of a short link.

    Appended to the owning link's history; never modified afterwards.
    """

    date: datetime = Field(default_factory=utcnow, description="When the visit occurred")
    user_agent: str = Field("", description="User agent string")
    referrer: str = Field(DIRECT_REFERRER, description="HTTP referrer, or 'Direct'")

    @field_validator("date")
    @classmethod
    def assume_utc(cls, value: datetime) -> datetime:
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "date": "2025-10-29T10:30:00Z",
                "user_agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) Chrome/120.0",
                "referrer": "https://twitter.com",
            }
        },
    )


class LinkRecord(BaseModel):
    """Snapshot of a durable link record

    This is the shape cached under ``link:{short_code}`` and returned by the
    link data service. from_attributes=True lets it read SQLAlchemy rows.
    """
    id: str
    short_code: str
    original_url: str
    visits: int = 0
    expires_at: Optional[datetime] = None
    last_visited: Optional[datetime] = None
    visits_history: List[VisitEvent] = Field(default_factory=list)
    user_id: Optional[str] = None
    script_code: Optional[Any] = None
    created_at: Optional[datetime] = None

    @field_validator("expires_at", "last_visited", "created_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # SQLite hands back naive datetimes
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @computed_field
    @property
    def short_url(self) -> str:
        return f"{settings.base_url}/{self.short_code}"

    model_config = ConfigDict(from_attributes=True)


class LinkCreate(BaseModel):
    short_code: str = Field(..., min_length=1, max_length=64)
    original_url: HttpUrl = Field(..., description="The destination URL")
    expires_at: Optional[datetime] = None
    user_id: Optional[str] = None
    script_code: Optional[Any] = None


class LinkUpdate(BaseModel):
    """Partial update; only fields that were sent are written"""
    short_code: Optional[str] = Field(None, min_length=1, max_length=64)
    original_url: Optional[HttpUrl] = None
    expires_at: Optional[datetime] = None
    script_code: Optional[Any] = None


class LinkStats(LinkRecord):
    """Detailed statistics, always computed from the durable store"""
    total_visits: int
    visits_today: int
    visits_this_week: int
    visits_this_month: int
