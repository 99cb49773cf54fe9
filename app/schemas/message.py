from datetime import datetime

from pydantic import BaseModel, Field

from app.core.config import settings


class ScheduleMessageIn(BaseModel):
    channel_id: str = Field(min_length=1, max_length=64)
    channel_name: str = Field(min_length=1, max_length=255)
    message: str = Field(min_length=1, max_length=settings.message_max_chars)
    scheduled_for: datetime


class ScheduledMessageOut(BaseModel):
    id: str
    channel_id: str
    channel_name: str
    message: str
    scheduled_for: datetime
    status: str
    created_at: datetime
    sent_at: datetime | None = None
    error: str | None = None


class MessageStatsOut(BaseModel):
    total: int
    pending: int
    sent: int
    failed: int
    cancelled: int
