"""Data models for user-facing dashboard notices."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class NoticeLevel(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notice:
    """A message shown to the user (job failure, fallback data in use, unmatched accessions)."""
    level: NoticeLevel
    message: str
    code: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        """Validate notice data."""
        if not self.message:
            raise ValueError("message cannot be empty")


class NoticeDTO(BaseModel):
    """Pydantic model for Notice API response."""
    level: NoticeLevel
    message: str
    code: Optional[str] = None
    created_at: datetime = Field(..., alias="createdAt")

    class Config:
        populate_by_name = True

    @classmethod
    def from_notice(cls, notice: Notice) -> "NoticeDTO":
        return cls(level=notice.level, message=notice.message, code=notice.code, created_at=notice.created_at)
