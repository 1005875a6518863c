"""
Unified Data Model

The common vocabulary shared by every stage: whatever service a record came
from, it is normalized into one of these shapes before aggregation.
"""
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from teampulse.core.errors import UnsupportedServiceError

# Key under which adapters keep a copy of the raw payload
ORIGINAL_DATA_KEY = "original_data"


class ServiceType(str, Enum):
    """Closed set of supported collaboration services."""

    GOOGLE = "google"
    SLACK = "slack"
    DISCORD = "discord"
    TEAMS = "teams"
    CHATWORK = "chatwork"
    LINE_WORKS = "line-works"

    @classmethod
    def parse(cls, value: Any) -> "ServiceType":
        """Return the member for `value` or raise UnsupportedServiceError."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedServiceError(value) from None


# Canonical ordering used when reporting service lists
SERVICE_ORDER: List[ServiceType] = list(ServiceType)


class _UnifiedRecord(BaseModel):
    """
    Base for unified records.

    Equality ignores metadata["original_data"]: the raw payload is kept for
    tracing only.
    """

    def _comparable(self) -> Dict[str, Any]:
        data = self.model_dump()
        metadata = data.get("metadata") or {}
        data["metadata"] = {k: v for k, v in metadata.items() if k != ORIGINAL_DATA_KEY}
        return data

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, self.__class__):
            return NotImplemented
        return self._comparable() == other._comparable()

    @property
    def timestamp_missing(self) -> bool:
        """True when the source payload had no timestamp at all."""
        return bool(getattr(self, "metadata", {}).get("timestamp_missing"))


# ============================================================================
# MESSAGES
# ============================================================================

class Author(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    avatar: Optional[str] = None


class ChannelRef(BaseModel):
    id: str
    name: str


class ThreadRef(BaseModel):
    id: str
    parent_id: Optional[str] = None


class Reaction(BaseModel):
    emoji: str
    count: int = 0
    users: List[str] = Field(default_factory=list)


class Attachment(BaseModel):
    type: str = "unknown"
    url: Optional[str] = None
    name: str = "Untitled"


class UnifiedMessage(_UnifiedRecord):
    """A chat message from any service."""
    id: str
    service: ServiceType
    timestamp: datetime = Field(..., description="Timezone-aware UTC time the message was sent")
    author: Author
    content: str = ""
    channel: Optional[ChannelRef] = None
    thread: Optional[ThreadRef] = None
    reactions: List[Reaction] = Field(default_factory=list)
    attachments: List[Attachment] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# MEETINGS
# ============================================================================

class Participant(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    join_time: Optional[datetime] = None
    leave_time: Optional[datetime] = None
    speaking_time: Optional[int] = Field(default=None, description="Seconds")


class Organizer(BaseModel):
    id: str
    name: str
    email: Optional[str] = None


class Recording(BaseModel):
    available: bool = False
    url: Optional[str] = None
    duration: Optional[int] = None


class UnifiedMeeting(_UnifiedRecord):
    """A scheduled or completed meeting from any service."""
    id: str
    service: ServiceType
    title: str = "Untitled Meeting"
    start_time: datetime
    end_time: datetime
    duration: int = Field(..., description="Minutes, always end_time - start_time")
    participants: List[Participant] = Field(default_factory=list)
    organizer: Organizer
    recording: Optional[Recording] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# ACTIVITIES
# ============================================================================

ActivityType = Literal["message", "meeting", "file_share", "reaction", "status_change"]
ACTIVITY_TYPES = ("message", "meeting", "file_share", "reaction", "status_change")


class ActivityUser(BaseModel):
    id: str
    name: str
    email: Optional[str] = None


class UnifiedActivity(_UnifiedRecord):
    """Any event that is neither a message nor a meeting (file share, reaction, status change)."""
    id: str
    service: ServiceType
    type: ActivityType
    timestamp: datetime
    user: ActivityUser
    details: Dict[str, Any] = Field(default_factory=dict)
    metadata: Dict[str, Any] = Field(default_factory=dict)
