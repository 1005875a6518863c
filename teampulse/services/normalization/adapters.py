"""
Per-service adapters

Each adapter maps one service's raw payload (exactly as its API returns it)
to a unified record. Adapters are pure: optional fields fall back to
documented defaults, required fields raise MalformedPayloadError, and the raw
payload is kept under metadata["original_data"].
"""
import copy
import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from teampulse.core.errors import MalformedPayloadError
from teampulse.models.schemas.unified import (
    ACTIVITY_TYPES,
    ORIGINAL_DATA_KEY,
    ActivityUser,
    Attachment,
    Author,
    ChannelRef,
    Organizer,
    Participant,
    Reaction,
    Recording,
    ServiceType,
    ThreadRef,
    UnifiedActivity,
    UnifiedMeeting,
    UnifiedMessage,
)
from teampulse.services.normalization.timestamps import (
    is_missing,
    parse_epoch_seconds,
    parse_iso,
    parse_timestamp,
)

logger = logging.getLogger(__name__)

UNKNOWN_CHANNEL = "Unknown Channel"
UNTITLED_MEETING = "Untitled Meeting"
UNTITLED_ATTACHMENT = "Untitled"


# ============================================================================
# SHARED HELPERS
# ============================================================================

def _get(raw: Any, *path: str, default: Any = None) -> Any:
    """Walk nested dicts, returning `default` as soon as a level is missing."""
    current = raw
    for key in path:
        if not isinstance(current, dict):
            return default
        current = current.get(key)
        if current is None:
            return default
    return current


def _require(raw: Dict[str, Any], *path: str, service: ServiceType) -> Any:
    value = _get(raw, *path)
    if value is None or value == "":
        raise MalformedPayloadError(
            f"{service.value} payload is missing required field '{'.'.join(path)}'",
            {"service": service.value, "field": ".".join(path)},
        )
    return value


def _ensure_dict(raw: Any, service: ServiceType) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise MalformedPayloadError(
            f"{service.value} payload must be an object, got {type(raw).__name__}",
            {"service": service.value},
        )
    return raw


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _base_metadata(raw: Dict[str, Any], **extra: Any) -> Dict[str, Any]:
    metadata = {ORIGINAL_DATA_KEY: copy.deepcopy(raw)}
    metadata.update({k: v for k, v in extra.items() if v is not None})
    return metadata


def _resolve_timestamp(
    value: Any,
    parser: Callable[[Any, str], datetime],
    field: str,
    metadata: Dict[str, Any],
    received_at: Optional[datetime],
    record_id: str,
) -> datetime:
    """
    Parse a record timestamp.

    A missing value is replaced by `received_at` and flagged in metadata.
    A present but unparseable value raises InvalidTimestampError.
    """
    if not is_missing(value):
        return parser(value, field)

    substitute = received_at or datetime.now(timezone.utc)
    if substitute.tzinfo is None:
        substitute = substitute.replace(tzinfo=timezone.utc)
    metadata["timestamp_missing"] = True
    logger.warning(f"⚠️  Record {record_id} has no {field}; using receive time {substitute.isoformat()}")
    return substitute.astimezone(timezone.utc)


def duration_minutes(start: datetime, end: datetime) -> int:
    """Whole minutes between start and end, rounded half up."""
    return math.floor((end - start).total_seconds() / 60 + 0.5)


# ============================================================================
# MESSAGE ADAPTERS
# ============================================================================

def normalize_slack_message(raw: Any, received_at: Optional[datetime] = None) -> UnifiedMessage:
    """Slack conversations.history item. `ts` doubles as id and epoch-seconds timestamp."""
    service = ServiceType.SLACK
    raw = _ensure_dict(raw, service)
    ts = _require(raw, "ts", service=service)
    profile = raw.get("user_profile") or {}

    metadata = _base_metadata(raw, message_type=raw.get("type"), subtype=raw.get("subtype"))
    timestamp = parse_epoch_seconds(ts, "ts")

    channel = None
    if raw.get("channel"):
        channel = ChannelRef(id=str(raw["channel"]), name=raw.get("channel_name") or UNKNOWN_CHANNEL)

    thread = None
    thread_ts = raw.get("thread_ts")
    if thread_ts:
        thread = ThreadRef(id=str(thread_ts), parent_id=str(thread_ts) if thread_ts != ts else None)

    return UnifiedMessage(
        id=str(ts),
        service=service,
        timestamp=timestamp,
        author=Author(
            id=str(raw.get("user") or raw.get("bot_id") or "unknown"),
            name=profile.get("display_name") or profile.get("real_name") or "Unknown",
            email=profile.get("email"),
            avatar=profile.get("image_72"),
        ),
        content=raw.get("text") or "",
        channel=channel,
        thread=thread,
        reactions=[
            Reaction(emoji=r.get("name") or "", count=r.get("count") or 0, users=_list(r.get("users")))
            for r in _list(raw.get("reactions"))
            if isinstance(r, dict)
        ],
        attachments=[
            Attachment(
                type=f.get("mimetype") or "unknown",
                url=f.get("url_private") or f.get("permalink"),
                name=f.get("name") or UNTITLED_ATTACHMENT,
            )
            for f in _list(raw.get("files"))
            if isinstance(f, dict)
        ],
        metadata=metadata,
    )


def normalize_discord_message(raw: Any, received_at: Optional[datetime] = None) -> UnifiedMessage:
    """Discord channel message object."""
    service = ServiceType.DISCORD
    raw = _ensure_dict(raw, service)
    message_id = str(_require(raw, "id", service=service))
    author_id = str(_require(raw, "author", "id", service=service))
    author = raw["author"]

    metadata = _base_metadata(raw, message_type=raw.get("type"), guild_id=raw.get("guild_id"))
    timestamp = _resolve_timestamp(raw.get("timestamp"), parse_iso, "timestamp", metadata, received_at, message_id)

    avatar = None
    if author.get("avatar"):
        avatar = f"https://cdn.discordapp.com/avatars/{author_id}/{author['avatar']}.png"

    channel = None
    if raw.get("channel_id"):
        channel = ChannelRef(id=str(raw["channel_id"]), name=raw.get("channel_name") or UNKNOWN_CHANNEL)

    return UnifiedMessage(
        id=message_id,
        service=service,
        timestamp=timestamp,
        author=Author(
            id=author_id,
            name=author.get("global_name") or author.get("username") or "Unknown",
            avatar=avatar,
        ),
        content=raw.get("content") or "",
        channel=channel,
        # Reacting users need a separate API call; only counts are available here
        reactions=[
            Reaction(emoji=_get(r, "emoji", "name", default=""), count=r.get("count") or 0, users=[])
            for r in _list(raw.get("reactions"))
            if isinstance(r, dict)
        ],
        attachments=[
            Attachment(
                type=a.get("content_type") or "unknown",
                url=a.get("url"),
                name=a.get("filename") or UNTITLED_ATTACHMENT,
            )
            for a in _list(raw.get("attachments"))
            if isinstance(a, dict)
        ],
        metadata=metadata,
    )


def normalize_teams_message(raw: Any, received_at: Optional[datetime] = None) -> UnifiedMessage:
    """Microsoft Graph chatMessage."""
    service = ServiceType.TEAMS
    raw = _ensure_dict(raw, service)
    message_id = str(_require(raw, "id", service=service))

    metadata = _base_metadata(
        raw,
        message_type=raw.get("messageType"),
        team_id=raw.get("teamId"),
        team_name=raw.get("teamName"),
        importance=raw.get("importance"),
    )
    timestamp = _resolve_timestamp(
        raw.get("createdDateTime"), parse_iso, "createdDateTime", metadata, received_at, message_id
    )

    channel = None
    if raw.get("channelId"):
        channel = ChannelRef(id=str(raw["channelId"]), name=raw.get("channelName") or UNKNOWN_CHANNEL)

    thread = None
    if raw.get("replyToId"):
        thread = ThreadRef(id=str(raw["replyToId"]), parent_id=str(raw["replyToId"]))

    return UnifiedMessage(
        id=message_id,
        service=service,
        timestamp=timestamp,
        author=Author(
            id=str(_get(raw, "from", "user", "id", default="unknown")),
            name=_get(raw, "from", "user", "displayName") or "Unknown User",
            email=_get(raw, "from", "user", "userPrincipalName"),
        ),
        content=_get(raw, "body", "content") or "",
        channel=channel,
        thread=thread,
        reactions=[
            Reaction(
                emoji=r.get("reactionType") or "",
                count=len(_list(r.get("users"))),
                users=[uid for uid in (_get(u, "user", "id") for u in _list(r.get("users"))) if uid],
            )
            for r in _list(raw.get("reactions"))
            if isinstance(r, dict)
        ],
        attachments=[
            Attachment(
                type=a.get("contentType") or "unknown",
                url=a.get("contentUrl") or a.get("content"),
                name=a.get("name") or UNTITLED_ATTACHMENT,
            )
            for a in _list(raw.get("attachments"))
            if isinstance(a, dict)
        ],
        metadata=metadata,
    )


def normalize_chatwork_message(raw: Any, received_at: Optional[datetime] = None) -> UnifiedMessage:
    """ChatWork room message. ChatWork has no reactions and lists files separately."""
    service = ServiceType.CHATWORK
    raw = _ensure_dict(raw, service)
    message_id = str(_require(raw, "message_id", service=service))
    account_id = str(_require(raw, "account", "account_id", service=service))

    metadata = _base_metadata(raw, update_time=raw.get("update_time"))
    timestamp = _resolve_timestamp(
        raw.get("send_time"), parse_epoch_seconds, "send_time", metadata, received_at, message_id
    )

    channel = None
    if raw.get("room_id") is not None:
        channel = ChannelRef(id=str(raw["room_id"]), name=raw.get("room_name") or "ChatWork Room")

    return UnifiedMessage(
        id=message_id,
        service=service,
        timestamp=timestamp,
        author=Author(
            id=account_id,
            name=_get(raw, "account", "name") or "Unknown",
            avatar=_get(raw, "account", "avatar_image_url"),
        ),
        content=raw.get("body") or "",
        channel=channel,
        metadata=metadata,
    )


def normalize_line_works_message(raw: Any, received_at: Optional[datetime] = None) -> UnifiedMessage:
    """LINE WORKS bot/channel message."""
    service = ServiceType.LINE_WORKS
    raw = _ensure_dict(raw, service)
    message_id = str(_require(raw, "id", service=service))
    user_id = str(_require(raw, "createdBy", "userId", service=service))

    metadata = _base_metadata(raw, message_type=raw.get("type"))
    timestamp = _resolve_timestamp(
        raw.get("createdTime"), parse_timestamp, "createdTime", metadata, received_at, message_id
    )

    channel = None
    if raw.get("channelId"):
        channel = ChannelRef(id=str(raw["channelId"]), name=raw.get("channelName") or "LINE WORKS Channel")

    return UnifiedMessage(
        id=message_id,
        service=service,
        timestamp=timestamp,
        author=Author(
            id=user_id,
            name=_get(raw, "createdBy", "displayName") or "Unknown",
            avatar=_get(raw, "createdBy", "profileImageUrl"),
        ),
        content=_get(raw, "content", "text") or "",
        channel=channel,
        metadata=metadata,
    )


# ============================================================================
# MEETING ADAPTERS
# ============================================================================

def _meeting_window(
    raw: Dict[str, Any],
    service: ServiceType,
    start_value: Any,
    end_value: Any,
    start_tz: Optional[str] = None,
    end_tz: Optional[str] = None,
) -> tuple:
    """Parse both ends, each in its own zone. An end without a zone uses the start zone."""
    if is_missing(start_value) or is_missing(end_value):
        raise MalformedPayloadError(
            f"{service.value} meeting {raw.get('id')!r} is missing its start or end time",
            {"service": service.value, "meeting_id": raw.get("id")},
        )
    start = parse_iso(start_value, "start", start_tz)
    end = parse_iso(end_value, "end", end_tz or start_tz)
    if end < start:
        raise MalformedPayloadError(
            f"{service.value} meeting {raw.get('id')!r} ends before it starts",
            {"service": service.value, "meeting_id": raw.get("id")},
        )
    return start, end


def normalize_google_meeting(raw: Any, received_at: Optional[datetime] = None) -> UnifiedMeeting:
    """Google Calendar event (Meet conferences are calendar events)."""
    service = ServiceType.GOOGLE
    raw = _ensure_dict(raw, service)
    meeting_id = str(_require(raw, "id", service=service))

    start, end = _meeting_window(
        raw,
        service,
        _get(raw, "start", "dateTime") or _get(raw, "start", "date"),
        _get(raw, "end", "dateTime") or _get(raw, "end", "date"),
        _get(raw, "start", "timeZone"),
        _get(raw, "end", "timeZone"),
    )

    organizer = raw.get("organizer") or raw.get("creator") or {}
    organizer_email = organizer.get("email")
    if not organizer_email:
        raise MalformedPayloadError(
            f"google meeting {meeting_id!r} has no organizer email",
            {"service": service.value, "meeting_id": meeting_id},
        )

    participants = []
    for attendee in _list(raw.get("attendees")):
        if not isinstance(attendee, dict):
            continue
        attendee_id = attendee.get("email") or attendee.get("id")
        if not attendee_id:
            logger.debug(f"Skipping attendee without identity in meeting {meeting_id}")
            continue
        participants.append(Participant(
            id=str(attendee_id),
            name=attendee.get("displayName") or str(attendee_id),
            email=attendee.get("email"),
        ))

    return UnifiedMeeting(
        id=meeting_id,
        service=service,
        title=raw.get("summary") or UNTITLED_MEETING,
        start_time=start,
        end_time=end,
        duration=duration_minutes(start, end),
        participants=participants,
        organizer=Organizer(
            id=organizer_email,
            name=organizer.get("displayName") or organizer_email,
            email=organizer_email,
        ),
        # Recording details need the Drive API
        recording=Recording(available=False),
        metadata=_base_metadata(raw, location=raw.get("location"), conference_data=raw.get("conferenceData")),
    )


def normalize_teams_meeting(raw: Any, received_at: Optional[datetime] = None) -> UnifiedMeeting:
    """Microsoft Graph calendar event with an online meeting."""
    service = ServiceType.TEAMS
    raw = _ensure_dict(raw, service)
    meeting_id = str(_require(raw, "id", service=service))
    organizer_address = _require(raw, "organizer", "emailAddress", "address", service=service)

    start, end = _meeting_window(
        raw,
        service,
        _get(raw, "start", "dateTime"),
        _get(raw, "end", "dateTime"),
        _get(raw, "start", "timeZone"),
        _get(raw, "end", "timeZone"),
    )

    participants = []
    for attendee in _list(raw.get("attendees")):
        address = _get(attendee, "emailAddress", "address")
        if not address:
            continue
        participants.append(Participant(
            id=address,
            name=_get(attendee, "emailAddress", "name") or address,
            email=address,
        ))

    return UnifiedMeeting(
        id=meeting_id,
        service=service,
        title=raw.get("subject") or UNTITLED_MEETING,
        start_time=start,
        end_time=end,
        duration=duration_minutes(start, end),
        participants=participants,
        organizer=Organizer(
            id=organizer_address,
            name=_get(raw, "organizer", "emailAddress", "name") or organizer_address,
            email=organizer_address,
        ),
        recording=Recording(available=False),
        metadata=_base_metadata(raw, online_meeting=raw.get("onlineMeeting")),
    )


# ============================================================================
# ACTIVITY ADAPTER
# ============================================================================

def make_activity_adapter(service: ServiceType) -> Callable[..., UnifiedActivity]:
    """Activity events share one generic shape across services."""

    def normalize_activity(raw: Any, received_at: Optional[datetime] = None) -> UnifiedActivity:
        raw = _ensure_dict(raw, service)
        activity_id = str(_require(raw, "id", service=service))
        activity_type = raw.get("type")
        if activity_type not in ACTIVITY_TYPES:
            raise MalformedPayloadError(
                f"{service.value} activity {activity_id!r} has unknown type {activity_type!r}",
                {"service": service.value, "type": activity_type},
            )
        user_id = str(_require(raw, "user", "id", service=service))

        metadata = _base_metadata(raw)
        raw_timestamp = raw.get("timestamp")
        if is_missing(raw_timestamp):
            raw_timestamp = raw.get("created_at") or raw.get("createdAt")
        timestamp = _resolve_timestamp(raw_timestamp, parse_timestamp, "timestamp", metadata, received_at, activity_id)

        details = raw.get("details")
        return UnifiedActivity(
            id=activity_id,
            service=service,
            type=activity_type,
            timestamp=timestamp,
            user=ActivityUser(
                id=user_id,
                name=_get(raw, "user", "name") or "Unknown",
                email=_get(raw, "user", "email"),
            ),
            details=copy.deepcopy(details) if isinstance(details, dict) else {},
            metadata=metadata,
        )

    normalize_activity.__name__ = f"normalize_{service.name.lower()}_activity"
    return normalize_activity
