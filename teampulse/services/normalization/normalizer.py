"""
Normalizer - dispatch raw payloads to per-service adapters
"""
import functools
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional

from pydantic import ValidationError

from teampulse.core.errors import MalformedPayloadError, UnsupportedServiceError
from teampulse.models.schemas.unified import (
    ServiceType,
    UnifiedActivity,
    UnifiedMeeting,
    UnifiedMessage,
)
from teampulse.services.normalization import adapters

logger = logging.getLogger(__name__)

MESSAGE_ADAPTERS: Dict[ServiceType, Callable[..., UnifiedMessage]] = {
    ServiceType.SLACK: adapters.normalize_slack_message,
    ServiceType.DISCORD: adapters.normalize_discord_message,
    ServiceType.TEAMS: adapters.normalize_teams_message,
    ServiceType.CHATWORK: adapters.normalize_chatwork_message,
    ServiceType.LINE_WORKS: adapters.normalize_line_works_message,
}

MEETING_ADAPTERS: Dict[ServiceType, Callable[..., UnifiedMeeting]] = {
    ServiceType.GOOGLE: adapters.normalize_google_meeting,
    ServiceType.TEAMS: adapters.normalize_teams_meeting,
}

ACTIVITY_ADAPTERS: Dict[ServiceType, Callable[..., UnifiedActivity]] = {
    service: adapters.make_activity_adapter(service) for service in ServiceType
}


def _lookup(table: Dict[ServiceType, Callable], service: Any, kind: str) -> Callable:
    parsed = ServiceType.parse(service)
    adapter = table.get(parsed)
    if adapter is None:
        raise UnsupportedServiceError(parsed.value, kind=kind)

    @functools.wraps(adapter)
    def typed_errors(raw: Any, received_at: Optional[datetime] = None):
        # Wrongly typed optional fields surface as MalformedPayloadError, never untyped
        try:
            return adapter(raw, received_at)
        except ValidationError as e:
            raise MalformedPayloadError(
                f"{parsed.value} {kind} has invalid fields: {e.error_count()} error(s)",
                {"service": parsed.value, "kind": kind, "fields": [".".join(map(str, err["loc"])) for err in e.errors()]},
            ) from e
        except (TypeError, AttributeError) as e:
            raise MalformedPayloadError(
                f"{parsed.value} {kind} has an unexpected structure: {e}",
                {"service": parsed.value, "kind": kind},
            ) from e

    return typed_errors


def normalize_message(service: Any, raw: Any, received_at: Optional[datetime] = None) -> UnifiedMessage:
    """Normalize one raw message payload from `service`."""
    return _lookup(MESSAGE_ADAPTERS, service, "message")(raw, received_at)


def normalize_meeting(service: Any, raw: Any, received_at: Optional[datetime] = None) -> UnifiedMeeting:
    """Normalize one raw meeting payload from `service`."""
    return _lookup(MEETING_ADAPTERS, service, "meeting")(raw, received_at)


def normalize_activity(service: Any, raw: Any, received_at: Optional[datetime] = None) -> UnifiedActivity:
    """Normalize one raw activity event from `service`."""
    return _lookup(ACTIVITY_ADAPTERS, service, "activity")(raw, received_at)


def normalize_messages(
    service: Any, raws: Iterable[Any], received_at: Optional[datetime] = None
) -> List[UnifiedMessage]:
    adapter = _lookup(MESSAGE_ADAPTERS, service, "message")
    messages = [adapter(raw, received_at) for raw in raws]
    logger.debug(f"Normalized {len(messages)} {service} messages")
    return messages


def normalize_meetings(
    service: Any, raws: Iterable[Any], received_at: Optional[datetime] = None
) -> List[UnifiedMeeting]:
    adapter = _lookup(MEETING_ADAPTERS, service, "meeting")
    meetings = [adapter(raw, received_at) for raw in raws]
    logger.debug(f"Normalized {len(meetings)} {service} meetings")
    return meetings
