"""
Timestamp parsing for service payloads

Every service encodes time differently (Slack: "1700000000.000100" epoch
seconds, ChatWork: integer epoch seconds, Graph: ISO strings with 7 fractional
digits and a separate timeZone field, ...). All parsers return timezone-aware
UTC datetimes and raise InvalidTimestampError instead of guessing.
"""
import math
import re
from datetime import datetime, timezone
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from teampulse.core.errors import InvalidTimestampError
from teampulse.services.normalization.windows_zones import WINDOWS_TO_IANA

# Epoch values above this are treated as milliseconds (year 5138 in seconds)
_MILLIS_THRESHOLD = 1e11

_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def is_missing(value: Any) -> bool:
    """A timestamp is missing when the key is absent, null or blank."""
    return value is None or (isinstance(value, str) and not value.strip())


def parse_epoch_seconds(value: Any, field: str = "timestamp") -> datetime:
    """Parse epoch seconds given as int, float or numeric string."""
    return _from_epoch(_to_number(value, field), 1.0, value, field)


def parse_epoch_millis(value: Any, field: str = "timestamp") -> datetime:
    """Parse epoch milliseconds given as int, float or numeric string."""
    return _from_epoch(_to_number(value, field), 1000.0, value, field)


def parse_iso(value: Any, field: str = "timestamp", tz_name: Optional[str] = None) -> datetime:
    """
    Parse an ISO 8601 string (or date-only string).

    Naive values are interpreted in `tz_name` when given (Graph API style
    {"dateTime": ..., "timeZone": ...}), otherwise as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        text = _FRACTION_RE.sub(r"\1", text)
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidTimestampError(value, field) from None
    else:
        raise InvalidTimestampError(value, field)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_resolve_zone(tz_name, field))
    return parsed.astimezone(timezone.utc)


def parse_timestamp(value: Any, field: str = "timestamp") -> datetime:
    """
    Parse any of the supported encodings.

    Numbers (and numeric strings) are epoch seconds, or epoch milliseconds
    when larger than 1e11. Everything else must be ISO 8601.
    """
    if isinstance(value, bool):
        raise InvalidTimestampError(value, field)
    if isinstance(value, (int, float)):
        return _from_epoch_auto(float(value), value, field)
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return parse_iso(value, field)
        return _from_epoch_auto(number, value, field)
    return parse_iso(value, field)


# ============================================================================
# HELPERS
# ============================================================================

def _resolve_zone(tz_name: Optional[str], field: str = "timestamp"):
    """IANA name, or a Windows name as sent by Graph. Unknown zones are rejected."""
    if not tz_name:
        return timezone.utc
    if not isinstance(tz_name, str):
        raise InvalidTimestampError(tz_name, f"{field} time zone")
    name = WINDOWS_TO_IANA.get(tz_name.strip(), tz_name.strip())
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, OSError):
        raise InvalidTimestampError(tz_name, f"{field} time zone") from None


def _to_number(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise InvalidTimestampError(value, field)
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise InvalidTimestampError(value, field) from None
    raise InvalidTimestampError(value, field)


def _from_epoch_auto(number: float, original: Any, field: str) -> datetime:
    divisor = 1000.0 if abs(number) > _MILLIS_THRESHOLD else 1.0
    return _from_epoch(number, divisor, original, field)


def _from_epoch(number: float, divisor: float, original: Any, field: str) -> datetime:
    if math.isnan(number) or math.isinf(number):
        raise InvalidTimestampError(original, field)
    try:
        return datetime.fromtimestamp(number / divisor, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise InvalidTimestampError(original, field) from None
