"""Per-family parsers turning raw device replies into status/uptime values.

Parsers never perform I/O. With ``strict=False`` (the default) a reply that does
not match the expected grammar degrades to 0 and a warning is logged, so a
device answering with garbage is reported as offline rather than failing the
probe. With ``strict=True`` a ``MalformedResponseError`` is raised instead.
"""

import logging
import math
import re
from typing import Any, Mapping, Union

from .errors import MalformedResponseError

logger = logging.getLogger(__name__)

Payload = Union[str, bytes]

_BEWARD_SIP_RE = re.compile(r"AccountReg1=(\d+)")
# days.hh:mm:ss
_BEWARD_UPTIME_RE = re.compile(r"UpTime=(\d+)\.(\d{2}):(\d{2}):(\d{2})")

AKUVOX_REGISTERED = "2"


def _malformed(message: str, strict: bool) -> int:
    if strict:
        raise MalformedResponseError(message)
    logger.warning("%s; defaulting to 0", message)
    return 0


def _as_text(payload: Payload) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return payload or ""


class BewardParser:
    """CGI ``key=value`` replies of Beward DKS/DS panels."""

    @staticmethod
    def parse_status(payload: Payload, strict: bool = False) -> int:
        match = _BEWARD_SIP_RE.search(_as_text(payload))
        if not match:
            return _malformed("AccountReg1 not found in SIP status reply", strict)
        return 1 if int(match.group(1)) == 1 else 0

    @staticmethod
    def parse_uptime(payload: Payload, strict: bool = False) -> int:
        match = _BEWARD_UPTIME_RE.search(_as_text(payload))
        if not match:
            return _malformed("UpTime not found in system info reply", strict)
        days, hours, minutes, seconds = (int(g) for g in match.groups())
        return days * 86400 + hours * 3600 + minutes * 60 + seconds


class AkuvoxParser:
    """JSON ``data`` objects returned by the Akuvox ``/api`` actions."""

    @staticmethod
    def parse_status(data: Mapping[str, Any], strict: bool = False) -> int:
        account = data.get("Account1") if isinstance(data, Mapping) else None
        if not isinstance(account, Mapping) or "Status" not in account:
            return _malformed("Account1.Status missing from info reply", strict)
        return 1 if str(account["Status"]).strip() == AKUVOX_REGISTERED else 0

    @staticmethod
    def parse_uptime(data: Mapping[str, Any], strict: bool = False) -> int:
        if not isinstance(data, Mapping):
            return _malformed("status reply is not an object", strict)
        raw = data.get("UpTime")
        if raw is None:
            # firmware without the field: not an error
            return 0
        try:
            number = float(raw)
        except (TypeError, ValueError):
            return _malformed(f"UpTime is not numeric: {raw!r}", strict)
        if not math.isfinite(number):
            return _malformed(f"UpTime is not finite: {raw!r}", strict)
        value = int(number)
        if value < 0:
            return _malformed(f"UpTime is negative: {value}", strict)
        return value
