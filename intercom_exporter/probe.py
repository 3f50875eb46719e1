import logging
from typing import Any, Callable, Dict, NamedTuple, Optional

from . import clients
from .errors import DeviceUnreachableError, ProbeError, UnsupportedModelError
from .models import Model, ProbeRequest, ProbeResult
from .parsers import AkuvoxParser, BewardParser

logger = logging.getLogger(__name__)


class ModelHandler(NamedTuple):
    # fetch(target, username, password, timeout, verify) -> (status_payload, info_payload)
    fetch: Callable[..., Any]
    parser: Any


# None marks a recognized model with no implementation yet.
MODEL_HANDLERS: Dict[Model, Optional[ModelHandler]] = {
    Model.BEWARD_DKS: ModelHandler(clients.fetch_beward, BewardParser),
    Model.BEWARD_DS: ModelHandler(clients.fetch_beward, BewardParser),
    Model.AKUVOX: ModelHandler(clients.fetch_akuvox, AkuvoxParser),
    Model.QTECH: None,
}


def resolve_handler(model: str) -> ModelHandler:
    member = Model.parse(model)
    handler = MODEL_HANDLERS[member]
    if handler is None:
        raise UnsupportedModelError(member.value, reason="unsupported")
    return handler


def run_probe(request: ProbeRequest, timeout: float = clients.DEFAULT_TIMEOUT,
              verify: bool = False, strict: bool = False) -> ProbeResult:
    """Fetch and parse one device; raises a ProbeError subclass on any failure."""
    handler = resolve_handler(request.model)
    logger.info("probing %s (model=%s)", request.target_url, request.model)

    try:
        status_payload, info_payload = handler.fetch(
            request.target_url, request.username, request.password, timeout=timeout, verify=verify
        )
        status = handler.parser.parse_status(status_payload, strict=strict)
        uptime = handler.parser.parse_uptime(info_payload, strict=strict)
    except ProbeError as e:
        logger.warning("probe of %s failed: %s", request.target_url, e)
        raise
    except Exception as e:
        logger.warning("probe of %s failed: %s", request.target_url, e)
        raise DeviceUnreachableError(f"failed to fetch metrics from intercom {request.target_url}: {e}") from e

    return ProbeResult(status=status, uptime_seconds=uptime)
