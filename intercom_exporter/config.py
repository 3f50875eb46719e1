import logging
import os
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import urllib3
import yaml

from .errors import ConfigError
from .metrics import DEFAULT_PREFIX, MetricsConfig

DEFAULT_CONFIG_PATH = "/etc/prometheus/intercom.yml"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 9150
DEFAULT_TIMEOUT = 1.0
DEFAULT_LOG_LEVEL = "INFO"

_TRUE = {"1", "true", "yes", "on"}
# prometheus metric-name grammar; the prefix may also be empty
_PREFIX_RE = re.compile(r"([a-zA-Z_:][a-zA-Z0-9_:]*)?")


@dataclass
class Settings:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    app_name: Optional[str] = None
    prefix: str = DEFAULT_PREFIX
    auth_enabled: bool = False
    auth_user: Optional[str] = None
    auth_pass: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT
    verify_tls: bool = False
    strict_parsing: bool = False
    log_level: str = DEFAULT_LOG_LEVEL

    @property
    def metrics(self) -> MetricsConfig:
        return MetricsConfig(prefix=self.prefix, app_name=self.app_name)


def _load_config(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise ConfigError(f"{path}: expected a mapping at top level")
    return cfg


def _bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE


def _int(value: Any, default: int) -> int:
    try:
        return int(value) if value is not None else default
    except (TypeError, ValueError):
        return default


def _float(value: Any, default: float) -> float:
    try:
        parsed = float(value) if value is not None else default
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from the YAML file (if any), overridden by environment variables."""
    env = os.environ if environ is None else environ
    file_cfg = _load_config(env.get("EXPORTER_CONFIG", DEFAULT_CONFIG_PATH))

    def get(key: str) -> Any:
        value = env.get(key.upper())
        return value if value is not None else file_cfg.get(key)

    settings = Settings(
        host=get("app_host") or DEFAULT_HOST,
        port=_int(get("app_port"), DEFAULT_PORT),
        app_name=get("app_name") or None,
        prefix=DEFAULT_PREFIX if get("service_prefix") is None else str(get("service_prefix")),
        auth_enabled=_bool(get("auth_enabled"), False),
        auth_user=get("auth_user") or None,
        auth_pass=get("auth_pass") or None,
        timeout=_float(get("probe_timeout"), DEFAULT_TIMEOUT),
        verify_tls=_bool(get("verify_tls"), False),
        strict_parsing=_bool(get("strict_parsing"), False),
        log_level=str(get("log_level") or DEFAULT_LOG_LEVEL).upper(),
    )

    if not _PREFIX_RE.fullmatch(settings.prefix):
        raise ConfigError(f"SERVICE_PREFIX {settings.prefix!r} is not a valid metric name prefix")

    if settings.auth_enabled and not (settings.auth_user and settings.auth_pass):
        raise ConfigError("AUTH_ENABLED is set but AUTH_USER/AUTH_PASS are missing")

    if not settings.verify_tls:
        # intercoms ship self-signed certificates
        urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)

    return settings


def setup_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or DEFAULT_LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
