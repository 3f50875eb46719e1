from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Sequence, Union

from .errors import MissingParameterError, UnsupportedModelError

REQUIRED_PARAMS = ("url", "username", "password", "model")


class Model(Enum):
    BEWARD_DKS = "BEWARD DKS"
    BEWARD_DS = "BEWARD DS"
    QTECH = "QTECH"
    AKUVOX = "AKUVOX"

    @classmethod
    def parse(cls, value: Union["Model", str]) -> "Model":
        """Resolve a model by value ("BEWARD DKS") or member name ("beward_dks")."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper()
        for member in cls:
            if key == member.value or key == member.name:
                return member
        raise UnsupportedModelError(str(value))


@dataclass(frozen=True)
class ProbeRequest:
    target_url: str
    username: str
    password: str
    model: str

    @classmethod
    def from_params(cls, params: Mapping[str, Union[str, Sequence[str]]]) -> "ProbeRequest":
        # parse_qs gives lists; plain dicts give strings
        values = {}
        for name in REQUIRED_PARAMS:
            raw = params.get(name)
            if isinstance(raw, (list, tuple)):
                raw = raw[0] if raw else None
            values[name] = raw if isinstance(raw, str) else ""

        missing = [name for name in REQUIRED_PARAMS if not values[name].strip()]
        if missing:
            raise MissingParameterError(missing)

        # credentials are passed through untouched
        return cls(
            target_url=values["url"].strip().rstrip("/"),
            username=values["username"],
            password=values["password"],
            model=values["model"].strip(),
        )

    def __repr__(self) -> str:
        return f"ProbeRequest(target_url={self.target_url!r}, username={self.username!r}, model={self.model!r})"


@dataclass(frozen=True)
class ProbeResult:
    status: int
    uptime_seconds: int

    def __post_init__(self):
        if self.status not in (0, 1):
            raise ValueError(f"status must be 0 or 1, got {self.status!r}")
        if self.uptime_seconds < 0:
            raise ValueError(f"uptime_seconds must be >= 0, got {self.uptime_seconds!r}")
