class ExporterError(Exception):
    """Base class for all exporter errors."""


class ConfigError(ExporterError):
    pass


class MissingParameterError(ExporterError):
    """Probe request is missing one or more required query parameters."""

    def __init__(self, missing):
        self.missing = list(missing)
        super().__init__(f"missing required query param(s): {', '.join(self.missing)}")


class ProbeError(ExporterError):
    """A probe failed; reported as probe_success=0, never as an HTTP error."""


class UnsupportedModelError(ProbeError):
    def __init__(self, model: str, reason: str = "unrecognized"):
        self.model = model
        super().__init__(f"{reason} intercom model: {model!r}")


class DeviceUnreachableError(ProbeError):
    pass


class MalformedResponseError(ProbeError):
    pass
