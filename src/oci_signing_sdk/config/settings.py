"""
Client settings

Transport choice, timeouts, clock wait and logging options for OciClient.
Settings load from a dict, a JSON string or file, or OCI_SDK_* environment
variables.
"""

import os
import json
from dataclasses import dataclass, fields, asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from ..exceptions import ConfigError, ErrorCodes

ENV_PREFIX = "OCI_SDK_"

TRANSPORT_CHOICES = ("requests", "raw")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class ClientSettings:
    """
    Settings for OciClient

    Attributes:
        transport: "requests" for the buffered client, "raw" for the raw stream
        timeout: Request timeout for the buffered client, in seconds
        connect_timeout: Connect timeout for the raw stream, in seconds
        read_timeout: Read deadline for the raw stream, in seconds
        clock_wait_attempts: Clock readings to take while the time is unset
        clock_wait_delay: Seconds between clock readings
        min_valid_year: Earliest year accepted as a valid clock reading
        log_level: Logging level used by the CLI
        log_signing_string: Log each signing string at debug level
    """
    transport: str = "requests"
    timeout: float = 30.0
    connect_timeout: float = 10.0
    read_timeout: float = 30.0
    clock_wait_attempts: int = 50
    clock_wait_delay: float = 0.1
    min_valid_year: int = 2016
    log_level: str = "WARNING"
    log_signing_string: bool = False

    def __post_init__(self):
        """Validate settings."""
        if self.transport not in TRANSPORT_CHOICES:
            raise ConfigError(
                f"Unknown transport: {self.transport!r}",
                ErrorCodes.INVALID_CONFIG,
                {"choices": list(TRANSPORT_CHOICES)}
            )

        for name in ("timeout", "connect_timeout", "read_timeout"):
            if getattr(self, name) <= 0:
                raise ConfigError(f"{name} must be positive", ErrorCodes.INVALID_CONFIG)

        if self.clock_wait_attempts < 1:
            raise ConfigError("clock_wait_attempts must be at least 1", ErrorCodes.INVALID_CONFIG)

        if self.clock_wait_delay < 0:
            raise ConfigError("clock_wait_delay must be non-negative", ErrorCodes.INVALID_CONFIG)

        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"Invalid log level: {self.log_level!r}", ErrorCodes.INVALID_CONFIG)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClientSettings":
        """Create settings from a dictionary, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(
                f"Unknown settings: {', '.join(unknown)}",
                ErrorCodes.INVALID_CONFIG,
                {"unknown": unknown}
            )
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigError(f"Invalid settings: {e}", ErrorCodes.INVALID_CONFIG) from e

    @classmethod
    def from_json(cls, json_string: str) -> "ClientSettings":
        """Load settings from a JSON string."""
        try:
            data = json.loads(json_string)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Failed to parse settings JSON: {e}", ErrorCodes.CONFIG_FILE_ERROR) from e
        if not isinstance(data, dict):
            raise ConfigError("Settings JSON must be an object", ErrorCodes.CONFIG_FILE_ERROR)
        return cls.from_dict(data)

    @classmethod
    def from_file(cls, file_path: Union[str, Path]) -> "ClientSettings":
        """Load settings from a JSON file."""
        try:
            with open(Path(file_path).expanduser(), 'r', encoding='utf-8') as f:
                json_string = f.read()
        except OSError as e:
            raise ConfigError(f"Failed to read settings file: {e}", ErrorCodes.CONFIG_FILE_ERROR) from e
        return cls.from_json(json_string)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientSettings":
        """
        Load settings from OCI_SDK_* environment variables.

        Example: OCI_SDK_TRANSPORT=raw, OCI_SDK_READ_TIMEOUT=5
        """
        environ = os.environ if environ is None else environ
        data: Dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            data[f.name] = _coerce(f.name, raw, f.type)
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _coerce(name: str, raw: str, target: Any) -> Any:
    if target in (bool, "bool"):
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ConfigError(f"Invalid boolean for {name}: {raw!r}", ErrorCodes.INVALID_CONFIG)
    if target in (int, "int"):
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"Invalid integer for {name}: {raw!r}", ErrorCodes.INVALID_CONFIG) from None
    if target in (float, "float"):
        try:
            return float(raw)
        except ValueError:
            raise ConfigError(f"Invalid number for {name}: {raw!r}", ErrorCodes.INVALID_CONFIG) from None
    return raw
