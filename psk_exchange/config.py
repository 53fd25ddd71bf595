"""
Settings for the server and client entry points.

Values come from a TOML file (``[server]`` and ``[client]`` tables), then
environment variables, then command line options, each overriding the
previous one:

    [server] request_max_size -> PSK_EXCHANGE_REQUEST_MAX_SIZE
    [server] algorithms       -> PSK_EXCHANGE_ALGORITHMS (comma separated)
    [client] timeout          -> PSK_EXCHANGE_TIMEOUT
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

from .types import ALGORITHM_NAMES, DEFAULT_CLIENT_ALGORITHMS, AlgorithmId
from .constraints import ConstraintPolicy
from .wg import DEFAULT_INTERFACE
from .error import ConfigError

ENV_PREFIX = "PSK_EXCHANGE_"
DEFAULT_PORT = 1984


def parse_algorithms(names: Union[str, List[str]]) -> List[AlgorithmId]:
    """Map command line algorithm names to algorithms."""
    if isinstance(names, str):
        names = [n.strip() for n in names.split(",") if n.strip()]
    try:
        return [ALGORITHM_NAMES[name] for name in names]
    except KeyError as e:
        raise ConfigError(f"Unknown algorithm {e.args[0]!r}, choose from: {', '.join(ALGORITHM_NAMES)}") from None


def _optional_int(data: Mapping[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    try:
        value = int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be an integer, got {value!r}") from None
    if value < 0:
        raise ConfigError(f"{key} must not be negative")
    return value


def _float(value: Any, key: str) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise ConfigError(f"{key} must be a number, got {value!r}") from None
    if value <= 0:
        raise ConfigError(f"{key} must be positive")
    return value


def _read_table(path: Union[str, Path], table: str) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        raise ConfigError(f"Unable to read config {path}: {e}") from e
    section = data.get(table, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{table}] must be a table")
    return section


@dataclass
class ServerSettings:
    """Server settings, including the constraint policy knobs."""

    listen_addr: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    script: Optional[Path] = None
    interface: str = DEFAULT_INTERFACE
    log_level: str = "INFO"
    request_max_size: Optional[int] = None
    request_max_algorithms: Optional[int] = None
    request_max_alg_occurrences: Optional[int] = None
    algorithms: Optional[List[AlgorithmId]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ServerSettings":
        algorithms = data.get("algorithms")
        script = data.get("script")
        return cls(
            listen_addr=data.get("listen_addr", "0.0.0.0"),
            port=_optional_int(data, "port") or DEFAULT_PORT,
            script=Path(script) if script else None,
            interface=data.get("interface", DEFAULT_INTERFACE),
            log_level=data.get("log_level", "INFO"),
            request_max_size=_optional_int(data, "request_max_size"),
            request_max_algorithms=_optional_int(data, "request_max_algorithms"),
            request_max_alg_occurrences=_optional_int(data, "request_max_alg_occurrences"),
            algorithms=parse_algorithms(algorithms) if algorithms is not None else None,
        )

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ServerSettings":
        return cls.from_dict(_read_table(path, "server"))

    def apply_env(self, environ: Mapping[str, str] = os.environ) -> None:
        """Override from environment variables."""
        if v := environ.get(ENV_PREFIX + "LISTEN_ADDR"):
            self.listen_addr = v
        if v := environ.get(ENV_PREFIX + "PORT"):
            self.port = _optional_int({"port": v}, "port")
        if v := environ.get(ENV_PREFIX + "SCRIPT"):
            self.script = Path(v)
        if v := environ.get(ENV_PREFIX + "INTERFACE"):
            self.interface = v
        if v := environ.get(ENV_PREFIX + "LOG_LEVEL"):
            self.log_level = v
        for key in ("request_max_size", "request_max_algorithms", "request_max_alg_occurrences"):
            if v := environ.get(ENV_PREFIX + key.upper()):
                setattr(self, key, _optional_int({key: v}, key))
        if v := environ.get(ENV_PREFIX + "ALGORITHMS"):
            self.algorithms = parse_algorithms(v)

    def policy(self) -> ConstraintPolicy:
        """The constraint policy these settings describe."""
        return ConstraintPolicy(
            max_request_bytes=self.request_max_size,
            allowed_algorithms=frozenset(a.tag for a in self.algorithms) if self.algorithms is not None else None,
            max_total_messages=self.request_max_algorithms,
            max_occurrences_per_algorithm=self.request_max_alg_occurrences,
        )


@dataclass
class ClientSettings:
    """Client settings."""

    server: Optional[str] = None
    port: int = DEFAULT_PORT
    algorithms: List[AlgorithmId] = field(default_factory=lambda: list(DEFAULT_CLIENT_ALGORITHMS))
    timeout: float = 30.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ClientSettings":
        settings = cls(
            server=data.get("server"),
            port=_optional_int(data, "port") or DEFAULT_PORT,
        )
        if "algorithms" in data:
            settings.algorithms = parse_algorithms(data["algorithms"])
        if "timeout" in data:
            settings.timeout = _float(data["timeout"], "timeout")
        return settings

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "ClientSettings":
        return cls.from_dict(_read_table(path, "client"))

    def apply_env(self, environ: Mapping[str, str] = os.environ) -> None:
        """Override from environment variables."""
        if v := environ.get(ENV_PREFIX + "SERVER"):
            self.server = v
        if v := environ.get(ENV_PREFIX + "PORT"):
            self.port = _optional_int({"port": v}, "port")
        if v := environ.get(ENV_PREFIX + "ALGORITHMS"):
            self.algorithms = parse_algorithms(v)
        if v := environ.get(ENV_PREFIX + "TIMEOUT"):
            self.timeout = _float(v, "timeout")
