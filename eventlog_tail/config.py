"""Configuration loading from CLI args, env vars, and optional YAML file."""

import logging
import os
import socket
from dataclasses import dataclass, field

import yaml

from eventlog_tail.variants import select_adapter
from eventlog_tail.writer import CODECS

logger = logging.getLogger(__name__)

DEFAULT_LOGFILES = ("Application", "Security", "System")


def _default_hostname() -> str:
    return socket.gethostname()


@dataclass(frozen=True)
class Config:
    logfiles: tuple[str, ...] = DEFAULT_LOGFILES
    type_tag: str = "Win32-EventLog"
    codec: str = "plain"
    hostname: str = field(default_factory=_default_hostname)
    binding: str = "pywin32"
    wait_timeout_ms: int = 1000
    retry_delay: float = 1.0
    queue_size: int = 1000
    output: str = "-"
    metrics_interval: float = 0.0
    log_level: str = "INFO"

    def __post_init__(self):
        names = tuple(dict.fromkeys(n.strip() for n in self.logfiles if n and n.strip()))
        if not names:
            raise ValueError("logfiles must name at least one event log")
        object.__setattr__(self, "logfiles", names)
        if self.codec not in CODECS:
            raise ValueError(f"Unknown codec {self.codec!r}, expected one of {CODECS}")
        select_adapter(self.binding)
        if self.wait_timeout_ms <= 0:
            raise ValueError("wait_timeout_ms must be positive")
        if self.queue_size <= 0:
            raise ValueError("queue_size must be positive")


def _split_names(value) -> list[str]:
    if isinstance(value, str):
        return value.split(",")
    return list(value)


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        logger.info("Loaded YAML config from %s", path)
        return data
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}


def load_config(cli_args=None, yaml_data: dict | None = None) -> Config:
    """Build Config from defaults <- YAML <- env vars <- CLI args."""
    kwargs: dict = {}

    for key, value in (yaml_data or {}).items():
        key = key.replace("-", "_")
        if key in ("logfile", "logfiles"):
            kwargs["logfiles"] = _split_names(value)
        elif key == "type":
            kwargs["type_tag"] = value
        elif key in Config.__dataclass_fields__:
            kwargs[key] = value
        else:
            logger.warning("Ignoring unknown config key %r", key)

    env = os.environ
    if "EVENTLOG_LOGFILES" in env:
        kwargs["logfiles"] = _split_names(env["EVENTLOG_LOGFILES"])
    if "EVENTLOG_TYPE" in env:
        kwargs["type_tag"] = env["EVENTLOG_TYPE"]
    if "EVENTLOG_CODEC" in env:
        kwargs["codec"] = env["EVENTLOG_CODEC"]
    if "EVENTLOG_HOSTNAME" in env:
        kwargs["hostname"] = env["EVENTLOG_HOSTNAME"]
    if "EVENTLOG_BINDING" in env:
        kwargs["binding"] = env["EVENTLOG_BINDING"]
    if "EVENTLOG_OUTPUT" in env:
        kwargs["output"] = env["EVENTLOG_OUTPUT"]
    if "QUEUE_SIZE" in env:
        kwargs["queue_size"] = env["QUEUE_SIZE"]
    if "METRICS_INTERVAL" in env:
        kwargs["metrics_interval"] = env["METRICS_INTERVAL"]
    if "LOG_LEVEL" in env:
        kwargs["log_level"] = env["LOG_LEVEL"]

    if cli_args is not None:
        if getattr(cli_args, "logfile", None):
            kwargs["logfiles"] = cli_args.logfile
        for attr, key in (("type", "type_tag"), ("codec", "codec"),
                          ("hostname", "hostname"), ("binding", "binding"),
                          ("output", "output"), ("metrics_interval", "metrics_interval"),
                          ("log_level", "log_level")):
            value = getattr(cli_args, attr, None)
            if value is not None:
                kwargs[key] = value

    if "logfiles" in kwargs:
        kwargs["logfiles"] = tuple(kwargs["logfiles"])
    for key, cast in (("wait_timeout_ms", int), ("queue_size", int),
                      ("retry_delay", float), ("metrics_interval", float)):
        if key in kwargs:
            kwargs[key] = cast(kwargs[key])
    if "codec" in kwargs:
        kwargs["codec"] = str(kwargs["codec"]).lower()
    if "log_level" in kwargs:
        kwargs["log_level"] = str(kwargs["log_level"]).upper()

    return Config(**kwargs)
