from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass, replace
from typing import Any

from .constants import DEFAULT_DEST_NAME


@dataclass(frozen=True)
class BotRuntimeConfig:
    config_path: str | None = None
    configdir: str | None = None
    identity_path: str | None = None
    hub: str | None = None
    dest_name: str = DEFAULT_DEST_NAME
    name: str = "rrcbot"
    secret: str = ""
    rooms: tuple[str, ...] = ()
    handlers: tuple[str, ...] = ()
    connect_timeout_s: float = 30.0
    join_timeout_s: float = 15.0
    log_level: str = "INFO"
    log_rns_level: str = "WARNING"
    log_console: bool = True
    log_file: str | None = None
    log_format: str = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
    log_datefmt: str | None = None


_LOGGING_KEYS = {
    "level": "log_level",
    "rns_level": "log_rns_level",
    "console": "log_console",
    "file": "log_file",
    "format": "log_format",
    "datefmt": "log_datefmt",
}

_OPTIONAL_STR_KEYS = ("configdir", "hub", "log_file", "log_datefmt", "identity_path")


def load_toml(path: str) -> dict:
    with open(path, "rb") as f:
        return tomllib.load(f)


def apply_config_data(cfg: BotRuntimeConfig, data: dict[str, Any]) -> BotRuntimeConfig:
    """Overlay values from a parsed config file onto cfg.

    Keys under [bot] are flattened to the top level and [logging] keys are
    mapped onto the log_* fields. Unknown keys are ignored.
    """
    if not isinstance(data, dict):
        return cfg

    bot = data.get("bot")
    if isinstance(bot, dict):
        data = {**data, **bot}

    log_table = data.get("logging")
    if isinstance(log_table, dict):
        mapped = {_LOGGING_KEYS[k]: v for k, v in log_table.items() if k in _LOGGING_KEYS}
        data = {**data, **mapped}

    allowed = set(asdict(cfg).keys())
    # Where the file was read from; the file itself does not get a say.
    allowed.discard("config_path")
    updates = {k: v for k, v in data.items() if k in allowed}

    for list_key in ("rooms", "handlers"):
        if list_key in updates and isinstance(updates[list_key], list):
            updates[list_key] = tuple(str(x) for x in updates[list_key] if str(x).strip())

    for key in _OPTIONAL_STR_KEYS:
        if key in updates and updates[key] == "":
            updates[key] = None

    return replace(cfg, **updates) if updates else cfg


def load_config(path: str, base: BotRuntimeConfig | None = None) -> BotRuntimeConfig:
    cfg = base or BotRuntimeConfig()
    cfg = apply_config_data(cfg, load_toml(path))
    return replace(cfg, config_path=path)
