from __future__ import annotations

import argparse
import logging
import os
import signal
import sys
import threading
from dataclasses import replace
from pathlib import Path

import RNS

from .bot import Bot
from .config import BotRuntimeConfig, load_config
from .errors import BotError
from .handlers import PingHandler, load_handler
from .logging_config import configure_logging
from .models import BotIdentity
from .paths import default_config_path, default_identity_path, ensure_private_dir
from .rrc import RRCTransport
from .util import expand_path, normalize_nick

log = logging.getLogger("rrcbot.cli")


def _write_default_config(config_path: str, identity_path: str) -> None:
    cfg_dir = os.path.dirname(config_path)
    if cfg_dir:
        ensure_private_dir(Path(cfg_dir))

    content = f"""# rrcbot configuration (TOML)
#
# This file was created on first run.
# Set the hub hash, then start rrcbot again.

[bot]

# Destination hash (hex) of the RRC hub to connect to.
hub = ""

# Destination name the hub is hosted on.
dest_name = "rrc.hub"

# Optional: Reticulum configuration directory.
# If left unset, Reticulum will choose its default (usually ~/.reticulum).
configdir = ""

# Where rrcbot stores its persistent identity (Reticulum Identity file).
identity_path = {identity_path!r}

# Nickname of the bot and the secret sent with /nick when the hub does not
# know the bot yet.
name = "rrcbot"
secret = ""

# Rooms to join after connecting.
rooms = []

# Extra message handlers, as "package.module:Name". They run in this order,
# after the built-in ones; the first one that handles a message wins.
handlers = []

# Seconds to wait for the link and for the hub's WELCOME.
connect_timeout_s = 30.0
join_timeout_s = 15.0

[logging]

# Log level for rrcbot itself.
level = "INFO"

# Log level for Reticulum/RNS Python logging (if used by your install).
rns_level = "WARNING"

# Log to stderr (systemd/journald friendly).
console = true

# Optional file path for logs (leave empty to disable).
file = ""

# Log format and optional date format.
format = "%(asctime)s %(levelname)s %(name)s[%(threadName)s]: %(message)s"
datefmt = ""
"""

    with open(config_path, "w", encoding="utf-8") as f:
        f.write(content)


def _ensure_first_run_files(config_path: str, identity_path: str) -> bool:
    created_any = False

    if not os.path.exists(config_path):
        _write_default_config(config_path, identity_path)
        created_any = True

    if not os.path.exists(identity_path):
        storage_dir = os.path.dirname(identity_path)
        if storage_dir:
            ensure_private_dir(Path(storage_dir))
        ident = RNS.Identity()
        ident.to_file(identity_path)
        try:
            os.chmod(identity_path, 0o600)
        except OSError:
            pass
        created_any = True

    return created_any


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="rrcbot", description="Run a chat bot on an RRC hub")

    p.add_argument(
        "--config",
        default=str(default_config_path()),
        help="Path to a TOML config file (created on first run)",
    )
    p.add_argument("--configdir", default=None, help="Reticulum config directory")
    p.add_argument(
        "--identity",
        default=str(default_identity_path()),
        help="Path to bot identity file (created on first run)",
    )
    p.add_argument("--hub", default=None, help="Hub destination hash (hex)")
    p.add_argument("--name", default=None, help="Bot nickname")
    p.add_argument(
        "--join",
        action="append",
        default=None,
        metavar="ROOM",
        help="Room to join after connecting (repeatable)",
    )
    p.add_argument(
        "--handler",
        action="append",
        default=None,
        metavar="MODULE:NAME",
        help="Extra message handler (repeatable)",
    )
    p.add_argument(
        "--log-level",
        default=None,
        help="Logging level override (DEBUG, INFO, WARNING, ERROR). Default comes from config.",
    )
    p.add_argument(
        "--log-file",
        default=None,
        help="Log file path override (empty disables file logging). Default comes from config.",
    )

    return p


def apply_args(cfg: BotRuntimeConfig, args: argparse.Namespace) -> BotRuntimeConfig:
    if args.configdir is not None:
        cfg = replace(cfg, configdir=args.configdir)
    if args.hub is not None:
        cfg = replace(cfg, hub=args.hub)
    if args.name is not None:
        cfg = replace(cfg, name=args.name)
    if args.join:
        cfg = replace(cfg, rooms=cfg.rooms + tuple(args.join))
    if args.handler:
        cfg = replace(cfg, handlers=cfg.handlers + tuple(args.handler))
    if args.log_level is not None:
        cfg = replace(cfg, log_level=str(args.log_level))
    if args.log_file is not None:
        cfg = replace(cfg, log_file=str(args.log_file) or None)
    return cfg


def build_bot(cfg: BotRuntimeConfig) -> Bot:
    # The hub only accepts a normalized nick, and the bot filters its own
    # lines by the same name.
    if normalize_nick(cfg.name) != cfg.name:
        raise BotError(f"invalid bot name {cfg.name!r}")
    transport = RRCTransport(
        cfg.name,
        configdir=cfg.configdir,
        dest_name=cfg.dest_name,
        connect_timeout_s=cfg.connect_timeout_s,
        join_timeout_s=cfg.join_timeout_s,
    )
    credentials = expand_path(cfg.identity_path) if cfg.identity_path else None
    bot = Bot(
        transport,
        str(cfg.hub),
        BotIdentity(cfg.name, cfg.secret),
        credentials=credentials,
    )

    bot.add_handler(PingHandler())
    for ref in cfg.handlers:
        bot.add_handler(load_handler(ref))
    return bot


def main(argv: list[str] | None = None) -> None:
    args = _build_arg_parser().parse_args(sys.argv[1:] if argv is None else argv)

    config_path = str(args.config)
    identity_path = str(args.identity)

    if _ensure_first_run_files(config_path, identity_path):
        print(
            "Created default rrcbot files. Edit the configuration before starting:\n"
            f"- Config:   {config_path}\n"
            f"- Identity: {identity_path}\n"
            "\nThen re-run rrcbot.",
            file=sys.stderr,
        )
        raise SystemExit(0)

    cfg = load_config(config_path, BotRuntimeConfig(identity_path=identity_path))
    cfg = apply_args(cfg, args)

    configure_logging(cfg, override_level=args.log_level, override_file=args.log_file)

    if not cfg.hub:
        log.error("No hub configured; set hub in %s or pass --hub", config_path)
        raise SystemExit(2)

    try:
        bot = build_bot(cfg)
    except BotError as e:
        log.error("%s", e)
        raise SystemExit(2) from e

    stop = threading.Event()
    bot.add_disconnected_callback(stop.set)
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())

    try:
        bot.power_up()
        for room in cfg.rooms:
            bot.join(room)
    except BotError as e:
        log.error("Startup failed: %s", e)
        bot.shut_down()
        raise SystemExit(1) from e

    while not stop.is_set():
        stop.wait(0.25)

    bot.shut_down()


if __name__ == "__main__":
    main()
