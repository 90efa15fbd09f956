import logging

import pytest

from rrcbot.cli import _build_arg_parser, apply_args, build_bot
from rrcbot.config import BotRuntimeConfig, apply_config_data, load_config
from rrcbot.errors import BotError
from rrcbot.logging_config import configure_logging, parse_level


def test_load_config_flattens_tables(tmp_path) -> None:
    path = tmp_path / "rrcbot.toml"
    path.write_text(
        """
[bot]
hub = "abcd"
name = "helper"
secret = "pw"
rooms = ["dev", "random"]
handlers = ["rrcbot.handlers:PingHandler"]
configdir = ""
unknown_key = 1

[logging]
level = "DEBUG"
file = ""
""",
        encoding="utf-8",
    )

    cfg = load_config(str(path))

    assert cfg.config_path == str(path)
    assert cfg.hub == "abcd"
    assert cfg.name == "helper"
    assert cfg.secret == "pw"
    assert cfg.rooms == ("dev", "random")
    assert cfg.handlers == ("rrcbot.handlers:PingHandler",)
    assert cfg.configdir is None
    assert cfg.log_level == "DEBUG"
    assert cfg.log_file is None


def test_config_file_cannot_override_its_own_path() -> None:
    cfg = apply_config_data(BotRuntimeConfig(config_path="a.toml"), {"config_path": "b.toml"})
    assert cfg.config_path == "a.toml"


def test_cli_args_override_config() -> None:
    args = _build_arg_parser().parse_args(
        ["--hub", "ff00", "--name", "other", "--join", "dev", "--join", "ops", "--log-file", ""]
    )
    cfg = apply_args(BotRuntimeConfig(rooms=("lobby",), log_file="x.log"), args)
    assert cfg.hub == "ff00"
    assert cfg.name == "other"
    assert cfg.rooms == ("lobby", "dev", "ops")
    assert cfg.log_file is None


def test_parse_level() -> None:
    assert parse_level("warn", logging.INFO) == logging.WARNING
    assert parse_level("15", logging.INFO) == 15
    assert parse_level("nonsense", logging.INFO) == logging.INFO
    assert parse_level(None, logging.ERROR) == logging.ERROR


def test_configure_logging_writes_file(tmp_path) -> None:
    log_file = tmp_path / "logs" / "bot.log"
    cfg = BotRuntimeConfig(log_console=False, log_file=str(log_file), log_level="DEBUG")
    root = logging.getLogger()
    saved = list(root.handlers), root.level
    try:
        configure_logging(cfg)
        logging.getLogger("rrcbot.test").debug("hello log")
        for h in root.handlers:
            h.flush()
        assert "hello log" in log_file.read_text(encoding="utf-8")
    finally:
        for h in list(root.handlers):
            root.removeHandler(h)
            h.close()
        for h in saved[0]:
            root.addHandler(h)
        root.setLevel(saved[1])
        logging.captureWarnings(False)


@pytest.mark.parametrize("name", ["has space", " bot", "x" * 33, ""])
def test_build_bot_rejects_names_the_hub_would_not_accept(name) -> None:
    cfg = BotRuntimeConfig(hub="abcd", name=name)
    with pytest.raises(BotError, match="invalid bot name"):
        build_bot(cfg)
