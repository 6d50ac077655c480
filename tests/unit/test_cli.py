"""Unit tests for gifsync.cli and gifsync.logsetup."""

from __future__ import annotations

import contextlib
import json
import logging
import pathlib
from collections.abc import Iterator

import pytest

from gifsync import cli
from gifsync.client.command import CommandExecutor
from gifsync.logsetup import configure_logging, parse_level
from gifsync.model.settings import Settings
from gifsync.reconciler import Reconciler

from fakes import FakeHost

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def settings_file(tmp_path: pathlib.Path) -> pathlib.Path:
    document = tmp_path / "tunnels.json"
    document.write_text(
        json.dumps([{"tunnel_id": "1", "vlan_id": "101", "dst_addr": "198.51.100.1"}]),
        encoding="utf-8",
    )
    path = tmp_path / "settings.json"
    path.write_text(
        json.dumps({"config_source": str(document), "physical_iface": "em2",
                    "default_src_addr": "192.0.2.10"}),
        encoding="utf-8",
    )
    return path


@pytest.fixture
def fake_host(
    monkeypatch: pytest.MonkeyPatch, host: FakeHost, executor: CommandExecutor
) -> FakeHost:
    def _reconciler(settings: Settings, **kwargs: object) -> Reconciler:
        return Reconciler(settings, executor, **kwargs)  # type: ignore[arg-type]

    monkeypatch.setattr(cli, "Reconciler", _reconciler)
    monkeypatch.setattr(cli, "configure_logging", lambda *args: None)
    monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)
    return host


# ---------------------------------------------------------------------------
# Argument handling
# ---------------------------------------------------------------------------


def test_settings_path_precedence(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(cli.SETTINGS_ENV, raising=False)
    assert cli.settings_path(None) == cli.DEFAULT_SETTINGS_PATH
    monkeypatch.setenv(cli.SETTINGS_ENV, "/tmp/from-env.json")
    assert cli.settings_path(None) == "/tmp/from-env.json"
    assert cli.settings_path("/tmp/explicit.json") == "/tmp/explicit.json"


def test_once_and_check_are_exclusive() -> None:
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["--once", "--check"])


# ---------------------------------------------------------------------------
# main
# ---------------------------------------------------------------------------


class TestMain:
    def test_missing_settings_exit_1(
        self, tmp_path: pathlib.Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert cli.main(["-c", str(tmp_path / "absent.json")]) == 1
        assert "Initial load settings failed" in capsys.readouterr().err

    def test_check_prints_plan(
        self, fake_host: FakeHost, settings_file: pathlib.Path,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        assert cli.main(["-c", str(settings_file), "--check"]) == 0
        diff = json.loads(capsys.readouterr().out)
        assert diff["summary"]["gif_add"] == 1
        assert fake_host.mutations == []

    def test_once_applies(self, fake_host: FakeHost, settings_file: pathlib.Path) -> None:
        assert cli.main(["--config", str(settings_file), "--once"]) == 0
        assert fake_host.ifaces["gif1"].tunnel == ("192.0.2.10", "198.51.100.1")
        assert "bridge1" in fake_host.ifaces

    def test_once_listing_failure_exit_2(
        self, fake_host: FakeHost, settings_file: pathlib.Path
    ) -> None:
        fake_host.fail("-a")
        assert cli.main(["-c", str(settings_file), "--once"]) == 2

    def test_daemon_unexpected_error_exit_2(
        self, fake_host: FakeHost, settings_file: pathlib.Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def _boom(self: object) -> int:
            raise RuntimeError("bug")

        monkeypatch.setattr(cli.Daemon, "install_signal_handlers", lambda self: None)
        monkeypatch.setattr(cli.Daemon, "run", _boom)
        assert cli.main(["-c", str(settings_file)]) == 2


# ---------------------------------------------------------------------------
# logsetup
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    ("name", "level"),
    [
        ("", logging.INFO),
        ("debug", logging.DEBUG),
        ("WARN", logging.WARNING),
        ("WARNING", logging.WARNING),
        ("ERROR", logging.ERROR),
    ],
)
def test_parse_level(name: str, level: int) -> None:
    assert parse_level(name) == level


def test_parse_level_invalid(capsys: pytest.CaptureFixture[str]) -> None:
    assert parse_level("LOUD") == logging.INFO
    assert "Invalid log_level: LOUD" in capsys.readouterr().err


@contextlib.contextmanager
def _isolated_root_logger() -> Iterator[logging.Logger]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    try:
        yield root
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            if handler not in handlers:
                handler.close()
        for handler in handlers:
            root.addHandler(handler)
        root.setLevel(level)


def test_configure_logging_writes_file(tmp_path: pathlib.Path) -> None:
    log_file = tmp_path / "gifsync.log"
    with _isolated_root_logger() as root:
        configure_logging("DEBUG", str(log_file))
        logging.getLogger("gifsync.test").debug("hello from the test")
        for handler in root.handlers:
            handler.flush()
    assert "DEBUG gifsync.test: hello from the test" in log_file.read_text(encoding="utf-8")


def test_configure_logging_bad_file(
    tmp_path: pathlib.Path, capsys: pytest.CaptureFixture[str]
) -> None:
    with _isolated_root_logger() as root:
        configure_logging("INFO", str(tmp_path / "missing-dir" / "gifsync.log"))
        assert len(root.handlers) == 1
    assert "Failed to open log file" in capsys.readouterr().err
