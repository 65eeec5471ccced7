import asyncio
import os
import stat

import pytest

from ccswitch.errors import ScriptValidationError, run_side_effect
from ccswitch.utils.log import close_log_file, configure_log_file, log_with_timestamp
from ccswitch.utils.settings import SettingsManager, expand_home, home_dir, is_dev_build


def test_settings_manager_persists_with_private_permissions(tmp_path) -> None:
    path = tmp_path / "nested" / "store.json"
    manager = SettingsManager(path)
    manager.set("language", "en")

    assert SettingsManager(path).get("language") == "en"
    assert stat.S_IMODE(os.stat(path).st_mode) == 0o600


def test_settings_manager_tolerates_corrupt_file(tmp_path) -> None:
    path = tmp_path / "store.json"
    path.write_text("{oops", encoding="utf-8")
    assert SettingsManager(path).all() == {}


def test_settings_manager_delete_and_replace(tmp_path) -> None:
    manager = SettingsManager(tmp_path / "store.json")
    manager.replace({"a": 1, "b": 2})
    manager.delete("a")
    manager.delete("missing")
    assert SettingsManager(tmp_path / "store.json").all() == {"b": 2}


@pytest.mark.parametrize(
    "raw, relative",
    [("~", ""), ("~/x/y", "x/y"), ("~\\x", "x")],
)
def test_expand_home(tmp_path, raw, relative) -> None:
    expected = tmp_path / relative if relative else tmp_path
    assert expand_home(raw, tmp_path) == expected


def test_expand_home_leaves_absolute_paths(tmp_path) -> None:
    assert str(expand_home("/opt/data", tmp_path)) == "/opt/data"


def test_environment_overrides(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("CCSWITCH_HOME", str(tmp_path))
    monkeypatch.setenv("CCSWITCH_DEV", "1")
    assert home_dir() == tmp_path
    assert is_dev_build() is True

    monkeypatch.delenv("CCSWITCH_DEV")
    assert is_dev_build() is False


def test_log_lines_go_to_stdout_and_file(tmp_path, capsys) -> None:
    log_path = tmp_path / "logs" / "cc-switch.log"
    configure_log_file(log_path)
    try:
        log_with_timestamp("hello", "[Test]")
    finally:
        close_log_file()
        configure_log_file(None)

    assert "[Test] hello" in capsys.readouterr().out
    content = log_path.read_text(encoding="utf-8")
    assert "Session started" in content
    assert "[Test] hello" in content
    assert "Session ended" in content


def test_script_validation_error_message() -> None:
    err = ScriptValidationError(["a", "b"])
    assert err.errors == ["a", "b"]
    assert str(err) == "a; b"


def test_run_side_effect_reports_instead_of_raising() -> None:
    async def fail():
        raise RuntimeError("nope")

    async def succeed():
        return None

    failed = asyncio.run(run_side_effect("step", fail()))
    ok = asyncio.run(run_side_effect("step", succeed()))
    assert (failed.ok, failed.error) == (False, "nope")
    assert (ok.ok, ok.error) == (True, None)
