from pathlib import Path

import pytest
from pydantic import ValidationError

from progol_opt.runtime_config import default_runtime_config
from progol_opt.settings import Settings

_ENV_KEYS = ("SEED", "ITERATIONS", "TARGET_SIZE", "OUTPUT_DIR", "LOG_LEVEL")


def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(f"PROGOL_{key}", raising=False)


def test_settings_default_to_no_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)

    settings = Settings(_env_file=None)

    assert settings.seed is None
    assert settings.iterations is None
    assert settings.target_size is None
    assert settings.output_dir == ""
    assert settings.apply(default_runtime_config()) == default_runtime_config()


def test_settings_env_overrides_runtime(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("PROGOL_SEED", "123")
    monkeypatch.setenv("PROGOL_ITERATIONS", "40")
    monkeypatch.setenv("PROGOL_OUTPUT_DIR", str(tmp_path / "out"))
    monkeypatch.setenv("PROGOL_LOG_LEVEL", "warning")

    runtime = Settings(_env_file=None).apply(default_runtime_config())

    assert runtime.optimizer.seed == 123
    assert runtime.optimizer.iterations == 40
    assert runtime.optimizer.target_size == 20
    assert runtime.output_dir == (tmp_path / "out").resolve()
    assert runtime.log_level == "WARNING"


def test_settings_reject_non_positive_target_size(monkeypatch: pytest.MonkeyPatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("PROGOL_TARGET_SIZE", "0")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)
