"""Tests for Settings defaults, environment loading and derived paths."""

from pathlib import Path

import pytest

from app.config import SIGNATURE_SENTINEL, Settings, load_settings


def test_defaults() -> None:
    cfg = Settings(_env_file=None)

    assert cfg.webhook_port == 9000
    assert cfg.webhook_secret == SIGNATURE_SENTINEL
    assert cfg.target_branch == "main"
    assert cfg.deploy_timeout_seconds is None
    assert cfg.resolved_log_file == cfg.deploy_dir / "logs" / "webhook.log"


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("WEBHOOK_PORT", "9100")
    monkeypatch.setenv("WEBHOOK_SECRET", "from-env")
    monkeypatch.setenv("DEPLOY_DIR", str(tmp_path))
    monkeypatch.setenv("LOG_FILE", str(tmp_path / "custom.log"))
    monkeypatch.setenv("DEPLOY_TIMEOUT_SECONDS", "600")

    cfg = Settings(_env_file=None)

    assert cfg.webhook_port == 9100
    assert cfg.webhook_secret == "from-env"
    assert cfg.deploy_dir == tmp_path
    assert cfg.resolved_log_file == tmp_path / "custom.log"
    assert cfg.deploy_timeout_seconds == 600


def test_relative_script_resolves_against_deploy_dir(tmp_path: Path) -> None:
    cfg = Settings(_env_file=None, deploy_dir=tmp_path, deploy_script=Path("scripts/deploy.sh"))

    assert cfg.resolved_deploy_script == tmp_path / "scripts" / "deploy.sh"
    assert cfg.deploy_command == ["bash", str(tmp_path / "scripts" / "deploy.sh")]


def test_empty_interpreter_runs_script_directly(tmp_path: Path) -> None:
    script = tmp_path / "deploy.sh"
    cfg = Settings(_env_file=None, deploy_script=script, deploy_interpreter="")

    assert cfg.deploy_command == [str(script)]


def test_load_settings_reads_env_file_in_deploy_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path,
) -> None:
    """The secret written to ``<deploy_dir>/.env`` is found from any working directory."""
    deploy_dir = tmp_path / "deploy"
    deploy_dir.mkdir()
    (deploy_dir / ".env").write_text("WEBHOOK_SECRET=from-deploy-dir\nTELEGRAM_BOT_TOKEN=x\n")
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    monkeypatch.chdir(elsewhere)
    monkeypatch.delenv("WEBHOOK_SECRET", raising=False)
    monkeypatch.setenv("DEPLOY_DIR", str(deploy_dir))

    cfg = load_settings()

    assert cfg.webhook_secret == "from-deploy-dir"
    assert cfg.deploy_dir == deploy_dir


def test_environment_wins_over_deploy_dir_env_file(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path,
) -> None:
    (tmp_path / ".env").write_text("WEBHOOK_SECRET=from-file\n")
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DEPLOY_DIR", str(tmp_path))
    monkeypatch.setenv("WEBHOOK_SECRET", "from-env")

    assert load_settings().webhook_secret == "from-env"


def test_load_settings_without_deploy_dir_env_file(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path,
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("WEBHOOK_SECRET", raising=False)
    monkeypatch.setenv("DEPLOY_DIR", str(tmp_path / "missing"))

    assert load_settings().webhook_secret == SIGNATURE_SENTINEL
