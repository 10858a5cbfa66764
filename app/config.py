"""Application configuration loaded from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Placeholder secret shipped in examples. While it is configured, webhook
# signatures are not checked at all.
SIGNATURE_SENTINEL = "your-webhook-secret-here"


class Settings(BaseSettings):
    """Application settings with environment variable loading and sensible defaults."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "deploy-webhook"
    debug: bool = False
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    webhook_port: int = 9000

    webhook_secret: str = SIGNATURE_SENTINEL
    target_branch: str = "main"
    max_body_bytes: int = 1024 * 1024

    deploy_dir: Path = Path("/mnt/storage/dev/app")
    deploy_script: Path = Path("scripts/deploy.sh")
    deploy_interpreter: str = "bash"
    deploy_timeout_seconds: float | None = None
    log_file: Path | None = None

    @property
    def resolved_log_file(self) -> Path:
        """Operator log path, defaulting to ``<deploy_dir>/logs/webhook.log``."""
        if self.log_file is not None:
            return self.log_file
        return self.deploy_dir / "logs" / "webhook.log"

    @property
    def resolved_deploy_script(self) -> Path:
        if self.deploy_script.is_absolute():
            return self.deploy_script
        return self.deploy_dir / self.deploy_script

    @property
    def deploy_command(self) -> list[str]:
        """Argv used to launch the deployment script."""
        script = str(self.resolved_deploy_script)
        if self.deploy_interpreter:
            return [self.deploy_interpreter, script]
        return [script]


def load_settings() -> Settings:
    """Load settings, also reading the ``.env`` kept in the deploy directory.

    Environment variables win over both files. The deploy directory file wins
    over a ``.env`` in the working directory.
    """
    base = Settings()
    deploy_env = base.deploy_dir / ".env"
    if not deploy_env.is_file():
        return base
    return Settings(_env_file=(".env", deploy_env))


settings = load_settings()
