"""Configuration helpers for the hookci webhook listener."""

from __future__ import annotations

from pathlib import Path
from typing import FrozenSet, List, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeployPolicy(BaseModel):
    """Refs for which a push should build and then deploy."""

    refs: FrozenSet[str] = frozenset()

    model_config = ConfigDict(frozen=True)

    def allows(self, ref: str | None) -> bool:
        return ref is not None and ref in self.refs


class HookSettings(BaseSettings):
    """Process-wide configuration, loaded once at startup."""

    host: str = "0.0.0.0"
    port: int = 7777
    access_token: str = ""
    webhook_path: str = "webhook"
    secret: str = ""
    deploy_refs: List[str] = Field(default_factory=lambda: ["refs/heads/develop"])
    workspace_root: Path = Field(default_factory=lambda: Path.cwd() / "builds")
    output_root: Path = Field(default_factory=lambda: Path.cwd() / "build-logs")
    checkouts_dirname: str = "PRS"
    install_command: str = "npm install"
    test_command: str = "npm test"
    build_timeout: float = 1800.0
    checkout_timeout: float = 600.0
    status_context: str = "hookci"
    user_agent: str = "hookci"
    request_timeout: float = 30.0
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    model_config = SettingsConfigDict(env_prefix="HOOKCI_", env_file=".env", extra="ignore")

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value):
        return value.upper() if isinstance(value, str) else value

    def deploy_policy(self) -> DeployPolicy:
        return DeployPolicy(refs=frozenset(self.deploy_refs))

    @property
    def checkouts_root(self) -> Path:
        return self.workspace_root / self.checkouts_dirname

    def workdir_for(self, sha: str) -> Path:
        """Return the checkout directory reused by every build of `sha`."""

        return self.checkouts_root / sha

    @property
    def route(self) -> str:
        return "/" + self.webhook_path.strip("/")
