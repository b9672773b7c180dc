"""Runtime settings.

Settings are read from OMEKA_* environment variables and the database
connection from MYSQL_* (the variables the container image already passes).
Explicit keyword arguments win over the environment (e.g. --root).
"""

import shlex
from pathlib import Path
from typing import Annotated
from typing import Any

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import NoDecode
from pydantic_settings import SettingsConfigDict

DEFAULT_ROOT = Path("/var/www/html")
DEFAULT_RESTART_COMMAND = ("docker", "compose", "restart", "php")


class DatabaseSettings(BaseSettings):
    """Connection parameters written to config/database.ini."""

    model_config = SettingsConfigDict(
        env_prefix="MYSQL_",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    host: str = "db"
    user: str = "omeka"
    password: str = Field(default="", exclude=True)
    name: str = Field(default="omeka", validation_alias="MYSQL_DATABASE")


class Settings(BaseSettings):
    """
    Deployment settings.

    Defaults match the container layout of the deployment template: Omeka S in
    /var/www/html owned by www-data, core releases from omeka/omeka-s on GitHub.
    """

    model_config = SettingsConfigDict(
        env_prefix="OMEKA_",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
    )

    root: Path = DEFAULT_ROOT
    version: str = "latest"
    core_repo: str = "omeka/omeka-s"
    backup_dir: Path | None = None
    registry_path: Path | None = Field(default=None, validation_alias="OMEKA_REGISTRY")

    # Empty string disables chown (e.g. when not running as root)
    runtime_user: str | None = "www-data"
    runtime_group: str | None = "www-data"

    github_url: str = "https://github.com"
    gitlab_url: str = "https://gitlab.com"
    github_api_url: str = "https://api.github.com"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    db_poll_interval: float = 2.0
    db_max_attempts: int = 30

    restart_command: Annotated[tuple[str, ...], NoDecode] = DEFAULT_RESTART_COMMAND
    restart_settle_seconds: float = 5.0

    @field_validator("runtime_user", "runtime_group", mode="before")
    @classmethod
    def _empty_means_none(cls, value: Any) -> Any:
        return value or None

    @field_validator("restart_command", mode="before")
    @classmethod
    def _split_command(cls, value: Any) -> Any:
        if isinstance(value, str):
            return tuple(shlex.split(value))
        return value

    @property
    def backups_root(self) -> Path:
        """Directory holding backup_<timestamp> sets."""
        return self.backup_dir if self.backup_dir is not None else self.root / "omeka-backups"
