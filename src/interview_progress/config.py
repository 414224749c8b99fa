"""Application configuration using pydantic-settings."""

import functools
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


def _find_project_root() -> Path:
    """Find project root by locating pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return Path(__file__).resolve().parent.parent.parent


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads from settings.yaml."""

    def get_field_value(self, field_name: str) -> tuple[Any, str, bool]:
        """Not used - we implement __call__ instead."""
        return None, "", False

    def __call__(self) -> dict[str, Any]:
        """Load settings from YAML file."""
        yaml_path = _find_project_root() / "config" / "settings.yaml"
        if not yaml_path.exists():
            return {}

        with open(yaml_path, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        # Flatten nested structure to match Settings field names
        flattened = {}
        if 'server' in data:
            flattened['host'] = data['server'].get('host')
            flattened['port'] = data['server'].get('port')
        if 'storage' in data:
            storage = data['storage']
            flattened['database_url'] = storage.get('database_url')
            flattened['store_backend'] = storage.get('backend')
            flattened['data_dir'] = storage.get('data_dir')
            flattened['optimistic_concurrency'] = storage.get('optimistic_concurrency')
            flattened['max_write_retries'] = storage.get('max_write_retries')
        if 'tracking' in data:
            tracking = data['tracking']
            for key in (
                'existence_check_timeout_seconds',
                'weak_skill_threshold',
                'strength_threshold',
                'streak_consistency_threshold',
                'recent_activity_limit',
                'weekly_window_days',
                'monthly_window_days',
                'calendar_timezone',
                'enforce_forward_goal_transitions',
            ):
                flattened[key] = tracking.get(key)

        # Remove None values
        return {k: v for k, v in flattened.items() if v is not None}


class Settings(BaseSettings):
    """Application settings loaded from environment and config files."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Authentication (optional: None disables auth)
    app_secret: str | None = Field(default=None)

    # Storage
    database_url: str | None = Field(default=None)
    store_backend: Literal["json", "memory"] = Field(default="json")
    data_dir: Path | None = Field(default=None)
    optimistic_concurrency: bool = Field(default=False)
    max_write_retries: int = Field(default=3)

    # Tracking
    existence_check_timeout_seconds: float = Field(default=5.0)
    weak_skill_threshold: float = Field(default=70.0)
    strength_threshold: float = Field(default=75.0)
    streak_consistency_threshold: int = Field(default=3)
    recent_activity_limit: int = Field(default=5)
    weekly_window_days: int = Field(default=7)
    monthly_window_days: int = Field(default=30)
    calendar_timezone: str = Field(default="UTC")
    enforce_forward_goal_transitions: bool = Field(default=False)

    # Paths
    project_root: Path = Field(default_factory=_find_project_root)

    @property
    def resolved_data_dir(self) -> Path:
        d = self.data_dir or self.project_root / "data"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @property
    def activity_dir(self) -> Path:
        d = self.resolved_data_dir / "user_activity"
        d.mkdir(parents=True, exist_ok=True)
        return d

    @property
    def resolved_database_url(self) -> str:
        """Database URL for canonical entities, defaulting to a local SQLite file."""
        if self.database_url:
            return self.database_url
        return f"sqlite+aiosqlite:///{self.resolved_data_dir / 'canonical.db'}"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customise settings sources to include YAML file.

        Priority order (highest to lowest):
        1. init_settings (arguments passed to Settings())
        2. env_settings (environment variables)
        3. dotenv_settings (.env file)
        4. YamlSettingsSource (settings.yaml)
        5. file_secret_settings
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlSettingsSource(settings_cls),
            file_secret_settings,
        )


@functools.lru_cache
def get_settings() -> Settings:
    """Get application settings singleton."""
    return Settings()
