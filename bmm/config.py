"""
Configuration management for bmm.

Provides a hierarchical configuration system with sensible defaults.
Supports both global (~/.config/bmm/config.toml) and local (bmm.toml) configurations.
"""
import os
import tomli
import tomli_w
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict

DEFAULT_DATABASE = "~/.local/share/bmm/bmm.db"


@dataclass
class BmmConfig:
    """
    bmm configuration with sensible defaults.

    Configuration hierarchy (highest to lowest priority):
    1. Command-line arguments
    2. Environment variables (BMM_*)
    3. Explicit config file (--config)
    4. Local config file (./bmm.toml or ./.bmmrc)
    5. User config file (~/.config/bmm/config.toml)
    6. Defaults
    """

    # Database settings
    database: str = field(default=DEFAULT_DATABASE)
    database_url: Optional[str] = field(default=None)  # Full connection string (overrides database)
    database_echo: bool = field(default=False)  # SQLAlchemy echo for debugging

    # Display settings
    output_format: str = field(default="plain")  # plain, json, delimited
    default_limit: int = field(default=500)

    # Interactive session
    tui_search_limit: int = field(default=10000)
    event_poll_interval_ms: int = field(default=16)
    tick_interval_ms: int = field(default=250)
    info_notice_ticks: int = field(default=12)
    error_notice_ticks: int = field(default=40)
    queue_capacity: int = field(default=10)
    max_workers: int = field(default=4)
    min_terminal_width: int = field(default=96)
    min_terminal_height: int = field(default=30)

    # Advanced
    log_level: str = field(default="WARNING")
    log_file: Optional[str] = field(default=None)
    debug: bool = field(default=False)

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "BmmConfig":
        """
        Load configuration from files and environment.

        Args:
            config_file: Specific config file to load (applied after the default locations)

        Returns:
            Merged configuration object
        """
        config = cls()

        user_config_path = Path.home() / ".config" / "bmm" / "config.toml"
        if user_config_path.exists():
            config._merge(cls._load_toml(user_config_path))

        local_paths = [
            Path.cwd() / "bmm.toml",
            Path.cwd() / ".bmmrc",
        ]

        for path in local_paths:
            if path.exists():
                config._merge(cls._load_toml(path))
                break

        if config_file and config_file.exists():
            config._merge(cls._load_toml(config_file))

        config._apply_env_vars()
        config._expand_paths()

        return config

    @staticmethod
    def _load_toml(path: Path) -> Dict[str, Any]:
        """Load TOML configuration file."""
        with open(path, "rb") as f:
            return tomli.load(f)

    def _merge(self, data: Dict[str, Any]):
        """Merge configuration data into this instance."""
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def _apply_env_vars(self):
        """Apply environment variables with BMM_ prefix."""
        prefix = "BMM_"
        for key, value in os.environ.items():
            if key.startswith(prefix):
                config_key = key[len(prefix):].lower()
                if hasattr(self, config_key):
                    current_value = getattr(self, config_key)
                    if isinstance(current_value, bool):
                        setattr(self, config_key, value.lower() in ("true", "1", "yes"))
                    elif isinstance(current_value, int):
                        setattr(self, config_key, int(value))
                    else:
                        setattr(self, config_key, value)

    def _expand_paths(self):
        """Expand ~ and environment variables in paths."""
        for field_name in ["database", "log_file"]:
            value = getattr(self, field_name)
            if isinstance(value, str):
                setattr(self, field_name, os.path.expanduser(os.path.expandvars(value)))

    def save(self, path: Optional[Path] = None):
        """
        Save current configuration to TOML file.

        Args:
            path: Path to save to (defaults to user config)
        """
        if path is None:
            path = Path.home() / ".config" / "bmm" / "config.toml"

        path.parent.mkdir(parents=True, exist_ok=True)

        # TOML has no null; unset optional values are left out
        data = {k: v for k, v in asdict(self).items() if v is not None}
        with open(path, "wb") as f:
            tomli_w.dump(data, f)

    def get_database_path(self) -> Path:
        """Get the resolved database path."""
        path = Path(os.path.expanduser(self.database))
        if not path.is_absolute():
            path = Path.cwd() / path
        return path

    def get_database_url(self) -> str:
        """
        Get SQLAlchemy database URL.

        Examples:
            sqlite:////home/me/.local/share/bmm/bmm.db
            sqlite:///:memory:
        """
        if self.database_url:
            return self.database_url

        return f"sqlite:///{self.get_database_path()}"

    def is_sqlite(self) -> bool:
        """Check if database is SQLite."""
        return self.get_database_url().startswith("sqlite:")


# Global configuration instance
_config: Optional[BmmConfig] = None


def get_config(reload: bool = False, config_file: Optional[Path] = None) -> BmmConfig:
    """
    Get the global configuration instance.

    Args:
        reload: Force reload configuration from files
        config_file: Specific config file to load

    Returns:
        Global configuration instance
    """
    global _config
    if _config is None or reload:
        _config = BmmConfig.load(config_file)
    return _config


def init_config(database: Optional[str] = None, config_file: Optional[Path] = None, **kwargs) -> BmmConfig:
    """
    Initialize configuration with command-line overrides.

    Args:
        database: Database path override
        config_file: Extra config file to merge
        **kwargs: Other configuration overrides (None values are ignored)

    Returns:
        Configured instance
    """
    config = get_config(reload=config_file is not None, config_file=config_file)

    if database:
        config.database = os.path.expanduser(database)

    for key, value in kwargs.items():
        if hasattr(config, key) and value is not None:
            setattr(config, key, value)

    return config
