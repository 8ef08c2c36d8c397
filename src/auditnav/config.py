"""Configuration loading and defaults for auditnav."""

import tomllib
from dataclasses import dataclass, field
from pathlib import Path


def get_config_dir() -> Path:
    """Get the auditnav config directory (XDG-style)."""
    return Path.home() / ".config" / "auditnav"


def get_config_path() -> Path:
    """Get the config file path."""
    return get_config_dir() / "config.toml"


def get_default_data_dir() -> Path:
    """Get the default data directory for logs and exported audits."""
    return Path.home() / ".local" / "share" / "auditnav"


def _toml_string(value: object) -> str:
    """Quote a value as a TOML basic string."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    return f'"{escaped}"'


@dataclass
class WatchConfig:
    """Live content update configuration."""

    enabled: bool = True
    debounce_seconds: float = 0.3


@dataclass
class Config:
    """Application configuration."""

    audit_name: str = "audit"
    content_directory: Path = field(
        default_factory=lambda: get_default_data_dir() / "content"
    )
    server_url: str = ""  # empty = read from content_directory
    start_topic: str = ""
    data_directory: Path = field(default_factory=get_default_data_dir)
    cache_size: int = 256
    log_level: str = "INFO"
    watch: WatchConfig = field(default_factory=WatchConfig)

    def get_log_path(self) -> Path:
        """Get the log file path based on configured data directory."""
        return self.data_directory / "auditnav.log"

    @classmethod
    def load(cls) -> "Config":
        """Load configuration from file or create defaults."""
        config_path = get_config_path()

        config_dir = get_config_dir()
        config_dir.mkdir(parents=True, exist_ok=True)

        if not config_path.exists():
            default_config = cls()
            default_config.data_directory.mkdir(parents=True, exist_ok=True)
            default_config.save()
            return default_config

        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        content_dir = data.get(
            "content_directory", str(get_default_data_dir() / "content")
        )
        data_dir = data.get("data_directory", str(get_default_data_dir()))

        watch_data = data.get("watch", {})
        watch = WatchConfig(
            enabled=watch_data.get("enabled", True),
            debounce_seconds=float(watch_data.get("debounce_seconds", 0.3)),
        )

        config = cls(
            audit_name=data.get("audit_name", "audit"),
            content_directory=Path(content_dir).expanduser(),
            server_url=data.get("server_url", ""),
            start_topic=data.get("start_topic", ""),
            data_directory=Path(data_dir).expanduser(),
            cache_size=int(data.get("cache_size", 256)),
            log_level=str(data.get("log_level", "INFO")).upper(),
            watch=watch,
        )

        config.data_directory.mkdir(parents=True, exist_ok=True)

        return config

    def save(self) -> None:
        """Save configuration to file."""
        config_path = get_config_path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        # Build TOML content manually (tomllib is read-only)
        lines = [
            "# auditnav Configuration",
            "",
            "# Name of the audit (first segment of every topic path)",
            f"audit_name = {_toml_string(self.audit_name)}",
            "",
            "# Directory of pre-rendered topic fragments (<topic>.html, <topic>.json)",
            f"content_directory = {_toml_string(self.content_directory)}",
            "",
            "# Audit server; when set, topics are fetched over HTTP instead",
            f"server_url = {_toml_string(self.server_url)}",
            "",
            "# Topic opened at startup",
            f"start_topic = {_toml_string(self.start_topic)}",
            "",
            "# Directory for the log file",
            f"data_directory = {_toml_string(self.data_directory)}",
            "",
            "# Number of topics kept in the content cache",
            f"cache_size = {self.cache_size}",
            "",
            f"log_level = {_toml_string(self.log_level)}",
            "",
            "# Live reload of changed fragments (directory provider only)",
            "[watch]",
            f"enabled = {str(self.watch.enabled).lower()}",
            f"debounce_seconds = {self.watch.debounce_seconds}",
        ]

        config_path.write_text("\n".join(lines) + "\n")
