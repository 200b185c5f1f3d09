from __future__ import annotations
from pathlib import Path
import fcntl
from typing import Any, Dict
import yaml

from schedcord.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path("./config/app_config.yml").resolve()

DEFAULT_DATABASE_PATH = "./data/schedcord.db"
DEFAULT_POLL_INTERVAL_SECONDS = 10.0
MIN_POLL_INTERVAL_SECONDS = 1.0
MAX_POLL_INTERVAL_SECONDS = 59.0
DEFAULT_CORRELATION_WINDOW_SECONDS = 100.0
DEFAULT_AUDIT_LOOKBACK = 5
DEFAULT_ROLE_DECAY_MINUTES = 120.0


def _optional_int(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        logger.warning("[APP CONFIGURATION] Ignoring non-numeric id %r", value)
        return None


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    typed properties with defaults for every setting the bot reads. A missing
    or unreadable file behaves like an empty one.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                try:
                    data = yaml.safe_load(f)
                finally:
                    fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        except FileNotFoundError:
            logger.error("[APP CONFIGURATION] Config file %s not found.", self.config_path)
            return {}
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
            return {}

        if not isinstance(data, dict):
            if data is not None:
                logger.error("[APP CONFIGURATION] Config %s is not a mapping; ignoring it.", self.config_path)
            return {}
        return data

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Re-read the YAML file, replace the cache and return the new mapping."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def guild_id(self) -> int | None:
        """The managed guild; None accepts events from any guild."""
        return _optional_int(self._data.get("guild_id"))

    @property
    def mod_log_channel_id(self) -> int | None:
        """Channel that receives departure log lines, if any."""
        return _optional_int(self._data.get("mod_log_channel_id"))

    @property
    def database_path(self) -> Path:
        value = self._section("database").get("path") or DEFAULT_DATABASE_PATH
        return Path(str(value)).expanduser()

    @property
    def poll_interval_seconds(self) -> float:
        """Seconds between scheduler ticks, kept under a minute."""
        raw = self._section("scheduler").get("poll_interval_seconds", DEFAULT_POLL_INTERVAL_SECONDS)
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return DEFAULT_POLL_INTERVAL_SECONDS
        return min(max(value, MIN_POLL_INTERVAL_SECONDS), MAX_POLL_INTERVAL_SECONDS)

    @property
    def correlation_window_seconds(self) -> float:
        section = self._section("departures")
        return float(section.get("correlation_window_seconds", DEFAULT_CORRELATION_WINDOW_SECONDS))

    @property
    def audit_lookback(self) -> int:
        return int(self._section("departures").get("audit_lookback", DEFAULT_AUDIT_LOOKBACK))

    @property
    def manage_new_member_roles(self) -> bool:
        return bool(self._section("new_members").get("manage_roles", False))

    @property
    def new_member_role_id(self) -> int | None:
        return _optional_int(self._section("new_members").get("role_id"))

    @property
    def new_member_role_decay_minutes(self) -> float:
        """How long the new-member role stays on before a RemoveRole task fires."""
        return float(self._section("new_members").get("role_decay_minutes", DEFAULT_ROLE_DECAY_MINUTES))


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
