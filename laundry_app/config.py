"""Configuration helpers for the laundry control app."""

from dataclasses import dataclass
from pathlib import Path
import os
from typing import Optional

DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
DEFAULT_STATE_KEY = "laundry-storage"
DEFAULT_LINEN_ROOM = "Rouparia"


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _as_float(value: Optional[str], default: float) -> float:
    try:
        return float(str(value).replace(",", ".")) if value not in (None, "") else default
    except ValueError:
        return default


def _as_int(value: Optional[str]) -> Optional[int]:
    if value in (None, ""):
        return None
    try:
        return int(str(value))
    except ValueError:
        return None


@dataclass
class LaundryConfig:
    """Configuration values for the laundry control app.

    Only the extraction model needs credentials; everything else has a local
    default so the ledger can run offline against a JSON state file.
    """

    api_key: Optional[str] = None
    model: str = DEFAULT_GEMINI_MODEL
    hotel_name: str = "Hotel Maerkli"
    state_store_backend: str = "json"
    state_store_path: Optional[str] = None
    state_key: str = DEFAULT_STATE_KEY
    storage_max_bytes: Optional[int] = None
    default_collection_fee: float = 150.0
    linen_room: str = DEFAULT_LINEN_ROOM
    record_unmatched_returns: bool = False
    image_timeout_seconds: float = 10.0
    environment: str | None = None

    @classmethod
    def from_env(cls) -> "LaundryConfig":
        """Build a config from environment variables or an environment YAML file.

        Environment specific YAML lives in ``config/environments/<env>.yaml`` by
        default and is merged with environment variables so that the Gemini key
        can be injected by the runtime rather than committed.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("LAUNDRY_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        return cls(
            api_key=get_value("google_api_key"),
            model=str(get_value("model", DEFAULT_GEMINI_MODEL) or DEFAULT_GEMINI_MODEL),
            hotel_name=str(get_value("hotel_name", "Hotel Maerkli")),
            state_store_backend=str(get_value("state_store_backend", "json") or "json"),
            state_store_path=get_value("state_store_path"),
            state_key=str(get_value("state_key", DEFAULT_STATE_KEY) or DEFAULT_STATE_KEY),
            storage_max_bytes=_as_int(get_value("storage_max_bytes")),
            default_collection_fee=_as_float(get_value("default_collection_fee"), 150.0),
            linen_room=str(get_value("linen_room", DEFAULT_LINEN_ROOM) or DEFAULT_LINEN_ROOM),
            record_unmatched_returns=_as_bool(get_value("record_unmatched_returns")),
            image_timeout_seconds=_as_float(get_value("image_timeout_seconds"), 10.0),
            environment=env_name,
        )

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a minimal YAML/INI-style config without external dependencies."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config


__all__ = ["LaundryConfig", "DEFAULT_GEMINI_MODEL", "DEFAULT_STATE_KEY", "DEFAULT_LINEN_ROOM"]
