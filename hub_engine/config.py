"""Configuration management using Pydantic BaseSettings with JSON file support."""
import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def flatten_json_config(config: dict[str, Any]) -> dict[str, Any]:
    """Flatten nested JSON config into flat key-value pairs.

    Supports nested structures like:
    {
        "redis": {"redis_host": "localhost", "redis_port": 6379},
        "realtime": {"realtime_max_retries": 5}
    }

    Becomes:
    {"redis_host": "localhost", "redis_port": 6379, "realtime_max_retries": 5}

    Keys starting with "_" (like "_comment") are skipped.
    """
    result = {}

    for key, value in config.items():
        if key.startswith("_"):
            continue

        if isinstance(value, dict):
            result.update(flatten_json_config(value))
        else:
            result[key] = value

    return result


def load_json_config(config_file: Optional[str] = None) -> dict[str, Any]:
    """Load configuration from a JSON file.

    Args:
        config_file: Path to JSON config file. If None, checks CONFIG_FILE env var.

    Returns:
        Dictionary of configuration values (flattened), or empty dict if no file found.
    """
    file_path = config_file or os.getenv("CONFIG_FILE")

    if not file_path:
        return {}

    path = Path(file_path)
    if not path.exists():
        logger.warning(f"Config file not found: {file_path}")
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            config = json.load(f)
            logger.info(f"Loaded configuration from: {file_path}")
            return flatten_json_config(config)
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in config file {file_path}: {e}")
        return {}
    except OSError as e:
        logger.error(f"Error reading config file {file_path}: {e}")
        return {}


class Settings(BaseSettings):
    """Application configuration with JSON file and environment variable support.

    Configuration priority (highest to lowest):
    1. Environment variables
    2. JSON config file (specified via CONFIG_FILE env var)
    3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Redis Configuration
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    # Server Configuration
    server_port: int = 8080
    log_level: str = "INFO"

    # Job cadence
    friction_refresh_minutes: int = 5
    confidence_refresh_seconds: int = 60

    # Friction inputs gateway (ride-share, traffic, pedestrian, garage readings)
    friction_inputs_base_url: str = "http://friction-inputs:8000"
    friction_inputs_api_key: str = ""
    friction_inputs_timeout_seconds: float = 10.0

    # Transition debouncer (privacy protocol)
    transition_batch_window_seconds: float = 300.0  # 5 minutes
    transition_max_jitter_seconds: float = 120.0
    transition_confirmations: int = 2

    # Event log
    event_log_max_length: int = 10000

    # Default filter rules for hubs without a stored record
    default_max_wait_minutes: int = 15
    default_max_friction: float = 80.0
    default_filter_rules_version: str = "1.0.0"

    # Realtime client
    realtime_initial_retry_seconds: float = 1.0
    realtime_backoff_multiplier: float = 2.0
    realtime_max_backoff_seconds: float = 30.0
    realtime_max_retries: int = 5
    realtime_polling_interval_seconds: float = 30.0
    realtime_connect_timeout_seconds: float = 15.0
    realtime_background_grace_seconds: float = 10.0

    # Gravity wells
    gravity_cluster_max_iterations: int = 10

    # Startup Configuration
    seed_on_startup: bool = True
    seed_resource: str = "water_street_tampa.json"
    # If False, skip the initial friction refresh on startup (only schedule jobs)
    refresh_on_startup: bool = True

    # Project Paths
    project_root: str = ""
    resources_path_prefix: str = "resources"

    def __init__(self, **kwargs):
        """Initialize settings from JSON file and environment variables.

        Priority: env vars > JSON config > defaults
        """
        json_config = load_json_config()

        # Environment variables must win over the JSON file, so only pass
        # JSON keys that are not set in the environment
        json_config = {
            key: value for key, value in json_config.items() if key.upper() not in os.environ
        }
        merged_kwargs = {**json_config, **kwargs}

        super().__init__(**merged_kwargs)

        if not self.project_root:
            self.project_root = os.getenv("PROJECT_ROOT", os.getcwd())

    @property
    def base_dir(self) -> Path:
        return Path(self.project_root)

    def get_resource_path(self, resource_file: str) -> Path:
        """Get the full path to a resource file."""
        return self.base_dir / self.resources_path_prefix / resource_file

    @property
    def redis_address(self) -> str:
        """Get Redis connection address in host:port format."""
        return f"{self.redis_host}:{self.redis_port}"
