"""
Configuration Loader for Quant Desk

Loads and manages configuration settings with priority hierarchy:
1. Environment variables (highest priority)
2. User config file (~/.quant_desk/config.yaml)
3. Project config file (config/app_config.yaml)
4. Defaults (lowest priority)

Author: Quant Desk Development Team
Version: 1.0.0
"""

import copy
import os
from pathlib import Path
from typing import Dict, Any, Optional

import yaml
from dotenv import load_dotenv
from loguru import logger

# Load environment variables
load_dotenv()


DEFAULT_CONFIG: Dict[str, Any] = {
    'database': {
        'backend': 'sqlite',          # sqlite, postgres
        'path': 'data/quant_desk.db',
        'host': 'localhost',
        'port': 5432,
        'name': 'quant_desk',
        'user': None,
        'password': '',
        'pool_min_conn': 1,
        'pool_max_conn': 10,
    },
    'auth': {
        'session_days': 7,
        'bcrypt_rounds': 12,
    },
    'api': {
        'cors_origins': ['http://localhost:5173', 'http://localhost:3000'],
        'debug': False,
    },
    'logging': {
        'level': 'INFO',
    },
}

# Environment variable -> (dotted config key, type)
ENV_OVERRIDES = {
    'QUANT_DESK_DATABASE_BACKEND': ('database.backend', str),
    'QUANT_DESK_DATABASE_PATH': ('database.path', str),
    'QUANT_DESK_DATABASE_HOST': ('database.host', str),
    'QUANT_DESK_DATABASE_PORT': ('database.port', int),
    'QUANT_DESK_DATABASE_NAME': ('database.name', str),
    'QUANT_DESK_DATABASE_USER': ('database.user', str),
    'QUANT_DESK_DATABASE_PASSWORD': ('database.password', str),
    'QUANT_DESK_AUTH_SESSION_DAYS': ('auth.session_days', int),
    'QUANT_DESK_AUTH_BCRYPT_ROUNDS': ('auth.bcrypt_rounds', int),
    'QUANT_DESK_API_DEBUG': ('api.debug', lambda v: v.lower() in ('1', 'true', 'yes')),
    'QUANT_DESK_LOGGING_LEVEL': ('logging.level', str),
}


class ConfigLoader:
    """
    Load and manage configuration settings.

    Priority order:
    1. Environment variables (highest)
    2. User config file (~/.quant_desk/config.yaml)
    3. Project config file (config/app_config.yaml)
    4. Defaults (lowest)
    """

    DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "app_config.yaml"
    USER_CONFIG_PATH = Path.home() / ".quant_desk" / "config.yaml"

    def __init__(self, config_path: Optional[Path] = None, user_config_path: Optional[Path] = None):
        """
        Initialize config loader

        Args:
            config_path: Optional custom project config file path
            user_config_path: Optional custom user config file path
        """
        self.config_path = Path(config_path) if config_path else self.DEFAULT_CONFIG_PATH
        self.user_config_path = Path(user_config_path) if user_config_path else self.USER_CONFIG_PATH
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """
        Load configuration with priority hierarchy

        Returns:
            Merged configuration dictionary
        """
        config = copy.deepcopy(DEFAULT_CONFIG)
        config = self._merge_configs(config, self._load_yaml_file(self.config_path))

        if self.user_config_path.exists():
            config = self._merge_configs(config, self._load_yaml_file(self.user_config_path))

        return self._apply_env_overrides(config)

    def _load_yaml_file(self, path: Path) -> Dict[str, Any]:
        """
        Load YAML configuration file

        Returns:
            Configuration dictionary (empty if missing or unreadable)
        """
        if not path.exists():
            return {}

        try:
            with open(path, 'r') as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config from {path}: {e}")
            return {}

    def _merge_configs(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """
        Apply environment variable overrides

        Environment variables follow pattern: QUANT_DESK_<SECTION>_<KEY>
        Example: QUANT_DESK_DATABASE_BACKEND=postgres
        """
        for env_var, (key, cast) in ENV_OVERRIDES.items():
            raw = os.getenv(env_var)
            if raw is None or raw == '':
                continue

            section, name = key.split('.')
            config.setdefault(section, {})[name] = cast(raw)

        return config

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by key (supports nested keys with dot notation)

        Args:
            key: Configuration key (e.g., 'database.backend')
            default: Default value if key not found

        Returns:
            Configuration value
        """
        value = self.config

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_database_config(self) -> Dict[str, Any]:
        return dict(self.config.get('database', {}))
