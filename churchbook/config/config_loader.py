"""
Configuration loader for ChurchBook
"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from dotenv import load_dotenv


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path('config/churchbook.yaml')

DEFAULT_CONFIG: Dict[str, Any] = {
    'database': {
        'url': 'sqlite+aiosqlite:///./data/churchbook.db',
        'echo': False
    },
    'remote': {
        'url': '',
        'api_key': '',
        'access_token': None,
        'timeout': 10,
        'soft_delete': ['income', 'expenses'],
        'mock': False
    },
    'sync': {
        'max_retries': 5,
        'interval_seconds': 30,
        'max_interval_seconds': 600,
        'auto_sync': True
    },
    'connectivity': {
        'probe_interval': 15,
        'initial_online': True
    },
    'api': {
        'host': '0.0.0.0',
        'port': 8080,
        'api_key': 'development-key-change-in-production',
        'cors_origins': ['*']
    },
    'logging': {
        'level': 'INFO',
        'format': 'text',
        'file_path': None,
        'file_max_size': 10 * 1024 * 1024,
        'file_backup_count': 5
    }
}


def load_config(path: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """Load configuration from defaults, the YAML file and environment variables"""

    # Load environment variables
    load_dotenv()

    config = copy.deepcopy(DEFAULT_CONFIG)

    yaml_path = Path(path or os.getenv('CHURCHBOOK_CONFIG') or DEFAULT_CONFIG_PATH)

    if yaml_path.exists():
        try:
            with open(yaml_path, 'r', encoding='utf-8') as f:
                yaml_config = yaml.safe_load(f)
            if yaml_config:
                _deep_update(config, yaml_config)
                logger.info(f"Configuration loaded from {yaml_path}")
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load configuration from {yaml_path}: {e}")
            logger.error("Using default configuration")
    elif path:
        logger.warning(f"Configuration file {yaml_path} not found, using defaults")

    _apply_environment(config)

    if not config['remote']['url'] and not config['remote']['mock']:
        logger.warning("Supabase is not configured; set SUPABASE_URL and SUPABASE_ANON_KEY")

    return config


def _apply_environment(config: Dict[str, Any]) -> None:
    """Override configuration with environment variables"""
    if os.getenv('SUPABASE_URL'):
        config['remote']['url'] = os.getenv('SUPABASE_URL')

    if os.getenv('SUPABASE_ANON_KEY'):
        config['remote']['api_key'] = os.getenv('SUPABASE_ANON_KEY')

    if os.getenv('SUPABASE_ACCESS_TOKEN'):
        config['remote']['access_token'] = os.getenv('SUPABASE_ACCESS_TOKEN')

    if os.getenv('DATABASE_URL'):
        config['database']['url'] = os.getenv('DATABASE_URL')

    if os.getenv('CHURCHBOOK_API_KEY'):
        config['api']['api_key'] = os.getenv('CHURCHBOOK_API_KEY')

    if os.getenv('CHURCHBOOK_MAX_RETRIES'):
        try:
            config['sync']['max_retries'] = int(os.getenv('CHURCHBOOK_MAX_RETRIES'))
        except ValueError:
            logger.error(f"Ignoring invalid CHURCHBOOK_MAX_RETRIES={os.getenv('CHURCHBOOK_MAX_RETRIES')!r}")

    if os.getenv('LOG_LEVEL'):
        config['logging']['level'] = os.getenv('LOG_LEVEL', 'INFO').upper()


def _deep_update(base_dict: Dict[str, Any], update_dict: Dict[str, Any]) -> None:
    """Deep update nested dictionary"""
    for key, value in update_dict.items():
        if key in base_dict and isinstance(base_dict[key], dict) and isinstance(value, dict):
            _deep_update(base_dict[key], value)
        else:
            base_dict[key] = value
