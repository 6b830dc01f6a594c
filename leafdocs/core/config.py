"""
Configuration loading.

Defaults are overlaid with an optional ``config.json`` and then with
``LEAFDOCS_*`` environment variables. The runtime mode is always an explicit
setting; it is never guessed from the environment the server runs in.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from leafdocs.core.content import DEFAULT_RESERVED_SLUGS, MODE_DEVELOPMENT, MODE_PRODUCTION
from leafdocs.core.tree import DEFAULT_EXCLUDED

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = 'config.json'
VALID_MODES = (MODE_DEVELOPMENT, MODE_PRODUCTION)
MAX_UPLOAD_SIZE = 20 * 1024 * 1024  # 20 MB

ENV_OVERRIDES = {
    'LEAFDOCS_CONTENT_ROOT': 'content_root',
    'LEAFDOCS_MODE': 'mode',
    'LEAFDOCS_LOG_DIR': 'log_dir',
}


def default_config(base_dir: Optional[Path] = None) -> Dict[str, Any]:
    base_dir = Path(base_dir) if base_dir else Path(os.path.abspath('.'))
    return {
        'content_root': str(base_dir / 'pages'),
        'mode': MODE_PRODUCTION,
        'log_dir': str(base_dir / 'logs'),
        'reserved_slugs': sorted(DEFAULT_RESERVED_SLUGS),
        'excluded_names': sorted(DEFAULT_EXCLUDED),
        'max_upload_size': MAX_UPLOAD_SIZE,
        'status_reset_delay': 2.0,
    }


def load_config(config_file: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None,
                environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Load configuration. Later sources win: defaults, file, environment, overrides."""
    environ = os.environ if environ is None else environ
    config_file = Path(config_file) if config_file else Path(os.path.abspath('.')) / CONFIG_FILE_NAME
    config = default_config()

    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                file_config = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load config {config_file}: {e}")
        else:
            if isinstance(file_config, dict):
                config.update(file_config)
                logger.debug(f"Loaded config file: {config_file}")
            else:
                logger.error(f"Ignoring config {config_file}: top level must be an object")

    for env_name, key in ENV_OVERRIDES.items():
        if environ.get(env_name):
            config[key] = environ[env_name]

    if overrides:
        config.update({k: v for k, v in overrides.items() if v is not None})

    if config['mode'] not in VALID_MODES:
        raise ValueError(f"Invalid mode {config['mode']!r}; expected one of {', '.join(VALID_MODES)}")

    return config
