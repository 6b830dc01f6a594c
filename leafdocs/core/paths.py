import logging
from pathlib import Path
from typing import Any

from leafdocs.core.errors import InvalidPath

logger = logging.getLogger(__name__)

TRAVERSAL_TOKEN = '..'
CURRENT_DIR_TOKEN = '.'


def sanitize(value: Any, field: str = 'path') -> str:
    """
    Validate a caller-supplied relative path or slug.

    Rejects missing values, lists (repeated query parameters), absolute paths,
    anything containing a parent-directory token, and `.` segments (a bare
    `.` would address the content root itself). Backslashes are turned into
    forward slashes; nothing else is normalized.
    """
    if value is None or value == '':
        raise InvalidPath(f'Missing {field}', field=field)

    if isinstance(value, (list, tuple)):
        logger.warning(f"Rejected non-scalar {field}: {value!r}")
        raise InvalidPath(f'Invalid {field}', field=field)

    if not isinstance(value, str):
        raise InvalidPath(f'Invalid {field}', field=field)

    # Security: Prevent directory traversal
    if TRAVERSAL_TOKEN in value:
        logger.warning(f"Attempted directory traversal in {field}: {value}")
        raise InvalidPath(f'Invalid {field}', field=field)

    if value.startswith('/') or value.startswith('\\'):
        logger.warning(f"Rejected absolute {field}: {value}")
        raise InvalidPath(f'Invalid {field}', field=field)

    value = value.replace('\\', '/')
    if CURRENT_DIR_TOKEN in value.split('/'):
        logger.warning(f"Rejected current-directory segment in {field}: {value}")
        raise InvalidPath(f'Invalid {field}', field=field)

    return value


def resolve_under(root: Path, value: Any, field: str = 'path') -> Path:
    """Sanitize ``value`` and join it onto ``root``."""
    return Path(root) / sanitize(value, field)
