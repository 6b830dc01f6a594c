import logging
import shutil
from datetime import datetime
from pathlib import Path
from typing import BinaryIO, Optional

from leafdocs.core.content import ContentStore
from leafdocs.core.errors import BadRequest, InternalError

logger = logging.getLogger(__name__)

DEFAULT_EXTENSION = '.png'
TIMESTAMP_FORMAT = '%Y%m%d-%H-%M-%S'


def next_sequence(img_dir: Path, now: datetime) -> int:
    """One more than the number of files in ``img_dir`` carrying this second's timestamp."""
    timestamp = now.strftime(TIMESTAMP_FORMAT)
    return sum(1 for f in img_dir.iterdir() if f.name.startswith(timestamp)) + 1


def upload_filename(img_dir: Path, original_filename: Optional[str], now: datetime,
                    seq: Optional[int] = None) -> str:
    """
    Build ``YYYYMMDD-HH-MM-SS-N<ext>`` for a new upload.

    N defaults to ``next_sequence``, so uploads within the same second stay
    distinct.
    """
    timestamp = now.strftime(TIMESTAMP_FORMAT)
    if seq is None:
        seq = next_sequence(img_dir, now)
    ext = Path(original_filename).suffix if original_filename else ''
    return f"{timestamp}-{seq}{ext or DEFAULT_EXTENSION}"


class UploadService:
    """Stores images dropped into the editor in the document's img folder."""

    def __init__(self, store: ContentStore):
        self.store = store

    def save(self, slug, stream: Optional[BinaryIO], original_filename: Optional[str] = None,
             now: Optional[datetime] = None) -> str:
        self.store.ensure_writable()
        img_dir = self.store.image_dir(slug)

        if stream is None:
            raise BadRequest('No file uploaded')
        if not img_dir.is_dir():
            logger.warning(f"Upload: Image directory missing for {slug}: {img_dir}")
            raise BadRequest('Post image directory not found', slug=slug)

        now = now or datetime.now()
        seq = next_sequence(img_dir, now)
        while True:
            filename = upload_filename(img_dir, original_filename, now, seq)
            destination = img_dir / filename
            try:
                # Existing uploads are never replaced
                with open(destination, 'xb') as out:
                    shutil.copyfileobj(stream, out)
                break
            except FileExistsError:
                logger.debug(f"Upload: {filename} taken, trying the next sequence number")
                seq += 1
            except OSError as e:
                logger.error(f"Upload: Failed to store {filename} for {slug}: {e}", exc_info=True)
                raise InternalError('Internal server error during upload') from e

        logger.info(f"Upload: Stored {filename} for {slug} ({destination.stat().st_size} bytes)")
        return filename
