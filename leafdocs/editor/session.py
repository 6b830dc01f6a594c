"""
Editor session view-model.

Mirrors what the browser editor does: keeps the sidebar tree, the selected
document, the edit buffer and the transient status text, and drives the
editor API through an EditorClient. Nothing is retried; a failed request
leaves a status message and the user tries again.
"""

import logging
import threading
from enum import Enum, auto
from typing import Any, BinaryIO, Callable, Dict, List, Optional
from urllib.parse import urlencode

import requests

from leafdocs.editor.client import ApiError

logger = logging.getLogger(__name__)

IMAGE_PREFIX = './img/'
SAVE_KEY = 's'
READ_ONLY_STATUS = 'Read Only Mode (Production)'


class DocumentState(Enum):
    UNLOADED = auto()
    LOADING = auto()
    LOADED = auto()
    DIRTY = auto()
    SAVING = auto()
    SAVED = auto()
    ERROR = auto()


class UploadState(Enum):
    IDLE = auto()
    UPLOADING = auto()
    ERROR = auto()


class ViewMode(Enum):
    EDIT = 'edit'
    PREVIEW = 'preview'
    SPLIT = 'split'


def image_markdown(filename: str) -> str:
    return f"![]({IMAGE_PREFIX}{filename})"


class EditorSession:
    """State of one interactive editing session."""

    def __init__(self, client, status_reset_delay: Optional[float] = 2.0,
                 alert: Optional[Callable[[str], None]] = None):
        self.client = client
        self.status_reset_delay = status_reset_delay
        self.alert = alert or (lambda message: logger.warning(f"Editor alert: {message}"))

        self.tree: List[Dict[str, Any]] = []
        self.read_only = False
        self.current_slug: Optional[str] = None
        # Slug the edit buffer was loaded from; None while nothing usable is loaded
        self.loaded_slug: Optional[str] = None
        self.content = ''
        self.images: List[str] = []
        self.cursor: Optional[int] = None
        self.state = DocumentState.UNLOADED
        self.upload_state = UploadState.IDLE
        self.status = ''
        self.notifications: List[str] = []
        self.view_mode = ViewMode.SPLIT
        self.sidebar_open = True
        self._status_timer: Optional[threading.Timer] = None

    # ------------------------------------------------------------------
    # Status helpers
    # ------------------------------------------------------------------

    def set_status(self, text: str) -> None:
        self._cancel_status_reset()
        self.status = text

    def _cancel_status_reset(self) -> None:
        if self._status_timer is not None:
            self._status_timer.cancel()
            self._status_timer = None

    def _schedule_status_reset(self) -> None:
        if not self.status_reset_delay:
            return
        expected = self.status

        def reset():
            # A newer status wins over the delayed reset
            if self.status == expected:
                self.status = ''
                if self.state == DocumentState.SAVED:
                    self.state = DocumentState.LOADED

        self._status_timer = threading.Timer(self.status_reset_delay, reset)
        self._status_timer.daemon = True
        self._status_timer.start()

    def notify(self, message: str) -> None:
        """Transient toast-style notification."""
        self.notifications.append(message)
        logger.info(f"Editor: {message}")

    def close(self) -> None:
        self._cancel_status_reset()

    # ------------------------------------------------------------------
    # Tree
    # ------------------------------------------------------------------

    def refresh_tree(self) -> bool:
        try:
            self.tree = self.client.list_posts()
        except ApiError as e:
            if e.status == 403:
                self.read_only = True
                self.set_status(READ_ONLY_STATUS)
            else:
                self.set_status(f'Error loading tree: {e.message}')
            return False
        except requests.RequestException as e:
            logger.error(f"Editor: Failed to load tree: {e}")
            self.set_status('Error loading tree')
            return False
        return True

    # ------------------------------------------------------------------
    # Document lifecycle
    # ------------------------------------------------------------------

    @property
    def dirty(self) -> bool:
        return self.state == DocumentState.DIRTY

    @property
    def has_buffer(self) -> bool:
        return self.loaded_slug is not None and self.loaded_slug == self.current_slug

    def select(self, slug: str) -> bool:
        self.current_slug = slug
        self._clear_buffer()
        self.state = DocumentState.LOADING
        self.set_status('Loading...')
        try:
            data = self.client.get_post(slug)
        except (ApiError, requests.RequestException) as e:
            logger.warning(f"Editor: Failed to load {slug}: {e}")
            self.state = DocumentState.ERROR
            self.set_status('Error loading')
            return False

        self.content = data.get('content', '')
        self.images = list(data.get('images', []))
        self.cursor = None
        self.loaded_slug = slug
        self.state = DocumentState.LOADED
        self.set_status('')
        return True

    def edit(self, text: str, cursor: Optional[int] = None) -> None:
        if not self.has_buffer or self.state == DocumentState.LOADING:
            raise RuntimeError('No document loaded')
        self.content = text
        self.cursor = cursor
        self.state = DocumentState.DIRTY

    def save(self) -> bool:
        if not self.has_buffer or self.state == DocumentState.LOADING:
            return False

        self.state = DocumentState.SAVING
        self.set_status('Saving...')
        try:
            self.client.save_post(self.current_slug, self.content)
        except (ApiError, requests.RequestException) as e:
            logger.warning(f"Editor: Failed to save {self.current_slug}: {e}")
            self.state = DocumentState.ERROR
            self.set_status('Error saving')
            return False

        self.state = DocumentState.SAVED
        self.set_status('Saved')
        self._schedule_status_reset()
        return True

    def handle_key(self, key: str, ctrl: bool = False, meta: bool = False) -> bool:
        """Keyboard shortcut handling. Returns True when the key was consumed."""
        if (ctrl or meta) and key.lower() == SAVE_KEY:
            self.save()
            return True
        return False

    def create_document(self, title: str) -> Optional[str]:
        if not title:
            return None
        try:
            slug = self.client.create_post(title)
        except (ApiError, requests.RequestException) as e:
            logger.warning(f"Editor: Failed to create post {title!r}: {e}")
            self.alert('Failed to create post')
            return None

        self.refresh_tree()
        self.select(slug)
        return slug

    def delete_document(self, slug: str, confirm: Optional[Callable[[str], bool]] = None) -> bool:
        if confirm is not None and not confirm(f'Delete {slug}?'):
            return False
        try:
            self.client.delete_post(slug)
        except (ApiError, requests.RequestException) as e:
            logger.warning(f"Editor: Failed to delete {slug}: {e}")
            self.alert('Failed to delete')
            return False

        if slug == self.current_slug:
            self._unload()
        self.refresh_tree()
        return True

    def _clear_buffer(self) -> None:
        self.loaded_slug = None
        self.content = ''
        self.images = []
        self.cursor = None

    def _unload(self) -> None:
        self.current_slug = None
        self._clear_buffer()
        self.state = DocumentState.UNLOADED

    # ------------------------------------------------------------------
    # Files, directories and titles
    # ------------------------------------------------------------------

    def create_entry(self, path: str, kind: str) -> bool:
        try:
            self.client.create_entry(path, kind)
        except (ApiError, requests.RequestException) as e:
            self.alert(f'Failed to create {kind}: {getattr(e, "message", e)}')
            return False
        self.refresh_tree()
        return True

    def rename(self, old_path: str, new_path: str) -> bool:
        """Move a file or directory. The open document is left as is."""
        try:
            self.client.rename(old_path, new_path)
        except (ApiError, requests.RequestException) as e:
            self.alert(f'Failed to rename: {getattr(e, "message", e)}')
            return False
        self.refresh_tree()
        return True

    def delete_entry(self, path: str, confirm: Optional[Callable[[str], bool]] = None) -> bool:
        if confirm is not None and not confirm(f'Delete {path}?'):
            return False
        try:
            self.client.delete(path)
        except (ApiError, requests.RequestException) as e:
            self.alert(f'Failed to delete: {getattr(e, "message", e)}')
            return False
        self.refresh_tree()
        return True

    def set_title(self, path: str, key: str, title: str) -> bool:
        try:
            self.client.update_meta(path, key, title)
        except (ApiError, requests.RequestException) as e:
            self.set_status(f'Error updating title: {getattr(e, "message", e)}')
            return False
        return True

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def insert_image_reference(self, filename: str) -> None:
        """Insert at the cursor, or append on a new line when there is none."""
        ref = image_markdown(filename)
        if self.cursor is None:
            self.content = f"{self.content}\n{ref}" if self.content else ref
        else:
            pos = max(0, min(self.cursor, len(self.content)))
            self.content = self.content[:pos] + ref + self.content[pos:]
            self.cursor = pos + len(ref)
        self.state = DocumentState.DIRTY

    def upload_image(self, stream: BinaryIO, filename: str) -> Optional[str]:
        if not self.has_buffer:
            return None

        self.upload_state = UploadState.UPLOADING
        self.set_status('Uploading...')
        try:
            stored = self.client.upload_image(self.current_slug, stream, filename)
        except (ApiError, requests.RequestException) as e:
            logger.warning(f"Editor: Upload failed for {self.current_slug}: {e}")
            self.upload_state = UploadState.ERROR
            self.set_status('Upload failed')
            return None

        self.upload_state = UploadState.IDLE
        self.images.append(stored)
        self.insert_image_reference(stored)
        self.set_status('Image uploaded')
        self.notify('Image uploaded')
        return stored

    def preview_url(self, url: str) -> str:
        """Point ./img/ references at the image preview endpoint."""
        if url.startswith(IMAGE_PREFIX) and self.current_slug:
            query = urlencode({'slug': self.current_slug, 'file': url[len(IMAGE_PREFIX):]})
            return f"/api/image_preview?{query}"
        return url

    # ------------------------------------------------------------------
    # View
    # ------------------------------------------------------------------

    def set_view_mode(self, mode) -> None:
        self.view_mode = ViewMode(mode)

    def toggle_sidebar(self) -> bool:
        self.sidebar_open = not self.sidebar_open
        return self.sidebar_open
