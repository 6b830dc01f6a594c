"""
File operations over the content root.

ContentStore is the single place where editor requests touch the
filesystem. Every external path goes through the path sanitizer first and
every operation is refused outside development mode.
"""

import json
import logging
import os
import re
import shutil
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from leafdocs.core.errors import (
    AlreadyExists, BadRequest, InternalError, NotFound, ReadOnlyMode, ReservedName,
)
from leafdocs.core.paths import resolve_under, sanitize
from leafdocs.core.tree import (
    DEFAULT_EXCLUDED, HOME_SLUG, META_FILE_NAME, ContentNode, build_tree,
)

logger = logging.getLogger(__name__)

MODE_DEVELOPMENT = 'development'
MODE_PRODUCTION = 'production'

IMG_DIR_NAME = 'img'
IMAGE_EXTENSIONS = {'.png', '.jpg', '.jpeg', '.gif', '.svg', '.webp'}
DEFAULT_RESERVED_SLUGS = frozenset({'api', 'admin', 'img', 'posts', 'home'})
ENTRY_KINDS = ('file', 'directory')


def slugify(title: str) -> str:
    """Lowercase, turn spaces into hyphens, drop anything not a word char or hyphen."""
    slug = title.lower().replace(' ', '-')
    return re.sub(r'[^\w-]', '', slug)


def seed_content(title: str) -> str:
    return f"# {title}\n\nNew post.\n"


class ContentStore:
    """CRUD operations for documents, plain files and directories."""

    def __init__(self, root: Path, mode: str = MODE_PRODUCTION,
                 reserved_slugs: Iterable[str] = DEFAULT_RESERVED_SLUGS,
                 excluded_names: Iterable[str] = DEFAULT_EXCLUDED):
        self.root = Path(root)
        self.mode = mode
        self.reserved_slugs = frozenset(reserved_slugs)
        self.excluded_names = frozenset(excluded_names)

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    @property
    def writable(self) -> bool:
        return self.mode == MODE_DEVELOPMENT

    def ensure_writable(self) -> None:
        if not self.writable:
            logger.warning(f"Content: Refused editor operation in {self.mode} mode")
            raise ReadOnlyMode()

    # ------------------------------------------------------------------
    # Listing
    # ------------------------------------------------------------------

    def list_tree(self) -> List[ContentNode]:
        self.ensure_writable()
        tree = build_tree(self.root, excluded=self.excluded_names)
        logger.debug(f"Content: Listed tree with {len(tree)} top-level nodes")
        return tree

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def _document_candidates(self, slug: str) -> List[Path]:
        if slug == HOME_SLUG:
            return [self.root / f"index{ext}" for ext in ('.md', '.mdx')]
        base = resolve_under(self.root, slug, 'slug')
        return [
            base / 'index.md',
            base / 'index.mdx',
            base.with_name(base.name + '.md'),
            base.with_name(base.name + '.mdx'),
        ]

    def find_document(self, slug) -> Optional[Path]:
        """Return the file backing ``slug`` or None. Does not apply the mode gate."""
        slug = sanitize(slug, 'slug')
        for candidate in self._document_candidates(slug):
            if candidate.is_file():
                return candidate
        return None

    def _document_dir(self, slug: str) -> Path:
        return self.root if slug == HOME_SLUG else resolve_under(self.root, slug, 'slug')

    def list_images(self, document: Path) -> List[str]:
        img_dir = document.parent / IMG_DIR_NAME
        if not img_dir.is_dir():
            return []
        return sorted(
            f.name for f in img_dir.iterdir()
            if f.is_file() and f.suffix.lower() in IMAGE_EXTENSIONS
        )

    def read_document(self, slug) -> Dict[str, object]:
        self.ensure_writable()
        document = self.find_document(slug)
        if document is None:
            logger.warning(f"Content: Document not found: {slug}")
            raise NotFound('Post not found', slug=slug)

        content = document.read_text(encoding='utf-8')
        logger.info(f"Content: Served document {slug} ({len(content)} bytes)")
        return {'content': content, 'images': self.list_images(document)}

    def write_document(self, slug, content) -> Path:
        self.ensure_writable()
        slug = sanitize(slug, 'slug')
        if not isinstance(content, str):
            raise BadRequest('Content required')

        target = self.find_document(slug)
        if target is None:
            directory = self._document_dir(slug)
            if not directory.is_dir():
                raise NotFound('Post not found', slug=slug)
            target = directory / 'index.md'

        try:
            target.write_text(content, encoding='utf-8')
        except OSError as e:
            logger.error(f"Content: Failed to save {slug}: {e}", exc_info=True)
            raise InternalError('Failed to save document') from e

        logger.info(f"Content: Document saved: {slug}, size: {len(content)} bytes")
        return target

    def create_document(self, title) -> str:
        self.ensure_writable()
        if not title or not isinstance(title, str):
            raise BadRequest('Title required')

        slug = slugify(title)
        if not slug:
            raise BadRequest('Title must contain at least one word character')
        if slug in self.reserved_slugs:
            logger.warning(f"Content: Rejected reserved slug '{slug}'")
            raise ReservedName('Reserved slug name', slug=slug)

        directory = self.root / slug
        if directory.exists():
            raise AlreadyExists('Post with this slug already exists', slug=slug)

        # No rollback: a failure partway leaves whatever was already created.
        try:
            directory.mkdir(parents=True)
            (directory / IMG_DIR_NAME).mkdir()
            (directory / 'index.md').write_text(seed_content(title), encoding='utf-8')
            self._write_meta(directory / META_FILE_NAME, {'index': title})
        except OSError as e:
            logger.error(f"Content: Failed to create post '{slug}': {e}", exc_info=True)
            raise InternalError('Failed to create post') from e

        logger.info(f"Content: Created post '{slug}' at {directory}")
        return slug

    def delete_document(self, slug) -> None:
        self.ensure_writable()
        slug = sanitize(slug, 'slug')
        if slug == HOME_SLUG:
            target = self.find_document(slug)
        else:
            directory = self._document_dir(slug)
            target = directory if directory.is_dir() else self.find_document(slug)

        if target is None or not target.exists():
            logger.debug(f"Content: Nothing to delete for {slug}")
            return
        self._remove(target)
        logger.info(f"Content: Deleted post {slug}")

    def image_dir(self, slug) -> Path:
        """The img folder sitting next to the file that backs ``slug``."""
        document = self.find_document(slug)
        if document is not None:
            return document.parent / IMG_DIR_NAME
        return self._document_dir(sanitize(slug, 'slug')) / IMG_DIR_NAME

    def image_path(self, slug, filename) -> Path:
        """Locate an image in a document's img folder."""
        self.ensure_writable()
        slug = sanitize(slug, 'slug')
        filename = sanitize(filename, 'file')
        path = self.image_dir(slug) / filename
        if not path.is_file():
            raise NotFound('Image not found', file=filename)
        return path

    # ------------------------------------------------------------------
    # Generic files and directories
    # ------------------------------------------------------------------

    def create_entry(self, path, kind) -> Path:
        self.ensure_writable()
        target = resolve_under(self.root, path)
        if kind not in ENTRY_KINDS:
            raise BadRequest(f"Invalid type: {kind!r}")
        if target.exists():
            raise AlreadyExists('File or directory already exists', path=path)

        try:
            if kind == 'directory':
                target.mkdir(parents=True)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text('', encoding='utf-8')
        except OSError as e:
            logger.error(f"Content: Failed to create {kind} {path}: {e}", exc_info=True)
            raise InternalError(f'Failed to create {kind}') from e

        logger.info(f"Content: Created {kind}: {path}")
        return target

    def rename(self, old_path, new_path) -> Path:
        self.ensure_writable()
        source = resolve_under(self.root, old_path, 'oldPath')
        destination = resolve_under(self.root, new_path, 'newPath')

        if not source.exists():
            raise NotFound('Source not found', path=old_path)
        if destination.exists():
            raise AlreadyExists('Destination already exists', path=new_path)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            os.replace(source, destination)
        except OSError as e:
            logger.error(f"Content: Failed to move {old_path} -> {new_path}: {e}", exc_info=True)
            raise InternalError('Failed to rename') from e

        logger.info(f"Content: Renamed {old_path} -> {new_path}")
        return destination

    def delete(self, path) -> None:
        self.ensure_writable()
        target = resolve_under(self.root, path)
        if not target.exists() and not target.is_symlink():
            logger.debug(f"Content: Nothing to delete at {path}")
            return
        self._remove(target)
        logger.info(f"Content: Deleted {path}")

    def _remove(self, target: Path) -> None:
        try:
            if target.is_dir() and not target.is_symlink():
                shutil.rmtree(target)
            else:
                target.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Content: Failed to delete {target}: {e}", exc_info=True)
            raise InternalError('Failed to delete') from e

    # ------------------------------------------------------------------
    # Sidecar metadata
    # ------------------------------------------------------------------

    def update_meta(self, path, key, title) -> Dict[str, str]:
        """
        Set ``key -> title`` in the ``_meta.json`` next to ``path``.

        The sidecar is an annotation layer only; the key is not checked
        against the directory contents.
        """
        self.ensure_writable()
        target = resolve_under(self.root, path)
        if not key or not isinstance(key, str):
            raise BadRequest('Key required')
        if not isinstance(title, str):
            raise BadRequest('Title required')

        meta_file = target.parent / META_FILE_NAME
        mapping = load_meta(meta_file)
        mapping[key] = title
        try:
            meta_file.parent.mkdir(parents=True, exist_ok=True)
            self._write_meta(meta_file, mapping)
        except OSError as e:
            logger.error(f"Content: Failed to write {meta_file}: {e}", exc_info=True)
            raise InternalError('Failed to update metadata') from e

        logger.info(f"Content: Metadata {meta_file.relative_to(self.root)}[{key}] = {title!r}")
        return mapping

    @staticmethod
    def _write_meta(meta_file: Path, mapping: Dict[str, str]) -> None:
        with open(meta_file, 'w', encoding='utf-8') as f:
            json.dump(mapping, f, indent=4, ensure_ascii=False)


def load_meta(meta_file: Path) -> Dict[str, str]:
    """Read a sidecar, treating a missing or unreadable file as empty."""
    if not meta_file.exists():
        return {}
    try:
        with open(meta_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.error(f"Content: Ignoring unreadable metadata {meta_file}: {e}")
        return {}
    if not isinstance(data, dict):
        logger.warning(f"Content: Metadata {meta_file} is not a mapping, ignoring")
        return {}
    return data
