"""
Content tree builder.

Walks the content root and produces the ordered sidebar tree used by the
editor and the docs pages. The tree is rebuilt on every call; nothing is
cached between requests.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

logger = logging.getLogger(__name__)

CONTENT_EXTENSIONS = {'.md', '.mdx'}
INDEX_NAMES = {'index.md', 'index.mdx'}
HOME_SLUG = 'home'
META_FILE_NAME = '_meta.json'

# Editor routes, upload namespace, image folders and build artifacts
DEFAULT_EXCLUDED = frozenset({'api', 'admin', 'img', 'node_modules', '.next', '__pycache__'})


@dataclass
class ContentNode:
    name: str
    type: str  # "file" | "directory"
    path: str  # relative to the content root, posix separators
    slug: Optional[str] = None  # files only
    children: Optional[List['ContentNode']] = None  # directories only

    @property
    def is_directory(self) -> bool:
        return self.type == 'directory'

    @property
    def is_index(self) -> bool:
        return self.name.startswith('index.')

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {'name': self.name, 'type': self.type, 'path': self.path}
        if self.is_directory:
            data['children'] = [c.to_dict() for c in (self.children or [])]
        else:
            data['slug'] = self.slug
        return data


def is_content_file(path: Path) -> bool:
    return path.suffix.lower() in CONTENT_EXTENSIONS


def slug_for(relative_file: str) -> str:
    """
    Compute the routing slug of a content file given its path relative to
    the content root.

    ``index.md`` maps to its directory (``home`` at the root), any other file
    to its path without the extension.
    """
    rel = Path(relative_file)
    if rel.name in INDEX_NAMES:
        parent = rel.parent.as_posix()
        return HOME_SLUG if parent in ('', '.') else parent
    return rel.with_suffix('').as_posix()


def _sort_key(node: ContentNode):
    return (not node.is_directory, not node.is_index, node.name.lower(), node.name)


def build_tree(root: Path, relative_path: str = '',
               excluded: Iterable[str] = DEFAULT_EXCLUDED) -> List[ContentNode]:
    """
    Recursively list ``root / relative_path``.

    Directories precede files; within each group index files come first,
    then names compare case-insensitively. A missing root yields an empty
    tree.
    """
    excluded = frozenset(excluded)
    current = Path(root) / relative_path if relative_path else Path(root)
    if not current.exists():
        if not relative_path:
            logger.debug(f"Content root does not exist: {root}")
        return []

    try:
        entries = list(current.iterdir())
    except OSError as e:
        logger.error(f"Failed to list {current}: {e}")
        return []

    nodes: List[ContentNode] = []
    for entry in entries:
        name = entry.name
        if name in excluded or name.startswith('.') or name == META_FILE_NAME:
            continue

        child_rel = f"{relative_path}/{name}" if relative_path else name

        if entry.is_dir():
            nodes.append(ContentNode(
                name=name,
                type='directory',
                path=child_rel,
                children=build_tree(root, child_rel, excluded),
            ))
            continue

        if entry.is_file() and is_content_file(entry):
            nodes.append(ContentNode(
                name=name,
                type='file',
                path=child_rel,
                slug=slug_for(child_rel),
            ))

    nodes.sort(key=_sort_key)
    return nodes


def iter_files(nodes: Iterable[ContentNode]) -> Iterator[ContentNode]:
    """Yield every file node in tree order."""
    for node in nodes:
        if node.is_directory:
            yield from iter_files(node.children or [])
        else:
            yield node


def flatten_slugs(nodes: Iterable[ContentNode]) -> List[str]:
    return [n.slug for n in iter_files(nodes)]
