"""
LeafDocs
A Flask documentation site that renders a tree of Markdown files, with a
local-only editor for the same tree.
"""

from flask import Flask, render_template, send_from_directory, abort, request
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from leafdocs.core.config import load_config
from leafdocs.core.content import ContentStore, IMAGE_EXTENSIONS, MODE_DEVELOPMENT, load_meta
from leafdocs.core.errors import ContentError
from leafdocs.core.logging_config import setup_logging
from leafdocs.core.renderer import render_markdown, process_links_in_html
from leafdocs.core.tree import HOME_SLUG, META_FILE_NAME, ContentNode, build_tree
from leafdocs.core.uploads import UploadService
from leafdocs.editor.api import editor_bp
from leafdocs.version_info import __version__ as VERSION

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent
EDITOR_PREFIX = '/admin'


def edit_slug_for(path: str) -> Optional[str]:
    """
    Slug the floating edit button should open for a page path.
    None on editor pages.
    """
    if path.startswith(EDITOR_PREFIX):
        return None
    slug = path.strip('/')
    return slug or HOME_SLUG


def display_title(node: ContentNode, meta: Dict[str, str]) -> str:
    key = node.name if node.type == 'directory' else Path(node.name).stem
    title = meta.get(key)
    if isinstance(title, str) and title:
        return title
    if node.type == 'file' and key == 'index':
        return 'Overview' if node.slug != HOME_SLUG else 'Home'
    return key.replace('-', ' ').replace('_', ' ').title()


def build_nav(root: Path, nodes: List[ContentNode], current_slug: str, rel_dir: str = '') -> List[Dict[str, Any]]:
    """Sidebar entries with display titles taken from each folder's _meta.json."""
    meta = load_meta(root / rel_dir / META_FILE_NAME)
    items = []
    for node in nodes:
        item = {'title': display_title(node, meta), 'type': node.type}
        if node.type == 'directory':
            item['children'] = build_nav(root, node.children or [], current_slug, node.path)
        else:
            item['slug'] = node.slug
            item['url'] = '/' if node.slug == HOME_SLUG else f"/{node.slug}"
            item['active'] = node.slug == current_slug
        items.append(item)
    return items


def create_app(config: Optional[Dict[str, Any]] = None, init_logging: bool = True) -> Flask:
    """Application factory."""
    config = config if config is not None else load_config()
    debug_mode = config['mode'] == MODE_DEVELOPMENT

    if init_logging:
        setup_logging(Path(config['log_dir']), debug_mode)

    app = Flask(
        __name__,
        template_folder=str(PACKAGE_DIR / 'templates'),
        static_folder=str(PACKAGE_DIR / 'static'),
    )
    app.config['TEMPLATES_AUTO_RELOAD'] = debug_mode
    app.config['SEND_FILE_MAX_AGE_DEFAULT'] = 0
    app.config['MAX_CONTENT_LENGTH'] = config.get('max_upload_size')

    content_root = Path(config['content_root'])
    store = ContentStore(
        content_root,
        mode=config['mode'],
        reserved_slugs=config['reserved_slugs'],
        excluded_names=config['excluded_names'],
    )
    app.extensions['leafdocs'] = {
        'config': config,
        'store': store,
        'uploads': UploadService(store),
    }
    app.register_blueprint(editor_bp)

    logger.info(f"Application starting - Version {VERSION}")
    logger.info(f"Content root: {content_root} (mode: {config['mode']})")
    if not content_root.exists():
        logger.warning(f"Content root does not exist yet: {content_root}")

    @app.context_processor
    def inject_global_context():
        return {
            'version': VERSION,
            'editor_enabled': store.writable,
            'edit_slug': edit_slug_for(request.path),
        }

    @app.errorhandler(500)
    def internal_error(error):
        logger.error(f"500 Error on {request.path}: {error}", exc_info=True)
        return "Internal Server Error", 500

    @app.route('/')
    def index():
        return render_page(HOME_SLUG)

    @app.route('/<path:slug>')
    def page(slug):
        return render_page(slug)

    def render_page(slug: str):
        # Page rendering is read-only and available in every mode
        try:
            document = store.find_document(slug)
        except ContentError as e:
            logger.info(f"Page not found: {slug} ({e.message})")
            abort(404)
        if document is None:
            logger.info(f"Page not found: {slug}")
            abort(404)

        md_text = document.read_text(encoding='utf-8')
        html_content, toc_content = render_markdown(md_text)
        asset_base = document.parent.relative_to(content_root).as_posix()
        html_content = process_links_in_html(html_content, asset_base if asset_base != '.' else None)

        tree = build_tree(content_root, excluded=store.excluded_names)
        logger.info(f"Rendered page {slug} ({len(md_text)} bytes)")
        return render_template(
            'page.html',
            slug=slug,
            content=html_content,
            toc=toc_content,
            nav_items=build_nav(content_root, tree, slug),
        )

    @app.route('/content/<path:filename>')
    def content_asset(filename):
        """Serve images stored alongside the documents."""
        if Path(filename).suffix.lower() not in IMAGE_EXTENSIONS:
            abort(404)
        return send_from_directory(content_root, filename)

    @app.route(f'{EDITOR_PREFIX}/editor')
    def editor_page():
        if not store.writable:
            abort(403, description='Editor is development only')
        return render_template(
            'editor.html',
            open_slug=request.args.get('open', ''),
            status_reset_delay=config.get('status_reset_delay', 2.0),
        )

    return app


if __name__ == '__main__':
    create_app().run(debug=True, host='localhost', port=8000)
