from flask import Blueprint, request, jsonify, send_file, current_app
import logging

from leafdocs.core.errors import BadRequest, ContentError
from leafdocs.version_info import __version__

# Create Blueprint
editor_bp = Blueprint('editor', __name__)
logger = logging.getLogger(__name__)

UPLOAD_FIELD = 'file'


def get_services():
    """Deferred lookup of the services attached by the app factory."""
    ext = current_app.extensions['leafdocs']
    return ext['store'], ext['uploads']


def scalar_arg(name):
    """
    Query parameter as given by the client. Repeated parameters come back
    as a list so the path sanitizer can reject them.
    """
    values = request.args.getlist(name)
    if not values:
        return None
    return values[0] if len(values) == 1 else values


def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise BadRequest('Expected a JSON object')
    return data


@editor_bp.errorhandler(ContentError)
def handle_content_error(error):
    level = logging.ERROR if error.status_code >= 500 else logging.INFO
    logger.log(level, f"Editor: {request.method} {request.path} -> {error.status_code} {error.message}")
    return jsonify(error.to_dict()), error.status_code


@editor_bp.route('/api/version')
def get_version():
    store, _ = get_services()
    return jsonify({'version': __version__, 'mode': store.mode})


@editor_bp.route('/api/posts', methods=['GET'])
def list_posts():
    """Content tree for the editor sidebar."""
    store, _ = get_services()
    tree = store.list_tree()
    return jsonify([node.to_dict() for node in tree])


@editor_bp.route('/api/posts', methods=['POST'])
def create_post():
    store, _ = get_services()
    store.ensure_writable()
    data = json_body()
    slug = store.create_document(data.get('title'))
    return jsonify({'slug': slug})


@editor_bp.route('/api/post', methods=['GET'])
def get_post():
    store, _ = get_services()
    store.ensure_writable()
    return jsonify(store.read_document(scalar_arg('slug')))


@editor_bp.route('/api/post', methods=['PUT'])
def save_post():
    store, _ = get_services()
    store.ensure_writable()
    slug = scalar_arg('slug')
    data = json_body()
    store.write_document(slug, data.get('content'))
    return jsonify({'success': True})


@editor_bp.route('/api/post', methods=['DELETE'])
def delete_post():
    store, _ = get_services()
    store.delete_document(scalar_arg('slug'))
    return jsonify({'success': True})


@editor_bp.route('/api/upload', methods=['POST'])
def upload_image():
    store, uploads = get_services()
    store.ensure_writable()
    slug = scalar_arg('slug')
    file = request.files.get(UPLOAD_FIELD)
    if file is None or not file.filename:
        # Still validate the slug first so traversal is reported as such
        store.image_dir(slug)
        raise BadRequest('No file uploaded')

    filename = uploads.save(slug, file.stream, file.filename)
    return jsonify({'filename': filename})


@editor_bp.route('/api/image_preview', methods=['GET'])
def image_preview():
    store, _ = get_services()
    path = store.image_path(scalar_arg('slug'), scalar_arg('file'))
    # Content type is inferred from the extension
    return send_file(path, max_age=0)


@editor_bp.route('/api/fs', methods=['POST'])
def create_entry():
    store, _ = get_services()
    store.ensure_writable()
    data = json_body()
    store.create_entry(data.get('path'), data.get('type'))
    return jsonify({'success': True})


@editor_bp.route('/api/fs', methods=['PUT'])
def rename_entry():
    store, _ = get_services()
    store.ensure_writable()
    data = json_body()
    store.rename(data.get('oldPath'), data.get('newPath'))
    return jsonify({'success': True})


@editor_bp.route('/api/fs', methods=['DELETE'])
def delete_entry():
    store, _ = get_services()
    store.ensure_writable()
    data = json_body()
    store.delete(data.get('path'))
    return jsonify({'success': True})


@editor_bp.route('/api/meta', methods=['POST'])
def update_meta():
    store, _ = get_services()
    store.ensure_writable()
    data = json_body()
    mapping = store.update_meta(data.get('path'), data.get('key'), data.get('title'))
    return jsonify({'success': True, 'meta': mapping})
