"""
HTTP client for the editor API.

One method per endpoint; non-2xx responses raise ApiError carrying the
status code and the server's error message.
"""

import logging
from typing import Any, BinaryIO, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = 'http://localhost:8000'
DEFAULT_TIMEOUT = 10


class ApiError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(f"{status}: {message}")
        self.status = status
        self.message = message


class EditorClient:
    def __init__(self, base_url: str = DEFAULT_BASE_URL, session: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip('/')
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        logger.debug(f"EditorClient: {method} {url}")
        response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        if not response.ok:
            try:
                payload = response.json()
            except ValueError:
                payload = None
            if isinstance(payload, dict) and payload.get('error'):
                message = payload['error']
            else:
                message = response.reason or 'Request failed'
            logger.warning(f"EditorClient: {method} {path} failed with {response.status_code}: {message}")
            raise ApiError(response.status_code, message)
        return response

    def list_posts(self) -> List[Dict[str, Any]]:
        return self._request('GET', '/api/posts').json()

    def create_post(self, title: str) -> str:
        return self._request('POST', '/api/posts', json={'title': title}).json()['slug']

    def get_post(self, slug: str) -> Dict[str, Any]:
        return self._request('GET', '/api/post', params={'slug': slug}).json()

    def save_post(self, slug: str, content: str) -> None:
        self._request('PUT', '/api/post', params={'slug': slug}, json={'content': content})

    def delete_post(self, slug: str) -> None:
        self._request('DELETE', '/api/post', params={'slug': slug})

    def upload_image(self, slug: str, stream: BinaryIO, filename: str) -> str:
        files = {'file': (filename, stream)}
        return self._request('POST', '/api/upload', params={'slug': slug}, files=files).json()['filename']

    def image_preview(self, slug: str, filename: str) -> bytes:
        return self._request('GET', '/api/image_preview', params={'slug': slug, 'file': filename}).content

    def create_entry(self, path: str, kind: str) -> None:
        self._request('POST', '/api/fs', json={'type': kind, 'path': path})

    def rename(self, old_path: str, new_path: str) -> None:
        self._request('PUT', '/api/fs', json={'oldPath': old_path, 'newPath': new_path})

    def delete(self, path: str) -> None:
        self._request('DELETE', '/api/fs', json={'path': path})

    def update_meta(self, path: str, key: str, title: str) -> Dict[str, str]:
        return self._request('POST', '/api/meta', json={'path': path, 'key': key, 'title': title}).json()['meta']
