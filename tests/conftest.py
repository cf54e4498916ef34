import os
import threading

import pytest

os.environ['DATABASE_URL'] = 'sqlite:///:memory:'
os.environ['TESTING'] = '1'

from painel.errors import StorageError  # noqa: E402


class MemoryStorage:
    """In-memory object storage; ``fail_on`` makes uploads whose path contains it fail."""

    def __init__(self, fail_on=None, fail_moves=False):
        self.objects = {}
        self.fail_on = fail_on
        self.fail_moves = fail_moves
        self.uploads = 0
        self._lock = threading.Lock()

    def upload(self, path, data, content_type=None):
        with self._lock:
            self.uploads += 1
        if self.fail_on and self.fail_on in path:
            raise StorageError(f'falha simulada ao enviar {path}')
        with self._lock:
            self.objects[path] = data
        return path

    def get_download_url(self, handle):
        return f'/files/{handle}'

    def delete(self, handle):
        with self._lock:
            self.objects.pop(handle, None)

    def list(self, prefix):
        prefix = prefix.rstrip('/') + '/'
        return sorted(key for key in self.objects if key.startswith(prefix))

    def read(self, handle):
        try:
            return self.objects[handle]
        except KeyError:
            raise StorageError(f'Arquivo não encontrado: {handle}') from None

    def move(self, source, destination):
        if self.fail_moves:
            raise StorageError(f'falha simulada ao mover {source}')
        self.objects[destination] = self.objects.pop(source)
        return destination


@pytest.fixture
def memory_storage():
    return MemoryStorage()


def login(client, user_id):
    """Open a Flask-Login session for ``user_id`` on the test client."""
    with client.session_transaction() as sess:
        sess['_user_id'] = str(user_id)
        sess['_fresh'] = True
