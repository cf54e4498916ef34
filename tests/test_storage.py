import re

import pytest

from conftest import login
from painel import app, db
from painel.errors import StorageError
from painel.models.tables import User
from painel.services.storage import LocalObjectStorage, build_object_path, get_storage, set_storage

USERS = {}


def setup_module(module):
    with app.app_context():
        app.config['WTF_CSRF_ENABLED'] = False
        db.drop_all()
        db.create_all()
        user = User(name='Leitor Arquivos', email='leitor@storage.test', role='employee')
        user.set_password('Senha@123')
        db.session.add(user)
        db.session.commit()
        USERS['reader'] = user.id


def test_build_object_path():
    assert build_object_path('projects', 3, 'files', filename='relatório final.pdf', timestamped=False) == (
        'projects/3/files/relatorio_final.pdf'
    )
    stamped = build_object_path('tasks', 1, 'actions', 'abc', filename='nota.txt')
    assert re.fullmatch(r'tasks/1/actions/abc/\d+_[0-9a-f]{8}_nota\.txt', stamped)
    assert build_object_path('/users/', 7) == 'users/7'


def test_local_storage_round_trip(tmp_path):
    storage = LocalObjectStorage(str(tmp_path), base_url='/arquivos/')
    handle = storage.upload('tasks/1/a.txt', b'abc', 'text/plain')
    assert handle == 'tasks/1/a.txt'
    assert storage.read(handle) == b'abc'
    assert storage.get_download_url(handle) == '/arquivos/tasks/1/a.txt'
    assert storage.list('tasks/1') == ['tasks/1/a.txt']
    assert storage.list('tasks/2') == []

    moved = storage.move(handle, 'projects/9/files/a.txt')
    assert storage.list('tasks/1') == []
    assert storage.read(moved) == b'abc'

    storage.delete(moved)
    storage.delete(moved)
    with pytest.raises(StorageError):
        storage.read(moved)


def test_local_storage_rejects_paths_outside_root(tmp_path):
    storage = LocalObjectStorage(str(tmp_path / 'root'))
    with pytest.raises(StorageError):
        storage.upload('../fora.txt', b'x')
    with pytest.raises(StorageError):
        storage.read('')


def test_default_storage_uses_configured_root():
    original = app.extensions.pop('painel_storage', None)
    try:
        with app.app_context():
            storage = get_storage()
            assert isinstance(storage, LocalObjectStorage)
            assert get_storage() is storage
    finally:
        if original is not None:
            set_storage(app, original)


def test_files_route_serves_local_objects(tmp_path):
    original = app.extensions.get('painel_storage')
    storage = LocalObjectStorage(str(tmp_path))
    set_storage(app, storage)
    try:
        handle = storage.upload('projects/1/files/guia.txt', b'guia paga', 'text/plain')
        client = app.test_client()
        assert client.get(f'/files/{handle}').status_code == 401

        login(client, USERS['reader'])
        resp = client.get(f'/files/{handle}')
        assert resp.status_code == 200
        assert resp.data == b'guia paga'
        assert client.get('/files/projects/1/files/nada.txt').status_code == 404
    finally:
        if original is not None:
            set_storage(app, original)
        else:
            app.extensions.pop('painel_storage', None)


def test_ping():
    resp = app.test_client().get('/api/v1/ping')
    assert resp.status_code == 200
    assert resp.get_json() == {'status': 'ok', 'database': 'ok'}
    assert resp.headers['X-Content-Type-Options'] == 'nosniff'
    assert resp.headers['X-Request-ID']
