import io
from unittest.mock import patch

from sqlalchemy.exc import SQLAlchemyError

from conftest import MemoryStorage, login
from painel import app, db
from painel.constants import MESSAGE_TYPE_TASK_SUBMISSION
from painel.errors import StorageError
from painel.models.tables import ActivityLog, Project, ProjectFile, ProjectMessage, Reward, Task, User
from painel.services import tasks as task_service
from painel.services.notifications import create_notification
from painel.services.projects import find_task_submission_message, post_system_message
from painel.services.storage import set_storage

USERS = {}
PROJECT = {}


def setup_module(module):
    with app.app_context():
        app.config['WTF_CSRF_ENABLED'] = False
        db.drop_all()
        db.create_all()
        for key, role in (('admin', 'admin'), ('manager', 'manager'), ('employee', 'employee')):
            user = User(name=f'Pessoa {key.title()}', email=f'{key}@projetos.test', role=role)
            user.set_password('Senha@123')
            db.session.add(user)
            db.session.commit()
            USERS[key] = user.id
        project = Project(name='Auditoria', managers=[USERS['manager']], created_by=USERS['admin'])
        db.session.add(project)
        db.session.commit()
        PROJECT['id'] = project.id


def test_create_project_route():
    client = app.test_client()
    login(client, USERS['manager'])
    assert client.post('/api/v1/projects', json={'name': 'Novo'}).status_code == 403

    login(client, USERS['admin'])
    resp = client.post(
        '/api/v1/projects',
        json={'name': 'Balanço 2024', 'start_date': '2024-01-01', 'end_date': '2024-12-31', 'managers': [USERS['manager']]},
    )
    assert resp.status_code == 201
    data = resp.get_json()
    assert data['status'] == 'planning'
    assert data['managers'] == [USERS['manager']]

    resp = client.post('/api/v1/projects', json={'name': 'Datas', 'start_date': '2024-05-01', 'end_date': '2024-01-01'})
    assert resp.status_code == 400
    assert resp.get_json()['field'] == 'end_date'


def test_list_projects_visibility():
    client = app.test_client()
    login(client, USERS['employee'])
    assert client.get('/api/v1/projects').get_json() == []

    login(client, USERS['manager'])
    names = [item['name'] for item in client.get('/api/v1/projects').get_json()]
    assert 'Auditoria' in names

    resp = client.get(f'/api/v1/projects/{PROJECT["id"]}')
    assert resp.status_code == 200
    assert resp.get_json()['tasks'] == []
    assert client.get('/api/v1/projects/999999').status_code == 404


def test_project_chat():
    client = app.test_client()
    login(client, USERS['employee'])
    resp = client.post(f'/api/v1/projects/{PROJECT["id"]}/messages', json={'content': ' Bom dia '})
    assert resp.status_code == 201
    assert resp.get_json()['content'] == 'Bom dia'
    assert resp.get_json()['user_name'] == 'Pessoa Employee'
    assert client.post(f'/api/v1/projects/{PROJECT["id"]}/messages', json={'content': '  '}).status_code == 400

    messages = client.get(f'/api/v1/projects/{PROJECT["id"]}/messages').get_json()
    assert [item['content'] for item in messages] == ['Bom dia']


def test_system_messages_never_raise():
    with app.app_context():
        assert post_system_message(PROJECT['id'], {'content': 'x', 'message_type': 'alerta'}) is None
        assert post_system_message(PROJECT['id'], {'message_type': 'general'}) is None

        original = post_system_message(
            PROJECT['id'],
            {
                'content': 'Enviada',
                'message_type': MESSAGE_TYPE_TASK_SUBMISSION,
                'quoted_content': 'Tarefa: Conciliação - [Ver Tarefa](/tasks/42)',
            },
        )
        assert original.user_name == 'Sistema'
        assert find_task_submission_message(PROJECT['id'], 42).id == original.id
        assert find_task_submission_message(PROJECT['id'], 4) is None

        updated = post_system_message(
            PROJECT['id'],
            {'content': 'Enviada e aprovada', 'message_type': 'task_approval', 'original_message_id': original.id},
        )
        assert updated.id == original.id
        assert updated.content == 'Enviada e aprovada'


def test_system_message_database_failure_is_logged_not_raised():
    with app.app_context():
        before = ProjectMessage.query.count()
        with patch('sqlalchemy.orm.Session.commit', side_effect=SQLAlchemyError('db fora do ar')):
            assert post_system_message(PROJECT['id'], {'content': 'Aviso', 'message_type': 'general'}) is None
        assert ProjectMessage.query.count() == before


def test_notification_routes():
    with app.app_context():
        for index in range(3):
            create_notification(USERS['employee'], type='reward_earned', title='Recompensa', message=f'n{index}')
        other = create_notification(USERS['manager'], type='reward_earned', title='Recompensa', message='outro')
        db.session.commit()
        other_id = other.id

    client = app.test_client()
    login(client, USERS['employee'])
    notifications = client.get('/api/v1/notifications?unread=1').get_json()
    assert len(notifications) == 3
    assert client.get('/api/v1/notifications?limit=2').get_json()[0]['message'] == 'n2'

    first_id = notifications[-1]['id']
    resp = client.post(f'/api/v1/notifications/{first_id}/read')
    assert resp.status_code == 200
    assert resp.get_json()['read'] is True
    assert len(client.get('/api/v1/notifications?unread=1').get_json()) == 2

    assert client.post('/api/v1/notifications/read-all').get_json() == {'updated': 2}
    assert client.get('/api/v1/notifications?unread=true').get_json() == []
    assert client.post(f'/api/v1/notifications/{other_id}/read').status_code == 404


def _new_project(name, **extra):
    with app.app_context():
        project = Project(name=name, managers=[USERS['manager']], created_by=USERS['admin'], **extra)
        db.session.add(project)
        db.session.commit()
        return project.id


def test_update_project_route():
    project_id = _new_project('Fechamento', status='active')
    client = app.test_client()

    login(client, USERS['employee'])
    assert client.patch(f'/api/v1/projects/{project_id}', json={'name': 'X'}).status_code == 403

    login(client, USERS['manager'])
    resp = client.patch(
        f'/api/v1/projects/{project_id}',
        json={'name': ' Fechamento anual ', 'start_date': '2024-02-01', 'end_date': '2024-03-01'},
    )
    assert resp.status_code == 200
    data = resp.get_json()
    assert data['name'] == 'Fechamento anual'
    assert data['status'] == 'active'
    assert data['end_date'] == '2024-03-01'

    resp = client.patch(f'/api/v1/projects/{project_id}', json={'end_date': '2024-01-15'})
    assert resp.status_code == 400
    assert resp.get_json()['field'] == 'end_date'
    assert client.patch(f'/api/v1/projects/{project_id}', json={'status': 'perdido'}).status_code == 400
    assert client.patch(f'/api/v1/projects/{project_id}', json={'managers': []}).status_code == 403

    login(client, USERS['admin'])
    resp = client.patch(f'/api/v1/projects/{project_id}', json={'managers': [USERS['admin']]})
    assert resp.get_json()['managers'] == [USERS['admin']]

    with app.app_context():
        entries = ActivityLog.query.filter_by(project_id=project_id, type='project_updated').all()
        assert [entry.details['fields'] for entry in entries] == [
            ['end_date', 'name', 'start_date'],
            ['managers'],
        ]


def test_archive_and_unarchive_project():
    project_id = _new_project('Inventário', status='active')
    client = app.test_client()
    login(client, USERS['manager'])

    resp = client.post(f'/api/v1/projects/{project_id}/archive')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'archived'
    names = [item['name'] for item in client.get('/api/v1/projects?exclude_status=archived').get_json()]
    assert 'Inventário' not in names
    assert 'Auditoria' in names

    resp = client.post(f'/api/v1/projects/{project_id}/unarchive')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'planning'
    assert client.post(f'/api/v1/projects/{project_id}/unarchive').status_code == 400

    login(client, USERS['employee'])
    assert client.post(f'/api/v1/projects/{project_id}/archive').status_code == 403


def test_project_file_upload_and_delete():
    project_id = _new_project('Contratos')
    storage = MemoryStorage()
    set_storage(app, storage)
    client = app.test_client()

    login(client, USERS['employee'])
    resp = client.post(
        f'/api/v1/projects/{project_id}/files',
        data={'files': (io.BytesIO(b'minuta'), 'minuta.txt', 'text/plain')},
        content_type='multipart/form-data',
    )
    assert resp.status_code == 403

    login(client, USERS['manager'])
    assert client.post(f'/api/v1/projects/{project_id}/files', data={}, content_type='multipart/form-data').status_code == 400
    resp = client.post(
        f'/api/v1/projects/{project_id}/files',
        data={'files': (io.BytesIO(b'minuta'), 'minuta.txt', 'text/plain')},
        content_type='multipart/form-data',
    )
    assert resp.status_code == 201
    created = resp.get_json()[0]
    assert created['name'] == 'minuta.txt'
    assert created['size'] == 6
    assert created['added_from_task'] is False
    [path] = list(storage.objects)
    assert path.startswith(f'projects/{project_id}/files/')
    assert [item['id'] for item in client.get(f'/api/v1/projects/{project_id}/files').get_json()] == [created['id']]

    with patch.object(storage, 'delete', side_effect=StorageError('bucket indisponível')):
        resp = client.delete(f'/api/v1/projects/{project_id}/files/{created["id"]}')
    assert resp.status_code == 502
    with app.app_context():
        assert db.session.get(ProjectFile, created['id']) is not None

    assert client.delete(f'/api/v1/projects/{PROJECT["id"]}/files/{created["id"]}').status_code == 404
    assert client.delete(f'/api/v1/projects/{project_id}/files/{created["id"]}').status_code == 204
    assert storage.objects == {}
    assert client.get(f'/api/v1/projects/{project_id}/files').get_json() == []


def test_failed_project_upload_leaves_nothing_behind():
    project_id = _new_project('Notas fiscais')
    storage = MemoryStorage(fail_on='segunda')
    set_storage(app, storage)
    client = app.test_client()
    login(client, USERS['manager'])

    resp = client.post(
        f'/api/v1/projects/{project_id}/files',
        data={
            'files': [
                (io.BytesIO(b'um'), 'primeira.txt', 'text/plain'),
                (io.BytesIO(b'dois'), 'segunda.txt', 'text/plain'),
            ]
        },
        content_type='multipart/form-data',
    )
    assert resp.status_code == 502
    assert storage.objects == {}
    with app.app_context():
        assert ProjectFile.query.filter_by(project_id=project_id).count() == 0


def test_delete_project_removes_tasks_and_files():
    project_id = _new_project('Encerramento')
    storage = MemoryStorage()
    set_storage(app, storage)
    with app.app_context():
        manager = db.session.get(User, USERS['manager'])
        task = task_service.create_task({'project_id': project_id, 'title': 'Baixa'}, created_by=manager)
        task_id = task.id
        db.session.add(Reward(user_id=USERS['employee'], type='task_completion', amount=10,
                              description='Baixa', project_id=project_id, task_id=task_id))
        db.session.commit()
    storage.objects[f'tasks/{task_id}/actions/a1/recibo.txt'] = b'r'
    storage.objects[f'projects/{project_id}/files/ata.txt'] = b'a'
    storage.objects[f'projects/{PROJECT["id"]}/files/outro.txt'] = b'o'

    client = app.test_client()
    login(client, USERS['manager'])
    assert client.delete(f'/api/v1/projects/{project_id}').status_code == 403

    login(client, USERS['admin'])
    assert client.delete(f'/api/v1/projects/{project_id}').status_code == 204
    assert client.get(f'/api/v1/projects/{project_id}').status_code == 404
    assert list(storage.objects) == [f'projects/{PROJECT["id"]}/files/outro.txt']

    with app.app_context():
        assert db.session.get(Task, task_id) is None
        reward = Reward.query.filter_by(description='Baixa').one()
        assert reward.project_id is None and reward.task_id is None
        assert ActivityLog.query.filter_by(project_id=project_id, type='project_deleted').count() == 1
