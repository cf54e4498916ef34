import io
from unittest.mock import patch

import pytest

from conftest import MemoryStorage, login
from painel import app, db
from painel.errors import (
    NotFoundError,
    PermissionDenied,
    StorageError,
    TransitionNotAllowed,
    ValidationFailure,
)
from painel.extensions.cache import cache
from painel.models.tables import (
    Notification,
    Project,
    ProjectFile,
    ProjectMessage,
    Reward,
    Task,
    User,
)
from painel.services import tasks as task_service
from painel.services.projects import find_task_submission_message
from painel.services.storage import set_storage
from painel.services.users import delete_user
from painel.workflow.completion import PendingFile
from painel.workflow.state_machine import TaskStatus

USERS = {}
PROJECT = {}

TEXT_ACTION = {'type': 'text', 'title': 'Protocolo', 'description': 'Informe o protocolo da guia'}
UPLOAD_ACTION = {'type': 'file_upload', 'title': 'Comprovante', 'description': 'Envie o comprovante'}


def setup_module(module):
    with app.app_context():
        app.config['WTF_CSRF_ENABLED'] = False
        db.drop_all()
        db.create_all()
        cache.clear()
        people = (
            ('admin', 'Admin Geral', 'admin'),
            ('manager', 'Marcos Lima', 'manager'),
            ('employee', 'Joana Souza', 'employee'),
            ('outsider', 'Pedro Alves', 'employee'),
        )
        for key, name, role in people:
            user = User(name=name, email=f'{key}@tarefas.test', role=role)
            user.set_password('Senha@123')
            db.session.add(user)
            db.session.commit()
            USERS[key] = user.id

        project = Project(name='Fechamento fiscal', managers=[USERS['manager']], created_by=USERS['admin'])
        db.session.add(project)
        db.session.commit()
        PROJECT['id'] = project.id


def _user(key):
    return db.session.get(User, USERS[key])


def _create_task(title='Guia mensal', actions=(TEXT_ACTION, UPLOAD_ACTION), **extra):
    with app.app_context():
        data = {
            'project_id': PROJECT['id'],
            'title': title,
            'assigned_to': USERS['employee'],
            'actions': [dict(item) for item in actions],
        }
        data.update(extra)
        task = task_service.create_task(data, created_by=_user('manager'))
        return task.id, [action['id'] for action in task.actions]


def _client(key):
    client = app.test_client()
    login(client, USERS[key])
    return client


def _complete_all(task_id, action_ids, storage):
    """Complete the text and upload actions of a task created with the defaults."""
    with app.app_context():
        employee = _user('employee')
        task_service.complete_task_action(task_id, action_ids[0], user=employee, edits={'value': 'ok'})
        if len(action_ids) > 1:
            task_service.complete_task_action(
                task_id,
                action_ids[1],
                user=employee,
                pending_files=[PendingFile('recibo.txt', 'text/plain', b'recibo')],
                storage=storage,
            )


# =============================================================================
# CRIACAO E EDICAO
# =============================================================================

def test_create_task_starts_pending_with_reward_and_history():
    task_id, action_ids = _create_task()
    with app.app_context():
        task = db.session.get(Task, task_id)
        assert task.status is TaskStatus.PENDING
        assert task.coins_reward == 30
        assert [entry.to_status for entry in task.status_history] == [TaskStatus.PENDING]
        assert [action.step_number for action in task.get_actions()] == [1, 1]
        assert len(set(action_ids)) == 2


def test_create_task_permissions_and_validation():
    with app.app_context():
        with pytest.raises(PermissionDenied):
            task_service.create_task(
                {'project_id': PROJECT['id'], 'title': 'X'}, created_by=_user('employee')
            )
        with pytest.raises(ValidationFailure) as exc:
            task_service.create_task({'title': 'Sem projeto'}, created_by=_user('admin'))
        assert exc.value.field == 'project_id'
        with pytest.raises(ValidationFailure):
            task_service.create_task(
                {'project_id': PROJECT['id'], 'title': 'X', 'actions': [{'type': 'text', 'title': 'Sem descrição'}]},
                created_by=_user('admin'),
            )


def test_create_task_route():
    payload = {
        'project_id': PROJECT['id'],
        'title': 'Conferir notas',
        'difficulty_level': 3,
        'assigned_to': USERS['employee'],
        'actions': [TEXT_ACTION],
    }
    assert _client('employee').post('/api/v1/tasks', json=payload).status_code == 403

    client = _client('manager')
    resp = client.post('/api/v1/tasks', json=payload)
    assert resp.status_code == 201
    data = resp.get_json()
    assert data['status'] == 'pending'
    assert data['status_label'] == 'Pendente'
    assert data['coins_reward'] == 45

    resp = client.post('/api/v1/tasks', json=dict(payload, difficulty_level=12))
    assert resp.status_code == 400
    assert resp.get_json()['field'] == 'difficulty_level'


def test_status_cannot_be_edited_directly():
    task_id, _ = _create_task()
    with app.app_context():
        with pytest.raises(ValidationFailure):
            task_service.update_task(task_id, {'status': 'completed'}, acting_user=_user('manager'))

    resp = _client('manager').patch(f'/api/v1/tasks/{task_id}', json={'status': 'completed'})
    assert resp.status_code == 400
    assert resp.get_json()['field'] == 'status'

    resp = _client('manager').patch(f'/api/v1/tasks/{task_id}', json={'difficulty_level': 4})
    assert resp.status_code == 200
    assert resp.get_json()['coins_reward'] == 60


def test_steps_route():
    task_id, action_ids = _create_task()
    resp = _client('employee').get(f'/api/v1/tasks/{task_id}/steps')
    assert resp.status_code == 200
    data = resp.get_json()
    assert data['total_steps'] == 1
    assert [action['id'] for action in data['steps'][0]['actions']] == action_ids


# =============================================================================
# ACOES
# =============================================================================

def test_outsider_cannot_work_on_task():
    task_id, action_ids = _create_task()
    client = _client('outsider')
    resp = client.post(f'/api/v1/tasks/{task_id}/actions/{action_ids[0]}/complete', json={'value': 'x'})
    assert resp.status_code == 403
    assert client.post(f'/api/v1/tasks/{task_id}/comments', json={'text': 'oi'}).status_code == 403


def test_progress_and_uncomplete_routes():
    task_id, action_ids = _create_task()
    client = _client('employee')
    url = f'/api/v1/tasks/{task_id}/actions/{action_ids[0]}'

    resp = client.post(f'{url}/progress', json={'value': 'rascunho'})
    assert resp.status_code == 200
    assert resp.get_json()['data']['saved_progress'] is True
    assert resp.get_json()['completed'] is False

    resp = client.post(f'{url}/complete', json={'value': 'final'})
    assert resp.status_code == 200
    assert resp.get_json()['completed'] is True
    assert resp.get_json()['data']['saved_progress'] is False

    resp = client.post(f'{url}/uncomplete')
    assert resp.status_code == 200
    assert resp.get_json()['completed'] is False
    assert resp.get_json()['completed_at'] is None

    assert client.post(f'/api/v1/tasks/{task_id}/actions/nao-existe/complete', json={}).status_code == 404


def test_patching_actions_cannot_forge_completion():
    info_action = {
        'type': 'info',
        'title': 'Leitura do manual',
        'data': {'has_attachments': True},
    }
    task_id, (info_id,) = _create_task(title='Manual', actions=(info_action,))
    client = _client('employee')
    forged = dict(
        info_action,
        id=info_id,
        completed=True,
        completed_at='2024-05-02T09:30:00',
        completed_by=USERS['manager'],
        data={'has_attachments': True, 'file_urls': ['/files/forjado.pdf']},
    )
    resp = client.patch(f'/api/v1/tasks/{task_id}', json={'actions': [forged]})
    assert resp.status_code == 200
    with app.app_context():
        (action,) = db.session.get(Task, task_id).get_actions()
        assert action.completed is False
        assert action.completed_by is None
        assert action.data.file_urls == ()
    assert client.post(f'/api/v1/tasks/{task_id}/submit').status_code == 409


def test_patching_actions_keeps_recorded_completion():
    task_id, (text_id,) = _create_task(title='Protocolo', actions=(TEXT_ACTION,))
    _complete_all(task_id, [text_id], storage=None)
    with app.app_context():
        (done,) = db.session.get(Task, task_id).get_actions()

    edited = dict(TEXT_ACTION, id=text_id, title='Protocolo da guia', completed=False)
    new_action = dict(TEXT_ACTION, title='Conferência', completed=True)
    resp = _client('employee').patch(f'/api/v1/tasks/{task_id}', json={'actions': [edited, new_action]})
    assert resp.status_code == 200
    with app.app_context():
        kept, added = db.session.get(Task, task_id).get_actions()
        assert kept.title == 'Protocolo da guia'
        assert kept.completed is True
        assert (kept.completed_at, kept.completed_by) == (done.completed_at, USERS['employee'])
        assert added.completed is False


def test_comments_route():
    task_id, _ = _create_task()
    client = _client('employee')
    resp = client.post(f'/api/v1/tasks/{task_id}/comments', json={'text': 'Guia <b>paga</b>'})
    assert resp.status_code == 201
    assert resp.get_json()['text'] == 'Guia &lt;b&gt;paga&lt;&#x2F;b&gt;'
    assert resp.get_json()['user_name'] == 'Joana Souza'
    assert client.post(f'/api/v1/tasks/{task_id}/comments', json={'text': ''}).status_code == 400


# =============================================================================
# FLUXO DE APROVACAO
# =============================================================================

def test_full_approval_flow():
    storage = MemoryStorage()
    set_storage(app, storage)
    task_id, (text_id, upload_id) = _create_task()
    with app.app_context():
        coins_before = _user('employee').coins

    employee = _client('employee')
    resp = employee.post(f'/api/v1/tasks/{task_id}/submit')
    assert resp.status_code == 409
    assert resp.get_json()['error'] == 'transition_not_allowed'

    resp = employee.post(f'/api/v1/tasks/{task_id}/actions/{text_id}/complete', json={'value': 'SEFAZ-123'})
    assert resp.status_code == 200
    assert resp.get_json()['completed_by'] == USERS['employee']
    assert resp.get_json()['data']['value'] == 'SEFAZ-123'

    resp = employee.post(f'/api/v1/tasks/{task_id}/actions/{upload_id}/complete', json={})
    assert resp.status_code == 400
    assert resp.get_json()['message'] == 'Envie pelo menos um arquivo para concluir esta ação.'

    resp = employee.post(
        f'/api/v1/tasks/{task_id}/actions/{upload_id}/complete',
        data={'payload': '{}', 'files': (io.BytesIO(b'comprovante'), 'comprovante.txt', 'text/plain')},
        content_type='multipart/form-data',
    )
    assert resp.status_code == 200
    attachment = resp.get_json()['attachments'][0]
    assert attachment['name'] == 'comprovante.txt'
    assert attachment['path'].startswith(f'tasks/{task_id}/actions/{upload_id}/')

    resp = employee.post(f'/api/v1/tasks/{task_id}/submit')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'waiting_approval'

    with app.app_context():
        submission = find_task_submission_message(PROJECT['id'], task_id)
        assert submission is not None
        assert submission.content == 'A tarefa "Guia mensal" foi enviada para aprovação por Joana Souza.'
        submission_id = submission.id

    assert employee.post(f'/api/v1/tasks/{task_id}/approve').status_code == 403
    resp = employee.post(f'/api/v1/tasks/{task_id}/actions/{text_id}/uncomplete')
    assert resp.status_code == 409

    resp = _client('admin').post(f'/api/v1/tasks/{task_id}/approve')
    assert resp.status_code == 200
    data = resp.get_json()
    assert data['status'] == 'completed'
    assert data['completed_at'] is not None
    assert data['files_moved_to_project'] is True

    with app.app_context():
        message = db.session.get(ProjectMessage, submission_id)
        assert message.content.startswith(
            'A tarefa "Guia mensal" foi enviada para aprovação por Joana Souza no dia '
        )
        assert ', e aprovada por Admin Geral no dia ' in message.content
        approvals = ProjectMessage.query.filter_by(project_id=PROJECT['id'], message_type='task_approval')
        assert not [item for item in approvals if f'/tasks/{task_id})' in (item.quoted_content or '')]

        assert _user('employee').coins == coins_before + 30
        reward = Reward.query.filter_by(task_id=task_id).one()
        assert reward.amount == 30 and reward.type == 'task_completion'
        assert Notification.query.filter_by(
            user_id=USERS['employee'], type='reward_earned', related_entity_id=str(task_id)
        ).count() == 1

        project_files = ProjectFile.query.filter_by(task_id=task_id).all()
        assert [item.name for item in project_files] == ['comprovante.txt']
        assert project_files[0].size == len(b'comprovante')
        assert project_files[0].added_from_task is True
        assert project_files[0].path.startswith(f'projects/{PROJECT["id"]}/files/')

        task = db.session.get(Task, task_id)
        moved = task.get_actions()[1].attachments[0]
        assert moved.path == project_files[0].path
        assert moved.url == f'/files/{moved.path}'

    assert not storage.list(f'tasks/{task_id}')
    assert storage.objects[project_files[0].path] == b'comprovante'

    resp = _client('admin').post(f'/api/v1/tasks/{task_id}/move-files')
    assert resp.status_code == 200
    assert resp.get_json() == {'moved': 0}


def test_reject_returns_task_to_pending():
    storage = MemoryStorage()
    task_id, action_ids = _create_task(title='Folha de pagamento')
    _complete_all(task_id, action_ids, storage)
    with app.app_context():
        task_service.submit_for_approval(task_id, user=_user('employee'))

    resp = _client('admin').post(f'/api/v1/tasks/{task_id}/reject', json={'reason': 'Faltou o recibo'})
    assert resp.status_code == 200
    data = resp.get_json()
    assert data['status'] == 'pending'
    assert data['comments'][-1]['text'] == 'Reprovada: Faltou o recibo'

    resp = _client('employee').post(f'/api/v1/tasks/{task_id}/actions/{action_ids[0]}/uncomplete')
    assert resp.status_code == 200

    with app.app_context():
        history = [entry.to_status for entry in db.session.get(Task, task_id).status_history]
        assert history == [TaskStatus.PENDING, TaskStatus.WAITING_APPROVAL, TaskStatus.PENDING]
        with pytest.raises(TransitionNotAllowed):
            task_service.reject_task(task_id, user=_user('admin'))


def test_approval_without_submission_message_posts_new_message():
    task_id, action_ids = _create_task(title='Sem envio', actions=(TEXT_ACTION,))
    _complete_all(task_id, action_ids, MemoryStorage())
    with app.app_context():
        task = db.session.get(Task, task_id)
        task.status = TaskStatus.WAITING_APPROVAL
        db.session.commit()

        with pytest.raises(PermissionDenied):
            task_service.approve_task(task_id, user=_user('manager'), storage=MemoryStorage())

        task_service.approve_task(task_id, user=_user('admin'), storage=MemoryStorage())
        messages = ProjectMessage.query.filter_by(project_id=PROJECT['id'], message_type='task_approval').all()
        mine = [item for item in messages if f'/tasks/{task_id})' in item.quoted_content]
        assert len(mine) == 1
        assert 'enviada para aprovação por Usuário Desconhecido' in mine[0].content
        assert 'aprovada por Admin Geral' in mine[0].content
        assert db.session.get(Task, task_id).files_moved_to_project is True


def test_storage_failure_after_approval_keeps_status_and_can_be_retried():
    storage = MemoryStorage()
    task_id, action_ids = _create_task(title='Arquivos presos')
    _complete_all(task_id, action_ids, storage)
    with app.app_context():
        task_service.submit_for_approval(task_id, user=_user('employee'))
        storage.fail_moves = True
        with pytest.raises(StorageError):
            task_service.approve_task(task_id, user=_user('admin'), storage=storage)

    with app.app_context():
        task = db.session.get(Task, task_id)
        assert task.status is TaskStatus.COMPLETED
        assert task.files_moved_to_project is False
        assert Reward.query.filter_by(task_id=task_id).count() == 1

        storage.fail_moves = False
        created = task_service.move_files_to_project_after_approval(task_id, storage=storage)
        assert [item.name for item in created] == ['recibo.txt']
        assert db.session.get(Task, task_id).files_moved_to_project is True


def test_reward_failure_does_not_block_file_transfer():
    storage = MemoryStorage()
    task_id, action_ids = _create_task(title='Recompensa falha')
    _complete_all(task_id, action_ids, storage)
    with app.app_context():
        task_service.submit_for_approval(task_id, user=_user('employee'))
        with patch(
            'painel.services.tasks.create_task_completion_reward',
            side_effect=NotFoundError('Usuário não encontrado'),
        ):
            task = task_service.approve_task(task_id, user=_user('admin'), storage=storage)
        assert task.status is TaskStatus.COMPLETED

    with app.app_context():
        task = db.session.get(Task, task_id)
        assert task.files_moved_to_project is True
        assert Reward.query.filter_by(task_id=task_id).count() == 0
        assert ProjectFile.query.filter_by(task_id=task_id).count() == 1
    assert not storage.list(f'tasks/{task_id}')


def test_deleted_assignee_is_unassigned_before_approval():
    storage = MemoryStorage()
    with app.app_context():
        rita = User(name='Rita Campos', email='rita@tarefas.test', role='employee')
        rita.set_password('Senha@123')
        db.session.add(rita)
        db.session.commit()
        rita_id = rita.id
    task_id, (text_id,) = _create_task(title='Responsável removido', actions=(TEXT_ACTION,), assigned_to=rita_id)

    with app.app_context():
        manager = _user('manager')
        task_service.complete_task_action(task_id, text_id, user=manager, edits={'value': 'ok'})
        task_service.submit_for_approval(task_id, user=manager)

        with pytest.raises(ValidationFailure):
            delete_user(USERS['manager'])
        delete_user(rita_id)
        assert db.session.get(Task, task_id).assigned_to is None

        task = task_service.approve_task(task_id, user=_user('admin'), storage=storage)
        assert task.status is TaskStatus.COMPLETED
        assert task.files_moved_to_project is True
        assert Reward.query.filter_by(task_id=task_id).count() == 0


def test_move_files_requires_completed_task():
    task_id, _ = _create_task(title='Ainda pendente')
    with app.app_context():
        with pytest.raises(TransitionNotAllowed):
            task_service.move_files_to_project_after_approval(task_id, storage=MemoryStorage())


def test_actions_cannot_change_while_waiting_approval():
    storage = MemoryStorage()
    task_id, action_ids = _create_task(title='Congelada')
    _complete_all(task_id, action_ids, storage)
    with app.app_context():
        task_service.submit_for_approval(task_id, user=_user('employee'))
        with pytest.raises(TransitionNotAllowed):
            task_service.update_task(task_id, {'actions': [TEXT_ACTION]}, acting_user=_user('manager'))
        with pytest.raises(TransitionNotAllowed):
            task_service.save_task_action_progress(
                task_id, action_ids[0], user=_user('employee'), edits={'value': 'novo'}
            )


def test_delete_task_requires_manager():
    task_id, _ = _create_task(title='Descartável')
    assert _client('employee').delete(f'/api/v1/tasks/{task_id}').status_code == 403
    assert _client('manager').delete(f'/api/v1/tasks/{task_id}').status_code == 204
    assert _client('manager').get(f'/api/v1/tasks/{task_id}').status_code == 404
