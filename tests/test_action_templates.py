import pytest

from conftest import login
from painel import app, db
from painel.errors import NotFoundError, ValidationFailure
from painel.extensions.cache import cache
from painel.models.tables import User
from painel.services.action_templates import (
    create_action_template,
    duplicate_action_template,
    get_action_template,
    instantiate_template,
    list_action_templates,
    reorder_action_templates,
    update_action_template,
)
from painel.workflow.actions import ActionType
from painel.workflow.completion import validate_completion

USERS = {}

ELEMENTS = [
    {'id': 'razao', 'type': 'text', 'label': 'Razão social', 'required': True, 'description': 'Nome do cliente.'},
    {'id': 'regime', 'type': 'select', 'label': 'Regime', 'options': ['Simples', 'Presumido']},
    {'id': 'aceite', 'type': 'checkbox', 'label': 'Conferido', 'required': True},
]


def setup_module(module):
    with app.app_context():
        app.config['WTF_CSRF_ENABLED'] = False
        db.drop_all()
        db.create_all()
        cache.clear()
        for key, role in (('admin', 'admin'), ('employee', 'employee')):
            user = User(name=f'Usuario {key.title()}', email=f'{key}@modelos.test', role=role)
            user.set_password('Senha@123')
            db.session.add(user)
            db.session.commit()
            USERS[key] = user.id


def test_create_orders_at_the_end_and_validates():
    with app.app_context():
        first = create_action_template({'title': 'Cadastro de cliente', 'elements': ELEMENTS})
        second = create_action_template({'title': 'Checklist de abertura', 'elements': ELEMENTS[:1]})
        assert second.order == first.order + 1
        assert first.type == 'custom' and first.is_active

        with pytest.raises(ValidationFailure) as exc:
            create_action_template({'title': 'Vazio', 'elements': []})
        assert exc.value.field == 'elements'
        with pytest.raises(ValidationFailure):
            create_action_template({'title': 'Sem rótulo', 'elements': [{'type': 'text'}]})
        with pytest.raises(ValidationFailure):
            create_action_template({'title': ' ', 'elements': ELEMENTS})
        with pytest.raises(ValidationFailure):
            create_action_template({'title': 'Tipo', 'type': 'global', 'elements': ELEMENTS})


def test_instantiate_builds_document_action():
    with app.app_context():
        template = create_action_template(
            {'title': 'Ficha fiscal', 'description': 'Dados do cliente', 'elements': ELEMENTS}
        )
        action = instantiate_template(template, step_number=2)
        assert action.type is ActionType.DOCUMENT
        assert action.title == 'Ficha fiscal'
        assert action.description == 'Nome do cliente.'
        assert action.step_number == 2
        assert [item.label for item in action.data.fields] == ['Razão social', 'Regime', 'Conferido']
        assert validate_completion(action) == "O campo 'Razão social' é obrigatório."

        bare = create_action_template({'title': 'Só título', 'elements': [{'type': 'text', 'label': 'Obs'}]})
        assert instantiate_template(bare).description == 'Só título'
        other = instantiate_template(template)
        assert other.id != action.id


def test_update_duplicate_and_reorder():
    with app.app_context():
        template = create_action_template({'title': 'Original', 'category': 'fiscal', 'elements': ELEMENTS})
        copy = duplicate_action_template(template.id)
        assert copy.title == 'Original (Cópia)'
        assert copy.elements == template.elements
        assert copy.category == 'fiscal'

        update_action_template(copy.id, {'title': ' Renomeado ', 'is_active': 0})
        assert get_action_template(copy.id).title == 'Renomeado'
        assert copy.id not in [item.id for item in list_action_templates(is_active=True)]
        with pytest.raises(ValidationFailure):
            update_action_template(copy.id, {'created_by': 1})

        reorder_action_templates([copy.id, template.id])
        ordered = list_action_templates(category='fiscal')
        assert [item.id for item in ordered] == [copy.id, template.id]
        with pytest.raises(NotFoundError):
            reorder_action_templates([999999])


def test_template_routes():
    client = app.test_client()
    login(client, USERS['employee'])
    payload = {'title': 'Abertura de empresa', 'type': 'standard', 'elements': ELEMENTS}
    assert client.post('/api/v1/action-templates', json=payload).status_code == 403

    login(client, USERS['admin'])
    resp = client.post('/api/v1/action-templates', json=payload)
    assert resp.status_code == 201
    template_id = resp.get_json()['id']
    assert resp.get_json()['type'] == 'standard'

    resp = client.post('/api/v1/action-templates', json=dict(payload, type='global'))
    assert resp.status_code == 400
    assert resp.get_json()['field'] == 'type'

    resp = client.post(f'/api/v1/action-templates/{template_id}/duplicate', json={'title': 'Abertura MEI'})
    assert resp.status_code == 201
    assert resp.get_json()['title'] == 'Abertura MEI'

    login(client, USERS['employee'])
    resp = client.post(f'/api/v1/action-templates/{template_id}/instantiate', json={'step_number': 3})
    assert resp.status_code == 201
    action = resp.get_json()
    assert action['type'] == 'document'
    assert action['data']['step_number'] == 3
    assert action['completed'] is False
    assert len(action['data']['fields']) == 3

    resp = client.post(f'/api/v1/action-templates/{template_id}/instantiate', json={'step_number': 0})
    assert resp.status_code == 400
    assert client.get('/api/v1/action-templates/999999').status_code == 404
    assert client.delete(f'/api/v1/action-templates/{template_id}').status_code == 403

    login(client, USERS['admin'])
    assert client.post('/api/v1/action-templates/reorder', json={'ids': 'x'}).status_code == 400
    assert client.delete(f'/api/v1/action-templates/{template_id}').status_code == 204
