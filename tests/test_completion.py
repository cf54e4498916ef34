import pytest

from conftest import MemoryStorage
from painel.errors import StorageError, ValidationFailure
from painel.workflow.actions import (
    Action,
    ActionType,
    Attachment,
    DocumentData,
    DocumentField,
    InfoData,
)
from painel.workflow.completion import (
    PendingFile,
    apply_edits,
    merge_attachments,
    prepare_completion,
    save_action_progress,
    upload_pending_files,
    validate_completion,
)


def _file(name='nota.txt', data=b'conteudo'):
    return PendingFile(name=name, content_type='text/plain', data=data)


def _document(required=True, value=None):
    return Action.new(
        ActionType.DOCUMENT,
        'Ficha cadastral',
        'Preencha os dados',
        data=DocumentData(
            fields=(
                DocumentField(id='cpf', type='text', label='CPF', value=value, required=required),
                DocumentField(id='ok', type='checkbox', label='Confirmo', required=True),
            )
        ),
    )


# --- Edições ---

def test_apply_edits_by_type():
    text = Action.new(ActionType.TEXT, 'Protocolo', 'Informe o número')
    edited = apply_edits(text, {'value': '123', 'title': '  Protocolo SEFAZ '})
    assert edited.data.value == '123'
    assert edited.title == 'Protocolo SEFAZ'
    assert text.data.value is None

    info = Action.new(ActionType.INFO, 'Aviso')
    edited = apply_edits(info, {'info_title': 'Férias', 'has_attachments': 1})
    assert edited.data.info_title == 'Férias'
    assert edited.data.has_attachments is True

    document = apply_edits(_document(), {'fields': {'cpf': '529.982.247-25'}})
    assert document.data.fields[0].value == '529.982.247-25'


def test_apply_edits_rejects_keys_of_other_types():
    text = Action.new(ActionType.TEXT, 'Protocolo', 'Informe o número')
    with pytest.raises(ValidationFailure) as exc:
        apply_edits(text, {'info_title': 'x'})
    assert exc.value.field == 'info_title'

    with pytest.raises(ValidationFailure):
        apply_edits(_document(), {'fields': {'inexistente': 1}})
    with pytest.raises(ValidationFailure):
        apply_edits(_document(), {'fields': ['cpf']})


# --- Validação ---

def test_validation_reports_first_problem():
    info = Action.new(ActionType.INFO, 'Aviso')
    assert validate_completion(info) == 'O título da informação é obrigatório.'

    info = apply_edits(info, {'info_title': 'Férias'})
    assert validate_completion(info) == 'A descrição da informação é obrigatória.'

    info = apply_edits(info, {'info_description': 'Escala de julho', 'has_attachments': True})
    assert validate_completion(info) == 'Anexe pelo menos um arquivo para esta informação.'
    assert validate_completion(info, [_file()]) is None

    text = Action.new(ActionType.TEXT, 'Protocolo', 'Informe')
    assert validate_completion(apply_edits(text, {'description': ' '})) == 'A descrição da ação é obrigatória.'


def test_file_upload_needs_files_or_existing_attachments():
    upload = Action.new(ActionType.FILE_UPLOAD, 'Comprovante', 'Envie o comprovante')
    assert validate_completion(upload) == 'Envie pelo menos um arquivo para concluir esta ação.'
    assert validate_completion(upload, [_file()]) is None

    attached = merge_attachments(upload, [Attachment(id='1', name='a.pdf', url='/files/a', path='a')])
    assert validate_completion(attached) is None


def test_document_required_fields():
    assert validate_completion(_document()) == "O campo 'CPF' é obrigatório."
    assert validate_completion(_document(value='123')) is None
    assert validate_completion(_document(required=False)) is None


# --- Envio ---

def test_upload_pending_files_in_order():
    storage = MemoryStorage()
    attachments = upload_pending_files(
        [_file('a.txt'), _file('b.txt', b'bb')], storage=storage, task_id=5, action_id='act'
    )
    assert [item.name for item in attachments] == ['a.txt', 'b.txt']
    assert all(item.path.startswith('tasks/5/actions/act/') for item in attachments)
    assert attachments[1].size == 2
    assert attachments[0].type == 'text'
    assert attachments[0].url == f'/files/{attachments[0].path}'
    assert len(storage.objects) == 2


def test_failed_upload_removes_the_rest_of_the_batch():
    storage = MemoryStorage(fail_on='ruim')
    with pytest.raises(StorageError):
        upload_pending_files(
            [_file('bom.txt'), _file('ruim.txt'), _file('outro.txt')],
            storage=storage,
            task_id=5,
            action_id='act',
        )
    assert storage.uploads == 3
    assert storage.objects == {}


def test_upload_nothing():
    storage = MemoryStorage()
    assert upload_pending_files([], storage=storage, task_id=1, action_id='a') == []
    assert storage.uploads == 0


# --- Pontos de entrada ---

def test_prepare_completion_validates_before_uploading():
    storage = MemoryStorage()
    with pytest.raises(ValidationFailure):
        prepare_completion(_document(), {}, [_file()], storage=storage, task_id=1)
    assert storage.uploads == 0


def test_prepare_completion_merges_attachments_without_completing():
    storage = MemoryStorage()
    info = Action.new(ActionType.INFO, 'Aviso', data=InfoData(has_attachments=True))
    prepared = prepare_completion(
        info,
        {'info_title': 'Escala', 'info_description': 'Julho'},
        [_file('escala.txt')],
        storage=storage,
        task_id=3,
    )
    assert not prepared.completed
    assert len(prepared.attachments) == 1
    assert prepared.data.file_urls == (prepared.attachments[0].url,)
    assert info.attachments == ()


def test_prepare_completion_keeps_action_intact_when_storage_fails():
    storage = MemoryStorage(fail_on='comprovante')
    upload = Action.new(ActionType.FILE_UPLOAD, 'Comprovante', 'Envie')
    with pytest.raises(StorageError):
        prepare_completion(upload, None, [_file('comprovante.txt')], storage=storage, task_id=3)
    assert upload.attachments == ()


def test_save_progress_skips_validation():
    storage = MemoryStorage()
    saved = save_action_progress(_document(), {'fields': {'cpf': ''}}, [], storage=storage, task_id=1)
    assert saved.data.saved_progress is True
    assert not saved.completed
