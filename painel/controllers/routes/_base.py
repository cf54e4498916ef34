"""
Helpers compartilhados pelos blueprints da API.

Funcoes:
    - json_body: corpo JSON da requisicao como dict
    - request_payload: dados de JSON ou de multipart (campo ``payload``)
    - pending_files_from_request: arquivos enviados como ``PendingFile``
    - arg_bool / arg_int: leitura de query string
"""

import json

from flask import request

from painel.errors import ValidationFailure
from painel.workflow.completion import PendingFile


def json_body() -> dict:
    """
    Retorna o corpo JSON da requisicao.

    Raises:
        ValidationFailure: corpo ausente ou que nao e um objeto JSON.
    """
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationFailure("O corpo da requisição deve ser um objeto JSON.")
    return data


def request_payload() -> dict:
    """
    Le os dados enviados em JSON ou, em multipart, do campo ``payload``.

    Uploads de acoes chegam como ``multipart/form-data`` com os arquivos em
    ``files`` e as edicoes serializadas em ``payload``.
    """
    if request.mimetype == "multipart/form-data":
        raw = request.form.get("payload")
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            raise ValidationFailure("Campo payload com JSON inválido.", field="payload") from None
        if not isinstance(data, dict):
            raise ValidationFailure("Campo payload deve ser um objeto JSON.", field="payload")
        return data
    return json_body()


def pending_files_from_request(field: str = "files") -> list[PendingFile]:
    """Read the uploaded files of ``field`` into memory."""
    return [
        PendingFile.from_filestorage(upload)
        for upload in request.files.getlist(field)
        if upload and upload.filename
    ]


def peek_bytes(pending: PendingFile, size: int = 512) -> bytes:
    """Primeiros bytes de um arquivo pendente (para checagem de assinatura)."""
    return pending.data[:size]


def arg_bool(name: str) -> bool | None:
    raw = request.args.get(name)
    if raw is None:
        return None
    return raw.strip().lower() in {"1", "true", "yes", "sim"}


def arg_int(name: str, default: int | None = None) -> int | None:
    raw = request.args.get(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValidationFailure(f"Parâmetro {name} deve ser numérico.", field=name) from None
