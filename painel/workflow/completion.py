"""
Fluxo de conclusao de acoes.

Etapas, na ordem:

1. Aplica as edicoes do usuario sobre a acao (titulo, descricao, campos
   de info, valor ou campos do documento).
2. Valida o resultado; a primeira falha interrompe com uma unica
   mensagem (``ValidationFailure``) e nada e enviado ao storage.
3. Envia os arquivos pendentes em paralelo. Se qualquer envio falhar, os
   arquivos ja enviados no lote sao removidos e o erro sobe como
   ``StorageError``; a acao original permanece intacta.
4. Devolve a acao com os anexos mesclados. Marcar como concluida
   (``completed_at``/``completed_by``) fica a cargo de quem chama.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any, Iterable, Mapping, Sequence
from uuid import uuid4

from painel.errors import StorageError, ValidationFailure
from painel.services.storage import ObjectStorage, build_object_path
from painel.workflow.actions import (
    Action,
    ActionType,
    Attachment,
    DocumentData,
    InfoData,
    ValueData,
    mime_category,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 4

_COMMON_EDITS = frozenset({"title", "description"})
_EDITS_BY_DATA = {
    InfoData: frozenset({"info_title", "info_description", "has_attachments"}),
    DocumentData: frozenset({"fields"}),
    ValueData: frozenset({"value"}),
}


@dataclass(frozen=True)
class PendingFile:
    """Arquivo recebido na requisicao e ainda nao enviado ao storage."""

    name: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    @classmethod
    def from_filestorage(cls, filestorage) -> "PendingFile":
        return cls(
            name=filestorage.filename or "arquivo",
            content_type=filestorage.mimetype or "application/octet-stream",
            data=filestorage.stream.read(),
        )


# =============================================================================
# EDICOES
# =============================================================================

def apply_edits(action: Action, edits: Mapping[str, Any] | None) -> Action:
    """
    Aplica as edicoes permitidas para o tipo da acao.

    ``fields`` (documento) e um mapa ``{field_id: valor}``.

    Raises:
        ValidationFailure: chave nao suportada pelo tipo da acao.
    """
    if not edits:
        return action
    allowed = _COMMON_EDITS | _EDITS_BY_DATA.get(type(action.data), frozenset())
    unknown = sorted(set(edits) - allowed)
    if unknown:
        raise ValidationFailure(
            f"Campo(s) não editável(is) para ações do tipo {action.type.value}: {', '.join(unknown)}",
            field=unknown[0],
        )

    changes: dict[str, Any] = {}
    for key in _COMMON_EDITS & set(edits):
        changes[key] = str(edits[key] or "").strip()

    data = action.data
    if isinstance(data, InfoData):
        data_changes = {}
        for key in ("info_title", "info_description"):
            if key in edits:
                data_changes[key] = str(edits[key] or "").strip()
        if "has_attachments" in edits:
            data_changes["has_attachments"] = bool(edits["has_attachments"])
        data = replace(data, **data_changes)
    elif isinstance(data, ValueData) and "value" in edits:
        data = replace(data, value=edits["value"])
    elif isinstance(data, DocumentData) and "fields" in edits:
        values = edits["fields"] or {}
        if not isinstance(values, Mapping):
            raise ValidationFailure("Campos do documento devem ser um objeto.", field="fields")
        known = {item.id for item in data.fields}
        missing = sorted(set(values) - known)
        if missing:
            raise ValidationFailure(f"Campo de documento inexistente: {missing[0]}", field="fields")
        data = replace(
            data,
            fields=tuple(
                replace(item, value=values[item.id]) if item.id in values else item
                for item in data.fields
            ),
        )

    return replace(action, data=data, **changes)


# =============================================================================
# VALIDACAO
# =============================================================================

def validate_completion(action: Action, pending_files: Sequence[PendingFile] = ()) -> str | None:
    """
    Retorna a primeira mensagem de erro que impede a conclusao, ou None.

    Ordem: titulo; para info, titulo e descricao da informacao; para os
    demais tipos, descricao; depois anexos obrigatorios (info com anexos e
    file_upload) e campos obrigatorios do documento.
    """
    if not action.title.strip():
        return "O título da ação é obrigatório."

    data = action.data
    if isinstance(data, InfoData):
        if not data.info_title.strip():
            return "O título da informação é obrigatório."
        if not data.info_description.strip():
            return "A descrição da informação é obrigatória."
    elif not action.description.strip():
        return "A descrição da ação é obrigatória."

    has_files = bool(pending_files) or action.has_attachment_evidence
    if isinstance(data, InfoData) and data.has_attachments and not has_files:
        return "Anexe pelo menos um arquivo para esta informação."
    if action.type == ActionType.FILE_UPLOAD and not has_files:
        return "Envie pelo menos um arquivo para concluir esta ação."

    if isinstance(data, DocumentData):
        missing = data.missing_required()
        if missing:
            return f"O campo '{missing[0].label}' é obrigatório."
    return None


# =============================================================================
# UPLOAD
# =============================================================================

def _upload_one(storage: ObjectStorage, path: str, pending: PendingFile) -> Attachment:
    handle = storage.upload(path, pending.data, pending.content_type)
    return Attachment(
        id=uuid4().hex,
        name=pending.name,
        url=storage.get_download_url(handle),
        type=mime_category(pending.content_type),
        size=pending.size,
        path=handle,
    )


def upload_pending_files(
    pending_files: Sequence[PendingFile],
    *,
    storage: ObjectStorage,
    task_id: int | str,
    action_id: str,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> list[Attachment]:
    """
    Envia os arquivos em paralelo, tudo ou nada.

    Returns:
        list[Attachment]: Anexos na mesma ordem de ``pending_files``.

    Raises:
        StorageError: se algum envio falhar (os demais do lote sao removidos).
    """
    if not pending_files:
        return []

    paths = [
        build_object_path("tasks", task_id, "actions", action_id, filename=pending.name)
        for pending in pending_files
    ]
    workers = max(1, min(max_workers, len(pending_files)))
    uploaded: list[Attachment] = []
    failures: list[Exception] = []
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="painel-upload") as executor:
        futures = [
            executor.submit(_upload_one, storage, path, pending)
            for path, pending in zip(paths, pending_files)
        ]
        for future in futures:
            try:
                uploaded.append(future.result())
            except Exception as exc:  # pylint: disable=broad-except
                failures.append(exc)

    if not failures:
        return uploaded

    for attachment in uploaded:
        try:
            storage.delete(attachment.path)
        except Exception:  # pylint: disable=broad-except
            logger.warning("Could not remove orphan upload %s", attachment.path, exc_info=True)

    first = failures[0]
    logger.error(
        "Upload batch for action %s of task %s failed (%s of %s files): %s",
        action_id, task_id, len(failures), len(pending_files), first,
    )
    if isinstance(first, StorageError):
        raise first
    raise StorageError(f"Falha ao enviar arquivos: {first}") from first


def merge_attachments(action: Action, attachments: Iterable[Attachment]) -> Action:
    """Append new attachments; info actions also get their URLs in ``file_urls``."""
    attachments = tuple(attachments)
    if not attachments:
        return action
    data = action.data
    if isinstance(data, InfoData):
        data = replace(data, file_urls=data.file_urls + tuple(item.url for item in attachments))
    return replace(action, data=data, attachments=action.attachments + attachments)


# =============================================================================
# PONTOS DE ENTRADA
# =============================================================================

def prepare_completion(
    action: Action,
    edits: Mapping[str, Any] | None,
    pending_files: Sequence[PendingFile],
    *,
    storage: ObjectStorage,
    task_id: int | str,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> Action:
    """
    Valida e envia os arquivos de uma acao que sera concluida.

    Returns:
        Action: Acao editada com os novos anexos, ainda nao marcada como concluida.

    Raises:
        ValidationFailure: primeira regra violada.
        StorageError: falha em algum envio do lote.
    """
    edited = apply_edits(action, edits)
    message = validate_completion(edited, pending_files)
    if message:
        raise ValidationFailure(message)
    attachments = upload_pending_files(
        pending_files,
        storage=storage,
        task_id=task_id,
        action_id=action.id,
        max_workers=max_workers,
    )
    return merge_attachments(edited, attachments)


def save_action_progress(
    action: Action,
    edits: Mapping[str, Any] | None,
    pending_files: Sequence[PendingFile],
    *,
    storage: ObjectStorage,
    task_id: int | str,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> Action:
    """Save a draft: same edits and uploads, no validation, ``saved_progress`` set."""
    edited = apply_edits(action, edits)
    attachments = upload_pending_files(
        pending_files,
        storage=storage,
        task_id=task_id,
        action_id=action.id,
        max_workers=max_workers,
    )
    merged = merge_attachments(edited, attachments)
    return replace(merged, data=replace(merged.data, saved_progress=True))
