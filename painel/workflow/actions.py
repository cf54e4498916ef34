"""
Modelo de acoes de tarefa.

Cada tarefa carrega uma lista ordenada de acoes. Uma acao tem tipo fixo
(``ActionType``) e um payload ``data`` cuja forma depende do tipo:

    info         -> InfoData
    document     -> DocumentData (mini-formulario com DocumentField)
    text/long_text/date -> ValueData
    file_upload  -> FileUploadData

Acoes sao imutaveis; toda alteracao devolve uma nova instancia via
``dataclasses.replace``. ``to_dict``/``from_dict`` fazem a conversao para
o formato gravado na coluna JSON da tarefa.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Mapping
from uuid import uuid4

from painel.errors import ValidationFailure


class ActionType(str, Enum):
    """Tipos de acao suportados."""

    INFO = "info"
    TEXT = "text"
    LONG_TEXT = "long_text"
    DATE = "date"
    FILE_UPLOAD = "file_upload"
    DOCUMENT = "document"

    @classmethod
    def parse(cls, raw: Any) -> "ActionType":
        try:
            return cls(raw)
        except ValueError:
            raise ValidationFailure(f"Tipo de ação inválido: {raw}", field="type") from None


def mime_category(content_type: str | None) -> str:
    """Return the MIME major type (``image/png`` -> ``image``), or ``other``."""
    if not content_type or "/" not in content_type:
        return "other"
    return content_type.split("/", 1)[0].strip().lower() or "other"


# =============================================================================
# ANEXOS
# =============================================================================

@dataclass(frozen=True)
class Attachment:
    """Arquivo armazenado e vinculado a uma acao."""

    id: str
    name: str
    url: str
    type: str = "other"
    size: int | None = None
    path: str | None = None

    def to_dict(self) -> dict:
        payload = {"id": self.id, "name": self.name, "url": self.url, "type": self.type}
        if self.size is not None:
            payload["size"] = self.size
        if self.path:
            payload["path"] = self.path
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Attachment":
        return cls(
            id=str(payload.get("id") or uuid4().hex),
            name=str(payload.get("name") or ""),
            url=str(payload.get("url") or ""),
            type=str(payload.get("type") or "other"),
            size=payload.get("size"),
            path=payload.get("path"),
        )


# =============================================================================
# PAYLOADS POR TIPO
# =============================================================================

@dataclass(frozen=True)
class ActionData:
    """Campos comuns a todos os payloads."""

    step_number: int | None = None
    saved_progress: bool = False

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {}
        if self.step_number is not None:
            payload["step_number"] = self.step_number
        if self.saved_progress:
            payload["saved_progress"] = True
        return payload

    @staticmethod
    def _common(payload: Mapping[str, Any]) -> dict:
        step_number = payload.get("step_number")
        return {
            "step_number": int(step_number) if step_number else None,
            "saved_progress": bool(payload.get("saved_progress", False)),
        }


@dataclass(frozen=True)
class InfoData(ActionData):
    info_title: str = ""
    info_description: str = ""
    has_attachments: bool = False
    file_urls: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload.update(
            info_title=self.info_title,
            info_description=self.info_description,
            has_attachments=self.has_attachments,
            file_urls=list(self.file_urls),
        )
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "InfoData":
        return cls(
            info_title=str(payload.get("info_title") or ""),
            info_description=str(payload.get("info_description") or ""),
            has_attachments=bool(payload.get("has_attachments", False)),
            file_urls=tuple(payload.get("file_urls") or ()),
            **cls._common(payload),
        )


@dataclass(frozen=True)
class DocumentField:
    """Campo do mini-formulario de uma acao ``document``."""

    id: str
    type: str
    label: str
    value: Any = None
    options: tuple[str, ...] = ()
    placeholder: str | None = None
    required: bool = False
    description: str | None = None

    @property
    def is_filled(self) -> bool:
        if self.value is None:
            return False
        if isinstance(self.value, str):
            return bool(self.value.strip())
        if isinstance(self.value, (list, tuple, dict)):
            return bool(self.value)
        return True

    def to_dict(self) -> dict:
        payload = {
            "id": self.id,
            "type": self.type,
            "label": self.label,
            "value": self.value,
            "required": self.required,
        }
        if self.options:
            payload["options"] = list(self.options)
        if self.placeholder is not None:
            payload["placeholder"] = self.placeholder
        if self.description is not None:
            payload["description"] = self.description
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DocumentField":
        return cls(
            id=str(payload.get("id") or uuid4().hex),
            type=str(payload.get("type") or "text"),
            label=str(payload.get("label") or ""),
            value=payload.get("value"),
            options=tuple(payload.get("options") or ()),
            placeholder=payload.get("placeholder"),
            required=bool(payload.get("required", False)),
            description=payload.get("description"),
        )


@dataclass(frozen=True)
class DocumentData(ActionData):
    fields: tuple[DocumentField, ...] = ()

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["fields"] = [item.to_dict() for item in self.fields]
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "DocumentData":
        return cls(
            fields=tuple(DocumentField.from_dict(item) for item in payload.get("fields") or ()),
            **cls._common(payload),
        )

    def missing_required(self) -> list[DocumentField]:
        """Required non-checkbox fields still without a value."""
        return [
            item for item in self.fields
            if item.required and item.type != "checkbox" and not item.is_filled
        ]


@dataclass(frozen=True)
class ValueData(ActionData):
    value: Any = None

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["value"] = self.value
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "ValueData":
        return cls(value=payload.get("value"), **cls._common(payload))


@dataclass(frozen=True)
class FileUploadData(ActionData):
    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FileUploadData":
        return cls(**cls._common(payload))


DATA_TYPES: dict[ActionType, type] = {
    ActionType.INFO: InfoData,
    ActionType.DOCUMENT: DocumentData,
    ActionType.TEXT: ValueData,
    ActionType.LONG_TEXT: ValueData,
    ActionType.DATE: ValueData,
    ActionType.FILE_UPLOAD: FileUploadData,
}


# =============================================================================
# ACAO
# =============================================================================

@dataclass(frozen=True)
class Action:
    """Unidade de trabalho de uma tarefa."""

    id: str
    type: ActionType
    title: str
    description: str = ""
    data: ActionData | None = None
    completed: bool = False
    completed_at: datetime | None = None
    completed_by: int | None = None
    attachments: tuple[Attachment, ...] = ()

    DESCRIPTION_OPTIONAL: ClassVar[frozenset] = frozenset({ActionType.INFO})

    def __post_init__(self):
        expected = DATA_TYPES[self.type]
        if self.data is None:
            object.__setattr__(self, "data", expected())
        if type(self.data) is not expected:
            raise ValueError(
                f"action {self.id} of type {self.type.value} needs {expected.__name__}, "
                f"got {type(self.data).__name__}"
            )
        stamps = (self.completed_at is not None, self.completed_by is not None)
        if stamps != (self.completed, self.completed):
            raise ValueError(
                f"action {self.id}: completed requires completed_at and completed_by together"
            )

    @classmethod
    def new(
        cls,
        action_type: ActionType | str,
        title: str,
        description: str = "",
        data: ActionData | None = None,
        step_number: int | None = None,
    ) -> "Action":
        """
        Cria uma acao nova com id unico.

        Raises:
            ValidationFailure: titulo vazio ou descricao ausente em tipo que exige.
        """
        kind = action_type if isinstance(action_type, ActionType) else ActionType.parse(action_type)
        title = (title or "").strip()
        description = (description or "").strip()
        if not title:
            raise ValidationFailure("O título da ação é obrigatório.", field="title")
        if kind not in cls.DESCRIPTION_OPTIONAL and not description:
            raise ValidationFailure("A descrição da ação é obrigatória.", field="description")
        data = data if data is not None else DATA_TYPES[kind]()
        if step_number is not None:
            data = replace(data, step_number=step_number)
        return cls(id=uuid4().hex, type=kind, title=title, description=description, data=data)

    # ------------------------------------------------------------------
    # Propriedades
    # ------------------------------------------------------------------

    @property
    def step_number(self) -> int | None:
        return self.data.step_number

    @property
    def has_attachment_evidence(self) -> bool:
        """True when the action already carries at least one stored file."""
        if self.attachments:
            return True
        return isinstance(self.data, InfoData) and bool(self.data.file_urls)

    # ------------------------------------------------------------------
    # Transicoes
    # ------------------------------------------------------------------

    def with_step(self, step_number: int) -> "Action":
        if self.data.step_number == step_number:
            return self
        return replace(self, data=replace(self.data, step_number=step_number))

    def complete(self, user_id: int, at: datetime) -> "Action":
        """
        Marca a acao como concluida por ``user_id`` em ``at``.

        Concluir uma acao ja concluida sobrescreve ``completed_at`` e
        ``completed_by`` com os novos valores; anexos e dados sao mantidos.
        """
        return replace(
            self,
            completed=True,
            completed_at=at,
            completed_by=user_id,
            data=replace(self.data, saved_progress=False),
        )

    def uncomplete(self) -> "Action":
        return replace(self, completed=False, completed_at=None, completed_by=None)

    # ------------------------------------------------------------------
    # Serializacao
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "data": self.data.to_dict(),
            "completed": self.completed,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "completed_by": self.completed_by,
            "attachments": [item.to_dict() for item in self.attachments],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Action":
        """
        Reconstroi uma acao a partir do dicionario gravado.

        Raises:
            ValidationFailure: payload sem tipo valido ou com estado de
                conclusao inconsistente.
        """
        if not isinstance(payload, Mapping):
            raise ValidationFailure("Ação inválida.", field="actions")
        kind = ActionType.parse(payload.get("type"))
        raw_completed_at = payload.get("completed_at")
        completed_at = None
        if isinstance(raw_completed_at, datetime):
            completed_at = raw_completed_at
        elif raw_completed_at:
            try:
                completed_at = datetime.fromisoformat(str(raw_completed_at))
            except ValueError:
                raise ValidationFailure("Data de conclusão inválida.", field="completed_at") from None
        try:
            return cls(
                id=str(payload.get("id") or uuid4().hex),
                type=kind,
                title=str(payload.get("title") or ""),
                description=str(payload.get("description") or ""),
                data=DATA_TYPES[kind].from_dict(payload.get("data") or {}),
                completed=bool(payload.get("completed", False)),
                completed_at=completed_at,
                completed_by=payload.get("completed_by"),
                attachments=tuple(
                    Attachment.from_dict(item) for item in payload.get("attachments") or ()
                ),
            )
        except ValueError as exc:
            raise ValidationFailure(str(exc), field="actions") from exc


def actions_from_dicts(payloads) -> list[Action]:
    return [Action.from_dict(item) for item in payloads or ()]


def actions_to_dicts(actions) -> list[dict]:
    return [action.to_dict() for action in actions]
