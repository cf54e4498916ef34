"""
Modelos de acao (formularios reutilizaveis).

Um modelo guarda uma lista de definicoes de campo (``elements``); ao ser
aplicado a uma tarefa ele vira uma acao ``document`` com copias
independentes desses campos.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence

from painel import db
from painel.errors import NotFoundError, ValidationFailure
from painel.models.tables import ActionTemplate
from painel.workflow.actions import Action, ActionType, DocumentData, DocumentField

logger = logging.getLogger(__name__)

TEMPLATE_TYPES = ("custom", "standard")
UPDATABLE_FIELDS = {"title", "description", "type", "elements", "order", "category", "is_active"}


def _parse_elements(raw) -> list[dict]:
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValidationFailure("O modelo precisa de ao menos um campo.", field="elements")
    elements = []
    for item in raw:
        if not isinstance(item, Mapping):
            raise ValidationFailure("Campo de modelo inválido.", field="elements")
        element = DocumentField.from_dict(item)
        if not element.label.strip():
            raise ValidationFailure("Todo campo do modelo precisa de um rótulo.", field="elements")
        elements.append(element.to_dict())
    return elements


def _validate_template_fields(data: Mapping[str, Any]) -> None:
    if "title" in data and not (data["title"] or "").strip():
        raise ValidationFailure("O título do modelo é obrigatório.", field="title")
    if "type" in data and data["type"] not in TEMPLATE_TYPES:
        raise ValidationFailure("Tipo de modelo inválido.", field="type")


def get_action_template(template_id: int) -> ActionTemplate:
    template = db.session.get(ActionTemplate, template_id)
    if template is None:
        raise NotFoundError("Modelo de ação não encontrado")
    return template


def list_action_templates(
    *, category: str | None = None, is_active: bool | None = None, limit: int | None = None
) -> list[ActionTemplate]:
    query = ActionTemplate.query
    if category:
        query = query.filter_by(category=category)
    if is_active is not None:
        query = query.filter_by(is_active=is_active)
    query = query.order_by(ActionTemplate.order.asc(), ActionTemplate.id.asc())
    if limit:
        query = query.limit(limit)
    return query.all()


def create_action_template(data: Mapping[str, Any], *, created_by=None) -> ActionTemplate:
    """
    Cria um modelo ativo, posicionado no fim da lista quando ``order`` nao vem.

    Raises:
        ValidationFailure: titulo vazio, tipo invalido ou campos sem rotulo.
    """
    data = dict(data)
    data.setdefault("title", "")
    _validate_template_fields(data)
    order = data.get("order")
    if order is None:
        last = db.session.query(db.func.max(ActionTemplate.order)).scalar()
        order = (last or 0) + 1
    template = ActionTemplate(
        title=data["title"].strip(),
        description=(data.get("description") or "").strip(),
        type=data.get("type") or "custom",
        elements=_parse_elements(data.get("elements")),
        order=int(order),
        category=data.get("category"),
        is_active=True,
        created_by=getattr(created_by, "id", None),
    )
    db.session.add(template)
    db.session.commit()
    logger.info("Action template %s created", template.id)
    return template


def update_action_template(template_id: int, updates: Mapping[str, Any]) -> ActionTemplate:
    template = get_action_template(template_id)
    unknown = sorted(set(updates) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationFailure(f"Campo não pode ser alterado: {unknown[0]}", field=unknown[0])
    _validate_template_fields(updates)
    for key, value in updates.items():
        if key == "elements":
            value = _parse_elements(value)
        elif key == "title":
            value = value.strip()
        elif key == "is_active":
            value = bool(value)
        setattr(template, key, value)
    db.session.commit()
    return template


def delete_action_template(template_id: int) -> None:
    template = get_action_template(template_id)
    db.session.delete(template)
    db.session.commit()


def reorder_action_templates(template_ids: Sequence[int]) -> None:
    """Persist ``order`` as the position of each id in ``template_ids``."""
    for index, template_id in enumerate(template_ids):
        get_action_template(template_id).order = index
    db.session.commit()


def duplicate_action_template(template_id: int, new_title: str | None = None, *, created_by=None) -> ActionTemplate:
    template = get_action_template(template_id)
    return create_action_template(
        {
            "title": new_title or f"{template.title} (Cópia)",
            "description": template.description,
            "type": template.type,
            "elements": list(template.elements),
            "category": template.category,
        },
        created_by=created_by,
    )


def instantiate_template(template: ActionTemplate, step_number: int | None = None) -> Action:
    """
    Converte um modelo em uma acao ``document`` nova.

    A descricao da acao junta as descricoes dos campos; sem nenhuma, usa a
    descricao do modelo (ou o titulo).
    """
    fields = tuple(DocumentField.from_dict(element) for element in template.elements)
    description = " ".join(field.description for field in fields if field.description)
    return Action.new(
        ActionType.DOCUMENT,
        template.title,
        description or template.description or template.title,
        data=DocumentData(fields=fields),
        step_number=step_number,
    )


def serialize_action_template(template: ActionTemplate) -> dict:
    return {
        "id": template.id,
        "title": template.title,
        "description": template.description,
        "type": template.type,
        "elements": list(template.elements or []),
        "order": template.order,
        "category": template.category,
        "is_active": template.is_active,
        "created_by": template.created_by,
        "created_at": template.created_at.isoformat() if template.created_at else None,
    }
