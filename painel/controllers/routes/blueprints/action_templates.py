"""
Blueprint de modelos de acao.

Rotas:
    - GET/POST /api/v1/action-templates
    - GET/PATCH/DELETE /api/v1/action-templates/<id>
    - POST /api/v1/action-templates/<id>/duplicate
    - POST /api/v1/action-templates/<id>/instantiate: Gera acao ``document``
    - POST /api/v1/action-templates/reorder
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from painel import csrf
from painel.controllers.routes._base import arg_bool, arg_int, json_body
from painel.controllers.routes._decorators import admin_required
from painel.errors import ValidationFailure
from painel.forms import ActionTemplateForm, validate_or_raise
from painel.services.action_templates import (
    create_action_template,
    delete_action_template,
    duplicate_action_template,
    get_action_template,
    instantiate_template,
    list_action_templates,
    reorder_action_templates,
    serialize_action_template,
    update_action_template,
)


# =============================================================================
# BLUEPRINT DEFINITION
# =============================================================================

action_templates_bp = Blueprint("action_templates", __name__, url_prefix="/api/v1/action-templates")
csrf.exempt(action_templates_bp)


# =============================================================================
# ROTAS
# =============================================================================

@action_templates_bp.route("", methods=["GET"])
@login_required
def list_templates():
    templates = list_action_templates(
        category=request.args.get("category"),
        is_active=arg_bool("active"),
        limit=arg_int("limit"),
    )
    return jsonify([serialize_action_template(item) for item in templates])


@action_templates_bp.route("", methods=["POST"])
@admin_required
def create_template():
    body = json_body()
    form = validate_or_raise(ActionTemplateForm())
    template = create_action_template(
        {
            "title": form.title.data,
            "description": form.description.data,
            "type": form.type.data or None,
            "category": form.category.data or None,
            "elements": body.get("elements"),
            "order": body.get("order"),
        },
        created_by=current_user,
    )
    return jsonify(serialize_action_template(template)), 201


@action_templates_bp.route("/<int:template_id>", methods=["GET"])
@login_required
def get_template(template_id):
    return jsonify(serialize_action_template(get_action_template(template_id)))


@action_templates_bp.route("/<int:template_id>", methods=["PATCH"])
@admin_required
def update_template(template_id):
    template = update_action_template(template_id, json_body())
    return jsonify(serialize_action_template(template))


@action_templates_bp.route("/<int:template_id>", methods=["DELETE"])
@admin_required
def delete_template(template_id):
    delete_action_template(template_id)
    return "", 204


@action_templates_bp.route("/<int:template_id>/duplicate", methods=["POST"])
@admin_required
def duplicate_template(template_id):
    body = json_body()
    template = duplicate_action_template(template_id, body.get("title"), created_by=current_user)
    return jsonify(serialize_action_template(template)), 201


@action_templates_bp.route("/<int:template_id>/instantiate", methods=["POST"])
@login_required
def instantiate(template_id):
    """Build a ``document`` action from the template for the task editor."""
    body = json_body()
    step_number = body.get("step_number")
    if step_number is not None and (not isinstance(step_number, int) or step_number < 1):
        raise ValidationFailure("Etapa inválida.", field="step_number")
    action = instantiate_template(get_action_template(template_id), step_number)
    return jsonify(action.to_dict()), 201


@action_templates_bp.route("/reorder", methods=["POST"])
@admin_required
def reorder_templates():
    ids = json_body().get("ids")
    if not isinstance(ids, list) or not all(isinstance(item, int) for item in ids):
        raise ValidationFailure("Informe a lista de ids na nova ordem.", field="ids")
    reorder_action_templates(ids)
    return "", 204
