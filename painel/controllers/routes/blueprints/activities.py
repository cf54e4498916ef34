"""
Blueprint do historico de atividades.

Rotas:
    - GET /api/v1/activities?limit=N&project_id=P
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from painel import csrf
from painel.controllers.routes._base import arg_int
from painel.services.activities import (
    DEFAULT_ACTIVITY_LIMIT,
    get_recent_activities,
    serialize_activity,
)


activities_bp = Blueprint("activities", __name__, url_prefix="/api/v1/activities")
csrf.exempt(activities_bp)


@activities_bp.route("", methods=["GET"])
@login_required
def recent_activities():
    activities = get_recent_activities(
        arg_int("limit", DEFAULT_ACTIVITY_LIMIT),
        project_id=arg_int("project_id"),
        user=current_user,
    )
    return jsonify([serialize_activity(entry) for entry in activities])
