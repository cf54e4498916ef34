"""
Blueprint de notificacoes do usuario autenticado.

Rotas:
    - GET /api/v1/notifications?unread=1&limit=N&type=T
    - POST /api/v1/notifications/<id>/read
    - POST /api/v1/notifications/read-all
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from painel import csrf
from painel.controllers.routes._base import arg_bool, arg_int
from painel.services.notifications import (
    get_user_notifications,
    mark_all_as_read,
    mark_notification_as_read,
    serialize_notification,
)


notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/v1/notifications")
csrf.exempt(notifications_bp)


@notifications_bp.route("", methods=["GET"])
@login_required
def list_notifications():
    notifications = get_user_notifications(
        current_user.id,
        unread_only=bool(arg_bool("unread")),
        limit=arg_int("limit"),
        type=request.args.get("type"),
    )
    return jsonify([serialize_notification(item) for item in notifications])


@notifications_bp.route("/<int:notification_id>/read", methods=["POST"])
@login_required
def read_notification(notification_id):
    notification = mark_notification_as_read(current_user.id, notification_id)
    return jsonify(serialize_notification(notification))


@notifications_bp.route("/read-all", methods=["POST"])
@login_required
def read_all_notifications():
    return jsonify({"updated": mark_all_as_read(current_user.id)})
