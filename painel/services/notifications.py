"""User notifications (in-app only; no e-mail or push delivery)."""

from __future__ import annotations

from painel import db
from painel.errors import NotFoundError
from painel.models.tables import Notification


def create_notification(
    user_id: int,
    *,
    type: str,
    title: str,
    message: str,
    related_entity_id=None,
) -> Notification:
    """Add a notification to the session; the caller commits."""
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        read=False,
        related_entity_id=str(related_entity_id) if related_entity_id is not None else None,
    )
    db.session.add(notification)
    return notification


def get_user_notifications(user_id: int, *, unread_only: bool = False, limit: int | None = None, type: str | None = None):
    query = Notification.query.filter_by(user_id=user_id)
    if unread_only:
        query = query.filter_by(read=False)
    if type:
        query = query.filter_by(type=type)
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def mark_notification_as_read(user_id: int, notification_id: int) -> Notification:
    notification = db.session.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFoundError("Notificação não encontrada")
    notification.read = True
    db.session.commit()
    return notification


def mark_all_as_read(user_id: int) -> int:
    updated = (
        Notification.query.filter_by(user_id=user_id, read=False)
        .update({Notification.read: True}, synchronize_session=False)
    )
    db.session.commit()
    return updated


def serialize_notification(notification: Notification) -> dict:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "read": notification.read,
        "related_entity_id": notification.related_entity_id,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }
