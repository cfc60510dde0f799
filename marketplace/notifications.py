"""Notification dispatcher.

The Notification row is the durable record and is written inside the
caller's transaction. Telegram delivery to admins happens after commit, one
recipient at a time; a failure for one recipient is logged and reported in
the results but never raised.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import telegram
from .models import Notification, User

logger = logging.getLogger(__name__)

NEW_ORDER = "new_order"
ORDER_STATUS = "order_status"
NEW_COMPLAINT = "new_complaint"
NEW_APPLICATION = "new_application"


def admin_ids(db: Session) -> List[int]:
    return [uid for (uid,) in db.query(User.id).filter(User.is_admin.is_(True)).order_by(User.id).all()]


def record(
    db: Session,
    recipients: Iterable[int],
    title: str,
    message: str,
    type: str,
    payload: Optional[Dict[str, Any]] = None,
) -> List[Notification]:
    """Add one Notification per distinct recipient. Does not commit."""
    rows = []
    seen = set()
    for user_id in recipients:
        if user_id is None or user_id in seen:
            continue
        seen.add(user_id)
        row = Notification(
            user_id=user_id,
            title=title,
            message=message,
            type=type,
            data=payload or {},
            is_read=False,
        )
        db.add(row)
        rows.append(row)
    db.flush()
    return rows


def _telegram_handles(db: Session, user_ids: List[int]) -> Dict[int, str]:
    """Chat ids of the admins among ``user_ids`` who linked Telegram."""
    return {
        uid: chat_id
        for uid, chat_id in db.query(User.id, User.telegram_id)
        .filter(
            User.id.in_(user_ids),
            User.is_admin.is_(True),
            User.telegram_id.isnot(None),
        )
        .all()
    }


def deliver_external(db: Session, notifications: Iterable[Notification]) -> List[Dict[str, Any]]:
    """Best-effort Telegram ping for admin recipients with a linked chat.

    Runs after the caller has committed, so nothing here may fail the
    operation: database errors skip delivery and are logged.
    """
    results = []
    try:
        pending = [(n.user_id, n.title, n.message) for n in notifications]
        if not pending:
            return results
        handles = _telegram_handles(db, [user_id for user_id, _, _ in pending])
    except SQLAlchemyError:
        logger.exception("could not load telegram handles, external delivery skipped")
        return results

    for user_id, title, message in pending:
        chat_id = handles.get(user_id)
        if not chat_id:
            continue
        if not telegram.is_configured():
            results.append({"user_id": user_id, "status": "skipped"})
            continue

        text = telegram.format_message(title, message)
        try:
            telegram.send_message(chat_id, text)
        except telegram.TelegramDeliveryError as e:
            logger.warning("telegram delivery to user %s failed: %s", user_id, e)
            results.append({"user_id": user_id, "status": "failed", "error": str(e)})
        except Exception as e:
            logger.exception("telegram delivery to user %s raised", user_id)
            results.append({"user_id": user_id, "status": "error", "error": str(e)})
        else:
            results.append({"user_id": user_id, "status": "sent"})

    return results


def notify(
    db: Session,
    recipients: Iterable[int],
    title: str,
    message: str,
    type: str,
    payload: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    rows = record(db, recipients, title, message, type, payload)
    db.commit()
    return deliver_external(db, rows)


def notify_admins(
    db: Session,
    title: str,
    message: str,
    type: str,
    payload: Optional[Dict[str, Any]] = None,
) -> List[Dict[str, Any]]:
    return notify(db, admin_ids(db), title, message, type, payload)


def list_for_user(db: Session, user_id: int, limit: int = 10, unread_only: bool = False) -> List[Notification]:
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def mark_read(db: Session, user_id: int, notification_id: int) -> Optional[Notification]:
    """Only the recipient can mark a notification read."""
    row = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if row is None:
        return None
    row.is_read = True
    db.commit()
    db.refresh(row)
    return row
