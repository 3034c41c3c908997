"""Notification feed: newest first, capped, optionally addressed to one role."""
from typing import Optional

from smartcanteen.config import get_settings
from smartcanteen.schemas import Notification, NotificationType, UserRole
from smartcanteen.utils import new_id, now_ms


def push(
    state,
    title: str,
    message: str,
    type: NotificationType = NotificationType.INFO,
    role: Optional[UserRole] = None,
) -> Notification:
    note = Notification(
        id=new_id(),
        title=title,
        message=message,
        timestamp=now_ms(),
        type=type,
        role=role,
    )
    limit = get_settings().NOTIFICATION_LIMIT
    state.notifications = [note, *state.notifications][:limit]
    return note


def visible_to(feed: list[Notification], role: UserRole) -> list[Notification]:
    return [n for n in feed if n.role is None or n.role == role]


def unread_count(feed: list[Notification], role: UserRole) -> int:
    return sum(1 for n in visible_to(feed, role) if not n.is_read)


def mark_all_read(state, role: UserRole) -> int:
    marked = 0
    updated = []
    for n in state.notifications:
        if (n.role is None or n.role == role) and not n.is_read:
            n = n.model_copy(update={"is_read": True})
            marked += 1
        updated.append(n)
    state.notifications = updated
    return marked
