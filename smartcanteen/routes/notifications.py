from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from smartcanteen import notifications
from smartcanteen.database import get_db
from smartcanteen.schemas import UserRole
from smartcanteen.store import CanteenState, get_state, get_state_for_update

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
def list_notifications(role: Optional[UserRole] = None, state: CanteenState = Depends(get_state)):
    """Feed for one role (the active role when omitted), newest first."""
    role = role or state.user_role
    feed = notifications.visible_to(state.notifications, role)
    return {
        "role": role.value,
        "unread": notifications.unread_count(state.notifications, role),
        "notifications": [n.to_document() for n in feed],
    }


@router.post("/read")
def mark_read(
    role: Optional[UserRole] = None,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    role = role or state.user_role
    marked = notifications.mark_all_read(state, role)
    state.commit(db)
    return {"marked": marked}
