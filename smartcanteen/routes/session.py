from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel

from smartcanteen.database import get_db
from smartcanteen.schemas import OptimizationMode, UserRole
from smartcanteen.store import CanteenState, get_state, get_state_for_update

router = APIRouter(prefix="/api/session", tags=["session"])


class ModeUpdate(BaseModel):
    mode: OptimizationMode


class RoleUpdate(BaseModel):
    role: UserRole


def _session(state: CanteenState) -> dict:
    return {"mode": state.optimization_mode.value, "role": state.user_role.value}


@router.get("")
def get_session(state: CanteenState = Depends(get_state)):
    return _session(state)


@router.put("/mode")
def set_mode(
    data: ModeUpdate,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    state.optimization_mode = data.mode
    state.commit(db)
    return _session(state)


@router.put("/role")
def set_role(
    data: RoleUpdate,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    state.user_role = data.role
    state.commit(db)
    return _session(state)
