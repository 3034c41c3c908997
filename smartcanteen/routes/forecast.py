from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from datetime import date as Date
from typing import List, Optional

from smartcanteen import forecast, notifications
from smartcanteen.database import get_db
from smartcanteen.errors import ForecastInProgress
from smartcanteen.ledger import known_entries
from smartcanteen.plan import apply_plan, plan_to_document
from smartcanteen.schemas import NotificationType, OptimizationMode, PredictionResult, UserRole
from smartcanteen.store import CanteenState, get_state, get_state_for_update
from smartcanteen.utils import today, tomorrow

router = APIRouter(prefix="/api/forecast", tags=["forecast"])


class ForecastRequest(BaseModel):
    target_date: Optional[Date] = None  # defaults to tomorrow
    mode: Optional[OptimizationMode] = None  # defaults to the active mode


class ApplyPlanRequest(BaseModel):
    predictions: List[PredictionResult] = Field(min_length=1)


@router.post("")
def run_forecast(
    req: Optional[ForecastRequest] = None,
    state: CanteenState = Depends(get_state),
):
    """Forecast preparation quantities for one day. Always answers, via the fallback if needed."""
    req = req or ForecastRequest()
    target = req.target_date or tomorrow()
    mode = req.mode or state.optimization_mode
    pending = state.pending_today if target <= today() else state.pending_tomorrow

    try:
        with forecast.guard.running(target):
            run = forecast.forecast(
                known_entries(state.history, state.catalog),
                state.catalog,
                target,
                pending,
                mode,
            )
    except ForecastInProgress as e:
        raise HTTPException(409, str(e))

    return {
        "target_date": run.target_date.isoformat(),
        "mode": run.mode.value,
        "source": run.source,
        "fallback_reason": run.fallback_reason,
        "predictions": [p.to_document() for p in run.predictions],
    }


@router.post("/apply")
def apply_forecast(
    req: ApplyPlanRequest,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    """Publish predictions as the production plan, replacing the previous one."""
    plan = apply_plan(state, req.predictions)
    notifications.push(
        state,
        "Plan Applied",
        "New production plan synchronized with the kitchen.",
        NotificationType.SUCCESS,
        UserRole.STAFF,
    )
    state.commit(db)
    return plan_to_document(plan)


@router.get("/plan")
def current_plan(state: CanteenState = Depends(get_state)):
    return plan_to_document(state.production_plan)
