from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field, ValidationError
from datetime import date as Date, timedelta
from typing import Optional

from smartcanteen import ledger
from smartcanteen.ai_insights import waste_strategy
from smartcanteen.database import get_db
from smartcanteen.schemas import DailyEntry
from smartcanteen.store import CanteenState, get_state, get_state_for_update
from smartcanteen.utils import new_id, today

router = APIRouter(prefix="/api/history", tags=["history"])


class AuditEntry(BaseModel):
    menu_item_id: str
    date: Optional[Date] = None  # defaults to today
    prepared: int = Field(ge=0)
    consumed: int = Field(ge=0)
    is_holiday: bool = False
    qualitative_feedback: Optional[str] = None


@router.get("")
def list_history(
    days: Optional[int] = Query(None, ge=1, le=365),
    menu_item_id: Optional[str] = None,
    state: CanteenState = Depends(get_state),
):
    """Ledger rows for items still on the menu, oldest first."""
    rows = ledger.known_entries(state.history, state.catalog)
    if days is not None:
        since = today() - timedelta(days=days)
        rows = [e for e in rows if e.date >= since]
    if menu_item_id is not None:
        rows = [e for e in rows if e.menu_item_id == menu_item_id]
    return [e.to_document() for e in rows]


@router.post("", status_code=201)
def submit_audit(
    entry: AuditEntry,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    if not state.has_item(entry.menu_item_id):
        raise HTTPException(404, "Menu item not found")
    if entry.consumed > entry.prepared:
        raise HTTPException(400, "consumed cannot exceed prepared")
    try:
        record = DailyEntry(
            id=new_id(),
            date=entry.date or today(),
            menu_item_id=entry.menu_item_id,
            prepared=entry.prepared,
            consumed=entry.consumed,
            pre_orders=0,
            is_holiday=entry.is_holiday,
            qualitative_feedback=entry.qualitative_feedback,
        )
    except ValidationError as e:
        raise HTTPException(400, str(e))
    ledger.append_entry(state, record)
    state.commit(db)
    return record.to_document()


@router.get("/summary")
def history_summary(state: CanteenState = Depends(get_state)):
    return ledger.summarize(ledger.known_entries(state.history, state.catalog))


@router.get("/export.csv")
def export_history(state: CanteenState = Depends(get_state)):
    body = ledger.export_csv(state.history, state.catalog)
    filename = f"smartcanteen_logs_{today().isoformat()}.csv"
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/defaults")
def audit_defaults(state: CanteenState = Depends(get_state)):
    """Prepared quantity to pre-fill per item: the applied plan, else base quantity."""
    return ledger.audit_defaults(state.catalog, state.production_plan)


@router.get("/strategy")
def history_strategy(state: CanteenState = Depends(get_state)):
    return {"strategy": waste_strategy(ledger.known_entries(state.history, state.catalog))}
