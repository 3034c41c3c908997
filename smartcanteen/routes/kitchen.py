from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field
from typing import Dict

from smartcanteen import ledger, lifecycle
from smartcanteen.catalog import is_flash_sale_active
from smartcanteen.database import get_db
from smartcanteen.errors import UnknownMenuItem
from smartcanteen.plan import planned_quantity, surplus_items
from smartcanteen.store import CanteenState, get_state, get_state_for_update

router = APIRouter(prefix="/api/kitchen", tags=["kitchen"])


class PrepProgress(BaseModel):
    prepared: Dict[str, int] = {}  # menu item id -> portions marked prepared


class WasteLog(BaseModel):
    menu_item_id: str
    quantity: int = Field(ge=0)


@router.get("/prep-list")
def prep_list(state: CanteenState = Depends(get_state)):
    """Prep targets from the applied plan against confirmed demand, busiest first."""
    return lifecycle.prep_list(state.catalog, state.pending_today, state.production_plan)


@router.post("/prep-list")
def prep_list_with_progress(progress: PrepProgress, state: CanteenState = Depends(get_state)):
    """Same as GET, with the station's own count of portions already prepared."""
    return lifecycle.prep_list(
        state.catalog, state.pending_today, state.production_plan, progress.prepared
    )


@router.get("/live-orders")
def kitchen_live_orders(state: CanteenState = Depends(get_state)):
    return {
        "counts": lifecycle.status_counts(state.active_orders),
        "orders": [o.to_document() for o in lifecycle.live_orders(state.active_orders)],
    }


@router.post("/waste", status_code=201)
def log_waste(
    data: WasteLog,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    """Close out an item: confirmed orders count as consumed, the rest as waste."""
    try:
        entry = ledger.log_waste(state, data.menu_item_id, data.quantity)
    except UnknownMenuItem:
        raise HTTPException(404, "Menu item not found")
    state.commit(db)
    return entry.to_document()


@router.get("/surplus")
def surplus(state: CanteenState = Depends(get_state)):
    """Items planned well above confirmed demand; candidates for a flash sale."""
    return [
        {
            "menu_item_id": item.id,
            "name": item.name,
            "planned": planned_quantity(state.production_plan, item),
            "ordered": state.pending_today.total_for_item(item.id),
            "flash_sale_active": is_flash_sale_active(item),
        }
        for item in surplus_items(state.catalog, state.production_plan, state.pending_today)
    ]
