from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field, field_validator
from typing import Dict, Literal

from smartcanteen import lifecycle
from smartcanteen.database import get_db
from smartcanteen.errors import InvalidTransition, OrderNotFound
from smartcanteen.orders import OrderKey
from smartcanteen.schemas import OrderStatus
from smartcanteen.store import CanteenState, get_state, get_state_for_update

router = APIRouter(prefix="/api/orders", tags=["orders"])


class OrderItems(BaseModel):
    items: Dict[str, int] = Field(min_length=1)  # "itemId:SIZE" -> quantity

    @field_validator("items")
    @classmethod
    def _check_keys(cls, items):
        for key, qty in items.items():
            try:
                parsed = OrderKey.parse(key)
            except ValueError:
                raise ValueError(f"Invalid order key {key!r}, expected itemId:SMALL|REGULAR|LARGE")
            if parsed.size is None:
                raise ValueError(f"Order key {key!r} needs a portion size")
            if qty <= 0:
                raise ValueError(f"Quantity for {key!r} must be greater than 0")
        return items


class OrderCreate(OrderItems):
    item_comments: Dict[str, str] = {}


class StatusUpdate(BaseModel):
    status: OrderStatus


def _check_items_exist(state: CanteenState, items: Dict[str, int]):
    for key in items:
        if not state.has_item(OrderKey.parse(key).item_id):
            raise HTTPException(404, f"Menu item for {key!r} not found")


@router.post("", status_code=201)
def confirm_order(
    order: OrderCreate,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    _check_items_exist(state, order.items)
    record = lifecycle.confirm_order(state, order.items, order.item_comments)
    state.commit(db)
    return record.to_document()


@router.post("/add-to-last")
def add_to_last_order(
    data: OrderItems,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    _check_items_exist(state, data.items)
    record = lifecycle.add_to_last_order(state, data.items)
    if record is None:
        raise HTTPException(404, "No order to add to")
    state.commit(db)
    return record.to_document()


@router.post("/preorders", status_code=201)
def confirm_preorder(
    data: OrderItems,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    """Book for tomorrow; feeds tomorrow's forecast as confirmed demand."""
    _check_items_exist(state, data.items)
    booked = lifecycle.confirm_preorder(state, data.items)
    state.commit(db)
    return {"booked": booked, "pending_tomorrow": state.pending_tomorrow.to_document()}


@router.get("")
def list_live_orders(state: CanteenState = Depends(get_state)):
    """Orders not yet picked up, newest first."""
    return [o.to_document() for o in lifecycle.live_orders(state.active_orders)]


@router.get("/history")
def list_order_history(state: CanteenState = Depends(get_state)):
    return [o.to_document() for o in lifecycle.order_history(state.active_orders)]


@router.get("/counts")
def order_counts(state: CanteenState = Depends(get_state)):
    return lifecycle.status_counts(state.active_orders)


@router.get("/pending")
def pending_orders(
    day: Literal["today", "tomorrow"] = Query("today"),
    state: CanteenState = Depends(get_state),
):
    """Aggregate confirmed demand, per key and per menu item."""
    pending = state.pending_today if day == "today" else state.pending_tomorrow
    return {
        "day": day,
        "orders": pending.to_document(),
        "by_item": {
            item.id: pending.total_for_item(item.id)
            for item in state.catalog
            if pending.total_for_item(item.id) > 0
        },
    }


@router.put("/{order_id}/status")
def update_order_status(
    order_id: str,
    data: StatusUpdate,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    try:
        record = lifecycle.update_status(state, order_id, data.status)
    except OrderNotFound:
        raise HTTPException(404, "Order not found")
    except InvalidTransition as e:
        raise HTTPException(409, str(e))
    state.commit(db)
    return record.to_document()
