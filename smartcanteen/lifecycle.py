"""Individual orders moving PREPARING -> READY -> PICKED_UP, and the kitchen prep list."""
import logging
import random
from collections import Counter
from typing import Mapping, Optional

from smartcanteen import notifications
from smartcanteen.errors import InvalidTransition, OrderNotFound
from smartcanteen.orders import OrderKey, PendingOrders
from smartcanteen.plan import planned_quantity
from smartcanteen.schemas import (
    ActiveOrder,
    MenuItem,
    NotificationType,
    OrderStatus,
    UserRole,
)
from smartcanteen.utils import now_ms

logger = logging.getLogger(__name__)

NEXT_STATUS = {
    OrderStatus.PREPARING: OrderStatus.READY,
    OrderStatus.READY: OrderStatus.PICKED_UP,
}


def _normalize(items: Mapping) -> dict[str, int]:
    """Validate keys and drop non-positive quantities."""
    out: dict[str, int] = {}
    for key, qty in items.items():
        if not isinstance(key, OrderKey):
            key = OrderKey.parse(key)
        if qty > 0:
            out[str(key)] = out.get(str(key), 0) + qty
    return out


def _new_order_id(state) -> str:
    taken = {o.id for o in state.active_orders}
    while True:
        order_id = f"ORD-{random.randint(0, 999999)}"
        if order_id not in taken:
            return order_id


def confirm_order(state, items: Mapping, comments: Optional[Mapping[str, str]] = None) -> ActiveOrder:
    items = _normalize(items)
    order = ActiveOrder(
        id=_new_order_id(state),
        items=items,
        item_comments=dict(comments or {}),
        status=OrderStatus.PREPARING,
        timestamp=now_ms(),
    )
    state.active_orders = [*state.active_orders, order]
    state.pending_today.merge(items)

    notifications.push(
        state,
        "Order Confirmed",
        f"Order {order.id} has been sent to the kitchen.",
        NotificationType.SUCCESS,
        UserRole.STUDENT,
    )
    logger.info("Order %s confirmed with %d lines", order.id, len(items))
    return order


def add_to_last_order(state, items: Mapping) -> Optional[ActiveOrder]:
    """Top up the most recent order. Does nothing when there are no orders."""
    if not state.active_orders:
        return None
    items = _normalize(items)
    last = state.active_orders[-1]
    merged = dict(last.items)
    for key, qty in items.items():
        merged[key] = merged.get(key, 0) + qty
    updated = last.model_copy(update={"items": merged})
    state.active_orders = [*state.active_orders[:-1], updated]
    state.pending_today.merge(items)

    notifications.push(
        state,
        "Total Updated",
        "New items added to your current receipt.",
        NotificationType.SUCCESS,
        UserRole.STUDENT,
    )
    return updated


def confirm_preorder(state, items: Mapping) -> dict[str, int]:
    """Book for tomorrow. Only tomorrow's demand changes; no order is tracked."""
    items = _normalize(items)
    state.pending_tomorrow.merge(items)
    notifications.push(
        state,
        "Pre-order Confirmed",
        "Your booking for tomorrow is secured with a 5% discount!",
        NotificationType.SUCCESS,
        UserRole.STUDENT,
    )
    return items


def update_status(state, order_id: str, status: OrderStatus) -> ActiveOrder:
    orders = list(state.active_orders)
    for i, order in enumerate(orders):
        if order.id == order_id:
            break
    else:
        raise OrderNotFound(order_id)

    if NEXT_STATUS.get(order.status) != status:
        raise InvalidTransition(order_id, order.status.value, status.value)

    orders[i] = order.model_copy(update={"status": status})
    state.active_orders = orders

    if status == OrderStatus.READY:
        notifications.push(
            state, "Order Ready",
            f"Order {order_id} is now ready for pickup at Counter 3.",
            NotificationType.SUCCESS, UserRole.STUDENT,
        )
    elif status == OrderStatus.PICKED_UP:
        notifications.push(
            state, "Pickup Complete",
            f"Order {order_id} has been successfully handed over.",
            NotificationType.INFO, UserRole.STUDENT,
        )
    return orders[i]


def status_counts(orders: list[ActiveOrder]) -> dict[str, int]:
    counts = Counter(o.status.value for o in orders)
    return {s.value: counts.get(s.value, 0) for s in OrderStatus}


def live_orders(orders: list[ActiveOrder]) -> list[ActiveOrder]:
    return sorted(
        (o for o in orders if o.status != OrderStatus.PICKED_UP),
        key=lambda o: o.timestamp,
        reverse=True,
    )


def order_history(orders: list[ActiveOrder]) -> list[ActiveOrder]:
    return sorted(
        (o for o in orders if o.status == OrderStatus.PICKED_UP),
        key=lambda o: o.timestamp,
        reverse=True,
    )


def prep_list(
    catalog: list[MenuItem],
    pending: PendingOrders,
    plan: Optional[Mapping] = None,
    prepared: Optional[Mapping[str, int]] = None,
) -> list[dict]:
    """Kitchen view: per item prep target, ordered, done and still pending, busiest first."""
    plan = plan or {}
    prepared = prepared or {}
    rows = []
    for item in catalog:
        ordered = pending.total_for_item(item.id)
        done = prepared.get(item.id, 0)
        rows.append({
            "menu_item_id": item.id,
            "name": item.name,
            "target": planned_quantity(plan, item),
            "ordered": ordered,
            "done": done,
            "pending": max(0, ordered - done),
            "breakdown": pending.breakdown(item.id),
        })
    rows.sort(key=lambda r: r["pending"], reverse=True)
    return rows
