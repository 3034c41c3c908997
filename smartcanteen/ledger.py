"""History ledger: append-only prepared/consumed/waste records per item per day."""
import csv
import io
import logging
from datetime import date
from typing import Iterable, Optional

from smartcanteen import notifications
from smartcanteen.errors import UnknownMenuItem
from smartcanteen.orders import OrderKey
from smartcanteen.plan import planned_quantity
from smartcanteen.schemas import DailyEntry, MenuItem, NotificationType, UserRole
from smartcanteen.utils import new_id, today

logger = logging.getLogger(__name__)

CARBON_GRAMS_PER_WASTED_PORTION = 180


def append_entry(state, entry: DailyEntry) -> DailyEntry:
    """Record an audit entry. The item's bare pending key is settled by it."""
    state.history = [*state.history, entry]
    state.pending_today.discard(OrderKey(entry.menu_item_id))
    logger.info(
        "Audit logged for item %s on %s: prepared=%d consumed=%d waste=%d",
        entry.menu_item_id, entry.date, entry.prepared, entry.consumed, entry.waste,
    )
    return entry


def log_waste(state, item_id: str, waste: int, on: Optional[date] = None) -> DailyEntry:
    """Close out an item for the day: what was ordered was eaten, the rest is waste."""
    if not state.has_item(item_id):
        raise UnknownMenuItem(item_id)
    on = on or today()
    ordered = state.pending_today.total_for_item(item_id)

    entry = DailyEntry(
        id=new_id(),
        date=on,
        menu_item_id=item_id,
        prepared=ordered + waste,
        consumed=ordered,
        pre_orders=ordered,
        is_holiday=False,
    )
    state.history = [*state.history, entry]
    state.pending_today.clear_item(item_id)

    notifications.push(
        state,
        "Audit Logged",
        f"Waste data for {item_id} saved to historical records.",
        NotificationType.INFO,
        UserRole.ADMIN,
    )
    logger.info("Waste closeout for item %s: %d ordered, %d wasted", item_id, ordered, waste)
    return entry


def known_entries(history: Iterable[DailyEntry], catalog: Iterable[MenuItem]) -> list[DailyEntry]:
    """Drop entries whose menu item is no longer in the catalog."""
    ids = {item.id for item in catalog}
    return [e for e in history if e.menu_item_id in ids]


def efficiency(entry: DailyEntry) -> float:
    return round(entry.consumed / entry.prepared * 100, 1) if entry.prepared > 0 else 0.0


def summarize(history: list[DailyEntry]) -> dict:
    total_prepared = sum(e.prepared for e in history)
    total_consumed = sum(e.consumed for e in history)
    total_waste = sum(e.waste for e in history)
    avg_efficiency = (
        round((total_prepared - total_waste) / total_prepared * 100, 1) if total_prepared > 0 else 0
    )
    return {
        "entries": len(history),
        "total_prepared": total_prepared,
        "total_consumed": total_consumed,
        "total_waste": total_waste,
        "avg_efficiency": avg_efficiency,
        "carbon_saved_grams": total_waste * CARBON_GRAMS_PER_WASTED_PORTION,
    }


def export_csv(history: list[DailyEntry], catalog: list[MenuItem]) -> str:
    names = {item.id: item.name for item in catalog}
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["Date", "Menu Item", "Prepared", "Consumed", "Waste", "Pre-Orders", "Efficiency %"])
    for e in history:
        writer.writerow([
            e.date.isoformat(),
            names.get(e.menu_item_id, "Unknown"),
            e.prepared,
            e.consumed,
            e.waste,
            e.pre_orders,
            f"{efficiency(e):.1f}%",
        ])
    return buf.getvalue()


def audit_defaults(catalog: list[MenuItem], plan) -> list[dict]:
    """Default 'prepared' figure for tonight's audit form: the plan, else base quantity."""
    return [
        {
            "menu_item_id": item.id,
            "name": item.name,
            "prepared": planned_quantity(plan, item),
            "from_plan": item.id in plan,
        }
        for item in catalog
    ]
