"""Menu catalog edits and flash-sale timing."""
import logging
from typing import Optional

from smartcanteen.config import get_settings
from smartcanteen.errors import CanteenError, UnknownMenuItem
from smartcanteen.schemas import Category, MenuItem
from smartcanteen.utils import now_ms

logger = logging.getLogger(__name__)

DEFAULT_FLASH_PERCENTAGE = 50
SURPRISE_FLASH_PERCENTAGE = 40


def _index(state, item_id: str) -> int:
    for i, item in enumerate(state.catalog):
        if item.id == item_id:
            return i
    raise UnknownMenuItem(item_id)


def add_item(state, item: MenuItem) -> MenuItem:
    if state.has_item(item.id):
        raise CanteenError(f"Menu item {item.id!r} already exists")
    if item.is_flash_sale:
        item = set_flash_sale(
            item.model_copy(update={"flash_sale_start_time": None}), True, item.flash_sale_percentage
        )
    else:
        item = set_flash_sale(item, False)
    state.catalog = [*state.catalog, item]
    return item


def update_item(state, item_id: str, changes: dict) -> MenuItem:
    """Apply field changes to one item. Turning the flash sale on stamps its start time."""
    i = _index(state, item_id)
    current = state.catalog[i]
    changes = {k: v for k, v in changes.items() if k not in ("id", "flash_sale_start_time")}

    flash = changes.pop("is_flash_sale", None)
    percentage = changes.pop("flash_sale_percentage", None)
    updated = current.model_copy(update=changes)
    if flash is not None:
        updated = set_flash_sale(updated, flash, percentage)
    elif percentage is not None and updated.is_flash_sale:
        updated = updated.model_copy(update={"flash_sale_percentage": percentage})

    updated = MenuItem.model_validate(updated.model_dump())
    catalog = list(state.catalog)
    catalog[i] = updated
    state.catalog = catalog
    return updated


def remove_item(state, item_id: str) -> MenuItem:
    i = _index(state, item_id)
    removed = state.catalog[i]
    state.catalog = [item for item in state.catalog if item.id != item_id]
    return removed


def set_flash_sale(
    item: MenuItem,
    enabled: bool,
    percentage: Optional[int] = None,
    now: Optional[int] = None,
) -> MenuItem:
    """Flash-sale fields always change together."""
    if not enabled:
        return item.model_copy(update={
            "is_flash_sale": False,
            "flash_sale_start_time": None,
            "flash_sale_percentage": None,
        })
    start = item.flash_sale_start_time if (item.is_flash_sale and item.flash_sale_start_time) else None
    return item.model_copy(update={
        "is_flash_sale": True,
        "flash_sale_start_time": start or (now if now is not None else now_ms()),
        "flash_sale_percentage": percentage or item.flash_sale_percentage or DEFAULT_FLASH_PERCENTAGE,
    })


def is_flash_sale_active(item: MenuItem, now: Optional[int] = None) -> bool:
    if not item.is_flash_sale or not item.flash_sale_start_time:
        return False
    now = now if now is not None else now_ms()
    window_ms = get_settings().FLASH_SALE_WINDOW_MINUTES * 60 * 1000
    return now - item.flash_sale_start_time < window_ms


def add_surprise_dish(state, dish: dict, now: Optional[int] = None) -> MenuItem:
    """Put a generated leftover dish on the menu with its flash sale already running."""
    now = now if now is not None else now_ms()
    item = MenuItem(
        id=f"surprise-{now}",
        name=dish.get("name") or "Chef's Surprise",
        category=Category.MAIN,
        description=dish.get("description"),
        unit="Portion",
        base_quantity=20,
        price=150,
        calories=dish.get("calories") or 500,
        allergens=dish.get("allergens") or [],
        is_low_carbon=True,
        is_veg=True,
        carbon_grams=50,
        popularity_score=100,
        is_flash_sale=True,
        flash_sale_start_time=now,
        flash_sale_percentage=SURPRISE_FLASH_PERCENTAGE,
        is_surprise_dish=True,
        ingredients=dish.get("ingredients"),
    )
    state.catalog = [*state.catalog, item]
    logger.info("Added surprise dish %r", item.name)
    return item
