from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from pydantic import BaseModel, Field, ValidationError
from typing import Optional, List

from smartcanteen import catalog
from smartcanteen.ai_insights import generate_surprise_dish
from smartcanteen.database import get_db
from smartcanteen.errors import CanteenError, UnknownMenuItem
from smartcanteen.schemas import Category, MenuItem
from smartcanteen.store import CanteenState, get_state, get_state_for_update

router = APIRouter(prefix="/api/menu", tags=["menu"])


class MenuItemUpdate(BaseModel):
    name: Optional[str] = None
    category: Optional[Category] = None
    description: Optional[str] = None
    unit: Optional[str] = None
    base_quantity: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    calories: Optional[int] = Field(None, ge=0)
    allergens: Optional[List[str]] = None
    is_low_carbon: Optional[bool] = None
    is_veg: Optional[bool] = None
    carbon_grams: Optional[float] = Field(None, ge=0)
    popularity_score: Optional[int] = Field(None, ge=0, le=100)
    image: Optional[str] = None
    is_flash_sale: Optional[bool] = None
    flash_sale_percentage: Optional[int] = Field(None, ge=0, le=100)


class FlashSaleUpdate(BaseModel):
    enabled: bool
    percentage: Optional[int] = Field(None, ge=1, le=100)


class SurpriseDishRequest(BaseModel):
    leftover_ids: List[str]


def _with_flash_state(item: MenuItem) -> dict:
    data = item.to_document()
    data["flashSaleActive"] = catalog.is_flash_sale_active(item)
    return data


@router.get("")
def list_menu(category: Optional[Category] = None, state: CanteenState = Depends(get_state)):
    items = state.catalog
    if category is not None:
        items = [i for i in items if i.category == category]
    return [_with_flash_state(i) for i in items]


@router.get("/{item_id}")
def get_menu_item(item_id: str, state: CanteenState = Depends(get_state)):
    try:
        return _with_flash_state(state.menu_item(item_id))
    except UnknownMenuItem:
        raise HTTPException(404, "Menu item not found")


@router.post("", status_code=201)
def create_menu_item(
    item: MenuItem,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    try:
        created = catalog.add_item(state, item)
    except CanteenError as e:
        raise HTTPException(400, str(e))
    state.commit(db)
    return _with_flash_state(created)


@router.put("/{item_id}")
def update_menu_item(
    item_id: str,
    update: MenuItemUpdate,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    try:
        updated = catalog.update_item(state, item_id, update.model_dump(exclude_unset=True))
    except UnknownMenuItem:
        raise HTTPException(404, "Menu item not found")
    except ValidationError as e:
        # e.g. an explicit null for a required field
        raise HTTPException(422, e.errors(include_url=False, include_context=False))
    state.commit(db)
    return _with_flash_state(updated)


@router.delete("/{item_id}")
def delete_menu_item(
    item_id: str,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    """Remove an item. Its ledger rows stay and are filtered out of reads."""
    try:
        removed = catalog.remove_item(state, item_id)
    except UnknownMenuItem:
        raise HTTPException(404, "Menu item not found")
    state.commit(db)
    return {"message": f"'{removed.name}' removed"}


@router.put("/{item_id}/flash-sale")
def set_flash_sale(
    item_id: str,
    data: FlashSaleUpdate,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    changes = {"is_flash_sale": data.enabled}
    if data.percentage is not None:
        changes["flash_sale_percentage"] = data.percentage
    try:
        updated = catalog.update_item(state, item_id, changes)
    except UnknownMenuItem:
        raise HTTPException(404, "Menu item not found")
    state.commit(db)
    return _with_flash_state(updated)


@router.post("/surprise-dish", status_code=201)
def create_surprise_dish(
    data: SurpriseDishRequest,
    state: CanteenState = Depends(get_state_for_update),
    db: Session = Depends(get_db),
):
    """Turn leftover items into a new flash-sale dish."""
    if not data.leftover_ids:
        raise HTTPException(400, "Pick at least one leftover item")
    try:
        leftovers = [state.menu_item(i) for i in data.leftover_ids]
    except UnknownMenuItem as e:
        raise HTTPException(404, str(e))
    dish = generate_surprise_dish(leftovers)
    item = catalog.add_surprise_dish(state, dish)
    state.commit(db)
    return _with_flash_state(item)
