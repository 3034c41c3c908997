"""
SmartCanteen domain models

Field names are camelCase on the wire and in stored documents, snake_case in Python.
"""
from datetime import date as Date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Category(str, Enum):
    MAIN = "Main"
    SIDE = "Side"
    DESSERT = "Dessert"
    DRINK = "Drink"


class PortionSize(str, Enum):
    SMALL = "SMALL"
    REGULAR = "REGULAR"
    LARGE = "LARGE"


class OptimizationMode(str, Enum):
    NORMAL = "NORMAL"
    EXAM = "EXAM"
    FEST = "FEST"


class OrderStatus(str, Enum):
    PREPARING = "PREPARING"
    READY = "READY"
    PICKED_UP = "PICKED_UP"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    STUDENT = "STUDENT"


class NotificationType(str, Enum):
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ALERT = "ALERT"


class MenuItem(CamelModel):
    id: str
    name: str
    category: Category = Category.MAIN
    description: Optional[str] = None
    unit: str = "Portions"
    base_quantity: int = Field(0, ge=0)
    price: float = Field(0, ge=0)
    calories: int = Field(0, ge=0)
    allergens: list[str] = []
    is_low_carbon: bool = False
    is_veg: bool = False
    carbon_grams: float = Field(0, ge=0)  # CO2e per regular portion
    popularity_score: int = Field(50, ge=0, le=100)
    image: Optional[str] = None
    is_flash_sale: bool = False
    flash_sale_start_time: Optional[int] = None  # epoch ms
    flash_sale_percentage: Optional[int] = Field(None, ge=0, le=100)
    is_surprise_dish: bool = False
    ingredients: Optional[list[str]] = None


class DailyEntry(CamelModel):
    """Immutable ledger row. waste is always prepared - consumed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    date: Date
    menu_item_id: str
    prepared: int = Field(ge=0)
    consumed: int = Field(ge=0)
    waste: int = Field(ge=0)
    pre_orders: int = Field(0, ge=0)
    day_of_week: str
    is_holiday: bool = False
    qualitative_feedback: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _derive_fields(cls, data):
        if not isinstance(data, dict):
            return data
        data = dict(data)
        prepared = data.get("prepared")
        consumed = data.get("consumed")
        has_waste = "waste" in data and data["waste"] is not None
        if not has_waste and isinstance(prepared, int) and isinstance(consumed, int):
            data["waste"] = prepared - consumed
        if not (data.get("dayOfWeek") or data.get("day_of_week")):
            raw = data.get("date")
            if isinstance(raw, str):
                try:
                    raw = Date.fromisoformat(raw)
                except ValueError:
                    raw = None
            if isinstance(raw, Date):
                data["day_of_week"] = raw.strftime("%A")
        return data

    @model_validator(mode="after")
    def _check_waste(self):
        if self.consumed > self.prepared:
            raise ValueError("consumed cannot exceed prepared")
        if self.waste != self.prepared - self.consumed:
            raise ValueError(
                f"waste must equal prepared - consumed ({self.prepared - self.consumed}), got {self.waste}"
            )
        return self


class PortionDistribution(CamelModel):
    small: int = Field(ge=0)
    regular: int = Field(ge=0)
    large: int = Field(ge=0)


class PredictionResult(CamelModel):
    menu_item_id: str
    name: str
    predicted_quantity: int = Field(ge=0)
    portion_distribution: PortionDistribution
    confidence_score: float = Field(ge=0.0, le=1.0)
    reasoning: str
    carbon_impact_saved: float = 0


class AppliedPlanItem(CamelModel):
    quantity: int = Field(ge=0)
    distribution: PortionDistribution


class ActiveOrder(CamelModel):
    id: str
    items: dict[str, int]  # rendered OrderKey -> quantity
    item_comments: dict[str, str] = {}
    status: OrderStatus = OrderStatus.PREPARING
    timestamp: int  # epoch ms


class Notification(CamelModel):
    id: str
    title: str
    message: str
    timestamp: int
    is_read: bool = False
    type: NotificationType = NotificationType.INFO
    role: Optional[UserRole] = None
