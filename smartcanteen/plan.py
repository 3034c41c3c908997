"""Production plan: the single binding set of per-item quantities for the kitchen."""
import logging
from collections.abc import Iterable, Mapping
from typing import Optional, Union

from smartcanteen.config import get_settings
from smartcanteen.orders import PendingOrders
from smartcanteen.schemas import AppliedPlanItem, MenuItem, PredictionResult

logger = logging.getLogger(__name__)

ProductionPlan = dict[str, AppliedPlanItem]


def build_plan(predictions: Iterable[Union[PredictionResult, Mapping]]) -> ProductionPlan:
    """Keep quantity and portion split per item; forecast-only metadata is dropped."""
    plan: ProductionPlan = {}
    for p in predictions:
        if not isinstance(p, PredictionResult):
            p = PredictionResult.model_validate(p)
        plan[p.menu_item_id] = AppliedPlanItem(
            quantity=p.predicted_quantity,
            distribution=p.portion_distribution,
        )
    return plan


def apply_plan(state, predictions) -> ProductionPlan:
    """Replace the current plan wholesale. Nothing from the previous plan survives."""
    plan = build_plan(predictions)
    state.production_plan = plan
    logger.info("Applied production plan for %d items", len(plan))
    return plan


def planned_quantity(plan: Mapping[str, AppliedPlanItem], item: MenuItem) -> int:
    """Prep target for ``item``; base quantity when the plan has no entry for it."""
    planned = plan.get(item.id)
    return planned.quantity if planned else item.base_quantity


def surplus_items(
    catalog: Iterable[MenuItem],
    plan: Mapping[str, AppliedPlanItem],
    pending: PendingOrders,
    margin: Optional[int] = None,
) -> list[MenuItem]:
    """Items planned more than ``margin`` portions above confirmed demand."""
    if margin is None:
        margin = get_settings().SURPLUS_MARGIN
    out = []
    for item in catalog:
        planned = plan[item.id].quantity if item.id in plan else 0
        if planned > pending.total_for_item(item.id) + margin:
            out.append(item)
    return out


def plan_to_document(plan: Mapping[str, AppliedPlanItem]) -> dict:
    return {item_id: p.to_document() for item_id, p in plan.items()}


def plan_from_document(document) -> ProductionPlan:
    return {item_id: AppliedPlanItem.model_validate(p) for item_id, p in (document or {}).items()}
