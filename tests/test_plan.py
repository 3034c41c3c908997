from conftest import make_item
from smartcanteen.orders import PendingOrders
from smartcanteen.plan import (
    apply_plan,
    build_plan,
    plan_from_document,
    plan_to_document,
    planned_quantity,
    surplus_items,
)
from smartcanteen.schemas import PredictionResult
from smartcanteen.store import CanteenState


def prediction(item_id, quantity, small=None, regular=None, large=None):
    return PredictionResult(
        menu_item_id=item_id,
        name=f"Item {item_id}",
        predicted_quantity=quantity,
        portion_distribution={
            "small": small if small is not None else round(quantity * 0.25),
            "regular": regular if regular is not None else round(quantity * 0.55),
            "large": large if large is not None else round(quantity * 0.2),
        },
        confidence_score=0.78,
        reasoning="test",
        carbon_impact_saved=3,
    )


def test_build_plan_keeps_only_quantity_and_distribution():
    plan = build_plan([prediction("1", 93, 23, 51, 19)])
    assert plan_to_document(plan) == {
        "1": {"quantity": 93, "distribution": {"small": 23, "regular": 51, "large": 19}}
    }


def test_build_plan_accepts_plain_mappings():
    plan = build_plan([{
        "menuItemId": "4",
        "name": "Brownie",
        "predictedQuantity": 10,
        "portionDistribution": {"small": 3, "regular": 6, "large": 2},
        "confidenceScore": 0.5,
        "reasoning": "r",
        "carbonImpactSaved": 0,
    }])
    assert plan["4"].quantity == 10


def test_applying_twice_gives_same_plan():
    state = CanteenState()
    predictions = [prediction("1", 93), prediction("2", 40)]
    first = plan_to_document(apply_plan(state, predictions))
    second = plan_to_document(apply_plan(state, predictions))
    assert first == second
    assert plan_to_document(state.production_plan) == first


def test_new_plan_replaces_old_one():
    state = CanteenState()
    apply_plan(state, [prediction("1", 93), prediction("2", 40)])
    apply_plan(state, [prediction("2", 55)])
    assert set(state.production_plan) == {"2"}
    assert state.production_plan["2"].quantity == 55


def test_missing_plan_entry_defaults_to_base_quantity():
    plan = build_plan([prediction("1", 93)])
    assert planned_quantity(plan, make_item("1", base_quantity=100)) == 93
    assert planned_quantity(plan, make_item("2", base_quantity=80)) == 80
    assert planned_quantity({}, make_item("2", base_quantity=80)) == 80


def test_surplus_items_above_margin():
    catalog = [make_item("1"), make_item("2"), make_item("3")]
    plan = build_plan([prediction("1", 10), prediction("2", 14)])
    pending = PendingOrders.from_document({"1:SMALL": 7, "2:LARGE": 10})
    # 1: 10 > 7 + 3 is false; 2: 14 > 13 is true; 3 has no plan
    assert [i.id for i in surplus_items(catalog, plan, pending, margin=3)] == ["2"]


def test_plan_document_round_trip():
    plan = build_plan([prediction("1", 93)])
    assert plan_to_document(plan_from_document(plan_to_document(plan))) == plan_to_document(plan)
