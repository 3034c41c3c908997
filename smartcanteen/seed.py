"""Seed the document store with the starter menu and a week of audit logs for demo."""
from smartcanteen.database import Base, SessionLocal, engine, init_db
from smartcanteen.schemas import DailyEntry, MenuItem
from smartcanteen.store import CanteenState, store_is_empty

# ===== MENU (id, name, category, unit, base, price, kcal, allergens, low carbon, veg, CO2e g, popularity) =====
MENU = [
    ("1", "Chicken Curry & Rice", "Main", "Portions", 100, 220, 650, ["Gluten", "Dairy"], False, False, 1200, 85),
    ("2", "Vegetable Pasta", "Main", "Portions", 80, 180, 520, ["Gluten"], True, True, 350, 72),
    ("3", "Garden Salad", "Side", "Bowls", 50, 120, 150, [], True, True, 150, 60),
    ("4", "Chocolate Brownie", "Dessert", "Pieces", 120, 90, 380, ["Egg", "Dairy", "Gluten"], False, False, 280, 95),
    ("5", "Iced Lemon Tea", "Drink", "Liters", 30, 60, 90, [], True, True, 80, 88),
    ("6", "Paneer Butter Masala", "Main", "Portions", 60, 200, 450, ["Dairy", "Nuts"], False, True, 700, 92),
    ("7", "Classic Veg Burger", "Main", "Portions", 50, 150, 380, ["Gluten", "Sesame"], True, True, 400, 78),
    ("8", "Fresh Fruit Bowl", "Dessert", "Bowls", 40, 100, 120, [], True, True, 50, 65),
    ("9", "Coca-Cola", "Drink", "Cans", 100, 40, 140, [], False, True, 150, 90),
    ("10", "Sprite", "Drink", "Cans", 80, 40, 140, [], False, True, 150, 85),
    ("11", "Minute Maid Orange", "Drink", "Bottles", 60, 50, 110, [], True, True, 100, 80),
]

# ===== AUDIT LOGS (id, date, item, prepared, consumed, pre-orders) =====
HISTORY = [
    ("e1", "2023-10-23", "1", 100, 85, 40),
    ("e2", "2023-10-23", "2", 80, 75, 30),
    ("e3", "2023-10-24", "1", 110, 105, 55),
    ("e4", "2023-10-24", "2", 80, 60, 25),
    ("e5", "2023-10-25", "1", 95, 90, 45),
    ("e6", "2023-10-26", "1", 120, 80, 30),
]


def starter_menu():
    return [
        MenuItem(
            id=item_id, name=name, category=category, unit=unit, base_quantity=base,
            price=price, calories=kcal, allergens=allergens, is_low_carbon=low_carbon,
            is_veg=veg, carbon_grams=carbon, popularity_score=popularity,
        )
        for (item_id, name, category, unit, base, price, kcal, allergens,
             low_carbon, veg, carbon, popularity) in MENU
    ]


def starter_history():
    return [
        DailyEntry(
            id=entry_id, date=day, menu_item_id=item_id,
            prepared=prepared, consumed=consumed, pre_orders=pre_orders,
        )
        for entry_id, day, item_id, prepared, consumed, pre_orders in HISTORY
    ]


def seed_if_empty(db) -> bool:
    """Load the demo menu and ledger into a store that has never been written."""
    if not store_is_empty(db):
        return False
    state = CanteenState.load(db)
    state.catalog = starter_menu()
    state.history = starter_history()
    state.commit(db)
    return True


if __name__ == "__main__":
    # Wipe and recreate
    Base.metadata.drop_all(bind=engine)
    init_db()

    db = SessionLocal()
    try:
        seed_if_empty(db)
        print(f"Seeded {len(MENU)} menu items and {len(HISTORY)} audit logs.")
    finally:
        db.close()
