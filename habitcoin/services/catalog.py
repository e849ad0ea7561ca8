"""
Shop Catalog

Items users can buy with coins. Only the price matters to the ledger;
names, icons and categories are passed through for the client.
"""
from typing import Dict, Iterable, List, Optional

from habitcoin.exceptions import NotFoundError


# Catalog keyed by item id
SHOP_ITEMS: Dict[str, dict] = {
    "1": {
        "name": "Premium Theme",
        "description": "Unlock beautiful premium themes for your app",
        "price": 500,
        "category": "themes",
        "icon": "Palette",
    },
    "2": {
        "name": "Streak Freeze",
        "description": "Protect your streak for one missed day",
        "price": 200,
        "category": "power-ups",
        "icon": "Shield",
    },
    "3": {
        "name": "Double Coins",
        "description": "Earn double coins for the next 7 days",
        "price": 300,
        "category": "power-ups",
        "icon": "Coins",
    },
    "4": {
        "name": "Habit Multiplier",
        "description": "Increase coin rewards for high-priority habits",
        "price": 400,
        "category": "power-ups",
        "icon": "Zap",
    },
    "5": {
        "name": "Progress Badge",
        "description": "Show off your achievement with a special badge",
        "price": 150,
        "category": "rewards",
        "icon": "Award",
    },
    "6": {
        "name": "Habit Reminder",
        "description": "Get smart reminders for your habits",
        "price": 250,
        "category": "features",
        "icon": "Bell",
    },
    "7": {
        "name": "Analytics Pro",
        "description": "Advanced analytics and insights for your habits",
        "price": 600,
        "category": "features",
        "icon": "BarChart3",
    },
    "8": {
        "name": "Custom Rewards",
        "description": "Set up your own custom reward system",
        "price": 350,
        "category": "features",
        "icon": "Gift",
    },
}


def get_item(item_id: str) -> dict:
    """
    Look up a catalog item.

    Raises:
        NotFoundError: If the id is not in the catalog.
    """
    item = SHOP_ITEMS.get(item_id)
    if item is None:
        raise NotFoundError(
            f"Shop item {item_id} not found",
            record_type="shop_item",
            record_id=item_id,
        )
    return {"id": item_id, **item}


def list_items(owned: Iterable[str] = (), category: Optional[str] = None) -> List[dict]:
    """
    Catalog with a purchased flag for the given owned ids.

    Args:
        owned: Item ids the user already owns.
        category: Only return items in this category.
    """
    owned = set(owned)
    return [
        {"id": item_id, **item, "purchased": item_id in owned}
        for item_id, item in SHOP_ITEMS.items()
        if category is None or item["category"] == category
    ]
