import itertools
from decimal import Decimal

import pytest

from coffee_assistant.agent.tools import OrderConfirmation
from coffee_assistant.types import CatalogRecord


class FakeOrderBackend:
    def __init__(self) -> None:
        self.orders: dict[str, OrderConfirmation] = {}
        self.calls: list[tuple[str, int, list[str], str | None]] = []
        self._ids = itertools.count(1)

    def place_order(
        self, item: str, quantity: int, add_ons: list[str], notes: str | None
    ) -> OrderConfirmation:
        self.calls.append((item, quantity, add_ons, notes))
        if item not in {"Latte", "Iced Tea"}:
            raise LookupError(f"Item not on the menu: {item}")
        order_id = f"ORD-{next(self._ids):04d}"
        unit = Decimal("4.50") if item == "Latte" else Decimal("3.00")
        confirmation = OrderConfirmation(
            order_id=order_id,
            item=item,
            quantity=quantity,
            add_ons=add_ons,
            total=unit * quantity,
        )
        self.orders[order_id] = confirmation
        return confirmation

    def get_order(self, order_id: str) -> OrderConfirmation:
        if order_id not in self.orders:
            raise KeyError(f"Order not found: {order_id}")
        return self.orders[order_id]


@pytest.fixture
def menu_payload() -> list[dict[str, object]]:
    return [
        {
            "name": "Latte",
            "description": "Espresso with steamed milk",
            "category": "Coffee",
            "price": 4.5,
            "tags": ["hot", "milk"],
            "addOns": ["oat milk"],
        },
        {
            "name": "Iced Tea",
            "description": "Chilled black tea",
            "category": "Tea",
            "price": 3.0,
            "tags": ["cold"],
            "addOns": [],
        },
    ]


@pytest.fixture
def menu_records(menu_payload: list[dict[str, object]]) -> list[CatalogRecord]:
    return [CatalogRecord.model_validate(item) for item in menu_payload]


@pytest.fixture
def order_backend() -> FakeOrderBackend:
    return FakeOrderBackend()
