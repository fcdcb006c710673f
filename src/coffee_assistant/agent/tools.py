"""Built-in tool implementations for the ordering assistant."""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from pydantic import BaseModel, Field

from coffee_assistant.agent.registry import ToolRegistry, ToolSpec
from coffee_assistant.retrieval.retriever import MenuRetriever


class SearchMenuInput(BaseModel):
    query: str = Field(min_length=1, description="What the customer is looking for.")
    top_k: int = Field(default=3, ge=1, le=10)


class PlaceOrderInput(BaseModel):
    item: str = Field(min_length=1, description="Exact menu item name.")
    quantity: int = Field(default=1, ge=1, le=20)
    add_ons: list[str] = Field(default_factory=list)
    notes: str | None = None


class GetOrderInput(BaseModel):
    order_id: str = Field(min_length=1)


class OrderConfirmation(BaseModel):
    order_id: str
    item: str
    quantity: int
    add_ons: list[str] = Field(default_factory=list)
    status: str = "received"
    total: Decimal | None = None


class OrderBackend(Protocol):
    """Order management supplied by the surrounding application."""

    def place_order(
        self, item: str, quantity: int, add_ons: list[str], notes: str | None
    ) -> OrderConfirmation:
        ...

    def get_order(self, order_id: str) -> OrderConfirmation:
        ...


def register_menu_tools(registry: ToolRegistry, retriever: MenuRetriever) -> None:
    """Register `search_menu`, a retrieval tool returning scored menu lines."""

    def _search(input_data: SearchMenuInput) -> str:
        matches = retriever.retrieve(input_data.query, top_k=input_data.top_k)
        lines = [
            f"[{match.document.doc_id}] score={match.score:.4f} {match.document.text}"
            for match in matches
        ]
        if not lines:
            return "NO_RESULTS"
        return "\n".join(lines)

    registry.register(
        ToolSpec(
            name="search_menu",
            description="Search the menu for items matching a description.",
            args_schema=SearchMenuInput,
            handler=_search,
            tags=["retrieval", "menu"],
        )
    )


def register_order_tools(registry: ToolRegistry, backend: OrderBackend) -> None:
    """Register order placement and lookup tools.

    Tools:
    - `place_order`: place an order for one menu item.
    - `get_order`: look up an existing order by id.
    """

    def _place(input_data: PlaceOrderInput) -> OrderConfirmation:
        return backend.place_order(
            input_data.item, input_data.quantity, input_data.add_ons, input_data.notes
        )

    def _lookup(input_data: GetOrderInput) -> OrderConfirmation:
        return backend.get_order(input_data.order_id)

    registry.register(
        ToolSpec(
            name="place_order",
            description="Place an order for a menu item with a quantity and optional add-ons.",
            args_schema=PlaceOrderInput,
            handler=_place,
            tags=["orders"],
        )
    )
    registry.register(
        ToolSpec(
            name="get_order",
            description="Look up the status of an existing order by its id.",
            args_schema=GetOrderInput,
            handler=_lookup,
            tags=["orders"],
        )
    )
