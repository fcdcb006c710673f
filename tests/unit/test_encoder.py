from decimal import Decimal

import pytest
from pydantic import ValidationError

from coffee_assistant.ingest.encoder import encode
from coffee_assistant.types import CatalogRecord


def test_encode_renders_every_field_in_fixed_order(menu_records) -> None:
    latte, iced_tea = (encode(record) for record in menu_records)

    assert latte.doc_id == "latte"
    assert latte.text == (
        "Latte: Espresso with steamed milk. Category: Coffee. Price: $4.50. "
        "Tags: hot, milk. Add-ons: oat milk."
    )
    assert iced_tea.doc_id == "iced-tea"
    assert iced_tea.text == (
        "Iced Tea: Chilled black tea. Category: Tea. Price: $3.00. "
        "Tags: cold. Add-ons: none."
    )


def test_encode_is_independent_of_tag_order() -> None:
    first = CatalogRecord(name="Mocha", price=Decimal("5"), tags=["sweet", "hot", "chocolate"])
    second = CatalogRecord(name="Mocha", price=Decimal("5"), tags=["chocolate", "sweet", "hot"])

    assert encode(first).text.encode("utf-8") == encode(second).text.encode("utf-8")
    assert "Tags: chocolate, hot, sweet." in encode(first).text


def test_encode_keeps_add_on_order_and_explicit_id() -> None:
    record = CatalogRecord(
        id="SKU-7",
        name="Flat White",
        description="Ristretto with microfoam.",
        category="Coffee",
        price=Decimal("2.005"),
        add_ons=["extra shot", "almond milk"],
    )

    document = encode(record)

    assert document.doc_id == "SKU-7"
    assert "Ristretto with microfoam. Category" in document.text
    assert "Price: $2.01." in document.text
    assert document.text.endswith("Add-ons: extra shot, almond milk.")


def test_catalog_record_is_immutable_and_validated(menu_records) -> None:
    with pytest.raises(ValidationError):
        menu_records[0].name = "Cappuccino"

    with pytest.raises(ValidationError):
        CatalogRecord(name="Latte", price=Decimal("-1"))


@pytest.mark.parametrize("description", ["", "   ", "."])
def test_blank_description_leaves_only_the_name(description) -> None:
    record = CatalogRecord(
        name="Mocha", description=description, category="Coffee", price=Decimal("5")
    )

    assert encode(record).text == (
        "Mocha. Category: Coffee. Price: $5.00. Tags: none. Add-ons: none."
    )
