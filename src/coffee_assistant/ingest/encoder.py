"""Text representation of catalog records for embedding."""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal

from coffee_assistant.types import CatalogRecord, Document

_CENTS = Decimal("0.01")


def encode(record: CatalogRecord) -> Document:
    """Render a record as one line of searchable text.

    Field order is fixed and tags are sorted, so equal records always produce
    byte-identical text:

        Latte: Espresso with steamed milk. Category: Coffee. Price: $4.50.
        Tags: hot, milk. Add-ons: oat milk.

    A blank description leaves just the name, as in `Mocha. Category: ...`.
    """
    price = record.price.quantize(_CENTS, rounding=ROUND_HALF_UP)
    description = record.description.strip().rstrip(".")
    heading = f"{record.name}: {description}." if description else f"{record.name}."
    text = (
        f"{heading} "
        f"Category: {record.category}. "
        f"Price: ${price}. "
        f"Tags: {_join(sorted(record.tags))}. "
        f"Add-ons: {_join(record.add_ons)}."
    )
    return Document(doc_id=document_id(record), text=text)


def document_id(record: CatalogRecord) -> str:
    if record.item_id:
        return record.item_id
    slug = re.sub(r"[^a-z0-9]+", "-", record.name.lower()).strip("-")
    return slug or "item"


def _join(values: list[str] | tuple[str, ...]) -> str:
    return ", ".join(values) if values else "none"
