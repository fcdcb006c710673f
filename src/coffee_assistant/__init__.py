"""Coffee-shop ordering assistant package."""

from .bootstrap import Assistant, StaticCatalog, build_assistant
from .config import AssistantSettings
from .types import CatalogRecord

__all__ = ["Assistant", "AssistantSettings", "CatalogRecord", "StaticCatalog", "build_assistant"]
