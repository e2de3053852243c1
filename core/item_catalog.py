"""
ItemCatalog — the searchable object classes and the names users say
for them.
"""
from __future__ import annotations
from typing import Dict, Iterable, List, Optional

from domain.models import CatalogItem

MIN_PARTIAL_MATCH = 3


class ItemCatalog:
    """
    Parameters
    ----------
    items : iterable of CatalogItem
        Display and alternative names are matched case-insensitively.
    """

    def __init__(self, items: Iterable[CatalogItem]) -> None:
        self._items: List[CatalogItem] = list(items)
        self._by_name: Dict[str, CatalogItem] = {}
        for item in self._items:
            for name in item.names:
                self._by_name.setdefault(name.lower().strip(), item)

    @property
    def items(self) -> List[CatalogItem]:
        return list(self._items)

    def all_names(self) -> List[str]:
        """Every lower-cased display / alternative name."""
        return list(self._by_name)

    def find(self, name: str) -> Optional[CatalogItem]:
        return self._by_name.get(name.lower().strip())

    def partial_match(self, text: str) -> Optional[CatalogItem]:
        """
        Fuzzy lookup for phrases such as "find my red mug": the longest
        catalogue name contained in ``text`` (or containing it) wins.
        """
        query = text.lower().strip()
        if len(query) < MIN_PARTIAL_MATCH:
            return None

        best: Optional[CatalogItem] = None
        best_score = 0
        for name, item in self._by_name.items():
            if name in query:
                score = len(name)
            elif query in name:
                score = len(query)
            else:
                continue
            if score > best_score:
                best_score = score
                best = item
        return best if best_score >= MIN_PARTIAL_MATCH else None

    def resolve(self, text: str) -> Optional[CatalogItem]:
        """Exact match first, partial match as a fallback."""
        return self.find(text) or self.partial_match(text)

    def __len__(self) -> int:
        return len(self._items)


DEFAULT_ITEMS = (
    CatalogItem("person", "person", ("man", "woman", "people")),
    CatalogItem("bottle", "bottle"),
    CatalogItem("cup", "cup", ("mug",)),
    CatalogItem("chair", "chair"),
    CatalogItem("couch", "sofa", ("couch",)),
    CatalogItem("bed", "bed"),
    CatalogItem("dining table", "table"),
    CatalogItem("toilet", "toilet"),
    CatalogItem("tv", "tv", ("television",)),
    CatalogItem("laptop", "laptop"),
    CatalogItem("mouse", "mouse"),
    CatalogItem("keyboard", "keyboard"),
    CatalogItem("cell phone", "phone", ("cell phone", "mobile phone")),
    CatalogItem("book", "book"),
    CatalogItem("clock", "clock"),
    CatalogItem("backpack", "backpack", ("bag",)),
    CatalogItem("door", "door", model_name="custom"),
    CatalogItem("key", "keys", ("key",), model_name="custom"),
)
