"""Unit tests for the item catalogue."""
import pytest

from core.item_catalog import DEFAULT_ITEMS, ItemCatalog


@pytest.fixture
def catalog():
    return ItemCatalog(DEFAULT_ITEMS)


class TestItemCatalog:
    """Test suite for ItemCatalog lookups."""

    def test_exact_match_is_case_insensitive(self, catalog):
        assert catalog.find("Mug").class_name == "cup"
        assert catalog.find("  TV ").class_name == "tv"

    def test_partial_match_inside_phrase(self, catalog):
        assert catalog.resolve("find my red mug").class_name == "cup"
        assert catalog.resolve("where is the mobile phone").class_name == "cell phone"

    def test_too_short_query_has_no_partial_match(self, catalog):
        assert catalog.partial_match("ph") is None
        assert catalog.resolve("zz") is None

    def test_unknown_object(self, catalog):
        assert catalog.resolve("giraffe") is None

    def test_names_are_lower_case(self, catalog):
        names = catalog.all_names()
        assert "cell phone" in names
        assert all(name == name.lower() for name in names)
        assert len(catalog) == len(DEFAULT_ITEMS)
