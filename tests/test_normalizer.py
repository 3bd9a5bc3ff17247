import pytest

from provider_match.models.settings import DEFAULT_CATEGORY_CATALOG, CategoryCatalog, CategoryEntry
from provider_match.services.normalizer import CategoryNormalizer


@pytest.fixture
def normalizer():
    return CategoryNormalizer(DEFAULT_CATEGORY_CATALOG)


class TestCategoryNormalizer:
    """Test cases for category normalization"""

    def test_known_category_is_case_insensitive(self, normalizer):
        category = normalizer.normalize("  Plumbing ")

        assert category.key == "plumbing"
        assert category.known is True
        assert category.keywords[0] == "plumbing"
        assert "pipe repair" in category.keywords
        assert category.fuzzy == ("maintenance", "repair", "installation", "water")
        assert category.default_price == 3000
        assert category.default_duration_minutes == 120

    def test_alias_maps_to_canonical_key(self, normalizer):
        assert normalizer.normalize("movers").key == "moving"
        assert normalizer.normalize("Electrician").key == "electrical"

    def test_object_category_uses_id(self, normalizer):
        category = normalizer.normalize({"id": "cleaning", "name": "Home Cleaning"})

        assert category.key == "cleaning"
        assert category.raw == "cleaning"

    def test_object_category_falls_back_to_name(self, normalizer):
        assert normalizer.normalize({"name": "Painting"}).key == "painting"

    def test_unknown_category_passes_through(self, normalizer):
        category = normalizer.normalize("appliance-repair")

        assert category.known is False
        assert category.key == "appliance-repair"
        assert category.keywords == ("appliance-repair",)
        assert category.fuzzy == ("other",)
        assert category.default_price == 3000
        assert category.default_duration_minutes == 120

    def test_separator_variants_of_known_keys(self):
        catalog = CategoryCatalog(entries={"appliance repair": CategoryEntry(keywords=("appliance",))})
        normalizer = CategoryNormalizer(catalog)

        assert normalizer.normalize("appliance-repair").key == "appliance repair"
        assert normalizer.normalize("appliance_repair").key == "appliance repair"

    def test_suggested_title(self, normalizer):
        assert normalizer.normalize("plumbing").suggested_title == "Plumbing Services"

    @pytest.mark.parametrize("raw", [None, "", "   ", {}, {"id": ""}])
    def test_extract_raw_empty(self, raw):
        assert CategoryNormalizer.extract_raw(raw) == ""

    def test_catalog_rejects_dangling_alias(self):
        with pytest.raises(ValueError):
            CategoryCatalog(entries={}, aliases={"movers": "moving"})
