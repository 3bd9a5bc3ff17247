from typing import Any, Tuple

from pydantic import BaseModel, ConfigDict

from provider_match.models.settings import CategoryCatalog
from provider_match.utils.logging_config import get_logger
from provider_match.utils.utils import norm, service_title

logger = get_logger(__name__)


class NormalizedCategory(BaseModel):
    model_config = ConfigDict(frozen=True)

    key: str
    raw: str
    keywords: Tuple[str, ...]
    fuzzy: Tuple[str, ...]
    default_price: float
    default_duration_minutes: int
    known: bool = True

    @property
    def suggested_title(self) -> str:
        return service_title(self.key)


class CategoryNormalizer:
    """Maps a free-text or id category onto the catalog's canonical key and keyword sets."""

    def __init__(self, catalog: CategoryCatalog):
        self.catalog = catalog

    @staticmethod
    def extract_raw(category: Any) -> str:
        # clients send either "plumbing" or {"id": "plumbing", "name": "Plumbing"}
        if isinstance(category, dict):
            for key in ("id", "name", "key"):
                value = category.get(key)
                if isinstance(value, str) and value.strip():
                    return value.strip()
            return ""
        if category is None:
            return ""
        return str(category).strip()

    def normalize(self, category: Any) -> NormalizedCategory:
        raw = self.extract_raw(category)
        lookup = norm(raw)
        key = self.catalog.aliases.get(lookup, lookup)
        if key not in self.catalog.entries:
            # also accept "appliance-repair" style spellings of known keys
            spaced = key.replace("-", " ").replace("_", " ")
            key = self.catalog.aliases.get(spaced, spaced)

        entry = self.catalog.entries.get(key)
        if entry is None:
            logger.debug(f"Unknown category '{raw}', passing through unchanged")
            return NormalizedCategory(
                key=lookup or raw,
                raw=raw,
                keywords=(lookup or raw,),
                fuzzy=self.catalog.fallback_fuzzy,
                default_price=self.catalog.fallback_price,
                default_duration_minutes=self.catalog.fallback_duration_minutes,
                known=False,
            )

        return NormalizedCategory(
            key=key,
            raw=raw,
            keywords=entry.keywords,
            fuzzy=entry.fuzzy,
            default_price=entry.default_price,
            default_duration_minutes=entry.default_duration_minutes,
        )
