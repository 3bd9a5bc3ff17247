"""Collaborator ports consumed by the matching engine.

The engine only talks to these interfaces; `repositories.py` provides the
MongoDB (Motor) implementations used in production.
"""
import datetime as dt
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from provider_match.models.models import BookingRecord, ProviderProfile, ServiceListing


class ProviderDirectory(ABC):
    """Read access to provider profiles."""

    @abstractmethod
    async def find_approved(
        self,
        skill_keywords: Optional[Iterable[str]] = None,
        emergency_only: bool = False,
        limit: Optional[int] = None,
    ) -> List[ProviderProfile]:
        """Approved providers, optionally restricted to skills containing any keyword.

        Raises:
            CollaboratorError: If the directory cannot be reached
        """

    @abstractmethod
    async def get_many(self, provider_ids: Iterable[str], approved_only: bool = True) -> Dict[str, ProviderProfile]:
        """Profiles keyed by provider id; unknown ids are simply absent."""

    @abstractmethod
    async def get(self, provider_id: str) -> Optional[ProviderProfile]:
        """Single profile regardless of approval state, None when unknown."""


class ServiceCatalog(ABC):
    """Service listings, plus the single write used for synthetic listings."""

    @abstractmethod
    async def find_active(
        self,
        exact_categories: Iterable[str] = (),
        category_patterns: Iterable[str] = (),
        title_patterns: Iterable[str] = (),
    ) -> List[ServiceListing]:
        """Active listings whose category equals one of `exact_categories`,
        or whose category/title contains one of the patterns (case-insensitive).
        Results keep the store's natural order."""

    @abstractmethod
    async def find_for_provider(self, provider_id: str, category: str) -> Optional[ServiceListing]:
        """Any listing (active or not) the provider already has in this category."""

    @abstractmethod
    async def create(self, listing: ServiceListing) -> ServiceListing:
        """Persist a listing and return it with its id.

        Raises:
            ListingExistsError: If a listing for (provider, category) already exists
            CollaboratorError: If the catalog cannot be reached
        """


class BookingLedger(ABC):
    """Read access to bookings."""

    @abstractmethod
    async def find_occupying(self, provider_id: str, day: dt.date) -> List[BookingRecord]:
        """Bookings on `day` whose status is pending, confirmed or in-progress."""
