"""
Candidate locators: one object per search tier, all sharing the same contract.

T1 exact service   - active listings matching the category keywords
T2 skill based     - provider skills matching the keywords, listings ignored
T3 fuzzy category  - active listings matching the broader synonym set
T4 location expand - T2 without the service-area rule
The T5 dynamic-synthesis tier lives in synthesis.py because it writes.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

from provider_match.models.models import MatchCandidate, MatchRequest, ServiceListing, Tier
from provider_match.services.normalizer import NormalizedCategory
from provider_match.services.ports import ProviderDirectory, ServiceCatalog
from provider_match.services.profile_view import ProfileView
from provider_match.utils.logging_config import get_logger
from provider_match.utils.utils import contains_any, norm

logger = get_logger(__name__)


class CandidateLocator(ABC):
    """Finds candidates for one tier. Read-only unless stated otherwise."""

    tier: Tier

    def __init__(self, directory: ProviderDirectory, catalog: ServiceCatalog, profile_view: ProfileView):
        self.directory = directory
        self.catalog = catalog
        self.profile_view = profile_view

    @property
    def label(self) -> str:
        return self.tier.label

    @abstractmethod
    async def locate(self, category: NormalizedCategory, request: MatchRequest) -> List[MatchCandidate]:
        ...

    def _serves(self, provider, request: MatchRequest) -> bool:
        return self.profile_view.serves_area(provider, request.location.area)


class ListingLocator(CandidateLocator):
    """Shared listing-join logic for the listing-driven tiers."""

    enforce_area = True

    @abstractmethod
    async def _find_listings(self, category: NormalizedCategory) -> List[ServiceListing]:
        ...

    @staticmethod
    def _listing_rank(listing: ServiceListing, category: NormalizedCategory,
                      sub_service: Optional[str], index: int):
        exact = norm(listing.category) == category.key
        sub_hit = bool(sub_service) and contains_any(listing.title, [sub_service])
        return (not exact, not sub_hit, index)

    async def locate(self, category: NormalizedCategory, request: MatchRequest) -> List[MatchCandidate]:
        listings = await self._find_listings(category)
        if not listings:
            return []

        best: Dict[str, tuple] = {}
        order: List[str] = []
        for index, listing in enumerate(listings):
            if not listing.is_active:
                continue
            rank = self._listing_rank(listing, category, request.selected_sub_service, index)
            current = best.get(listing.provider_id)
            if current is None:
                order.append(listing.provider_id)
                best[listing.provider_id] = (rank, listing)
            elif rank < current[0]:
                best[listing.provider_id] = (rank, listing)

        providers = await self.directory.get_many(order, approved_only=True)

        candidates = []
        for provider_id in order:
            provider = providers.get(provider_id)
            if provider is None or not provider.is_eligible:
                continue
            if self.enforce_area and not self._serves(provider, request):
                logger.debug(f"{provider.display_name} does not serve {request.location.area} ({self.label})")
                continue
            candidates.append(MatchCandidate(provider=provider, listing=best[provider_id][1], tier=self.tier))
        return candidates


class ExactServiceLocator(ListingLocator):
    tier = Tier.EXACT_SERVICE

    async def _find_listings(self, category: NormalizedCategory) -> List[ServiceListing]:
        return await self.catalog.find_active(
            exact_categories=[category.key],
            category_patterns=category.keywords,
            title_patterns=category.keywords,
        )


class FuzzyCategoryLocator(ListingLocator):
    tier = Tier.FUZZY_CATEGORY

    async def _find_listings(self, category: NormalizedCategory) -> List[ServiceListing]:
        return await self.catalog.find_active(category_patterns=category.fuzzy)


class SkillLocator(CandidateLocator):
    """Providers whose declared skills match the keyword set."""

    tier = Tier.SKILL_BASED
    enforce_area = True

    async def locate(self, category: NormalizedCategory, request: MatchRequest) -> List[MatchCandidate]:
        providers = await self.directory.find_approved(skill_keywords=category.keywords)
        candidates = []
        for provider in providers:
            if not provider.is_eligible or not self.profile_view.has_skill(provider, category.keywords):
                continue
            if self.enforce_area and not self._serves(provider, request):
                continue
            candidates.append(MatchCandidate(
                provider=provider,
                tier=self.tier,
                suggested_service_title=category.suggested_title,
            ))
        return candidates


class LocationExpandedLocator(SkillLocator):
    tier = Tier.LOCATION_EXPANDED
    enforce_area = False


class EmergencyLocator(CandidateLocator):
    """24/7 providers offered when an emergency request finds nobody."""

    tier = Tier.EMERGENCY_FALLBACK

    def __init__(self, directory: ProviderDirectory, catalog: ServiceCatalog,
                 profile_view: ProfileView, limit: int = 5):
        super().__init__(directory, catalog, profile_view)
        self.limit = limit

    async def locate(self, category: NormalizedCategory, request: MatchRequest) -> List[MatchCandidate]:
        providers = await self.directory.find_approved(emergency_only=True)
        candidates = []
        for provider in providers:
            if not provider.is_eligible or not provider.emergency_service:
                continue
            if not self._serves(provider, request):
                continue
            candidates.append(MatchCandidate(
                provider=provider,
                tier=self.tier,
                suggested_service_title=category.suggested_title,
            ))
            if len(candidates) >= self.limit:
                break
        return candidates


READ_ONLY_LOCATORS = {
    Tier.EXACT_SERVICE: ExactServiceLocator,
    Tier.SKILL_BASED: SkillLocator,
    Tier.FUZZY_CATEGORY: FuzzyCategoryLocator,
    Tier.LOCATION_EXPANDED: LocationExpandedLocator,
}


def build_read_only_locators(tiers: Sequence[Tier], directory: ProviderDirectory,
                             catalog: ServiceCatalog, profile_view: ProfileView) -> List[CandidateLocator]:
    """Instantiate the configured read-only tiers in configured order."""
    return [
        READ_ONLY_LOCATORS[tier](directory, catalog, profile_view)
        for tier in tiers
        if tier in READ_ONLY_LOCATORS
    ]
