"""
Synthetic listings: the only write path of the matching engine.

`ListingSynthesizer` owns check-then-create for one (provider, category) pair and
is used both by the T5 dynamic-synthesis tier and by POST /listings/synthetic.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

from provider_match.models.models import (
    MatchCandidate,
    MatchRequest,
    PriceType,
    ProviderProfile,
    ServiceListing,
    Tier,
)
from provider_match.services.locators import CandidateLocator
from provider_match.services.normalizer import NormalizedCategory
from provider_match.services.ports import ProviderDirectory, ServiceCatalog
from provider_match.services.profile_view import ProfileView
from provider_match.utils.exceptions import ListingExistsError, ProviderMatchBaseException, SynthesisError
from provider_match.utils.logging_config import get_audit_logger, get_logger

logger = get_logger(__name__)

DEFAULT_LISTING_LOCATION = "Nairobi"


class SynthesisStatus(str, Enum):
    CREATED = "created"
    EXISTING = "existing"      # provider already had a listing in the category
    CONCURRENT = "concurrent"  # another request created it first


class SynthesisOutcome(BaseModel):
    listing: ServiceListing
    status: SynthesisStatus

    @property
    def created(self) -> bool:
        return self.status == SynthesisStatus.CREATED


class ListingSynthesizer:
    """Creates at most one auto-generated listing per (provider, category)."""

    def __init__(self, catalog: ServiceCatalog, audit_logger=None):
        self.catalog = catalog
        self.audit = audit_logger or get_audit_logger()

    @staticmethod
    def build_listing(provider: ProviderProfile, category: NormalizedCategory,
                      area: Optional[str] = None, request_id: Optional[str] = None) -> ServiceListing:
        name = provider.business_name or provider.display_name
        metadata = {"source": "dynamic-synthesis"}
        if request_id:
            metadata["requestId"] = request_id
        return ServiceListing(
            provider_id=provider.provider_id,
            category=category.key,
            title=f"{category.suggested_title} by {name}",
            description=f"Professional {category.key} services provided by {name}",
            price=category.default_price,
            price_type=PriceType.FIXED,
            duration_minutes=category.default_duration_minutes,
            is_active=True,
            auto_generated=True,
            location=area or DEFAULT_LISTING_LOCATION,
            metadata=metadata,
        )

    async def materialize(self, provider: ProviderProfile, category: NormalizedCategory,
                          area: Optional[str] = None, request_id: Optional[str] = None) -> SynthesisOutcome:
        """Return the provider's listing in this category, creating it when absent.

        Raises:
            SynthesisError: If the listing was reported as duplicate but cannot be re-read
            CollaboratorError: If the service catalog is unreachable
        """
        existing = await self.catalog.find_for_provider(provider.provider_id, category.key)
        if existing is not None:
            return SynthesisOutcome(listing=existing, status=SynthesisStatus.EXISTING)

        listing = self.build_listing(provider, category, area, request_id)
        try:
            created = await self.catalog.create(listing)
        except ListingExistsError as e:
            winner = await self.catalog.find_for_provider(provider.provider_id, category.key)
            if winner is None:
                raise SynthesisError(
                    f"Listing for provider {provider.provider_id} reported as duplicate but not found",
                    provider_id=provider.provider_id,
                    category=category.key,
                    cause=e,
                ) from e
            logger.info(f"Reusing concurrently created listing {winner.listing_id} for {provider.provider_id}")
            return SynthesisOutcome(listing=winner, status=SynthesisStatus.CONCURRENT)

        self.audit.info(
            f"Synthesized listing '{created.title}' for provider {provider.provider_id}",
            extra={
                "provider_id": provider.provider_id,
                "category": category.key,
                "listing_id": created.listing_id,
                "request_id": request_id,
            },
        )
        return SynthesisOutcome(listing=created, status=SynthesisStatus.CREATED)


class DynamicSynthesisLocator(CandidateLocator):
    """T5: skilled approved providers without a listing get one synthesized.

    No service-area rule is applied, matching the location-expanded tier.
    """

    tier = Tier.DYNAMIC_SYNTHESIS

    def __init__(self, directory: ProviderDirectory, catalog: ServiceCatalog,
                 profile_view: ProfileView, synthesizer: ListingSynthesizer):
        super().__init__(directory, catalog, profile_view)
        self.synthesizer = synthesizer

    async def locate(self, category: NormalizedCategory, request: MatchRequest) -> List[MatchCandidate]:
        providers = await self.directory.find_approved(skill_keywords=category.keywords)
        candidates = []
        for provider in providers:
            if not provider.is_eligible or not self.profile_view.has_skill(provider, category.keywords):
                continue
            try:
                outcome = await self.synthesizer.materialize(
                    provider, category, area=request.location.area, request_id=request.request_id
                )
            except ProviderMatchBaseException as e:
                logger.warning(f"Skipping {provider.provider_id} in dynamic synthesis: {e.message}")
                continue

            if outcome.status == SynthesisStatus.EXISTING:
                continue
            candidates.append(MatchCandidate(
                provider=provider,
                listing=outcome.listing,
                tier=self.tier,
                is_new_service=True,
            ))
        return candidates
