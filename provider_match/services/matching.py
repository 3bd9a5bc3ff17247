"""
Matching pipeline: normalizer -> tiers -> availability -> scoring -> ranking -> formatter.

One configurable pipeline drives every tier; which tiers run, in which order
and with which weights comes from MatchingSettings.
"""
import asyncio
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from pydantic import BaseModel

from provider_match.models.models import (
    MatchCandidate,
    MatchRequest,
    MatchResult,
    ProviderProfile,
    ScoreCard,
    Tier,
    Urgency,
)
from provider_match.models.settings import MatchingSettings, load_settings
from provider_match.services.availability import AvailabilityFilter, AvailabilityVerdict
from provider_match.services.db import bookings_coll, provider_services_coll, users_coll
from provider_match.services.formatter import MatchDiagnostics, ResultFormatter
from provider_match.services.locators import CandidateLocator, EmergencyLocator, build_read_only_locators
from provider_match.services.normalizer import CategoryNormalizer, NormalizedCategory
from provider_match.services.ports import BookingLedger, ProviderDirectory, ServiceCatalog
from provider_match.services.profile_view import ProfileView
from provider_match.services.ranking import merge
from provider_match.services.repositories import MongoBookingLedger, MongoProviderDirectory, MongoServiceCatalog
from provider_match.services.scoring import Scorer, recommendations_for, round_half_up
from provider_match.services.synthesis import DynamicSynthesisLocator, ListingSynthesizer
from provider_match.utils.logging_config import PerformanceMonitor, get_logger

logger = get_logger(__name__)

TierBatch = Tuple[Tier, List[MatchCandidate]]


class MatchOutcome(BaseModel):
    category: NormalizedCategory
    results: List[MatchResult]
    diagnostics: MatchDiagnostics


def distinct_providers(batches: Sequence[TierBatch]) -> Set[str]:
    return {c.provider.provider_id for _, batch in batches for c in batch}


class MatchingPipeline:
    def __init__(
        self,
        settings: MatchingSettings,
        directory: ProviderDirectory,
        catalog: ServiceCatalog,
        ledger: BookingLedger,
    ):
        self.settings = settings
        self.directory = directory
        self.catalog = catalog
        self.profile_view = ProfileView(settings.region_sentinels)
        self.normalizer = CategoryNormalizer(settings.categories)
        self.synthesizer = ListingSynthesizer(catalog)
        self.locators: List[CandidateLocator] = build_read_only_locators(
            settings.tiers, directory, catalog, self.profile_view
        )
        self.synthesis_locator: Optional[DynamicSynthesisLocator] = None
        if Tier.DYNAMIC_SYNTHESIS in settings.tiers and settings.synthesis_enabled:
            self.synthesis_locator = DynamicSynthesisLocator(directory, catalog, self.profile_view, self.synthesizer)
        self.emergency_locator = EmergencyLocator(
            directory, catalog, self.profile_view, limit=settings.emergency_fallback_limit
        )
        self.availability = AvailabilityFilter(
            ledger,
            timeout_seconds=settings.availability_timeout_seconds,
            failure_policy=settings.availability_failure_policy,
        )
        self.scorer = Scorer(settings.scoring, self.profile_view)
        self.formatter = ResultFormatter(
            settings.algorithm_name,
            min_result_size=settings.min_result_size,
            result_multiplier=settings.result_multiplier,
            currency=settings.currency,
        )

    async def _locate(self, locator: CandidateLocator, category: NormalizedCategory,
                      request: MatchRequest) -> TierBatch:
        with PerformanceMonitor(f"tier {locator.label}", logger, threshold_ms=500):
            candidates = await locator.locate(category, request)
        logger.debug(f"{locator.label}: {len(candidates)} candidates")
        return locator.tier, candidates

    async def locate_read_only(self, category: NormalizedCategory, request: MatchRequest) -> List[TierBatch]:
        threshold = self.settings.cascade_threshold
        if threshold is None:
            return list(await asyncio.gather(*(self._locate(loc, category, request) for loc in self.locators)))

        batches: List[TierBatch] = []
        for locator in self.locators:
            batches.append(await self._locate(locator, category, request))
            if len(distinct_providers(batches)) >= threshold:
                logger.debug(f"Cascade threshold {threshold} reached after {locator.label}")
                break
        return batches

    def needs_synthesis(self, batches: Sequence[TierBatch], request: MatchRequest) -> bool:
        if self.synthesis_locator is None:
            return False
        return len(distinct_providers(batches)) < request.providers_needed * self.settings.surplus_factor

    def score_available(
        self,
        batches: Sequence[TierBatch],
        verdicts: Dict[str, AvailabilityVerdict],
        request: MatchRequest,
    ) -> List[Tuple[Tier, List[Tuple[MatchCandidate, ScoreCard]]]]:
        scored_batches = []
        for tier, batch in batches:
            scored = []
            for candidate in batch:
                verdict = verdicts.get(candidate.provider.provider_id)
                if verdict is None or not verdict.available:
                    continue
                candidate = candidate.model_copy(update={"conflict_count": verdict.conflict_count})
                card = self.scorer.score(candidate, request)
                scored.append((candidate, card))
            scored_batches.append((tier, scored))
        return scored_batches

    async def _filter_and_rank(self, batches: List[TierBatch], request: MatchRequest,
                               diagnostics: MatchDiagnostics) -> List[MatchResult]:
        ids = list(dict.fromkeys(c.provider.provider_id for _, batch in batches for c in batch))
        verdicts = await self.availability.check_many(ids, request)

        diagnostics.total_checked += len(ids)
        diagnostics.conflict_excluded += sum(1 for v in verdicts.values() if not v.available)
        diagnostics.check_failed += len(ids) - len(verdicts)

        return merge(self.score_available(batches, verdicts, request), self.settings.tier_priorities)

    async def run(self, request: MatchRequest) -> MatchOutcome:
        category = self.normalizer.normalize(request.category)
        diagnostics = MatchDiagnostics()
        logger.info(
            f"Matching '{category.key}' in {request.location.area} on {request.date} {request.time} "
            f"({request.urgency.value}, need {request.providers_needed})"
        )

        with PerformanceMonitor("provider matching", logger, threshold_ms=2000):
            batches = await self.locate_read_only(category, request)
            if self.needs_synthesis(batches, request):
                batches.append(await self._locate(self.synthesis_locator, category, request))

            for tier, batch in batches:
                diagnostics.tier_counts[tier.label] = len(batch)
                if tier == Tier.DYNAMIC_SYNTHESIS:
                    diagnostics.synthesized = sum(1 for c in batch if c.is_new_service)

            results = await self._filter_and_rank(batches, request, diagnostics)

            if (not results and request.urgency == Urgency.EMERGENCY
                    and self.settings.emergency_fallback_enabled):
                logger.info("No providers for emergency request, trying 24/7 providers")
                fallback = [await self._locate(self.emergency_locator, category, request)]
                diagnostics.tier_counts[Tier.EMERGENCY_FALLBACK.label] = len(fallback[0][1])
                results = await self._filter_and_rank(fallback, request, diagnostics)

        logger.info(f"Matched {len(results)} providers for '{category.key}' in {request.location.area}")
        return MatchOutcome(category=category, results=results, diagnostics=diagnostics)

    async def match(self, request: MatchRequest) -> Dict:
        """Run the pipeline and return the public `data` payload."""
        outcome = await self.run(request)
        return self.formatter.format(outcome.results, request, outcome.category, outcome.diagnostics)

    async def score_provider(self, provider: ProviderProfile, request: MatchRequest) -> Dict[str, Any]:
        """Score one provider against a request outside of a search, with improvement tips.

        The provider is scored in the tier a search would find them in: T1
        with an active listing in the category, T2 with a matching skill, and
        with no tier base at all otherwise. Availability is not checked.
        """
        category = self.normalizer.normalize(request.category)
        listing = await self.catalog.find_for_provider(provider.provider_id, category.key)
        if listing is not None and not listing.is_active:
            listing = None
        has_skill = self.profile_view.has_skill(provider, category.keywords)

        if listing is not None:
            tier = Tier.EXACT_SERVICE
        elif has_skill:
            tier = Tier.SKILL_BASED
        else:
            tier = None

        candidate = MatchCandidate(provider=provider, listing=listing, tier=tier or Tier.SKILL_BASED)
        card = self.scorer.score(candidate, request, tier_base=None if tier else 0.0)
        maximum = self.scorer.max_possible(request)
        has_rate = provider.hourly_rate is not None or (listing is not None and listing.price is not None)

        return {
            "providerId": provider.provider_id,
            "providerName": provider.display_name,
            "category": category.key,
            "matchType": tier.label if tier else None,
            "score": card.total,
            "maxPossible": maximum,
            "percentage": round_half_up(card.total / maximum * 100) if maximum else 0,
            "breakdown": card.breakdown,
            "recommendations": recommendations_for(
                card.breakdown, self.settings.scoring,
                has_listing=listing is not None, has_skill=has_skill, has_rate=has_rate,
            ),
        }


def build_pipeline(settings: Optional[MatchingSettings] = None) -> MatchingPipeline:
    """Production wiring: Motor collections behind the collaborator ports."""
    return MatchingPipeline(
        settings or load_settings(),
        directory=MongoProviderDirectory(users_coll),
        catalog=MongoServiceCatalog(provider_services_coll),
        ledger=MongoBookingLedger(bookings_coll),
    )
