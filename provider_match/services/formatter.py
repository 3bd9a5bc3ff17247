"""
Result formatter: turns ranked MatchResults into the public response payload.
"""
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field

from provider_match.models.models import MatchRequest, MatchResult, PriceType, ServiceListing, Urgency
from provider_match.services.normalizer import NormalizedCategory

SCORING_FACTORS = [
    "tier-priority",
    "category-match",
    "sub-service-match",
    "rating",
    "review-count",
    "job-history",
    "area-coverage",
    "budget-fit",
    "time-availability",
    "urgency",
]


class MatchDiagnostics(BaseModel):
    """Counters collected by the pipeline for the `matching` block."""
    tier_counts: Dict[str, int] = Field(default_factory=dict)
    total_checked: int = 0
    conflict_excluded: int = 0
    check_failed: int = 0
    synthesized: int = 0


def response_time(rating: float, review_count: int) -> str:
    if rating >= 4.5 and review_count >= 10:
        return "5-15 min"
    if rating >= 4.0 and review_count >= 5:
        return "10-30 min"
    return "30-60 min"


def suggestions_for(request: MatchRequest) -> List[str]:
    suggestions = ["try a different time", "expand search area", "try a related category"]
    if request.budget is not None and request.budget.max is not None:
        suggestions.append("increase your budget")
    if request.urgency == Urgency.EMERGENCY:
        suggestions.append("switch to normal urgency")
    return suggestions


def estimated_cost(result: MatchResult, request: MatchRequest, category: NormalizedCategory,
                   currency: str) -> Dict[str, Any]:
    """Price estimate for the requested duration.

    The listing price wins, then the profile's hourly rate, then the
    category default as a fixed price. Hourly rates are multiplied by the
    requested duration; fixed and quote prices are taken as-is.
    """
    listing = result.listing
    if listing is not None and listing.price is not None:
        rate, price_type = listing.price, listing.price_type
    elif result.provider.hourly_rate is not None:
        rate, price_type = result.provider.hourly_rate, PriceType.HOURLY
    else:
        rate, price_type = category.default_price, PriceType.FIXED

    hours = request.duration_minutes / 60
    total = rate * hours if price_type == PriceType.HOURLY else rate
    return {
        "baseRate": rate,
        "priceType": price_type.value,
        "estimatedTotal": round(total, 2),
        "currency": currency,
    }


class ResultFormatter:
    def __init__(self, algorithm_name: str, min_result_size: int = 10, result_multiplier: int = 3,
                 currency: str = "KES"):
        self.algorithm_name = algorithm_name
        self.min_result_size = min_result_size
        self.result_multiplier = result_multiplier
        self.currency = currency

    def result_limit(self, request: MatchRequest) -> int:
        if request.limit:
            return request.limit
        return max(request.providers_needed * self.result_multiplier, self.min_result_size)

    @staticmethod
    def search_criteria(request: MatchRequest, category: NormalizedCategory) -> Dict[str, Any]:
        criteria = {
            "category": category.key,
            "area": request.location.area,
            "date": request.date.isoformat(),
            "time": request.time,
            "duration": request.duration_minutes,
            "urgency": request.urgency.value,
            "providersNeeded": request.providers_needed,
        }
        if request.budget is not None:
            criteria["budget"] = request.budget.model_dump(exclude_none=True)
        if request.selected_sub_service:
            criteria["selectedSubService"] = request.selected_sub_service
        return criteria

    def provider_entry(self, result: MatchResult, request: MatchRequest,
                       category: NormalizedCategory) -> Dict[str, Any]:
        provider = result.provider
        listing = result.listing
        if listing is not None:
            service_name = listing.title
            price = listing.price if listing.price is not None else category.default_price
            price_type = listing.price_type.value
            service_id = listing.listing_id
        else:
            service_name = result.suggested_service_title or category.suggested_title
            price = category.default_price
            price_type = "fixed"
            service_id = None

        scored_tier = result.scored_tier or result.tier
        return {
            "providerId": provider.provider_id,
            "name": provider.display_name,
            "email": provider.email,
            "phone": provider.phone,
            "businessName": provider.business_name or provider.display_name,
            "serviceId": service_id,
            "serviceName": service_name,
            "servicePrice": price,
            "priceType": price_type,
            "category": category.key,
            "matchType": result.tier.label,
            "searchTypes": [t.label for t in result.tiers_matched],
            "score": result.final_score,
            "matchScore": result.score.total,
            "scoredAs": scored_tier.label,
            "scoreBreakdown": result.score.breakdown,
            "isNewService": result.is_new_service,
            "estimatedCost": estimated_cost(result, request, category, self.currency),
            "availability": {
                "status": "available",
                "requestedTime": f"{request.date.isoformat()} {request.time}",
                "conflictingBookings": result.conflict_count,
            },
            "profile": {
                "rating": provider.rating,
                "reviewCount": provider.review_count,
                "completedJobs": provider.completed_jobs,
                "skills": provider.skills,
                "serviceAreas": provider.service_areas,
                "hourlyRate": provider.hourly_rate,
                "responseTime": response_time(provider.rating, provider.review_count),
            },
        }

    def pricing(self, entries: Sequence[Dict[str, Any]], request: MatchRequest) -> Dict[str, Any]:
        """Cost of the recommended providers plus the average hourly-equivalent rate of all shown."""
        hours = request.duration_minutes / 60
        recommended = entries[: request.providers_needed]
        hourly = [e["estimatedCost"]["estimatedTotal"] / hours for e in entries]
        return {
            "estimatedTotal": round(sum(e["estimatedCost"]["estimatedTotal"] for e in recommended), 2),
            "averageHourlyRate": round(sum(hourly) / len(hourly)) if hourly else None,
            "currency": self.currency,
            "breakdown": f"{request.providers_needed} provider(s) x {hours:g} hour(s)",
        }

    def format(self, results: Sequence[MatchResult], request: MatchRequest,
               category: NormalizedCategory, diagnostics: Optional[MatchDiagnostics] = None) -> Dict[str, Any]:
        diagnostics = diagnostics or MatchDiagnostics()
        shown = list(results)[: self.result_limit(request)]
        entries = [self.provider_entry(r, request, category) for r in shown]
        needed = request.providers_needed

        return {
            "providers": entries,
            "totalFound": len(results),
            "recommendedProviders": [e["providerId"] for e in entries[:needed]],
            "alternativeProviders": [e["providerId"] for e in entries[needed:]],
            "pricing": self.pricing(entries, request),
            "searchCriteria": self.search_criteria(request, category),
            "matching": {
                "algorithm": self.algorithm_name,
                "tierCounts": dict(diagnostics.tier_counts),
                "factors": list(SCORING_FACTORS),
                "totalChecked": diagnostics.total_checked,
                "conflictExcluded": diagnostics.conflict_excluded,
                "checkFailed": diagnostics.check_failed,
                "synthesized": diagnostics.synthesized,
            },
            "suggestions": suggestions_for(request) if not results else [],
        }


def listing_payload(listing: ServiceListing) -> Dict[str, Any]:
    return {
        "id": listing.listing_id,
        "providerId": listing.provider_id,
        "title": listing.title,
        "description": listing.description,
        "category": listing.category,
        "price": listing.price,
        "priceType": listing.price_type.value,
        "duration": listing.duration_minutes,
        "location": listing.location,
        "isActive": listing.is_active,
        "autoGenerated": listing.auto_generated,
    }
