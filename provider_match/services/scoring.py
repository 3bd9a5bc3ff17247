import math
from typing import Dict, List, Optional

from provider_match.models.models import MatchCandidate, MatchRequest, ScoreCard, Tier
from provider_match.models.settings import ScoringWeights
from provider_match.services.profile_view import AreaMatch, ProfileView
from provider_match.utils.utils import contains_any


def round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def rating_points(rating: float, w: ScoringWeights) -> float:
    return min(max(rating, 0.0) / 5.0, 1.0) * w.rating_max


def review_points(review_count: int, w: ScoringWeights) -> float:
    return min(review_count / w.review_saturation, 1.0) * w.review_max


def job_points(completed_jobs: int, w: ScoringWeights) -> float:
    return min(completed_jobs / w.jobs_block, w.jobs_max_blocks) * w.jobs_unit


def candidate_rate(candidate: MatchCandidate) -> Optional[float]:
    # listing price wins over the profile's hourly rate
    if candidate.listing is not None and candidate.listing.price is not None:
        return candidate.listing.price
    return candidate.provider.hourly_rate


class Scorer:
    """Weighted multi-factor provider score with an itemized breakdown."""

    def __init__(self, weights: ScoringWeights, profile_view: ProfileView):
        self.weights = weights
        self.profile_view = profile_view

    def location_points(self, candidate: MatchCandidate, request: MatchRequest) -> float:
        match = self.profile_view.area_match(candidate.provider, request.location.area)
        if match == AreaMatch.EXACT:
            return self.weights.exact_area_bonus
        if match == AreaMatch.REGION_WIDE:
            return self.weights.region_wide_bonus
        return 0.0

    def budget_points(self, candidate: MatchCandidate, request: MatchRequest) -> float:
        budget = request.budget
        rate = candidate_rate(candidate)
        if budget is None or rate is None:
            return 0.0
        points = 0.0
        if budget.max is not None and rate <= budget.max:
            points += self.weights.budget_max_bonus
        if budget.min is not None and rate >= budget.min:
            points += self.weights.budget_min_bonus
        return points

    def sub_service_points(self, candidate: MatchCandidate, request: MatchRequest) -> float:
        sub_service = request.selected_sub_service
        if not sub_service or candidate.listing is None:
            return 0.0
        return self.weights.sub_service_bonus if contains_any(candidate.listing.title, [sub_service]) else 0.0

    def score(self, candidate: MatchCandidate, request: MatchRequest,
              tier_base: Optional[float] = None) -> ScoreCard:
        w = self.weights
        provider = candidate.provider
        if tier_base is None:
            tier_base = w.tier_bases[candidate.tier]

        breakdown = {
            "tierBase": float(tier_base),
            "subService": self.sub_service_points(candidate, request),
            "rating": rating_points(provider.rating, w),
            "reviews": review_points(provider.review_count, w),
            "jobs": job_points(provider.completed_jobs, w),
            "location": self.location_points(candidate, request),
            "budget": self.budget_points(candidate, request),
        }
        subtotal = sum(breakdown.values())
        factor = w.urgency_factors[request.urgency]
        penalty = min(candidate.conflict_count * w.conflict_penalty, w.conflict_penalty_cap)
        unrounded = subtotal * factor - penalty

        breakdown.update({
            "subtotal": subtotal,
            "urgencyFactor": factor,
            "conflictPenalty": -penalty,
            "unrounded": unrounded,
        })
        return ScoreCard(total=max(0, round_half_up(unrounded)), breakdown=breakdown)

    def max_possible(self, request: MatchRequest) -> int:
        """Best total reachable for this request by a free provider with a listing in the category."""
        w = self.weights
        best = (
            w.tier_bases[Tier.EXACT_SERVICE]
            + w.rating_max
            + w.review_max
            + w.jobs_unit * w.jobs_max_blocks
            + w.exact_area_bonus
        )
        if request.selected_sub_service:
            best += w.sub_service_bonus
        if request.budget is not None:
            if request.budget.max is not None:
                best += w.budget_max_bonus
            if request.budget.min is not None:
                best += w.budget_min_bonus
        return round_half_up(best * w.urgency_factors[request.urgency])


def recommendations_for(breakdown: Dict[str, float], weights: ScoringWeights, has_listing: bool,
                        has_skill: bool, has_rate: bool) -> List[Dict[str, str]]:
    """Improvement tips for a provider, from the weakest parts of their score."""
    recommendations = []

    if not has_listing:
        recommendations.append({
            "category": "Service Expertise",
            "priority": "High",
            "suggestion": ("Create a service listing in this category" if has_skill
                           else "Add this skill to your profile and create a service listing for it"),
        })

    reputation = breakdown["rating"] + breakdown["reviews"]
    if reputation < 0.6 * (weights.rating_max + weights.review_max):
        recommendations.append({
            "category": "Reputation",
            "priority": "High",
            "suggestion": "Focus on delivering excellent service to improve ratings and get more reviews",
        })

    if breakdown["jobs"] < 0.5 * weights.jobs_unit * weights.jobs_max_blocks:
        recommendations.append({
            "category": "Experience",
            "priority": "Medium",
            "suggestion": "Complete more jobs and keep your job history up to date",
        })

    if breakdown["location"] < weights.exact_area_bonus:
        recommendations.append({
            "category": "Location Coverage",
            "priority": "Medium",
            "suggestion": "Consider adding this area to your service areas",
        })

    if not has_rate:
        recommendations.append({
            "category": "Pricing",
            "priority": "Low",
            "suggestion": "Set an hourly rate or a service price so budget searches can match you",
        })

    return recommendations
