"""
Provider profile view: the one place that turns stored provider documents into
ProviderProfile objects and answers area/skill questions about them.
"""
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from provider_match.models.models import ApprovalState, ProviderProfile
from provider_match.utils.logging_config import get_logger
from provider_match.utils.utils import any_contains_any, norm

logger = get_logger(__name__)

DEFAULT_RATING = 4.0


class AreaMatch(str, Enum):
    EXACT = "exact"
    REGION_WIDE = "region-wide"
    NONE = "none"


def _as_float(value: Any, default: Optional[float]) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, dict):
        # {"average": 4.6, "count": 12} shape used by older provider records
        value = value.get("average")
        if value is None:
            return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _as_count(value: Any) -> int:
    number = _as_float(value, 0.0)
    return max(0, int(number)) if number is not None else 0


def _as_str_list(value: Any) -> list:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value if v is not None and str(v).strip()]


def profile_from_document(doc: Dict[str, Any]) -> ProviderProfile:
    """Build a ProviderProfile from a `users` document, applying the default policy.

    Missing rating defaults to 4.0 and is clamped to [0, 5]; review and job
    counts default to 0; no service areas means the provider serves everywhere.
    """
    profile = doc.get("providerProfile") or {}
    rating = _as_float(profile.get("rating"), DEFAULT_RATING)
    rating = min(5.0, max(0.0, rating))

    completed = profile.get("completedJobs")
    if completed is None:
        completed = profile.get("totalJobs")

    status = norm(doc.get("providerStatus")) or ApprovalState.PENDING.value
    try:
        approval = ApprovalState(status)
    except ValueError:
        logger.debug(f"Unknown provider status '{status}' for {doc.get('_id')}, treating as pending")
        approval = ApprovalState.PENDING

    rating_field = profile.get("rating")
    review_count = profile.get("reviewCount")
    if review_count is None and isinstance(rating_field, dict):
        review_count = rating_field.get("count")

    return ProviderProfile(
        provider_id=str(doc.get("_id") or doc.get("id")),
        display_name=doc.get("name") or profile.get("businessName") or "Provider",
        email=doc.get("email"),
        phone=doc.get("phone"),
        business_name=profile.get("businessName") or doc.get("name"),
        skills=_as_str_list(profile.get("skills")),
        service_areas=_as_str_list(profile.get("serviceAreas")),
        rating=rating,
        review_count=_as_count(review_count),
        completed_jobs=_as_count(completed),
        hourly_rate=_as_float(profile.get("hourlyRate"), None),
        approval_state=approval,
        emergency_service=bool(profile.get("emergencyService", False)),
    )


class ProfileView:
    """Area and skill predicates shared by every locator and the scorer."""

    def __init__(self, region_sentinels: Iterable[str]):
        self.region_sentinels = tuple(norm(s) for s in region_sentinels if s)

    def area_match(self, provider: ProviderProfile, area: str) -> AreaMatch:
        requested = norm(area)
        areas = [norm(a) for a in provider.service_areas]
        if requested and requested in areas:
            return AreaMatch.EXACT
        # "Kileleshwa Estate" style entries still count as serving "Kileleshwa"
        if requested and any(requested in a for a in areas):
            return AreaMatch.EXACT
        if not areas or any(a in self.region_sentinels for a in areas):
            return AreaMatch.REGION_WIDE
        return AreaMatch.NONE

    def serves_area(self, provider: ProviderProfile, area: str) -> bool:
        return self.area_match(provider, area) != AreaMatch.NONE

    @staticmethod
    def has_skill(provider: ProviderProfile, keywords: Iterable[str]) -> bool:
        return any_contains_any(provider.skills, keywords)
