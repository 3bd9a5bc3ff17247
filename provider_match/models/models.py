import datetime as dt
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Urgency(str, Enum):
    NORMAL = "normal"
    URGENT = "urgent"
    EMERGENCY = "emergency"


class ApprovalState(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class PriceType(str, Enum):
    FIXED = "fixed"
    HOURLY = "hourly"
    QUOTE = "quote"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"


OCCUPYING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS)


class Tier(IntEnum):
    """Candidate-locating strategies; lower value means higher priority."""
    EXACT_SERVICE = 1
    SKILL_BASED = 2
    FUZZY_CATEGORY = 3
    LOCATION_EXPANDED = 4
    DYNAMIC_SYNTHESIS = 5
    EMERGENCY_FALLBACK = 6

    @property
    def label(self) -> str:
        return TIER_LABELS[self]


TIER_LABELS = {
    Tier.EXACT_SERVICE: "exact-service",
    Tier.SKILL_BASED: "skill-based",
    Tier.FUZZY_CATEGORY: "fuzzy-match",
    Tier.LOCATION_EXPANDED: "location-expanded",
    Tier.DYNAMIC_SYNTHESIS: "dynamic-service",
    Tier.EMERGENCY_FALLBACK: "emergency-fallback",
}


# -------- Request --------

class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    area: str
    coordinates: Optional[Tuple[float, float]] = None


class Budget(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: Optional[float] = None
    max: Optional[float] = None


class MatchRequest(BaseModel):
    """A validated, immutable service request handed to the matching pipeline."""
    model_config = ConfigDict(frozen=True)

    category: str
    location: Location
    date: dt.date
    time: str
    duration_minutes: int = Field(default=120, gt=0)
    urgency: Urgency = Urgency.NORMAL
    budget: Optional[Budget] = None
    providers_needed: int = Field(default=1, ge=1)
    selected_sub_service: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1)
    request_id: Optional[str] = None

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        parts = v.strip().split(":")
        if len(parts) != 2 or not all(p.isdigit() for p in parts):
            raise ValueError("time must be HH:MM")
        hour, minute = int(parts[0]), int(parts[1])
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError("time must be HH:MM")
        return f"{hour:02d}:{minute:02d}"

    @property
    def start_minute(self) -> int:
        hour, minute = self.time.split(":")
        return int(hour) * 60 + int(minute)

    @property
    def end_minute(self) -> int:
        return self.start_minute + self.duration_minutes


# -------- Dataset records --------

class ProviderProfile(BaseModel):
    provider_id: str
    display_name: str = "Provider"
    email: Optional[str] = None
    phone: Optional[str] = None
    business_name: Optional[str] = None
    skills: List[str] = Field(default_factory=list)
    service_areas: List[str] = Field(default_factory=list)
    rating: float = 4.0
    review_count: int = 0
    completed_jobs: int = 0
    hourly_rate: Optional[float] = None
    approval_state: ApprovalState = ApprovalState.PENDING
    emergency_service: bool = False

    @property
    def is_eligible(self) -> bool:
        return self.approval_state == ApprovalState.APPROVED


class ServiceListing(BaseModel):
    listing_id: Optional[str] = None
    provider_id: str
    category: str
    title: str
    description: str = ""
    price: Optional[float] = None
    price_type: PriceType = PriceType.FIXED
    duration_minutes: Optional[int] = None
    is_active: bool = True
    auto_generated: bool = False
    location: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class BookingRecord(BaseModel):
    booking_id: Optional[str] = None
    provider_id: str
    scheduled_date: Optional[dt.date] = None
    start: Optional[str] = None  # raw "HH:MM", may be missing or malformed
    end: Optional[str] = None
    status: BookingStatus = BookingStatus.PENDING

    @property
    def is_occupying(self) -> bool:
        return self.status in OCCUPYING_STATUSES


# -------- Pipeline-local --------

class MatchCandidate(BaseModel):
    provider: ProviderProfile
    listing: Optional[ServiceListing] = None
    tier: Tier
    conflict_count: int = 0
    suggested_service_title: Optional[str] = None
    is_new_service: bool = False


class ScoreCard(BaseModel):
    total: int
    breakdown: Dict[str, float]


class MatchResult(BaseModel):
    provider: ProviderProfile
    listing: Optional[ServiceListing] = None
    tier: Tier
    final_score: float
    score: ScoreCard
    scored_tier: Optional[Tier] = None  # tier whose card produced final_score
    tiers_matched: List[Tier] = Field(default_factory=list)
    conflict_count: int = 0
    suggested_service_title: Optional[str] = None
    is_new_service: bool = False
    discovery_index: int = 0

    @property
    def provider_id(self) -> str:
        return self.provider.provider_id
