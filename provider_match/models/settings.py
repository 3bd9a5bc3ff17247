"""
Matching Settings Models for Configuration Management
"""
import os
from enum import Enum
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from provider_match.models.models import Tier, Urgency
from provider_match.utils.exceptions import ConfigurationError


class AvailabilityFailurePolicy(str, Enum):
    """What to do with a candidate whose booking lookup fails or times out"""
    EXCLUDE = "exclude"
    RAISE = "raise"


class CategoryEntry(BaseModel):
    """Keyword and fallback data for one canonical category"""
    model_config = ConfigDict(frozen=True)

    keywords: Tuple[str, ...]
    fuzzy: Tuple[str, ...] = ("other",)
    default_price: float = 3000
    default_duration_minutes: int = 120


class CategoryCatalog(BaseModel):
    """Immutable lookup tables handed to the category normalizer"""
    model_config = ConfigDict(frozen=True)

    entries: Dict[str, CategoryEntry]
    aliases: Dict[str, str] = Field(default_factory=dict)
    fallback_fuzzy: Tuple[str, ...] = ("other",)
    fallback_price: float = 3000
    fallback_duration_minutes: int = 120

    @model_validator(mode="after")
    def validate_aliases(self):
        for alias, target in self.aliases.items():
            if target not in self.entries:
                raise ValueError(f'Alias "{alias}" points to unknown category "{target}"')
        return self


DEFAULT_CATEGORY_CATALOG = CategoryCatalog(
    entries={
        "electrical": CategoryEntry(
            keywords=("electrical", "electrician", "wiring", "lighting", "electrical repair"),
            fuzzy=("maintenance", "repair", "installation"),
            default_price=3500, default_duration_minutes=180,
        ),
        "plumbing": CategoryEntry(
            keywords=("plumbing", "plumber", "pipe repair", "water systems", "plumbing services"),
            fuzzy=("maintenance", "repair", "installation", "water"),
            default_price=3000, default_duration_minutes=120,
        ),
        "cleaning": CategoryEntry(
            keywords=("cleaning", "cleaner", "house cleaning", "deep cleaning", "office cleaning"),
            fuzzy=("maintenance", "housekeeping", "janitorial"),
            default_price=2500, default_duration_minutes=240,
        ),
        "carpentry": CategoryEntry(
            keywords=("carpentry", "carpenter", "furniture", "woodwork", "cabinet making"),
            fuzzy=("woodwork", "furniture", "construction"),
            default_price=4000, default_duration_minutes=360,
        ),
        "painting": CategoryEntry(
            keywords=("painting", "painter", "interior painting", "exterior painting"),
            fuzzy=("decoration", "renovation", "maintenance"),
            default_price=3000, default_duration_minutes=480,
        ),
        "gardening": CategoryEntry(
            keywords=("gardening", "gardener", "landscaping", "lawn care", "garden maintenance"),
            fuzzy=("landscaping", "outdoor", "maintenance"),
            default_price=2000, default_duration_minutes=180,
        ),
        "moving": CategoryEntry(
            keywords=("moving", "mover", "relocation", "packing", "furniture moving"),
            fuzzy=("transport", "logistics", "relocation"),
            default_price=5000, default_duration_minutes=480,
        ),
    },
    aliases={
        "movers": "moving",
        "mover": "moving",
        "electrician": "electrical",
        "plumber": "plumbing",
        "cleaner": "cleaning",
        "carpenter": "carpentry",
        "painter": "painting",
        "gardener": "gardening",
    },
)


DEFAULT_TIER_PRIORITIES = {
    Tier.EXACT_SERVICE: 100,
    Tier.SKILL_BASED: 80,
    Tier.FUZZY_CATEGORY: 60,
    Tier.LOCATION_EXPANDED: 40,
    Tier.DYNAMIC_SYNTHESIS: 20,
    Tier.EMERGENCY_FALLBACK: 10,
}

DEFAULT_TIER_BASES = {
    Tier.EXACT_SERVICE: 50,
    Tier.SKILL_BASED: 20,
    Tier.FUZZY_CATEGORY: 35,
    Tier.LOCATION_EXPANDED: 10,
    Tier.DYNAMIC_SYNTHESIS: 20,
    Tier.EMERGENCY_FALLBACK: 30,
}


class ScoringWeights(BaseModel):
    """Weights and caps of the provider match score"""
    model_config = ConfigDict(frozen=True)

    tier_bases: Dict[Tier, float] = Field(default_factory=lambda: dict(DEFAULT_TIER_BASES))
    sub_service_bonus: float = Field(default=30, ge=0)
    rating_max: float = Field(default=25, ge=0, description="Points for a 5.0 rating")
    review_max: float = Field(default=15, ge=0)
    review_saturation: int = Field(default=20, ge=1, description="Reviews needed for full review points")
    jobs_unit: float = Field(default=10, ge=0, description="Points per block of completed jobs")
    jobs_block: int = Field(default=10, ge=1)
    jobs_max_blocks: float = Field(default=2, ge=0)
    exact_area_bonus: float = Field(default=10, ge=0)
    region_wide_bonus: float = Field(default=5, ge=0)
    budget_max_bonus: float = Field(default=10, ge=0)
    budget_min_bonus: float = Field(default=5, ge=0)
    conflict_penalty: float = Field(default=2, ge=0)
    conflict_penalty_cap: float = Field(default=10, ge=0)
    urgency_factors: Dict[Urgency, float] = Field(default_factory=lambda: {
        Urgency.NORMAL: 1.0,
        Urgency.URGENT: 0.9,
        Urgency.EMERGENCY: 0.8,
    })

    @field_validator("urgency_factors")
    @classmethod
    def validate_urgency_factors(cls, v):
        for urgency in Urgency:
            if urgency not in v:
                raise ValueError(f'Missing urgency factor for "{urgency.value}"')
        if not v[Urgency.EMERGENCY] <= v[Urgency.URGENT] <= v[Urgency.NORMAL]:
            raise ValueError('Urgency factors must satisfy emergency <= urgent <= normal')
        if any(f < 0 for f in v.values()):
            raise ValueError('Urgency factors must be non-negative')
        return v

    @field_validator("tier_bases")
    @classmethod
    def validate_tier_bases(cls, v):
        missing = [t.label for t in Tier if t not in v]
        if missing:
            raise ValueError(f"Missing tier base score for: {', '.join(missing)}")
        return v


class MatchingSettings(BaseModel):
    """Everything the matching pipeline needs, fixed for the life of one pipeline"""
    model_config = ConfigDict(frozen=True)

    algorithm_name: str = "tiered-availability-aware"
    tiers: Tuple[Tier, ...] = (
        Tier.EXACT_SERVICE,
        Tier.SKILL_BASED,
        Tier.FUZZY_CATEGORY,
        Tier.LOCATION_EXPANDED,
        Tier.DYNAMIC_SYNTHESIS,
    )
    tier_priorities: Dict[Tier, float] = Field(default_factory=lambda: dict(DEFAULT_TIER_PRIORITIES))
    surplus_factor: int = Field(default=3, ge=1, description="T5 runs below providersNeeded x factor")
    cascade_threshold: Optional[int] = Field(default=None, ge=1, description="Stop T1..T4 early at this many providers")
    region_sentinels: Tuple[str, ...] = ("Nairobi", "All Areas")
    availability_timeout_seconds: float = Field(default=2.0, gt=0)
    availability_failure_policy: AvailabilityFailurePolicy = AvailabilityFailurePolicy.EXCLUDE
    synthesis_enabled: bool = True
    emergency_fallback_enabled: bool = True
    emergency_fallback_limit: int = Field(default=5, ge=1)
    min_result_size: int = Field(default=10, ge=1)
    currency: str = "KES"
    result_multiplier: int = Field(default=3, ge=1)
    scoring: ScoringWeights = Field(default_factory=ScoringWeights)
    categories: CategoryCatalog = DEFAULT_CATEGORY_CATALOG

    @field_validator("tiers")
    @classmethod
    def validate_tiers(cls, v):
        if len(set(v)) != len(v):
            raise ValueError("Tier order contains duplicates")
        if Tier.EMERGENCY_FALLBACK in v:
            raise ValueError("The emergency fallback is not an ordered tier")
        if Tier.DYNAMIC_SYNTHESIS in v and v[-1] != Tier.DYNAMIC_SYNTHESIS:
            raise ValueError("Dynamic synthesis must run after every other tier")
        return v

    @field_validator("tier_priorities")
    @classmethod
    def validate_priorities(cls, v):
        missing = [t.label for t in Tier if t not in v]
        if missing:
            raise ValueError(f"Missing tier priority for: {', '.join(missing)}")
        return v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"{name} must be a boolean", config_key=name, config_value=raw)


def _env_number(name: str, cast, default=None):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw.strip())
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number", config_key=name, config_value=raw, cause=e)


def load_settings() -> MatchingSettings:
    """Build MatchingSettings from the environment (and .env when present)"""
    load_dotenv()

    overrides = {}
    surplus = _env_number("MATCH_SURPLUS_FACTOR", int)
    if surplus is not None:
        overrides["surplus_factor"] = surplus
    cascade = _env_number("MATCH_CASCADE_THRESHOLD", int)
    if cascade is not None:
        overrides["cascade_threshold"] = cascade
    timeout = _env_number("MATCH_AVAILABILITY_TIMEOUT", float)
    if timeout is not None:
        overrides["availability_timeout_seconds"] = timeout

    sentinels = os.getenv("MATCH_REGION_SENTINELS")
    if sentinels:
        overrides["region_sentinels"] = tuple(s.strip() for s in sentinels.split(",") if s.strip())

    policy = os.getenv("MATCH_AVAILABILITY_POLICY")
    if policy:
        overrides["availability_failure_policy"] = policy.strip().lower()

    algorithm = os.getenv("MATCH_ALGORITHM_NAME")
    if algorithm:
        overrides["algorithm_name"] = algorithm.strip()

    currency = os.getenv("MATCH_CURRENCY")
    if currency:
        overrides["currency"] = currency.strip().upper()

    overrides["synthesis_enabled"] = _env_bool("MATCH_SYNTHESIS_ENABLED", True)
    overrides["emergency_fallback_enabled"] = _env_bool("MATCH_EMERGENCY_FALLBACK", True)

    try:
        return MatchingSettings(**overrides)
    except ValueError as e:
        raise ConfigurationError(f"Invalid matching configuration: {e}", cause=e)
