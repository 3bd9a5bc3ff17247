"""
MongoDB (Motor) implementations of the matching engine's collaborator ports
"""
import datetime as dt
from typing import Any, Dict, Iterable, List, Optional

from bson import ObjectId
from pymongo.errors import DuplicateKeyError

from provider_match.models.models import (
    OCCUPYING_STATUSES,
    ApprovalState,
    BookingRecord,
    BookingStatus,
    PriceType,
    ProviderProfile,
    ServiceListing,
)
from provider_match.services.ports import BookingLedger, ProviderDirectory, ServiceCatalog
from provider_match.services.profile_view import profile_from_document
from provider_match.utils.exceptions import ExceptionContext, ListingExistsError
from provider_match.utils.logging_config import get_logger
from provider_match.utils.utils import regex_any, regex_exact

logger = get_logger(__name__)

PROVIDER_PROJECTION = {
    "name": 1,
    "email": 1,
    "phone": 1,
    "providerProfile": 1,
    "providerStatus": 1,
}


def to_object_id(value: str) -> Any:
    """ObjectId for 24-hex ids, the raw value otherwise (seeded data uses strings)."""
    if isinstance(value, ObjectId):
        return value
    return ObjectId(value) if ObjectId.is_valid(value) else value


def listing_from_document(doc: Dict[str, Any]) -> ServiceListing:
    price_type = doc.get("priceType") or PriceType.FIXED.value
    try:
        price_type = PriceType(price_type)
    except ValueError:
        price_type = PriceType.FIXED
    return ServiceListing(
        listing_id=str(doc["_id"]) if doc.get("_id") is not None else None,
        provider_id=str(doc.get("providerId")),
        category=doc.get("category") or "",
        title=doc.get("title") or "",
        description=doc.get("description") or "",
        price=doc.get("price"),
        price_type=price_type,
        duration_minutes=doc.get("duration"),
        is_active=bool(doc.get("isActive", True)),
        auto_generated=bool(doc.get("autoGenerated", False)),
        location=doc.get("location"),
        metadata=doc.get("metadata") or {},
    )


def listing_to_document(listing: ServiceListing) -> Dict[str, Any]:
    doc = {
        "providerId": to_object_id(listing.provider_id),
        "title": listing.title,
        "description": listing.description,
        "category": listing.category,
        "price": listing.price,
        "priceType": listing.price_type.value,
        "duration": listing.duration_minutes,
        "location": listing.location,
        "isActive": listing.is_active,
        "autoGenerated": listing.auto_generated,
        "createdFromDiscovery": listing.auto_generated,
        "metadata": listing.metadata,
        "createdAt": dt.datetime.utcnow(),
    }
    return doc


def booking_from_document(doc: Dict[str, Any]) -> BookingRecord:
    scheduled = doc.get("scheduledDate")
    if isinstance(scheduled, dt.datetime):
        scheduled = scheduled.date()
    elif not isinstance(scheduled, dt.date):
        scheduled = None

    window = doc.get("scheduledTime") or {}
    if not isinstance(window, dict):
        window = {}

    try:
        status = BookingStatus(doc.get("status") or BookingStatus.PENDING.value)
    except ValueError:
        status = BookingStatus.PENDING

    return BookingRecord(
        booking_id=str(doc["_id"]) if doc.get("_id") is not None else None,
        provider_id=str(doc.get("provider")),
        scheduled_date=scheduled,
        start=window.get("start") if isinstance(window.get("start"), str) else None,
        end=window.get("end") if isinstance(window.get("end"), str) else None,
        status=status,
    )


class MongoProviderDirectory(ProviderDirectory):
    """Providers are `users` documents with userType 'provider'."""

    def __init__(self, collection):
        self.collection = collection

    async def find_approved(
        self,
        skill_keywords: Optional[Iterable[str]] = None,
        emergency_only: bool = False,
        limit: Optional[int] = None,
    ) -> List[ProviderProfile]:
        query: Dict[str, Any] = {
            "userType": "provider",
            "providerStatus": ApprovalState.APPROVED.value,
        }
        if skill_keywords is not None:
            query["providerProfile.skills"] = {"$in": regex_any(skill_keywords)}
        if emergency_only:
            query["providerProfile.emergencyService"] = True

        with ExceptionContext("find_approved_providers", logger, collaborator="ProviderDirectory"):
            cursor = self.collection.find(query, PROVIDER_PROJECTION)
            if limit:
                cursor = cursor.limit(limit)
            docs = await cursor.to_list(length=None)

        return [profile_from_document(doc) for doc in docs]

    async def get_many(self, provider_ids: Iterable[str], approved_only: bool = True) -> Dict[str, ProviderProfile]:
        ids = list(dict.fromkeys(provider_ids))
        if not ids:
            return {}
        query: Dict[str, Any] = {
            "_id": {"$in": [to_object_id(i) for i in ids]},
            "userType": "provider",
        }
        if approved_only:
            query["providerStatus"] = ApprovalState.APPROVED.value

        with ExceptionContext("get_providers", logger, collaborator="ProviderDirectory", provider_count=len(ids)):
            docs = await self.collection.find(query, PROVIDER_PROJECTION).to_list(length=None)

        profiles = [profile_from_document(doc) for doc in docs]
        return {p.provider_id: p for p in profiles}

    async def get(self, provider_id: str) -> Optional[ProviderProfile]:
        with ExceptionContext("get_provider", logger, collaborator="ProviderDirectory", provider_id=provider_id):
            doc = await self.collection.find_one(
                {"_id": to_object_id(provider_id), "userType": "provider"}, PROVIDER_PROJECTION
            )
        return profile_from_document(doc) if doc else None


class MongoServiceCatalog(ServiceCatalog):
    """Listings live in `providerservices`."""

    def __init__(self, collection):
        self.collection = collection

    async def find_active(
        self,
        exact_categories: Iterable[str] = (),
        category_patterns: Iterable[str] = (),
        title_patterns: Iterable[str] = (),
    ) -> List[ServiceListing]:
        clauses = [{"category": regex_exact(c)} for c in exact_categories if c and c.strip()]
        category_regexes = regex_any(category_patterns)
        if category_regexes:
            clauses.append({"category": {"$in": category_regexes}})
        title_regexes = regex_any(title_patterns)
        if title_regexes:
            clauses.append({"title": {"$in": title_regexes}})
        if not clauses:
            return []

        query = {"isActive": True, "$or": clauses}
        with ExceptionContext("find_active_listings", logger, collaborator="ServiceCatalog"):
            docs = await self.collection.find(query).to_list(length=None)
        return [listing_from_document(doc) for doc in docs]

    async def find_for_provider(self, provider_id: str, category: str) -> Optional[ServiceListing]:
        query = {
            "providerId": to_object_id(provider_id),
            "category": {"$in": regex_any([category])},
        }
        with ExceptionContext("find_provider_listing", logger, collaborator="ServiceCatalog",
                              provider_id=provider_id, category=category):
            doc = await self.collection.find_one(query)
        return listing_from_document(doc) if doc else None

    async def create(self, listing: ServiceListing) -> ServiceListing:
        doc = listing_to_document(listing)
        duplicate = None
        with ExceptionContext("create_listing", logger, collaborator="ServiceCatalog",
                              provider_id=listing.provider_id, category=listing.category):
            try:
                result = await self.collection.insert_one(doc)
            except DuplicateKeyError as e:
                duplicate = e

        if duplicate is not None:
            logger.info(f"Listing for provider {listing.provider_id} in '{listing.category}' created concurrently")
            raise ListingExistsError(
                f"Listing for provider {listing.provider_id} in '{listing.category}' already exists",
                provider_id=listing.provider_id,
                category=listing.category,
                cause=duplicate,
            ) from duplicate

        return listing.model_copy(update={"listing_id": str(result.inserted_id)})


class MongoBookingLedger(BookingLedger):
    """Bookings reference their provider through the `provider` field."""

    def __init__(self, collection):
        self.collection = collection

    async def find_occupying(self, provider_id: str, day: dt.date) -> List[BookingRecord]:
        day_start = dt.datetime.combine(day, dt.time.min)
        query = {
            "provider": to_object_id(provider_id),
            "scheduledDate": {"$gte": day_start, "$lt": day_start + dt.timedelta(days=1)},
            "status": {"$in": [s.value for s in OCCUPYING_STATUSES]},
        }
        with ExceptionContext("find_occupying_bookings", logger, collaborator="BookingLedger",
                              provider_id=provider_id):
            docs = await self.collection.find(query).to_list(length=None)
        return [booking_from_document(doc) for doc in docs]
