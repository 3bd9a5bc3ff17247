from fastapi import APIRouter, Request
from pydantic import ValidationError as PydanticValidationError

from provider_match.models.models import MatchRequest
from provider_match.models.schemas import MatchProvidersBody, MatchProvidersResponse
from provider_match.services.matching import build_pipeline
from provider_match.services.normalizer import CategoryNormalizer

# Import logging and exceptions
from provider_match.utils.logging_config import get_logger, PerformanceMonitor
from provider_match.utils.exceptions import (
    CollaboratorError,
    ValidationError,
)

router = APIRouter()
logger = get_logger(__name__)

MATCH_ERROR_MESSAGE = "Error finding available providers"

# MatchRequest field -> public body field, for error messages
BODY_FIELD_NAMES = {
    "duration_minutes": "duration",
    "providers_needed": "providersNeeded",
    "selected_sub_service": "selectedSubService",
}


def _coordinates(value):
    if isinstance(value, dict):
        lat, lng = value.get("lat", value.get("latitude")), value.get("lng", value.get("longitude"))
        return (lat, lng) if lat is not None and lng is not None else None
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return tuple(value)
    return None


def _sub_service(value):
    if isinstance(value, dict):
        return value.get("name") or value.get("title")
    return value


def build_match_request(body: MatchProvidersBody, request_id: str = None) -> MatchRequest:
    """Validate the loose request body into a MatchRequest.

    Raises:
        ValidationError: Naming every missing field, or the invalid ones
    """
    category = CategoryNormalizer.extract_raw(body.category)
    area = (body.location.area or "").strip() if body.location else ""

    missing = []
    if not category:
        missing.append("category")
    if not area:
        missing.append("location.area")
    if not body.date or not body.date.strip():
        missing.append("date")
    if not body.time or not body.time.strip():
        missing.append("time")
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

    # accept full ISO timestamps, only the calendar date matters
    date = body.date.strip()[:10]

    fields = {
        "category": category,
        "location": {"area": area, "coordinates": _coordinates(body.location.coordinates)},
        "date": date,
        "time": body.time,
        "urgency": (body.urgency or "normal").strip().lower(),
        "selected_sub_service": _sub_service(body.selectedSubService),
        "limit": body.limit,
        "request_id": request_id,
    }
    if body.duration is not None:
        fields["duration_minutes"] = body.duration
    if body.providersNeeded is not None:
        fields["providers_needed"] = body.providersNeeded
    if body.budget:
        fields["budget"] = body.budget

    try:
        return MatchRequest(**fields)
    except PydanticValidationError as e:
        invalid = []
        for err in e.errors():
            name = ".".join(str(p) for p in err["loc"])
            invalid.append(BODY_FIELD_NAMES.get(name, name))
        raise ValidationError(
            f"Invalid values for: {', '.join(invalid)}",
            fields=invalid,
            cause=e
        ) from e


@router.post("/match-providers", response_model=MatchProvidersResponse)
async def match_providers(body: MatchProvidersBody, request: Request):
    """Find available, ranked providers for a service request"""
    request_id = getattr(request.state, 'request_id', 'unknown')

    match_request = build_match_request(body, request_id)
    logger.info(
        f"Matching providers for '{match_request.category}' in {match_request.location.area}",
        extra={"request_id": request_id}
    )

    with PerformanceMonitor("match_providers", logger):
        try:
            pipeline = build_pipeline()
            data = await pipeline.match(match_request)
        except Exception as e:
            if isinstance(e, ValidationError):
                raise
            logger.error(
                f"Provider matching failed: {str(e)}",
                extra={"request_id": request_id}
            )
            raise CollaboratorError(
                MATCH_ERROR_MESSAGE,
                collaborator="MatchingPipeline",
                operation="match_providers",
                cause=e
            ) from e

    found = data["totalFound"]
    message = f"Found {found} available providers" if found else "No available providers found for this request"
    return MatchProvidersResponse(message=message, data=data)
