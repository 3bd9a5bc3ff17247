from fastapi import APIRouter, Request

from provider_match.models.schemas import SyntheticListingBody, SyntheticListingResponse
from provider_match.services.formatter import listing_payload
from provider_match.services.matching import build_pipeline
from provider_match.services.normalizer import CategoryNormalizer
from provider_match.utils.logging_config import get_logger, PerformanceMonitor
from provider_match.utils.exceptions import NotFoundError, ValidationError

router = APIRouter()
logger = get_logger(__name__)


@router.post("/listings/synthetic", response_model=SyntheticListingResponse)
async def create_synthetic_listing(body: SyntheticListingBody, request: Request):
    """Materialize an auto-generated listing for an approved provider.

    Idempotent per (provider, category): an existing listing is returned
    with created=false instead of a second one being written.
    """
    request_id = getattr(request.state, 'request_id', 'unknown')

    provider_id = (body.providerId or "").strip()
    category_raw = CategoryNormalizer.extract_raw(body.category)
    missing = [name for name, value in (("providerId", provider_id), ("category", category_raw)) if not value]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

    pipeline = build_pipeline()
    provider = await pipeline.directory.get(provider_id)
    if provider is None or not provider.is_eligible:
        logger.warning(
            f"Synthetic listing requested for unknown or unapproved provider {provider_id}",
            extra={"request_id": request_id}
        )
        raise NotFoundError("Approved provider not found", resource="provider", resource_id=provider_id)

    category = pipeline.normalizer.normalize(category_raw)
    with PerformanceMonitor("create_synthetic_listing", logger):
        outcome = await pipeline.synthesizer.materialize(
            provider, category, area=body.area, request_id=request_id
        )

    message = "Listing created" if outcome.created else "Listing already exists"
    logger.info(
        f"{message} for provider {provider_id} in '{category.key}'",
        extra={"request_id": request_id}
    )
    return SyntheticListingResponse(
        message=message,
        data={"listing": listing_payload(outcome.listing), "created": outcome.created},
    )
