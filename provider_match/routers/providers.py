import datetime as dt
from typing import Optional

from fastapi import APIRouter, Request
from pydantic import ValidationError as PydanticValidationError

from provider_match.models.models import MatchRequest
from provider_match.models.schemas import ProviderScoreResponse
from provider_match.services.matching import build_pipeline
from provider_match.utils.logging_config import get_logger, PerformanceMonitor
from provider_match.utils.exceptions import NotFoundError, ValidationError

router = APIRouter()
logger = get_logger(__name__)


@router.get("/provider-score/{provider_id}", response_model=ProviderScoreResponse)
async def provider_score(
    provider_id: str,
    request: Request,
    category: Optional[str] = None,
    location: Optional[str] = None,
    urgency: str = "normal",
    selectedSubService: Optional[str] = None,
):
    """Score breakdown of one provider for a category and area, with improvement tips"""
    request_id = getattr(request.state, 'request_id', 'unknown')

    category = (category or "").strip()
    area = (location or "").strip()
    missing = [name for name, value in (("category", category), ("location", area)) if not value]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

    try:
        # no time slot is involved; scoring never looks at date or time
        score_request = MatchRequest(
            category=category,
            location={"area": area},
            date=dt.date.today(),
            time="00:00",
            urgency=urgency.strip().lower(),
            selected_sub_service=selectedSubService,
            request_id=request_id,
        )
    except PydanticValidationError as e:
        invalid = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
        raise ValidationError(f"Invalid values for: {', '.join(invalid)}", fields=invalid, cause=e) from e

    pipeline = build_pipeline()
    provider = await pipeline.directory.get(provider_id)
    if provider is None:
        logger.warning(f"Score requested for unknown provider {provider_id}", extra={"request_id": request_id})
        raise NotFoundError("Provider not found", resource="provider", resource_id=provider_id)

    with PerformanceMonitor("provider_score", logger):
        data = await pipeline.score_provider(provider, score_request)

    logger.info(
        f"Scored provider {provider_id} for '{data['category']}': {data['score']}/{data['maxPossible']}",
        extra={"request_id": request_id}
    )
    return ProviderScoreResponse(message="Provider score calculated", data=data)
