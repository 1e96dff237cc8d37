"""
Analysis API Routes

Endpoints for shelf photo and single cover analysis.
"""

from fastapi import APIRouter, Depends
from loguru import logger

from shelfscan.api.dependencies import (
    ServiceContainer,
    get_service_container,
    get_shelf_service,
    get_user_id,
)
from shelfscan.api.schemas import (
    AnalyzeBookRequest,
    AnalyzeShelfRequest,
    ErrorResponse,
    ShelfAnalysisResponse,
    SingleBookResponse,
)
from shelfscan.identification.selection import default_selection
from shelfscan.identification.service import ShelfAnalysisService


router = APIRouter(prefix="/analyze", tags=["analysis"])

PROVIDER_ERRORS = {
    400: {"model": ErrorResponse, "description": "Invalid image"},
    429: {"model": ErrorResponse, "description": "Backend rate limit"},
    502: {"model": ErrorResponse, "description": "Unparseable backend response"},
    503: {"model": ErrorResponse, "description": "Backend unavailable"},
}


@router.post(
    "/shelf",
    response_model=ShelfAnalysisResponse,
    responses=PROVIDER_ERRORS,
)
async def analyze_shelf(
    request: AnalyzeShelfRequest,
    user_id: str = Depends(get_user_id),
    service: ShelfAnalysisService = Depends(get_shelf_service),
    container: ServiceContainer = Depends(get_service_container),
) -> ShelfAnalysisResponse:
    """
    Detect books in a shelf photo and resolve them against the caller's collection.

    New, readable books are pre-selected in `default_selection`.
    """
    options = request.to_options(container.default_options())
    logger.info(f"Shelf analysis requested by {user_id} via {service.provider.name}")

    result = await service.analyze_shelf(request.image, user_id, options)

    payload = result.to_dict()
    payload["default_selection"] = default_selection(result.enriched_books)
    return ShelfAnalysisResponse.model_validate(payload)


@router.post(
    "/book",
    response_model=SingleBookResponse,
    responses=PROVIDER_ERRORS,
)
async def analyze_book(
    request: AnalyzeBookRequest,
    user_id: str = Depends(get_user_id),
    service: ShelfAnalysisService = Depends(get_shelf_service),
    container: ServiceContainer = Depends(get_service_container),
) -> SingleBookResponse:
    """Extract metadata from one cover, filling gaps from Google Books."""
    logger.info(f"Cover analysis requested by {user_id} via {service.provider.name}")
    result = await service.analyze_book(request.image, container.default_options())
    return SingleBookResponse(**result.to_dict())
