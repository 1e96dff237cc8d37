"""
Shelf API Routes

Adds books selected from a scan to one of the caller's shelves.
"""

from fastapi import APIRouter, Depends, status

from shelfscan.api.dependencies import get_shelf_service, get_user_id
from shelfscan.api.middleware.error_handler import NotFoundError
from shelfscan.api.schemas import AddBooksRequest, AddBooksResponse, ErrorResponse
from shelfscan.identification.selection import METADATA_SOURCE, UNKNOWN_AUTHOR, create_source_tag
from shelfscan.identification.service import ShelfAnalysisService
from shelfscan.storage.book_repository import ShelfNotFoundError
from shelfscan.storage.models import NewBookRecord


router = APIRouter(prefix="/shelves", tags=["shelves"])


@router.post(
    "/{shelf_id}/books",
    response_model=AddBooksResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse, "description": "Shelf not found"}},
)
async def add_books(
    shelf_id: str,
    request: AddBooksRequest,
    user_id: str = Depends(get_user_id),
    service: ShelfAnalysisService = Depends(get_shelf_service),
) -> AddBooksResponse:
    """Create the selected books on a shelf."""
    tag = create_source_tag(request.source)
    records = [
        NewBookRecord(
            title=book.title,
            author=book.author or UNKNOWN_AUTHOR,
            isbn=book.isbn,
            cover_url=book.cover_url,
            publisher=book.publisher,
            year=book.year,
            category=book.category,
            language=book.language,
            source_tags=[tag],
            metadata_source=METADATA_SOURCE,
        )
        for book in request.books
    ]

    try:
        ids = await service.save_records(user_id, shelf_id, records)
    except ShelfNotFoundError:
        raise NotFoundError("Shelf", shelf_id)

    return AddBooksResponse(count=len(ids), ids=ids)
