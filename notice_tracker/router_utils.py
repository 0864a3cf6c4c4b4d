from fastapi import HTTPException
from typing import Any, List, Optional
from notice_tracker.schemas import ApiResponse, ApiMeta, ApiError
from notice_tracker.stores import StoreError
from datetime import datetime

def wrap_response(data: Any, meta: Optional[dict] = None, errors: Optional[List[ApiError]] = None) -> ApiResponse:
    """Wraps data in the standardized API envelope."""
    return ApiResponse(
        data=data,
        meta=ApiMeta(
            timestamp=datetime.utcnow(),
            pagination=meta.get("pagination") if meta else None
        ),
        errors=errors
    )

def store_unavailable(error: StoreError) -> HTTPException:
    """Maps a store failure to a 503 with the standard error shape."""
    return HTTPException(
        status_code=503,
        detail=ApiError(
            code="STORE_UNAVAILABLE",
            message=str(error),
            target=error.collection,
        ).model_dump()
    )

def not_found(entity: str, entity_id: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail=ApiError(
            code="NOT_FOUND",
            message=f"{entity} not found",
            target=entity_id,
        ).model_dump()
    )
