"""
API routes for the Course Web Services.
"""
import logging
from typing import Any, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import TypeAdapter
from sqlalchemy.orm import Session

from database import get_db
from services import (
    FUNCTIONS,
    AccessDenied,
    ContextError,
    NotFoundError,
    ValidationError,
    WebServiceError,
    get_function,
)
from .schemas import (
    ServiceCallRequest,
    GradesResponse,
    UpdateGradeResponse,
    ForumResponse,
    DiscussionResponse,
    PostResponse,
    FunctionResponse,
    ErrorResponse,
)

logger = logging.getLogger(__name__)

# Router for the web service endpoints
webservice_router = APIRouter(prefix="/webservice", tags=["Web services"])

# Declared return shape of each function
RETURN_SCHEMAS = {
    "local_custommm_get_grades": TypeAdapter(GradesResponse),
    "local_custommm_update_grade": TypeAdapter(UpdateGradeResponse),
    "local_custommm_get_forums_by_courses": TypeAdapter(List[ForumResponse]),
    "local_custommm_get_forum_discussions": TypeAdapter(List[DiscussionResponse]),
    "local_custommm_get_forum_posts": TypeAdapter(List[PostResponse]),
}

STATUS_CODES = (
    (ValidationError, 400),
    (AccessDenied, 403),
    (ContextError, 404),
    (NotFoundError, 404),
)


def _error_detail(exc: WebServiceError) -> dict:
    return {
        "exception": type(exc).__name__,
        "errorcode": exc.errorcode,
        "message": exc.message,
    }


def _status_code(exc: WebServiceError) -> int:
    for error_type, status_code in STATUS_CODES:
        if isinstance(exc, error_type):
            return status_code
    return 500


def clean_return_value(wsfunction: str, result: Any) -> Any:
    """Reduce a function result to its declared return shape."""
    adapter = RETURN_SCHEMAS[wsfunction]
    return adapter.dump_python(adapter.validate_python(result))


@webservice_router.get("/functions", response_model=List[FunctionResponse])
async def list_functions():
    """List the available external functions."""
    return [
        FunctionResponse(
            name=f.name,
            description=f.description,
            type=f.type,
            capabilities=f.capabilities,
        )
        for f in FUNCTIONS.values()
    ]


@webservice_router.post(
    "/{wsfunction}",
    responses={
        400: {"model": ErrorResponse, "description": "Invalid parameters"},
        403: {"model": ErrorResponse, "description": "Permission denied"},
        404: {"model": ErrorResponse, "description": "Unknown function, context or record"},
    },
)
def call_function(wsfunction: str, request: ServiceCallRequest, db: Session = Depends(get_db)):
    """
    Call an external function.

    Errors are reported as {"detail": {"exception", "errorcode", "message"}}:
    400 invalid parameters, 403 permission denied, 404 unknown context or record.
    """
    try:
        function = get_function(wsfunction)
    except KeyError:
        raise HTTPException(
            status_code=404,
            detail={
                "exception": "WebServiceError",
                "errorcode": "invalidfunction",
                "message": f"Can not find function {wsfunction}",
            },
        )

    try:
        result = function.handler(db, request.requester_id, request.params)
    except WebServiceError as e:
        logger.info("%s failed for user %s: %s", wsfunction, request.requester_id, e.errorcode)
        raise HTTPException(status_code=_status_code(e), detail=_error_detail(e))

    return clean_return_value(wsfunction, result)
