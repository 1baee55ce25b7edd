"""API module for the Course Web Services."""
from .routes import webservice_router, clean_return_value
from .schemas import (
    ServiceCallRequest,
    GradesResponse,
    UpdateGradeResponse,
    ForumResponse,
    DiscussionResponse,
    PostResponse,
    FunctionResponse,
    ErrorDetail,
    ErrorResponse,
)

__all__ = [
    "webservice_router",
    "clean_return_value",
    "ServiceCallRequest",
    "GradesResponse",
    "UpdateGradeResponse",
    "ForumResponse",
    "DiscussionResponse",
    "PostResponse",
    "FunctionResponse",
    "ErrorDetail",
    "ErrorResponse",
]
