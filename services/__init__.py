"""
Services module for the Course Web Services.

This module provides the external functions exposed to web service
clients, each enforcing its authorization rules before touching any record.
"""
from .exceptions import (
    WebServiceError,
    ValidationError,
    ContextError,
    AccessDenied,
    NotFoundError,
    InvalidUserError,
)

from .validation import (
    ExternalValue,
    ExternalSingleStructure,
    ExternalMultipleStructure,
    ParamType,
    validate_parameters,
)

from .context import (
    ContextLevel,
    SecurityContext,
    ContextResolver,
    create_context,
)

from .access import (
    AccessDecisionEngine,
    Decision,
    GradeReadPolicy,
    GradeWritePolicy,
    ForumReadPolicy,
    get_caller,
)

from .gradelib import GradeUpdateResult

from .grades_read import get_grades
from .grades_write import update_grade

from .forums import (
    get_forums_by_courses,
    get_forum_discussions,
    get_forum_posts,
)

from .registry import FUNCTIONS, ExternalFunction, get_function

__all__ = [
    # Exceptions
    "WebServiceError",
    "ValidationError",
    "ContextError",
    "AccessDenied",
    "NotFoundError",
    "InvalidUserError",
    # Validation
    "ExternalValue",
    "ExternalSingleStructure",
    "ExternalMultipleStructure",
    "ParamType",
    "validate_parameters",
    # Contexts
    "ContextLevel",
    "SecurityContext",
    "ContextResolver",
    "create_context",
    # Access
    "AccessDecisionEngine",
    "Decision",
    "GradeReadPolicy",
    "GradeWritePolicy",
    "ForumReadPolicy",
    "get_caller",
    # Grades
    "GradeUpdateResult",
    "get_grades",
    "update_grade",
    # Forums
    "get_forums_by_courses",
    "get_forum_discussions",
    "get_forum_posts",
    # Registry
    "FUNCTIONS",
    "ExternalFunction",
    "get_function",
]
