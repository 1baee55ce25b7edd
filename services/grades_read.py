"""
Grade reading for the Course Web Services.

CRITICAL RULE: students only see their own grades, and only when the
course shows grades to students.
"""
import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from database import Course
from .access import AccessDecisionEngine, GradeReadPolicy, get_caller
from .activities import get_activity, normalize_component
from .context import ContextResolver
from .exceptions import ContextError
from .gradelib import grade_get_grades
from .validation import (
    ExternalMultipleStructure,
    ExternalSingleStructure,
    ExternalValue,
    ParamType,
    validate_parameters,
)

logger = logging.getLogger(__name__)

GET_GRADES_PARAMETERS = ExternalSingleStructure({
    "courseid": ExternalValue(ParamType.INT, "id of course"),
    "component": ExternalValue(ParamType.COMPONENT, "A component, for example mod_forum or mod_quiz"),
    "cmid": ExternalValue(ParamType.INT, "The ID of the course module"),
    "userids": ExternalMultipleStructure(
        ExternalValue(ParamType.INT, "user ID"),
        "User ids, or empty to just retrieve grade item information",
        required=False,
    ),
})

ITEM_FIELDS = ("itemnumber", "scaleid", "name", "grademin", "grademax", "gradepass", "locked", "hidden")
ITEM_GRADE_FIELDS = (
    "userid", "grade", "locked", "hidden", "overridden", "feedback", "feedbackformat",
    "usermodified", "datesubmitted", "dategraded", "str_grade", "str_long_grade", "str_feedback",
)
OUTCOME_FIELDS = ("itemnumber", "scaleid", "name", "locked", "hidden")
OUTCOME_GRADE_FIELDS = (
    "userid", "grade", "locked", "hidden", "feedback", "feedbackformat",
    "usermodified", "str_grade", "str_feedback",
)


def resolve_course_context(resolver: ContextResolver, courseid: int):
    """
    Resolve and validate a course context for the grade functions.

    Raises:
        ContextError: "errorcoursecontextnotvalid" wrapping the original reason
    """
    try:
        return resolver.resolve_course(courseid)
    except ContextError as e:
        raise ContextError(
            f"Invalid course context {courseid}: {e.message}",
            contextlevel=e.contextlevel,
            instanceid=courseid,
            errorcode="errorcoursecontextnotvalid",
        )


def _flatten(info: Dict[str, Any], fields, grade_fields) -> Dict[str, Any]:
    entry = {key: info[key] for key in fields}
    entry["grades"] = [
        {key: grade[key] for key in grade_fields}
        for grade in info["grades"].values()
    ]
    return entry


def get_grades(db: Session, requester_id: int, params: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Get the grade items of an activity and, optionally, student grades.

    AUTHORIZATION:
    - moodle/grade:viewall in the course: any users
    - Otherwise, with course showgrades on, exactly one user who is either
      the caller (with moodle/grade:view) or someone the caller holds
      moodle/grade:viewall over in their user context

    Args:
        db: Database session
        requester_id: ID of the user making the request
        params: {"courseid", "component", "cmid", "userids"?}

    Returns:
        {"items": [...], "outcomes": [...]}, each entry with its own grades

    Raises:
        ValidationError: Malformed parameters
        ContextError: Course context missing or not enterable
        AccessDenied: Caller may not view these grades
        NotFoundError: Course module or activity does not exist
    """
    params = validate_parameters(GET_GRADES_PARAMETERS, params)
    courseid = params["courseid"]
    itemtype, itemmodule = normalize_component(params["component"])
    cmid = params["cmid"]
    userids = params.get("userids")

    user = get_caller(db, requester_id)
    context = resolve_course_context(ContextResolver(db, user), courseid)
    course = db.query(Course).filter(Course.id == courseid).first()

    # ENFORCEMENT: deny is a hard failure, never a filtered result
    AccessDecisionEngine(db, user).enforce(GradeReadPolicy(course, userids), context, "get_grades")

    _, activity = get_activity(db, itemmodule, cmid, courseid)

    grades = grade_get_grades(db, courseid, itemtype, itemmodule, activity.id, userids)

    response = {
        "items": [_flatten(item, ITEM_FIELDS, ITEM_GRADE_FIELDS) for item in grades["items"].values()],
        "outcomes": [
            _flatten(outcome, OUTCOME_FIELDS, OUTCOME_GRADE_FIELDS)
            for outcome in grades["outcomes"].values()
        ],
    }
    logger.debug(
        "get_grades: user %s read %d items, %d outcomes of %s %s",
        user.id, len(response["items"]), len(response["outcomes"]), itemmodule, cmid,
    )
    return response
