"""
Grade writing for the Course Web Services.

Each optional part of an update carries its own capability check, and the
whole update is applied in one transaction: either every part is written or
none is.
"""
import logging
from typing import Any, Dict

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .access import AccessDecisionEngine, GradeWritePolicy, get_caller
from .activities import get_activity, normalize_component
from .context import ContextResolver
from .gradelib import GradeUpdateResult, grade_update
from .grades_read import resolve_course_context
from .validation import (
    ExternalMultipleStructure,
    ExternalSingleStructure,
    ExternalValue,
    ParamType,
    validate_parameters,
)

logger = logging.getLogger(__name__)

UPDATE_GRADE_PARAMETERS = ExternalSingleStructure({
    "source": ExternalValue(ParamType.TEXT, "The source of the grade update"),
    "courseid": ExternalValue(ParamType.INT, "id of course"),
    "component": ExternalValue(ParamType.COMPONENT, "A component, for example mod_forum or mod_quiz"),
    "cmid": ExternalValue(ParamType.INT, "The ID of the course module"),
    "itemnumber": ExternalValue(
        ParamType.INT,
        "grade item ID number for modules that have multiple grades. Typically this is 0.",
    ),
    "grades": ExternalMultipleStructure(
        ExternalSingleStructure({
            "studentid": ExternalValue(ParamType.INT, "Student ID"),
            "grade": ExternalValue(ParamType.FLOAT, "Student grade, null to clear it", allow_null=True),
            "feedback": ExternalValue(ParamType.TEXT, "Feedback from the grader", required=False),
        }),
        "Any student grades to alter",
        required=False,
    ),
    "itemdetails": ExternalSingleStructure(
        {
            "itemname": ExternalValue(ParamType.TEXT, "The grade item name", required=False),
            "idnumber": ExternalValue(ParamType.ALPHANUMEXT, "Arbitrary ID number of the item", required=False),
            "gradetype": ExternalValue(ParamType.INT, "0 none, 1 value, 2 scale, 3 text", required=False),
            "grademax": ExternalValue(ParamType.FLOAT, "Maximum grade allowed", required=False),
            "grademin": ExternalValue(ParamType.FLOAT, "Minimum grade allowed", required=False),
            "scaleid": ExternalValue(ParamType.INT, "The ID of the custom scale or 0", required=False),
            "multfactor": ExternalValue(ParamType.FLOAT, "Multiply all grades by this", required=False),
            "plusfactor": ExternalValue(ParamType.FLOAT, "Add this to all grades", required=False),
            "deleted": ExternalValue(ParamType.BOOL, "True if the grade item should be deleted", required=False),
            "hidden": ExternalValue(ParamType.BOOL, "True if the grade item is hidden", required=False),
        },
        "Any grade item settings to alter",
        required=False,
    ),
})


def update_grade(db: Session, requester_id: int, params: Dict[str, Any]) -> Dict[str, int]:
    """
    Update a grade item and, optionally, student grades.

    AUTHORIZATION (in the course context):
    - item details other than "hidden": moodle/grade:manage
    - "hidden": moodle/grade:hide or moodle/grade:manage
    - student grades: moodle/grade:edit

    Args:
        db: Database session
        requester_id: ID of the user making the request
        params: {"source", "courseid", "component", "cmid", "itemnumber",
            "grades"?, "itemdetails"?}

    Returns:
        {"result": GradeUpdateResult code}, forwarded from the gradebook

    Raises:
        ValidationError: Malformed parameters
        ContextError: Course context missing or not enterable
        AccessDenied: Any present part of the update is not permitted
        NotFoundError: Course module or activity does not exist
    """
    params = validate_parameters(UPDATE_GRADE_PARAMETERS, params)
    courseid = params["courseid"]
    itemtype, itemmodule = normalize_component(params["component"])
    cmid = params["cmid"]
    itemdetails = params.get("itemdetails")

    grades = None
    if "grades" in params:
        # One entry per student, the last one sent wins
        by_student = {}
        for entry in params["grades"]:
            grade = {"userid": entry["studentid"], "rawgrade": entry["grade"]}
            if "feedback" in entry:
                grade["feedback"] = entry["feedback"]
            by_student[entry["studentid"]] = grade
        grades = list(by_student.values())

    user = get_caller(db, requester_id)
    context = resolve_course_context(ContextResolver(db, user), courseid)

    # ENFORCEMENT: every present part is checked before anything is written
    policy = GradeWritePolicy.from_payload(params.get("grades"), itemdetails)
    AccessDecisionEngine(db, user).enforce(policy, context, "update_grade")

    _, activity = get_activity(db, itemmodule, cmid, courseid)

    try:
        result = grade_update(
            db,
            params["source"],
            courseid,
            itemtype,
            itemmodule,
            activity.id,
            params["itemnumber"],
            grades=grades,
            itemdetails=itemdetails,
            usermodified=user.id,
        )
        if result == GradeUpdateResult.OK:
            db.commit()
        else:
            db.rollback()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(
        "update_grade: user %s on %s %s item %s -> %s",
        user.id, itemmodule, cmid, params["itemnumber"], result.name,
    )
    return {"result": int(result)}
