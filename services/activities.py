"""
Activity lookups shared by the grade functions.
"""
from typing import Tuple

from sqlalchemy.orm import Session

from database import Assign, CourseModule, Forum
from .exceptions import NotFoundError
from .modinfo import get_coursemodule_from_id

# Activity type -> table holding its instances
ACTIVITY_MODELS = {
    "assign": Assign,
    "forum": Forum,
}


def normalize_component(component: str) -> Tuple[str, str]:
    """
    Split a component name into its type and name.

    "mod_assign" -> ("mod", "assign"); a bare name is taken to be an
    activity module, so "forum" -> ("mod", "forum").
    """
    if "_" in component:
        plugintype, name = component.split("_", 1)
        return plugintype, name
    return "mod", component


def get_activity(db: Session, module: str, cmid: int, course_id: int) -> Tuple[CourseModule, object]:
    """
    Resolve a course module id to the module and its activity record.

    Raises:
        NotFoundError: "invalidcoursemodule" if the course module does not
            exist in the course, "invalidactivityid" if its activity record
            is missing
    """
    cm = get_coursemodule_from_id(db, module, cmid)
    if cm is None or cm.course_id != course_id:
        raise NotFoundError("course_modules", cmid, errorcode="invalidcoursemodule")

    model = ACTIVITY_MODELS.get(module)
    activity = None
    if model is not None:
        activity = db.query(model).filter(model.id == cm.instance).first()
    if activity is None:
        raise NotFoundError(module, cm.instance, errorcode="invalidactivityid")
    return cm, activity
