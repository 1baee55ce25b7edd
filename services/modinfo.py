"""
Course structure lookups.

Gives the activity modules placed in a course together with whether the
current user may see them.
"""
from typing import Dict, NamedTuple, Optional

from sqlalchemy.orm import Session

from database import CourseModule, User
from .capabilities import COURSE_VIEWHIDDENACTIVITIES, has_capability
from .context import ContextResolver
from .exceptions import ContextError


class CourseModuleInfo(NamedTuple):
    """A course module as seen by one user."""
    id: int
    course_id: int
    module: str
    instance: int
    visible: bool
    uservisible: bool


class CourseModInfo:
    """Per-request view of the modules of one course."""

    def __init__(self, db: Session, user: User, course_id: int):
        self.db = db
        self.user = user
        self.course_id = course_id
        self.resolver = ContextResolver(db, user)

    def get_instances_of(self, module: str) -> Dict[int, CourseModuleInfo]:
        """
        Get the modules of one type in the course, keyed by activity instance id.
        """
        cms = (
            self.db.query(CourseModule)
            .filter(CourseModule.course_id == self.course_id)
            .filter(CourseModule.module == module)
            .order_by(CourseModule.id)
            .all()
        )
        return {cm.instance: self._info(cm) for cm in cms}

    def _info(self, cm: CourseModule) -> CourseModuleInfo:
        uservisible = bool(cm.visible)
        if not uservisible:
            try:
                context = self.resolver.module(cm.id)
            except ContextError:
                context = None
            uservisible = context is not None and has_capability(
                self.db, COURSE_VIEWHIDDENACTIVITIES, context, self.user
            )
        return CourseModuleInfo(
            id=cm.id,
            course_id=cm.course_id,
            module=cm.module,
            instance=cm.instance,
            visible=bool(cm.visible),
            uservisible=uservisible,
        )


def get_coursemodule_from_id(db: Session, module: str, cmid: int) -> Optional[CourseModule]:
    """Get a course module by id, only if it is of the given type."""
    return (
        db.query(CourseModule)
        .filter(CourseModule.id == cmid)
        .filter(CourseModule.module == module)
        .first()
    )
