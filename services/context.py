"""
Security context resolution.

Handlers obtain every context through ContextResolver. Resolution and
validation are separate steps: a context row can outlive the scope it was
created for, so a resolved context is validated against the live record
(and the caller's right to enter it) before it is used.
"""
import logging
from enum import IntEnum
from typing import List, NamedTuple, Optional

from sqlalchemy.orm import Session

from database import Context, Course, CourseModule, Enrolment, User
from .capabilities import COURSE_VIEW, COURSE_VIEWHIDDENCOURSES, has_capability
from .exceptions import ContextError

logger = logging.getLogger(__name__)


class ContextLevel(IntEnum):
    """Scope kinds, outermost first."""
    SYSTEM = 10
    USER = 30
    COURSE = 50
    MODULE = 70


SYSTEM_INSTANCE_ID = 0


class SecurityContext(NamedTuple):
    """An immutable, resolved context."""
    id: int
    contextlevel: ContextLevel
    instanceid: int
    path: str

    @property
    def path_ids(self) -> List[int]:
        """Context ids from the system context down to this one."""
        return [int(part) for part in self.path.split("/") if part]

    @classmethod
    def from_record(cls, record: Context) -> "SecurityContext":
        return cls(
            id=record.id,
            contextlevel=ContextLevel(record.contextlevel),
            instanceid=record.instanceid,
            path=record.path,
        )


def create_context(
    db: Session,
    contextlevel: ContextLevel,
    instanceid: int,
    parent: Optional[SecurityContext] = None,
) -> SecurityContext:
    """
    Create the context row for a scope instance.

    Args:
        db: Database session
        contextlevel: Level of the new context
        instanceid: Id of the course, module or user record
        parent: Enclosing context (None for the system context)

    Returns:
        The new SecurityContext
    """
    record = Context(contextlevel=int(contextlevel), instanceid=instanceid)
    db.add(record)
    db.flush()
    parent_path = parent.path if parent is not None else ""
    record.path = f"{parent_path}/{record.id}"
    db.flush()
    return SecurityContext.from_record(record)


class ContextResolver:
    """Resolves scope ids to contexts and validates them for a user."""

    def __init__(self, db: Session, user: User):
        self.db = db
        self.user = user

    def resolve(self, contextlevel: ContextLevel, instanceid: int) -> SecurityContext:
        """
        Get the context of a scope instance.

        Raises:
            ContextError: If no context exists for the scope
        """
        record = (
            self.db.query(Context)
            .filter(Context.contextlevel == int(contextlevel))
            .filter(Context.instanceid == instanceid)
            .first()
        )
        if record is None:
            raise ContextError(
                f"Context does not exist ({contextlevel.name.lower()} {instanceid})",
                contextlevel=contextlevel,
                instanceid=instanceid,
            )
        return SecurityContext.from_record(record)

    def system(self) -> SecurityContext:
        return self.resolve(ContextLevel.SYSTEM, SYSTEM_INSTANCE_ID)

    def course(self, course_id: int) -> SecurityContext:
        return self.resolve(ContextLevel.COURSE, course_id)

    def module(self, cmid: int) -> SecurityContext:
        return self.resolve(ContextLevel.MODULE, cmid)

    def user_context(self, user_id: int) -> SecurityContext:
        return self.resolve(ContextLevel.USER, user_id)

    def validate(self, context: SecurityContext) -> None:
        """
        Check that the context's scope is live and the caller may act in it.

        Raises:
            ContextError: If the scope instance is gone, or the caller
                cannot enter the course it belongs to
        """
        if context.contextlevel == ContextLevel.SYSTEM:
            return

        if context.contextlevel == ContextLevel.USER:
            user = self.db.query(User).filter(User.id == context.instanceid).first()
            if user is None or user.deleted:
                raise self._stale(context)
            return

        if context.contextlevel == ContextLevel.MODULE:
            cm = self.db.query(CourseModule).filter(CourseModule.id == context.instanceid).first()
            if cm is None:
                raise self._stale(context)
            self.validate(self.course(cm.course_id))
            return

        course = self.db.query(Course).filter(Course.id == context.instanceid).first()
        if course is None:
            raise self._stale(context)
        self._require_course_login(course, context)

    def resolve_course(self, course_id: int) -> SecurityContext:
        """Resolve and validate a course context in one step."""
        context = self.course(course_id)
        self.validate(context)
        return context

    def _require_course_login(self, course: Course, context: SecurityContext) -> None:
        if not course.visible and not has_capability(self.db, COURSE_VIEWHIDDENCOURSES, context, self.user):
            raise ContextError(
                f"Course {course.id} is not available",
                contextlevel=context.contextlevel,
                instanceid=context.instanceid,
                errorcode="requireloginerror",
            )

        enrolled = (
            self.db.query(Enrolment)
            .filter(Enrolment.user_id == self.user.id)
            .filter(Enrolment.course_id == course.id)
            .first()
        )
        if enrolled is None and not has_capability(self.db, COURSE_VIEW, context, self.user):
            logger.debug("User %s is not enrolled in course %s", self.user.id, course.id)
            raise ContextError(
                f"User {self.user.id} cannot enter course {course.id}",
                contextlevel=context.contextlevel,
                instanceid=context.instanceid,
                errorcode="requireloginerror",
            )

    def _stale(self, context: SecurityContext) -> ContextError:
        return ContextError(
            f"Context {context.id} refers to a missing {context.contextlevel.name.lower()}",
            contextlevel=context.contextlevel,
            instanceid=context.instanceid,
        )
