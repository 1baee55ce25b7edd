"""
Access decisions for the Course Web Services.

Each external function has its own fixed decision tree, expressed as a
policy value handed to AccessDecisionEngine.decide():

- GradeReadPolicy: viewing grades of an activity
- GradeWritePolicy: changing a grade item and/or student grades
- ForumReadPolicy: reading a forum, its discussions or posts

The caller's identity always comes from the database, never from the client.
"""
import logging
from typing import Any, Dict, List, NamedTuple, Optional, Union

from sqlalchemy.orm import Session

from database import Course, Forum, ForumPost, User
from .capabilities import (
    FORUM_VIEWDISCUSSION,
    FORUM_VIEWQANDAWITHOUTPOSTING,
    GRADE_EDIT,
    GRADE_HIDE,
    GRADE_MANAGE,
    GRADE_VIEW,
    GRADE_VIEWALL,
    has_capability,
)
from .context import ContextResolver, SecurityContext
from .exceptions import AccessDenied, ContextError, InvalidUserError
from .modinfo import CourseModuleInfo

logger = logging.getLogger(__name__)


class Decision(NamedTuple):
    """Outcome of an access decision."""
    allowed: bool
    capability: Optional[str] = None
    errorcode: str = "nopermissions"

    @classmethod
    def allow(cls) -> "Decision":
        return cls(True)

    @classmethod
    def deny(cls, capability: Optional[str], errorcode: str = "nopermissions") -> "Decision":
        return cls(False, capability, errorcode)


class GradeReadPolicy(NamedTuple):
    """Viewing grade items and, optionally, the grades of some users."""
    course: Course
    userids: Optional[List[int]]


class GradeWritePolicy(NamedTuple):
    """Which parts of a grade update payload are present."""
    editing_item: bool
    hiding: bool
    editing_grades: bool

    @classmethod
    def from_payload(cls, grades: Optional[list], itemdetails: Optional[Dict[str, Any]]) -> "GradeWritePolicy":
        """
        Derive the policy from the optional parts of an update.

        `hidden` in the item details is a hide/unhide request; any other
        item detail, or item details sent empty, is an item metadata edit.
        """
        hiding = editing_item = False
        if itemdetails is not None:
            hiding = "hidden" in itemdetails
            editing_item = not itemdetails or any(key != "hidden" for key in itemdetails)
        return cls(
            editing_item=editing_item,
            hiding=hiding,
            editing_grades=grades is not None,
        )


class ForumReadPolicy(NamedTuple):
    """
    Reading a forum module. `discussion_id` is set when specific
    discussion content is being read, which brings in the Q&A rule.
    """
    forum: Forum
    cm: CourseModuleInfo
    discussion_id: Optional[int] = None


Policy = Union[GradeReadPolicy, GradeWritePolicy, ForumReadPolicy]


class AccessDecisionEngine:
    """
    Evaluates access policies for one caller.
    """

    def __init__(self, db: Session, user: User):
        self.db = db
        self.user = user
        self.resolver = ContextResolver(db, user)

    def has_capability(self, capability: str, context: SecurityContext) -> bool:
        return has_capability(self.db, capability, context, self.user)

    def require_capability(self, capability: str, context: SecurityContext) -> None:
        """
        Raises:
            AccessDenied: If the caller lacks the capability in the context
        """
        if not self.has_capability(capability, context):
            raise self._denied(Decision.deny(capability))

    def decide(self, policy: Policy, context: SecurityContext) -> Decision:
        """
        Evaluate a policy against the caller in a context.

        Args:
            policy: The operation's policy value
            context: The course context for grade policies, the module
                context for forum policies

        Returns:
            The Decision
        """
        if isinstance(policy, GradeReadPolicy):
            return self._decide_grade_read(policy, context)
        if isinstance(policy, GradeWritePolicy):
            return self._decide_grade_write(policy, context)
        if isinstance(policy, ForumReadPolicy):
            return self._decide_forum_read(policy, context)
        raise TypeError(f"Unknown policy {type(policy).__name__}")

    def enforce(self, policy: Policy, context: SecurityContext, operation: str) -> None:
        """
        Evaluate a policy and fail hard on deny.

        Raises:
            AccessDenied: If the decision is deny
        """
        decision = self.decide(policy, context)
        if not decision.allowed:
            logger.warning(
                "Access denied: %s by user %s in context %s (missing %s)",
                operation, self.user.id, context.id, decision.capability,
            )
            raise self._denied(decision)

    def _decide_grade_read(self, policy: GradeReadPolicy, context: SecurityContext) -> Decision:
        if self.has_capability(GRADE_VIEWALL, context):
            return Decision.allow()

        userids = policy.userids or []
        if policy.course.showgrades and len(userids) == 1:
            target_id = userids[0]

            # Students viewing their own grades
            if target_id == self.user.id and self.has_capability(GRADE_VIEW, context):
                return Decision.allow()

            # Parents and mentors holding viewall over the user
            try:
                user_context = self.resolver.user_context(target_id)
            except ContextError:
                user_context = None
            if user_context is not None and self.has_capability(GRADE_VIEWALL, user_context):
                return Decision.allow()

        return Decision.deny(GRADE_VIEWALL, "nopermissiontoviewgrades")

    def _decide_grade_write(self, policy: GradeWritePolicy, context: SecurityContext) -> Decision:
        if policy.editing_item and not self.has_capability(GRADE_MANAGE, context):
            return Decision.deny(GRADE_MANAGE, "nopermissiontoeditgrades")
        if (
            policy.hiding
            and not self.has_capability(GRADE_HIDE, context)
            and not self.has_capability(GRADE_MANAGE, context)
        ):
            return Decision.deny(GRADE_HIDE, "nopermissiontoeditgrades")
        if policy.editing_grades and not self.has_capability(GRADE_EDIT, context):
            return Decision.deny(GRADE_EDIT, "nopermissiontoeditgrades")
        return Decision.allow()

    def _decide_forum_read(self, policy: ForumReadPolicy, context: SecurityContext) -> Decision:
        if not policy.cm.uservisible:
            return Decision.deny(None, "nopermissiontoshow")
        if not self.has_capability(FORUM_VIEWDISCUSSION, context):
            return Decision.deny(FORUM_VIEWDISCUSSION)
        if (
            policy.discussion_id is not None
            and policy.forum.type == "qanda"
            and not self.user_has_posted(policy.discussion_id)
            and not self.has_capability(FORUM_VIEWQANDAWITHOUTPOSTING, context)
        ):
            return Decision.deny(FORUM_VIEWQANDAWITHOUTPOSTING)
        return Decision.allow()

    def user_has_posted(self, discussion_id: int) -> bool:
        """Check whether the caller has a post in a discussion."""
        post = (
            self.db.query(ForumPost.id)
            .filter(ForumPost.discussion_id == discussion_id)
            .filter(ForumPost.user_id == self.user.id)
            .first()
        )
        return post is not None

    def _denied(self, decision: Decision) -> AccessDenied:
        if decision.capability:
            message = f"Sorry, but you do not currently have permissions to do that ({decision.capability})"
        else:
            message = "Sorry, but you do not have permission to view this"
        return AccessDenied(
            message,
            user_id=self.user.id,
            capability=decision.capability,
            errorcode=decision.errorcode,
        )


def get_caller(db: Session, user_id: int) -> User:
    """
    Load the calling user.

    Raises:
        InvalidUserError: If the user does not exist or was deleted
    """
    user = db.query(User).filter(User.id == user_id).first()
    if user is None or user.deleted:
        raise InvalidUserError(user_id)
    return user
