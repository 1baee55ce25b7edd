"""
Capability checks.

A capability granted in a context applies to that context and every context
below it, so a check consults the whole context path (module -> course ->
system). Site administrators hold every capability.
"""
from sqlalchemy.orm import Session

from database import CapabilityGrant, User

GRADE_VIEW = "moodle/grade:view"
GRADE_VIEWALL = "moodle/grade:viewall"
GRADE_MANAGE = "moodle/grade:manage"
GRADE_HIDE = "moodle/grade:hide"
GRADE_EDIT = "moodle/grade:edit"
FORUM_VIEWDISCUSSION = "mod/forum:viewdiscussion"
FORUM_VIEWQANDAWITHOUTPOSTING = "mod/forum:viewqandawithoutposting"
SITE_VIEWFULLNAMES = "moodle/site:viewfullnames"
COURSE_VIEW = "moodle/course:view"
COURSE_VIEWHIDDENCOURSES = "moodle/course:viewhiddencourses"
COURSE_VIEWHIDDENACTIVITIES = "moodle/course:viewhiddenactivities"


def has_capability(db: Session, capability: str, context, user: User) -> bool:
    """
    Check whether a user holds a capability in a context.

    Args:
        db: Database session
        capability: Capability name, e.g. "moodle/grade:viewall"
        context: The SecurityContext the check is evaluated in
        user: The user whose permissions are checked

    Returns:
        True if the capability is granted in the context or one of its parents
    """
    if user.deleted:
        return False
    if user.is_siteadmin:
        return True

    grant = (
        db.query(CapabilityGrant.id)
        .filter(CapabilityGrant.user_id == user.id)
        .filter(CapabilityGrant.capability == capability)
        .filter(CapabilityGrant.context_id.in_(context.path_ids))
        .first()
    )
    return grant is not None


def grant_capability(db: Session, user_id: int, context, capability: str) -> CapabilityGrant:
    """Allow a capability to a user in a context (no-op if already granted)."""
    grant = (
        db.query(CapabilityGrant)
        .filter_by(user_id=user_id, context_id=context.id, capability=capability)
        .first()
    )
    if grant is None:
        grant = CapabilityGrant(user_id=user_id, context_id=context.id, capability=capability)
        db.add(grant)
        db.flush()
    return grant
