"""
External function definitions.

Maps each web service function name to its handler together with the
metadata advertised to clients.
"""
from typing import Any, Callable, Dict, List, NamedTuple

from .forums import get_forum_discussions, get_forum_posts, get_forums_by_courses
from .grades_read import get_grades
from .grades_write import update_grade


class ExternalFunction(NamedTuple):
    name: str
    handler: Callable[..., Any]
    description: str
    type: str
    capabilities: List[str]


FUNCTIONS: Dict[str, ExternalFunction] = {
    f.name: f
    for f in (
        ExternalFunction(
            name="local_custommm_get_grades",
            handler=get_grades,
            description="Returns grade item details and optionally student grades.",
            type="read",
            capabilities=["moodle/grade:view", "moodle/grade:viewall"],
        ),
        ExternalFunction(
            name="local_custommm_update_grade",
            handler=update_grade,
            description="Update a grade item and student grades.",
            type="write",
            capabilities=["moodle/grade:manage", "moodle/grade:hide", "moodle/grade:edit"],
        ),
        ExternalFunction(
            name="local_custommm_get_forums_by_courses",
            handler=get_forums_by_courses,
            description=(
                "Returns a list of forum instances in a provided set of courses, if no courses "
                "are provided then all the forum instances the user has access to will be returned."
            ),
            type="read",
            capabilities=["mod/forum:viewdiscussion"],
        ),
        ExternalFunction(
            name="local_custommm_get_forum_discussions",
            handler=get_forum_discussions,
            description="Returns a list of forum discussions contained within a given set of forums.",
            type="read",
            capabilities=["mod/forum:viewdiscussion", "mod/forum:viewqandawithoutposting"],
        ),
        ExternalFunction(
            name="local_custommm_get_forum_posts",
            handler=get_forum_posts,
            description="Returns a list of forum posts for a discussion.",
            type="read",
            capabilities=["mod/forum:viewdiscussion", "mod/forum:viewqandawithoutposting"],
        ),
    )
}


def get_function(name: str) -> ExternalFunction:
    """
    Raises:
        KeyError: If no function has this name
    """
    return FUNCTIONS[name]
