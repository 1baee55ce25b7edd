"""
Forum reading for the Course Web Services.

AUTHORIZATION:
- The forum's course module must be visible to the caller
- mod/forum:viewdiscussion in the module context
- Q&A forums: mod/forum:viewqandawithoutposting unless the caller has
  posted in the discussion
"""
import logging
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Session

from database import Enrolment, Forum, ForumDiscussion, ForumPost, User
from .access import AccessDecisionEngine, ForumReadPolicy, get_caller
from .capabilities import SITE_VIEWFULLNAMES
from .content import format_text, rewrite_pluginfile_urls
from .context import ContextResolver, SecurityContext
from .exceptions import NotFoundError
from .identity import UserIdentityCache, fullname
from .modinfo import CourseModInfo, CourseModuleInfo
from .tracking import can_track_forums, count_discussion_replies, get_discussions_unread, is_tracked
from .validation import (
    ExternalMultipleStructure,
    ExternalSingleStructure,
    ExternalValue,
    ParamType,
    validate_parameters,
)

logger = logging.getLogger(__name__)

GET_FORUMS_BY_COURSES_PARAMETERS = ExternalSingleStructure({
    "courseids": ExternalMultipleStructure(
        ExternalValue(ParamType.INT, "course ID"),
        "Array of Course IDs",
        default=[],
    ),
})

GET_FORUM_DISCUSSIONS_PARAMETERS = ExternalSingleStructure({
    "forumids": ExternalMultipleStructure(
        ExternalValue(ParamType.INT, "forum ID"),
        "Array of Forum IDs",
    ),
})

GET_FORUM_POSTS_PARAMETERS = ExternalSingleStructure({
    "discussionid": ExternalValue(ParamType.INT, "discussion ID"),
})

FORUM_FIELDS = (
    "id", "type", "name", "assessed", "assesstimestart", "assesstimefinish", "scale",
    "maxbytes", "maxattachments", "forcesubscribe", "trackingtype", "rsstype", "rssarticles",
    "timemodified", "warnafter", "blockafter", "blockperiod", "completiondiscussions",
    "completionreplies", "completionposts",
)

POST_FIELDS = (
    "id", "parent", "created", "modified", "mailed", "subject", "messageformat",
    "messagetrust", "attachment", "totalscore", "mailnow",
)


def enrol_get_my_courses(db: Session, user: User) -> List[int]:
    """Ids of the courses the user is enrolled in."""
    rows = (
        db.query(Enrolment.course_id)
        .filter(Enrolment.user_id == user.id)
        .order_by(Enrolment.course_id)
        .all()
    )
    return [course_id for (course_id,) in rows]


class ForumModuleResolver:
    """
    Resolves forums to their course module and module context for one
    caller, validating each course context and loading each course's
    module list only once per request.
    """

    def __init__(self, db: Session, user: User):
        self.db = db
        self.user = user
        self.resolver = ContextResolver(db, user)
        self._checked_courses = set()
        self._instances: Dict[int, Dict[int, CourseModuleInfo]] = {}

    def get_forum(self, forum_id: int) -> Forum:
        forum = self.db.query(Forum).filter(Forum.id == forum_id).first()
        if forum is None:
            raise NotFoundError("forums", forum_id, errorcode="invalidforumid")
        return forum

    def resolve(self, forum: Forum) -> Tuple[CourseModuleInfo, SecurityContext]:
        """
        Raises:
            ContextError: The forum's course cannot be entered
            NotFoundError: "invalidmodule" if no course module places the forum
        """
        if forum.course_id not in self._checked_courses:
            self.resolver.resolve_course(forum.course_id)
            self._checked_courses.add(forum.course_id)

        if forum.course_id not in self._instances:
            modinfo = CourseModInfo(self.db, self.user, forum.course_id)
            self._instances[forum.course_id] = modinfo.get_instances_of("forum")

        cm = self._instances[forum.course_id].get(forum.id)
        if cm is None:
            raise NotFoundError("course_modules", forum.id, errorcode="invalidmodule")
        return cm, self.resolver.module(cm.id)


def _author_fields(prefix: str, identity, canviewfullname: bool) -> Dict[str, Any]:
    return {
        f"{prefix}fullname": fullname(identity, canviewfullname),
        f"{prefix}imagealt": identity.imagealt,
        f"{prefix}picture": identity.picture,
        f"{prefix}email": identity.email,
    }


def get_forums_by_courses(db: Session, requester_id: int, params: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    List the forums of some courses.

    With no course ids, every course the caller is enrolled in is used.
    Forums whose course module is hidden from the caller are left out, as
    are course modules without a forum record and forum records without a
    course module.

    Args:
        db: Database session
        requester_id: ID of the user making the request
        params: {"courseids"?: [int]}

    Returns:
        List of forums, each with its course module id
    """
    params = validate_parameters(GET_FORUMS_BY_COURSES_PARAMETERS, params)
    user = get_caller(db, requester_id)

    courseids = params["courseids"] or enrol_get_my_courses(db, user)

    resolver = ContextResolver(db, user)
    engine = AccessDecisionEngine(db, user)
    forums_out: Dict[int, Dict[str, Any]] = {}

    for courseid in courseids:
        resolver.resolve_course(courseid)

        forums = {f.id: f for f in db.query(Forum).filter(Forum.course_id == courseid).all()}
        if not forums:
            continue

        instances = CourseModInfo(db, user, courseid).get_instances_of("forum")
        for forumid, cm in instances.items():
            if not cm.uservisible or forumid not in forums:
                continue
            forum = forums[forumid]
            modcontext = resolver.module(cm.id)
            engine.enforce(ForumReadPolicy(forum, cm), modcontext, "get_forums_by_courses")

            entry = {key: getattr(forum, key) for key in FORUM_FIELDS}
            entry["course"] = forum.course_id
            entry["intro"], entry["introformat"] = format_text(
                forum.intro, forum.introformat, modcontext.id, "mod_forum", "intro", 0
            )
            entry["cmid"] = cm.id
            forums_out[forum.id] = entry

    logger.debug("get_forums_by_courses: user %s got %d forums", user.id, len(forums_out))
    return list(forums_out.values())


def get_forum_discussions(db: Session, requester_id: int, params: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    List the discussions of some forums with reply and unread statistics.

    Args:
        db: Database session
        requester_id: ID of the user making the request
        params: {"forumids": [int]}

    Returns:
        List of discussions. "numunread" is None unless the caller tracks
        the forum; "lastpost" is the first post when there are no replies.

    Raises:
        NotFoundError: A forum, its course module, a first/last post or an
            author does not exist
        ContextError: A forum's course cannot be entered
        AccessDenied: A forum is hidden or not readable by the caller
    """
    params = validate_parameters(GET_FORUM_DISCUSSIONS_PARAMETERS, params)
    user = get_caller(db, requester_id)

    modules = ForumModuleResolver(db, user)
    engine = AccessDecisionEngine(db, user)
    users = UserIdentityCache(db)
    discussions_out: Dict[int, Dict[str, Any]] = {}

    for forumid in params["forumids"]:
        forum = modules.get_forum(forumid)
        cm, modcontext = modules.resolve(forum)
        engine.enforce(ForumReadPolicy(forum, cm), modcontext, "get_forum_discussions")

        canviewfullname = engine.has_capability(SITE_VIEWFULLNAMES, modcontext)

        tracked = can_track_forums(forum, user) and is_tracked(db, forum, user)
        unreads = get_discussions_unread(db, forum, user) if tracked else {}
        replies = count_discussion_replies(db, forum.id)

        discussions = (
            db.query(ForumDiscussion)
            .filter(ForumDiscussion.forum_id == forum.id)
            .order_by(ForumDiscussion.id)
            .all()
        )
        for discussion in discussions:
            if forum.type == "qanda":
                engine.enforce(
                    ForumReadPolicy(forum, cm, discussion.id), modcontext, "get_forum_discussions"
                )

            subject = (
                db.query(ForumPost.subject)
                .filter(ForumPost.id == discussion.firstpost)
                .scalar()
            )
            if subject is None:
                raise NotFoundError("forum_posts", discussion.firstpost)

            stats = replies.get(discussion.id)
            if stats is not None:
                numreplies, lastpostid = stats.replies, stats.lastpostid
            else:
                numreplies, lastpostid = 0, discussion.firstpost

            lastpost = db.query(ForumPost).filter(ForumPost.id == lastpostid).first()
            if lastpost is None:
                raise NotFoundError("forum_posts", lastpostid)

            entry = {
                "id": discussion.id,
                "course": discussion.course_id,
                "forum": discussion.forum_id,
                "name": discussion.name,
                "userid": discussion.user_id,
                "groupid": discussion.groupid,
                "assessed": discussion.assessed,
                "timemodified": discussion.timemodified,
                "usermodified": discussion.usermodified,
                "timestart": discussion.timestart,
                "timeend": discussion.timeend,
                "firstpost": discussion.firstpost,
                "subject": subject,
                "numreplies": numreplies,
                "numunread": unreads.get(discussion.id, 0) if tracked else None,
                "lastpost": lastpost.id,
                "lastuserid": lastpost.user_id,
            }
            entry.update(_author_fields("firstuser", users.get(discussion.user_id), canviewfullname))
            entry.update(_author_fields("lastuser", users.get(lastpost.user_id), canviewfullname))
            discussions_out[discussion.id] = entry

    logger.debug(
        "get_forum_discussions: user %s got %d discussions (%d authors looked up)",
        user.id, len(discussions_out), len(users),
    )
    return list(discussions_out.values())


def get_forum_posts(db: Session, requester_id: int, params: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    List the posts of a discussion.

    Args:
        db: Database session
        requester_id: ID of the user making the request
        params: {"discussionid": int}

    Returns:
        List of posts in creation order, messages with file URLs rewritten

    Raises:
        NotFoundError: "invaliddiscussionid", or the forum, its course
            module or a post author does not exist
        ContextError: The forum's course cannot be entered
        AccessDenied: The forum is hidden, not readable, or a Q&A forum the
            caller has not posted in without viewqandawithoutposting
    """
    params = validate_parameters(GET_FORUM_POSTS_PARAMETERS, params)
    discussionid = params["discussionid"]
    user = get_caller(db, requester_id)

    discussion = db.query(ForumDiscussion).filter(ForumDiscussion.id == discussionid).first()
    if discussion is None:
        raise NotFoundError("forum_discussions", discussionid, errorcode="invaliddiscussionid")

    modules = ForumModuleResolver(db, user)
    forum = modules.get_forum(discussion.forum_id)
    cm, modcontext = modules.resolve(forum)

    engine = AccessDecisionEngine(db, user)
    engine.enforce(ForumReadPolicy(forum, cm, discussion.id), modcontext, "get_forum_posts")
    canviewfullname = engine.has_capability(SITE_VIEWFULLNAMES, modcontext)

    users = UserIdentityCache(db)
    posts = (
        db.query(ForumPost)
        .filter(ForumPost.discussion_id == discussion.id)
        .order_by(ForumPost.created, ForumPost.id)
        .all()
    )

    posts_out = []
    for post in posts:
        author = users.get(post.user_id)
        entry = {key: getattr(post, key) for key in POST_FIELDS}
        entry["discussion"] = post.discussion_id
        entry["userid"] = post.user_id
        entry["message"] = rewrite_pluginfile_urls(post.message, modcontext.id, "mod_forum", "post", post.id)
        entry["userfullname"] = fullname(author, canviewfullname)
        entry["userpicture"] = author.picture
        entry["userimagealt"] = author.imagealt
        posts_out.append(entry)

    logger.debug("get_forum_posts: user %s got %d posts of discussion %s", user.id, len(posts_out), discussionid)
    return posts_out
