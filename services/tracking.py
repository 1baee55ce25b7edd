"""
Forum read tracking and reply statistics.
"""
import time
from typing import Dict, NamedTuple

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from config.settings import settings
from database import Forum, ForumDiscussion, ForumPost, ForumRead, ForumTrackPref, User

TRACKING_OFF = 0
TRACKING_OPTIONAL = 1
TRACKING_FORCED = 2


class ReplyStats(NamedTuple):
    replies: int
    lastpostid: int


def can_track_forums(forum: Forum, user: User) -> bool:
    """Whether read tracking is available to the user in this forum at all."""
    if not settings.forum_trackreadposts:
        return False
    forced = settings.forum_allowforcedreadtracking and forum.trackingtype == TRACKING_FORCED
    allows = forum.trackingtype == TRACKING_OPTIONAL
    return forced or (allows and bool(user.trackforums))


def is_tracked(db: Session, forum: Forum, user: User) -> bool:
    """Whether the user currently tracks this forum."""
    if settings.forum_allowforcedreadtracking and forum.trackingtype == TRACKING_FORCED:
        return True
    if forum.trackingtype != TRACKING_OPTIONAL or not user.trackforums:
        return False
    untracked = (
        db.query(ForumTrackPref.id)
        .filter(ForumTrackPref.user_id == user.id)
        .filter(ForumTrackPref.forum_id == forum.id)
        .first()
    )
    return untracked is None


def get_discussions_unread(db: Session, forum: Forum, user: User) -> Dict[int, int]:
    """
    Count unread posts per discussion.

    Posts older than forum_oldpostdays always count as read. Discussions
    without unread posts are absent from the result.
    """
    cutoff = int(time.time()) - settings.forum_oldpostdays * 24 * 3600
    rows = (
        db.query(ForumPost.discussion_id, func.count(ForumPost.id))
        .join(ForumDiscussion, ForumPost.discussion_id == ForumDiscussion.id)
        .outerjoin(ForumRead, and_(ForumRead.post_id == ForumPost.id, ForumRead.user_id == user.id))
        .filter(ForumDiscussion.forum_id == forum.id)
        .filter(ForumPost.modified >= cutoff)
        .filter(ForumRead.id.is_(None))
        .group_by(ForumPost.discussion_id)
        .all()
    )
    return {discussion_id: count for discussion_id, count in rows}


def count_discussion_replies(db: Session, forum_id: int) -> Dict[int, ReplyStats]:
    """
    Count replies (posts other than the first) per discussion of a forum,
    with the id of the latest reply.
    """
    rows = (
        db.query(ForumPost.discussion_id, func.count(ForumPost.id), func.max(ForumPost.id))
        .join(ForumDiscussion, ForumPost.discussion_id == ForumDiscussion.id)
        .filter(ForumDiscussion.forum_id == forum_id)
        .filter(ForumPost.parent > 0)
        .group_by(ForumPost.discussion_id)
        .all()
    )
    return {
        discussion_id: ReplyStats(replies=count, lastpostid=lastpostid)
        for discussion_id, count, lastpostid in rows
    }
