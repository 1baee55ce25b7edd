"""
Database models for the Course Web Services.
Defines the SQLAlchemy models backing users, courses, capabilities,
forums and the gradebook. Timestamps are stored as unix seconds.
"""
import time

from sqlalchemy import (
    Column, Integer, String, Float, Boolean, Text, ForeignKey,
    UniqueConstraint
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


def _now() -> int:
    return int(time.time())


class User(Base):
    """
    Users table.

    Attributes:
        id: Unique identifier
        firstname, lastname: Name parts used to build display names
        email: Contact address shown next to forum posts
        picture: Avatar file id (0 when no picture was uploaded)
        imagealt: Alternative text for the avatar
        trackforums: User preference for forum read tracking
        is_siteadmin: Site administrators hold every capability
        deleted: Soft-delete flag
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), nullable=False, unique=True)
    firstname = Column(String(100), nullable=False)
    lastname = Column(String(100), nullable=False)
    email = Column(String(100), nullable=False, default="")
    picture = Column(Integer, nullable=False, default=0)
    imagealt = Column(String(255), nullable=True)
    trackforums = Column(Boolean, nullable=False, default=False)
    is_siteadmin = Column(Boolean, nullable=False, default=False)
    deleted = Column(Boolean, nullable=False, default=False)

    enrolments = relationship("Enrolment", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, username='{self.username}')>"


class Course(Base):
    """
    Courses table.

    Attributes:
        visible: Hidden courses can only be entered with viewhiddencourses
        showgrades: Whether students (and parents) may see their grades
    """
    __tablename__ = "courses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    fullname = Column(String(255), nullable=False)
    shortname = Column(String(100), nullable=False, unique=True)
    visible = Column(Boolean, nullable=False, default=True)
    showgrades = Column(Boolean, nullable=False, default=True)

    enrolments = relationship("Enrolment", back_populates="course")
    modules = relationship("CourseModule", back_populates="course")

    def __repr__(self):
        return f"<Course(id={self.id}, shortname='{self.shortname}')>"


class Enrolment(Base):
    """Association table linking users to the courses they are enrolled in."""
    __tablename__ = "enrolments"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), primary_key=True)
    timecreated = Column(Integer, nullable=False, default=_now)

    user = relationship("User", back_populates="enrolments")
    course = relationship("Course", back_populates="enrolments")

    def __repr__(self):
        return f"<Enrolment(user_id={self.user_id}, course_id={self.course_id})>"


class Context(Base):
    """
    Security contexts.

    Every scope (system, user, course, module) capabilities are evaluated
    in has exactly one row. `path` lists the ids from the system context
    down to this one, e.g. "/1/3/12".
    """
    __tablename__ = "contexts"
    __table_args__ = (UniqueConstraint("contextlevel", "instanceid", name="uq_context_instance"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    contextlevel = Column(Integer, nullable=False)
    instanceid = Column(Integer, nullable=False)
    path = Column(String(255), nullable=False, default="")

    def __repr__(self):
        return f"<Context(id={self.id}, level={self.contextlevel}, instance={self.instanceid})>"


class CapabilityGrant(Base):
    """A capability allowed to a user in a context and every context below it."""
    __tablename__ = "capability_grants"
    __table_args__ = (UniqueConstraint("user_id", "context_id", "capability", name="uq_capability_grant"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    context_id = Column(Integer, ForeignKey("contexts.id", ondelete="CASCADE"), nullable=False)
    capability = Column(String(255), nullable=False)

    def __repr__(self):
        return f"<CapabilityGrant(user_id={self.user_id}, context_id={self.context_id}, capability='{self.capability}')>"


class CourseModule(Base):
    """
    Course modules: the structural entry placing an activity instance in a course.

    Attributes:
        module: Activity type, e.g. "forum" or "assign"
        instance: Id of the activity record in its own table
        visible: Hidden modules are only shown with viewhiddenactivities
    """
    __tablename__ = "course_modules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    module = Column(String(50), nullable=False)
    instance = Column(Integer, nullable=False)
    visible = Column(Boolean, nullable=False, default=True)

    course = relationship("Course", back_populates="modules")

    def __repr__(self):
        return f"<CourseModule(id={self.id}, module='{self.module}', instance={self.instance})>"


class Assign(Base):
    """Assignment activity records."""
    __tablename__ = "assign"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    timemodified = Column(Integer, nullable=False, default=_now)


class Forum(Base):
    """Forum activity records."""
    __tablename__ = "forums"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(20), nullable=False, default="general")
    name = Column(String(255), nullable=False)
    intro = Column(Text, nullable=False, default="")
    introformat = Column(Integer, nullable=False, default=1)
    assessed = Column(Integer, nullable=False, default=0)
    assesstimestart = Column(Integer, nullable=False, default=0)
    assesstimefinish = Column(Integer, nullable=False, default=0)
    scale = Column(Integer, nullable=False, default=0)
    maxbytes = Column(Integer, nullable=False, default=0)
    maxattachments = Column(Integer, nullable=False, default=1)
    forcesubscribe = Column(Integer, nullable=False, default=0)
    trackingtype = Column(Integer, nullable=False, default=1)
    rsstype = Column(Integer, nullable=False, default=0)
    rssarticles = Column(Integer, nullable=False, default=0)
    timemodified = Column(Integer, nullable=False, default=_now)
    warnafter = Column(Integer, nullable=False, default=0)
    blockafter = Column(Integer, nullable=False, default=0)
    blockperiod = Column(Integer, nullable=False, default=0)
    completiondiscussions = Column(Integer, nullable=False, default=0)
    completionreplies = Column(Integer, nullable=False, default=0)
    completionposts = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<Forum(id={self.id}, name='{self.name}', type='{self.type}')>"


class ForumDiscussion(Base):
    """Forum discussions. `firstpost` is the post that opened the discussion."""
    __tablename__ = "forum_discussions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    forum_id = Column(Integer, ForeignKey("forums.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    firstpost = Column(Integer, nullable=False, default=0)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    groupid = Column(Integer, nullable=False, default=-1)
    assessed = Column(Integer, nullable=False, default=1)
    timemodified = Column(Integer, nullable=False, default=_now)
    usermodified = Column(Integer, nullable=False, default=0)
    timestart = Column(Integer, nullable=False, default=0)
    timeend = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<ForumDiscussion(id={self.id}, forum_id={self.forum_id})>"


class ForumPost(Base):
    """Forum posts. `parent` is 0 for the post opening a discussion."""
    __tablename__ = "forum_posts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    discussion_id = Column(Integer, ForeignKey("forum_discussions.id", ondelete="CASCADE"), nullable=False)
    parent = Column(Integer, nullable=False, default=0)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    created = Column(Integer, nullable=False, default=_now)
    modified = Column(Integer, nullable=False, default=_now)
    mailed = Column(Integer, nullable=False, default=0)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False, default="")
    messageformat = Column(Integer, nullable=False, default=1)
    messagetrust = Column(Integer, nullable=False, default=0)
    attachment = Column(String(100), nullable=False, default="")
    totalscore = Column(Integer, nullable=False, default=0)
    mailnow = Column(Integer, nullable=False, default=0)

    def __repr__(self):
        return f"<ForumPost(id={self.id}, discussion_id={self.discussion_id}, parent={self.parent})>"


class ForumRead(Base):
    """Posts a user has read, for forums with read tracking."""
    __tablename__ = "forum_read"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    forum_id = Column(Integer, ForeignKey("forums.id", ondelete="CASCADE"), nullable=False)
    discussion_id = Column(Integer, ForeignKey("forum_discussions.id", ondelete="CASCADE"), nullable=False)
    post_id = Column(Integer, ForeignKey("forum_posts.id", ondelete="CASCADE"), nullable=False)
    firstread = Column(Integer, nullable=False, default=_now)
    lastread = Column(Integer, nullable=False, default=_now)


class ForumTrackPref(Base):
    """Forums a user has opted out of tracking."""
    __tablename__ = "forum_track_prefs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    forum_id = Column(Integer, ForeignKey("forums.id", ondelete="CASCADE"), nullable=False)


class Scale(Base):
    """Grading scales. `scale` holds the comma separated scale items, lowest first."""
    __tablename__ = "scales"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, nullable=False, default=0)
    name = Column(String(255), nullable=False)
    scale = Column(Text, nullable=False)

    def items(self) -> list:
        return [s.strip() for s in self.scale.split(",")]


class GradeItem(Base):
    """
    Grade items.

    Outcome items carry an `outcomeid` and are reported separately from
    regular items.

    Attributes:
        gradetype: 0 none, 1 value, 2 scale, 3 text
        multfactor, plusfactor: Applied to raw grades to obtain final grades
    """
    __tablename__ = "grade_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    course_id = Column(Integer, ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    itemtype = Column(String(30), nullable=False, default="mod")
    itemmodule = Column(String(30), nullable=True)
    iteminstance = Column(Integer, nullable=True)
    itemnumber = Column(Integer, nullable=False, default=0)
    itemname = Column(String(255), nullable=True)
    idnumber = Column(String(255), nullable=True)
    gradetype = Column(Integer, nullable=False, default=1)
    grademax = Column(Float, nullable=False, default=100.0)
    grademin = Column(Float, nullable=False, default=0.0)
    gradepass = Column(Float, nullable=False, default=0.0)
    scaleid = Column(Integer, ForeignKey("scales.id"), nullable=True)
    outcomeid = Column(Integer, nullable=True)
    multfactor = Column(Float, nullable=False, default=1.0)
    plusfactor = Column(Float, nullable=False, default=0.0)
    hidden = Column(Boolean, nullable=False, default=False)
    locked = Column(Boolean, nullable=False, default=False)
    timecreated = Column(Integer, nullable=False, default=_now)
    timemodified = Column(Integer, nullable=False, default=_now, onupdate=_now)

    grades = relationship("Grade", back_populates="item", cascade="all, delete-orphan")
    scale = relationship("Scale")

    def __repr__(self):
        return f"<GradeItem(id={self.id}, itemmodule='{self.itemmodule}', iteminstance={self.iteminstance})>"


class Grade(Base):
    """
    Student grades for a grade item.

    Attributes:
        rawgrade: Grade as submitted by the activity
        finalgrade: Grade after item factors and bounds are applied
        timecreated: When the student submitted
        timemodified: When the grade was last graded
    """
    __tablename__ = "grades"
    __table_args__ = (UniqueConstraint("itemid", "user_id", name="uq_grade_user"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    itemid = Column(Integer, ForeignKey("grade_items.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rawgrade = Column(Float, nullable=True)
    finalgrade = Column(Float, nullable=True)
    feedback = Column(Text, nullable=True)
    feedbackformat = Column(Integer, nullable=False, default=0)
    usermodified = Column(Integer, nullable=True)
    locked = Column(Boolean, nullable=False, default=False)
    hidden = Column(Boolean, nullable=False, default=False)
    overridden = Column(Boolean, nullable=False, default=False)
    timecreated = Column(Integer, nullable=True)
    timemodified = Column(Integer, nullable=True)

    item = relationship("GradeItem", back_populates="grades")

    def __repr__(self):
        return f"<Grade(id={self.id}, itemid={self.itemid}, user_id={self.user_id}, finalgrade={self.finalgrade})>"
