"""Database module."""
from .models import (
    Base,
    User,
    Course,
    Enrolment,
    Context,
    CapabilityGrant,
    CourseModule,
    Assign,
    Forum,
    ForumDiscussion,
    ForumPost,
    ForumRead,
    ForumTrackPref,
    Scale,
    GradeItem,
    Grade,
)
from .connection import engine, SessionLocal, get_db, get_db_context, init_db

__all__ = [
    "Base",
    "User",
    "Course",
    "Enrolment",
    "Context",
    "CapabilityGrant",
    "CourseModule",
    "Assign",
    "Forum",
    "ForumDiscussion",
    "ForumPost",
    "ForumRead",
    "ForumTrackPref",
    "Scale",
    "GradeItem",
    "Grade",
    "engine",
    "SessionLocal",
    "get_db",
    "get_db_context",
    "init_db",
]
