"""
Pydantic schemas for API requests and responses.
"""
from typing import Optional, List, Any, Dict
from pydantic import BaseModel, Field


# Request schemas
class ServiceCallRequest(BaseModel):
    """Request to call an external function."""
    requester_id: int = Field(..., description="ID of the calling user")
    params: Dict[str, Any] = Field(default_factory=dict, description="Function parameters")


# Response schemas
class ItemGradeResponse(BaseModel):
    """A student's grade for a grade item."""
    userid: int
    grade: Optional[float] = Field(None, description="Student grade")
    locked: bool
    hidden: bool
    overridden: bool
    feedback: Optional[str] = Field(None, description="Feedback from the grader")
    feedbackformat: int
    usermodified: Optional[int] = Field(None, description="The ID of the last user to modify this grade")
    datesubmitted: Optional[int] = Field(None, description="When the student submitted the activity")
    dategraded: Optional[int] = Field(None, description="When the grade was last graded")
    str_grade: str
    str_long_grade: str
    str_feedback: str


class GradeItemResponse(BaseModel):
    """A grade item with its grades."""
    itemnumber: int = Field(..., description="Will be 0 unless the module has multiple grades")
    scaleid: int = Field(..., description="The ID of the custom scale or 0")
    name: Optional[str]
    grademin: float
    grademax: float
    gradepass: float
    locked: bool
    hidden: bool
    grades: List[ItemGradeResponse]


class OutcomeGradeResponse(BaseModel):
    """A student's grade for an outcome."""
    userid: int
    grade: Optional[float] = None
    locked: bool
    hidden: bool
    feedback: Optional[str] = None
    feedbackformat: int
    usermodified: Optional[int] = None
    str_grade: str
    str_feedback: str


class OutcomeResponse(BaseModel):
    """An outcome with its grades."""
    itemnumber: int
    scaleid: int
    name: Optional[str]
    locked: bool
    hidden: bool
    grades: List[OutcomeGradeResponse]


class GradesResponse(BaseModel):
    """get_grades response."""
    items: List[GradeItemResponse]
    outcomes: List[OutcomeResponse]


class UpdateGradeResponse(BaseModel):
    """update_grade response."""
    result: int = Field(..., description="A GRADE_UPDATE_* status code")


class ForumResponse(BaseModel):
    """A forum with its course module id."""
    id: int
    course: int
    type: str
    name: str
    intro: str
    introformat: int
    assessed: int
    assesstimestart: int
    assesstimefinish: int
    scale: int
    maxbytes: int
    maxattachments: int
    forcesubscribe: int
    trackingtype: int
    rsstype: int
    rssarticles: int
    timemodified: int
    warnafter: int
    blockafter: int
    blockperiod: int
    completiondiscussions: int
    completionreplies: int
    completionposts: int
    cmid: int


class DiscussionResponse(BaseModel):
    """A discussion with its first and last post summary."""
    id: int
    course: int
    forum: int
    name: str
    userid: int
    groupid: int
    assessed: int
    timemodified: int
    usermodified: int
    timestart: int
    timeend: int
    firstpost: int
    firstuserfullname: str
    firstuserimagealt: Optional[str]
    firstuserpicture: int
    firstuseremail: str
    subject: str
    numreplies: int
    numunread: Optional[int] = Field(None, description="Unread posts, null if tracking is not available")
    lastpost: int
    lastuserid: int
    lastuserfullname: str
    lastuserimagealt: Optional[str]
    lastuserpicture: int
    lastuseremail: str


class PostResponse(BaseModel):
    """A forum post."""
    id: int
    discussion: int
    parent: int
    userid: int
    created: int
    modified: int
    mailed: int
    subject: str
    message: str
    messageformat: int
    messagetrust: int
    attachment: str
    totalscore: int
    mailnow: int
    userfullname: str
    userpicture: int
    userimagealt: Optional[str]


class FunctionResponse(BaseModel):
    """An available external function."""
    name: str
    description: str
    type: str
    capabilities: List[str]


class ErrorDetail(BaseModel):
    """Error raised by an external function."""
    exception: str
    errorcode: str
    message: str


class ErrorResponse(BaseModel):
    """Error response."""
    detail: ErrorDetail
