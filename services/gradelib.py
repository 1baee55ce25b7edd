"""
Gradebook access.

grade_get_grades() reads the grade items of an activity (and optionally the
grades of some users); grade_update() creates, changes or deletes an
activity's grade item and writes raw student grades. Writes only flush the
session: committing or rolling back is up to the caller.
"""
import logging
import time
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from database import Grade, GradeItem, Scale

logger = logging.getLogger(__name__)


class GradeUpdateResult(IntEnum):
    """Status codes returned by grade_update()."""
    OK = 0
    FAILED = 1
    MULTIPLE = 2
    DELETEFAILED = 3
    ITEMLOCKED = 4


class GradeType(IntEnum):
    NONE = 0
    VALUE = 1
    SCALE = 2
    TEXT = 3


ITEM_DETAIL_FIELDS = (
    "itemname", "idnumber", "gradetype", "grademax", "grademin",
    "scaleid", "multfactor", "plusfactor", "hidden",
)


def _format_grade(item: GradeItem, value: Optional[float]) -> Tuple[str, str]:
    """Short and long string renderings of a grade."""
    if value is None:
        return "-", "-"
    if item.gradetype == GradeType.SCALE and item.scale is not None:
        scale_items = item.scale.items()
        index = int(round(value)) - 1
        label = scale_items[index] if 0 <= index < len(scale_items) else "-"
        return label, label
    str_grade = f"{value:.2f}"
    return str_grade, f"{str_grade} / {item.grademax:.2f}"


def _grade_info(item: GradeItem, userid: int, grade: Optional[Grade]) -> Dict[str, Any]:
    if grade is None:
        return {
            "userid": userid,
            "grade": None,
            "locked": bool(item.locked),
            "hidden": bool(item.hidden),
            "overridden": False,
            "feedback": None,
            "feedbackformat": 0,
            "usermodified": None,
            "datesubmitted": None,
            "dategraded": None,
            "str_grade": "-",
            "str_long_grade": "-",
            "str_feedback": "",
        }

    str_grade, str_long_grade = _format_grade(item, grade.finalgrade)
    return {
        "userid": userid,
        "grade": grade.finalgrade,
        "locked": bool(item.locked or grade.locked),
        "hidden": bool(item.hidden or grade.hidden),
        "overridden": bool(grade.overridden),
        "feedback": grade.feedback,
        "feedbackformat": grade.feedbackformat,
        "usermodified": grade.usermodified,
        "datesubmitted": grade.timecreated,
        "dategraded": grade.timemodified,
        "str_grade": str_grade,
        "str_long_grade": str_long_grade,
        "str_feedback": grade.feedback or "",
    }


def _fetch_items(db: Session, course_id: int, itemtype: str, itemmodule: str, iteminstance: int,
                 itemnumber: Optional[int] = None) -> List[GradeItem]:
    query = (
        db.query(GradeItem)
        .filter(GradeItem.course_id == course_id)
        .filter(GradeItem.itemtype == itemtype)
        .filter(GradeItem.itemmodule == itemmodule)
        .filter(GradeItem.iteminstance == iteminstance)
    )
    if itemnumber is not None:
        query = query.filter(GradeItem.itemnumber == itemnumber)
    return query.order_by(GradeItem.itemnumber, GradeItem.id).all()


def grade_get_grades(
    db: Session,
    course_id: int,
    itemtype: str,
    itemmodule: str,
    iteminstance: int,
    userids: Optional[List[int]] = None,
) -> Dict[str, Dict[int, Dict[str, Any]]]:
    """
    Get the grade items and outcomes of an activity.

    Args:
        db: Database session
        course_id: Course the activity belongs to
        itemtype: Usually "mod"
        itemmodule: Activity type, e.g. "assign"
        iteminstance: Activity instance id
        userids: Users whose grades are wanted (None for item details only)

    Returns:
        {"items": {itemnumber: item}, "outcomes": {itemnumber: outcome}},
        where each item's "grades" maps user id to grade info
    """
    result = {"items": {}, "outcomes": {}}

    for item in _fetch_items(db, course_id, itemtype, itemmodule, iteminstance):
        grades = {}
        if userids:
            existing = {
                g.user_id: g
                for g in db.query(Grade)
                .filter(Grade.itemid == item.id)
                .filter(Grade.user_id.in_(userids))
                .all()
            }
            for userid in userids:
                grades[userid] = _grade_info(item, userid, existing.get(userid))

        info = {
            "itemnumber": item.itemnumber,
            "scaleid": item.scaleid or 0,
            "name": item.itemname,
            "locked": bool(item.locked),
            "hidden": bool(item.hidden),
            "grades": grades,
        }
        if item.outcomeid is not None:
            result["outcomes"][item.itemnumber] = info
        else:
            info.update(
                grademin=item.grademin,
                grademax=item.grademax,
                gradepass=item.gradepass,
            )
            result["items"][item.itemnumber] = info

    return result


def _apply_item_details(item: GradeItem, itemdetails: Dict[str, Any]) -> None:
    details = dict(itemdetails)
    # Bounds come from the scale when one is set
    if details.get("scaleid"):
        details.pop("grademin", None)
        details.pop("grademax", None)
    for key in ITEM_DETAIL_FIELDS:
        if key in details:
            value = details[key]
            if key == "idnumber" and value is not None:
                value = str(value)
            setattr(item, key, value)


def _bounded(item: GradeItem, rawgrade: Optional[float]) -> Optional[float]:
    if rawgrade is None:
        return None
    if item.gradetype == GradeType.SCALE and item.scale is not None:
        return float(min(max(round(rawgrade), 1), len(item.scale.items())))
    value = rawgrade * item.multfactor + item.plusfactor
    return min(max(value, item.grademin), item.grademax)


def _update_raw_grade(db: Session, item: GradeItem, entry: Dict[str, Any],
                      usermodified: Optional[int]) -> bool:
    grade = (
        db.query(Grade)
        .filter(Grade.itemid == item.id)
        .filter(Grade.user_id == entry["userid"])
        .first()
    )
    now = int(time.time())
    if grade is None:
        grade = Grade(itemid=item.id, user_id=entry["userid"], timecreated=now)
        db.add(grade)
    elif grade.locked:
        logger.info("Grade of user %s on item %s is locked", entry["userid"], item.id)
        return False

    grade.rawgrade = entry.get("rawgrade")
    if not grade.overridden:
        grade.finalgrade = _bounded(item, grade.rawgrade)
    if "feedback" in entry:
        grade.feedback = entry["feedback"]
    grade.usermodified = usermodified
    grade.timemodified = now
    return True


def grade_update(
    db: Session,
    source: str,
    course_id: int,
    itemtype: str,
    itemmodule: str,
    iteminstance: int,
    itemnumber: int,
    grades: Optional[List[Dict[str, Any]]] = None,
    itemdetails: Optional[Dict[str, Any]] = None,
    usermodified: Optional[int] = None,
) -> GradeUpdateResult:
    """
    Submit a grade item change and/or student grades.

    Args:
        db: Database session
        source: Who is making the update, for logging
        course_id, itemtype, itemmodule, iteminstance, itemnumber: Identify the item
        grades: Entries with "userid", "rawgrade" and optionally "feedback"
        itemdetails: Item fields to set; "deleted" removes the item
        usermodified: Id of the user performing the update

    Returns:
        A GradeUpdateResult
    """
    items = _fetch_items(db, course_id, itemtype, itemmodule, iteminstance, itemnumber)
    if len(items) > 1:
        logger.warning("Found more than one grade item for %s %s/%s", itemmodule, iteminstance, itemnumber)
        return GradeUpdateResult.MULTIPLE
    item = items[0] if items else None

    if itemdetails and itemdetails.get("deleted"):
        if item is not None:
            if item.locked:
                return GradeUpdateResult.DELETEFAILED
            db.delete(item)
            db.flush()
            logger.info("Grade item %s deleted by %s", item.id, source)
        return GradeUpdateResult.OK

    if itemdetails and itemdetails.get("scaleid"):
        if db.query(Scale).filter(Scale.id == itemdetails["scaleid"]).first() is None:
            logger.info("Unknown scale %s in update from %s", itemdetails["scaleid"], source)
            return GradeUpdateResult.FAILED

    if item is None:
        if itemdetails and itemdetails.get("gradetype") == GradeType.NONE:
            # No grade item needed
            return GradeUpdateResult.OK
        item = GradeItem(
            course_id=course_id,
            itemtype=itemtype,
            itemmodule=itemmodule,
            iteminstance=iteminstance,
            itemnumber=itemnumber,
        )
        if itemdetails:
            _apply_item_details(item, itemdetails)
        db.add(item)
        db.flush()
    else:
        if item.locked:
            return GradeUpdateResult.ITEMLOCKED
        if itemdetails:
            _apply_item_details(item, itemdetails)
            db.flush()
            db.expire(item, ["scale"])

    if item.gradetype == GradeType.NONE and item.outcomeid is None:
        return GradeUpdateResult.OK
    if not grades:
        return GradeUpdateResult.OK

    failed = False
    for entry in grades:
        if not _update_raw_grade(db, item, entry, usermodified):
            failed = True
    db.flush()

    return GradeUpdateResult.FAILED if failed else GradeUpdateResult.OK
