"""
Unit tests for the grade functions.
"""
import pytest

from database import Grade, GradeItem
from services import (
    AccessDenied,
    ContextError,
    GradeUpdateResult,
    InvalidUserError,
    NotFoundError,
    ValidationError,
    get_grades,
    update_grade,
)
from services.activities import normalize_component
from services.gradelib import grade_get_grades


def _grade(db, site, student):
    return (
        db.query(Grade)
        .filter(Grade.itemid == site["grade_item"])
        .filter(Grade.user_id == site[student])
        .first()
    )


class TestGetGrades:
    """Tests for get_grades()."""

    def _params(self, site, **extra):
        params = {"courseid": site["course"], "component": "mod_assign", "cmid": site["assign_cm"]}
        params.update(extra)
        return params

    def test_teacher_gets_all_grades(self, db, site):
        """Test that a teacher gets every requested student's grade."""
        result = get_grades(db, site["teacher"], self._params(
            site, userids=[site["student1"], site["student2"]]
        ))
        assert len(result["items"]) == 1
        item = result["items"][0]
        assert item["name"] == "Cell structure essay"
        assert item["grademax"] == 100.0
        assert [g["grade"] for g in item["grades"]] == [72.5, 55.0]

    def test_grade_strings(self, db, site):
        """Test the formatted grade strings."""
        result = get_grades(db, site["teacher"], self._params(site, userids=[site["student1"]]))
        grade = result["items"][0]["grades"][0]
        assert grade["userid"] == site["student1"]
        assert grade["str_grade"] == "72.50"
        assert grade["str_long_grade"] == "72.50 / 100.00"
        assert grade["str_feedback"] == "Well structured"

    def test_outcomes_reported_separately(self, db, site):
        """Test that outcome items are returned as outcomes with scale labels."""
        result = get_grades(db, site["teacher"], self._params(site, userids=[site["student1"]]))
        assert len(result["outcomes"]) == 1
        outcome = result["outcomes"][0]
        assert outcome["itemnumber"] == 1000
        assert outcome["scaleid"] == site["scale"]
        assert outcome["grades"][0]["str_grade"] == "Competent"
        assert "grademax" not in outcome

    def test_item_details_only(self, db, site):
        """Test that without user ids only item details are returned."""
        result = get_grades(db, site["teacher"], self._params(site))
        assert result["items"][0]["grades"] == []

    def test_missing_grade(self, db, site):
        """Test that a student without a grade gets an empty entry."""
        result = get_grades(db, site["teacher"], self._params(site, userids=[site["outsider"]]))
        grade = result["items"][0]["grades"][0]
        assert grade["grade"] is None
        assert grade["str_grade"] == "-"

    def test_student_gets_own_grade(self, db, site):
        """Test that a student can read their own grade."""
        result = get_grades(db, site["student2"], self._params(site, userids=[site["student2"]]))
        assert result["items"][0]["grades"][0]["grade"] == 55.0

    def test_student_cannot_get_other_grade(self, db, site):
        """Test that a student cannot read another student's grade."""
        with pytest.raises(AccessDenied) as exc:
            get_grades(db, site["student2"], self._params(site, userids=[site["student1"]]))
        assert exc.value.errorcode == "nopermissiontoviewgrades"

    def test_parent_gets_child_grade(self, db, site):
        """Test that a parent with viewall over a student can read their grade."""
        result = get_grades(db, site["parent"], self._params(site, userids=[site["student1"]]))
        assert result["items"][0]["grades"][0]["grade"] == 72.5

    def test_outsider_course_context(self, db, site):
        """Test that a caller who cannot enter the course gets a context error."""
        with pytest.raises(ContextError) as exc:
            get_grades(db, site["outsider"], self._params(site, userids=[site["outsider"]]))
        assert exc.value.errorcode == "errorcoursecontextnotvalid"

    def test_unknown_course(self, db, site):
        """Test that an unknown course gives a context error."""
        with pytest.raises(ContextError):
            get_grades(db, site["teacher"], self._params(site, courseid=9999))

    def test_wrong_module_type(self, db, site):
        """Test that a course module of another type is rejected."""
        with pytest.raises(NotFoundError) as exc:
            get_grades(db, site["teacher"], self._params(site, cmid=site["general_cm"]))
        assert exc.value.errorcode == "invalidcoursemodule"

    def test_unknown_caller(self, db, site):
        """Test that an unknown caller is rejected before anything else."""
        with pytest.raises(InvalidUserError):
            get_grades(db, 9999, self._params(site))

    def test_invalid_params(self, db, site):
        """Test that malformed params are rejected."""
        with pytest.raises(ValidationError):
            get_grades(db, site["teacher"], {"courseid": site["course"]})


class TestUpdateGrade:
    """Tests for update_grade()."""

    def _params(self, site, **extra):
        params = {
            "source": "test",
            "courseid": site["course"],
            "component": "mod_assign",
            "cmid": site["assign_cm"],
            "itemnumber": 0,
        }
        params.update(extra)
        return params

    def test_teacher_updates_grades(self, db, site):
        """Test that a teacher can write student grades."""
        result = update_grade(db, site["teacher"], self._params(site, grades=[
            {"studentid": site["student1"], "grade": 88.0, "feedback": "Much better"},
        ]))
        assert result == {"result": GradeUpdateResult.OK}
        grade = _grade(db, site, "student1")
        assert grade.finalgrade == 88.0
        assert grade.feedback == "Much better"
        assert grade.usermodified == site["teacher"]

    def test_new_grade_created(self, db, site):
        """Test that grading a student without a grade creates one."""
        update_grade(db, site["teacher"], self._params(site, grades=[
            {"studentid": site["parent"], "grade": 40.0},
        ]))
        assert _grade(db, site, "parent").rawgrade == 40.0

    def test_grade_bounded_by_item(self, db, site):
        """Test that final grades are kept within the item bounds."""
        update_grade(db, site["teacher"], self._params(site, grades=[
            {"studentid": site["student1"], "grade": 140.0},
        ]))
        grade = _grade(db, site, "student1")
        assert grade.rawgrade == 140.0
        assert grade.finalgrade == 100.0

    def test_duplicate_students_last_wins(self, db, site):
        """Test that the last entry for a student is the one applied."""
        update_grade(db, site["teacher"], self._params(site, grades=[
            {"studentid": site["student1"], "grade": 10.0},
            {"studentid": site["student1"], "grade": 20.0},
        ]))
        assert _grade(db, site, "student1").finalgrade == 20.0

    def test_clear_grade(self, db, site):
        """Test that a null grade clears the student's grade."""
        update_grade(db, site["teacher"], self._params(site, grades=[
            {"studentid": site["student2"], "grade": None},
        ]))
        assert _grade(db, site, "student2").finalgrade is None

    def test_student_cannot_update(self, db, site):
        """Test that a student cannot write grades and nothing changes."""
        with pytest.raises(AccessDenied) as exc:
            update_grade(db, site["student1"], self._params(site, grades=[
                {"studentid": site["student1"], "grade": 100.0},
            ]))
        assert exc.value.capability == "moodle/grade:edit"
        assert _grade(db, site, "student1").finalgrade == 72.5

    def test_student_cannot_send_empty_itemdetails(self, db, site):
        """Test that empty item details are checked as an item edit and create nothing."""
        with pytest.raises(AccessDenied) as exc:
            update_grade(db, site["student1"], self._params(site, itemnumber=5, itemdetails={}))
        assert exc.value.capability == "moodle/grade:manage"
        assert db.query(GradeItem).filter(GradeItem.itemnumber == 5).count() == 0

    def test_locked_grade_rolls_back_everything(self, db, site):
        """Test that one locked grade fails the whole update."""
        locked = _grade(db, site, "student2")
        locked.locked = True
        db.commit()

        result = update_grade(db, site["teacher"], self._params(site, grades=[
            {"studentid": site["student1"], "grade": 99.0},
            {"studentid": site["student2"], "grade": 99.0},
        ]))
        assert result == {"result": GradeUpdateResult.FAILED}
        assert _grade(db, site, "student1").finalgrade == 72.5
        assert _grade(db, site, "student2").finalgrade == 55.0

    def test_locked_item(self, db, site):
        """Test that a locked grade item is reported and left unchanged."""
        item = db.query(GradeItem).filter(GradeItem.id == site["grade_item"]).first()
        item.locked = True
        db.commit()

        result = update_grade(db, site["teacher"], self._params(site, itemdetails={"itemname": "Renamed"}))
        assert result == {"result": GradeUpdateResult.ITEMLOCKED}
        db.refresh(item)
        assert item.itemname == "Cell structure essay"

    def test_update_item_details(self, db, site):
        """Test that item settings are written."""
        update_grade(db, site["teacher"], self._params(site, itemdetails={
            "itemname": "Essay (final)", "grademax": 50.0, "idnumber": "essay-1",
        }))
        item = db.query(GradeItem).filter(GradeItem.id == site["grade_item"]).first()
        assert item.itemname == "Essay (final)"
        assert item.grademax == 50.0
        assert item.idnumber == "essay-1"

    def test_unknown_scale(self, db, site):
        """Test that an unknown scale fails the update."""
        result = update_grade(db, site["teacher"], self._params(site, itemdetails={"scaleid": 9999}))
        assert result == {"result": GradeUpdateResult.FAILED}

    def test_delete_item(self, db, site):
        """Test that a grade item can be deleted along with its grades."""
        result = update_grade(db, site["teacher"], self._params(site, itemdetails={"deleted": True}))
        assert result == {"result": GradeUpdateResult.OK}
        assert db.query(GradeItem).filter(GradeItem.id == site["grade_item"]).first() is None
        assert db.query(Grade).filter(Grade.itemid == site["grade_item"]).count() == 0

    def test_new_item_number(self, db, site):
        """Test that an update for a new item number creates the item."""
        update_grade(db, site["teacher"], self._params(
            site, itemnumber=1, itemdetails={"itemname": "Peer review", "grademax": 10.0},
            grades=[{"studentid": site["student1"], "grade": 8.0}],
        ))
        result = grade_get_grades(db, site["course"], "mod", "assign", site["assign"], [site["student1"]])
        assert result["items"][1]["name"] == "Peer review"
        assert result["items"][1]["grades"][site["student1"]]["grade"] == 8.0

    def test_wrong_course(self, db, site):
        """Test that a course module of another course is rejected."""
        with pytest.raises(NotFoundError) as exc:
            update_grade(db, site["admin"], self._params(site, courseid=site["hidden_course"], grades=[]))
        assert exc.value.errorcode == "invalidcoursemodule"


class TestNormalizeComponent:
    """Tests for component name handling."""

    def test_frankenstyle(self):
        """Test that a full component name is split into type and name."""
        assert normalize_component("mod_assign") == ("mod", "assign")

    def test_bare_module_name(self):
        """Test that a bare name is taken as an activity module."""
        assert normalize_component("forum") == ("mod", "forum")
