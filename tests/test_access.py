"""
Unit tests for context resolution and access decisions.
"""
import pytest

from database import Course, Forum, User
from services import (
    AccessDecisionEngine,
    AccessDenied,
    ContextError,
    ContextLevel,
    ContextResolver,
    ForumReadPolicy,
    GradeReadPolicy,
    GradeWritePolicy,
    InvalidUserError,
    get_caller,
)
from services.capabilities import GRADE_HIDE, GRADE_MANAGE, grant_capability, has_capability
from services.modinfo import CourseModInfo


def _user(db, user_id):
    return db.query(User).filter(User.id == user_id).first()


def _course(db, course_id):
    return db.query(Course).filter(Course.id == course_id).first()


class TestCapabilities:
    """Tests for capability checks along the context path."""

    def test_course_grant_applies_to_modules(self, db, site):
        """Test that a capability granted in a course holds in its modules."""
        teacher = _user(db, site["teacher"])
        modcontext = ContextResolver(db, teacher).module(site["assign_cm"])
        assert has_capability(db, GRADE_MANAGE, modcontext, teacher)

    def test_module_grant_does_not_apply_to_course(self, db, site):
        """Test that a capability granted in a module does not leak up to the course."""
        student = _user(db, site["student2"])
        resolver = ContextResolver(db, student)
        grant_capability(db, student.id, resolver.module(site["assign_cm"]), GRADE_HIDE)
        assert not has_capability(db, GRADE_HIDE, resolver.course(site["course"]), student)

    def test_siteadmin_has_everything(self, db, site):
        """Test that site administrators hold every capability."""
        admin = _user(db, site["admin"])
        assert has_capability(db, GRADE_MANAGE, ContextResolver(db, admin).system(), admin)

    def test_deleted_user_has_nothing(self, db, site):
        """Test that deleted users hold no capability."""
        teacher = _user(db, site["teacher"])
        teacher.deleted = True
        db.flush()
        context = ContextResolver(db, teacher).course(site["course"])
        assert not has_capability(db, GRADE_MANAGE, context, teacher)

    def test_get_caller_rejects_unknown_user(self, db, site):
        """Test that an unknown caller is rejected."""
        with pytest.raises(InvalidUserError):
            get_caller(db, 9999)


class TestContextResolver:
    """Tests for ContextResolver."""

    def test_missing_context(self, db, site):
        """Test that resolving an unknown scope raises ContextError."""
        resolver = ContextResolver(db, _user(db, site["teacher"]))
        with pytest.raises(ContextError) as exc:
            resolver.course(9999)
        assert exc.value.contextlevel == ContextLevel.COURSE

    def test_enrolled_user_enters_course(self, db, site):
        """Test that an enrolled user can enter a course."""
        resolver = ContextResolver(db, _user(db, site["student1"]))
        context = resolver.resolve_course(site["course"])
        assert context.id == site["course_context"]
        assert context.path_ids[0] == site["system_context"]

    def test_outsider_cannot_enter_course(self, db, site):
        """Test that a user not enrolled in a course cannot enter it."""
        resolver = ContextResolver(db, _user(db, site["outsider"]))
        with pytest.raises(ContextError) as exc:
            resolver.resolve_course(site["course"])
        assert exc.value.errorcode == "requireloginerror"

    def test_hidden_course_needs_capability(self, db, site):
        """Test that a hidden course cannot be entered even when enrolled."""
        resolver = ContextResolver(db, _user(db, site["student1"]))
        with pytest.raises(ContextError):
            resolver.resolve_course(site["hidden_course"])

    def test_stale_module_context(self, db, site):
        """Test that a module context whose module is gone fails validation."""
        from database import CourseModule

        resolver = ContextResolver(db, _user(db, site["teacher"]))
        context = resolver.module(site["assign_cm"])
        db.query(CourseModule).filter(CourseModule.id == site["assign_cm"]).delete()
        db.flush()
        with pytest.raises(ContextError):
            resolver.validate(context)


class TestGradeReadDecision:
    """Tests for the grade reading decision tree."""

    def _decide(self, db, site, requester, userids, showgrades=True):
        course = _course(db, site["course"])
        course.showgrades = showgrades
        db.flush()
        user = _user(db, site[requester])
        context = ContextResolver(db, user).course(site["course"])
        return AccessDecisionEngine(db, user).decide(GradeReadPolicy(course, userids), context)

    def test_viewall_sees_everyone(self, db, site):
        """Test that grade:viewall allows any set of users."""
        decision = self._decide(db, site, "teacher", [site["student1"], site["student2"]])
        assert decision.allowed

    def test_student_sees_own_grade(self, db, site):
        """Test that a student may view their own grade."""
        assert self._decide(db, site, "student1", [site["student1"]]).allowed

    def test_student_cannot_see_other_grade(self, db, site):
        """Test that a student may not view another student's grade."""
        decision = self._decide(db, site, "student1", [site["student2"]])
        assert not decision.allowed
        assert decision.errorcode == "nopermissiontoviewgrades"

    def test_student_cannot_request_two_users(self, db, site):
        """Test that asking for more than one user is denied even when one is self."""
        assert not self._decide(db, site, "student1", [site["student1"], site["student2"]]).allowed

    def test_student_cannot_request_no_users(self, db, site):
        """Test that item-only reads need grade:viewall."""
        assert not self._decide(db, site, "student1", None).allowed

    def test_own_grade_needs_view_capability(self, db, site):
        """Test that viewing one's own grade needs grade:view."""
        decision = self._decide(db, site, "parent", [site["parent"]])
        assert not decision.allowed
        assert decision.errorcode == "nopermissiontoviewgrades"

    def test_showgrades_off(self, db, site):
        """Test that a student cannot view their own grade when the course hides grades."""
        assert not self._decide(db, site, "student1", [site["student1"]], showgrades=False).allowed

    def test_parent_sees_child(self, db, site):
        """Test that viewall in a user's context allows viewing that user's grades."""
        assert self._decide(db, site, "parent", [site["student1"]]).allowed

    def test_parent_cannot_see_other_child(self, db, site):
        """Test that viewall over one user does not extend to others."""
        assert not self._decide(db, site, "parent", [site["student2"]]).allowed

    def test_target_without_user_context(self, db, site):
        """Test that a target user without a context is denied, not an error."""
        assert not self._decide(db, site, "parent", [9999]).allowed


class TestGradeWriteDecision:
    """Tests for the grade writing decision tree."""

    def _decide(self, db, site, user, policy):
        context = ContextResolver(db, user).course(site["course"])
        return AccessDecisionEngine(db, user).decide(policy, context)

    def test_policy_from_payload(self):
        """Test that the policy reflects which parts of the update are present."""
        assert GradeWritePolicy.from_payload(None, {"hidden": True}) == GradeWritePolicy(False, True, False)
        assert GradeWritePolicy.from_payload([], {"itemname": "x"}) == GradeWritePolicy(True, False, True)
        assert GradeWritePolicy.from_payload(None, None) == GradeWritePolicy(False, False, False)

    def test_empty_itemdetails_is_item_edit(self):
        """Test that item details sent empty still need grade:manage."""
        assert GradeWritePolicy.from_payload(None, {}) == GradeWritePolicy(True, False, False)

    def test_hide_capability_is_enough_for_hiding(self, db, site):
        """Test that grade:hide alone allows a hide-only update."""
        student = _user(db, site["student2"])
        grant_capability(db, student.id, ContextResolver(db, student).course(site["course"]), GRADE_HIDE)
        assert self._decide(db, site, student, GradeWritePolicy(False, True, False)).allowed
        decision = self._decide(db, site, student, GradeWritePolicy(True, True, False))
        assert not decision.allowed
        assert decision.capability == GRADE_MANAGE

    def test_manage_allows_hiding(self, db, site):
        """Test that grade:manage also allows hiding."""
        student = _user(db, site["student2"])
        grant_capability(db, student.id, ContextResolver(db, student).course(site["course"]), GRADE_MANAGE)
        assert self._decide(db, site, student, GradeWritePolicy(True, True, False)).allowed

    def test_student_cannot_edit_grades(self, db, site):
        """Test that editing student grades needs grade:edit."""
        decision = self._decide(db, site, _user(db, site["student1"]), GradeWritePolicy(False, False, True))
        assert not decision.allowed
        assert decision.errorcode == "nopermissiontoeditgrades"

    def test_empty_update_allowed(self, db, site):
        """Test that an update with no optional parts needs no capability."""
        assert self._decide(db, site, _user(db, site["student1"]), GradeWritePolicy(False, False, False)).allowed


class TestForumReadDecision:
    """Tests for the forum reading decision tree."""

    def _enforce(self, db, site, requester, forum_key, discussion_key=None):
        user = _user(db, site[requester])
        forum = db.query(Forum).filter(Forum.id == site[forum_key]).first()
        cm = CourseModInfo(db, user, site["course"]).get_instances_of("forum")[forum.id]
        context = ContextResolver(db, user).module(cm.id)
        discussion_id = site[discussion_key] if discussion_key else None
        AccessDecisionEngine(db, user).enforce(ForumReadPolicy(forum, cm, discussion_id), context, "test")

    def test_student_reads_general_forum(self, db, site):
        """Test that a student with viewdiscussion can read a visible forum."""
        self._enforce(db, site, "student2", "general_forum", "welcome_discussion")

    def test_hidden_module(self, db, site):
        """Test that a hidden forum is denied to students but not to teachers."""
        with pytest.raises(AccessDenied) as exc:
            self._enforce(db, site, "student1", "staff_forum")
        assert exc.value.errorcode == "nopermissiontoshow"
        self._enforce(db, site, "teacher", "staff_forum")

    def test_qanda_requires_posting(self, db, site):
        """Test that Q&A discussions are hidden until the student has posted."""
        self._enforce(db, site, "student1", "qanda_forum", "question_discussion")
        with pytest.raises(AccessDenied):
            self._enforce(db, site, "student2", "qanda_forum", "question_discussion")

    def test_qanda_forum_level_check(self, db, site):
        """Test that the Q&A rule only applies to discussion content."""
        self._enforce(db, site, "student2", "qanda_forum")

    def test_teacher_reads_qanda_without_posting(self, db, site):
        """Test that viewqandawithoutposting skips the posting rule."""
        self._enforce(db, site, "teacher", "qanda_forum", "question_discussion")

    def test_missing_viewdiscussion(self, db, site):
        """Test that a parent without viewdiscussion cannot read a forum."""
        with pytest.raises(AccessDenied) as exc:
            self._enforce(db, site, "parent", "general_forum")
        assert exc.value.capability == "mod/forum:viewdiscussion"
