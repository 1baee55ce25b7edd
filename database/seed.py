"""
Seed data script for the Course Web Services.
Creates a small demo site for testing and demonstration.
"""
import time
from typing import Dict

from sqlalchemy.orm import Session

from database import (
    get_db_context, init_db, Base,
    User, Course, Enrolment, CourseModule, Assign, Forum,
    ForumDiscussion, ForumPost, ForumRead, Scale, GradeItem, Grade,
)
from services.capabilities import (
    COURSE_VIEWHIDDENACTIVITIES,
    FORUM_VIEWDISCUSSION,
    FORUM_VIEWQANDAWITHOUTPOSTING,
    GRADE_EDIT,
    GRADE_HIDE,
    GRADE_MANAGE,
    GRADE_VIEW,
    GRADE_VIEWALL,
    SITE_VIEWFULLNAMES,
    grant_capability,
)
from services.context import ContextLevel, SYSTEM_INSTANCE_ID, create_context

TEACHER_CAPABILITIES = (
    GRADE_VIEWALL, GRADE_MANAGE, GRADE_HIDE, GRADE_EDIT,
    FORUM_VIEWDISCUSSION, FORUM_VIEWQANDAWITHOUTPOSTING,
    SITE_VIEWFULLNAMES, COURSE_VIEWHIDDENACTIVITIES,
)
STUDENT_CAPABILITIES = (GRADE_VIEW, FORUM_VIEWDISCUSSION)


def _add_post(db: Session, discussion: ForumDiscussion, user: User, subject: str, message: str,
              created: int, parent: int = 0) -> ForumPost:
    post = ForumPost(
        discussion_id=discussion.id,
        parent=parent,
        user_id=user.id,
        created=created,
        modified=created,
        subject=subject,
        message=message,
    )
    db.add(post)
    db.flush()
    return post


def _add_discussion(db: Session, forum: Forum, user: User, subject: str, message: str,
                    created: int) -> ForumDiscussion:
    discussion = ForumDiscussion(
        course_id=forum.course_id,
        forum_id=forum.id,
        name=subject,
        user_id=user.id,
        timemodified=created,
        usermodified=user.id,
    )
    db.add(discussion)
    db.flush()
    first = _add_post(db, discussion, user, subject, message, created)
    discussion.firstpost = first.id
    db.flush()
    return discussion


def build_demo_site(db: Session) -> Dict[str, int]:
    """
    Create the demo site in an empty database.

    One visible course with an assignment and three forums (general, Q&A and
    a hidden one), plus a hidden course. Users: a site admin, a teacher, two
    students, a parent holding grade:viewall over the first student, and an
    outsider enrolled nowhere.

    Returns:
        Ids of the created records, by name
    """
    now = int(time.time())
    system = create_context(db, ContextLevel.SYSTEM, SYSTEM_INSTANCE_ID)

    # Users
    admin = User(username="admin", firstname="Site", lastname="Admin", email="admin@example.com",
                 is_siteadmin=True)
    teacher = User(username="teacher", firstname="Maria", lastname="Silva", email="maria@example.com",
                   picture=11, imagealt="Maria at her desk")
    student1 = User(username="student1", firstname="Ana", lastname="Costa", email="ana@example.com",
                    trackforums=True)
    student2 = User(username="student2", firstname="Pedro", lastname="Almeida", email="pedro@example.com")
    parent = User(username="parent", firstname="Rita", lastname="Costa", email="rita@example.com")
    outsider = User(username="outsider", firstname="Otto", lastname="Berg", email="otto@example.com")
    users = [admin, teacher, student1, student2, parent, outsider]
    db.add_all(users)
    db.flush()
    user_contexts = {u.id: create_context(db, ContextLevel.USER, u.id, system) for u in users}

    # Courses
    course = Course(fullname="Biology 101", shortname="BIO101")
    hidden_course = Course(fullname="Biology 201", shortname="BIO201", visible=False)
    db.add_all([course, hidden_course])
    db.flush()
    coursecontext = create_context(db, ContextLevel.COURSE, course.id, system)
    create_context(db, ContextLevel.COURSE, hidden_course.id, system)

    for user in (teacher, student1, student2, parent):
        db.add(Enrolment(user_id=user.id, course_id=course.id))
    db.add(Enrolment(user_id=student1.id, course_id=hidden_course.id))
    db.flush()

    for capability in TEACHER_CAPABILITIES:
        grant_capability(db, teacher.id, coursecontext, capability)
    for student in (student1, student2):
        for capability in STUDENT_CAPABILITIES:
            grant_capability(db, student.id, coursecontext, capability)
    grant_capability(db, parent.id, user_contexts[student1.id], GRADE_VIEWALL)

    # Assignment with a grade item and an outcome
    assign = Assign(course_id=course.id, name="Cell structure essay")
    db.add(assign)
    db.flush()
    assign_cm = CourseModule(course_id=course.id, module="assign", instance=assign.id)
    db.add(assign_cm)
    db.flush()
    create_context(db, ContextLevel.MODULE, assign_cm.id, coursecontext)

    scale = Scale(name="Competence", scale="Not yet competent, Competent, Highly competent")
    db.add(scale)
    db.flush()

    item = GradeItem(course_id=course.id, itemtype="mod", itemmodule="assign", iteminstance=assign.id,
                     itemnumber=0, itemname="Cell structure essay", grademax=100.0, gradepass=50.0)
    outcome = GradeItem(course_id=course.id, itemtype="mod", itemmodule="assign", iteminstance=assign.id,
                        itemnumber=1000, itemname="Scientific writing", gradetype=2, scaleid=scale.id,
                        grademin=1.0, grademax=3.0, outcomeid=1)
    db.add_all([item, outcome])
    db.flush()
    db.add_all([
        Grade(itemid=item.id, user_id=student1.id, rawgrade=72.5, finalgrade=72.5,
              feedback="Well structured", feedbackformat=1, usermodified=teacher.id,
              timecreated=now - 86400, timemodified=now - 3600),
        Grade(itemid=item.id, user_id=student2.id, rawgrade=55.0, finalgrade=55.0,
              usermodified=teacher.id, timecreated=now - 86400, timemodified=now - 3600),
        Grade(itemid=outcome.id, user_id=student1.id, rawgrade=2.0, finalgrade=2.0,
              usermodified=teacher.id, timecreated=now - 86400, timemodified=now - 3600),
    ])
    db.flush()

    # Forums
    general = Forum(course_id=course.id, type="general", name="General discussion",
                    intro='<p>Say hello <img src="@@PLUGINFILE@@/wave.png"></p>')
    qanda = Forum(course_id=course.id, type="qanda", name="Questions",
                  intro="Post your answer to see the others")
    staff = Forum(course_id=course.id, type="general", name="Staff room", intro="")
    db.add_all([general, qanda, staff])
    db.flush()

    forum_cms = {}
    for forum, visible in ((general, True), (qanda, True), (staff, False)):
        cm = CourseModule(course_id=course.id, module="forum", instance=forum.id, visible=visible)
        db.add(cm)
        db.flush()
        create_context(db, ContextLevel.MODULE, cm.id, coursecontext)
        forum_cms[forum.id] = cm

    welcome = _add_discussion(db, general, teacher, "Welcome",
                              'Read the <a href="@@PLUGINFILE@@/syllabus.pdf">syllabus</a>', now - 5 * 3600)
    reply1 = _add_post(db, welcome, student1, "Re: Welcome", "Thanks!", now - 4 * 3600,
                       parent=welcome.firstpost)
    reply2 = _add_post(db, welcome, student2, "Re: Welcome", "Looking forward to it", now - 3 * 3600,
                       parent=reply1.id)
    lab = _add_discussion(db, general, student2, "Lab partners", "Anyone free on Tuesday?", now - 2 * 3600)
    question = _add_discussion(db, qanda, teacher, "What is osmosis?", "Explain in your own words.",
                               now - 3600)
    answer = _add_post(db, question, student1, "Re: What is osmosis?", "Water moving across a membrane",
                       now - 1800, parent=question.firstpost)
    staff_discussion = _add_discussion(db, staff, teacher, "Exam dates", "Draft attached", now - 600)

    # Ana has read the welcome post
    db.add(ForumRead(user_id=student1.id, forum_id=general.id, discussion_id=welcome.id,
                     post_id=welcome.firstpost))
    db.flush()

    return {
        "system_context": system.id,
        "admin": admin.id,
        "teacher": teacher.id,
        "student1": student1.id,
        "student2": student2.id,
        "parent": parent.id,
        "outsider": outsider.id,
        "course": course.id,
        "course_context": coursecontext.id,
        "hidden_course": hidden_course.id,
        "assign": assign.id,
        "assign_cm": assign_cm.id,
        "grade_item": item.id,
        "outcome_item": outcome.id,
        "scale": scale.id,
        "general_forum": general.id,
        "general_cm": forum_cms[general.id].id,
        "qanda_forum": qanda.id,
        "qanda_cm": forum_cms[qanda.id].id,
        "staff_forum": staff.id,
        "staff_cm": forum_cms[staff.id].id,
        "welcome_discussion": welcome.id,
        "welcome_post": welcome.firstpost,
        "welcome_reply1": reply1.id,
        "welcome_reply2": reply2.id,
        "lab_discussion": lab.id,
        "lab_post": lab.firstpost,
        "question_discussion": question.id,
        "question_answer": answer.id,
        "staff_discussion": staff_discussion.id,
    }


def seed_database():
    """Populate database with sample data."""

    with get_db_context() as db:
        # Clear existing data
        for table in reversed(Base.metadata.sorted_tables):
            db.execute(table.delete())

        site = build_demo_site(db)
        db.commit()

        print("Database seeded successfully!")
        print("\nReference IDs:")
        for name, record_id in site.items():
            print(f"  {name}: {record_id}")


if __name__ == "__main__":
    print("Initializing database...")
    init_db()
    print("Seeding database...")
    seed_database()
