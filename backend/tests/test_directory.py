from datetime import datetime, timezone

import pytest

from campus.core.exceptions import AssignmentConflictError, ConflictError, InvalidArgsError, NotFoundError
from campus.services.directory import lecturer_email_local_part, student_email_local_part


def test_generated_email_local_parts():
    assert lecturer_email_local_part("Grace Brewster Hopper") == "grace.hopper"
    assert student_email_local_part("Sanad Ahmad Jarrad", 2024) == "sajarrad24"
    assert student_email_local_part("Ada Lovelace", 2005) == "aalovelace05"

    with pytest.raises(InvalidArgsError):
        lecturer_email_local_part("  ")


def test_duplicate_names_get_numbered_emails(catalog):
    department = catalog.department()

    first = catalog.lecturer(department.id, name="Grace Hopper")
    second = catalog.lecturer(department.id, name="Grace Hopper")
    student = catalog.student(department.id, name="Ada Lovelace", enrollment_year=2023)
    twin = catalog.student(department.id, name="Ada Lovelace", enrollment_year=2023)

    assert first.email == "grace.hopper@university.edu"
    assert second.email == "grace.hopper2@university.edu"
    assert student.email == "aalovelace23@university.edu"
    assert twin.email == "aalovelace232@university.edu"


def test_enrollment_year_bounds(catalog):
    department = catalog.department()
    current_year = datetime.now(timezone.utc).year

    catalog.student(department.id, enrollment_year=2000)
    catalog.student(department.id, name="Alan Turing", enrollment_year=current_year)
    with pytest.raises(InvalidArgsError):
        catalog.student(department.id, enrollment_year=1999)
    with pytest.raises(InvalidArgsError):
        catalog.student(department.id, enrollment_year=current_year + 1)


def test_creation_requires_department(directory):
    with pytest.raises(NotFoundError, match="Department with id DEP404 not found"):
        directory.create_course(name="Algorithms", code="CS101", department_id="DEP404")
    with pytest.raises(NotFoundError):
        directory.create_student(name="Ada Lovelace", phone="0781234567", department_id="DEP404", enrollment_year=2020)


def test_codes_are_unique(directory):
    department = directory.create_department(name="Computer Science", code="cs")
    assert department.code == "CS"

    with pytest.raises(ConflictError):
        directory.create_department(name="Cognitive Science", code="CS")

    directory.create_course(name="Algorithms", code="CS101", department_id=department.id)
    with pytest.raises(ConflictError):
        directory.create_course(name="Data Structures", code="cs101", department_id=department.id)


def test_assign_and_unassign_course(catalog, directory, scheduler):
    department = catalog.department()
    course = catalog.course(department.id)
    lecturer = catalog.lecturer(department.id)

    result = directory.assign_course(lecturer.id, course.id)
    assert result.success
    assert result.course_name == "Algorithms"
    assert directory.get_lecturer(lecturer.id).course_ids == [course.id]
    assert directory.get_course(course.id).lecturer_ids == [lecturer.id]

    with pytest.raises(AssignmentConflictError, match="already assigned"):
        directory.assign_course(lecturer.id, course.id)

    session = catalog.session(course.id, lecturer.id)
    with pytest.raises(AssignmentConflictError, match="still teaches"):
        directory.unassign_course(lecturer.id, course.id)

    scheduler.delete_class_session(session.id)
    directory.unassign_course(lecturer.id, course.id)
    assert directory.get_lecturer(lecturer.id).course_ids == []

    with pytest.raises(NotFoundError, match="not assigned"):
        directory.unassign_course(lecturer.id, course.id)


def test_updates_apply_only_supplied_fields(catalog, directory):
    department = catalog.department()
    course = catalog.course(department.id)
    student = catalog.student(department.id)

    updated = directory.update_student(student.id, phone="0770000000")
    assert updated.phone == "0770000000"
    assert updated.name == student.name
    assert updated.email == student.email

    renamed = directory.update_course(course.id, name="Advanced Algorithms")
    assert renamed.code == course.code
    assert renamed.name == "Advanced Algorithms"

    dept = directory.update_department(department.id, name="Informatics")
    assert dept.name == "Informatics"
    assert dept.student_count == 1
    assert dept.course_count == 1


def test_listings_and_lookups(catalog, directory, scheduler):
    cs = catalog.department()
    maths = catalog.department(name="Mathematics")
    course = catalog.course(cs.id)
    lecturer = catalog.lecturer(cs.id, courses=[course.id])
    ada = catalog.student(cs.id, name="Ada Lovelace")
    catalog.student(maths.id, name="Emmy Noether")
    session = catalog.session(course.id, lecturer.id)
    scheduler.enroll(ada.id, session.id)

    assert directory.list_students().total == 2
    assert [item.id for item in directory.list_students_by_department(cs.id).items] == [ada.id]
    assert [item.id for item in directory.list_students_by_class_session(session.id).items] == [ada.id]
    assert directory.list_lecturers_by_department(maths.id).total == 0
    assert directory.list_courses_by_department(cs.id).items[0].class_session_ids == [session.id]
    assert directory.get_student_by_name("emmy noether").department_name == "Mathematics"
    assert directory.search_student("love").id == ada.id
    assert directory.get_student(ada.id).class_session_ids == [session.id]
    assert directory.student_count() == 2
