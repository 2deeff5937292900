from datetime import time

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from conftest import Catalog

from campus.core.exceptions import (
    AssignmentConflictError,
    CapacityConflictError,
    EnrollmentConflictError,
    InvalidArgsError,
    NotFoundError,
    ScheduleConflictError,
)
from campus.db.base import Base
from campus.models.activity_log import ActivityLog
from campus.models.class_session import ClassSession
from campus.models.lecturer import Lecturer
from campus.models.student import Student
from campus.services.directory import DirectoryService
from campus.services.scheduling import SchedulingEngine
from campus.services.store import EntityStore
from campus.services.timeslot import DayOfWeek


@pytest.fixture()
def setup(catalog):
    department = catalog.department()
    course = catalog.course(department.id)
    lecturer = catalog.lecturer(department.id, courses=[course.id])
    return department, course, lecturer


def test_section_scenario(catalog, scheduler, setup):
    department, course, lecturer = setup
    s1 = catalog.session(course.id, lecturer.id, day="Monday", start=(9, 0), end=(10, 30), capacity=2)
    assert s1.id == "CL101"
    assert s1.available_seats == 2

    with pytest.raises(ScheduleConflictError):
        catalog.session(course.id, lecturer.id, day="Monday", start=(10, 0), end=(11, 0))
    assert scheduler.class_session_count() == 1

    ada = catalog.student(department.id, name="Ada Lovelace")
    alan = catalog.student(department.id, name="Alan Turing")
    barbara = catalog.student(department.id, name="Barbara Liskov")

    result = scheduler.enroll(ada.id, s1.id)
    assert result.success
    assert result.student_name == "Ada Lovelace"
    assert result.course_name == "Algorithms"
    assert result.available_seats == 1
    assert scheduler.available_seats(s1.id) == 1

    with pytest.raises(EnrollmentConflictError, match="already enrolled"):
        scheduler.enroll(ada.id, s1.id)
    assert scheduler.available_seats(s1.id) == 1
    assert scheduler.get_class_session(s1.id).enrolled_count == 1

    assert scheduler.enroll(alan.id, s1.id).available_seats == 0
    details = scheduler.get_class_session(s1.id)
    assert details.is_full
    assert not scheduler.has_available_seats(s1.id)
    assert details.student_ids == sorted([ada.id, alan.id])

    with pytest.raises(CapacityConflictError):
        scheduler.enroll(barbara.id, s1.id)
    assert scheduler.get_class_session(s1.id).enrolled_count == 2


def test_create_requires_existing_course_and_lecturer(catalog, setup):
    department, course, lecturer = setup

    with pytest.raises(NotFoundError, match="Course with id CRS999 not found"):
        catalog.session("CRS999", lecturer.id)
    with pytest.raises(NotFoundError, match="Lecturer with id LECT9999 not found"):
        catalog.session(course.id, "LECT9999")


def test_create_with_unassigned_lecturer_fails(catalog, scheduler, setup):
    department, course, _ = setup
    outsider = catalog.lecturer(department.id, name="Edsger Dijkstra")

    with pytest.raises(AssignmentConflictError):
        catalog.session(course.id, outsider.id)
    assert scheduler.class_session_count() == 0


def test_create_validates_slot_and_capacity(catalog, scheduler, setup):
    _, course, lecturer = setup

    with pytest.raises(InvalidArgsError):
        catalog.session(course.id, lecturer.id, start=(11, 0), end=(10, 0))
    with pytest.raises(InvalidArgsError):
        catalog.session(course.id, lecturer.id, capacity=0)
    with pytest.raises(InvalidArgsError):
        catalog.session(course.id, lecturer.id, capacity=501)
    with pytest.raises(InvalidArgsError):
        catalog.session(course.id, lecturer.id, location="   ")
    assert scheduler.class_session_count() == 0


def test_lecturer_may_teach_back_to_back_sessions(catalog, scheduler, setup):
    department, course, lecturer = setup
    catalog.session(course.id, lecturer.id, start=(9, 0), end=(10, 30))
    catalog.session(course.id, lecturer.id, start=(10, 30), end=(12, 0))
    catalog.session(course.id, lecturer.id, day="Tuesday", start=(9, 0), end=(10, 30))

    other = catalog.lecturer(department.id, name="Barbara Liskov", courses=[course.id])
    catalog.session(course.id, other.id, start=(9, 0), end=(10, 30))

    assert scheduler.class_session_count() == 4


def test_enroll_rejects_overlapping_timetable(catalog, scheduler, setup):
    department, course, lecturer = setup
    other = catalog.lecturer(department.id, name="Barbara Liskov", courses=[course.id])
    morning = catalog.session(course.id, lecturer.id, start=(9, 0), end=(10, 30))
    clashing = catalog.session(course.id, other.id, start=(10, 0), end=(11, 0))
    touching = catalog.session(course.id, other.id, start=(10, 30), end=(11, 30), location="Hall B")
    student = catalog.student(department.id)

    scheduler.enroll(student.id, morning.id)
    with pytest.raises(EnrollmentConflictError) as exc_info:
        scheduler.enroll(student.id, clashing.id)
    assert exc_info.value.details["conflicting_sessions"] == [morning.id]
    assert scheduler.get_class_session(clashing.id).enrolled_count == 0

    scheduler.enroll(student.id, touching.id)
    sessions = scheduler.list_by_student(student.id)
    assert [item.id for item in sessions.items] == [morning.id, touching.id]


def test_enroll_unknown_entities(catalog, scheduler, setup):
    department, course, lecturer = setup
    session = catalog.session(course.id, lecturer.id)
    student = catalog.student(department.id)

    with pytest.raises(NotFoundError):
        scheduler.enroll("99999", session.id)
    with pytest.raises(NotFoundError):
        scheduler.enroll(student.id, "CL999")
    with pytest.raises(NotFoundError):
        scheduler.available_seats("CL999")


def test_update_capacity_below_enrollment_mutates_nothing(catalog, scheduler, setup):
    department, course, lecturer = setup
    session = catalog.session(course.id, lecturer.id, capacity=3)
    for name in ("Ada Lovelace", "Alan Turing"):
        scheduler.enroll(catalog.student(department.id, name=name).id, session.id)

    with pytest.raises(CapacityConflictError):
        scheduler.update_class_session(session.id, max_capacity=1, location="Hall Z", day="Friday")

    unchanged = scheduler.get_class_session(session.id)
    assert unchanged.max_capacity == 3
    assert unchanged.location == "Hall A"
    assert unchanged.day is DayOfWeek.monday

    updated = scheduler.update_class_session(session.id, max_capacity=2)
    assert updated.max_capacity == 2
    assert updated.is_full


def test_update_slot_rechecks_enrolled_students(catalog, scheduler, setup):
    department, course, lecturer = setup
    other = catalog.lecturer(department.id, name="Barbara Liskov", courses=[course.id])
    first = catalog.session(course.id, lecturer.id, start=(9, 0), end=(10, 0))
    second = catalog.session(course.id, other.id, start=(11, 0), end=(12, 0))
    student = catalog.student(department.id)
    scheduler.enroll(student.id, first.id)
    scheduler.enroll(student.id, second.id)

    with pytest.raises(ScheduleConflictError, match="creates conflicts for enrolled students") as exc_info:
        scheduler.update_class_session(second.id, start_time=time(9, 30))
    assert exc_info.value.details["students"] == {student.id: [first.id]}
    assert scheduler.get_class_session(second.id).start_time == time(11, 0)

    moved = scheduler.update_class_session(second.id, start_time=time(10, 0), end_time=time(11, 30))
    assert moved.start_time == time(10, 0)
    assert moved.end_time == time(11, 30)


def test_update_slot_rechecks_lecturer(catalog, scheduler, setup):
    _, course, lecturer = setup
    catalog.session(course.id, lecturer.id, start=(9, 0), end=(10, 0))
    later = catalog.session(course.id, lecturer.id, start=(13, 0), end=(14, 0))

    with pytest.raises(ScheduleConflictError, match="lecturer"):
        scheduler.update_class_session(later.id, start_time=time(9, 30), end_time=time(10, 30))

    # Moving a session onto its own current slot is not a conflict.
    same = scheduler.update_class_session(later.id, start_time=time(13, 0))
    assert same.start_time == time(13, 0)


def test_update_rejects_bad_input(catalog, scheduler, setup):
    _, course, lecturer = setup
    session = catalog.session(course.id, lecturer.id, start=(9, 0), end=(10, 0))

    with pytest.raises(InvalidArgsError):
        scheduler.update_class_session(session.id, end_time=time(8, 0))
    with pytest.raises(InvalidArgsError):
        scheduler.update_class_session(session.id, course_id="CRS2")
    with pytest.raises(NotFoundError):
        scheduler.update_class_session("CL999", location="Hall B")

    updated = scheduler.update_class_session(session.id, location=" Hall B ", day=None, max_capacity=None)
    assert updated.location == "Hall B"
    assert updated.max_capacity == 30


def test_withdraw_frees_seat(catalog, scheduler, setup):
    department, course, lecturer = setup
    session = catalog.session(course.id, lecturer.id, capacity=1)
    student = catalog.student(department.id)
    scheduler.enroll(student.id, session.id)
    assert not scheduler.has_available_seats(session.id)

    result = scheduler.withdraw(student.id, session.id)
    assert result.available_seats == 1
    assert scheduler.get_class_session(session.id).student_ids == []

    with pytest.raises(NotFoundError, match="not enrolled"):
        scheduler.withdraw(student.id, session.id)


def test_listings_are_sorted_by_start_time(catalog, scheduler, setup):
    department, course, lecturer = setup
    late = catalog.session(course.id, lecturer.id, start=(15, 0), end=(16, 0))
    early = catalog.session(course.id, lecturer.id, start=(8, 0), end=(9, 0))
    tuesday = catalog.session(course.id, lecturer.id, day="Tuesday", start=(8, 0), end=(9, 0))

    monday = scheduler.list_by_day("monday")
    assert [item.id for item in monday.items] == [early.id, late.id]
    assert scheduler.list_by_day(DayOfWeek.tuesday).total == 1

    by_lecturer = scheduler.list_by_lecturer(lecturer.id)
    assert by_lecturer.total == 3
    assert by_lecturer.items[-1].id == late.id
    assert {item.id for item in scheduler.list_by_course(course.id).items} == {late.id, early.id, tuesday.id}

    everything = scheduler.list_class_sessions(page=0, size=2)
    assert everything.total == 3
    assert everything.pages == 2
    assert [item.id for item in everything.items] == ["CL101", "CL102"]

    with pytest.raises(InvalidArgsError):
        scheduler.list_by_day("someday")


def test_session_details_carry_names(catalog, scheduler, setup):
    _, course, lecturer = setup
    details = catalog.session(course.id, lecturer.id)

    assert details.course_name == "Algorithms"
    assert details.lecturer_name == "Grace Hopper"
    assert details.enrolled_count == 0
    assert details.student_ids == []


def test_mutations_are_audited(catalog, scheduler, store, setup):
    department, course, lecturer = setup
    session = catalog.session(course.id, lecturer.id)
    scheduler.enroll(catalog.student(department.id).id, session.id)

    actions = set(store.db.execute(select(ActivityLog.action)).scalars())
    assert {"class_session.created", "enrollment.created", "lecturer.course_assigned"} <= actions


@pytest.fixture()
def file_factory(tmp_path):
    engine = create_engine(f"sqlite+pysqlite:///{tmp_path / 'campus.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    engine.dispose()


def catalog_on(db, settings):
    store = EntityStore(db, settings)
    return Catalog(DirectoryService(store), SchedulingEngine(store))


def commit_between_read_and_write(monkeypatch, store, method, competitor):
    """Run `competitor` to completion right after `store.<method>` reads, once."""
    original = getattr(store, method)
    calls = []

    def interleaved(*args, **kwargs):
        result = original(*args, **kwargs)
        if not calls:
            calls.append(1)
            competitor()
        return result

    monkeypatch.setattr(store, method, interleaved)
    return calls


def test_racing_session_creations_for_one_lecturer_cannot_both_succeed(monkeypatch, file_factory, settings):
    with file_factory() as setup_db:
        catalog = catalog_on(setup_db, settings)
        department = catalog.department()
        course = catalog.course(department.id)
        lecturer = catalog.lecturer(department.id, courses=[course.id])

    first_db, second_db = file_factory(), file_factory()
    try:
        first_store = EntityStore(first_db, settings)
        second = SchedulingEngine(EntityStore(second_db, settings))
        slot = {
            "course_id": course.id,
            "lecturer_id": lecturer.id,
            "day": "Monday",
            "location": "Hall A",
            "max_capacity": 30,
        }

        def competitor():
            second.create_class_session(start_time=time(10, 0), end_time=time(11, 0), **slot)

        calls = commit_between_read_and_write(monkeypatch, first_store, "sessions_for_lecturer", competitor)

        with pytest.raises(ScheduleConflictError):
            SchedulingEngine(first_store).create_class_session(start_time=time(9, 0), end_time=time(10, 30), **slot)

        assert calls == [1]
        assert EntityStore(second_db, settings).count(ClassSession) == 1
    finally:
        first_db.close()
        second_db.close()


def test_racing_enrollments_for_one_student_cannot_both_succeed(monkeypatch, file_factory, settings):
    with file_factory() as setup_db:
        catalog = catalog_on(setup_db, settings)
        department = catalog.department()
        course = catalog.course(department.id)
        grace = catalog.lecturer(department.id, courses=[course.id])
        alan = catalog.lecturer(department.id, name="Alan Turing", courses=[course.id])
        morning = catalog.session(course.id, grace.id, start=(9, 0), end=(10, 30))
        clashing = catalog.session(course.id, alan.id, start=(10, 0), end=(11, 0))
        student = catalog.student(department.id)

    first_db, second_db = file_factory(), file_factory()
    try:
        first_store = EntityStore(first_db, settings)
        second = SchedulingEngine(EntityStore(second_db, settings))

        calls = commit_between_read_and_write(
            monkeypatch, first_store, "sessions_for_student", lambda: second.enroll(student.id, clashing.id)
        )

        with pytest.raises(EnrollmentConflictError):
            SchedulingEngine(first_store).enroll(student.id, morning.id)

        assert calls == [1]
        check = EntityStore(second_db, settings)
        assert [item.external_id for item in check.sessions_for_student(student.id)] == [clashing.id]
        assert check.get(ClassSession, morning.id).enrolled_count == 0
    finally:
        first_db.close()
        second_db.close()


def test_retiming_locks_students_before_the_session(monkeypatch, catalog, scheduler, store, setup):
    department, course, lecturer = setup
    session = catalog.session(course.id, lecturer.id)
    for name in ("Alan Turing", "Ada Lovelace"):
        scheduler.enroll(catalog.student(department.id, name=name).id, session.id)

    locked = []
    original = store.lock

    def recording_lock(model, external_id):
        locked.append((model, external_id))
        return original(model, external_id)

    monkeypatch.setattr(store, "lock", recording_lock)
    scheduler.update_class_session(session.id, start_time=time(8, 0))

    roster = sorted(store.student_ids_for_session(session.id))
    assert locked == [
        (Student, roster[0]),
        (Student, roster[1]),
        (ClassSession, session.id),
        (Lecturer, lecturer.id),
    ]

    locked.clear()
    scheduler.withdraw(roster[0], session.id)
    assert locked == [(Student, roster[0]), (ClassSession, session.id)]
