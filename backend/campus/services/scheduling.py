"""
Scheduling and enrollment engine.

Decides whether a class session may be created or changed and whether a
student may enroll. Rules enforced:
    - a lecturer teaches a session only for a course they are assigned to
    - no two sessions of one lecturer overlap
    - no two sessions a student is enrolled in overlap
    - enrolled_count never exceeds max_capacity

Every mutating call is one transaction. The lecturer row (session
create/update) and the student row (enroll/withdraw) are locked and
version-bumped, so two concurrent writers for the same lecturer or
student cannot both pass the overlap check; the loser is retried.

Row locks are always taken in the order students (by id), class
sessions (by id), lecturer, so no two writers wait on each other in a
cycle.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import time
import logging

from sqlalchemy import select
from sqlalchemy.orm.exc import StaleDataError

from campus.core.exceptions import (
    AssignmentConflictError,
    EnrollmentConflictError,
    InvalidArgsError,
    NotFoundError,
    ScheduleConflictError,
)
from campus.models.class_session import ClassSession
from campus.models.course import Course
from campus.models.lecturer import Lecturer
from campus.models.relations import Enrollment
from campus.models.student import Student
from campus.models.user import User
from campus.services.audit import log_activity
from campus.services.capacity import (
    SeatCount,
    ensure_capacity_fits_roster,
    ensure_seat_available,
    validate_capacity_bounds,
)
from campus.services.conflicts import find_overlapping
from campus.services.integrity import ReferentialIntegrityGuard
from campus.services.store import EntityStore, PageResult
from campus.services.timeslot import DayOfWeek, TimeSlot

logger = logging.getLogger(__name__)

UPDATABLE_SESSION_FIELDS = {"start_time", "end_time", "day", "location", "max_capacity"}


@dataclass
class ClassSessionDetails:
    id: str
    course_id: str
    course_name: str
    lecturer_id: str
    lecturer_name: str
    day: DayOfWeek
    start_time: time
    end_time: time
    location: str
    max_capacity: int
    enrolled_count: int
    available_seats: int
    is_full: bool
    student_ids: list[str] = field(default_factory=list)


@dataclass
class EnrollmentResult:
    success: bool
    message: str
    student_id: str
    class_session_id: str
    student_name: str
    course_name: str
    available_seats: int


class SchedulingEngine:
    def __init__(self, store: EntityStore, *, actor: User | None = None) -> None:
        self.store = store
        self.settings = store.settings
        self.actor = actor
        self.guard = ReferentialIntegrityGuard(store, actor=actor)

    # -- class sessions -----------------------------------------------

    def create_class_session(
        self,
        *,
        course_id: str,
        lecturer_id: str,
        start_time: time,
        end_time: time,
        day: DayOfWeek | str,
        location: str,
        max_capacity: int,
    ) -> ClassSessionDetails:
        logger.info("Creating class session for course %s and lecturer %s", course_id, lecturer_id)

        def work() -> ClassSessionDetails:
            course = self.store.get(Course, course_id)
            lecturer = self.store.lock(Lecturer, lecturer_id)

            if not self.store.is_assigned(lecturer.external_id, course.external_id):
                raise AssignmentConflictError(
                    f"Lecturer {lecturer.external_id} is not assigned to course {course.external_id}",
                    details={"lecturer_id": lecturer.external_id, "course_id": course.external_id},
                )

            slot = TimeSlot(DayOfWeek.parse(day), start_time, end_time)
            capacity = validate_capacity_bounds(
                max_capacity,
                minimum=self.settings.min_session_capacity,
                maximum=self.settings.max_session_capacity,
            )
            clean_location = self._clean_location(location)

            taught = self.store.sessions_for_lecturer(lecturer.external_id)
            clashes = find_overlapping(slot, [(item.external_id, item.time_slot) for item in taught])
            if clashes:
                raise ScheduleConflictError(
                    f"Lecturer {lecturer.external_id} has a scheduling conflict at {slot}",
                    details={"lecturer_id": lecturer.external_id, "conflicting_sessions": clashes},
                )

            session = ClassSession(
                external_id=self.store.next_external_id(ClassSession),
                course_id=course.external_id,
                lecturer_id=lecturer.external_id,
                location=clean_location,
                max_capacity=capacity,
                enrolled_count=0,
            )
            session.time_slot = slot
            self.store.touch(lecturer)
            self.store.save(session)
            self._audit("class_session.created", session.external_id, {"course_id": course_id, "slot": str(slot)})
            return self._describe(session, course=course, lecturer=lecturer)

        details = self.store.run_atomic("class session creation", work)
        logger.info("Class session created successfully with external ID: %s", details.id)
        return details

    def update_class_session(self, class_session_id: str, **changes) -> ClassSessionDetails:
        """
        Partial update; fields passed as None are treated as omitted.

        A changed time slot is re-validated against the lecturer's other
        sessions and against every enrolled student's other sessions. The
        student check is O(enrolled students x sessions per student), which
        is bounded by max_capacity and fine at seminar-room scale.
        """
        unknown = sorted(set(changes) - UPDATABLE_SESSION_FIELDS)
        if unknown:
            raise InvalidArgsError(f"Unknown class session fields: {', '.join(unknown)}")
        supplied = {key: value for key, value in changes.items() if value is not None}
        logger.info("Updating class session %s with fields %s", class_session_id, sorted(supplied))

        retimed = bool(supplied.keys() & {"start_time", "end_time", "day"})

        def work() -> ClassSessionDetails:
            students = self._lock_roster(class_session_id) if retimed else []
            session = self.store.lock(ClassSession, class_session_id)

            new_slot: TimeSlot | None = None
            if retimed:
                roster = sorted(self.store.student_ids_for_session(session.external_id))
                if roster != [item.external_id for item in students]:
                    raise StaleDataError(f"Roster of class session {session.external_id} changed while locking")
                candidate = session.time_slot.merge(
                    day=DayOfWeek.parse(supplied["day"]) if "day" in supplied else None,
                    start=supplied.get("start_time"),
                    end=supplied.get("end_time"),
                )
                if candidate != session.time_slot:
                    self._ensure_lecturer_free(session, candidate)
                    self._ensure_students_free(session, students, candidate)
                    new_slot = candidate

            new_capacity: int | None = None
            if "max_capacity" in supplied:
                new_capacity = validate_capacity_bounds(
                    supplied["max_capacity"],
                    minimum=self.settings.min_session_capacity,
                    maximum=self.settings.max_session_capacity,
                )
                ensure_capacity_fits_roster(session, new_capacity)

            new_location = self._clean_location(supplied["location"]) if "location" in supplied else None

            # Nothing is applied until every check above has passed.
            if new_slot is not None:
                session.time_slot = new_slot
            if new_capacity is not None:
                session.max_capacity = new_capacity
            if new_location is not None:
                session.location = new_location
            self.store.save(session)
            self._audit("class_session.updated", session.external_id, {"fields": sorted(supplied)})
            return self._describe(session)

        details = self.store.run_atomic("class session update", work)
        logger.info("Class session with external ID: %s updated successfully", class_session_id)
        return details

    def delete_class_session(self, class_session_id: str) -> None:
        self.guard.delete_class_session(class_session_id)

    def get_class_session(self, class_session_id: str) -> ClassSessionDetails:
        return self._describe(self.store.get(ClassSession, class_session_id))

    def list_class_sessions(self, *, page: int = 0, size: int | None = None, sort_by: str = "external_id") -> PageResult:
        result = self.store.page(select(ClassSession), model=ClassSession, page=page, size=size, sort_by=sort_by)
        return self._describe_page(result)

    def list_by_course(self, course_id: str, *, page: int = 0, size: int | None = None) -> PageResult:
        course = self.store.get(Course, course_id)
        statement = select(ClassSession).where(ClassSession.course_id == course.external_id)
        return self._describe_page(
            self.store.page(statement, model=ClassSession, page=page, size=size, sort_by="start_time")
        )

    def list_by_lecturer(self, lecturer_id: str, *, page: int = 0, size: int | None = None) -> PageResult:
        lecturer = self.store.get(Lecturer, lecturer_id)
        statement = select(ClassSession).where(ClassSession.lecturer_id == lecturer.external_id)
        return self._describe_page(
            self.store.page(statement, model=ClassSession, page=page, size=size, sort_by="start_time")
        )

    def list_by_student(self, student_id: str, *, page: int = 0, size: int | None = None) -> PageResult:
        student = self.store.get(Student, student_id)
        statement = (
            select(ClassSession)
            .join(Enrollment, Enrollment.class_session_id == ClassSession.external_id)
            .where(Enrollment.student_id == student.external_id)
        )
        return self._describe_page(
            self.store.page(statement, model=ClassSession, page=page, size=size, sort_by="start_time")
        )

    def list_by_day(self, day: DayOfWeek | str, *, page: int = 0, size: int | None = None) -> PageResult:
        statement = select(ClassSession).where(ClassSession.day == DayOfWeek.parse(day))
        return self._describe_page(
            self.store.page(statement, model=ClassSession, page=page, size=size, sort_by="start_time")
        )

    def class_session_count(self) -> int:
        return self.store.count(ClassSession)

    # -- capacity -----------------------------------------------------

    def available_seats(self, class_session_id: str) -> int:
        return SeatCount.of(self.store.get(ClassSession, class_session_id)).available_seats

    def has_available_seats(self, class_session_id: str) -> bool:
        return not SeatCount.of(self.store.get(ClassSession, class_session_id)).is_full

    # -- enrollment ---------------------------------------------------

    def enroll(self, student_id: str, class_session_id: str) -> EnrollmentResult:
        logger.info("Enrolling student %s in class session %s", student_id, class_session_id)

        def work() -> EnrollmentResult:
            student = self.store.lock(Student, student_id)
            session = self.store.lock(ClassSession, class_session_id)

            ensure_seat_available(session)

            # Duplicate first, so re-enrolling is not reported as a self-overlap.
            if self.store.is_enrolled(student.external_id, session.external_id):
                raise EnrollmentConflictError(
                    f"Student {student.external_id} is already enrolled in class session {session.external_id}",
                    details={"student_id": student.external_id, "class_session_id": session.external_id},
                )

            current = self.store.sessions_for_student(student.external_id)
            clashes = find_overlapping(session.time_slot, [(item.external_id, item.time_slot) for item in current])
            if clashes:
                raise EnrollmentConflictError(
                    f"Class session {session.external_id} overlaps the timetable of student {student.external_id}",
                    details={
                        "student_id": student.external_id,
                        "class_session_id": session.external_id,
                        "conflicting_sessions": clashes,
                    },
                )

            self.store.save(Enrollment(student_id=student.external_id, class_session_id=session.external_id))
            session.enrolled_count += 1
            self.store.touch(student)
            self.store.save(session)
            self._audit("enrollment.created", session.external_id, {"student_id": student.external_id})

            course = self.store.get(Course, session.course_id)
            return EnrollmentResult(
                success=True,
                message="Enrollment successful",
                student_id=student.external_id,
                class_session_id=session.external_id,
                student_name=student.name,
                course_name=course.name,
                available_seats=SeatCount.of(session).available_seats,
            )

        result = self.store.run_atomic("enrollment", work)
        logger.info("Student %s enrolled successfully in class session %s", student_id, class_session_id)
        return result

    def withdraw(self, student_id: str, class_session_id: str) -> EnrollmentResult:
        logger.info("Withdrawing student %s from class session %s", student_id, class_session_id)

        def work() -> EnrollmentResult:
            student = self.store.lock(Student, student_id)
            session = self.store.lock(ClassSession, class_session_id)
            enrollment = self.store.find_enrollment(student.external_id, session.external_id)
            if enrollment is None:
                raise NotFoundError(
                    "Enrollment",
                    f"{student.external_id}/{session.external_id}",
                    message=f"Student {student.external_id} is not enrolled in class session {session.external_id}",
                )
            self.store.delete(enrollment)
            session.enrolled_count -= 1
            self.store.touch(student)
            self.store.save(session)
            self._audit("enrollment.withdrawn", session.external_id, {"student_id": student.external_id})

            course = self.store.get(Course, session.course_id)
            return EnrollmentResult(
                success=True,
                message="Withdrawal successful",
                student_id=student.external_id,
                class_session_id=session.external_id,
                student_name=student.name,
                course_name=course.name,
                available_seats=SeatCount.of(session).available_seats,
            )

        return self.store.run_atomic("withdrawal", work)

    # -- helpers ------------------------------------------------------

    def _ensure_lecturer_free(self, session: ClassSession, candidate: TimeSlot) -> None:
        lecturer = self.store.lock(Lecturer, session.lecturer_id)
        others = [
            (item.external_id, item.time_slot)
            for item in self.store.sessions_for_lecturer(lecturer.external_id)
            if item.external_id != session.external_id
        ]
        clashes = find_overlapping(candidate, others)
        if clashes:
            raise ScheduleConflictError(
                f"Time slot change conflicts with the schedule of lecturer {lecturer.external_id}",
                details={"lecturer_id": lecturer.external_id, "conflicting_sessions": clashes},
            )
        self.store.touch(lecturer)

    def _lock_roster(self, class_session_id: str) -> list[Student]:
        # Students are locked before their class session, in id order, the
        # same order enroll, withdraw and student deletion use.
        student_ids = sorted(self.store.student_ids_for_session(class_session_id))
        return [self.store.lock(Student, student_id) for student_id in student_ids]

    def _ensure_students_free(self, session: ClassSession, students: list[Student], candidate: TimeSlot) -> None:
        affected: dict[str, list[str]] = {}
        for student in students:
            student_id = student.external_id
            others = [
                (item.external_id, item.time_slot)
                for item in self.store.sessions_for_student(student_id)
                if item.external_id != session.external_id
            ]
            clashes = find_overlapping(candidate, others)
            if clashes:
                affected[student_id] = clashes
        if affected:
            raise ScheduleConflictError(
                "Time slot change creates conflicts for enrolled students",
                details={"class_session_id": session.external_id, "students": affected},
            )
        for student in students:
            self.store.touch(student)

    @staticmethod
    def _clean_location(location: str) -> str:
        cleaned = (location or "").strip()
        if not cleaned:
            raise InvalidArgsError("Location is required")
        return cleaned

    def _describe(
        self,
        session: ClassSession,
        *,
        course: Course | None = None,
        lecturer: Lecturer | None = None,
    ) -> ClassSessionDetails:
        course = course or self.store.get(Course, session.course_id)
        lecturer = lecturer or self.store.get(Lecturer, session.lecturer_id)
        seats = SeatCount.of(session)
        return ClassSessionDetails(
            id=session.external_id,
            course_id=course.external_id,
            course_name=course.name,
            lecturer_id=lecturer.external_id,
            lecturer_name=lecturer.name,
            day=session.day,
            start_time=session.start_time,
            end_time=session.end_time,
            location=session.location,
            max_capacity=session.max_capacity,
            enrolled_count=session.enrolled_count,
            available_seats=seats.available_seats,
            is_full=seats.is_full,
            student_ids=self.store.student_ids_for_session(session.external_id),
        )

    def _describe_page(self, result: PageResult) -> PageResult:
        return PageResult(
            items=[self._describe(item) for item in result.items],
            page=result.page,
            size=result.size,
            total=result.total,
        )

    def _audit(self, action: str, entity_id: str, details: dict | None = None) -> None:
        log_activity(
            self.store.db,
            user=self.actor,
            action=action,
            entity_type="class_session",
            entity_id=entity_id,
            details=details,
        )
