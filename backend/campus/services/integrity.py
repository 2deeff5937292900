"""
Deletion rules for catalog entities.

Department, course, lecturer and class session deletions are refused while
dependents exist. Student deletion never blocks: the student is first
removed from every roster it is on. A course is blocked by any class
session at all, while a class session is blocked only by enrolled
students.
"""

from __future__ import annotations

import logging

from campus.core.exceptions import DeleteConflictError
from campus.models.class_session import ClassSession
from campus.models.course import Course
from campus.models.department import Department
from campus.models.lecturer import Lecturer
from campus.models.relations import CourseAssignment, Enrollment
from campus.models.student import Student
from campus.models.user import User
from campus.services.audit import log_activity
from campus.services.store import EntityStore

logger = logging.getLogger(__name__)


class ReferentialIntegrityGuard:
    def __init__(self, store: EntityStore, *, actor: User | None = None) -> None:
        self.store = store
        self.actor = actor

    def delete_department(self, department_id: str) -> None:
        def work() -> None:
            department = self.store.get(Department, department_id)
            dependents = {
                "students": self.store.count(Student, Student.department_id == department.external_id),
                "lecturers": self.store.count(Lecturer, Lecturer.department_id == department.external_id),
                "courses": self.store.count(Course, Course.department_id == department.external_id),
            }
            if any(dependents.values()):
                raise DeleteConflictError(
                    "Department",
                    department.external_id,
                    "Cannot delete department with associated students, lecturers, or courses",
                )
            self.store.delete(department)
            self._audit("department", department.external_id)

        self.store.run_atomic("department deletion", work)
        logger.info("Department with external ID: %s deleted successfully", department_id)

    def delete_course(self, course_id: str) -> None:
        def work() -> None:
            course = self.store.get(Course, course_id)
            if self.store.count(ClassSession, ClassSession.course_id == course.external_id):
                raise DeleteConflictError(
                    "Course",
                    course.external_id,
                    "Cannot delete course with associated class sessions",
                )
            self.store.delete_assignments(CourseAssignment.course_id == course.external_id)
            self.store.delete(course)
            self._audit("course", course.external_id)

        self.store.run_atomic("course deletion", work)
        logger.info("Course with external ID: %s deleted successfully", course_id)

    def delete_lecturer(self, lecturer_id: str) -> None:
        def work() -> None:
            lecturer = self.store.lock(Lecturer, lecturer_id)
            if self.store.count(ClassSession, ClassSession.lecturer_id == lecturer.external_id):
                raise DeleteConflictError(
                    "Lecturer",
                    lecturer.external_id,
                    "Cannot delete lecturer assigned to class sessions",
                )
            self.store.delete_assignments(CourseAssignment.lecturer_id == lecturer.external_id)
            self.store.delete(lecturer)
            self._audit("lecturer", lecturer.external_id)

        self.store.run_atomic("lecturer deletion", work)
        logger.info("Lecturer with external ID: %s deleted successfully", lecturer_id)

    def delete_class_session(self, class_session_id: str) -> None:
        def work() -> None:
            session = self.store.lock(ClassSession, class_session_id)
            if self.store.count(Enrollment, Enrollment.class_session_id == session.external_id):
                raise DeleteConflictError(
                    "Class session",
                    session.external_id,
                    "Cannot delete class session with enrolled students",
                )
            self.store.delete(session)
            self._audit("class_session", session.external_id)

        self.store.run_atomic("class session deletion", work)
        logger.info("Class session with external ID: %s deleted successfully", class_session_id)

    def delete_student(self, student_id: str) -> None:
        """Remove the student from every roster, then delete it."""

        def work() -> None:
            student = self.store.lock(Student, student_id)
            for enrollment in self.store.enrollments_for_student(student.external_id):
                session = self.store.lock(ClassSession, enrollment.class_session_id)
                self.store.delete(enrollment)
                session.enrolled_count -= 1
                self.store.save(session)
            self.store.delete(student)
            self._audit("student", student.external_id)

        self.store.run_atomic("student deletion", work)
        logger.info("Student with external ID: %s deleted successfully", student_id)

    def _audit(self, entity_type: str, entity_id: str) -> None:
        log_activity(
            self.store.db,
            user=self.actor,
            action=f"{entity_type}.deleted",
            entity_type=entity_type,
            entity_id=entity_id,
        )
