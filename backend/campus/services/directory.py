from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
import re
from typing import Callable

from sqlalchemy import select

from campus.core.exceptions import AssignmentConflictError, ConflictError, InvalidArgsError, NotFoundError
from campus.models.class_session import ClassSession
from campus.models.course import Course
from campus.models.department import Department
from campus.models.lecturer import Lecturer
from campus.models.relations import CourseAssignment, Enrollment
from campus.models.student import Student
from campus.models.user import User
from campus.services.audit import log_activity
from campus.services.store import EntityStore, PageResult

logger = logging.getLogger(__name__)

MIN_ENROLLMENT_YEAR = 2000


@dataclass
class DepartmentDetails:
    id: str
    name: str
    code: str
    student_count: int
    lecturer_count: int
    course_count: int


@dataclass
class CourseDetails:
    id: str
    name: str
    code: str
    department_id: str
    department_name: str
    lecturer_ids: list[str] = field(default_factory=list)
    class_session_ids: list[str] = field(default_factory=list)


@dataclass
class LecturerDetails:
    id: str
    name: str
    email: str
    phone: str
    department_id: str
    department_name: str
    course_ids: list[str] = field(default_factory=list)
    class_session_ids: list[str] = field(default_factory=list)


@dataclass
class StudentDetails:
    id: str
    name: str
    email: str
    phone: str
    department_id: str
    department_name: str
    enrollment_year: int
    class_session_ids: list[str] = field(default_factory=list)


@dataclass
class AssignmentResult:
    success: bool
    message: str
    lecturer_id: str
    course_id: str
    lecturer_name: str
    course_name: str


def _name_parts(name: str) -> list[str]:
    parts = [re.sub(r"[^a-z0-9]", "", part.lower()) for part in name.split()]
    parts = [part for part in parts if part]
    if not parts:
        raise InvalidArgsError("Name must contain at least one letter", details={"name": name})
    return parts


def lecturer_email_local_part(name: str) -> str:
    parts = _name_parts(name)
    return f"{parts[0]}.{parts[-1]}"


def student_email_local_part(name: str, enrollment_year: int) -> str:
    """First initial, middle initial (first initial again if none), last name, two-digit year."""
    parts = _name_parts(name)
    first_initial = parts[0][0]
    middle_initial = parts[1][0] if len(parts) > 2 else first_initial
    return f"{first_initial}{middle_initial}{parts[-1]}{enrollment_year % 100:02d}"


class DirectoryService:
    """Catalog CRUD for departments, courses, lecturers and students."""

    def __init__(self, store: EntityStore, *, actor: User | None = None) -> None:
        self.store = store
        self.settings = store.settings
        self.actor = actor

    # -- departments --------------------------------------------------

    def create_department(self, *, name: str, code: str) -> DepartmentDetails:
        logger.info("Creating department with name: %s", name)

        def work() -> DepartmentDetails:
            clean_code = self._clean(code, "Code").upper()
            self._ensure_code_free(Department, clean_code)
            department = Department(
                external_id=self.store.next_external_id(Department),
                name=self._clean(name, "Name"),
                code=clean_code,
            )
            self.store.save(department)
            self._audit("department.created", "department", department.external_id)
            return self._department_details(department)

        details = self.store.run_atomic("department creation", work)
        logger.info("Department created successfully with external ID: %s", details.id)
        return details

    def get_department(self, department_id: str) -> DepartmentDetails:
        return self._department_details(self.store.get(Department, department_id))

    def get_department_by_name(self, name: str) -> DepartmentDetails:
        return self._department_details(self.store.get_by_name(Department, name))

    def list_departments(self, *, page: int = 0, size: int | None = None, sort_by: str = "external_id") -> PageResult:
        result = self.store.page(select(Department), model=Department, page=page, size=size, sort_by=sort_by)
        return self._map_page(result, self._department_details)

    def update_department(self, department_id: str, *, name: str | None = None, code: str | None = None) -> DepartmentDetails:
        def work() -> DepartmentDetails:
            department = self.store.get(Department, department_id)
            if name is not None:
                department.name = self._clean(name, "Name")
            if code is not None:
                clean_code = self._clean(code, "Code").upper()
                if clean_code != department.code:
                    self._ensure_code_free(Department, clean_code)
                    department.code = clean_code
            self.store.save(department)
            self._audit("department.updated", "department", department.external_id)
            return self._department_details(department)

        return self.store.run_atomic("department update", work)

    # -- courses ------------------------------------------------------

    def create_course(self, *, name: str, code: str, department_id: str) -> CourseDetails:
        logger.info("Creating course with name: %s", name)

        def work() -> CourseDetails:
            department = self.store.get(Department, department_id)
            clean_code = self._clean(code, "Code").upper()
            self._ensure_code_free(Course, clean_code)
            course = Course(
                external_id=self.store.next_external_id(Course),
                name=self._clean(name, "Name"),
                code=clean_code,
                department_id=department.external_id,
            )
            self.store.save(course)
            self._audit("course.created", "course", course.external_id)
            return self._course_details(course, department=department)

        details = self.store.run_atomic("course creation", work)
        logger.info("Course created successfully with external ID: %s", details.id)
        return details

    def get_course(self, course_id: str) -> CourseDetails:
        return self._course_details(self.store.get(Course, course_id))

    def get_course_by_name(self, name: str) -> CourseDetails:
        return self._course_details(self.store.get_by_name(Course, name))

    def list_courses(self, *, page: int = 0, size: int | None = None, sort_by: str = "external_id") -> PageResult:
        result = self.store.page(select(Course), model=Course, page=page, size=size, sort_by=sort_by)
        return self._map_page(result, self._course_details)

    def list_courses_by_department(self, department_id: str, *, page: int = 0, size: int | None = None) -> PageResult:
        department = self.store.get(Department, department_id)
        statement = select(Course).where(Course.department_id == department.external_id)
        result = self.store.page(statement, model=Course, page=page, size=size)
        return self._map_page(result, self._course_details)

    def update_course(self, course_id: str, *, name: str | None = None, code: str | None = None) -> CourseDetails:
        def work() -> CourseDetails:
            course = self.store.get(Course, course_id)
            if name is not None:
                course.name = self._clean(name, "Name")
            if code is not None:
                clean_code = self._clean(code, "Code").upper()
                if clean_code != course.code:
                    self._ensure_code_free(Course, clean_code)
                    course.code = clean_code
            self.store.save(course)
            self._audit("course.updated", "course", course.external_id)
            return self._course_details(course)

        return self.store.run_atomic("course update", work)

    # -- lecturers ----------------------------------------------------

    def create_lecturer(self, *, name: str, phone: str, department_id: str) -> LecturerDetails:
        logger.info("Creating lecturer with name: %s", name)

        def work() -> LecturerDetails:
            department = self.store.get(Department, department_id)
            clean_name = self._clean(name, "Name")
            lecturer = Lecturer(
                external_id=self.store.next_external_id(Lecturer),
                name=clean_name,
                email=self._unique_email(Lecturer, lecturer_email_local_part(clean_name)),
                phone=self._clean(phone, "Phone"),
                department_id=department.external_id,
            )
            self.store.save(lecturer)
            self._audit("lecturer.created", "lecturer", lecturer.external_id)
            return self._lecturer_details(lecturer, department=department)

        details = self.store.run_atomic("lecturer creation", work)
        logger.info("Lecturer created successfully with external ID: %s", details.id)
        return details

    def get_lecturer(self, lecturer_id: str) -> LecturerDetails:
        return self._lecturer_details(self.store.get(Lecturer, lecturer_id))

    def get_lecturer_by_name(self, name: str) -> LecturerDetails:
        return self._lecturer_details(self.store.get_by_name(Lecturer, name))

    def list_lecturers(self, *, page: int = 0, size: int | None = None, sort_by: str = "external_id") -> PageResult:
        result = self.store.page(select(Lecturer), model=Lecturer, page=page, size=size, sort_by=sort_by)
        return self._map_page(result, self._lecturer_details)

    def list_lecturers_by_department(self, department_id: str, *, page: int = 0, size: int | None = None) -> PageResult:
        department = self.store.get(Department, department_id)
        statement = select(Lecturer).where(Lecturer.department_id == department.external_id)
        result = self.store.page(statement, model=Lecturer, page=page, size=size)
        return self._map_page(result, self._lecturer_details)

    def update_lecturer(self, lecturer_id: str, *, name: str | None = None, phone: str | None = None) -> LecturerDetails:
        def work() -> LecturerDetails:
            lecturer = self.store.lock(Lecturer, lecturer_id)
            if name is not None:
                lecturer.name = self._clean(name, "Name")
            if phone is not None:
                lecturer.phone = self._clean(phone, "Phone")
            self.store.save(lecturer)
            self._audit("lecturer.updated", "lecturer", lecturer.external_id)
            return self._lecturer_details(lecturer)

        return self.store.run_atomic("lecturer update", work)

    def assign_course(self, lecturer_id: str, course_id: str) -> AssignmentResult:
        logger.info("Assigning lecturer %s to course %s", lecturer_id, course_id)

        def work() -> AssignmentResult:
            lecturer = self.store.lock(Lecturer, lecturer_id)
            course = self.store.get(Course, course_id)
            if self.store.is_assigned(lecturer.external_id, course.external_id):
                raise AssignmentConflictError(
                    f"Lecturer {lecturer.external_id} is already assigned to course {course.external_id}",
                    details={"lecturer_id": lecturer.external_id, "course_id": course.external_id},
                )
            self.store.save(CourseAssignment(lecturer_id=lecturer.external_id, course_id=course.external_id))
            self.store.touch(lecturer)
            self._audit("lecturer.course_assigned", "lecturer", lecturer.external_id, {"course_id": course.external_id})
            return AssignmentResult(
                success=True,
                message="Lecturer assigned to course successfully",
                lecturer_id=lecturer.external_id,
                course_id=course.external_id,
                lecturer_name=lecturer.name,
                course_name=course.name,
            )

        return self.store.run_atomic("course assignment", work)

    def unassign_course(self, lecturer_id: str, course_id: str) -> AssignmentResult:
        def work() -> AssignmentResult:
            lecturer = self.store.lock(Lecturer, lecturer_id)
            course = self.store.get(Course, course_id)
            assignment = self.store.find_assignment(lecturer.external_id, course.external_id)
            if assignment is None:
                raise NotFoundError(
                    "Course assignment",
                    f"{lecturer.external_id}/{course.external_id}",
                    message=f"Lecturer {lecturer.external_id} is not assigned to course {course.external_id}",
                )
            teaching = self.store.count(
                ClassSession,
                ClassSession.lecturer_id == lecturer.external_id,
                ClassSession.course_id == course.external_id,
            )
            if teaching:
                raise AssignmentConflictError(
                    f"Lecturer {lecturer.external_id} still teaches {teaching} class session(s) of course {course.external_id}",
                    details={"lecturer_id": lecturer.external_id, "course_id": course.external_id},
                )
            self.store.delete(assignment)
            self.store.touch(lecturer)
            self._audit("lecturer.course_unassigned", "lecturer", lecturer.external_id, {"course_id": course.external_id})
            return AssignmentResult(
                success=True,
                message="Lecturer unassigned from course successfully",
                lecturer_id=lecturer.external_id,
                course_id=course.external_id,
                lecturer_name=lecturer.name,
                course_name=course.name,
            )

        return self.store.run_atomic("course unassignment", work)

    # -- students -----------------------------------------------------

    def create_student(self, *, name: str, phone: str, department_id: str, enrollment_year: int) -> StudentDetails:
        logger.info("Creating student with name: %s", name)
        self._validate_enrollment_year(enrollment_year)

        def work() -> StudentDetails:
            department = self.store.get(Department, department_id)
            clean_name = self._clean(name, "Name")
            student = Student(
                external_id=self.store.next_external_id(Student),
                name=clean_name,
                email=self._unique_email(Student, student_email_local_part(clean_name, enrollment_year)),
                phone=self._clean(phone, "Phone"),
                department_id=department.external_id,
                enrollment_year=enrollment_year,
            )
            self.store.save(student)
            self._audit("student.created", "student", student.external_id)
            return self._student_details(student, department=department)

        details = self.store.run_atomic("student creation", work)
        logger.info("Student created successfully with external ID: %s", details.id)
        return details

    def get_student(self, student_id: str) -> StudentDetails:
        return self._student_details(self.store.get(Student, student_id))

    def get_student_by_name(self, name: str) -> StudentDetails:
        return self._student_details(self.store.get_by_name(Student, name))

    def search_student(self, fragment: str) -> StudentDetails:
        return self._student_details(self.store.search_by_name(Student, fragment))

    def list_students(self, *, page: int = 0, size: int | None = None, sort_by: str = "external_id") -> PageResult:
        result = self.store.page(select(Student), model=Student, page=page, size=size, sort_by=sort_by)
        return self._map_page(result, self._student_details)

    def list_students_by_department(self, department_id: str, *, page: int = 0, size: int | None = None) -> PageResult:
        department = self.store.get(Department, department_id)
        statement = select(Student).where(Student.department_id == department.external_id)
        result = self.store.page(statement, model=Student, page=page, size=size)
        return self._map_page(result, self._student_details)

    def list_students_by_class_session(self, class_session_id: str, *, page: int = 0, size: int | None = None) -> PageResult:
        session = self.store.get(ClassSession, class_session_id)
        statement = (
            select(Student)
            .join(Enrollment, Enrollment.student_id == Student.external_id)
            .where(Enrollment.class_session_id == session.external_id)
        )
        result = self.store.page(statement, model=Student, page=page, size=size)
        return self._map_page(result, self._student_details)

    def update_student(self, student_id: str, *, name: str | None = None, phone: str | None = None) -> StudentDetails:
        def work() -> StudentDetails:
            student = self.store.lock(Student, student_id)
            if name is not None:
                student.name = self._clean(name, "Name")
            if phone is not None:
                student.phone = self._clean(phone, "Phone")
            self.store.save(student)
            self._audit("student.updated", "student", student.external_id)
            return self._student_details(student)

        return self.store.run_atomic("student update", work)

    def student_count(self) -> int:
        return self.store.count(Student)

    # -- helpers ------------------------------------------------------

    @staticmethod
    def _clean(value: str, label: str) -> str:
        cleaned = (value or "").strip()
        if not cleaned:
            raise InvalidArgsError(f"{label} is required")
        return cleaned

    @staticmethod
    def _validate_enrollment_year(year: int) -> None:
        current_year = datetime.now(timezone.utc).year
        if year < MIN_ENROLLMENT_YEAR or year > current_year:
            raise InvalidArgsError(
                f"Enrollment year must be between {MIN_ENROLLMENT_YEAR} and {current_year}",
                details={"enrollment_year": year},
            )

    def _ensure_code_free(self, model: type, code: str) -> None:
        if self.store.count(model, model.code == code):
            raise ConflictError(f"Code {code} is already in use", details={"code": code})

    def _unique_email(self, model: type, local_part: str) -> str:
        domain = self.settings.email_domain
        candidate = f"{local_part}@{domain}"
        suffix = 1
        while self.store.count(model, model.email == candidate):
            suffix += 1
            candidate = f"{local_part}{suffix}@{domain}"
        return candidate

    @staticmethod
    def _map_page(result: PageResult, describe: Callable) -> PageResult:
        return PageResult(
            items=[describe(item) for item in result.items],
            page=result.page,
            size=result.size,
            total=result.total,
        )

    def _department_details(self, department: Department) -> DepartmentDetails:
        key = department.external_id
        return DepartmentDetails(
            id=key,
            name=department.name,
            code=department.code,
            student_count=self.store.count(Student, Student.department_id == key),
            lecturer_count=self.store.count(Lecturer, Lecturer.department_id == key),
            course_count=self.store.count(Course, Course.department_id == key),
        )

    def _session_ids(self, *criteria) -> list[str]:
        statement = select(ClassSession.external_id).where(*criteria).order_by(ClassSession.external_id)
        return list(self.store.db.execute(statement).scalars())

    def _course_details(self, course: Course, *, department: Department | None = None) -> CourseDetails:
        department = department or self.store.get(Department, course.department_id)
        return CourseDetails(
            id=course.external_id,
            name=course.name,
            code=course.code,
            department_id=department.external_id,
            department_name=department.name,
            lecturer_ids=self.store.lecturer_ids_for_course(course.external_id),
            class_session_ids=self._session_ids(ClassSession.course_id == course.external_id),
        )

    def _lecturer_details(self, lecturer: Lecturer, *, department: Department | None = None) -> LecturerDetails:
        department = department or self.store.get(Department, lecturer.department_id)
        return LecturerDetails(
            id=lecturer.external_id,
            name=lecturer.name,
            email=lecturer.email,
            phone=lecturer.phone,
            department_id=department.external_id,
            department_name=department.name,
            course_ids=self.store.course_ids_for_lecturer(lecturer.external_id),
            class_session_ids=self._session_ids(ClassSession.lecturer_id == lecturer.external_id),
        )

    def _student_details(self, student: Student, *, department: Department | None = None) -> StudentDetails:
        department = department or self.store.get(Department, student.department_id)
        return StudentDetails(
            id=student.external_id,
            name=student.name,
            email=student.email,
            phone=student.phone,
            department_id=department.external_id,
            department_name=department.name,
            enrollment_year=student.enrollment_year,
            class_session_ids=[item.external_id for item in self.store.sessions_for_student(student.external_id)],
        )

    def _audit(self, action: str, entity_type: str, entity_id: str, details: dict | None = None) -> None:
        log_activity(
            self.store.db,
            user=self.actor,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=details,
        )
