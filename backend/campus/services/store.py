"""
Entity store over a SQLAlchemy session.

Lookups go through immutable external ids. Relations (course
assignments, enrollments) are id-based records queried on demand; no
object graph is traversed.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import math
from typing import Callable, Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from campus.core.config import Settings, get_settings
from campus.core.exceptions import ConcurrentModificationError, InvalidArgsError, NotFoundError
from campus.models.class_session import ClassSession
from campus.models.course import Course
from campus.models.department import Department
from campus.models.lecturer import Lecturer
from campus.models.relations import CourseAssignment, Enrollment, ExternalIdSequence
from campus.models.student import Student

logger = logging.getLogger(__name__)

T = TypeVar("T")

ENTITY_LABELS: dict[type, str] = {
    Department: "Department",
    Course: "Course",
    Lecturer: "Lecturer",
    Student: "Student",
    ClassSession: "Class session",
}

# prefix, offset: first issued id is prefix + (offset + 1)
EXTERNAL_ID_FORMATS: dict[type, tuple[str, int]] = {
    Department: ("DEP", 0),
    Course: ("CRS", 0),
    Lecturer: ("LECT", 5000),
    Student: ("", 15000),
    ClassSession: ("CL", 100),
}

# deadlock_detected, serialization_failure
RETRYABLE_SQLSTATES = {"40P01", "40001"}


@dataclass
class PageResult(Generic[T]):
    items: list[T]
    page: int
    size: int
    total: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0


class EntityStore:
    def __init__(self, db: Session, settings: Settings | None = None) -> None:
        self.db = db
        self.settings = settings or get_settings()

    # -- transactions -------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        try:
            yield self.db
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def run_atomic(self, operation: str, work: Callable[[], T]) -> T:
        """
        Run `work` as one transaction. A version clash on any touched row
        rolls everything back and re-runs the whole unit, lookups included.
        Deadlocks and serialization failures reported by the database are
        retried the same way.
        """
        attempts = self.settings.optimistic_retry_attempts
        for attempt in range(1, attempts + 1):
            try:
                with self.transaction():
                    return work()
            except StaleDataError:
                logger.warning("Concurrent modification during %s (attempt %d/%d)", operation, attempt, attempts)
            except DBAPIError as exc:
                if not is_retryable(exc):
                    raise
                logger.warning(
                    "Lock contention during %s (attempt %d/%d): %s", operation, attempt, attempts, sqlstate_of(exc)
                )
        raise ConcurrentModificationError(
            f"Could not complete {operation}: the same records were modified concurrently, please retry",
            details={"operation": operation, "attempts": attempts},
        )

    # -- lookups ------------------------------------------------------

    def find(self, model: type[T], external_id: str) -> T | None:
        return self.db.execute(select(model).where(model.external_id == external_id)).scalar_one_or_none()

    def get(self, model: type[T], external_id: str) -> T:
        entity = self.find(model, external_id)
        if entity is None:
            raise NotFoundError(ENTITY_LABELS.get(model, model.__name__), external_id)
        return entity

    def lock(self, model: type[T], external_id: str) -> T:
        """Load the row for update; the lock is held until the transaction ends."""
        statement = (
            select(model)
            .where(model.external_id == external_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        entity = self.db.execute(statement).scalar_one_or_none()
        if entity is None:
            raise NotFoundError(ENTITY_LABELS.get(model, model.__name__), external_id)
        return entity

    def touch(self, entity) -> None:
        # Forces an UPDATE guarded by the version column, so a concurrent
        # writer that read the same version fails with StaleDataError.
        entity.updated_at = datetime.now(timezone.utc)

    def get_by_name(self, model: type[T], name: str) -> T:
        statement = select(model).where(func.lower(model.name) == name.strip().lower()).order_by(model.name).limit(1)
        entity = self.db.execute(statement).scalars().first()
        if entity is None:
            label = ENTITY_LABELS.get(model, model.__name__)
            raise NotFoundError(label, name, message=f"{label} with name {name} not found")
        return entity

    def search_by_name(self, model: type[T], fragment: str) -> T:
        pattern = f"%{fragment.strip().lower()}%"
        statement = select(model).where(func.lower(model.name).like(pattern)).order_by(model.name).limit(1)
        entity = self.db.execute(statement).scalars().first()
        if entity is None:
            label = ENTITY_LABELS.get(model, model.__name__)
            raise NotFoundError(label, fragment, message=f"{label} with name that contains {fragment!r} not found")
        return entity

    def page(
        self,
        statement: Select,
        *,
        model: type,
        page: int,
        size: int | None = None,
        sort_by: str = "external_id",
    ) -> PageResult:
        size = self.settings.default_page_size if size is None else size
        if page < 0:
            raise InvalidArgsError("Page number must be >= 0")
        if size <= 0 or size > self.settings.max_page_size:
            raise InvalidArgsError(f"Page size must be between 1 and {self.settings.max_page_size}")
        columns = model.__table__.columns
        if sort_by not in columns:
            raise InvalidArgsError(f"Cannot sort by {sort_by!r}", details={"allowed": sorted(columns.keys())})

        total = self.db.scalar(select(func.count()).select_from(statement.order_by(None).subquery())) or 0
        items = list(
            self.db.execute(
                statement.order_by(columns[sort_by], model.id).offset(page * size).limit(size)
            ).scalars()
        )
        return PageResult(items=items, page=page, size=size, total=total)

    def count(self, model: type, *criteria) -> int:
        statement = select(func.count()).select_from(model)
        if criteria:
            statement = statement.where(*criteria)
        return self.db.scalar(statement) or 0

    # -- writes -------------------------------------------------------

    def save(self, entity: T) -> T:
        self.db.add(entity)
        self.db.flush()
        return entity

    def delete(self, entity) -> None:
        self.db.delete(entity)
        self.db.flush()

    def next_external_id(self, model: type) -> str:
        """Issue the next external id from a dedicated sequence row, never from row counts."""
        prefix, offset = EXTERNAL_ID_FORMATS[model]
        name = model.__tablename__
        sequence = self.db.execute(
            select(ExternalIdSequence).where(ExternalIdSequence.name == name).with_for_update()
        ).scalar_one_or_none()
        if sequence is None:
            sequence = ExternalIdSequence(name=name, next_value=offset + 1)
            self.db.add(sequence)
        value = sequence.next_value
        sequence.next_value = value + 1
        self.db.flush()
        return f"{prefix}{value}"

    # -- relations ----------------------------------------------------

    def sessions_for_lecturer(self, lecturer_id: str) -> list[ClassSession]:
        statement = (
            select(ClassSession)
            .where(ClassSession.lecturer_id == lecturer_id)
            .order_by(ClassSession.start_time, ClassSession.external_id)
        )
        return list(self.db.execute(statement).scalars())

    def sessions_for_student(self, student_id: str) -> list[ClassSession]:
        statement = (
            select(ClassSession)
            .join(Enrollment, Enrollment.class_session_id == ClassSession.external_id)
            .where(Enrollment.student_id == student_id)
            .order_by(ClassSession.start_time, ClassSession.external_id)
        )
        return list(self.db.execute(statement).scalars())

    def student_ids_for_session(self, class_session_id: str) -> list[str]:
        statement = (
            select(Enrollment.student_id)
            .where(Enrollment.class_session_id == class_session_id)
            .order_by(Enrollment.student_id)
        )
        return list(self.db.execute(statement).scalars())

    def find_enrollment(self, student_id: str, class_session_id: str) -> Enrollment | None:
        statement = select(Enrollment).where(
            Enrollment.student_id == student_id,
            Enrollment.class_session_id == class_session_id,
        )
        return self.db.execute(statement).scalar_one_or_none()

    def is_enrolled(self, student_id: str, class_session_id: str) -> bool:
        return self.find_enrollment(student_id, class_session_id) is not None

    def enrollments_for_student(self, student_id: str) -> list[Enrollment]:
        statement = (
            select(Enrollment).where(Enrollment.student_id == student_id).order_by(Enrollment.class_session_id)
        )
        return list(self.db.execute(statement).scalars())

    def find_assignment(self, lecturer_id: str, course_id: str) -> CourseAssignment | None:
        statement = select(CourseAssignment).where(
            CourseAssignment.lecturer_id == lecturer_id,
            CourseAssignment.course_id == course_id,
        )
        return self.db.execute(statement).scalar_one_or_none()

    def is_assigned(self, lecturer_id: str, course_id: str) -> bool:
        return self.find_assignment(lecturer_id, course_id) is not None

    def course_ids_for_lecturer(self, lecturer_id: str) -> list[str]:
        statement = (
            select(CourseAssignment.course_id)
            .where(CourseAssignment.lecturer_id == lecturer_id)
            .order_by(CourseAssignment.course_id)
        )
        return list(self.db.execute(statement).scalars())

    def lecturer_ids_for_course(self, course_id: str) -> list[str]:
        statement = (
            select(CourseAssignment.lecturer_id)
            .where(CourseAssignment.course_id == course_id)
            .order_by(CourseAssignment.lecturer_id)
        )
        return list(self.db.execute(statement).scalars())

    def delete_assignments(self, *criteria) -> int:
        assignments = list(self.db.execute(select(CourseAssignment).where(*criteria)).scalars())
        for assignment in assignments:
            self.db.delete(assignment)
        self.db.flush()
        return len(assignments)


def sqlstate_of(exc: DBAPIError) -> str | None:
    # psycopg 3 exposes `sqlstate`, psycopg2 `pgcode`
    return getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)


def is_retryable(exc: DBAPIError) -> bool:
    return sqlstate_of(exc) in RETRYABLE_SQLSTATES
