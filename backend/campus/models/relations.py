from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from campus.db.base import Base
from campus.models.base import new_uuid


class CourseAssignment(Base):
    """Lecturer is allowed to teach sessions of the course."""

    __tablename__ = "course_assignments"
    __table_args__ = (UniqueConstraint("lecturer_id", "course_id", name="uq_course_assignments_pair"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    lecturer_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("lecturers.external_id"), index=True, nullable=False
    )
    course_id: Mapped[str] = mapped_column(String(32), ForeignKey("courses.external_id"), index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Enrollment(Base):
    """Seat held by a student in a class session."""

    __tablename__ = "enrollments"
    __table_args__ = (UniqueConstraint("student_id", "class_session_id", name="uq_enrollments_pair"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    student_id: Mapped[str] = mapped_column(String(32), ForeignKey("students.external_id"), index=True, nullable=False)
    class_session_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("class_sessions.external_id"), index=True, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class ExternalIdSequence(Base):
    __tablename__ = "external_id_sequences"

    name: Mapped[str] = mapped_column(String(50), primary_key=True)
    next_value: Mapped[int] = mapped_column(Integer, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
