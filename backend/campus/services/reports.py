"""
Student schedule reports.

Single reports render in the caller's session. Bulk generation fans one job
per student out onto a bounded thread pool; each job opens its own session
and transaction, and a failed job is logged and counted without affecting
the others.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import csv
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
import io
import logging
from pathlib import Path
from typing import Callable

from sqlalchemy.orm import Session

from campus.core.config import Settings, get_settings
from campus.core.exceptions import AppError, InvalidArgsError
from campus.models.course import Course
from campus.models.department import Department
from campus.models.lecturer import Lecturer
from campus.models.student import Student
from campus.services.store import EntityStore

logger = logging.getLogger(__name__)

TIME_FORMAT = "%H:%M"
GENERATED_FORMAT = "%Y-%m-%d %H:%M:%S"
FILE_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"


class ReportFormat(str, Enum):
    txt = "txt"
    csv = "csv"

    @classmethod
    def parse(cls, value: ReportFormat | str) -> ReportFormat:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidArgsError(
                f"Unsupported report format: {value}",
                details={"allowed": [item.value for item in cls]},
            ) from None


class ReportWriteError(AppError):
    code = "report_write_failed"

    def __init__(self, path: Path, message: str):
        super().__init__(message, status_code=500, details={"path": str(path)})


@dataclass
class ReportResult:
    content: str
    format: ReportFormat
    entity_type: str
    entity_id: str
    entity_name: str
    file_name: str
    file_size: int


@dataclass
class BulkReportSummary:
    total: int
    succeeded: int
    failed: int
    generated_at: datetime
    file_names: list[str] = field(default_factory=list)


@dataclass
class _ScheduleRow:
    course_name: str
    day: str
    start: str
    end: str
    location: str
    lecturer_name: str
    enrolled_count: int
    max_capacity: int


class ReportService:
    def __init__(self, store: EntityStore, settings: Settings | None = None) -> None:
        self.store = store
        self.settings = settings or store.settings

    @property
    def reports_dir(self) -> Path:
        return Path(self.settings.reports_dir)

    def generate_student_report(self, student_id: str, fmt: ReportFormat | str) -> ReportResult:
        fmt = ReportFormat.parse(fmt)
        logger.info("Generating student report for student %s in format %s", student_id, fmt.value)
        student = self.store.get(Student, student_id)
        content = self.render(student, fmt)
        path = self._write(self._free_name(report_file_name(student.external_id, fmt)), content)
        file_name = path.name
        logger.info("Student report saved to: %s", path)
        return ReportResult(
            content=content,
            format=fmt,
            entity_type="STUDENT",
            entity_id=student.external_id,
            entity_name=student.name,
            file_name=file_name,
            file_size=path.stat().st_size,
        )

    def render(self, student: Student, fmt: ReportFormat) -> str:
        department = self.store.get(Department, student.department_id)
        rows = self._schedule_rows(student)
        generated = datetime.now(timezone.utc).strftime(GENERATED_FORMAT)
        if fmt is ReportFormat.csv:
            return _render_csv(student, department, rows, generated)
        return _render_txt(student, department, rows, generated)

    def list_reports(self) -> list[str]:
        directory = self._ensure_dir()
        return sorted(path.name for path in directory.iterdir() if path.is_file())

    def _schedule_rows(self, student: Student) -> list[_ScheduleRow]:
        rows = []
        sessions = sorted(self.store.sessions_for_student(student.external_id), key=lambda item: item.time_slot.sort_key())
        for session in sessions:
            course = self.store.find(Course, session.course_id)
            lecturer = self.store.find(Lecturer, session.lecturer_id)
            rows.append(
                _ScheduleRow(
                    course_name=course.name if course else "Unknown Course",
                    day=session.day.value,
                    start=session.start_time.strftime(TIME_FORMAT),
                    end=session.end_time.strftime(TIME_FORMAT),
                    location=session.location,
                    lecturer_name=lecturer.name if lecturer else "Unknown Lecturer",
                    enrolled_count=session.enrolled_count,
                    max_capacity=session.max_capacity,
                )
            )
        return rows

    def _ensure_dir(self) -> Path:
        directory = self.reports_dir
        if not directory.exists():
            directory.mkdir(parents=True, exist_ok=True)
            logger.info("Reports directory created at: %s", directory.resolve())
        return directory

    def _free_name(self, file_name: str) -> str:
        # Timestamps have second resolution; a second report in the same
        # second gets a numeric suffix instead of replacing the first.
        directory = self._ensure_dir()
        stem, suffix = file_name.rsplit(".", 1)
        candidate, counter = file_name, 2
        while (directory / candidate).exists():
            candidate = f"{stem}_{counter}.{suffix}"
            counter += 1
        return candidate

    def _write(self, file_name: str, content: str) -> Path:
        path = self._ensure_dir() / file_name
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            logger.error("Error writing report file %s", path)
            raise ReportWriteError(path, f"Failed to write report {file_name}") from exc
        return path


def report_file_name(student_id: str, fmt: ReportFormat, now: datetime | None = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime(FILE_TIMESTAMP_FORMAT)
    return f"student_report_{student_id}_{stamp}.{fmt.value}"


def _render_txt(student: Student, department: Department, rows: list[_ScheduleRow], generated: str) -> str:
    lines = [
        "STUDENT REPORT",
        f"Generated: {generated}",
        "==============",
        "",
        "Student Details:",
        "---------------",
        f"ID: {student.external_id}",
        f"Name: {student.name}",
        f"Email: {student.email}",
        f"Phone: {student.phone}",
        f"Enrollment Year: {student.enrollment_year}",
        f"Department: {department.name}",
        "",
        "Enrolled Classes:",
        "----------------",
    ]
    if not rows:
        lines.append("No classes enrolled.")
    for row in rows:
        lines.append(
            f"- {row.course_name} ({row.day} {row.start}-{row.end}) - {row.location} - "
            f"Taught by: {row.lecturer_name} - Seats: {row.enrolled_count}/{row.max_capacity}"
        )
    return "\n".join(lines) + "\n"


def _render_csv(student: Student, department: Department, rows: list[_ScheduleRow], generated: str) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Generated", generated])
    writer.writerow(["Student ID", "Name", "Email", "Phone", "Enrollment Year", "Department"])
    writer.writerow(
        [student.external_id, student.name, student.email, student.phone, student.enrollment_year, department.name]
    )
    writer.writerow([])
    writer.writerow(["Course", "Day", "Time", "Location", "Lecturer", "Enrollment"])
    for row in rows:
        writer.writerow(
            [
                row.course_name,
                row.day,
                f"{row.start}-{row.end}",
                row.location,
                row.lecturer_name,
                f"{row.enrolled_count}/{row.max_capacity}",
            ]
        )
    return buffer.getvalue()


def generate_bulk(
    student_ids: list[str],
    fmt: ReportFormat | str,
    *,
    session_factory: Callable[[], Session],
    settings: Settings | None = None,
) -> BulkReportSummary:
    settings = settings or get_settings()
    fmt = ReportFormat.parse(fmt)
    requested = len(student_ids)
    student_ids = list(dict.fromkeys(student_ids))
    if len(student_ids) < requested:
        logger.info("Ignoring %d repeated student ids", requested - len(student_ids))
    logger.info("Starting bulk report generation for %d students", len(student_ids))

    def job(student_id: str) -> str:
        db = session_factory()
        try:
            store = EntityStore(db, settings)
            with store.transaction():
                return ReportService(store, settings).generate_student_report(student_id, fmt).file_name
        finally:
            db.close()

    file_names: list[str] = []
    failed = 0
    workers = min(settings.report_max_workers, max(1, len(student_ids)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="report") as pool:
        futures = [(student_id, pool.submit(job, student_id)) for student_id in student_ids]
        for student_id, future in futures:
            try:
                file_names.append(future.result())
            except Exception:
                failed += 1
                logger.exception("Failed to generate report for student: %s", student_id)

    summary = BulkReportSummary(
        total=len(student_ids),
        succeeded=len(file_names),
        failed=failed,
        generated_at=datetime.now(timezone.utc),
        file_names=file_names,
    )
    logger.info("Bulk generation completed: %d/%d successful", summary.succeeded, summary.total)
    return summary
