from collections.abc import Callable

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from campus.api.deps import get_current_user, get_db, get_session_factory, require_admin
from campus.models.user import User
from campus.schemas.report import BulkReportOut, BulkReportRequest, ReportOut
from campus.services.reports import ReportFormat, ReportService, generate_bulk
from campus.services.store import EntityStore

router = APIRouter()


@router.get("/", response_model=list[str])
def list_reports(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> list[str]:
    return ReportService(EntityStore(db)).list_reports()


@router.post("/bulk", response_model=BulkReportOut)
def generate_bulk_reports(
    payload: BulkReportRequest,
    current_user: User = Depends(require_admin),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> BulkReportOut:
    return generate_bulk(payload.student_ids, payload.format, session_factory=session_factory)


@router.post("/students/{student_id}", response_model=ReportOut)
def generate_student_report(
    student_id: str,
    fmt: ReportFormat = Query(default=ReportFormat.txt, alias="format"),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ReportOut:
    return ReportService(EntityStore(db)).generate_student_report(student_id, fmt)
