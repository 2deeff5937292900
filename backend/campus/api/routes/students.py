from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from campus.api.deps import PageParams, get_current_user, get_db, require_admin
from campus.models.user import User
from campus.schemas.class_session import ClassSessionOut
from campus.schemas.common import CountOut, Page
from campus.schemas.student import EnrollmentOut, EnrollmentRequest, StudentCreate, StudentOut, StudentUpdate
from campus.services.directory import DirectoryService
from campus.services.integrity import ReferentialIntegrityGuard
from campus.services.scheduling import SchedulingEngine
from campus.services.store import EntityStore

router = APIRouter()


@router.get("/", response_model=Page[StudentOut])
def list_students(
    params: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[StudentOut]:
    result = DirectoryService(EntityStore(db)).list_students(page=params.page, size=params.size, sort_by=params.sort_by)
    return Page[StudentOut].from_result(result)


@router.get("/count", response_model=CountOut)
def count_students(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> CountOut:
    return CountOut(count=DirectoryService(EntityStore(db)).student_count())


@router.get("/by-name", response_model=StudentOut)
def get_student_by_name(
    name: str = Query(min_length=1),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StudentOut:
    return DirectoryService(EntityStore(db)).get_student_by_name(name)


@router.get("/search", response_model=StudentOut)
def search_student(
    q: str = Query(min_length=1),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StudentOut:
    return DirectoryService(EntityStore(db)).search_student(q)


@router.get("/{student_id}", response_model=StudentOut)
def get_student(
    student_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> StudentOut:
    return DirectoryService(EntityStore(db)).get_student(student_id)


@router.get("/{student_id}/class-sessions", response_model=Page[ClassSessionOut])
def list_student_sessions(
    student_id: str,
    params: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[ClassSessionOut]:
    result = SchedulingEngine(EntityStore(db)).list_by_student(student_id, page=params.page, size=params.size)
    return Page[ClassSessionOut].from_result(result)


@router.post("/", response_model=StudentOut, status_code=status.HTTP_201_CREATED)
def create_student(
    payload: StudentCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> StudentOut:
    return DirectoryService(EntityStore(db), actor=current_user).create_student(**payload.model_dump())


@router.put("/{student_id}", response_model=StudentOut)
def update_student(
    student_id: str,
    payload: StudentUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> StudentOut:
    data = payload.model_dump(exclude_unset=True)
    return DirectoryService(EntityStore(db), actor=current_user).update_student(student_id, **data)


@router.delete("/{student_id}")
def delete_student(
    student_id: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    ReferentialIntegrityGuard(EntityStore(db), actor=current_user).delete_student(student_id)
    return {"success": True}


@router.post("/{student_id}/enrollments", response_model=EnrollmentOut, status_code=status.HTTP_201_CREATED)
def enroll(
    student_id: str,
    payload: EnrollmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> EnrollmentOut:
    return SchedulingEngine(EntityStore(db), actor=current_user).enroll(student_id, payload.class_session_id)


@router.delete("/{student_id}/enrollments/{class_session_id}", response_model=EnrollmentOut)
def withdraw(
    student_id: str,
    class_session_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> EnrollmentOut:
    return SchedulingEngine(EntityStore(db), actor=current_user).withdraw(student_id, class_session_id)
