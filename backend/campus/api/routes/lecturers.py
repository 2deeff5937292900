from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from campus.api.deps import PageParams, get_current_user, get_db, require_admin
from campus.models.user import User
from campus.schemas.class_session import ClassSessionOut
from campus.schemas.common import Page
from campus.schemas.lecturer import AssignmentOut, LecturerCreate, LecturerOut, LecturerUpdate
from campus.services.directory import DirectoryService
from campus.services.integrity import ReferentialIntegrityGuard
from campus.services.scheduling import SchedulingEngine
from campus.services.store import EntityStore

router = APIRouter()


@router.get("/", response_model=Page[LecturerOut])
def list_lecturers(
    params: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[LecturerOut]:
    result = DirectoryService(EntityStore(db)).list_lecturers(page=params.page, size=params.size, sort_by=params.sort_by)
    return Page[LecturerOut].from_result(result)


@router.get("/by-name", response_model=LecturerOut)
def get_lecturer_by_name(
    name: str = Query(min_length=1),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LecturerOut:
    return DirectoryService(EntityStore(db)).get_lecturer_by_name(name)


@router.get("/{lecturer_id}", response_model=LecturerOut)
def get_lecturer(
    lecturer_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LecturerOut:
    return DirectoryService(EntityStore(db)).get_lecturer(lecturer_id)


@router.get("/{lecturer_id}/class-sessions", response_model=Page[ClassSessionOut])
def list_lecturer_sessions(
    lecturer_id: str,
    params: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[ClassSessionOut]:
    result = SchedulingEngine(EntityStore(db)).list_by_lecturer(lecturer_id, page=params.page, size=params.size)
    return Page[ClassSessionOut].from_result(result)


@router.post("/", response_model=LecturerOut, status_code=status.HTTP_201_CREATED)
def create_lecturer(
    payload: LecturerCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> LecturerOut:
    return DirectoryService(EntityStore(db), actor=current_user).create_lecturer(**payload.model_dump())


@router.put("/{lecturer_id}", response_model=LecturerOut)
def update_lecturer(
    lecturer_id: str,
    payload: LecturerUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> LecturerOut:
    data = payload.model_dump(exclude_unset=True)
    return DirectoryService(EntityStore(db), actor=current_user).update_lecturer(lecturer_id, **data)


@router.delete("/{lecturer_id}")
def delete_lecturer(
    lecturer_id: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    ReferentialIntegrityGuard(EntityStore(db), actor=current_user).delete_lecturer(lecturer_id)
    return {"success": True}


@router.post("/{lecturer_id}/courses/{course_id}", response_model=AssignmentOut, status_code=status.HTTP_201_CREATED)
def assign_course(
    lecturer_id: str,
    course_id: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AssignmentOut:
    return DirectoryService(EntityStore(db), actor=current_user).assign_course(lecturer_id, course_id)


@router.delete("/{lecturer_id}/courses/{course_id}", response_model=AssignmentOut)
def unassign_course(
    lecturer_id: str,
    course_id: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AssignmentOut:
    return DirectoryService(EntityStore(db), actor=current_user).unassign_course(lecturer_id, course_id)
