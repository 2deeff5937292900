from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from campus.api.deps import PageParams, get_current_user, get_db, require_admin
from campus.models.user import User
from campus.schemas.class_session import ClassSessionOut
from campus.schemas.common import Page
from campus.schemas.course import CourseCreate, CourseOut, CourseUpdate
from campus.services.directory import DirectoryService
from campus.services.integrity import ReferentialIntegrityGuard
from campus.services.scheduling import SchedulingEngine
from campus.services.store import EntityStore

router = APIRouter()


@router.get("/", response_model=Page[CourseOut])
def list_courses(
    params: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[CourseOut]:
    result = DirectoryService(EntityStore(db)).list_courses(page=params.page, size=params.size, sort_by=params.sort_by)
    return Page[CourseOut].from_result(result)


@router.get("/by-name", response_model=CourseOut)
def get_course_by_name(
    name: str = Query(min_length=1),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CourseOut:
    return DirectoryService(EntityStore(db)).get_course_by_name(name)


@router.get("/{course_id}", response_model=CourseOut)
def get_course(
    course_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> CourseOut:
    return DirectoryService(EntityStore(db)).get_course(course_id)


@router.get("/{course_id}/class-sessions", response_model=Page[ClassSessionOut])
def list_course_sessions(
    course_id: str,
    params: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[ClassSessionOut]:
    result = SchedulingEngine(EntityStore(db)).list_by_course(course_id, page=params.page, size=params.size)
    return Page[ClassSessionOut].from_result(result)


@router.post("/", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
def create_course(
    payload: CourseCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> CourseOut:
    return DirectoryService(EntityStore(db), actor=current_user).create_course(**payload.model_dump())


@router.put("/{course_id}", response_model=CourseOut)
def update_course(
    course_id: str,
    payload: CourseUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> CourseOut:
    data = payload.model_dump(exclude_unset=True)
    return DirectoryService(EntityStore(db), actor=current_user).update_course(course_id, **data)


@router.delete("/{course_id}")
def delete_course(
    course_id: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    ReferentialIntegrityGuard(EntityStore(db), actor=current_user).delete_course(course_id)
    return {"success": True}
