from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from campus.api.deps import PageParams, get_current_user, get_db, require_admin
from campus.models.user import User
from campus.schemas.common import Page
from campus.schemas.course import CourseOut
from campus.schemas.department import DepartmentCreate, DepartmentOut, DepartmentUpdate
from campus.schemas.lecturer import LecturerOut
from campus.schemas.student import StudentOut
from campus.services.directory import DirectoryService
from campus.services.integrity import ReferentialIntegrityGuard
from campus.services.store import EntityStore

router = APIRouter()


@router.get("/", response_model=Page[DepartmentOut])
def list_departments(
    params: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[DepartmentOut]:
    result = DirectoryService(EntityStore(db)).list_departments(page=params.page, size=params.size, sort_by=params.sort_by)
    return Page[DepartmentOut].from_result(result)


@router.get("/by-name", response_model=DepartmentOut)
def get_department_by_name(
    name: str = Query(min_length=1),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DepartmentOut:
    return DirectoryService(EntityStore(db)).get_department_by_name(name)


@router.get("/{department_id}", response_model=DepartmentOut)
def get_department(
    department_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DepartmentOut:
    return DirectoryService(EntityStore(db)).get_department(department_id)


@router.get("/{department_id}/courses", response_model=Page[CourseOut])
def list_department_courses(
    department_id: str,
    params: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[CourseOut]:
    result = DirectoryService(EntityStore(db)).list_courses_by_department(
        department_id, page=params.page, size=params.size
    )
    return Page[CourseOut].from_result(result)


@router.get("/{department_id}/lecturers", response_model=Page[LecturerOut])
def list_department_lecturers(
    department_id: str,
    params: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[LecturerOut]:
    result = DirectoryService(EntityStore(db)).list_lecturers_by_department(
        department_id, page=params.page, size=params.size
    )
    return Page[LecturerOut].from_result(result)


@router.get("/{department_id}/students", response_model=Page[StudentOut])
def list_department_students(
    department_id: str,
    params: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[StudentOut]:
    result = DirectoryService(EntityStore(db)).list_students_by_department(
        department_id, page=params.page, size=params.size
    )
    return Page[StudentOut].from_result(result)


@router.post("/", response_model=DepartmentOut, status_code=status.HTTP_201_CREATED)
def create_department(
    payload: DepartmentCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> DepartmentOut:
    return DirectoryService(EntityStore(db), actor=current_user).create_department(**payload.model_dump())


@router.put("/{department_id}", response_model=DepartmentOut)
def update_department(
    department_id: str,
    payload: DepartmentUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> DepartmentOut:
    data = payload.model_dump(exclude_unset=True)
    return DirectoryService(EntityStore(db), actor=current_user).update_department(department_id, **data)


@router.delete("/{department_id}")
def delete_department(
    department_id: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    ReferentialIntegrityGuard(EntityStore(db), actor=current_user).delete_department(department_id)
    return {"success": True}
