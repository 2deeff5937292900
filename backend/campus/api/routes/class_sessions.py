from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from campus.api.deps import PageParams, get_current_user, get_db, require_admin
from campus.models.user import User
from campus.schemas.class_session import ClassSessionCreate, ClassSessionOut, ClassSessionUpdate
from campus.schemas.common import CountOut, Page, SeatsOut
from campus.schemas.student import StudentOut
from campus.services.directory import DirectoryService
from campus.services.scheduling import SchedulingEngine
from campus.services.store import EntityStore

router = APIRouter()


@router.get("/", response_model=Page[ClassSessionOut])
def list_class_sessions(
    params: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[ClassSessionOut]:
    result = SchedulingEngine(EntityStore(db)).list_class_sessions(
        page=params.page, size=params.size, sort_by=params.sort_by
    )
    return Page[ClassSessionOut].from_result(result)


@router.get("/count", response_model=CountOut)
def count_class_sessions(current_user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> CountOut:
    return CountOut(count=SchedulingEngine(EntityStore(db)).class_session_count())


@router.get("/by-day/{day}", response_model=Page[ClassSessionOut])
def list_class_sessions_by_day(
    day: str,
    params: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[ClassSessionOut]:
    result = SchedulingEngine(EntityStore(db)).list_by_day(day, page=params.page, size=params.size)
    return Page[ClassSessionOut].from_result(result)


@router.get("/{class_session_id}", response_model=ClassSessionOut)
def get_class_session(
    class_session_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ClassSessionOut:
    return SchedulingEngine(EntityStore(db)).get_class_session(class_session_id)


@router.get("/{class_session_id}/seats", response_model=SeatsOut)
def get_available_seats(
    class_session_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SeatsOut:
    engine = SchedulingEngine(EntityStore(db))
    return SeatsOut(
        class_session_id=class_session_id,
        available_seats=engine.available_seats(class_session_id),
        has_available_seats=engine.has_available_seats(class_session_id),
    )


@router.get("/{class_session_id}/students", response_model=Page[StudentOut])
def list_class_session_students(
    class_session_id: str,
    params: PageParams = Depends(),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Page[StudentOut]:
    result = DirectoryService(EntityStore(db)).list_students_by_class_session(
        class_session_id, page=params.page, size=params.size
    )
    return Page[StudentOut].from_result(result)


@router.post("/", response_model=ClassSessionOut, status_code=status.HTTP_201_CREATED)
def create_class_session(
    payload: ClassSessionCreate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ClassSessionOut:
    return SchedulingEngine(EntityStore(db), actor=current_user).create_class_session(**payload.model_dump())


@router.put("/{class_session_id}", response_model=ClassSessionOut)
def update_class_session(
    class_session_id: str,
    payload: ClassSessionUpdate,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ClassSessionOut:
    data = payload.model_dump(exclude_unset=True)
    return SchedulingEngine(EntityStore(db), actor=current_user).update_class_session(class_session_id, **data)


@router.delete("/{class_session_id}")
def delete_class_session(
    class_session_id: str,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
) -> dict:
    SchedulingEngine(EntityStore(db), actor=current_user).delete_class_session(class_session_id)
    return {"success": True}
