from pydantic import BaseModel, Field

from campus.schemas.lecturer import PHONE_PATTERN


class StudentCreate(BaseModel):
    name: str = Field(min_length=2, max_length=50, pattern=r"^[A-Za-z\s\-]+$")
    phone: str = Field(pattern=PHONE_PATTERN)
    department_id: str = Field(min_length=1, max_length=32)
    enrollment_year: int


class StudentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=50, pattern=r"^[A-Za-z\s\-]+$")
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)


class StudentOut(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    department_id: str
    department_name: str
    enrollment_year: int
    class_session_ids: list[str]

    model_config = {"from_attributes": True}


class EnrollmentRequest(BaseModel):
    class_session_id: str = Field(min_length=1, max_length=32)


class EnrollmentOut(BaseModel):
    success: bool
    message: str
    student_id: str
    class_session_id: str
    student_name: str
    course_name: str
    available_seats: int

    model_config = {"from_attributes": True}
