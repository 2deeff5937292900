from pydantic import BaseModel, Field

PHONE_PATTERN = r"^\+?[0-9][0-9 \-]{5,19}$"


class LecturerCreate(BaseModel):
    name: str = Field(min_length=2, max_length=50, pattern=r"^[A-Za-z\s\-]+$")
    phone: str = Field(pattern=PHONE_PATTERN)
    department_id: str = Field(min_length=1, max_length=32)


class LecturerUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=50, pattern=r"^[A-Za-z\s\-]+$")
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)


class LecturerOut(BaseModel):
    id: str
    name: str
    email: str
    phone: str
    department_id: str
    department_name: str
    course_ids: list[str]
    class_session_ids: list[str]

    model_config = {"from_attributes": True}


class AssignmentOut(BaseModel):
    success: bool
    message: str
    lecturer_id: str
    course_id: str
    lecturer_name: str
    course_name: str

    model_config = {"from_attributes": True}
