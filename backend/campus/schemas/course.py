from pydantic import BaseModel, Field


class CourseCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    code: str = Field(min_length=2, max_length=20)
    department_id: str = Field(min_length=1, max_length=32)


class CourseUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    code: str | None = Field(default=None, min_length=2, max_length=20)


class CourseOut(BaseModel):
    id: str
    name: str
    code: str
    department_id: str
    department_name: str
    lecturer_ids: list[str]
    class_session_ids: list[str]

    model_config = {"from_attributes": True}
