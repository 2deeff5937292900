from pydantic import BaseModel, Field


class DepartmentCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    code: str = Field(min_length=2, max_length=20)


class DepartmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=2, max_length=100)
    code: str | None = Field(default=None, min_length=2, max_length=20)


class DepartmentOut(BaseModel):
    id: str
    name: str
    code: str
    student_count: int
    lecturer_count: int
    course_count: int

    model_config = {"from_attributes": True}
