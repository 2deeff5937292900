from datetime import datetime

from pydantic import BaseModel, Field

from campus.services.reports import ReportFormat


class ReportOut(BaseModel):
    content: str
    format: ReportFormat
    entity_type: str
    entity_id: str
    entity_name: str
    file_name: str
    file_size: int

    model_config = {"from_attributes": True}


class BulkReportRequest(BaseModel):
    student_ids: list[str] = Field(min_length=1, max_length=500)
    format: ReportFormat = ReportFormat.txt


class BulkReportOut(BaseModel):
    total: int
    succeeded: int
    failed: int
    generated_at: datetime
    file_names: list[str]

    model_config = {"from_attributes": True}
