import uuid
from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func


def new_uuid() -> str:
    return str(uuid.uuid4())


class ExternalIdentityMixin:
    """Identity by immutable external id; hashes by its value, not per type."""

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    external_id: Mapped[str] = mapped_column(String(32), unique=True, index=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    def __eq__(self, other: object) -> bool:
        if self is other:
            return True
        if type(self) is not type(other):
            return NotImplemented
        return self.external_id is not None and self.external_id == other.external_id

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.external_id))

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.external_id}>"
