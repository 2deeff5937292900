from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from campus.db.base import Base
from campus.models.base import ExternalIdentityMixin


class Course(ExternalIdentityMixin, Base):
    __tablename__ = "courses"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(50), unique=True, index=True, nullable=False)
    department_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("departments.external_id"), index=True, nullable=False
    )
