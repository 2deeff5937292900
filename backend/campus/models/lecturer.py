from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from campus.db.base import Base
from campus.models.base import ExternalIdentityMixin


class Lecturer(ExternalIdentityMixin, Base):
    __tablename__ = "lecturers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    phone: Mapped[str] = mapped_column(String(40), nullable=False)
    department_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("departments.external_id"), index=True, nullable=False
    )
    # Bumped on every schedule change; serialises writers per lecturer.
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}
