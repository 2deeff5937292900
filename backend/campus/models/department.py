from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from campus.db.base import Base
from campus.models.base import ExternalIdentityMixin


class Department(ExternalIdentityMixin, Base):
    __tablename__ = "departments"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(20), unique=True, index=True, nullable=False)
