from datetime import time

from sqlalchemy import CheckConstraint, Enum as SAEnum, ForeignKey, Integer, String, Time
from sqlalchemy.orm import Mapped, mapped_column

from campus.db.base import Base
from campus.models.base import ExternalIdentityMixin
from campus.services.timeslot import DayOfWeek, TimeSlot


class ClassSession(ExternalIdentityMixin, Base):
    __tablename__ = "class_sessions"
    __table_args__ = (
        CheckConstraint("end_time > start_time", name="ck_class_sessions_time_order"),
        CheckConstraint("enrolled_count <= max_capacity", name="ck_class_sessions_capacity"),
    )

    course_id: Mapped[str] = mapped_column(String(32), ForeignKey("courses.external_id"), index=True, nullable=False)
    lecturer_id: Mapped[str] = mapped_column(
        String(32), ForeignKey("lecturers.external_id"), index=True, nullable=False
    )
    day: Mapped[DayOfWeek] = mapped_column(SAEnum(DayOfWeek, name="day_of_week"), index=True, nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    location: Mapped[str] = mapped_column(String(200), nullable=False)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    enrolled_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def time_slot(self) -> TimeSlot:
        return TimeSlot(self.day, self.start_time, self.end_time)

    @time_slot.setter
    def time_slot(self, slot: TimeSlot) -> None:
        self.day = slot.day
        self.start_time = slot.start
        self.end_time = slot.end
