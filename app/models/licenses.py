import uuid
from datetime import date, datetime

from sqlalchemy import CheckConstraint, Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.employees import Employee
from models import Base, utcnow


class License(Base):
    __tablename__ = "licenses"
    __table_args__ = (
        UniqueConstraint("employee_id", "license_date", name="uq_license_employee_date"),
        CheckConstraint("hours IS NULL OR hours > 0", name="ck_license_hours_positive"),
        Index("ix_licenses_year_month", "year", "month"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    license_type: Mapped[str] = mapped_column(String(20), nullable=False)
    license_date: Mapped[date] = mapped_column(Date, nullable=False)
    hours: Mapped[int | None] = mapped_column(Integer)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    employee: Mapped[Employee] = relationship(back_populates="licenses")
