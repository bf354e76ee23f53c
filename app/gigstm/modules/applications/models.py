from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.gigstm.models import Base

if TYPE_CHECKING:
    from app.gigstm.models import User
    from app.gigstm.modules.claims.models import Claim
    from app.gigstm.modules.gigs.models import Gig


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (
        UniqueConstraint("gig_id", "user_id", name="uq_application_gig_user"),
        Index("idx_applications_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    # pending -> testing/training -> accepted | rejected (see lifecycle.APPLICATION)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")

    reviewed_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    gig: Mapped["Gig"] = relationship("Gig", lazy="selectin")
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id], lazy="selectin")
    work_order: Mapped["WorkOrder | None"] = relationship(
        "WorkOrder",
        back_populates="application",
        uselist=False,
        lazy="selectin",
    )
    mcq_results: Mapped[list["McqResult"]] = relationship(
        "McqResult",
        back_populates="application",
        cascade="all, delete-orphan",
        order_by="McqResult.id",
        lazy="selectin",
    )


class McqResult(Base):
    __tablename__ = "mcq_results"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    application_id: Mapped[int] = mapped_column(ForeignKey("applications.id", ondelete="CASCADE"), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    total_questions: Mapped[int] = mapped_column(Integer, nullable=False)
    passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    details_json: Mapped[str | None] = mapped_column(Text, nullable=True)  # {"answers": {question_id: index}}
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    application: Mapped[Application] = relationship("Application", back_populates="mcq_results", lazy="selectin")

    @property
    def details(self) -> dict:
        return json.loads(self.details_json) if self.details_json else {}


class WorkOrder(Base):
    __tablename__ = "work_orders"
    __table_args__ = (
        Index("idx_work_orders_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    application_id: Mapped[int] = mapped_column(
        ForeignKey("applications.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False)

    # active -> completed | cancelled
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    due_date: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False)

    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    application: Mapped[Application] = relationship("Application", back_populates="work_order", lazy="selectin")
    gig: Mapped["Gig"] = relationship("Gig", lazy="selectin")
    user: Mapped["User"] = relationship("User", lazy="selectin")
    claims: Mapped[list["Claim"]] = relationship(
        "Claim",
        back_populates="work_order",
        cascade="all, delete-orphan",
        order_by="Claim.id",
        lazy="selectin",
    )

    @property
    def is_overdue(self) -> bool:
        return self.status == "active" and self.due_date < datetime.utcnow()
