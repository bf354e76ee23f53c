from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.gigstm.models import Base

if TYPE_CHECKING:
    from app.gigstm.models import User
    from app.gigstm.modules.applications.models import WorkOrder
    from app.gigstm.modules.gigs.models import GigStep


class Claim(Base):
    """A worker's proof submission for one gig step under one work order."""

    __tablename__ = "claims"
    __table_args__ = (
        UniqueConstraint("work_order_id", "gig_step_id", name="uq_claim_work_order_step"),
        Index("idx_claims_status", "status"),
        Index("idx_claims_user", "user_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    work_order_id: Mapped[int] = mapped_column(ForeignKey("work_orders.id", ondelete="CASCADE"), nullable=False)
    gig_step_id: Mapped[int] = mapped_column(ForeignKey("gig_steps.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    submission_text: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # pending -> approved | rejected; rejected -> disputed -> approved | rejected
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    reviewer_remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    work_order: Mapped["WorkOrder"] = relationship("WorkOrder", back_populates="claims", lazy="selectin")
    step: Mapped["GigStep"] = relationship("GigStep", lazy="selectin")
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id], lazy="selectin")
    media: Mapped[list["ClaimMedia"]] = relationship(
        "ClaimMedia",
        back_populates="claim",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    verifications: Mapped[list["ClaimVerification"]] = relationship(
        "ClaimVerification",
        back_populates="claim",
        cascade="all, delete-orphan",
        order_by="ClaimVerification.id",
        lazy="selectin",
    )


class ClaimMedia(Base):
    __tablename__ = "claim_media"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    claim_id: Mapped[int] = mapped_column(ForeignKey("claims.id", ondelete="CASCADE"), nullable=False)

    storage_key: Mapped[str] = mapped_column(String(512), nullable=False)
    filename: Mapped[str] = mapped_column(String(255), nullable=False)
    content_type: Mapped[str] = mapped_column(String(128), nullable=False, default="application/octet-stream")
    media_type: Mapped[str] = mapped_column(String(16), nullable=False, default="file")  # image | file
    sha256: Mapped[str] = mapped_column(String(64), nullable=False)
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False)
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    claim: Mapped[Claim] = relationship("Claim", back_populates="media", lazy="selectin")


class ClaimVerification(Base):
    """Reviewer decision history for a claim (append-only)."""

    __tablename__ = "claim_verifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    claim_id: Mapped[int] = mapped_column(ForeignKey("claims.id", ondelete="CASCADE"), nullable=False)
    verifier_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    claim: Mapped[Claim] = relationship("Claim", back_populates="verifications", lazy="selectin")
