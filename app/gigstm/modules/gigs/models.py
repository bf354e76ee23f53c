from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.gigstm.models import Base

if TYPE_CHECKING:
    from app.gigstm.models import User


class GigCategory(Base):
    __tablename__ = "gig_categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)


class Gig(Base):
    __tablename__ = "gigs"
    __table_args__ = (
        Index("idx_gigs_status", "status"),
        Index("idx_gigs_client", "client_id"),
        CheckConstraint("pay_amount >= 0", name="ck_gigs_pay_amount_nonnegative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category_id: Mapped[int | None] = mapped_column(ForeignKey("gig_categories.id", ondelete="SET NULL"), nullable=True)
    pay_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    location: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # active | closed
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")

    # Whoever posted the gig (client, manager or admin)
    client_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    category: Mapped[GigCategory | None] = relationship("GigCategory", lazy="selectin")
    client: Mapped["User | None"] = relationship("User", lazy="selectin")
    steps: Mapped[list["GigStep"]] = relationship(
        "GigStep",
        back_populates="gig",
        cascade="all, delete-orphan",
        order_by="GigStep.step_order",
        lazy="selectin",
    )
    questions: Mapped[list["McqQuestion"]] = relationship(
        "McqQuestion",
        back_populates="gig",
        cascade="all, delete-orphan",
        order_by="McqQuestion.id",
        lazy="selectin",
    )
    training: Mapped["Training | None"] = relationship(
        "Training",
        back_populates="gig",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )


class GigStep(Base):
    __tablename__ = "gig_steps"
    __table_args__ = (
        UniqueConstraint("gig_id", "step_order", name="uq_gig_step_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False)
    step_order: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # text | image | file
    required_proof_type: Mapped[str] = mapped_column(String(16), nullable=False, default="image")

    gig: Mapped[Gig] = relationship("Gig", back_populates="steps", lazy="selectin")


class GigBookmark(Base):
    __tablename__ = "gig_bookmarks"
    __table_args__ = (
        UniqueConstraint("gig_id", "user_id", name="uq_gig_bookmark"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)


class GigReview(Base):
    __tablename__ = "gig_reviews"
    __table_args__ = (
        UniqueConstraint("gig_id", "user_id", name="uq_gig_review"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_gig_reviews_rating"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    user: Mapped["User"] = relationship("User", lazy="selectin")


class McqQuestion(Base):
    __tablename__ = "mcq_questions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False)
    question: Mapped[str] = mapped_column(Text, nullable=False)
    options_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")  # JSON list of strings
    correct_option_index: Mapped[int] = mapped_column(Integer, nullable=False)

    gig: Mapped[Gig] = relationship("Gig", back_populates="questions", lazy="selectin")

    @property
    def options(self) -> list[str]:
        return json.loads(self.options_json or "[]")


class Training(Base):
    __tablename__ = "trainings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    gig_id: Mapped[int] = mapped_column(ForeignKey("gigs.id", ondelete="CASCADE"), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    gig: Mapped[Gig] = relationship("Gig", back_populates="training", lazy="selectin")
    modules: Mapped[list["TrainingModule"]] = relationship(
        "TrainingModule",
        back_populates="training",
        cascade="all, delete-orphan",
        order_by="TrainingModule.module_order",
        lazy="selectin",
    )


class TrainingModule(Base):
    __tablename__ = "training_modules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    training_id: Mapped[int] = mapped_column(ForeignKey("trainings.id", ondelete="CASCADE"), nullable=False)
    module_order: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")

    training: Mapped[Training] = relationship("Training", back_populates="modules", lazy="selectin")
