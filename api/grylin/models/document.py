import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Text, text
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from grylin.core.database import Base


class Document(Base):
    __tablename__ = "documents"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), index=True
    )
    title: Mapped[str] = mapped_column(Text)
    category: Mapped[str] = mapped_column(
        String(20), default="Other", index=True
    )  # Finance | Education | Shopping | Health | Career | Other
    amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    due_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, index=True
    )
    summary: Mapped[list[str]] = mapped_column(ARRAY(Text), default=list)
    status: Mapped[str] = mapped_column(String(20), default="new")  # new | paid | archived
    # ── Scam shield ────────────────────────────────────────────────────────────
    is_scam: Mapped[bool] = mapped_column(Boolean, default=False)
    risk_score: Mapped[int] = mapped_column(Integer, default=0)  # 0–100, 0 unless assessed
    scam_indicators: Mapped[list[str]] = mapped_column(ARRAY(Text), default=list)
    # ── Provenance ─────────────────────────────────────────────────────────────
    source_type: Mapped[str] = mapped_column(
        String(20), default="manual", index=True
    )  # scan | email | manual
    image_url: Mapped[str | None] = mapped_column(Text)
    email_id: Mapped[str | None] = mapped_column(String(255))
    email_account_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("email_accounts.id", ondelete="SET NULL"), nullable=True
    )
    # ── Organisation (referenced, never owned) ─────────────────────────────────
    folder_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("vault_folders.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    life_stack_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("life_stacks.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("now()")
    )
