"""Transformation history log model."""

from datetime import UTC, datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class TransformationLog(Base):
    """One finished transformation, successful or not.

    Rows are pruned to the configured entry limit, oldest first.
    """

    __tablename__ = "transformation_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        index=True,
    )
    transformation_id: Mapped[str] = mapped_column(String(100), nullable=False)
    transformation_name: Mapped[str] = mapped_column(String(200), nullable=False)
    provider_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    model_used: Mapped[str | None] = mapped_column(String(200), nullable=True)
    system_prompt: Mapped[str | None] = mapped_column(
        Text, nullable=True, comment="Prompt sent to the LLM, if any"
    )
    input_text: Mapped[str] = mapped_column(Text, nullable=False)
    output_text: Mapped[str] = mapped_column(Text, nullable=False, default="")
    input_char_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processing_time_ms: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    was_successful: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<TransformationLog(id={self.id}, "
            f"transformation_id={self.transformation_id}, "
            f"was_successful={self.was_successful})>"
        )
