"""Card model."""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Double, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.board_list import BoardList


class Card(Base, UUIDMixin, TimestampMixin):
    """Card ordered within a list."""

    __tablename__ = "cards"
    __table_args__ = (
        Index("ix_cards_list_position", "list_id", "position"),
    )

    list_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("board_lists.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[float] = mapped_column(Double, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relationships
    board_list: Mapped["BoardList"] = relationship("BoardList", back_populates="cards")

    @property
    def parent_id(self) -> uuid.UUID:
        return self.list_id
