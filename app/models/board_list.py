"""Board list model."""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Double, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base, TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.board import Board
    from app.models.card import Card


class BoardList(Base, UUIDMixin, TimestampMixin):
    """Ordered list of cards; itself ordered within its board."""

    __tablename__ = "board_lists"
    __table_args__ = (
        Index("ix_board_lists_board_position", "board_id", "position"),
    )

    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("boards.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[float] = mapped_column(Double, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    # Relationships
    board: Mapped["Board"] = relationship("Board", back_populates="lists")
    cards: Mapped[list["Card"]] = relationship(
        "Card",
        back_populates="board_list",
        cascade="all, delete-orphan",
        order_by="Card.position",
    )

    @property
    def parent_id(self) -> uuid.UUID:
        return self.board_id
