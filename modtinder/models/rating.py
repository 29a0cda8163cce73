from enum import Enum
from uuid import UUID

from sqlalchemy import Enum as SQLEnum, ForeignKey, Index, Integer, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from modtinder.models.base import Base


class RatingType(str, Enum):
    """평가 종류"""
    LIKE = "Like"
    DISLIKE = "Dislike"


class ModRating(Base):
    """사용자별 모드 평가

    같은 (사용자, 모드) 쌍에 대한 재평가는 새 행으로 추가된다.
    """
    __tablename__ = "ratings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mod_id: Mapped[UUID] = mapped_column(Uuid, ForeignKey("mods.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), nullable=False)
    rating: Mapped[RatingType] = mapped_column(
        SQLEnum(RatingType, name="rating_type", values_callable=lambda e: [m.value for m in e]),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_ratings_user_mod", "user_id", "mod_id"),
    )
