"""
모드 카탈로그 모델
피드에서 임포트되는 모드, 카테고리, 모드-카테고리 연결 및 마지막 임포트 시각
"""
from datetime import datetime
from typing import List
from uuid import UUID

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, Table, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from modtinder.models.base import Base


# 모드-카테고리 연결 테이블 (임포트마다 전체 재구성)
mod_category = Table(
    "mod_category",
    Base.metadata,
    Column("mod_id", Uuid, ForeignKey("mods.id"), primary_key=True),
    Column("category_id", Integer, ForeignKey("categories.id"), primary_key=True),
)


class Category(Base):
    """모드 카테고리 (추가만 되고 삭제/변경되지 않음)"""
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, unique=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, name='{self.name}')>"


class Mod(Base):
    """모드 (임포트 시 id 기준으로 통째로 교체)"""
    __tablename__ = "mods"

    id: Mapped[UUID] = mapped_column(Uuid, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    icon_url: Mapped[str] = mapped_column(Text, nullable=False)
    full_name: Mapped[str] = mapped_column(Text, nullable=False)
    owner: Mapped[str] = mapped_column(Text, nullable=False)
    package_url: Mapped[str] = mapped_column(Text, nullable=False)
    updated_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)  # 피드 제공 값
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    deprecated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    nsfw: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    categories: Mapped[List[Category]] = relationship(
        secondary=mod_category,
        lazy="selectin",
        order_by=Category.name,
    )

    __table_args__ = (
        Index("idx_mods_updated_date", "updated_date"),
    )

    def __repr__(self) -> str:
        return f"<Mod(id={self.id}, name='{self.name}')>"


class ModsImportDate(Base):
    """마지막 임포트 완료 시각 (단일 행, id=0)"""
    __tablename__ = "mods_import_date"

    SINGLETON_ID = 0

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
