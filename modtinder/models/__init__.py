"""
이 모듈은 모든 모델 클래스를 임포트하여 메타데이터에 등록합니다.
"""
from modtinder.models.base import Base
from modtinder.models.catalog import Category, Mod, ModsImportDate, mod_category
from modtinder.models.rating import ModRating, RatingType
from modtinder.models.user import User

__all__ = [
    "Base",
    "Category",
    "Mod",
    "ModsImportDate",
    "mod_category",
    "ModRating",
    "RatingType",
    "User",
]
