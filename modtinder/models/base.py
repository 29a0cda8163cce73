from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """기본 모델 클래스"""
