"""Declarative base for gateway models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all gateway SQLAlchemy models."""

    pass
