"""Declarative base for FLAIM-AUTH SQLAlchemy models."""

from sqlalchemy.orm import DeclarativeBase


class BaseEntity(DeclarativeBase):
    """Base class for all FLAIM-AUTH database entities."""
