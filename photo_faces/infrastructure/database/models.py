"""SQLAlchemy models for the embedding store."""
from typing import List

from sqlalchemy import JSON, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Person(Base):
    """A recurring identity with its reference descriptors."""

    __tablename__ = "persons"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    dimension: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        comment="Length of every descriptor of this person"
    )
    descriptors: Mapped[List[List[float]]] = mapped_column(
        JSON,
        nullable=False,
        comment="Ordered list of fixed-length float vectors"
    )

    detections: Mapped[List["Detection"]] = relationship(back_populates="person")


class Image(Base):
    """An image that has been examined by the indexer."""

    __tablename__ = "images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    path: Mapped[str] = mapped_column(String, unique=True, nullable=False)

    detections: Mapped[List["Detection"]] = relationship(back_populates="image")


class Detection(Base):
    """One face occurrence within one image, attributed to one person."""

    __tablename__ = "detections"
    __table_args__ = (
        Index("idx_detections_person_id", "person_id"),
        Index("idx_detections_image_id", "image_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    person_id: Mapped[int] = mapped_column(ForeignKey("persons.id"), nullable=False)
    image_id: Mapped[int] = mapped_column(ForeignKey("images.id"), nullable=False)
    box_x: Mapped[float] = mapped_column(Float, nullable=False)
    box_y: Mapped[float] = mapped_column(Float, nullable=False)
    box_width: Mapped[float] = mapped_column(Float, nullable=False)
    box_height: Mapped[float] = mapped_column(Float, nullable=False)

    person: Mapped[Person] = relationship(back_populates="detections")
    image: Mapped[Image] = relationship(back_populates="detections")
