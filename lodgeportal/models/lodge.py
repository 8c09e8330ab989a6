"""
Lodge model.
"""
from typing import Optional
from sqlalchemy import String, Text, Boolean, Float
from sqlalchemy.orm import Mapped, mapped_column
from lodgeportal.core.config import settings
from lodgeportal.models.base import BaseModel


class Lodge(BaseModel):
    """A lodge. The district grand lodge is an ordinary row found by name."""
    __tablename__ = "lodges"

    name: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    number: Mapped[str] = mapped_column(String(50), default="N/A", nullable=False)
    location: Mapped[str] = mapped_column(String(200), nullable=False, index=True)

    lat: Mapped[float] = mapped_column(Float, default=lambda: settings.DEFAULT_LODGE_LAT, nullable=False)
    lng: Mapped[float] = mapped_column(Float, default=lambda: settings.DEFAULT_LODGE_LNG, nullable=False)

    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    founded_year: Mapped[str] = mapped_column(String(20), default="", nullable=False)
    logo_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    background_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Free-form district label shared by the lodges of one district
    district: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, index=True)
    created_by: Mapped[Optional[str]] = mapped_column(String(24), nullable=True)

    def __repr__(self) -> str:
        return f"<Lodge {self.name}>"
