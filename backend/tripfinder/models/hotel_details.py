"""Hotel metadata cache — discovered hotels and their secondary-source enrichment."""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, DateTime, Numeric, String, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from tripfinder.database import Base


class HotelDetails(Base):
    __tablename__ = "hotel_details"

    hotel_id: Mapped[str] = mapped_column(String(20), primary_key=True)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    rating: Mapped[Decimal | None] = mapped_column(Numeric(3, 1))  # null until enriched
    amenities: Mapped[list | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"))
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
