from sqlalchemy import Column, Integer, String, DateTime, Boolean, Float, ForeignKey
from sqlalchemy.orm import relationship
from shortener_app.database.connection import Base


class ShortUrlRecord(Base):
    """
    Durable short URL row.

    The UNIQUE constraint on shortcode is what makes concurrent inserts of
    the same code safe: the second writer gets an IntegrityError.
    """
    __tablename__ = "short_urls"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    original_url = Column(String, nullable=False)
    # Note: unique=True automatically creates an index in SQLAlchemy
    shortcode = Column(String(20), unique=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    # Indexed for the expiry sweep
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
    validity_minutes = Column(Integer, nullable=False, default=30)
    is_active = Column(Boolean, default=True)

    clicks = relationship(
        "ClickRecord",
        back_populates="short_url",
        order_by="ClickRecord.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ClickRecord(Base):
    """One redirect, append-only. Row id order is chronological order."""
    __tablename__ = "clicks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    short_url_id = Column(
        Integer,
        ForeignKey("short_urls.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    timestamp = Column(DateTime(timezone=True), nullable=False)
    source_ip = Column(String, nullable=False)
    referrer = Column(String, nullable=False, default="direct")
    user_agent = Column(String, nullable=False)
    country = Column(String, default="Unknown")
    region = Column(String, default="Unknown")
    city = Column(String, default="Unknown")
    latitude = Column(Float, default=0)
    longitude = Column(Float, default=0)

    short_url = relationship("ShortUrlRecord", back_populates="clicks")
