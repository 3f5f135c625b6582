"""Platform-wide settings (single row)."""
from sqlalchemy import Column, Integer, String, DateTime
from academy_admin.database import Base, utcnow


class PlatformSettings(Base):
    """Support contacts and branding shown on blocked-access screens."""

    __tablename__ = 'platform_settings'

    id = Column(Integer, primary_key=True, default=1)
    support_email = Column(String(255), nullable=True)
    support_phone = Column(String(50), nullable=True)
    support_whatsapp = Column(String(50), nullable=True)
    brand_domain = Column(String(255), nullable=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self):
        return f"<PlatformSettings(support_email='{self.support_email}')>"
