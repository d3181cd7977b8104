from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Boolean, UniqueConstraint
from datetime import datetime

from repairflow.core.database import Base
from repairflow.core.types import GUID, generate_uuid


class Setting(Base):
    """Tenant-wide key/value configuration (company info, feature flags, install state)"""
    __tablename__ = "settings"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    key = Column(String(100), unique=True, nullable=False, index=True)
    # Values are strings; booleans are "true"/"false"
    value = Column(Text, nullable=False, default="")
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True, index=True)

    updated_by = Column(GUID, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Setting {self.key}>"


class SMSTemplate(Base):
    """Stored SMS template overriding the built-in text for one language"""
    __tablename__ = "sms_templates"
    __table_args__ = (UniqueConstraint("template_id", "language", name="uq_sms_template_language"),)

    id = Column(GUID, primary_key=True, default=generate_uuid)
    template_id = Column(String(50), nullable=False, index=True)
    language = Column(String(5), default="en", nullable=False)
    name = Column(String(100), nullable=False)
    message = Column(Text, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
