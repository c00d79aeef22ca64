from erp.database.database import Base
from erp.common.mixins import TimestampMixin
from erp.core.config import settings
from sqlalchemy import Column, String, Boolean, Uuid, Text
from sqlalchemy.orm import relationship
import uuid


class Company(Base, TimestampMixin):
    __tablename__ = "companies"

    id = Column(Uuid(as_uuid=True), primary_key=True, index=True, default=uuid.uuid4)
    name = Column(String(200), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    email = Column(String(255), nullable=True)
    phone_number = Column(String(30), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    country = Column(String(100), default=lambda: settings.DEFAULT_COUNTRY)
    currency = Column(String(3), default=lambda: settings.DEFAULT_CURRENCY)
    tax_pin = Column(String(20), nullable=True)
    is_active = Column(Boolean, default=True)

    user_companies = relationship("UserCompany", back_populates="company")
