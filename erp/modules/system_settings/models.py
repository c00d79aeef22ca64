from sqlalchemy import Column, String, Boolean, Text, UniqueConstraint
from enum import Enum

from erp.database.database import Base
from erp.common.mixins import BaseMixin


class SettingType(str, Enum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


class SystemSetting(Base, BaseMixin):
    __tablename__ = "system_settings"

    setting_key = Column(String(100), nullable=False)
    setting_value = Column(Text, nullable=False, default="")
    setting_type = Column(String(20), nullable=False, default=SettingType.STRING.value)
    description = Column(String(255), nullable=True)
    is_public = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "setting_key", name="uq_system_setting_tenant_key"),
    )
