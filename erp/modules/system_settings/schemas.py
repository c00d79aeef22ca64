from pydantic import BaseModel, Field, field_validator, model_validator
from decimal import Decimal, InvalidOperation
from typing import Optional, List
from uuid import UUID
from datetime import datetime
import json

from erp.modules.system_settings.models import SettingType

SETTING_KEY_PATTERN = r"^[a-z][a-z0-9_.]*$"
BOOLEAN_VALUES = ("true", "false")


def check_value(setting_type: str, value: str) -> None:
    """El valor se guarda como texto; debe poder leerse con su tipo."""
    if setting_type == SettingType.NUMBER.value:
        try:
            Decimal(value)
        except InvalidOperation:
            raise ValueError(f"'{value}' no es un número")
    elif setting_type == SettingType.BOOLEAN.value:
        if value not in BOOLEAN_VALUES:
            raise ValueError("Un valor booleano debe ser 'true' o 'false'")
    elif setting_type == SettingType.JSON.value:
        try:
            json.loads(value)
        except ValueError:
            raise ValueError("El valor no es JSON válido")


class SettingUpdate(BaseModel):
    """Crear o reemplazar un parámetro por su clave."""
    key: str = Field(..., max_length=100, pattern=SETTING_KEY_PATTERN)
    value: str
    description: Optional[str] = Field(None, max_length=255)
    setting_type: SettingType = SettingType.STRING
    is_public: bool = False

    @field_validator("value", mode="before")
    @classmethod
    def stringify(cls, v):
        if isinstance(v, bool):
            return "true" if v else "false"
        if isinstance(v, (int, float, Decimal)):
            return str(v)
        return v

    @model_validator(mode="after")
    def validate_value(self):
        if self.setting_type == SettingType.BOOLEAN:
            self.value = self.value.strip().lower()
        check_value(self.setting_type.value, self.value)
        return self


class SettingOut(BaseModel):
    id: UUID
    key: str = Field(validation_alias="setting_key")
    value: str = Field(validation_alias="setting_value")
    setting_type: str
    description: Optional[str] = None
    is_public: bool
    updated_at: datetime

    class Config:
        from_attributes = True
        populate_by_name = True


class SettingsResetOut(BaseModel):
    message: str
    settings: List[SettingOut]
