"""
Parámetros generales de la empresa

Pares clave/valor por empresa. El valor se guarda como texto junto con su
tipo (string, number, boolean, json). Reset borra todo y vuelve a los
valores por defecto.
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID
import logging

from erp.core.config import settings
from erp.common.transactions import service_transaction
from erp.modules.company.models import Company
from erp.modules.system_settings.models import SystemSetting, SettingType
from erp.modules.system_settings.schemas import SettingUpdate

logger = logging.getLogger(__name__)


def default_settings(company: Company) -> List[dict]:
    return [
        dict(setting_key="company_name", setting_value=company.name, setting_type=SettingType.STRING.value,
             description="Nombre de la empresa en los documentos", is_public=True),
        dict(setting_key="currency", setting_value=company.currency or settings.DEFAULT_CURRENCY,
             setting_type=SettingType.STRING.value, description="Moneda por defecto", is_public=True),
        dict(setting_key="timezone", setting_value="Africa/Nairobi", setting_type=SettingType.STRING.value,
             description="Zona horaria", is_public=True),
        dict(setting_key="email_notifications", setting_value="true", setting_type=SettingType.BOOLEAN.value,
             description="Notificaciones por email", is_public=False),
        dict(setting_key="sms_notifications", setting_value="false", setting_type=SettingType.BOOLEAN.value,
             description="Notificaciones por SMS", is_public=False),
        dict(setting_key="tax_rate", setting_value="16", setting_type=SettingType.NUMBER.value,
             description="IVA por defecto (%)", is_public=True),
        dict(setting_key="invoice_due_days", setting_value="30", setting_type=SettingType.NUMBER.value,
             description="Días de vencimiento de facturas", is_public=True),
    ]


class SystemSettingsService:

    def __init__(self, db: Session):
        self.db = db

    def get_settings(self, tenant_id: UUID, public_only: bool = False) -> List[SystemSetting]:
        query = self.db.query(SystemSetting).filter(SystemSetting.tenant_id == tenant_id)
        if public_only:
            query = query.filter(SystemSetting.is_public == True)
        return query.order_by(SystemSetting.setting_key).all()

    def get_setting(self, tenant_id: UUID, key: str) -> SystemSetting:
        setting = self.db.query(SystemSetting).filter(
            SystemSetting.tenant_id == tenant_id,
            SystemSetting.setting_key == key
        ).first()
        if not setting:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Parámetro no encontrado: {key}")
        return setting

    def update_setting(self, data: SettingUpdate, tenant_id: UUID) -> SystemSetting:
        """Crear el parámetro o reemplazar su valor si la clave ya existe."""
        setting = self.db.query(SystemSetting).filter(
            SystemSetting.tenant_id == tenant_id,
            SystemSetting.setting_key == data.key
        ).first()

        with service_transaction(self.db, "Error interno al guardar el parámetro", "El parámetro ya existe"):
            if setting is None:
                setting = SystemSetting(tenant_id=tenant_id, setting_key=data.key)
                self.db.add(setting)
            setting.setting_value = data.value
            setting.setting_type = data.setting_type.value
            setting.description = data.description
            setting.is_public = data.is_public

        self.db.refresh(setting)
        logger.info(f"Setting '{data.key}' saved for tenant {tenant_id}")
        return setting

    def delete_setting(self, tenant_id: UUID, key: str) -> None:
        setting = self.get_setting(tenant_id, key)
        self.db.delete(setting)
        self.db.commit()

    def reset_settings(self, tenant_id: UUID) -> List[SystemSetting]:
        company = self.db.query(Company).filter(Company.id == tenant_id).first()
        if not company:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Empresa no encontrada")

        with service_transaction(self.db, "Error interno al restablecer los parámetros"):
            self.db.query(SystemSetting).filter(SystemSetting.tenant_id == tenant_id).delete(
                synchronize_session=False
            )
            # el DELETE debe llegar antes que los INSERT de las mismas claves
            self.db.flush()
            for values in default_settings(company):
                self.db.add(SystemSetting(tenant_id=tenant_id, **values))

        logger.info(f"Settings reset to defaults for tenant {tenant_id}")
        return self.get_settings(tenant_id)
