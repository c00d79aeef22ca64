from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List

from erp.database.database import get_db
from erp.modules.auth.dependencies import AuthDependencies, ALL_ROLES
from erp.modules.system_settings.service import SystemSettingsService
from erp.modules.system_settings.schemas import SettingUpdate, SettingOut, SettingsResetOut

ADMIN_ROLES = ["owner", "admin"]

system_settings_router = APIRouter(prefix="/system-settings", tags=["System Settings"])


@system_settings_router.get("", response_model=List[SettingOut])
async def get_settings(
    public_only: bool = Query(False, description="Solo parámetros visibles en documentos"),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return SystemSettingsService(db).get_settings(auth_context.tenant_id, public_only)


@system_settings_router.put("", response_model=SettingOut)
async def update_setting(
    setting_data: SettingUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    """
    Crear o actualizar un parámetro

    - **key**: minúsculas, dígitos, `_` y `.`
    - **value**: se guarda como texto y debe corresponder a **setting_type**
    """
    return SystemSettingsService(db).update_setting(setting_data, auth_context.tenant_id)


@system_settings_router.post("/reset", response_model=SettingsResetOut)
async def reset_settings(
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    """Borra todos los parámetros de la empresa y crea los valores por defecto"""
    restored = SystemSettingsService(db).reset_settings(auth_context.tenant_id)
    return {"message": "Parámetros restablecidos a los valores por defecto", "settings": restored}


@system_settings_router.get("/{key}", response_model=SettingOut)
async def get_setting(
    key: str,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return SystemSettingsService(db).get_setting(auth_context.tenant_id, key)


@system_settings_router.delete("/{key}")
async def delete_setting(
    key: str,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    SystemSettingsService(db).delete_setting(auth_context.tenant_id, key)
    return {"message": "Parámetro eliminado"}
