"""
Router para la numeración de documentos

- Configuración por tipo de documento (prefijo, sufijo, formato, reinicio)
- Asignación atómica de números y consulta del siguiente
- Vista previa, reinicio, sincronización e historial de números emitidos
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional

from erp.database.database import get_db
from erp.modules.auth.dependencies import AuthDependencies, ALL_ROLES
from erp.modules.numbering.service import NumberingService
from erp.modules.numbering.schemas import (
    NumberSettingCreate, NumberSettingUpdate, NumberSettingOut, GeneratedNumber,
    NextNumberOut, PreviewRequest, PreviewOut, ResetRequest, ResetOut,
    BulkFormatUpdate, BulkFormatUpdateOut, FormatInfo, DocumentTypeOut,
    InitializeOut, SyncOut, DocumentSequenceList
)

ISSUER_ROLES = ["owner", "admin", "seller", "accountant", "hr"]
ADMIN_ROLES = ["owner", "admin"]

settings_router = APIRouter(
    prefix="/number-generation-settings",
    tags=["Number Generation"],
    responses={404: {"description": "Not found"}}
)

generation_router = APIRouter(
    prefix="/number-generation",
    tags=["Number Generation"],
    responses={404: {"description": "Not found"}}
)

generate_router = APIRouter(tags=["Number Generation"])


# ===== CONFIGURACIÓN =====

@settings_router.get("", response_model=List[NumberSettingOut])
async def list_settings(
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return NumberingService(db).list_settings(auth_context.tenant_id)


@settings_router.post("", response_model=NumberSettingOut, status_code=status.HTTP_201_CREATED)
async def create_setting(
    data: NumberSettingCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    """
    Crear configuración para un tipo de documento (incluye tipos propios).

    - **format**: uno de los formatos de /number-generation/formats
    - **custom_format**: obligatorio con format=custom, debe incluir {SEQ} o {NNNN}
    - **reset_frequency**: never, daily, monthly, yearly
    """
    return NumberingService(db).create_setting(auth_context.tenant_id, data)


@settings_router.post("/initialize", response_model=InitializeOut)
async def initialize_settings(
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    """Crear las configuraciones por defecto que falten."""
    created = NumberingService(db).initialize_defaults(auth_context.tenant_id)
    return InitializeOut(created=created, message=f"{created} configuraciones creadas")


@settings_router.get("/{document_type}", response_model=NumberSettingOut)
async def get_setting(
    document_type: str,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return NumberingService(db).get_setting(auth_context.tenant_id, document_type)


@settings_router.put("/{document_type}", response_model=NumberSettingOut)
async def update_setting(
    document_type: str,
    data: NumberSettingUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    return NumberingService(db).update_setting(auth_context.tenant_id, document_type, data)


@settings_router.delete("/{document_type}")
async def delete_setting(
    document_type: str,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    NumberingService(db).delete_setting(auth_context.tenant_id, document_type)
    return {"message": f"Configuración de {document_type} eliminada"}


# ===== CATÁLOGOS =====

@generation_router.get("/formats", response_model=List[FormatInfo])
async def get_formats(auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))):
    return NumberingService.get_formats()


@generation_router.put("/formats", response_model=BulkFormatUpdateOut)
async def update_all_formats(
    data: BulkFormatUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    """Aplicar el mismo formato a todos los tipos de documento activos."""
    return NumberingService(db).update_all_formats(auth_context.tenant_id, data)


@generation_router.get("/document-types", response_model=List[DocumentTypeOut])
async def get_document_types(auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))):
    return NumberingService.get_document_types()


# ===== CONTADOR =====

@generation_router.post("/{document_type}/generate", response_model=GeneratedNumber)
async def generate_number(
    document_type: str,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ISSUER_ROLES))
):
    """Asignar el siguiente número. Cada llamada consume un número distinto."""
    return NumberingService(db).generate(auth_context.tenant_id, document_type, created_by=auth_context.user_id)


@generate_router.post("/generate-number/{document_type}", response_model=GeneratedNumber)
async def generate_number_legacy(
    document_type: str,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ISSUER_ROLES))
):
    return NumberingService(db).generate(auth_context.tenant_id, document_type, created_by=auth_context.user_id)


@generation_router.get("/{document_type}/next", response_model=NextNumberOut)
async def get_next_number(
    document_type: str,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    """Siguiente número sin consumirlo."""
    return NumberingService(db).peek_next(auth_context.tenant_id, document_type)


@generation_router.post("/{document_type}/preview", response_model=PreviewOut)
async def preview_number(
    document_type: str,
    data: PreviewRequest,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return NumberingService(db).preview(auth_context.tenant_id, document_type, data)


@generation_router.post("/{document_type}/reset", response_model=ResetOut)
async def reset_counter(
    document_type: str,
    data: Optional[ResetRequest] = None,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    """Reiniciar el contador en `value` o en start_number."""
    return NumberingService(db).reset_counter(auth_context.tenant_id, document_type, data.value if data else None)


@generation_router.post("/{document_type}/sync", response_model=SyncOut)
async def sync_counter(
    document_type: str,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ADMIN_ROLES))
):
    return NumberingService(db).sync_counter(auth_context.tenant_id, document_type)


@generation_router.get("/{document_type}/history", response_model=DocumentSequenceList)
async def get_history(
    document_type: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return NumberingService(db).history(auth_context.tenant_id, document_type, limit, offset)
