"""
Router para Clientes y Prospectos

Todos los endpoints requieren autenticación y están scoped por empresa.
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from erp.core.config import settings
from erp.database.database import get_db
from erp.modules.auth.dependencies import AuthDependencies, ALL_ROLES
from erp.modules.customers.service import CustomerService, LeadService
from erp.modules.customers.models import LeadStatus
from erp.modules.customers.schemas import (
    CustomerCreate, CustomerUpdate, CustomerOut, CustomerDetail, CustomerList,
    CustomerContactCreate, CustomerContactOut, CustomerNoteCreate, CustomerNoteOut,
    LeadCreate, LeadUpdate, LeadOut, LeadList, LeadConvert, LeadConversionOut
)

WRITE_ROLES = ["owner", "admin", "seller"]

customers_router = APIRouter(
    prefix="/customers",
    tags=["Customers"],
    responses={404: {"description": "Not found"}}
)

leads_router = APIRouter(
    prefix="/leads",
    tags=["Leads"],
    responses={404: {"description": "Not found"}}
)


# ===== CLIENTES =====

@customers_router.post("", response_model=CustomerOut, status_code=status.HTTP_201_CREATED)
async def create_customer(
    customer_data: CustomerCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    """
    Crear un nuevo cliente

    - **customer_number**: opcional; si se omite se asigna del contador `customer`
    - **customer_type**: individual o business
    - **tax_id**: PIN de la KRA (opcional)
    """
    return CustomerService(db).create_customer(customer_data, auth_context.tenant_id, auth_context.user_id)


@customers_router.get("", response_model=CustomerList)
async def get_customers(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    search: Optional[str] = Query(None, description="Nombre, email o número de cliente"),
    customer_type: Optional[str] = Query(None),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return CustomerService(db).get_customers(
        auth_context.tenant_id, limit, offset, search, customer_type, include_inactive
    )


@customers_router.get("/{customer_id}", response_model=CustomerDetail)
async def get_customer(
    customer_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return CustomerService(db).get_customer(customer_id, auth_context.tenant_id)


@customers_router.put("/{customer_id}", response_model=CustomerOut)
async def update_customer(
    customer_id: UUID,
    customer_data: CustomerUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return CustomerService(db).update_customer(customer_id, customer_data, auth_context.tenant_id)


@customers_router.delete("/{customer_id}")
async def delete_customer(
    customer_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(["owner", "admin"]))
):
    """Soft delete: el cliente queda con status='inactive'"""
    CustomerService(db).delete_customer(customer_id, auth_context.tenant_id)
    return {"message": "Cliente eliminado exitosamente"}


@customers_router.post("/{customer_id}/restore", response_model=CustomerOut)
async def restore_customer(
    customer_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(["owner", "admin"]))
):
    return CustomerService(db).restore_customer(customer_id, auth_context.tenant_id)


@customers_router.post("/{customer_id}/contacts", response_model=CustomerContactOut, status_code=status.HTTP_201_CREATED)
async def add_contact(
    customer_id: UUID,
    contact_data: CustomerContactCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return CustomerService(db).add_contact(customer_id, contact_data, auth_context.tenant_id)


@customers_router.get("/{customer_id}/contacts", response_model=List[CustomerContactOut])
async def list_contacts(
    customer_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return CustomerService(db).list_contacts(customer_id, auth_context.tenant_id)


@customers_router.delete("/{customer_id}/contacts/{contact_id}")
async def delete_contact(
    customer_id: UUID,
    contact_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    CustomerService(db).delete_contact(customer_id, contact_id, auth_context.tenant_id)
    return {"message": "Contacto eliminado"}


@customers_router.post("/{customer_id}/notes", response_model=CustomerNoteOut, status_code=status.HTTP_201_CREATED)
async def add_note(
    customer_id: UUID,
    note_data: CustomerNoteCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return CustomerService(db).add_note(customer_id, note_data, auth_context.tenant_id, auth_context.user_id)


@customers_router.get("/{customer_id}/notes", response_model=List[CustomerNoteOut])
async def list_notes(
    customer_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return CustomerService(db).list_notes(customer_id, auth_context.tenant_id)


# ===== PROSPECTOS =====

@leads_router.post("", response_model=LeadOut, status_code=status.HTTP_201_CREATED)
async def create_lead(
    lead_data: LeadCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return LeadService(db).create_lead(lead_data, auth_context.tenant_id, auth_context.user_id)


@leads_router.get("", response_model=LeadList)
async def get_leads(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    lead_status: Optional[LeadStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return LeadService(db).get_leads(
        auth_context.tenant_id, limit, offset,
        lead_status.value if lead_status else None, search
    )


@leads_router.get("/{lead_id}", response_model=LeadOut)
async def get_lead(
    lead_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return LeadService(db).get_lead(lead_id, auth_context.tenant_id)


@leads_router.put("/{lead_id}", response_model=LeadOut)
async def update_lead(
    lead_id: UUID,
    lead_data: LeadUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    return LeadService(db).update_lead(lead_id, lead_data, auth_context.tenant_id)


@leads_router.delete("/{lead_id}")
async def delete_lead(
    lead_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(["owner", "admin"]))
):
    LeadService(db).delete_lead(lead_id, auth_context.tenant_id)
    return {"message": "Prospecto eliminado"}


@leads_router.post("/{lead_id}/convert", response_model=LeadConversionOut)
async def convert_lead(
    lead_id: UUID,
    convert_data: Optional[LeadConvert] = None,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(WRITE_ROLES))
):
    """Convertir el prospecto en cliente (asigna número de cliente)."""
    lead, customer = LeadService(db).convert_lead(
        lead_id, convert_data or LeadConvert(), auth_context.tenant_id, auth_context.user_id
    )
    return LeadConversionOut(lead=lead, customer=customer)
