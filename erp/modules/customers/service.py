"""
Servicios de negocio para Clientes y Prospectos

- CRUD de clientes con número asignado por la numeración de documentos
- Soft delete (status='inactive') y restore
- Contactos y notas por cliente
- Prospectos (leads) y conversión a cliente
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import or_
from typing import Optional
from uuid import UUID, uuid4
from datetime import datetime, timezone
import logging

from erp.core.config import settings
from erp.modules.customers.models import Customer, CustomerContact, CustomerNote, Lead, LeadStatus, CustomerType
from erp.modules.customers.schemas import (
    CustomerCreate, CustomerUpdate, CustomerList, CustomerContactCreate, CustomerNoteCreate,
    LeadCreate, LeadUpdate, LeadList, LeadConvert
)
from erp.modules.numbering.service import NumberingService

logger = logging.getLogger(__name__)


class CustomerService:
    """Servicio principal para gestión de clientes"""

    def __init__(self, db: Session):
        self.db = db

    def create_customer(self, data: CustomerCreate, tenant_id: UUID, user_id: UUID) -> Customer:
        """Crear cliente; el número sale del contador 'customer' si no se envía"""
        try:
            customer = self._build_customer(data.model_dump(exclude={"customer_number"}), tenant_id, user_id,
                                            data.customer_number)
            self.db.commit()
            self.db.refresh(customer)
            logger.info(f"Customer {customer.customer_number} created for tenant {tenant_id}")
            return customer
        except HTTPException:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Ya existe un cliente con ese número"
            )
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Error creando cliente: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno al crear el cliente"
            )

    def _build_customer(self, values: dict, tenant_id: UUID, user_id: UUID,
                        customer_number: Optional[str] = None) -> Customer:
        customer_id = uuid4()
        number = NumberingService(self.db).assign_document_number(
            Customer, "customer_number", tenant_id, "customer",
            explicit_number=customer_number, reference_id=str(customer_id), created_by=user_id
        )
        values = {k: (v.value if isinstance(v, CustomerType) else v) for k, v in values.items()}
        values["country"] = values.get("country") or settings.DEFAULT_COUNTRY
        values["currency"] = values.get("currency") or settings.DEFAULT_CURRENCY

        customer = Customer(
            id=customer_id,
            tenant_id=tenant_id,
            customer_number=number,
            created_by=user_id,
            **values
        )
        self.db.add(customer)
        self.db.flush()
        return customer

    def get_customers(
        self,
        tenant_id: UUID,
        limit: int = 100,
        offset: int = 0,
        search: Optional[str] = None,
        customer_type: Optional[str] = None,
        include_inactive: bool = False
    ) -> CustomerList:
        """Listar clientes con búsqueda y filtros"""
        query = self.db.query(Customer).filter(Customer.tenant_id == tenant_id)

        if not include_inactive:
            query = query.filter(Customer.status == "active")

        if search:
            term = f"%{search}%"
            query = query.filter(
                or_(
                    Customer.first_name.ilike(term),
                    Customer.last_name.ilike(term),
                    Customer.company_name.ilike(term),
                    Customer.email.ilike(term),
                    Customer.customer_number.ilike(term)
                )
            )

        if customer_type:
            query = query.filter(Customer.customer_type == customer_type)

        total = query.count()
        customers = query.order_by(Customer.customer_number).offset(offset).limit(limit).all()

        return CustomerList(items=customers, total=total, limit=limit, offset=offset)

    def get_customer(self, customer_id: UUID, tenant_id: UUID, include_deleted: bool = False) -> Customer:
        query = self.db.query(Customer).filter(
            Customer.id == customer_id,
            Customer.tenant_id == tenant_id
        )
        if not include_deleted:
            query = query.filter(Customer.status == "active")

        customer = query.first()
        if not customer:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Cliente no encontrado"
            )
        return customer

    def update_customer(self, customer_id: UUID, data: CustomerUpdate, tenant_id: UUID) -> Customer:
        customer = self.get_customer(customer_id, tenant_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if isinstance(value, CustomerType):
                value = value.value
            setattr(customer, field, value)
        self.db.commit()
        self.db.refresh(customer)
        return customer

    def delete_customer(self, customer_id: UUID, tenant_id: UUID) -> None:
        """Soft delete: status='inactive'"""
        customer = self.get_customer(customer_id, tenant_id)
        customer.soft_delete()
        self.db.commit()
        logger.info(f"Customer {customer_id} deactivated")

    def restore_customer(self, customer_id: UUID, tenant_id: UUID) -> Customer:
        customer = self.get_customer(customer_id, tenant_id, include_deleted=True)
        if not customer.is_deleted:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El cliente no está eliminado"
            )
        customer.restore()
        self.db.commit()
        self.db.refresh(customer)
        return customer

    # ===== Contactos =====

    def add_contact(self, customer_id: UUID, data: CustomerContactCreate, tenant_id: UUID) -> CustomerContact:
        customer = self.get_customer(customer_id, tenant_id)
        if data.is_primary:
            self.db.query(CustomerContact).filter(
                CustomerContact.customer_id == customer.id,
                CustomerContact.is_primary == True
            ).update({"is_primary": False})

        contact = CustomerContact(customer_id=customer.id, tenant_id=tenant_id, **data.model_dump())
        self.db.add(contact)
        self.db.commit()
        self.db.refresh(contact)
        return contact

    def list_contacts(self, customer_id: UUID, tenant_id: UUID):
        customer = self.get_customer(customer_id, tenant_id)
        return self.db.query(CustomerContact).filter(
            CustomerContact.customer_id == customer.id
        ).order_by(CustomerContact.is_primary.desc(), CustomerContact.last_name).all()

    def delete_contact(self, customer_id: UUID, contact_id: UUID, tenant_id: UUID) -> None:
        contact = self.db.query(CustomerContact).filter(
            CustomerContact.id == contact_id,
            CustomerContact.customer_id == customer_id,
            CustomerContact.tenant_id == tenant_id
        ).first()
        if not contact:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contacto no encontrado")
        self.db.delete(contact)
        self.db.commit()

    # ===== Notas =====

    def add_note(self, customer_id: UUID, data: CustomerNoteCreate, tenant_id: UUID, user_id: UUID) -> CustomerNote:
        customer = self.get_customer(customer_id, tenant_id)
        note = CustomerNote(customer_id=customer.id, tenant_id=tenant_id, created_by=user_id, **data.model_dump())
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        return note

    def list_notes(self, customer_id: UUID, tenant_id: UUID):
        customer = self.get_customer(customer_id, tenant_id)
        return self.db.query(CustomerNote).filter(
            CustomerNote.customer_id == customer.id
        ).order_by(CustomerNote.is_important.desc(), CustomerNote.created_at.desc()).all()


class LeadService:
    """Prospectos y su conversión a clientes"""

    def __init__(self, db: Session):
        self.db = db

    def create_lead(self, data: LeadCreate, tenant_id: UUID, user_id: UUID) -> Lead:
        try:
            lead_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                Lead, "lead_number", tenant_id, "lead",
                explicit_number=data.lead_number, reference_id=str(lead_id), created_by=user_id
            )
            values = data.model_dump(exclude={"lead_number"})
            values["priority"] = data.priority.value
            values["country"] = values.get("country") or settings.DEFAULT_COUNTRY

            lead = Lead(id=lead_id, tenant_id=tenant_id, lead_number=number, created_by=user_id, **values)
            self.db.add(lead)
            self.db.commit()
            self.db.refresh(lead)
            logger.info(f"Lead {number} created for tenant {tenant_id}")
            return lead
        except HTTPException:
            self.db.rollback()
            raise
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ya existe un prospecto con ese número")
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Error creando prospecto: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno al crear el prospecto"
            )

    def get_leads(self, tenant_id: UUID, limit: int = 100, offset: int = 0,
                  status_filter: Optional[str] = None, search: Optional[str] = None) -> LeadList:
        query = self.db.query(Lead).filter(Lead.tenant_id == tenant_id)
        if status_filter:
            query = query.filter(Lead.status == status_filter)
        if search:
            term = f"%{search}%"
            query = query.filter(or_(
                Lead.first_name.ilike(term),
                Lead.last_name.ilike(term),
                Lead.company_name.ilike(term),
                Lead.email.ilike(term)
            ))
        total = query.count()
        leads = query.order_by(Lead.created_at.desc()).offset(offset).limit(limit).all()
        return LeadList(items=leads, total=total, limit=limit, offset=offset)

    def get_lead(self, lead_id: UUID, tenant_id: UUID) -> Lead:
        lead = self.db.query(Lead).filter(Lead.id == lead_id, Lead.tenant_id == tenant_id).first()
        if not lead:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Prospecto no encontrado")
        return lead

    def update_lead(self, lead_id: UUID, data: LeadUpdate, tenant_id: UUID) -> Lead:
        lead = self.get_lead(lead_id, tenant_id)
        if lead.status == LeadStatus.CONVERTED.value:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El prospecto ya fue convertido")
        for field, value in data.model_dump(exclude_unset=True).items():
            if hasattr(value, "value"):
                value = value.value
            setattr(lead, field, value)
        self.db.commit()
        self.db.refresh(lead)
        return lead

    def delete_lead(self, lead_id: UUID, tenant_id: UUID) -> None:
        lead = self.get_lead(lead_id, tenant_id)
        self.db.delete(lead)
        self.db.commit()

    def convert_lead(self, lead_id: UUID, data: LeadConvert, tenant_id: UUID, user_id: UUID):
        """
        Crear un cliente con los datos del prospecto. El cliente y el cambio
        de estado del prospecto se confirman en la misma transacción.
        """
        lead = self.get_lead(lead_id, tenant_id)
        if lead.status == LeadStatus.CONVERTED.value:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="El prospecto ya fue convertido")
        if lead.status == LeadStatus.LOST.value:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No se puede convertir un prospecto perdido")

        customer_type = data.customer_type or (
            CustomerType.BUSINESS if lead.company_name else CustomerType.INDIVIDUAL
        )
        try:
            customer = CustomerService(self.db)._build_customer({
                "customer_type": customer_type,
                "first_name": lead.first_name,
                "last_name": lead.last_name,
                "company_name": lead.company_name,
                "email": lead.email,
                "phone": lead.phone,
                "address_line1": lead.address,
                "city": lead.city,
                "country": lead.country,
                "lead_source": lead.source,
                "notes": lead.notes,
            }, tenant_id, user_id, data.customer_number)

            lead.status = LeadStatus.CONVERTED.value
            lead.converted_customer_id = customer.id
            lead.converted_at = datetime.now(timezone.utc)
            self.db.commit()
            self.db.refresh(lead)
            self.db.refresh(customer)
            logger.info(f"Lead {lead.lead_number} converted to customer {customer.customer_number}")
            return lead, customer
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Error convirtiendo prospecto: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno al convertir el prospecto"
            )
