"""
Servicios de recursos humanos

- Departamentos (nombre único por empresa)
- Empleados con número del contador `employee` y soft delete
- Solicitudes de permiso: días inclusivos, sin solapes, revisión solo en pendiente
- Nómina: bruto = base + horas extra × tarifa + bonos; neto = bruto − deducciones − impuestos
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import or_
from decimal import Decimal
from typing import Optional
from uuid import UUID, uuid4
from datetime import date, datetime, timezone
import logging

from erp.core.config import settings
from erp.common.calculations import money
from erp.common.transactions import service_transaction
from erp.modules.numbering.service import NumberingService
from erp.modules.hr.models import (
    Department, Employee, LeaveRequest, LeaveStatus, PayrollRecord, PayrollStatus
)
from erp.modules.hr.schemas import (
    DepartmentCreate, DepartmentUpdate, EmployeeCreate, EmployeeUpdate, EmployeeList,
    LeaveRequestCreate, LeaveRequestList, PayrollCreate, PayrollUpdate, PayrollList
)

logger = logging.getLogger(__name__)

BLOCKING_LEAVE_STATUSES = (LeaveStatus.PENDING.value, LeaveStatus.APPROVED.value)


class DepartmentService:
    """Departamentos"""

    def __init__(self, db: Session):
        self.db = db

    def create_department(self, data: DepartmentCreate, tenant_id: UUID) -> Department:
        if data.manager_id:
            EmployeeService(self.db).require_active_employee(data.manager_id, tenant_id)

        with service_transaction(self.db, "Error interno al crear el departamento", "Ya existe un departamento con ese nombre"):
            department = Department(tenant_id=tenant_id, **data.model_dump())
            self.db.add(department)

        self.db.refresh(department)
        logger.info(f"Department '{department.name}' created for tenant {tenant_id}")
        return department

    def get_departments(self, tenant_id: UUID, include_inactive: bool = False):
        query = self.db.query(Department).filter(Department.tenant_id == tenant_id)
        if not include_inactive:
            query = query.filter(Department.is_active == True)
        return query.order_by(Department.name).all()

    def get_department(self, department_id: UUID, tenant_id: UUID) -> Department:
        department = self.db.query(Department).filter(
            Department.id == department_id,
            Department.tenant_id == tenant_id
        ).first()
        if not department:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Departamento no encontrado")
        return department

    def update_department(self, department_id: UUID, data: DepartmentUpdate, tenant_id: UUID) -> Department:
        department = self.get_department(department_id, tenant_id)
        values = data.model_dump(exclude_unset=True)
        if values.get("manager_id"):
            EmployeeService(self.db).require_active_employee(values["manager_id"], tenant_id)

        with service_transaction(self.db, "Error interno al actualizar el departamento", "Ya existe un departamento con ese nombre"):
            for field, value in values.items():
                setattr(department, field, value)

        self.db.refresh(department)
        return department

    def delete_department(self, department_id: UUID, tenant_id: UUID) -> None:
        department = self.get_department(department_id, tenant_id)
        assigned = self.db.query(Employee).filter(
            Employee.tenant_id == tenant_id,
            Employee.department_id == department.id,
            Employee.status == "active"
        ).count()
        if assigned:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"El departamento tiene {assigned} empleado(s) activo(s)"
            )
        department.is_active = False
        self.db.commit()


class EmployeeService:
    """Empleados"""

    def __init__(self, db: Session):
        self.db = db

    def _check_department(self, department_id: Optional[UUID], tenant_id: UUID) -> None:
        if department_id is None:
            return
        department = self.db.query(Department).filter(
            Department.id == department_id,
            Department.tenant_id == tenant_id,
            Department.is_active == True
        ).first()
        if not department:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El departamento especificado no existe o está inactivo"
            )

    def create_employee(self, data: EmployeeCreate, tenant_id: UUID, user_id: UUID) -> Employee:
        self._check_department(data.department_id, tenant_id)
        if data.manager_id:
            self.require_active_employee(data.manager_id, tenant_id)

        with service_transaction(self.db, "Error interno al crear el empleado", "Ya existe un empleado con ese número o email"):
            employee_id = uuid4()
            number = NumberingService(self.db).assign_document_number(
                Employee, "employee_number", tenant_id, "employee",
                explicit_number=data.employee_number, reference_id=str(employee_id), created_by=user_id
            )
            values = data.model_dump(exclude={"employee_number"})
            values["country"] = values.get("country") or settings.DEFAULT_COUNTRY
            employee = Employee(id=employee_id, tenant_id=tenant_id, employee_number=number,
                                created_by=user_id, **values)
            self.db.add(employee)

        self.db.refresh(employee)
        logger.info(f"Employee {employee.employee_number} created for tenant {tenant_id}")
        return employee

    def get_employees(self, tenant_id: UUID, limit: int = 100, offset: int = 0,
                      search: Optional[str] = None, department_id: Optional[UUID] = None,
                      include_inactive: bool = False) -> EmployeeList:
        query = self.db.query(Employee).filter(Employee.tenant_id == tenant_id)
        if not include_inactive:
            query = query.filter(Employee.status == "active")
        if department_id:
            query = query.filter(Employee.department_id == department_id)
        if search:
            term = f"%{search}%"
            query = query.filter(or_(
                Employee.first_name.ilike(term),
                Employee.last_name.ilike(term),
                Employee.email.ilike(term),
                Employee.employee_number.ilike(term)
            ))
        total = query.count()
        employees = query.order_by(Employee.employee_number).offset(offset).limit(limit).all()
        return EmployeeList(items=employees, total=total, limit=limit, offset=offset)

    def get_employee(self, employee_id: UUID, tenant_id: UUID, include_deleted: bool = False) -> Employee:
        query = self.db.query(Employee).filter(Employee.id == employee_id, Employee.tenant_id == tenant_id)
        if not include_deleted:
            query = query.filter(Employee.status == "active")
        employee = query.first()
        if not employee:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Empleado no encontrado")
        return employee

    def require_active_employee(self, employee_id: UUID, tenant_id: UUID) -> Employee:
        employee = self.db.query(Employee).filter(
            Employee.id == employee_id,
            Employee.tenant_id == tenant_id
        ).first()
        if not employee or employee.is_deleted:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El empleado especificado no existe, está inactivo o no pertenece a esta empresa"
            )
        return employee

    def update_employee(self, employee_id: UUID, data: EmployeeUpdate, tenant_id: UUID) -> Employee:
        employee = self.get_employee(employee_id, tenant_id)
        values = data.model_dump(exclude_unset=True)
        if "department_id" in values:
            self._check_department(values["department_id"], tenant_id)
        if values.get("manager_id"):
            if values["manager_id"] == employee.id:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST,
                                    detail="Un empleado no puede ser su propio jefe")
            self.require_active_employee(values["manager_id"], tenant_id)

        with service_transaction(self.db, "Error interno al actualizar el empleado", "Ya existe un empleado con ese email"):
            for field, value in values.items():
                setattr(employee, field, value)

        self.db.refresh(employee)
        return employee

    def delete_employee(self, employee_id: UUID, tenant_id: UUID) -> None:
        employee = self.get_employee(employee_id, tenant_id)
        employee.soft_delete()
        self.db.commit()
        logger.info(f"Employee {employee.employee_number} deactivated")

    def restore_employee(self, employee_id: UUID, tenant_id: UUID) -> Employee:
        employee = self.get_employee(employee_id, tenant_id, include_deleted=True)
        if not employee.is_deleted:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El empleado ya está activo")
        employee.restore()
        self.db.commit()
        self.db.refresh(employee)
        return employee


class LeaveService:
    """Solicitudes de permiso"""

    def __init__(self, db: Session):
        self.db = db

    def create_request(self, data: LeaveRequestCreate, tenant_id: UUID) -> LeaveRequest:
        employee = EmployeeService(self.db).require_active_employee(data.employee_id, tenant_id)

        overlapping = self.db.query(LeaveRequest).filter(
            LeaveRequest.tenant_id == tenant_id,
            LeaveRequest.employee_id == employee.id,
            LeaveRequest.status.in_(BLOCKING_LEAVE_STATUSES),
            LeaveRequest.start_date <= data.end_date,
            LeaveRequest.end_date >= data.start_date
        ).first()
        if overlapping:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"El empleado ya tiene un permiso entre {overlapping.start_date} y {overlapping.end_date}"
            )

        with service_transaction(self.db, "Error interno al crear la solicitud de permiso"):
            leave = LeaveRequest(
                tenant_id=tenant_id,
                employee_id=employee.id,
                leave_type=data.leave_type.value,
                start_date=data.start_date,
                end_date=data.end_date,
                days_requested=(data.end_date - data.start_date).days + 1,
                reason=data.reason
            )
            self.db.add(leave)

        self.db.refresh(leave)
        logger.info(f"Leave request of {leave.days_requested} day(s) for employee {employee.employee_number}")
        return leave

    def get_requests(self, tenant_id: UUID, limit: int = 100, offset: int = 0,
                     status_filter: Optional[str] = None, employee_id: Optional[UUID] = None) -> LeaveRequestList:
        query = self.db.query(LeaveRequest).filter(LeaveRequest.tenant_id == tenant_id)
        if status_filter:
            query = query.filter(LeaveRequest.status == status_filter)
        if employee_id:
            query = query.filter(LeaveRequest.employee_id == employee_id)
        total = query.count()
        requests = query.order_by(LeaveRequest.start_date.desc()).offset(offset).limit(limit).all()
        return LeaveRequestList(items=requests, total=total, limit=limit, offset=offset)

    def get_request(self, leave_id: UUID, tenant_id: UUID) -> LeaveRequest:
        leave = self.db.query(LeaveRequest).filter(
            LeaveRequest.id == leave_id,
            LeaveRequest.tenant_id == tenant_id
        ).first()
        if not leave:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Solicitud de permiso no encontrada")
        return leave

    def _review(self, leave_id: UUID, tenant_id: UUID, user_id: UUID, new_status: LeaveStatus,
                rejection_reason: Optional[str] = None) -> LeaveRequest:
        leave = self.get_request(leave_id, tenant_id)
        if leave.status != LeaveStatus.PENDING.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Solo se pueden revisar solicitudes pendientes (estado actual: {leave.status})"
            )
        leave.status = new_status.value
        leave.reviewed_by = user_id
        leave.reviewed_at = datetime.now(timezone.utc)
        leave.rejection_reason = rejection_reason
        self.db.commit()
        self.db.refresh(leave)
        logger.info(f"Leave request {leave.id} {new_status.value}")
        return leave

    def approve_request(self, leave_id: UUID, tenant_id: UUID, user_id: UUID) -> LeaveRequest:
        return self._review(leave_id, tenant_id, user_id, LeaveStatus.APPROVED)

    def reject_request(self, leave_id: UUID, tenant_id: UUID, user_id: UUID, reason: str) -> LeaveRequest:
        return self._review(leave_id, tenant_id, user_id, LeaveStatus.REJECTED, reason)

    def cancel_request(self, leave_id: UUID, tenant_id: UUID) -> LeaveRequest:
        leave = self.get_request(leave_id, tenant_id)
        if leave.status not in BLOCKING_LEAVE_STATUSES:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"No se puede cancelar una solicitud en estado {leave.status}"
            )
        if leave.status == LeaveStatus.APPROVED.value and leave.start_date <= date.today():
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No se puede cancelar un permiso aprobado que ya comenzó"
            )
        leave.status = LeaveStatus.CANCELLED.value
        self.db.commit()
        self.db.refresh(leave)
        return leave


def compute_pay(record: PayrollRecord) -> None:
    """Recalcula bruto y neto del registro. Neto negativo → 400."""
    gross = money(
        Decimal(record.base_salary)
        + Decimal(record.overtime_hours) * Decimal(record.overtime_rate)
        + Decimal(record.bonuses)
    )
    net = money(gross - Decimal(record.deductions) - Decimal(record.tax_deductions))
    if net < 0:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Las deducciones ({record.deductions} + {record.tax_deductions}) superan el salario bruto {gross}"
        )
    record.gross_pay = gross
    record.net_pay = net


class PayrollService:
    """Nómina"""

    def __init__(self, db: Session):
        self.db = db

    def create_record(self, data: PayrollCreate, tenant_id: UUID, user_id: UUID) -> PayrollRecord:
        employee = EmployeeService(self.db).require_active_employee(data.employee_id, tenant_id)

        record = PayrollRecord(
            tenant_id=tenant_id,
            employee_id=employee.id,
            pay_period_start=data.pay_period_start,
            pay_period_end=data.pay_period_end,
            base_salary=data.base_salary if data.base_salary is not None else employee.salary,
            overtime_hours=data.overtime_hours,
            overtime_rate=data.overtime_rate,
            bonuses=data.bonuses,
            deductions=data.deductions,
            tax_deductions=data.tax_deductions,
            status=PayrollStatus.DRAFT.value,
            notes=data.notes,
            created_by=user_id
        )
        compute_pay(record)

        with service_transaction(self.db, "Error interno al crear el registro de nómina",
                                 "Ya existe un registro de nómina para ese empleado y periodo"):
            self.db.add(record)

        self.db.refresh(record)
        logger.info(f"Payroll for {employee.employee_number} ({record.pay_period_start} - {record.pay_period_end}): net {record.net_pay}")
        return record

    def get_records(self, tenant_id: UUID, limit: int = 100, offset: int = 0,
                    status_filter: Optional[str] = None, employee_id: Optional[UUID] = None) -> PayrollList:
        query = self.db.query(PayrollRecord).filter(PayrollRecord.tenant_id == tenant_id)
        if status_filter:
            query = query.filter(PayrollRecord.status == status_filter)
        if employee_id:
            query = query.filter(PayrollRecord.employee_id == employee_id)
        total = query.count()
        records = query.order_by(PayrollRecord.pay_period_start.desc()).offset(offset).limit(limit).all()
        return PayrollList(items=records, total=total, limit=limit, offset=offset)

    def get_record(self, record_id: UUID, tenant_id: UUID) -> PayrollRecord:
        record = self.db.query(PayrollRecord).filter(
            PayrollRecord.id == record_id,
            PayrollRecord.tenant_id == tenant_id
        ).first()
        if not record:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Registro de nómina no encontrado")
        return record

    def _require_draft(self, record: PayrollRecord) -> None:
        if record.status != PayrollStatus.DRAFT.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Solo se pueden modificar registros en borrador (estado actual: {record.status})"
            )

    def update_record(self, record_id: UUID, data: PayrollUpdate, tenant_id: UUID) -> PayrollRecord:
        record = self.get_record(record_id, tenant_id)
        self._require_draft(record)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is not None:
                setattr(record, field, value)
        try:
            compute_pay(record)
        except HTTPException:
            self.db.rollback()
            raise
        self.db.commit()
        self.db.refresh(record)
        return record

    def approve_record(self, record_id: UUID, tenant_id: UUID, user_id: UUID) -> PayrollRecord:
        record = self.get_record(record_id, tenant_id)
        self._require_draft(record)
        record.status = PayrollStatus.APPROVED.value
        record.approved_by = user_id
        self.db.commit()
        self.db.refresh(record)
        logger.info(f"Payroll record {record.id} approved")
        return record

    def mark_paid(self, record_id: UUID, tenant_id: UUID) -> PayrollRecord:
        record = self.get_record(record_id, tenant_id)
        if record.status != PayrollStatus.APPROVED.value:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Solo se pueden pagar registros aprobados"
            )
        record.status = PayrollStatus.PAID.value
        record.paid_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(record)
        logger.info(f"Payroll record {record.id} paid")
        return record

    def delete_record(self, record_id: UUID, tenant_id: UUID) -> None:
        record = self.get_record(record_id, tenant_id)
        self._require_draft(record)
        self.db.delete(record)
        self.db.commit()
