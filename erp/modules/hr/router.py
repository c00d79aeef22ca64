"""
Router para recursos humanos

- /departments, /employees, /leave-requests, /payroll
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from erp.core.config import settings
from erp.database.database import get_db
from erp.modules.auth.dependencies import AuthDependencies
from erp.modules.hr.models import LeaveStatus, PayrollStatus
from erp.modules.hr.service import DepartmentService, EmployeeService, LeaveService, PayrollService
from erp.modules.hr.schemas import (
    DepartmentCreate, DepartmentUpdate, DepartmentOut,
    EmployeeCreate, EmployeeUpdate, EmployeeOut, EmployeeList,
    LeaveRequestCreate, LeaveReject, LeaveRequestOut, LeaveRequestList,
    PayrollCreate, PayrollUpdate, PayrollOut, PayrollList
)

HR_ROLES = ["owner", "admin", "hr"]
PAYROLL_ROLES = ["owner", "admin", "hr", "accountant"]
LEAVE_ROLES = ["owner", "admin", "hr", "seller", "accountant"]

departments_router = APIRouter(prefix="/departments", tags=["Departments"])
employees_router = APIRouter(prefix="/employees", tags=["Employees"])
leave_router = APIRouter(prefix="/leave-requests", tags=["Leave Requests"])
payroll_router = APIRouter(prefix="/payroll", tags=["Payroll"])


# ===== DEPARTAMENTOS =====

@departments_router.post("", response_model=DepartmentOut, status_code=status.HTTP_201_CREATED)
async def create_department(
    department_data: DepartmentCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(HR_ROLES))
):
    return DepartmentService(db).create_department(department_data, auth_context.tenant_id)


@departments_router.get("", response_model=List[DepartmentOut])
async def get_departments(
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(LEAVE_ROLES))
):
    return DepartmentService(db).get_departments(auth_context.tenant_id, include_inactive)


@departments_router.get("/{department_id}", response_model=DepartmentOut)
async def get_department(
    department_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(LEAVE_ROLES))
):
    return DepartmentService(db).get_department(department_id, auth_context.tenant_id)


@departments_router.put("/{department_id}", response_model=DepartmentOut)
async def update_department(
    department_id: UUID,
    department_data: DepartmentUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(HR_ROLES))
):
    return DepartmentService(db).update_department(department_id, department_data, auth_context.tenant_id)


@departments_router.delete("/{department_id}")
async def delete_department(
    department_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(HR_ROLES))
):
    """Desactivar departamento (sin empleados activos)"""
    DepartmentService(db).delete_department(department_id, auth_context.tenant_id)
    return {"message": "Departamento desactivado"}


# ===== EMPLEADOS =====

@employees_router.post("", response_model=EmployeeOut, status_code=status.HTTP_201_CREATED)
async def create_employee(
    employee_data: EmployeeCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(HR_ROLES))
):
    """
    Crear empleado

    - **employee_number**: opcional; si se omite se asigna del contador `employee`
    - **tax_number**: PIN de la KRA
    """
    return EmployeeService(db).create_employee(employee_data, auth_context.tenant_id, auth_context.user_id)


@employees_router.get("", response_model=EmployeeList)
async def get_employees(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    search: Optional[str] = Query(None),
    department_id: Optional[UUID] = Query(None),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PAYROLL_ROLES))
):
    return EmployeeService(db).get_employees(
        auth_context.tenant_id, limit, offset, search, department_id, include_inactive
    )


@employees_router.get("/{employee_id}", response_model=EmployeeOut)
async def get_employee(
    employee_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PAYROLL_ROLES))
):
    return EmployeeService(db).get_employee(employee_id, auth_context.tenant_id)


@employees_router.put("/{employee_id}", response_model=EmployeeOut)
async def update_employee(
    employee_id: UUID,
    employee_data: EmployeeUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(HR_ROLES))
):
    return EmployeeService(db).update_employee(employee_id, employee_data, auth_context.tenant_id)


@employees_router.delete("/{employee_id}")
async def delete_employee(
    employee_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(HR_ROLES))
):
    """Desactivar empleado (status='inactive')"""
    EmployeeService(db).delete_employee(employee_id, auth_context.tenant_id)
    return {"message": "Empleado desactivado"}


@employees_router.post("/{employee_id}/restore", response_model=EmployeeOut)
async def restore_employee(
    employee_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(HR_ROLES))
):
    return EmployeeService(db).restore_employee(employee_id, auth_context.tenant_id)


# ===== PERMISOS =====

@leave_router.post("", response_model=LeaveRequestOut, status_code=status.HTTP_201_CREATED)
async def create_leave_request(
    leave_data: LeaveRequestCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(LEAVE_ROLES))
):
    """
    Solicitar permiso

    Los días se cuentan de forma inclusiva (inicio y fin incluidos).
    No se admiten solapes con solicitudes pendientes o aprobadas.
    """
    return LeaveService(db).create_request(leave_data, auth_context.tenant_id)


@leave_router.get("", response_model=LeaveRequestList)
async def get_leave_requests(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    status_filter: Optional[LeaveStatus] = Query(None, alias="status"),
    employee_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(LEAVE_ROLES))
):
    return LeaveService(db).get_requests(
        auth_context.tenant_id, limit, offset,
        status_filter.value if status_filter else None, employee_id
    )


@leave_router.get("/{leave_id}", response_model=LeaveRequestOut)
async def get_leave_request(
    leave_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(LEAVE_ROLES))
):
    return LeaveService(db).get_request(leave_id, auth_context.tenant_id)


@leave_router.post("/{leave_id}/approve", response_model=LeaveRequestOut)
async def approve_leave_request(
    leave_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(HR_ROLES))
):
    return LeaveService(db).approve_request(leave_id, auth_context.tenant_id, auth_context.user_id)


@leave_router.post("/{leave_id}/reject", response_model=LeaveRequestOut)
async def reject_leave_request(
    leave_id: UUID,
    reject_data: LeaveReject,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(HR_ROLES))
):
    return LeaveService(db).reject_request(
        leave_id, auth_context.tenant_id, auth_context.user_id, reject_data.rejection_reason
    )


@leave_router.post("/{leave_id}/cancel", response_model=LeaveRequestOut)
async def cancel_leave_request(
    leave_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(LEAVE_ROLES))
):
    return LeaveService(db).cancel_request(leave_id, auth_context.tenant_id)


# ===== NÓMINA =====

@payroll_router.post("", response_model=PayrollOut, status_code=status.HTTP_201_CREATED)
async def create_payroll_record(
    payroll_data: PayrollCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PAYROLL_ROLES))
):
    """
    Registrar nómina de un empleado para un periodo

    - **gross_pay** = base_salary + overtime_hours × overtime_rate + bonuses
    - **net_pay** = gross_pay − deductions − tax_deductions
    """
    return PayrollService(db).create_record(payroll_data, auth_context.tenant_id, auth_context.user_id)


@payroll_router.get("", response_model=PayrollList)
async def get_payroll_records(
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    status_filter: Optional[PayrollStatus] = Query(None, alias="status"),
    employee_id: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PAYROLL_ROLES))
):
    return PayrollService(db).get_records(
        auth_context.tenant_id, limit, offset,
        status_filter.value if status_filter else None, employee_id
    )


@payroll_router.get("/{record_id}", response_model=PayrollOut)
async def get_payroll_record(
    record_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PAYROLL_ROLES))
):
    return PayrollService(db).get_record(record_id, auth_context.tenant_id)


@payroll_router.put("/{record_id}", response_model=PayrollOut)
async def update_payroll_record(
    record_id: UUID,
    payroll_data: PayrollUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PAYROLL_ROLES))
):
    return PayrollService(db).update_record(record_id, payroll_data, auth_context.tenant_id)


@payroll_router.post("/{record_id}/approve", response_model=PayrollOut)
async def approve_payroll_record(
    record_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(["owner", "admin"]))
):
    return PayrollService(db).approve_record(record_id, auth_context.tenant_id, auth_context.user_id)


@payroll_router.post("/{record_id}/pay", response_model=PayrollOut)
async def pay_payroll_record(
    record_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PAYROLL_ROLES))
):
    return PayrollService(db).mark_paid(record_id, auth_context.tenant_id)


@payroll_router.delete("/{record_id}")
async def delete_payroll_record(
    record_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(PAYROLL_ROLES))
):
    PayrollService(db).delete_record(record_id, auth_context.tenant_id)
    return {"message": "Registro de nómina eliminado"}
