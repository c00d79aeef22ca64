from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload
from sqlalchemy.exc import IntegrityError
from uuid import UUID
from typing import List
import logging

from erp.modules.auth.models import User, UserCompany, UserRole
from erp.modules.company.models import Company
from erp.modules.company.schemas import (
    CompanyCreate, CompanyCreateResponse, CompanyOutWithRole, AddUserToCompany,
    CompanyUserOut, CompanyUsersResponse
)
from erp.modules.numbering.service import NumberingService
from erp.core.config import settings

logger = logging.getLogger(__name__)


def create_company(db: Session, company_data: CompanyCreate, current_user: User, commit: bool = True) -> CompanyCreateResponse:
    """
    Create a new company in the database.

    The creator becomes the owner and the default numbering settings
    are seeded for the new tenant in the same transaction.
    """
    if db.query(Company).filter(Company.name == company_data.name).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ya existe una empresa con ese nombre")

    values = company_data.model_dump()
    values["country"] = values.get("country") or settings.DEFAULT_COUNTRY
    values["currency"] = values.get("currency") or settings.DEFAULT_CURRENCY

    try:
        company = Company(**values)
        db.add(company)
        db.flush()

        db.add(UserCompany(
            user_id=current_user.id,
            company_id=company.id,
            is_active=True,
            role=UserRole.OWNER.value
        ))

        created = NumberingService(db).initialize_defaults(company.id, commit=False)

        if commit:
            db.commit()
            db.refresh(company)
        else:
            db.flush()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ya existe una empresa con ese nombre")

    logger.info(f"Company {company.id} created by user {current_user.id}")

    response = CompanyCreateResponse.model_validate(company)
    response.numbering_settings_created = created
    return response


def get_companies_for_user(db: Session, user_id: UUID) -> List[CompanyOutWithRole]:
    """
    Get all active companies of a user with the role held in each one.
    """
    memberships = db.query(UserCompany).options(
        selectinload(UserCompany.company)
    ).filter(
        UserCompany.user_id == user_id,
        UserCompany.is_active == True
    ).all()

    result = []
    for membership in memberships:
        data = CompanyOutWithRole.model_validate(
            {**_company_dict(membership.company), "role": membership.role}
        )
        result.append(data)
    return result


def get_company(db: Session, company_id: UUID, current_user: User) -> CompanyOutWithRole:
    membership = _get_membership(db, company_id, current_user.id)
    return CompanyOutWithRole.model_validate(
        {**_company_dict(membership.company), "role": membership.role}
    )


def add_user_to_company(db: Session, company_id: UUID, data: AddUserToCompany, current_user: User) -> CompanyUserOut:
    """
    Add an existing user to the company with a specific role.
    Only owners and admins of the company can do it.
    """
    caller = _get_membership(db, company_id, current_user.id)
    if caller.role not in (UserRole.OWNER.value, UserRole.ADMIN.value):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Solo owner o admin pueden agregar usuarios")
    if data.role == UserRole.OWNER and caller.role != UserRole.OWNER.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Solo un owner puede asignar el rol owner")

    user = db.query(User).filter(User.email == data.email).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado")

    membership = db.query(UserCompany).filter(
        UserCompany.user_id == user.id,
        UserCompany.company_id == company_id
    ).first()

    if membership and membership.is_active:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="El usuario ya pertenece a esta empresa")

    if membership:
        membership.is_active = True
        membership.role = data.role.value
    else:
        membership = UserCompany(
            user_id=user.id,
            company_id=company_id,
            role=data.role.value,
            is_active=True
        )
        db.add(membership)

    db.commit()
    db.refresh(membership)
    logger.info(f"User {user.id} added to company {company_id} as {membership.role}")

    return CompanyUserOut(
        user_id=user.id,
        email=user.email,
        full_name=user.full_name,
        role=membership.role,
        is_active=membership.is_active,
        joined_at=membership.joined_at
    )


def list_company_users(db: Session, company_id: UUID, current_user: User) -> CompanyUsersResponse:
    _get_membership(db, company_id, current_user.id)

    memberships = db.query(UserCompany).options(
        selectinload(UserCompany.user)
    ).filter(UserCompany.company_id == company_id).all()

    users = [
        CompanyUserOut(
            user_id=m.user.id,
            email=m.user.email,
            full_name=m.user.full_name,
            role=m.role,
            is_active=m.is_active,
            joined_at=m.joined_at
        )
        for m in memberships
    ]
    return CompanyUsersResponse(users=users, total=len(users))


def _get_membership(db: Session, company_id: UUID, user_id: UUID) -> UserCompany:
    membership = db.query(UserCompany).options(
        selectinload(UserCompany.company)
    ).filter(
        UserCompany.company_id == company_id,
        UserCompany.user_id == user_id,
        UserCompany.is_active == True
    ).first()
    if not membership:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Empresa no encontrada")
    return membership


def _company_dict(company: Company) -> dict:
    return {
        "id": company.id,
        "name": company.name,
        "description": company.description,
        "email": company.email,
        "phone_number": company.phone_number,
        "address": company.address,
        "city": company.city,
        "country": company.country,
        "currency": company.currency,
        "tax_pin": company.tax_pin,
        "is_active": company.is_active,
        "created_at": company.created_at,
    }
