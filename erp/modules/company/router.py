from fastapi import APIRouter, status
from uuid import UUID
from erp.modules.company import service
from erp.modules.company.schemas import (
    CompanyCreate, CompanyOutWithRole, CompanyCreateResponse, AddUserToCompany,
    CompanyUserOut, CompanyUsersResponse
)
from erp.dependencies.dbDependencies import db_dependency
from erp.dependencies.userDependencies import user_dependency


company_router = APIRouter(prefix="/company", tags=["Company"])


@company_router.post("", response_model=CompanyCreateResponse, status_code=status.HTTP_201_CREATED)
async def create_company(company: CompanyCreate, db: db_dependency, current_user: user_dependency):
    """
    Crear una empresa. El usuario actual queda como owner y se crean
    las configuraciones de numeración por defecto.
    """
    return service.create_company(db, company, current_user)


@company_router.get("/mine", response_model=list[CompanyOutWithRole])
async def get_my_companies(db: db_dependency, current_user: user_dependency):
    """
    Empresas del usuario actual con su rol en cada una.
    """
    return service.get_companies_for_user(db, current_user.id)


@company_router.get("/{company_id}", response_model=CompanyOutWithRole)
async def get_company(company_id: UUID, db: db_dependency, current_user: user_dependency):
    return service.get_company(db, company_id, current_user)


@company_router.post("/{company_id}/users", response_model=CompanyUserOut, status_code=status.HTTP_201_CREATED)
async def add_user(company_id: UUID, data: AddUserToCompany, db: db_dependency, current_user: user_dependency):
    """
    Agregar un usuario existente a la empresa con un rol.
    """
    return service.add_user_to_company(db, company_id, data, current_user)


@company_router.get("/{company_id}/users", response_model=CompanyUsersResponse)
async def list_users(company_id: UUID, db: db_dependency, current_user: user_dependency):
    return service.list_company_users(db, company_id, current_user)
