from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from erp.database.database import get_db
from erp.modules.auth.service import AuthService
from erp.modules.auth.schemas import (
    UserCreate, UserLogin, UserOut, TokenResponse, ContextTokenResponse,
    CompanySelectionRequest, RefreshTokenRequest
)
from erp.dependencies.userDependencies import user_dependency, auth_context_dependency

auth_router = APIRouter(prefix="/auth", tags=["Auth"])


@auth_router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: UserCreate, db: Session = Depends(get_db)):
    """
    Registrar nuevo usuario. Con company_name crea también la empresa.
    """
    auth_service = AuthService(db)
    return auth_service.create_user(user_data)


@auth_router.post("/login", response_model=TokenResponse)
async def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """
    Login de usuario. Retorna token de acceso y lista de empresas.
    """
    auth_service = AuthService(db)
    return auth_service.login(credentials.email, credentials.password)


@auth_router.post("/select-company", response_model=ContextTokenResponse)
async def select_company(
    selection_data: CompanySelectionRequest,
    current_user: user_dependency,
    db: Session = Depends(get_db)
):
    """
    Seleccionar empresa y obtener token de contexto con tenant_id.
    """
    auth_service = AuthService(db)
    return auth_service.select_company(current_user.id, selection_data.company_id)


@auth_router.post("/refresh", response_model=TokenResponse)
async def refresh_token(request_data: RefreshTokenRequest, db: Session = Depends(get_db)):
    auth_service = AuthService(db)
    return auth_service.refresh_access_token(request_data.refresh_token)


@auth_router.get("/me", response_model=UserOut)
async def get_current_user_info(current_user: user_dependency):
    """
    Obtener información del usuario actual.
    """
    return UserOut.model_validate(current_user)


@auth_router.get("/context")
async def get_auth_context_info(auth_context: auth_context_dependency):
    """
    Obtener contexto de autenticación completo.
    """
    return {
        "user_id": auth_context.user_id,
        "tenant_id": auth_context.tenant_id,
        "user_role": auth_context.user_role,
        "companies": auth_context.companies
    }
