from datetime import datetime, timezone
from uuid import UUID
from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload
import logging

from erp.modules.auth.models import User, UserCompany
from erp.modules.auth.schemas import (
    UserCreate, UserOut, TokenResponse, ContextTokenResponse, UserCompanyOut
)
from erp.modules.auth.utils import (
    hash_password, verify_password, create_access_token,
    create_context_token, create_refresh_token, verify_token
)
from erp.modules.company.schemas import CompanyCreate
from erp.modules.company import service as company_service
from erp.core.config import settings

logger = logging.getLogger(__name__)


class AuthService:
    """
    Servicio de autenticación multi-tenant.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_user(self, user_data: UserCreate) -> TokenResponse:
        """
        Registrar usuario. Si trae company_name se crea la empresa
        en la misma transacción y el usuario queda como owner.
        """
        existing_user = self.db.query(User).filter(User.email == user_data.email).first()
        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="El email ya está registrado"
            )

        try:
            user = User(
                email=user_data.email,
                password=hash_password(user_data.password),
                first_name=user_data.first_name,
                last_name=user_data.last_name,
                phone=user_data.phone,
                is_active=True
            )
            self.db.add(user)
            self.db.flush()

            if user_data.company_name:
                company_service.create_company(
                    self.db, CompanyCreate(name=user_data.company_name), user, commit=False
                )

            self.db.commit()
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Error registrando usuario: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno al registrar el usuario"
            )

        logger.info(f"User {user.id} registered")
        return self._token_response(self._load_user(user.id))

    def login(self, email: str, password: str) -> TokenResponse:
        """
        Login de usuario con listado de empresas.
        """
        user = self.db.query(User).filter(User.email == email).first()

        if not user or not verify_password(password, user.password):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Credenciales incorrectas"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Cuenta inactiva"
            )

        user.last_login = datetime.now(timezone.utc)
        self.db.commit()

        return self._token_response(self._load_user(user.id))

    def select_company(self, user_id: UUID, company_id: UUID) -> ContextTokenResponse:
        """
        Seleccionar empresa y generar token de contexto.
        """
        user_company = self.db.query(UserCompany).options(
            selectinload(UserCompany.company),
            selectinload(UserCompany.user)
        ).filter(
            UserCompany.user_id == user_id,
            UserCompany.company_id == company_id,
            UserCompany.is_active == True
        ).first()

        if not user_company:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tienes acceso a esta empresa"
            )

        token_data = {
            "sub": str(user_id),
            "email": user_company.user.email,
            "user_name": user_company.user.full_name,
            "tenant_id": str(company_id),
            "user_role": user_company.role
        }

        return ContextTokenResponse(
            access_token=create_context_token(token_data),
            token_type="bearer",
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            tenant_id=company_id,
            company_name=user_company.company.name,
            user_role=user_company.role
        )

    def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        payload = verify_token(refresh_token)
        if payload.get("type") != "refresh":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token de refresco inválido"
            )

        try:
            user = self._load_user(UUID(payload.get("sub", "")))
        except ValueError:
            user = None
        if not user or not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Usuario no encontrado o inactivo"
            )
        return self._token_response(user)

    def _load_user(self, user_id: UUID) -> User:
        return self.db.query(User).options(
            selectinload(User.user_companies).selectinload(UserCompany.company)
        ).filter(User.id == user_id).first()

    def _token_response(self, user: User) -> TokenResponse:
        token_data = {
            "sub": str(user.id),
            "email": user.email,
            "user_name": user.full_name
        }

        companies = [
            UserCompanyOut(
                id=uc.id,
                company_id=uc.company_id,
                role=uc.role,
                is_active=uc.is_active,
                joined_at=uc.joined_at,
                company_name=uc.company.name
            )
            for uc in user.user_companies if uc.is_active
        ]

        return TokenResponse(
            access_token=create_access_token(token_data),
            token_type="bearer",
            expires_in=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
            user=UserOut.model_validate(user),
            companies=companies,
            refresh_token=create_refresh_token(str(user.id))
        )
