"""
Dependencias de autenticación para FastAPI.
"""
from typing import Optional
from uuid import UUID
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session, selectinload
import jwt

from erp.database.database import get_db
from erp.modules.auth.models import User, UserCompany, UserRole
from erp.modules.auth.schemas import AuthContext, UserCompanyOut
from erp.core.config import settings

# Security scheme
security = HTTPBearer()

ALL_ROLES = [role.value for role in UserRole]


class AuthDependencies:
    """Dependencias de autenticación reutilizables."""

    @staticmethod
    def _decode(credentials: HTTPAuthorizationCredentials) -> dict:
        credentials_exception = HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No se pudieron validar las credenciales",
            headers={"WWW-Authenticate": "Bearer"},
        )
        try:
            payload = jwt.decode(
                credentials.credentials,
                settings.APP_SECRET_STRING,
                algorithms=[settings.ALGORITHM]
            )
        except jwt.PyJWTError:
            raise credentials_exception

        if payload.get("sub") is None or payload.get("type") == "refresh":
            raise credentials_exception
        return payload

    @staticmethod
    def _load_user(db: Session, user_id: str) -> User:
        try:
            user_uuid = UUID(user_id)
        except ValueError:
            user_uuid = None

        user = None
        if user_uuid is not None:
            user = db.query(User).options(
                selectinload(User.user_companies).selectinload(UserCompany.company)
            ).filter(User.id == user_uuid).first()

        if user is None or not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="No se pudieron validar las credenciales",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return user

    @staticmethod
    def get_current_user(
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: Session = Depends(get_db)
    ) -> User:
        """
        Obtener usuario actual desde token JWT.
        No requiere tenant_id (para endpoints generales).
        """
        payload = AuthDependencies._decode(credentials)
        return AuthDependencies._load_user(db, payload["sub"])

    @staticmethod
    def get_auth_context(
        request: Request,
        credentials: HTTPAuthorizationCredentials = Depends(security),
        db: Session = Depends(get_db)
    ) -> AuthContext:
        """
        Obtener contexto de autenticación completo con tenant.
        El tenant sale del token de contexto o del header X-Company-ID.
        La membresía se valida siempre contra la base de datos.
        """
        payload = AuthDependencies._decode(credentials)
        user = AuthDependencies._load_user(db, payload["sub"])

        tenant_id: Optional[UUID] = None
        if payload.get("type") == "context" and payload.get("tenant_id"):
            tenant_id = UUID(payload["tenant_id"])

        # El header tiene prioridad sobre el token de contexto
        header_tenant = getattr(request.state, "tenant_id", None)
        if header_tenant is not None:
            tenant_id = header_tenant

        user_role = None
        if tenant_id is not None:
            membership = next(
                (uc for uc in user.user_companies
                 if uc.company_id == tenant_id and uc.is_active),
                None
            )
            if membership is None:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail="No tienes acceso a esta empresa"
                )
            user_role = membership.role

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

        return AuthContext(
            user_id=user.id,
            tenant_id=tenant_id,
            user_role=user_role,
            companies=companies
        )

    @staticmethod
    def require_role(allowed_roles: list[str]):
        """
        Dependencia para requerir roles específicos.
        """
        def role_checker(auth_context: AuthContext = Depends(AuthDependencies.get_auth_context)):
            if not auth_context.tenant_id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Se requiere seleccionar una empresa"
                )

            if auth_context.user_role not in allowed_roles:
                raise HTTPException(
                    status_code=status.HTTP_403_FORBIDDEN,
                    detail=f"Se requiere uno de estos roles: {', '.join(allowed_roles)}"
                )

            return auth_context
        return role_checker


# Instancias de dependencias
get_current_user = AuthDependencies.get_current_user
get_auth_context = AuthDependencies.get_auth_context
