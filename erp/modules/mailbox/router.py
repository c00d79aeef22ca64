"""
Router del buzón interno

Todas las rutas operan sobre el usuario autenticado dentro de la empresa activa.
"""

from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from erp.database.database import get_db
from erp.modules.auth.dependencies import AuthDependencies, ALL_ROLES
from erp.modules.mailbox.service import MailboxService
from erp.modules.mailbox.schemas import MessageCreate, DraftUpdate, MessageOut, MessageList, MailboxUser, MailboxStats

mailbox_router = APIRouter(prefix="/mailbox", tags=["Mailbox"])


@mailbox_router.get("/inbox", response_model=MessageList)
async def get_inbox(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return MailboxService(db).get_inbox(auth_context.user_id, auth_context.tenant_id, limit, offset, unread_only)


@mailbox_router.get("/sent", response_model=MessageList)
async def get_sent(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return MailboxService(db).get_sent(auth_context.user_id, auth_context.tenant_id, limit, offset)


@mailbox_router.get("/drafts", response_model=MessageList)
async def get_drafts(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return MailboxService(db).get_drafts(auth_context.user_id, auth_context.tenant_id, limit, offset)


@mailbox_router.get("/starred", response_model=MessageList)
async def get_starred(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return MailboxService(db).get_starred(auth_context.user_id, auth_context.tenant_id, limit, offset)


@mailbox_router.get("/users", response_model=List[MailboxUser])
async def get_mailbox_users(
    search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    """Usuarios de la empresa a los que se puede escribir"""
    return MailboxService(db).get_users(auth_context.user_id, auth_context.tenant_id, search)


@mailbox_router.get("/stats", response_model=MailboxStats)
async def get_mailbox_stats(
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return MailboxService(db).get_stats(auth_context.user_id, auth_context.tenant_id)


@mailbox_router.post("/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def send_message(
    message_data: MessageCreate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    """
    Enviar mensaje o guardar borrador

    - **is_draft**: true guarda sin enviar (los destinatarios son opcionales)
    """
    return MailboxService(db).send_message(message_data, auth_context.user_id, auth_context.tenant_id)


@mailbox_router.get("/messages/{message_id}", response_model=MessageOut)
async def get_message(
    message_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return MailboxService(db).get_message(message_id, auth_context.user_id, auth_context.tenant_id)


@mailbox_router.put("/messages/{message_id}", response_model=MessageOut)
async def update_draft(
    message_id: UUID,
    draft_data: DraftUpdate,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return MailboxService(db).update_draft(message_id, draft_data, auth_context.user_id, auth_context.tenant_id)


@mailbox_router.delete("/messages/{message_id}")
async def delete_message(
    message_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    MailboxService(db).delete_message(message_id, auth_context.user_id, auth_context.tenant_id)
    return {"message": "Mensaje eliminado"}


@mailbox_router.post("/messages/{message_id}/star", response_model=MessageOut)
async def toggle_star(
    message_id: UUID,
    db: Session = Depends(get_db),
    auth_context=Depends(AuthDependencies.require_role(ALL_ROLES))
):
    return MailboxService(db).toggle_star(message_id, auth_context.user_id, auth_context.tenant_id)
