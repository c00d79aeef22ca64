from pydantic import BaseModel, Field, model_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from erp.modules.mailbox.models import MessagePriority


class MessageCreate(BaseModel):
    recipient_ids: List[UUID] = Field(default_factory=list, description="Usuarios de la empresa")
    subject: str = Field(..., min_length=1, max_length=255)
    body: Optional[str] = None
    priority: MessagePriority = MessagePriority.NORMAL
    is_draft: bool = Field(False, description="Guardar como borrador en lugar de enviar")
    parent_id: Optional[UUID] = Field(None, description="Mensaje al que se responde")

    @model_validator(mode='after')
    def require_recipients(self):
        if not self.is_draft and not self.recipient_ids:
            raise ValueError('Un mensaje enviado requiere al menos un destinatario')
        return self


class DraftUpdate(BaseModel):
    recipient_ids: Optional[List[UUID]] = None
    subject: Optional[str] = Field(None, min_length=1, max_length=255)
    body: Optional[str] = None
    priority: Optional[MessagePriority] = None
    send: bool = Field(False, description="Enviar el borrador tras actualizarlo")


class RecipientOut(BaseModel):
    recipient_id: UUID
    recipient_email: Optional[str] = None
    is_read: bool
    read_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MessageOut(BaseModel):
    id: UUID
    sender_id: UUID
    sender_email: Optional[str] = None
    subject: str
    body: Optional[str] = None
    priority: str
    is_draft: bool
    sent_at: Optional[datetime] = None
    parent_id: Optional[UUID] = None
    created_at: datetime
    is_read: bool = True
    is_starred: bool = False
    recipients: List[RecipientOut] = []


class MessageList(BaseModel):
    items: List[MessageOut]
    total: int
    limit: int
    offset: int


class MailboxUser(BaseModel):
    id: UUID
    email: str
    full_name: str
    role: str


class MailboxStats(BaseModel):
    unread: int
    inbox: int
    sent: int
    drafts: int
    starred: int
