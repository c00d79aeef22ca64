"""
Buzón interno

Mensajes entre usuarios de una misma empresa. Cada lado lleva sus propios
indicadores: el remitente en el mensaje, cada destinatario en su fila de
message_recipients.
"""

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import or_, select
from typing import List, Optional
from uuid import UUID
from datetime import datetime, timezone
import logging

from erp.common.transactions import service_transaction
from erp.modules.auth.models import User, UserCompany
from erp.modules.mailbox.models import Message, MessageRecipient
from erp.modules.mailbox.schemas import (
    MessageCreate, DraftUpdate, MessageOut, MessageList, RecipientOut, MailboxUser, MailboxStats
)

logger = logging.getLogger(__name__)


class MailboxService:
    def __init__(self, db: Session):
        self.db = db

    # ----- Helpers -----

    def _message_query(self, tenant_id: UUID):
        return self.db.query(Message).options(
            selectinload(Message.sender),
            selectinload(Message.recipients).selectinload(MessageRecipient.recipient)
        ).filter(Message.tenant_id == tenant_id)

    def _to_out(self, message: Message, user_id: UUID) -> MessageOut:
        own_row = self._recipient_row(message, user_id)
        if own_row is not None:
            is_read, is_starred = own_row.is_read, own_row.is_starred
        else:
            is_read, is_starred = True, message.sender_starred
        return MessageOut(
            id=message.id,
            sender_id=message.sender_id,
            sender_email=message.sender.email if message.sender else None,
            subject=message.subject,
            body=message.body,
            priority=message.priority,
            is_draft=message.is_draft,
            sent_at=message.sent_at,
            parent_id=message.parent_id,
            created_at=message.created_at,
            is_read=is_read,
            is_starred=is_starred,
            recipients=[RecipientOut.model_validate(r) for r in message.recipients]
        )

    def _page(self, messages: List[Message], user_id: UUID, total: int, limit: int, offset: int) -> MessageList:
        return MessageList(
            items=[self._to_out(m, user_id) for m in messages],
            total=total, limit=limit, offset=offset
        )

    @staticmethod
    def _recipient_row(message: Message, user_id: UUID) -> Optional[MessageRecipient]:
        for row in message.recipients:
            if row.recipient_id == user_id and not row.is_deleted:
                return row
        return None

    def _check_recipients(self, recipient_ids: List[UUID], tenant_id: UUID) -> List[UUID]:
        unique_ids = list(dict.fromkeys(recipient_ids))
        if not unique_ids:
            return []
        members = self.db.query(UserCompany.user_id).join(User, User.id == UserCompany.user_id).filter(
            UserCompany.company_id == tenant_id,
            UserCompany.user_id.in_(unique_ids),
            UserCompany.is_active == True,
            User.is_active == True
        ).all()
        found = {row.user_id for row in members}
        missing = [str(uid) for uid in unique_ids if uid not in found]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Destinatarios que no pertenecen a esta empresa: {', '.join(missing)}"
            )
        return unique_ids

    def _visible_message(self, message_id: UUID, user_id: UUID, tenant_id: UUID) -> Message:
        message = self._message_query(tenant_id).filter(Message.id == message_id).first()
        if message:
            if message.sender_id == user_id and not message.sender_deleted:
                return message
            if not message.is_draft and self._recipient_row(message, user_id) is not None:
                return message
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Mensaje no encontrado")

    # ----- Bandejas -----

    def get_inbox(self, user_id: UUID, tenant_id: UUID, limit: int = 20, offset: int = 0,
                  unread_only: bool = False) -> MessageList:
        query = self._message_query(tenant_id).join(
            MessageRecipient, MessageRecipient.message_id == Message.id
        ).filter(
            MessageRecipient.recipient_id == user_id,
            MessageRecipient.is_deleted == False,
            Message.is_draft == False
        )
        if unread_only:
            query = query.filter(MessageRecipient.is_read == False)
        total = query.count()
        messages = query.order_by(Message.sent_at.desc()).offset(offset).limit(limit).all()
        return self._page(messages, user_id, total, limit, offset)

    def _sender_query(self, user_id: UUID, tenant_id: UUID, drafts: bool):
        return self._message_query(tenant_id).filter(
            Message.sender_id == user_id,
            Message.sender_deleted == False,
            Message.is_draft == drafts
        )

    def get_sent(self, user_id: UUID, tenant_id: UUID, limit: int = 20, offset: int = 0) -> MessageList:
        query = self._sender_query(user_id, tenant_id, drafts=False)
        total = query.count()
        messages = query.order_by(Message.sent_at.desc()).offset(offset).limit(limit).all()
        return self._page(messages, user_id, total, limit, offset)

    def get_drafts(self, user_id: UUID, tenant_id: UUID, limit: int = 20, offset: int = 0) -> MessageList:
        query = self._sender_query(user_id, tenant_id, drafts=True)
        total = query.count()
        messages = query.order_by(Message.updated_at.desc()).offset(offset).limit(limit).all()
        return self._page(messages, user_id, total, limit, offset)

    def _starred_messages(self, user_id: UUID, tenant_id: UUID) -> List[Message]:
        starred_rows = select(MessageRecipient.message_id).where(
            MessageRecipient.recipient_id == user_id,
            MessageRecipient.is_starred == True,
            MessageRecipient.is_deleted == False
        )
        return self._message_query(tenant_id).filter(or_(
            (Message.sender_id == user_id) & (Message.sender_starred == True) & (Message.sender_deleted == False),
            Message.id.in_(starred_rows) & (Message.is_draft == False)
        )).order_by(Message.created_at.desc()).all()

    def get_starred(self, user_id: UUID, tenant_id: UUID, limit: int = 20, offset: int = 0) -> MessageList:
        messages = self._starred_messages(user_id, tenant_id)
        return self._page(messages[offset:offset + limit], user_id, len(messages), limit, offset)

    def get_message(self, message_id: UUID, user_id: UUID, tenant_id: UUID) -> MessageOut:
        """Detalle del mensaje. Lo marca como leído si quien lo abre es destinatario."""
        message = self._visible_message(message_id, user_id, tenant_id)
        row = self._recipient_row(message, user_id)
        if row is not None and not row.is_read:
            row.is_read = True
            row.read_at = datetime.now(timezone.utc)
            self.db.commit()
            self.db.refresh(message)
        return self._to_out(message, user_id)

    # ----- Envío y borradores -----

    def send_message(self, data: MessageCreate, user_id: UUID, tenant_id: UUID) -> MessageOut:
        recipient_ids = self._check_recipients(data.recipient_ids, tenant_id)
        if data.parent_id:
            self._visible_message(data.parent_id, user_id, tenant_id)

        with service_transaction(self.db, "Error interno al enviar el mensaje"):
            message = Message(
                tenant_id=tenant_id,
                sender_id=user_id,
                subject=data.subject,
                body=data.body,
                priority=data.priority.value,
                is_draft=data.is_draft,
                sent_at=None if data.is_draft else datetime.now(timezone.utc),
                parent_id=data.parent_id
            )
            message.recipients = [
                MessageRecipient(tenant_id=tenant_id, recipient_id=rid) for rid in recipient_ids
            ]
            self.db.add(message)

        if data.is_draft:
            logger.info(f"Draft {message.id} saved by user {user_id}")
        else:
            logger.info(f"Message {message.id} sent by user {user_id} to {len(recipient_ids)} recipient(s)")
        return self.get_message(message.id, user_id, tenant_id)

    def update_draft(self, message_id: UUID, data: DraftUpdate, user_id: UUID, tenant_id: UUID) -> MessageOut:
        message = self._visible_message(message_id, user_id, tenant_id)
        if message.sender_id != user_id or not message.is_draft:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Solo se pueden editar borradores propios"
            )

        values = data.model_dump(exclude_unset=True, exclude={"send", "recipient_ids"})
        recipient_ids = None
        if data.recipient_ids is not None:
            recipient_ids = self._check_recipients(data.recipient_ids, tenant_id)

        with service_transaction(self.db, "Error interno al actualizar el borrador"):
            for field, value in values.items():
                if field == "priority" and value is not None:
                    value = value.value
                setattr(message, field, value)
            if recipient_ids is not None:
                message.recipients.clear()
                self.db.flush()
                message.recipients.extend(
                    MessageRecipient(tenant_id=tenant_id, recipient_id=rid) for rid in recipient_ids
                )
            if data.send:
                if not message.recipients:
                    raise HTTPException(
                        status_code=status.HTTP_400_BAD_REQUEST,
                        detail="Un mensaje enviado requiere al menos un destinatario"
                    )
                message.is_draft = False
                message.sent_at = datetime.now(timezone.utc)

        if data.send:
            logger.info(f"Draft {message.id} sent by user {user_id}")
        return self.get_message(message.id, user_id, tenant_id)

    def delete_message(self, message_id: UUID, user_id: UUID, tenant_id: UUID) -> None:
        """
        Borra el mensaje del lado de quien lo pide.
        Un borrador se elimina; en un mensaje enviado solo se marca el indicador.
        """
        message = self._visible_message(message_id, user_id, tenant_id)
        if message.sender_id == user_id and message.is_draft:
            self.db.delete(message)
            self.db.commit()
            return

        if message.sender_id == user_id:
            message.sender_deleted = True
        row = self._recipient_row(message, user_id)
        if row is not None:
            row.is_deleted = True
        self.db.commit()

    def toggle_star(self, message_id: UUID, user_id: UUID, tenant_id: UUID) -> MessageOut:
        message = self._visible_message(message_id, user_id, tenant_id)
        row = self._recipient_row(message, user_id)
        if row is not None:
            row.is_starred = not row.is_starred
        if message.sender_id == user_id:
            message.sender_starred = not message.sender_starred
        self.db.commit()
        self.db.refresh(message)
        return self._to_out(message, user_id)

    # ----- Usuarios y estadísticas -----

    def get_users(self, user_id: UUID, tenant_id: UUID, search: Optional[str] = None) -> List[MailboxUser]:
        query = self.db.query(User, UserCompany.role).join(
            UserCompany, UserCompany.user_id == User.id
        ).filter(
            UserCompany.company_id == tenant_id,
            UserCompany.is_active == True,
            User.is_active == True,
            User.id != user_id
        )
        if search:
            term = f"%{search}%"
            query = query.filter(or_(
                User.email.ilike(term),
                User.first_name.ilike(term),
                User.last_name.ilike(term)
            ))
        return [
            MailboxUser(id=user.id, email=user.email, full_name=user.full_name, role=role)
            for user, role in query.order_by(User.first_name, User.last_name).all()
        ]

    def get_stats(self, user_id: UUID, tenant_id: UUID) -> MailboxStats:
        inbox = self.db.query(MessageRecipient).join(Message, Message.id == MessageRecipient.message_id).filter(
            Message.tenant_id == tenant_id,
            Message.is_draft == False,
            MessageRecipient.recipient_id == user_id,
            MessageRecipient.is_deleted == False
        )
        return MailboxStats(
            unread=inbox.filter(MessageRecipient.is_read == False).count(),
            inbox=inbox.count(),
            sent=self._sender_query(user_id, tenant_id, drafts=False).count(),
            drafts=self._sender_query(user_id, tenant_id, drafts=True).count(),
            starred=len(self._starred_messages(user_id, tenant_id))
        )
