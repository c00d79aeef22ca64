from sqlalchemy import Column, String, Boolean, Text, DateTime, ForeignKey, Uuid, UniqueConstraint
from sqlalchemy.orm import relationship
from enum import Enum

from erp.database.database import Base
from erp.common.mixins import BaseMixin


class MessagePriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"


class Message(Base, BaseMixin):
    """
    Mensaje interno entre usuarios de la misma empresa.

    Los indicadores del remitente (estrella, borrado) viven en el mensaje;
    los de cada destinatario en MessageRecipient.
    """
    __tablename__ = "messages"

    sender_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=True)
    priority = Column(String(10), nullable=False, default=MessagePriority.NORMAL.value)
    is_draft = Column(Boolean, nullable=False, default=False, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    parent_id = Column(Uuid(as_uuid=True), ForeignKey("messages.id"), nullable=True)
    sender_starred = Column(Boolean, nullable=False, default=False)
    sender_deleted = Column(Boolean, nullable=False, default=False)

    sender = relationship("User")
    recipients = relationship("MessageRecipient", back_populates="message", cascade="all, delete-orphan")


class MessageRecipient(Base, BaseMixin):
    __tablename__ = "message_recipients"

    message_id = Column(Uuid(as_uuid=True), ForeignKey("messages.id", ondelete="CASCADE"), nullable=False, index=True)
    recipient_id = Column(Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True)
    is_read = Column(Boolean, nullable=False, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    is_starred = Column(Boolean, nullable=False, default=False)
    is_deleted = Column(Boolean, nullable=False, default=False)

    message = relationship("Message", back_populates="recipients")
    recipient = relationship("User")

    __table_args__ = (
        UniqueConstraint("message_id", "recipient_id", name="uq_message_recipient"),
    )

    @property
    def recipient_email(self):
        return self.recipient.email if self.recipient else None
