from sqlalchemy import Column, String, Integer, Boolean, DateTime, Text, Uuid, UniqueConstraint, Index
from sqlalchemy.sql import func

from erp.database.database import Base
from erp.common.mixins import BaseMixin, TenantMixin
from erp.modules.numbering.catalog import ResetFrequency, DEFAULT_FORMAT, DEFAULT_SEPARATOR, DEFAULT_NUMBER_LENGTH
from uuid import uuid4


class NumberGenerationSetting(Base, BaseMixin):
    """
    Counter and format of one document type for one tenant.

    next_number is only ever moved by a single UPDATE statement so concurrent
    allocators serialize on the row lock.
    """
    __tablename__ = "number_generation_settings"

    document_type = Column(String(50), nullable=False)
    prefix = Column(String(20), nullable=False, default="")
    suffix = Column(String(20), nullable=False, default="")
    separator = Column(String(5), nullable=False, default=DEFAULT_SEPARATOR)
    next_number = Column(Integer, nullable=False, default=1)
    start_number = Column(Integer, nullable=False, default=1)
    number_length = Column(Integer, nullable=False, default=DEFAULT_NUMBER_LENGTH)
    format = Column(String(40), nullable=False, default=DEFAULT_FORMAT.value)
    custom_format = Column(String(100), nullable=True)
    auto_increment = Column(Boolean, nullable=False, default=True)
    reset_frequency = Column(String(10), nullable=False, default=ResetFrequency.NEVER.value)
    current_period = Column(String(8), nullable=False, default="")
    last_reset_date = Column(DateTime(timezone=True), nullable=True)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "document_type", name="uq_numbering_tenant_doctype"),
    )


class DocumentSequence(Base, TenantMixin):
    """Audit row for every issued document number."""
    __tablename__ = "document_sequences"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    document_type = Column(String(50), nullable=False)
    document_number = Column(String(100), nullable=False)
    sequence_number = Column(Integer, nullable=False)
    period = Column(String(8), nullable=False, default="")
    reference_id = Column(String(64), nullable=True)
    created_by = Column(Uuid(as_uuid=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("ix_document_sequences_tenant_type", "tenant_id", "document_type"),
    )
