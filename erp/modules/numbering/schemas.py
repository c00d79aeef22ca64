from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List
from uuid import UUID
from datetime import datetime

from erp.modules.numbering.catalog import NumberFormat, ResetFrequency
from erp.modules.numbering.formatter import has_sequence_token, unknown_tokens

DOCUMENT_TYPE_PATTERN = r"^[a-z][a-z0-9_]{1,49}$"


def _check_custom_format(fmt, custom_format):
    if fmt == NumberFormat.CUSTOM:
        if not has_sequence_token(custom_format):
            raise ValueError("El formato custom debe incluir {SEQ} o {N...} para el consecutivo")
        bad = unknown_tokens(custom_format)
        if bad:
            raise ValueError(f"Tokens no soportados en el formato custom: {', '.join(bad)}")


class NumberSettingBase(BaseModel):
    prefix: str = Field("", max_length=20)
    suffix: str = Field("", max_length=20)
    separator: str = Field("-", max_length=5)
    number_length: int = Field(6, ge=1, le=12)
    format: NumberFormat = NumberFormat.PREFIX_SEQUENTIAL
    custom_format: Optional[str] = Field(None, max_length=100)
    auto_increment: bool = True
    reset_frequency: ResetFrequency = ResetFrequency.NEVER
    description: Optional[str] = None
    is_active: bool = True


class NumberSettingCreate(NumberSettingBase):
    document_type: str = Field(..., pattern=DOCUMENT_TYPE_PATTERN)
    start_number: int = Field(1, ge=0)
    next_number: Optional[int] = Field(None, ge=0, description="Por defecto igual a start_number")

    @model_validator(mode="after")
    def validate_custom(self):
        _check_custom_format(self.format, self.custom_format)
        return self


class NumberSettingUpdate(BaseModel):
    """Actualización parcial; solo se aplican los campos enviados."""
    prefix: Optional[str] = Field(None, max_length=20)
    suffix: Optional[str] = Field(None, max_length=20)
    separator: Optional[str] = Field(None, max_length=5)
    number_length: Optional[int] = Field(None, ge=1, le=12)
    format: Optional[NumberFormat] = None
    custom_format: Optional[str] = Field(None, max_length=100)
    auto_increment: Optional[bool] = None
    reset_frequency: Optional[ResetFrequency] = None
    start_number: Optional[int] = Field(None, ge=0)
    next_number: Optional[int] = Field(None, ge=0)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class NumberSettingOut(BaseModel):
    id: UUID
    tenant_id: UUID
    document_type: str
    prefix: str
    suffix: str
    separator: str
    next_number: int
    start_number: int
    number_length: int
    format: str
    custom_format: Optional[str] = None
    auto_increment: bool
    reset_frequency: str
    current_period: str
    last_reset_date: Optional[datetime] = None
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class GeneratedNumber(BaseModel):
    number: str
    document_type: str
    sequence: int
    prefix: str
    format: str
    period: str = ""


class NextNumberOut(BaseModel):
    number: str
    document_type: str
    sequence: int
    format: str


class PreviewRequest(BaseModel):
    format: Optional[NumberFormat] = None
    prefix: Optional[str] = Field(None, max_length=20)
    suffix: Optional[str] = Field(None, max_length=20)
    separator: Optional[str] = Field(None, max_length=5)
    number_length: Optional[int] = Field(None, ge=1, le=12)
    custom_format: Optional[str] = Field(None, max_length=100)

    @model_validator(mode="after")
    def validate_custom(self):
        if self.format == NumberFormat.CUSTOM and self.custom_format is not None:
            _check_custom_format(self.format, self.custom_format)
        return self


class PreviewOut(BaseModel):
    preview: str
    document_type: str
    format: str
    sequence: int


class ResetRequest(BaseModel):
    value: Optional[int] = Field(None, ge=0, description="Nuevo valor; por defecto start_number")


class ResetOut(BaseModel):
    document_type: str
    next_number: int
    last_reset_date: datetime
    message: str


class BulkFormatUpdate(BaseModel):
    format: NumberFormat
    separator: Optional[str] = Field(None, max_length=5)
    number_length: Optional[int] = Field(None, ge=1, le=12)

    @field_validator("format")
    @classmethod
    def no_custom(cls, v):
        if v == NumberFormat.CUSTOM:
            raise ValueError("El formato custom se configura por tipo de documento")
        return v


class BulkFormatUpdateOut(BaseModel):
    updated: int
    format: str
    message: str


class FormatInfo(BaseModel):
    format: str
    name: str
    description: str
    example: str


class DocumentTypeOut(BaseModel):
    document_type: str
    prefix: str
    default_start: int
    description: str


class InitializeOut(BaseModel):
    created: int
    message: str


class SyncOut(BaseModel):
    document_type: str
    previous_next_number: int
    next_number: int
    fixed: bool


class DocumentSequenceOut(BaseModel):
    id: UUID
    document_type: str
    document_number: str
    sequence_number: int
    period: str
    reference_id: Optional[str] = None
    created_by: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DocumentSequenceList(BaseModel):
    items: List[DocumentSequenceOut]
    total: int
    limit: int
    offset: int
