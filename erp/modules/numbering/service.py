from fastapi import HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy import update, select, case, and_, func, literal
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID
import re
import logging

from erp.modules.numbering.models import NumberGenerationSetting, DocumentSequence
from erp.modules.numbering.catalog import (
    DOCUMENT_TYPES, FORMAT_NAMES, NumberFormat, ResetFrequency, DEFAULT_FORMAT,
    DEFAULT_SEPARATOR, DEFAULT_NUMBER_LENGTH, document_type_info
)
from erp.modules.numbering.formatter import format_number, period_key, has_sequence_token, unknown_tokens
from erp.modules.numbering.schemas import (
    NumberSettingCreate, NumberSettingUpdate, GeneratedNumber, NextNumberOut,
    PreviewRequest, PreviewOut, ResetOut, BulkFormatUpdate, BulkFormatUpdateOut,
    FormatInfo, DocumentTypeOut, SyncOut, DocumentSequenceList, DocumentSequenceOut,
    DOCUMENT_TYPE_PATTERN
)

logger = logging.getLogger(__name__)

settings_table = NumberGenerationSetting.__table__


class NumberingService:
    """
    Numeración de documentos por empresa y tipo de documento.

    allocate() es la única vía para consumir un número: incrementa el contador
    con un solo UPDATE, lee el valor resultante dentro de la misma transacción
    y registra el número emitido en document_sequences. No hace commit; el
    número queda confirmado junto con el documento que lo usa.
    """

    def __init__(self, db: Session):
        self.db = db

    # ===== CONSULTAS =====

    def _validate_type(self, document_type: str) -> str:
        if not re.match(DOCUMENT_TYPE_PATTERN, document_type or ""):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Tipo de documento inválido: {document_type}"
            )
        return document_type

    def get_setting(self, tenant_id: UUID, document_type: str) -> NumberGenerationSetting:
        self._validate_type(document_type)
        setting = self.db.query(NumberGenerationSetting).filter(
            NumberGenerationSetting.tenant_id == tenant_id,
            NumberGenerationSetting.document_type == document_type
        ).first()
        if not setting:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"No hay configuración de numeración para: {document_type}"
            )
        return setting

    def _get_active_setting(self, tenant_id: UUID, document_type: str) -> NumberGenerationSetting:
        setting = self.get_setting(tenant_id, document_type)
        if not setting.is_active:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"La numeración para {document_type} está inactiva"
            )
        return setting

    def list_settings(self, tenant_id: UUID) -> List[NumberGenerationSetting]:
        return self.db.query(NumberGenerationSetting).filter(
            NumberGenerationSetting.tenant_id == tenant_id
        ).order_by(NumberGenerationSetting.document_type).all()

    @staticmethod
    def get_formats() -> List[FormatInfo]:
        sample_date = datetime(2025, 7, 11, 8, 30, tzinfo=timezone.utc)
        formats = []
        for fmt in NumberFormat:
            custom = "{PREFIX}/{YYYY}/{NNNN}" if fmt == NumberFormat.CUSTOM else None
            example = format_number(
                fmt.value, 1, prefix="PAY", suffix="KE", separator="-",
                number_length=6, custom_format=custom, when=sample_date
            )
            description = example if custom is None else f"{custom} -> {example}"
            formats.append(FormatInfo(
                format=fmt.value,
                name=FORMAT_NAMES[fmt],
                description=description,
                example=example
            ))
        return formats

    @staticmethod
    def get_document_types() -> List[DocumentTypeOut]:
        return [
            DocumentTypeOut(
                document_type=code,
                prefix=info.prefix,
                default_start=info.default_start,
                description=info.description
            )
            for code, info in DOCUMENT_TYPES.items()
        ]

    def history(self, tenant_id: UUID, document_type: str, limit: int = 20, offset: int = 0) -> DocumentSequenceList:
        """Números emitidos, más recientes primero."""
        self._validate_type(document_type)
        query = self.db.query(DocumentSequence).filter(
            DocumentSequence.tenant_id == tenant_id,
            DocumentSequence.document_type == document_type
        )
        total = query.count()
        items = query.order_by(
            DocumentSequence.created_at.desc(),
            DocumentSequence.sequence_number.desc()
        ).offset(offset).limit(limit).all()
        return DocumentSequenceList(
            items=[DocumentSequenceOut.model_validate(item) for item in items],
            total=total,
            limit=limit,
            offset=offset
        )

    # ===== CONFIGURACIÓN =====

    def create_setting(self, tenant_id: UUID, data: NumberSettingCreate) -> NumberGenerationSetting:
        try:
            existing = self.db.query(NumberGenerationSetting).filter(
                NumberGenerationSetting.tenant_id == tenant_id,
                NumberGenerationSetting.document_type == data.document_type
            ).first()
            if existing:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"Ya existe configuración para {data.document_type}"
                )

            values = data.model_dump(exclude={"next_number"})
            values["format"] = data.format.value
            values["reset_frequency"] = data.reset_frequency.value
            setting = NumberGenerationSetting(
                tenant_id=tenant_id,
                next_number=data.next_number if data.next_number is not None else data.start_number,
                current_period=period_key(data.reset_frequency.value, datetime.now(timezone.utc)),
                **values
            )
            self.db.add(setting)
            self.db.commit()
            self.db.refresh(setting)
            logger.info(f"Numbering setting {data.document_type} created for tenant {tenant_id}")
            return setting
        except HTTPException:
            raise
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Ya existe configuración para {data.document_type}"
            )
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Error creating numbering setting: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno al crear la configuración de numeración"
            )

    def update_setting(self, tenant_id: UUID, document_type: str, data: NumberSettingUpdate) -> NumberGenerationSetting:
        setting = self.get_setting(tenant_id, document_type)
        changes = data.model_dump(exclude_unset=True)

        new_format = changes.get("format", setting.format)
        new_format = new_format.value if isinstance(new_format, NumberFormat) else new_format
        new_custom = changes.get("custom_format", setting.custom_format)
        if new_format == NumberFormat.CUSTOM.value:
            if not has_sequence_token(new_custom):
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="El formato custom debe incluir {SEQ} o {N...} para el consecutivo"
                )
            bad = unknown_tokens(new_custom)
            if bad:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail=f"Tokens no soportados en el formato custom: {', '.join(bad)}"
                )

        try:
            for field, value in changes.items():
                if value is None and field not in ("custom_format", "description"):
                    continue
                if isinstance(value, (NumberFormat, ResetFrequency)):
                    value = value.value
                setattr(setting, field, value)

            if "reset_frequency" in changes and changes["reset_frequency"] is not None:
                setting.current_period = period_key(setting.reset_frequency, datetime.now(timezone.utc))

            self.db.commit()
            self.db.refresh(setting)
            logger.info(f"Numbering setting {document_type} updated for tenant {tenant_id}")
            return setting
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Error updating numbering setting: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno al actualizar la configuración de numeración"
            )

    def delete_setting(self, tenant_id: UUID, document_type: str) -> None:
        setting = self.get_setting(tenant_id, document_type)
        self.db.delete(setting)
        self.db.commit()
        logger.info(f"Numbering setting {document_type} deleted for tenant {tenant_id}")

    def initialize_defaults(self, tenant_id: UUID, commit: bool = True) -> int:
        """
        Crear las configuraciones del catálogo que la empresa aún no tiene.
        Idempotente: las existentes no se tocan.
        """
        existing = {
            row[0] for row in self.db.query(NumberGenerationSetting.document_type).filter(
                NumberGenerationSetting.tenant_id == tenant_id
            ).all()
        }

        created = 0
        for document_type, info in DOCUMENT_TYPES.items():
            if document_type in existing:
                continue
            self.db.add(NumberGenerationSetting(
                tenant_id=tenant_id,
                document_type=document_type,
                prefix=info.prefix,
                suffix="",
                separator=DEFAULT_SEPARATOR,
                next_number=info.default_start,
                start_number=info.default_start,
                number_length=DEFAULT_NUMBER_LENGTH,
                format=DEFAULT_FORMAT.value,
                auto_increment=True,
                reset_frequency=ResetFrequency.NEVER.value,
                current_period="",
                description=info.description,
                is_active=True
            ))
            created += 1

        if commit:
            self.db.commit()
        else:
            self.db.flush()

        logger.info(f"Initialized {created} numbering settings for tenant {tenant_id}")
        return created

    def update_all_formats(self, tenant_id: UUID, data: BulkFormatUpdate) -> BulkFormatUpdateOut:
        values = {"format": data.format.value}
        if data.separator is not None:
            values["separator"] = data.separator
        if data.number_length is not None:
            values["number_length"] = data.number_length

        result = self.db.execute(
            update(settings_table)
            .where(
                settings_table.c.tenant_id == tenant_id,
                settings_table.c.is_active == True
            )
            .values(**values)
        )
        self.db.commit()
        self.db.expire_all()
        logger.info(f"Format {data.format.value} applied to {result.rowcount} settings of tenant {tenant_id}")
        return BulkFormatUpdateOut(
            updated=result.rowcount,
            format=data.format.value,
            message="Formato actualizado en todos los tipos de documento activos"
        )

    # ===== CONTADOR =====

    def allocate(
        self,
        tenant_id: UUID,
        document_type: str,
        reference_id: Optional[str] = None,
        created_by: Optional[UUID] = None,
        when: Optional[datetime] = None
    ) -> GeneratedNumber:
        """
        Consumir el siguiente número de forma atómica.

        El UPDATE es la primera escritura del contador en la transacción: toma
        el lock de fila (MySQL/PostgreSQL) o de base de datos (SQLite) y los
        demás asignadores esperan hasta el commit.
        """
        when = when or datetime.now(timezone.utc)
        setting = self._get_active_setting(tenant_id, document_type)
        if not setting.auto_increment:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"La numeración de {document_type} es manual; envíe el número del documento"
            )

        t = settings_table
        frequency = t.c.reset_frequency
        period_expr = case(
            (frequency == ResetFrequency.DAILY.value, period_key(ResetFrequency.DAILY.value, when)),
            (frequency == ResetFrequency.MONTHLY.value, period_key(ResetFrequency.MONTHLY.value, when)),
            (frequency == ResetFrequency.YEARLY.value, period_key(ResetFrequency.YEARLY.value, when)),
            else_=""
        )
        rolled = and_(frequency != ResetFrequency.NEVER.value, t.c.current_period != period_expr)

        # MySQL evalúa los SET en orden: current_period va al final
        result = self.db.execute(
            update(t)
            .where(t.c.id == setting.id, t.c.is_active == True, t.c.auto_increment == True)
            .ordered_values(
                (t.c.next_number, case((rolled, t.c.start_number + 1), else_=t.c.next_number + 1)),
                (t.c.last_reset_date, case((rolled, literal(when, t.c.last_reset_date.type)), else_=t.c.last_reset_date)),
                (t.c.current_period, period_expr),
            )
        )
        if result.rowcount != 1:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"La numeración de {document_type} cambió durante la asignación"
            )

        row = self.db.execute(
            select(
                t.c.next_number, t.c.current_period, t.c.prefix, t.c.suffix,
                t.c.separator, t.c.number_length, t.c.format, t.c.custom_format
            ).where(t.c.id == setting.id)
        ).one()
        self.db.expire(setting)

        sequence = row.next_number - 1
        number = format_number(
            row.format, sequence,
            prefix=row.prefix, suffix=row.suffix, separator=row.separator,
            number_length=row.number_length, custom_format=row.custom_format, when=when
        )

        self.db.add(DocumentSequence(
            tenant_id=tenant_id,
            document_type=document_type,
            document_number=number,
            sequence_number=sequence,
            period=row.current_period,
            reference_id=str(reference_id) if reference_id else None,
            created_by=created_by
        ))
        self.db.flush()

        logger.info(f"Allocated {number} ({document_type} #{sequence}) for tenant {tenant_id}")
        return GeneratedNumber(
            number=number,
            document_type=document_type,
            sequence=sequence,
            prefix=row.prefix,
            format=row.format,
            period=row.current_period
        )

    def generate(self, tenant_id: UUID, document_type: str, created_by: Optional[UUID] = None,
                 reference_id: Optional[str] = None) -> GeneratedNumber:
        """Asignar y confirmar un número suelto (sin documento asociado)."""
        try:
            generated = self.allocate(tenant_id, document_type, reference_id=reference_id, created_by=created_by)
            self.db.commit()
            return generated
        except HTTPException:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Error generating number for {document_type}: {e}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Error interno al generar el número"
            )

    def _upcoming_sequence(self, setting: NumberGenerationSetting, when: datetime) -> int:
        current = period_key(setting.reset_frequency, when)
        if setting.reset_frequency != ResetFrequency.NEVER.value and (setting.current_period or "") != current:
            return setting.start_number
        return setting.next_number

    def peek_next(self, tenant_id: UUID, document_type: str, when: Optional[datetime] = None) -> NextNumberOut:
        """Número que emitiría la próxima asignación, sin consumirlo."""
        when = when or datetime.now(timezone.utc)
        setting = self._get_active_setting(tenant_id, document_type)
        sequence = self._upcoming_sequence(setting, when)
        return NextNumberOut(
            number=format_number(
                setting.format, sequence,
                prefix=setting.prefix, suffix=setting.suffix, separator=setting.separator,
                number_length=setting.number_length, custom_format=setting.custom_format, when=when
            ),
            document_type=document_type,
            sequence=sequence,
            format=setting.format
        )

    def preview(self, tenant_id: UUID, document_type: str, data: PreviewRequest,
                when: Optional[datetime] = None) -> PreviewOut:
        """Render con overrides de formato; no modifica nada."""
        when = when or datetime.now(timezone.utc)
        setting = self.get_setting(tenant_id, document_type)
        sequence = self._upcoming_sequence(setting, when)

        fmt = data.format.value if data.format else setting.format
        custom_format = data.custom_format if data.custom_format is not None else setting.custom_format
        if fmt == NumberFormat.CUSTOM.value and not has_sequence_token(custom_format):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El formato custom debe incluir {SEQ} o {N...} para el consecutivo"
            )

        preview = format_number(
            fmt, sequence,
            prefix=data.prefix if data.prefix is not None else setting.prefix,
            suffix=data.suffix if data.suffix is not None else setting.suffix,
            separator=data.separator if data.separator is not None else setting.separator,
            number_length=data.number_length or setting.number_length,
            custom_format=custom_format,
            when=when
        )
        return PreviewOut(preview=preview, document_type=document_type, format=fmt, sequence=sequence)

    def reset_counter(self, tenant_id: UUID, document_type: str, value: Optional[int] = None) -> ResetOut:
        setting = self.get_setting(tenant_id, document_type)
        now = datetime.now(timezone.utc)
        new_value = value if value is not None else setting.start_number

        self.db.execute(
            update(settings_table)
            .where(settings_table.c.id == setting.id)
            .values(
                next_number=new_value,
                last_reset_date=now,
                current_period=period_key(setting.reset_frequency, now)
            )
        )
        self.db.commit()
        self.db.expire(setting)
        logger.info(f"Counter {document_type} of tenant {tenant_id} reset to {new_value}")
        return ResetOut(
            document_type=document_type,
            next_number=new_value,
            last_reset_date=now,
            message=f"Contador de {document_type} reiniciado en {new_value}"
        )

    def sync_counter(self, tenant_id: UUID, document_type: str) -> SyncOut:
        """
        Adelantar un contador que quedó por detrás del mayor número emitido
        en el período actual (p. ej. después de un reset manual).
        """
        setting = self.get_setting(tenant_id, document_type)
        previous = setting.next_number
        current = period_key(setting.reset_frequency, datetime.now(timezone.utc))

        highest = self.db.query(func.max(DocumentSequence.sequence_number)).filter(
            DocumentSequence.tenant_id == tenant_id,
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == current
        ).scalar()

        if highest is None or (setting.current_period or "") != current or previous > highest:
            return SyncOut(document_type=document_type, previous_next_number=previous,
                           next_number=previous, fixed=False)

        self.db.execute(
            update(settings_table)
            .where(
                settings_table.c.id == setting.id,
                settings_table.c.next_number <= highest
            )
            .values(next_number=highest + 1)
        )
        self.db.commit()
        self.db.expire(setting)
        logger.info(f"Counter {document_type} of tenant {tenant_id} synced from {previous} to {highest + 1}")
        return SyncOut(document_type=document_type, previous_next_number=previous,
                       next_number=highest + 1, fixed=True)

    # ===== NÚMEROS DE DOCUMENTOS =====

    def assign_document_number(
        self,
        model,
        number_field: str,
        tenant_id: UUID,
        document_type: str,
        explicit_number: Optional[str] = None,
        reference_id: Optional[str] = None,
        created_by: Optional[UUID] = None
    ) -> str:
        """
        Número para un documento nuevo: el enviado por el cliente (único por
        empresa) o uno asignado del contador dentro de la transacción actual.
        """
        column = getattr(model, number_field)
        if explicit_number:
            duplicate = self.db.query(model).filter(
                model.tenant_id == tenant_id,
                column == explicit_number
            ).first()
            if duplicate:
                raise HTTPException(
                    status_code=status.HTTP_409_CONFLICT,
                    detail=f"El número {explicit_number} ya existe"
                )
            return explicit_number

        return self.next_document_number(tenant_id, document_type, reference_id, created_by)

    def next_document_number(self, tenant_id: UUID, document_type: str,
                             reference_id: Optional[str] = None, created_by: Optional[UUID] = None) -> str:
        """Asignar del contador; crea la configuración del catálogo si la empresa no la tiene."""
        if not self._has_setting(tenant_id, document_type):
            self._create_from_catalog(tenant_id, document_type)

        return self.allocate(
            tenant_id, document_type, reference_id=reference_id, created_by=created_by
        ).number

    def _has_setting(self, tenant_id: UUID, document_type: str) -> bool:
        return self.db.query(NumberGenerationSetting.id).filter(
            NumberGenerationSetting.tenant_id == tenant_id,
            NumberGenerationSetting.document_type == document_type
        ).first() is not None

    def _create_from_catalog(self, tenant_id: UUID, document_type: str) -> None:
        info = document_type_info(document_type)
        try:
            with self.db.begin_nested():
                self.db.add(NumberGenerationSetting(
                    tenant_id=tenant_id,
                    document_type=document_type,
                    prefix=info.prefix,
                    next_number=info.default_start,
                    start_number=info.default_start,
                    format=DEFAULT_FORMAT.value,
                    description=info.description
                ))
                self.db.flush()
        except IntegrityError:
            # otra transacción la creó primero; allocate() usa esa fila
            logger.info(f"Numbering setting {document_type} already created for tenant {tenant_id}")
            if not self._has_setting(tenant_id, document_type):
                raise
