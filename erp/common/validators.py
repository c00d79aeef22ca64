"""
Validadores de datos de contacto y fiscales (Kenia por defecto)
"""
import re
from typing import Optional


def validate_phone(phone: str) -> bool:
    """
    Valida un número telefónico.
    Formatos válidos:
    - +2547XXXXXXXX / +2541XXXXXXXX (Kenia, internacional)
    - 07XXXXXXXX / 01XXXXXXXX (Kenia, local)
    - Cualquier número internacional E.164 (+ y 7 a 15 dígitos)
    """
    cleaned = re.sub(r'[\s\-\(\)\.]', '', phone)

    patterns = [
        r'^\+254[17][0-9]{8}$',
        r'^254[17][0-9]{8}$',
        r'^0[17][0-9]{8}$',
        r'^\+[1-9][0-9]{6,14}$',
    ]

    return any(re.match(pattern, cleaned) for pattern in patterns)


def format_phone(phone: str) -> str:
    """
    Normaliza a formato internacional.
    Los números locales de Kenia (07.../01...) pasan a +254.
    """
    cleaned = re.sub(r'[\s\-\(\)\.]', '', phone)

    if re.match(r'^0[17][0-9]{8}$', cleaned):
        return f"+254{cleaned[1:]}"
    if re.match(r'^254[17][0-9]{8}$', cleaned):
        return f"+{cleaned}"
    return cleaned


def validate_kra_pin(pin: str) -> bool:
    """
    Valida un PIN tributario de la KRA.
    Una letra, nueve dígitos y una letra final (ej. A123456789B).
    """
    cleaned = pin.strip().upper()
    return bool(re.match(r'^[AP][0-9]{9}[A-Z]$', cleaned))


def clean_optional_phone(value: Optional[str]) -> Optional[str]:
    """Validador reutilizable para campos de teléfono opcionales en schemas."""
    if value is None or value.strip() == "":
        return None
    if not validate_phone(value):
        raise ValueError(
            'Número de teléfono inválido. Use +2547XXXXXXXX, 07XXXXXXXX '
            'o un número internacional con prefijo +'
        )
    return format_phone(value)
