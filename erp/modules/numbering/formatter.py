"""
Render document numbers from a numbering setting and an issued sequence.

All rendering is pure: the allocation instant is passed in so the same
inputs always give the same number.
"""
import re
from datetime import datetime, timezone
from typing import Optional

from erp.modules.numbering.catalog import NumberFormat, ResetFrequency

SEQUENCE_TOKEN = re.compile(r"\{(N+)\}")
ALLOWED_TOKENS = re.compile(r"\{(PREFIX|SUFFIX|SEP|YYYY|YY|MM|DD|SEQ|N+)\}")


def period_key(reset_frequency: str, when: datetime) -> str:
    """Key of the counter period that contains `when`; empty for counters that never reset."""
    if reset_frequency == ResetFrequency.DAILY.value:
        return when.strftime("%Y%m%d")
    if reset_frequency == ResetFrequency.MONTHLY.value:
        return when.strftime("%Y%m")
    if reset_frequency == ResetFrequency.YEARLY.value:
        return when.strftime("%Y")
    return ""


def has_sequence_token(template: Optional[str]) -> bool:
    if not template:
        return False
    return "{SEQ}" in template or bool(SEQUENCE_TOKEN.search(template))


def unknown_tokens(template: str) -> list:
    """Brace tokens in a custom template that the renderer does not know."""
    found = re.findall(r"\{[^{}]*\}", template)
    return [token for token in found if not ALLOWED_TOKENS.fullmatch(token)]


def render_custom(template: str, prefix: str, suffix: str, separator: str,
                  number_length: int, sequence: int, when: datetime) -> str:
    padded = str(sequence).zfill(number_length)
    replacements = {
        "{PREFIX}": prefix,
        "{SUFFIX}": suffix,
        "{SEP}": separator,
        "{YYYY}": when.strftime("%Y"),
        "{YY}": when.strftime("%y"),
        "{MM}": when.strftime("%m"),
        "{DD}": when.strftime("%d"),
        "{SEQ}": padded,
    }
    result = SEQUENCE_TOKEN.sub(lambda m: str(sequence).zfill(len(m.group(1))), template)
    for token, value in replacements.items():
        result = result.replace(token, value)
    return result


def format_number(
    fmt: str,
    sequence: int,
    prefix: str = "",
    suffix: str = "",
    separator: str = "-",
    number_length: int = 6,
    custom_format: Optional[str] = None,
    when: Optional[datetime] = None,
) -> str:
    """
    Build the document number for `sequence`.

    Unknown formats render as prefix-sequential. A custom format without a
    template also falls back to prefix-sequential.
    """
    when = when or datetime.now(timezone.utc)
    prefix = prefix or ""
    suffix = suffix or ""
    separator = separator if separator is not None else ""

    n = str(sequence).zfill(number_length)
    s = separator
    year = when.strftime("%Y")
    year_month = when.strftime("%Y%m")
    date = when.strftime("%Y%m%d")

    if fmt == NumberFormat.CUSTOM.value and custom_format:
        return render_custom(custom_format, prefix, suffix, separator, number_length, sequence, when)

    formats = {
        NumberFormat.PREFIX_NUMBER.value: f"{prefix}{s}{n}",
        NumberFormat.PREFIX_SEQUENTIAL.value: f"{prefix}{s}{n}",
        NumberFormat.NUMBER_SUFFIX.value: f"{n}{s}{suffix}",
        NumberFormat.PREFIX_NUMBER_SUFFIX.value: f"{prefix}{s}{n}{s}{suffix}",
        NumberFormat.PREFIX_TIMESTAMP.value: f"{prefix}{s}{int(when.timestamp() * 1000)}",
        NumberFormat.PREFIX_YEAR_SEQUENTIAL.value: f"{prefix}{s}{year}{s}{n}",
        NumberFormat.PREFIX_YEARMONTH_SEQUENTIAL.value: f"{prefix}{s}{year_month}{s}{n}",
        NumberFormat.PREFIX_DATE_SEQUENTIAL.value: f"{prefix}{s}{date}{s}{n}",
        NumberFormat.YEAR_PREFIX_SEQUENTIAL.value: f"{year}{s}{prefix}{s}{n}",
        NumberFormat.DATE_PREFIX_SEQUENTIAL.value: f"{date}{s}{prefix}{s}{n}",
        NumberFormat.SEQUENTIAL_ONLY.value: n,
    }
    return formats.get(fmt, formats[NumberFormat.PREFIX_SEQUENTIAL.value])
