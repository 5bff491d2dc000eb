"""Canonical string representation of a parsed User-Agent record."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from .user_agent import AttributeRecord

GROUP_SEPARATOR = "."
SECTION_SEPARATOR = "|"


def _join_present(values: Iterable[str | None]) -> str:
    return GROUP_SEPARATOR.join(value for value in values if value is not None)


def canonicalize(record: AttributeRecord) -> str | None:
    """Build the pipe-delimited canonical string of a record.

    Product, OS and device fields are each joined in fixed field order,
    skipping absent values. Empty groups are dropped and the raw User-Agent is
    always appended as the last section.

    Parameters
    ----------
    record : AttributeRecord
        Record to canonicalize.

    Returns
    -------
    str | None
        e.g. ``"Chrome.115.0|Windows.10|Mozilla/5.0 ..."``, or ``None`` when the
        record has no raw User-Agent.
    """
    if not record.raw_agent:
        return None

    product, os_info, device = record.product, record.os, record.device
    groups = [
        _join_present((product.name, product.major, product.minor, product.patch)),
        _join_present(
            (
                os_info.name,
                os_info.major,
                os_info.minor,
                os_info.patch,
                os_info.patch_minor,
            )
        ),
        _join_present((device.name, device.brand, device.model)),
    ]

    sections = [group for group in groups if group]
    sections.append(record.raw_agent)
    return SECTION_SEPARATOR.join(sections)
