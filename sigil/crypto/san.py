"""
Subject Alternative Name assembly.

Entry order is fixed:
    1. the common name (DNS)
    2. the loopback address 127.0.0.1 (DNS by default, IP on request)
    3+ the additional names, trimmed, in input order

Names are not checked for DNS syntax; any non-empty token is accepted.
Internationalised names are stored as IDNA A-labels (xn--...), since
an X.509 dNSName is an IA5String.
An additional name that repeats an earlier entry (including the common
name or the loopback address) is dropped, so numbering stays contiguous.
"""

import logging
from typing import Iterable

from sigil.common.errors import ValidationError
from sigil.common.models import SanEntry, SanType, SubjectAltNameSet
from sigil.common.utils import split_csv, to_a_label

logger = logging.getLogger(__name__)

LOOPBACK = "127.0.0.1"


def _a_label(name: str) -> str:
    try:
        return to_a_label(name)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def assemble(common_name: str, additional_raw: str, ip_loopback: bool = False) -> SubjectAltNameSet:
    """Build the SAN set from a common name and a comma-separated name list."""
    return assemble_from_names(common_name, split_csv(additional_raw), ip_loopback=ip_loopback)


def assemble_from_names(
    common_name: str,
    names: Iterable[str],
    ip_loopback: bool = False,
) -> SubjectAltNameSet:
    common_name = (common_name or "").strip()
    if not common_name:
        raise ValidationError("common name is required for the subjectAltName set")
    common_name = _a_label(common_name)

    loopback_type = SanType.IP if ip_loopback else SanType.DNS
    entries = [
        SanEntry(type=SanType.DNS, value=common_name, index=1),
        SanEntry(type=loopback_type, value=LOOPBACK, index=2),
    ]
    seen = {common_name, LOOPBACK}

    for name in names:
        name = _a_label(name.strip())
        if not name or name in seen:
            continue
        seen.add(name)
        entries.append(SanEntry(type=SanType.DNS, value=name, index=len(entries) + 1))

    logger.debug("subjectAltName set: %s", ", ".join(f"{e.type.value}:{e.value}" for e in entries))
    return SubjectAltNameSet(entries=tuple(entries))
