"""Classification and canonicalization of raw address strings."""

from __future__ import annotations

import ipaddress
import logging
from typing import Iterable, Optional, Set

from .config import AddressFamily, AddressKind, NormalizedCIDR

LOG = logging.getLogger(__name__)


def _parse(raw: str) -> Optional[tuple[ipaddress.IPv4Address | ipaddress.IPv6Address, str, Optional[int]]]:
    # Ranges ("10.0.0.1-10.0.0.5") cannot be expressed as an ipBlock.
    if "-" in raw:
        return None

    address_text, sep, prefix_text = raw.partition("/")
    try:
        address = ipaddress.ip_address(address_text)
    except ValueError:
        return None
    if address.is_link_local:
        return None
    # Zone-scoped IPv6 ("2001:db8::1%eth0") has no CIDR form.
    if getattr(address, "scope_id", None) or "%" in address_text:
        return None

    if not sep:
        return address, address_text, None

    if not prefix_text.isdigit():
        return None
    prefix = int(prefix_text)
    if prefix > address.max_prefixlen:
        return None
    return address, address_text, prefix


def classify(raw: str) -> Optional[AddressKind]:
    """Return the kind of ``raw`` or ``None`` when it must be discarded."""

    cidr = normalize_address(raw)
    return cidr.kind if cidr is not None else None


def normalize_address(raw: str) -> Optional[NormalizedCIDR]:
    """Canonicalize a single address.

    Bare addresses gain a host prefix (``/32`` or ``/128``); CIDR notation is
    kept exactly as given.  Ranges, unparseable input and link-local addresses
    yield ``None``.
    """

    parsed = _parse(raw)
    if parsed is None:
        return None
    address, address_text, prefix = parsed
    family = AddressFamily.IPV4 if address.version == 4 else AddressFamily.IPV6
    if prefix is None:
        kind = AddressKind.IPV4_ADDRESS if family is AddressFamily.IPV4 else AddressKind.IPV6_ADDRESS
        prefix = family.host_prefix
    else:
        kind = AddressKind.IPV4_CIDR if family is AddressFamily.IPV4 else AddressKind.IPV6_CIDR
    return NormalizedCIDR(
        address=address_text,
        prefix_length=prefix,
        family=family,
        kind=kind,
    )


def normalize(raw_addresses: Iterable[str]) -> Set[NormalizedCIDR]:
    """Return the normalized subset of ``raw_addresses``."""

    result: Set[NormalizedCIDR] = set()
    for raw in raw_addresses:
        cidr = normalize_address(str(raw))
        if cidr is None:
            LOG.debug("discarding unsupported address %r", raw)
            continue
        result.add(cidr)
    return result
