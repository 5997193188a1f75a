"""
Certificate chain reordering.

Turns an unordered bag of certificates into a leaf-to-root path by
following issuer -> subject links.  The search gives up after one full pass
over the remaining pool without a match; unresolved certificates are
dropped rather than guessed.
"""

from __future__ import annotations

__all__ = [
    "build_path",
    "contains_certificate",
    "is_self_issued",
    "order_chain",
]

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from asn1crypto import x509 as asn1_x509

_logger = logging.getLogger(__name__)


def is_self_issued(cert: asn1_x509.Certificate) -> bool:
    """True when issuer and subject names are equal (root candidates)."""
    return cert.issuer == cert.subject


def contains_certificate(cert: asn1_x509.Certificate, chain: Iterable[asn1_x509.Certificate]) -> bool:
    """Membership test by binary (DER) identity."""
    encoded = cert.dump()
    return any(c.dump() == encoded for c in chain)


def build_path(
    leaf: asn1_x509.Certificate,
    pool: Iterable[asn1_x509.Certificate],
    *,
    stop_at_self_issued: bool = True,
) -> list[asn1_x509.Certificate]:
    """
    Walk issuer links from *leaf* through *pool*.

    Each step scans the remaining pool once for the certificate whose
    subject equals the current tail's issuer.  The walk ends when the pool
    is empty or a scan finds nothing.  With *stop_at_self_issued* (the
    default, used for issuer stores that hold many roots) it also ends at a
    self-issued tail.

    Returns:
        [leaf, issuer, issuer's issuer, ...]
    """
    ordered = [leaf]
    remaining = [c for c in pool if c.dump() != leaf.dump()]
    tail = leaf

    while remaining:
        if stop_at_self_issued and is_self_issued(tail):
            break
        for index, candidate in enumerate(remaining):
            if candidate.subject == tail.issuer:
                ordered.append(candidate)
                tail = candidate
                del remaining[index]
                break
        else:
            _logger.debug(
                "No issuer found for '%s'; dropping %d unresolved certificate(s)",
                tail.subject.human_friendly,
                len(remaining),
            )
            break

    return ordered


def _find_leaf(certs: list[asn1_x509.Certificate]) -> asn1_x509.Certificate | None:
    candidates = [c for c in certs if not c.ca]
    if not candidates:
        return None
    if len(candidates) > 1:
        _logger.debug("%d end-entity certificates in chain, picking one", len(candidates))
    # Fingerprint tie-break keeps the result independent of input order
    return min(candidates, key=lambda c: c.sha256)


def order_chain(certs: Iterable[asn1_x509.Certificate]) -> list[asn1_x509.Certificate]:
    """
    Reorder certificates into a leaf-first chain.

    The leaf is the certificate whose basic constraints do not mark it as a
    CA.  If there is none the input is returned unchanged.  Ordering ends
    only when the pool is empty or a full pass finds no issuer.
    """
    pool = list(certs)
    leaf = _find_leaf(pool)
    if leaf is None:
        _logger.debug("No end-entity certificate among %d, chain left as is", len(pool))
        return pool
    return build_path(leaf, pool, stop_at_self_issued=False)
