"""Client/server identifier reconciliation.

A zk-passport client may claim the unique identifier it expects; the
verifier derives its own. A binding may only be persisted when the proof
verified and the two agree. Comparison is exact string equality: no
trimming, no case folding. Normalization exists only as an explicit opt-in.
"""

from enum import Enum
from typing import Optional


class Decision(str, Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"


def _normalize(value: str) -> str:
    return value.strip().casefold()


def identifiers_match(
    client_id: Optional[str],
    server_id: Optional[str],
    *,
    normalize: bool = False,
) -> Optional[bool]:
    """Compare a client claim with the server identifier.

    Returns None when the client made no claim.
    """
    if client_id is None:
        return None
    if server_id is None:
        return False
    if normalize:
        return _normalize(client_id) == _normalize(server_id)
    return client_id == server_id


def reconcile(
    client_id: Optional[str],
    server_id: Optional[str],
    verified: bool,
    *,
    normalize: bool = False,
) -> Decision:
    """Decide whether a verified binding may be persisted.

    ALLOW iff ``verified`` is True and either no client identifier was
    supplied or it equals the server identifier.
    """
    if verified is not True:
        return Decision.DENY
    if client_id is None:
        return Decision.ALLOW
    if identifiers_match(client_id, server_id, normalize=normalize):
        return Decision.ALLOW
    return Decision.DENY
