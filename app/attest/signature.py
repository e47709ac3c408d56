"""ADR-036 off-chain message signature verification.

Wallets sign arbitrary data by wrapping it in an amino-JSON StdSignDoc with a
single ``sign/MsgSignData`` message, zeroed fee and empty chain id. The
signature is secp256k1 ECDSA over SHA-256 of that document, serialized as
64 bytes ``r || s``. The signing key must also hash to the signer address:
bech32(hrp, RIPEMD-160(SHA-256(compressed_pubkey))).

verify_signature() never raises; every failure is reported as ok=False.
"""

import base64
import hashlib
import json
import logging
import re
from dataclasses import asdict, dataclass
from typing import Optional

import bech32
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

log = logging.getLogger(__name__)

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]+={0,2}$")

PUBKEY_LENGTH = 33
SIGNATURE_LENGTH = 64


@dataclass
class SignatureResult:
    ok: bool
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


def _decode_base64(name: str, value: str) -> bytes:
    if not isinstance(value, str) or len(value) % 4 != 0 or not _BASE64_RE.match(value):
        raise ValueError(f"{name} is not valid base64")
    return base64.b64decode(value, validate=True)


def _ripemd160(data: bytes) -> bytes:
    digest = hashes.Hash(hashes.RIPEMD160())
    digest.update(data)
    return digest.finalize()


def pubkey_to_address(pubkey: bytes, hrp: str) -> str:
    """Derive the bech32 account address of a compressed secp256k1 key."""
    account = _ripemd160(hashlib.sha256(pubkey).digest())
    return bech32.bech32_encode(hrp, bech32.convertbits(account, 8, 5))


def adr36_sign_doc(signer: str, data: bytes) -> bytes:
    """Serialize the ADR-036 amino sign document for ``data``."""
    doc = {
        "account_number": "0",
        "chain_id": "",
        "fee": {"amount": [], "gas": "0"},
        "memo": "",
        "msgs": [
            {
                "type": "sign/MsgSignData",
                "value": {
                    "data": base64.b64encode(data).decode("ascii"),
                    "signer": signer,
                },
            }
        ],
        "sequence": "0",
    }
    return json.dumps(doc, sort_keys=True, separators=(",", ":")).encode("utf-8")


def verify_signature(
    bech32_address: str,
    signature_b64: str,
    pubkey_b64: str,
    message: str,
) -> SignatureResult:
    """Verify an ADR-036 signature made by ``bech32_address`` over ``message``.

    Args:
        bech32_address: Full signer address (e.g. ``twilight1...``).
        signature_b64: Base64 ``r || s`` signature, 64 bytes.
        pubkey_b64: Base64 compressed secp256k1 public key, 33 bytes.
        message: The exact ASCII message that was signed.
    """
    try:
        if not isinstance(bech32_address, str):
            raise ValueError("bech32Address must be a string")
        if not isinstance(message, str):
            raise ValueError("messageString must be a string")

        hrp, _ = bech32.bech32_decode(bech32_address)
        if hrp is None:
            raise ValueError(f"{bech32_address!r} is not a valid bech32 address")
        # bech32 is case-insensitive; derived addresses and sign docs are lower case
        address = bech32_address.lower()

        signature = _decode_base64("signatureB64", signature_b64)
        pubkey = _decode_base64("pubkeyB64", pubkey_b64)
        data = message.encode("ascii")

        if len(pubkey) != PUBKEY_LENGTH:
            raise ValueError(
                f"pubkey must be {PUBKEY_LENGTH} bytes (compressed secp256k1). Got {len(pubkey)}"
            )
        if len(signature) != SIGNATURE_LENGTH:
            # Some wallets append a recovery byte; ADR-036 expects r||s only
            raise ValueError(
                f"signature must be {SIGNATURE_LENGTH} bytes (r||s). Got {len(signature)}"
            )

        if pubkey_to_address(pubkey, hrp) != address:
            raise ValueError("Unmatched signer")

        public_key = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), pubkey)
        r = int.from_bytes(signature[:32], "big")
        s = int.from_bytes(signature[32:], "big")
        try:
            public_key.verify(
                encode_dss_signature(r, s),
                adr36_sign_doc(address, data),
                ec.ECDSA(hashes.SHA256()),
            )
        except InvalidSignature:
            return SignatureResult(ok=False)
        return SignatureResult(ok=True)
    except Exception as e:
        log.debug(f"signature verification failed: {e}")
        return SignatureResult(ok=False, error=str(e) or e.__class__.__name__)
