"""Wallet address extraction from verifier user data.

The passport-attestation app lets the user attach free-form data to a proof;
the gateway's frontend puts the user's wallet address there. The verifier
returns it hex-encoded, usually right-padded with NUL bytes.
"""

import binascii

from app.attest.exceptions import AddressFormatError


def decode_user_defined_data(hex_data: str) -> str:
    """Decode hex-encoded user-defined data into text.

    A leading ``0x`` and NUL padding are removed.

    Raises:
        AddressFormatError: If the value is not hex or not UTF-8.
    """
    if not isinstance(hex_data, str) or not hex_data:
        raise AddressFormatError.undecodable("user-defined data is empty")
    text = hex_data[2:] if hex_data[:2].lower() == "0x" else hex_data
    try:
        raw = bytes.fromhex(text)
    except (ValueError, binascii.Error) as e:
        raise AddressFormatError.undecodable(f"not hex: {e}") from e
    try:
        return raw.decode("utf-8").strip("\x00").strip()
    except UnicodeDecodeError as e:
        raise AddressFormatError.undecodable(f"not UTF-8: {e}") from e


def wallet_address_from_user_data(hex_data: str, prefix: str) -> str:
    """Decode a wallet address and check its chain prefix.

    Args:
        hex_data: ``userDefinedData`` as returned by the verifier.
        prefix: Expected bech32 human-readable part, e.g. ``twilight``.

    Returns:
        The decoded address.

    Raises:
        AddressFormatError: On decoding failure or prefix mismatch.
    """
    address = decode_user_defined_data(hex_data)
    if not address.startswith(f"{prefix}1"):
        raise AddressFormatError.bad_prefix(address, prefix)
    return address
