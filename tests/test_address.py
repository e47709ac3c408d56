"""Tests for wallet address extraction from userDefinedData."""

import pytest

from app.attest.address import decode_user_defined_data, wallet_address_from_user_data
from app.attest.exceptions import AddressFormatError, ErrorCode

from conftest import TEST_WALLET, hex_user_data


def test_decodes_padded_hex():
    assert decode_user_defined_data(hex_user_data("hello")) == "hello"


def test_accepts_0x_prefix():
    assert decode_user_defined_data("0x" + "hello".encode().hex()) == "hello"


def test_wallet_address_with_expected_prefix():
    assert wallet_address_from_user_data(hex_user_data(TEST_WALLET), "twilight") == TEST_WALLET


def test_wrong_prefix_rejected():
    with pytest.raises(AddressFormatError) as exc_info:
        wallet_address_from_user_data(hex_user_data("cosmos1abcdef"), "twilight")
    assert exc_info.value.code == ErrorCode.ADDRESS_FORMAT_INVALID
    assert exc_info.value.status_code == 422


def test_prefix_requires_separator():
    """'twilightx...' is not a twilight bech32 address."""
    with pytest.raises(AddressFormatError):
        wallet_address_from_user_data(hex_user_data("twilightxyz"), "twilight")


@pytest.mark.parametrize("value", ["", None, "zz11", "abc"])
def test_undecodable(value):
    with pytest.raises(AddressFormatError):
        decode_user_defined_data(value)


def test_invalid_utf8():
    with pytest.raises(AddressFormatError, match="UTF-8"):
        decode_user_defined_data("ff" * 4)
