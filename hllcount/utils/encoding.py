"""
Hex helpers for 32-byte keys and references
"""
import string

KEY_LENGTH = 32
HEX_KEY_LENGTH = 2 * KEY_LENGTH

_HEX_DIGITS = frozenset(string.hexdigits)


def is_valid_hex_key(value) -> bool:
    """
    Check that value is a 32-byte key written as 64 hex characters

    Upper and lower case digits are both accepted.
    """
    return (
        isinstance(value, str)
        and len(value) == HEX_KEY_LENGTH
        and all(c in _HEX_DIGITS for c in value)
    )


def hex_to_key(value: str) -> bytes:
    """
    Decode a 64-character hex key to its 32 raw bytes

    Raises:
        ValueError: If value is not a valid hex key
    """
    if not is_valid_hex_key(value):
        raise ValueError(f"Invalid hex key: {value!r}")
    return bytes.fromhex(value)
