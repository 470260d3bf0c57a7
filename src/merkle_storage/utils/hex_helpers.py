"""
Hex String Utilities

This module provides helpers for converting digests between raw bytes and the
0x-prefixed hex strings used on the wire and in the client state file.
"""

from typing import Optional


def normalize_hex(hex_str: str, expected_bytes: Optional[int] = None) -> str:
    """
    Normalize a hex string to lowercase with a '0x' prefix.

    Args:
        hex_str: The hex string to normalize (with or without '0x')
        expected_bytes: Optional expected byte length for validation

    Returns:
        Normalized hex string

    Raises:
        ValueError: If the hex string contains invalid characters, has an odd
            number of digits, or does not match expected_bytes

    Examples:
        >>> normalize_hex("0xABCD")
        "0xabcd"
        >>> normalize_hex("abcd")
        "0xabcd"
    """
    if not isinstance(hex_str, str):
        raise ValueError(f"Hex value must be a string, got {type(hex_str).__name__}")

    hex_part = hex_str[2:] if hex_str.startswith("0x") else hex_str

    # Validate hex characters
    if not all(c in "0123456789abcdefABCDEF" for c in hex_part):
        raise ValueError(f"Invalid hex string: {hex_str}")
    if len(hex_part) % 2 == 1:
        raise ValueError(f"Hex string has an odd number of digits: {hex_str}")

    # Validate expected byte length if provided
    if expected_bytes is not None:
        actual_bytes = len(hex_part) // 2
        if actual_bytes != expected_bytes:
            raise ValueError(f"Expected {expected_bytes} bytes, got {actual_bytes} bytes")

    return "0x" + hex_part.lower()


def hex_to_bytes(hex_str: str, expected_bytes: Optional[int] = None) -> bytes:
    """
    Convert a hex string to bytes.

    Args:
        hex_str: Hex string (with or without '0x' prefix)
        expected_bytes: Optional expected byte length for validation

    Returns:
        Bytes representation of the hex string

    Examples:
        >>> hex_to_bytes("0x1234")
        b'\x12\x34'
        >>> hex_to_bytes("1234")
        b'\x12\x34'
    """
    return bytes.fromhex(normalize_hex(hex_str, expected_bytes)[2:])


def bytes_to_hex(data: bytes, prefix: bool = True) -> str:
    """
    Convert bytes to a hex string.

    Args:
        data: Bytes to convert
        prefix: Whether to include '0x' prefix

    Returns:
        Hex string representation

    Examples:
        >>> bytes_to_hex(b'\x12\x34')
        "0x1234"
        >>> bytes_to_hex(b'\x12\x34', prefix=False)
        "1234"
    """
    hex_str = data.hex()
    return f"0x{hex_str}" if prefix else hex_str
