"""
EIP-55 address checksumming.

Allocation destinations and vesting beneficiaries are EVM style addresses:

- Raw:      0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed
- Checksum: 0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed

All-lowercase and all-uppercase addresses carry no checksum and are
accepted; mixed-case addresses must match their EIP-55 encoding.
"""

from __future__ import annotations

from Crypto.Hash import keccak

from tokengen.core.constants import ADDRESS_HEX_LENGTH, ZERO_ADDRESS


def _keccak256(data: bytes) -> bytes:
    """Compute keccak256 hash (same as Ethereum)."""
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def _split_hex(address: str) -> str:
    if not isinstance(address, str):
        raise ValueError("Address must be a string")
    if not address.startswith(("0x", "0X")):
        raise ValueError(f"Invalid address prefix: {address[:2]}")
    hex_part = address[2:]
    if len(hex_part) != ADDRESS_HEX_LENGTH:
        raise ValueError(
            f"Address hex part must be {ADDRESS_HEX_LENGTH} characters, got {len(hex_part)}"
        )
    try:
        int(hex_part, 16)
    except ValueError:
        raise ValueError(f"Invalid hex characters in address: {hex_part}")
    return hex_part


def to_checksum_address(address: str) -> str:
    """
    Convert an address to its EIP-55 checksummed form.

    Raises:
        ValueError: If address format is invalid

    Example:
        >>> to_checksum_address("0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed")
        '0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed'
    """
    hex_lower = _split_hex(address).lower()
    address_hash = _keccak256(hex_lower.encode("utf-8")).hex()

    checksummed = []
    for i, char in enumerate(hex_lower):
        if char in "0123456789":
            checksummed.append(char)
        elif int(address_hash[i], 16) >= 8:
            checksummed.append(char.upper())
        else:
            checksummed.append(char.lower())

    return "0x" + "".join(checksummed)


def is_checksum_valid(address: str) -> bool:
    """True if the checksum is valid or the address is single-case."""
    try:
        hex_part = _split_hex(address)
    except ValueError:
        return False

    if hex_part == hex_part.lower() or hex_part == hex_part.upper():
        return True

    return "0x" + hex_part == to_checksum_address(address)


def is_zero_address(address: str | None) -> bool:
    if not address:
        return True
    return address.lower() == ZERO_ADDRESS


def validate_address(address: str, allow_zero: bool = False) -> tuple[bool, str]:
    """
    Validate address format and checksum.

    Returns:
        Tuple of (is_valid, error_message or checksummed_address)
    """
    try:
        _split_hex(address)
    except ValueError as exc:
        return False, str(exc)

    if not is_checksum_valid(address):
        return False, f"Invalid EIP-55 checksum: {address}"
    if not allow_zero and is_zero_address(address):
        return False, "Zero address is not a valid beneficiary"

    return True, to_checksum_address(address)


def normalize_address(address: str, allow_zero: bool = False) -> str:
    """Return the checksummed address or raise ValueError."""
    valid, result = validate_address(address, allow_zero=allow_zero)
    if not valid:
        raise ValueError(result)
    return result
