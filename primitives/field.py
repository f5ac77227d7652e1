"""BN254 scalar field GF(r).

Uses galois library for all field arithmetic. FF is the field type.

The multiplicative generator is passed explicitly so galois does not have to
factor r - 1 to search for a primitive element.
"""

import hashlib
import struct

import galois

# --- Field Construction ---

BN254_SCALAR_MODULUS = 0x30644E72E131A029B85045B68181585D2833E84879B9709143E1F593F0000001

MULTIPLICATIVE_GENERATOR = 7

FF = galois.GF(BN254_SCALAR_MODULUS, primitive_element=MULTIPLICATIVE_GENERATOR, verify=False)
"""Scalar field GF(r) of the BN254 curve."""

REPR_SIZE = 32
"""Byte length of the canonical field element representation."""

UNIFORM_BYTES_SIZE = 64

VK_PERSONALIZATION = b"Halo2-Verify-Key"


# --- Conversions ---

def to_field(value) -> FF:
    """Reduce an int (possibly negative) or field element into FF."""
    if isinstance(value, FF):
        return value
    return FF(int(value) % BN254_SCALAR_MODULUS)


def to_repr(value) -> bytes:
    """Canonical 32-byte little-endian representation of a field element."""
    return int(to_field(value)).to_bytes(REPR_SIZE, "little")


def from_repr(data: bytes) -> FF:
    """Parse a canonical representation produced by to_repr.

    Raises:
        ValueError: If the length is wrong or the integer is not reduced
    """
    if len(data) != REPR_SIZE:
        raise ValueError(f"Field repr must be {REPR_SIZE} bytes, got {len(data)}")
    n = int.from_bytes(data, "little")
    if n >= BN254_SCALAR_MODULUS:
        raise ValueError(f"Non-canonical field repr: {data.hex()}")
    return FF(n)


def from_uniform_bytes(data: bytes) -> FF:
    """Reduce 64 little-endian bytes modulo r (wide reduction)."""
    if len(data) != UNIFORM_BYTES_SIZE:
        raise ValueError(f"Uniform bytes must be {UNIFORM_BYTES_SIZE} bytes, got {len(data)}")
    return FF(int.from_bytes(data, "little") % BN254_SCALAR_MODULUS)


# --- Verifying Key Fingerprint ---

def vk_transcript_repr(pinned: str) -> FF:
    """Hash a pinned verifying-key description into the field.

    BLAKE2b-512 personalized with "Halo2-Verify-Key" over the u64 LE length of
    the description followed by its UTF-8 bytes, then wide-reduced.
    """
    encoded = pinned.encode("utf-8")
    hasher = hashlib.blake2b(digest_size=UNIFORM_BYTES_SIZE, person=VK_PERSONALIZATION)
    hasher.update(struct.pack("<Q", len(encoded)))
    hasher.update(encoded)
    return from_uniform_bytes(hasher.digest())
