# src/gencell_core/hashing.py
"""
Centralizes the naming of generated artifacts.

Every generated artifact is named `<gencell_type>_<suffix>`, where the suffix is
a six-character code computed from the values of its parameter dictionary. The
same parameters always yield the same name, so re-generating, editing and
re-importing a device resolves to the artifact that already exists.

The suffix algorithm is a 30-bit variant of the ELF hash. Previously generated
artifact names must stay resolvable, so `get_gencell_hash` has to remain
bit-for-bit stable. The output alphabet is base32 over the digits 2-9 and the
letters A-Z without I and O, which keeps names valid, case-insensitive SPICE
subcircuit names that cannot be misread as 1 or 0.
"""
import logging
import random
import string
from typing import Any, Callable, Mapping

logger = logging.getLogger(__name__)

HASH_BITS = 30
HASH_SUFFIX_LENGTH = 6

# Bits 30-33 of the accumulator after a shift; folded back into the low bits.
_HIGH_NIBBLE_MASK = 0x3C0000000

#: The 32 symbols of the suffix alphabet, indexed by 5-bit group value.
HASH_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"

_LEGACY_ALPHABET = string.digits + string.ascii_lowercase


def encode_base32(value: int) -> str:
    """
    Splits the low 30 bits of `value` into six 5-bit groups, least significant
    group first, and maps each group through HASH_ALPHABET.
    """
    chars = []
    for i in range(HASH_SUFFIX_LENGTH):
        group = (value >> (i * 5)) & 0x1F
        chars.append(HASH_ALPHABET[group])
    return "".join(chars)


def get_gencell_hash(parameters: Mapping[str, Any]) -> str:
    """
    Computes the six-character suffix for a parameter dictionary.

    Only the values participate, walked in the dictionary's iteration order;
    keys are ignored. The function is total: any string content hashes.
    """
    hash_value = 0
    for value in parameters.values():
        for char in str(value):
            hash_value = (hash_value << 4) + ord(char)
            high = hash_value & _HIGH_NIBBLE_MASK
            hash_value ^= high >> HASH_BITS
            hash_value &= ~high
    return encode_base32(hash_value)


def artifact_name(gencell_type: str, parameters: Mapping[str, Any]) -> str:
    """The canonical artifact name for a generator type and its checked parameters."""
    return f"{gencell_type}_{get_gencell_hash(parameters)}"


def get_gencell_name(gencell_type: str, exists: Callable[[str], bool], rng: random.Random = None) -> str:
    """
    Legacy namer: a random six-character base-36 suffix (digits and lowercase
    letters), retried until `exists` reports the name free.

    The name is not derived from the parameters and only guards against
    collisions with names `exists` knows about.
    """
    rng = rng or random
    while True:
        postfix = "".join(rng.choice(_LEGACY_ALPHABET) for _ in range(HASH_SUFFIX_LENGTH))
        candidate = f"{gencell_type}_{postfix}"
        if not exists(candidate):
            return candidate
        logger.debug(f"Random gencell name '{candidate}' already in use; retrying.")
