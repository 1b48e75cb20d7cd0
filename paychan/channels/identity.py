"""Participant identities, canonical ordering and channel address derivation."""
import functools
import hashlib

import base58


CHANNEL_SEED = b"channel"
"""Seed prefix of every channel address."""

PDA_MARKER = b"ProgramDerivedAddress"
"""Suffix mixed into address derivation hashes."""

_P = 2 ** 255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P


def is_on_curve(b):
    """Check whether 32 bytes decompress to a point on the ed25519 curve.

    Args:
        b (bytes): Compressed Edwards point (little-endian y, sign bit).

    Returns:
        bool: True if the encoding decompresses to a curve point.

    """
    y = (int.from_bytes(b, 'little') & ((1 << 255) - 1)) % _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    x2 = u * pow(v, _P - 2, _P) % _P
    if x2 == 0:
        return True
    return pow(x2, (_P - 1) // 2, _P) == 1


@functools.total_ordering
class Identity:
    """A 32-byte participant or address identity.

    Identities are ordered by their raw bytes, which gives the total,
    collision-free ordering used to decide which participant is party A.

    Args:
        key (bytes, str or Identity): raw 32 bytes, a base58 string, or an
            existing identity.

    Returns:
        Identity: the identity object.
    """

    LENGTH = 32

    def __init__(self, key):
        if isinstance(key, Identity):
            b = bytes(key)
        elif isinstance(key, (bytes, bytearray)):
            b = bytes(key)
        elif isinstance(key, str):
            try:
                b = base58.b58decode(key)
            except ValueError:
                raise ValueError("Invalid base58 identity: {}".format(key))
        else:
            raise TypeError("key must be either 'bytes', 'str' or 'Identity'!")

        if len(b) != Identity.LENGTH:
            raise ValueError("Identity must be {} bytes long.".format(Identity.LENGTH))
        self._bytes = b

    @staticmethod
    def from_bytes(b):
        return Identity(bytes(b))

    @staticmethod
    def from_base58(s):
        return Identity(str(s))

    def to_base58(self):
        return base58.b58encode(self._bytes).decode('ascii')

    def to_hex(self):
        return self._bytes.hex()

    def __bytes__(self):
        return self._bytes

    def __str__(self):
        return self.to_base58()

    def __repr__(self):
        return "Identity('{}')".format(self.to_base58())

    def __hash__(self):
        return hash(self._bytes)

    def __eq__(self, other):
        if not isinstance(other, Identity):
            return NotImplemented
        return self._bytes == other._bytes

    def __lt__(self, other):
        if not isinstance(other, Identity):
            return NotImplemented
        return self._bytes < other._bytes


def is_canonical_order(party_a, party_b):
    """Check that party_a is strictly smaller than party_b."""
    return Identity(party_a) < Identity(party_b)


def canonical_order(first, second):
    """Sort a pair of identities into (party_a, party_b) order.

    Channel opening never reorders on the caller's behalf; this helper is
    for callers preparing a request.

    Raises:
        ValueError: If both identities are equal.

    """
    first, second = Identity(first), Identity(second)
    if first == second:
        raise ValueError("A channel requires two distinct parties.")
    return (first, second) if first < second else (second, first)


def find_program_address(seeds, program_id):
    """Find the off-curve address derived from seeds and a program id.

    Args:
        seeds (list): List of byte strings.
        program_id (Identity): Owning program identity.

    Returns:
        tuple: (Identity, int) address and bump seed.

    Raises:
        ValueError: If no bump seed yields an off-curve address.

    """
    prefix = b"".join(bytes(seed) for seed in seeds)
    for bump in range(255, -1, -1):
        h = hashlib.sha256(prefix + bytes([bump]) + bytes(program_id) + PDA_MARKER).digest()
        if not is_on_curve(h):
            return Identity(h), bump
    raise ValueError("Unable to find a viable program address bump seed.")


def derive_channel_address(party_a, party_b, program_id):
    """Derive the storage key of the channel between two ordered parties.

    Args:
        party_a (Identity): Canonically smaller party.
        party_b (Identity): Canonically larger party.
        program_id (Identity or str): Owning program identity.

    Returns:
        tuple: (Identity, int) channel address and its derivation tag (bump).

    """
    return find_program_address(
        [CHANNEL_SEED, bytes(Identity(party_a)), bytes(Identity(party_b))], Identity(program_id))
