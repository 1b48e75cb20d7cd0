"""Off-chain vouchers: signed channel states exchanged between the parties."""
import codecs
import json
import struct

from .identity import Identity
from .verifier import Ed25519Verifier


STATE_MESSAGE_DOMAIN = b"paychan:channel-state:v1"
"""Domain separation tag prepended to every signed channel state."""

U64_MAX = 2 ** 64 - 1


def state_message(channel_id, opened_at, balance_a, balance_b, nonce):
    """Build the canonical message both parties sign for a channel state.

    The message binds the channel address (and therefore the program id and
    both party identities), the opening time of the channel lifecycle, the
    two balances and the nonce, so a signature can not be replayed against
    another channel, a later lifecycle of the same channel or another nonce.

    Args:
        channel_id (Identity): Channel address.
        opened_at (int): Opening time of the channel.
        balance_a (int): Party A balance.
        balance_b (int): Party B balance.
        nonce (int): State nonce.

    Returns:
        bytes: Canonical message.

    Raises:
        TypeError: If a value is not an integer.
        ValueError: If a value does not fit in an unsigned 64-bit integer.

    """
    for value in (balance_a, balance_b, nonce):
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError("Channel state values should be int.")
        if not 0 <= value <= U64_MAX:
            raise ValueError("Channel state values must fit in an unsigned 64-bit integer.")
    if not isinstance(opened_at, int) or isinstance(opened_at, bool):
        raise TypeError("Channel opening time should be int.")
    elif not -2 ** 63 <= opened_at < 2 ** 63:
        raise ValueError("Channel opening time must fit in a signed 64-bit integer.")
    state = struct.pack('<qQQQ', opened_at, balance_a, balance_b, nonce)
    return STATE_MESSAGE_DOMAIN + bytes(Identity(channel_id)) + state


class ChannelVoucher:
    """A proposed channel state with the signatures collected so far."""

    def __init__(self, channel_id, opened_at, balance_a, balance_b, nonce, signature_a=None, signature_b=None):
        """Create a voucher.

        Args:
            channel_id (Identity or str): Channel address.
            opened_at (int): Opening time of the channel.
            balance_a (int): Party A balance.
            balance_b (int): Party B balance.
            nonce (int): State nonce.
            signature_a (bytes or None): Party A signature.
            signature_b (bytes or None): Party B signature.

        """
        self.channel_id = Identity(channel_id)
        self.opened_at = opened_at
        self.balance_a = balance_a
        self.balance_b = balance_b
        self.nonce = nonce
        self.signature_a = signature_a
        self.signature_b = signature_b

    @property
    def message(self):
        return state_message(self.channel_id, self.opened_at, self.balance_a, self.balance_b, self.nonce)

    @property
    def total_balance(self):
        return self.balance_a + self.balance_b

    def sign(self, keypair):
        """Sign the voucher state.

        Args:
            keypair (Keypair): Signing keypair.

        Returns:
            bytes: Detached signature.

        """
        return keypair.sign(self.message)

    def add_signature(self, signature, is_party_a):
        if is_party_a:
            self.signature_a = signature
        else:
            self.signature_b = signature

    def is_fully_signed(self):
        return bool(self.signature_a and self.signature_b)

    def verify_signature(self, signature, public_key, verifier=None):
        """Verify a signature over this voucher's state.

        Args:
            signature (bytes): Detached signature.
            public_key (Identity): Claimed signer.
            verifier (SignatureVerifierBase): Verifier (ed25519 by default).

        Returns:
            bool: True if valid.

        """
        verifier = verifier or Ed25519Verifier()
        try:
            message = self.message
        except (TypeError, ValueError):
            return False
        return verifier.verify(message, signature, public_key)

    def validate(self):
        """Check that the voucher carries a plausible state."""
        if not all(isinstance(value, int) for value in (self.balance_a, self.balance_b, self.nonce)):
            return False
        return self.balance_a >= 0 and self.balance_b >= 0 and self.nonce > 0

    def to_dict(self):
        return {
            'channel_id': str(self.channel_id),
            'opened_at': self.opened_at,
            'balance_a': self.balance_a,
            'balance_b': self.balance_b,
            'nonce': self.nonce,
            'signature_a': codecs.encode(self.signature_a, 'hex_codec').decode() if self.signature_a else None,
            'signature_b': codecs.encode(self.signature_b, 'hex_codec').decode() if self.signature_b else None,
        }

    @staticmethod
    def from_dict(d):
        sig_a = codecs.decode(d['signature_a'], 'hex_codec') if d.get('signature_a') else None
        sig_b = codecs.decode(d['signature_b'], 'hex_codec') if d.get('signature_b') else None
        return ChannelVoucher(d['channel_id'], d['opened_at'], d['balance_a'], d['balance_b'], d['nonce'], sig_a, sig_b)

    def to_json(self):
        return json.dumps(self.to_dict(), sort_keys=True)

    @staticmethod
    def from_json(s):
        return ChannelVoucher.from_dict(json.loads(s))

    def __repr__(self):
        return "<Voucher(channel_id='{}', balance_a={}, balance_b={}, nonce={}, signed_a={}, signed_b={})>".format(
            self.channel_id, self.balance_a, self.balance_b, self.nonce,
            self.signature_a is not None, self.signature_b is not None)
