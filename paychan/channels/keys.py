"""ed25519 signing keys used to produce channel state signatures."""
import codecs

import nacl.signing

from .identity import Identity


class Keypair:
    """An ed25519 signing key and its public identity.

    Args:
        signing_key (nacl.signing.SigningKey): Underlying signing key.

    Returns:
        Keypair: the keypair object.
    """

    SEED_LENGTH = 32

    def __init__(self, signing_key):
        self._signing_key = signing_key
        self._public_key = Identity(bytes(signing_key.verify_key))

    @staticmethod
    def generate():
        """Create a keypair from a random seed."""
        return Keypair(nacl.signing.SigningKey.generate())

    @staticmethod
    def from_seed(seed):
        """Create a keypair from a 32-byte seed.

        Args:
            seed (bytes): Secret seed.

        Returns:
            Keypair: the keypair object.

        """
        if len(seed) != Keypair.SEED_LENGTH:
            raise ValueError("Seed must be {} bytes long.".format(Keypair.SEED_LENGTH))
        return Keypair(nacl.signing.SigningKey(bytes(seed)))

    @staticmethod
    def from_hex(seed_hex):
        return Keypair.from_seed(codecs.decode(seed_hex.strip(), 'hex_codec'))

    @property
    def public_key(self):
        """Get the public identity of this keypair.

        Returns:
            Identity: public key.

        """
        return self._public_key

    @property
    def seed_hex(self):
        return bytes(self._signing_key).hex()

    def sign(self, message):
        """Sign a message.

        Args:
            message (bytes): Message to sign.

        Returns:
            bytes: 64-byte detached signature.

        """
        return self._signing_key.sign(bytes(message)).signature
