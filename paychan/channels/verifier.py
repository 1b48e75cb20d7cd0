"""Signature verification interface for channel state messages."""
import nacl.exceptions
import nacl.signing


class SignatureVerifierBase:
    """Base class for a signature verification interface."""

    def __init__(self):
        pass

    def verify(self, message, signature, public_key):
        """Verify that `public_key` signed `message`.

        Args:
            message (bytes): Signed message.
            signature (bytes): Detached signature.
            public_key (Identity): Claimed signer.

        Returns:
            bool: True if the signature is valid, False otherwise.

        """
        raise NotImplementedError()


class Ed25519Verifier(SignatureVerifierBase):
    """ed25519 verification of detached signatures."""

    SIGNATURE_LENGTH = 64

    def verify(self, message, signature, public_key):
        if not isinstance(signature, (bytes, bytearray)) or len(signature) != Ed25519Verifier.SIGNATURE_LENGTH:
            return False
        try:
            nacl.signing.VerifyKey(bytes(public_key)).verify(bytes(message), bytes(signature))
        except (nacl.exceptions.BadSignatureError, nacl.exceptions.CryptoError, ValueError, TypeError):
            return False
        return True
