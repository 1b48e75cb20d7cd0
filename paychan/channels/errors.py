"""Error kinds raised by payment channel operations.

Every error is a terminal rejection of the single operation that raised it.
Each kind carries a stable numeric `code` so that callers (and the command
line `--json` output) can tell "stale nonce, refetch and resend" apart from
"timeout not reached, wait" or "bad signature, regenerate".
"""


class PaymentChannelError(Exception):
    """Base class for payment channel errors."""

    code = None
    message = "Payment channel error"

    def __init__(self, message=None):
        super().__init__(message if message is not None else self.message)

    @property
    def kind(self):
        """Get the error kind name, e.g. 'InvalidNonce'.

        Returns:
            str: Error kind.

        """
        name = type(self).__name__
        return name[:-len('Error')] if name.endswith('Error') else name

    def to_dict(self):
        """Serialize the error for machine-readable output.

        Returns:
            dict: Error code, kind and message.

        """
        return {'code': self.code, 'kind': self.kind, 'message': str(self)}


class ChannelNotOpenError(PaymentChannelError):
    """Channel does not exist or is not open."""
    code = 6000
    message = "Channel is not open"


class ChannelAlreadyClosedError(ChannelNotOpenError):
    """Channel has already been closed."""
    code = 6001
    message = "Channel is already closed"


class ChannelNotFoundError(ChannelNotOpenError):
    """No channel record exists at the requested address."""
    code = 6000
    message = "Channel not found"


class InvalidNonceError(PaymentChannelError):
    """Proposed nonce is not strictly greater than the committed nonce."""
    code = 6002
    message = "Invalid nonce - must be greater than current nonce"


class InvalidSignatureError(PaymentChannelError):
    """A party signature does not verify over the channel state."""
    code = 6003
    message = "Invalid signature"


class UnauthorizedError(PaymentChannelError):
    """Caller is not authorized to perform the operation."""
    code = 6010
    message = "Unauthorized operation"


class NotParticipantError(UnauthorizedError):
    """Identity is neither party of the channel."""
    code = 6004
    message = "Party is not a participant in this channel"


class ChannelNotTimedOutError(PaymentChannelError):
    """Channel has not reached its timeout."""
    code = 6005
    message = "Channel has not timed out yet"


class TimeoutNotElapsedError(ChannelNotTimedOutError):
    """Force close requested before the timeout elapsed."""
    code = 6008
    message = "Channel timeout period has not elapsed"


class InvalidBalanceError(PaymentChannelError):
    """Proposed balances are negative or do not sum to the deposit."""
    code = 6006
    message = "Invalid balance - total must equal initial deposit"


class InsufficientBalanceError(PaymentChannelError):
    """Payer balance is too small for the requested payment."""
    code = 6007
    message = "Insufficient balance for operation"


class InvalidChannelStateError(PaymentChannelError):
    """Channel record is malformed or violates a record invariant."""
    code = 6009
    message = "Invalid channel state"


class InvalidPartyOrderError(PaymentChannelError):
    """party_a is not canonically smaller than party_b."""
    code = 6011
    message = "Invalid party order"


class ChannelAlreadyExistsError(PaymentChannelError):
    """An open channel already exists for the party pair."""
    code = 6012
    message = "Channel already exists"


class InvalidDepositAmountError(PaymentChannelError):
    """Initial deposit is zero or does not fit in 64 bits."""
    code = 6013
    message = "Invalid deposit amount"
