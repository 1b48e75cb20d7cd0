"""Manages state transitions for payment channel records."""
import collections
import enum
import hashlib
import logging
import struct

from . import errors
from .identity import Identity, derive_channel_address
from .voucher import state_message, U64_MAX


logger = logging.getLogger(__name__)


Settlement = collections.namedtuple(
    'Settlement',
    [
        'channel_id',
        'party_a',
        'party_b',
        'amount_a',
        'amount_b',
        'nonce',
        'closed_at',
        'reason',
    ])
"""Container for the payouts issued when a channel closes."""


Payout = collections.namedtuple(
    'Payout',
    [
        'channel_id',
        'recipient',
        'amount',
        'nonce',
        'reason',
        'closed_at',
    ])
"""Container for a single recorded settlement payout."""


class ChannelState(enum.Enum):
    """Payment Channel State."""
    OPEN = 1
    CLOSED = 2

    def __str__(self):
        """Convert state to human-readable string.

        Returns:
            str: Formatted state

        """
        mapping = {
            ChannelState.OPEN: 'Open',
            ChannelState.CLOSED: 'Closed',
        }
        return mapping[self]


class ChannelModel:
    """Payment channel record. This contains the persisted state of a channel."""

    DISCRIMINATOR = hashlib.sha256(b"account:PaymentChannel").digest()[:8]
    """Record-type tag prefixed to every serialized record."""

    LAYOUT = struct.Struct('<8s32s32sQQQ?qqB')
    """discriminator, party_a, party_b, balance_a, balance_b, nonce, is_open,
    opened_at, timeout_at, bump."""

    LEN = LAYOUT.size

    def __init__(self, **kwargs):
        """Create an instance of ChannelModel.

        Returns:
            ChannelModel: Instance of ChannelModel.

        Attributes:
            address (Identity or None): Channel address (storage key)
            party_a (Identity or None): Canonically smaller party
            party_b (Identity or None): Canonically larger party
            balance_a (int): Party A balance
            balance_b (int): Party B balance
            nonce (int): Nonce of the last committed state
            is_open (bool): Lifecycle flag
            opened_at (int or None): Creation UNIX time
            timeout_at (int or None): Force close UNIX time
            bump (int): Address derivation tag

        """
        self.address = kwargs.get('address', None)
        self.party_a = kwargs.get('party_a', None)
        self.party_b = kwargs.get('party_b', None)
        self.balance_a = kwargs.get('balance_a', 0)
        self.balance_b = kwargs.get('balance_b', 0)
        self.nonce = kwargs.get('nonce', 0)
        self.is_open = kwargs.get('is_open', False)
        self.opened_at = kwargs.get('opened_at', None)
        self.timeout_at = kwargs.get('timeout_at', None)
        self.bump = kwargs.get('bump', 0)

    @property
    def state(self):
        return ChannelState.OPEN if self.is_open else ChannelState.CLOSED

    @property
    def total_balance(self):
        return self.balance_a + self.balance_b

    @property
    def initialized(self):
        return self.party_a is not None

    def is_participant(self, party):
        """Check whether an identity is one of the two channel parties.

        Args:
            party (Identity): Identity to test.

        Returns:
            bool: True if `party` is party A or party B.

        """
        try:
            party = Identity(party)
        except (TypeError, ValueError):
            return False
        return party == self.party_a or party == self.party_b

    def get_other_party(self, party):
        party = Identity(party)
        if party == self.party_a:
            return self.party_b
        elif party == self.party_b:
            return self.party_a
        return None

    def has_timed_out(self, now):
        return now >= self.timeout_at

    def __bytes__(self):
        return ChannelModel.LAYOUT.pack(
            ChannelModel.DISCRIMINATOR, bytes(self.party_a), bytes(self.party_b), self.balance_a,
            self.balance_b, self.nonce, self.is_open, self.opened_at, self.timeout_at, self.bump)

    def to_hex(self):
        return bytes(self).hex()

    @staticmethod
    def from_bytes(b, address=None):
        """Deserialize a channel record.

        Args:
            b (bytes): Serialized record.
            address (Identity or None): Storage key the record was read from.

        Returns:
            ChannelModel: Deserialized record.

        Raises:
            InvalidChannelStateError: If the record is malformed or violates
                the party order or balance invariants.

        """
        if len(b) != ChannelModel.LEN:
            raise errors.InvalidChannelStateError(
                "Invalid channel record length: {} (expected {}).".format(len(b), ChannelModel.LEN))

        (discriminator, party_a, party_b, balance_a, balance_b, nonce, is_open,
         opened_at, timeout_at, bump) = ChannelModel.LAYOUT.unpack(b)

        if discriminator != ChannelModel.DISCRIMINATOR:
            raise errors.InvalidChannelStateError("Invalid channel record discriminator.")

        party_a, party_b = Identity(party_a), Identity(party_b)
        if not party_a < party_b:
            raise errors.InvalidChannelStateError("Channel record parties are not in canonical order.")
        if balance_a + balance_b > U64_MAX:
            raise errors.InvalidChannelStateError("Channel record balances overflow.")

        return ChannelModel(
            address=Identity(address) if address is not None else None,
            party_a=party_a,
            party_b=party_b,
            balance_a=balance_a,
            balance_b=balance_b,
            nonce=nonce,
            is_open=is_open,
            opened_at=opened_at,
            timeout_at=timeout_at,
            bump=bump,
        )

    @staticmethod
    def from_hex(h):
        return ChannelModel.from_bytes(bytes.fromhex(h))

    def __repr__(self):
        return "<Channel(address='{}', party_a='{}', party_b='{}', balance_a={}, balance_b={}, nonce={}, is_open={}, opened_at={}, timeout_at={}, bump={})>".format(self.address, self.party_a, self.party_b, self.balance_a, self.balance_b, self.nonce, self.is_open, self.opened_at, self.timeout_at, self.bump)  # nopep8


class ChannelStateMachine:
    """Payment channel state machine.

    The state machine validates a transition against a single channel record
    and, only when every precondition holds, applies it to the record. It
    never touches storage; the caller persists the record afterwards.
    """

    TIMEOUT = 24 * 60 * 60
    """Seconds between opening and the earliest force close."""

    def __init__(self, model, verifier, clock):
        """Instantiate a payment channel state machine.

        Args:
            model (ChannelModel): Channel record.
            verifier (SignatureVerifierBase): Signature verification interface.
            clock (ClockBase): Trusted clock.

        Returns:
            ChannelStateMachine: Instance of ChannelStateMachine.

        """
        self._model = model
        self._verifier = verifier
        self._clock = clock

    def open(self, party_a, party_b, initial_deposit, program_id):
        """Initialize a new channel record.

        Args:
            party_a (Identity): Canonically smaller party.
            party_b (Identity): Canonically larger party.
            initial_deposit (int): Deposit credited to party A.
            program_id (Identity): Program identity used for address derivation.

        Returns:
            Identity: Channel address.

        Raises:
            InvalidChannelStateError: If the record is already initialized.
            TypeError: If initial_deposit is not an int.
            InvalidDepositAmountError: If the deposit is zero or exceeds 64 bits.
            InvalidPartyOrderError: If party_a is not smaller than party_b.

        """
        if self._model.initialized:
            raise errors.InvalidChannelStateError("Channel record is already initialized.")

        if not isinstance(initial_deposit, int) or isinstance(initial_deposit, bool):
            raise TypeError("Deposit amount type should be int.")
        elif not 0 < initial_deposit <= U64_MAX:
            raise errors.InvalidDepositAmountError()

        party_a, party_b = Identity(party_a), Identity(party_b)
        if not party_a < party_b:
            raise errors.InvalidPartyOrderError()

        address, bump = derive_channel_address(party_a, party_b, program_id)
        now = self._clock.now()

        self._model.address = address
        self._model.party_a = party_a
        self._model.party_b = party_b
        self._model.balance_a = initial_deposit
        self._model.balance_b = 0
        self._model.nonce = 0
        self._model.is_open = True
        self._model.opened_at = now
        self._model.timeout_at = now + ChannelStateMachine.TIMEOUT
        self._model.bump = bump

        return address

    def update(self, balance_a, balance_b, nonce, signature_a, signature_b):
        """Commit a mutually signed state, keeping the channel open.

        Args:
            balance_a (int): Proposed party A balance.
            balance_b (int): Proposed party B balance.
            nonce (int): Proposed nonce.
            signature_a (bytes): Party A signature over the state.
            signature_b (bytes): Party B signature over the state.

        Raises:
            ChannelNotOpenError: If the channel is not open.
            InvalidNonceError: If nonce is not greater than the current nonce.
            InvalidBalanceError: If the balances are negative or do not sum
                to the channel total.
            InvalidSignatureError: If either signature is invalid.

        """
        self._validate_state(balance_a, balance_b, nonce, signature_a, signature_b)

        self._model.balance_a = balance_a
        self._model.balance_b = balance_b
        self._model.nonce = nonce

    def cooperative_close(self, balance_a, balance_b, nonce, signature_a, signature_b):
        """Commit a mutually signed final state and close the channel.

        Same arguments and errors as update().

        Returns:
            Settlement: Payouts at the final balances.
        """
        self._validate_state(balance_a, balance_b, nonce, signature_a, signature_b)

        self._model.balance_a = balance_a
        self._model.balance_b = balance_b
        self._model.nonce = nonce
        self._model.is_open = False

        logger.debug("[StateMachine] Channel {} closed cooperatively at nonce {}".format(self._model.address, nonce))

        return self._settle('cooperative', self._clock.now())

    def force_close(self, initiator):
        """Close the channel unilaterally at the last committed balances.

        Args:
            initiator (Identity): Party requesting the close.

        Returns:
            Settlement: Payouts at the last committed balances.

        Raises:
            ChannelNotOpenError: If the channel is not open.
            NotParticipantError: If initiator is not a channel party.
            TimeoutNotElapsedError: If the channel has not timed out.

        """
        self._assert_open()

        if not self._model.is_participant(initiator):
            raise errors.NotParticipantError()

        now = self._clock.now()
        if not self._model.has_timed_out(now):
            raise errors.TimeoutNotElapsedError(
                "Channel timeout period has not elapsed ({} seconds remaining).".format(self._model.timeout_at - now))

        self._model.is_open = False

        logger.debug("[StateMachine] Channel {} force closed by {}".format(self._model.address, initiator))

        return self._settle('force', now)

    # Private Methods

    def _settle(self, reason, closed_at):
        return Settlement(
            channel_id=self._model.address,
            party_a=self._model.party_a,
            party_b=self._model.party_b,
            amount_a=self._model.balance_a,
            amount_b=self._model.balance_b,
            nonce=self._model.nonce,
            closed_at=closed_at,
            reason=reason,
        )

    def _assert_open(self):
        if not self._model.initialized:
            raise errors.ChannelNotOpenError()
        elif not self._model.is_open:
            raise errors.ChannelAlreadyClosedError()

    def _validate_state(self, balance_a, balance_b, nonce, signature_a, signature_b):
        # Preconditions are checked in a fixed order; the first failure wins
        self._assert_open()

        if not isinstance(nonce, int) or isinstance(nonce, bool):
            raise TypeError("Nonce type should be int.")
        elif nonce <= self._model.nonce or nonce > U64_MAX:
            raise errors.InvalidNonceError(
                "Invalid nonce {} - must be greater than current nonce {}.".format(nonce, self._model.nonce))

        for balance in (balance_a, balance_b):
            if not isinstance(balance, int) or isinstance(balance, bool):
                raise TypeError("Balance type should be int.")
        if balance_a < 0 or balance_b < 0:
            raise errors.InvalidBalanceError("Invalid balance - balances must be non-negative.")
        elif balance_a + balance_b != self._model.total_balance:
            raise errors.InvalidBalanceError(
                "Invalid balance - total {} must equal channel total {}.".format(
                    balance_a + balance_b, self._model.total_balance))

        message = state_message(self._model.address, self._model.opened_at, balance_a, balance_b, nonce)
        if not self._verifier.verify(message, signature_a, self._model.party_a):
            raise errors.InvalidSignatureError("Invalid signature from party A.")
        elif not self._verifier.verify(message, signature_b, self._model.party_b):
            raise errors.InvalidSignatureError("Invalid signature from party B.")

    # Public Properties

    @property
    def state(self):
        """Get channel state machine state.

        Returns:
            ChannelState: State machine state.

        """
        return self._model.state

    @property
    def model(self):
        return self._model
