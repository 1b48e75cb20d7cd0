"""This module implements the transaction boundary of payment channels.

Every operation runs against exactly one channel record. Operations on the
same channel are serialized by a per-channel lock, while operations on
different channels proceed in parallel. Records are read inside one
database session and written back inside another with a compare-and-set on
the nonce and opening time that were read, and only while the record is
still open, so that a writer sharing the database file from another process
can never be silently overwritten or settle a channel twice.
"""
import collections
import logging
import threading
import weakref

import paychan

from . import errors
from .clock import SystemClock
from .identity import Identity
from .statemachine import ChannelModel, ChannelStateMachine
from .verifier import Ed25519Verifier


logger = logging.getLogger(__name__)


ChannelStatus = collections.namedtuple(
    'ChannelStatus',
    [
        'channel_id',
        'party_a',
        'party_b',
        'state',
        'balance_a',
        'balance_b',
        'total_balance',
        'nonce',
        'opened_at',
        'timeout_at',
        'timed_out',
    ])
"""Container for the status information of a payment channel."""


class ChannelServer:

    """Payment channel handling.

    This class applies channel operations to the records in a database,
    one atomic transaction per operation.
    """

    def __init__(self, db, verifier=None, clock=None, program_id=None):
        """Initialize the channel server.

        Args:
            db (DatabaseBase): Channel record storage.
            verifier (SignatureVerifierBase): Signature verification interface.
                Defaults to ed25519 verification.
            clock (ClockBase): Trusted clock. Defaults to the system clock.
            program_id (Identity or str): Program identity used to derive
                channel addresses. Defaults to the configured program id.

        """
        self._db = db
        self._verifier = verifier or Ed25519Verifier()
        self._clock = clock or SystemClock()
        self._program_id = Identity(program_id or paychan.PAYCHAN_PROGRAM_ID)

        # Entries live only while an operation holds the lock
        self._locks = weakref.WeakValueDictionary()
        self._locks_lock = threading.Lock()

    @property
    def program_id(self):
        return self._program_id

    def open(self, party_a, party_b, initial_deposit):
        """Open a channel between two ordered parties.

        Args:
            party_a (Identity): Canonically smaller party.
            party_b (Identity): Canonically larger party.
            initial_deposit (int): Deposit credited to party A.

        Returns:
            Identity: Channel address.

        Raises:
            InvalidDepositAmountError: If the deposit is out of range.
            InvalidPartyOrderError: If party_a is not smaller than party_b.
            ChannelAlreadyExistsError: If an open channel exists for the pair.

        """
        model = ChannelModel()
        sm = ChannelStateMachine(model, self._verifier, self._clock)
        try:
            address = sm.open(party_a, party_b, initial_deposit, self._program_id)

            with self._channel_lock(address):
                with self._db.lock:
                    with self._db:
                        existing = self._db.read(address)
                        if existing is not None and existing.is_open:
                            raise errors.ChannelAlreadyExistsError()
                        # Signed states are bound to (address, opened_at), so every
                        # lifecycle at an address must start at a distinct time
                        if existing is not None and existing.opened_at >= model.opened_at:
                            raise errors.ChannelAlreadyExistsError(
                                "Channel {} was closed in the current second; retry later.".format(address))
                        self._db.create(model)
        except errors.PaymentChannelError as e:
            logger.info("[ChannelServer] Rejected open: {}".format(e))
            raise

        logger.info("[ChannelServer] Opened channel {} ({} <-> {}) with deposit {}".format(
            address, model.party_a, model.party_b, initial_deposit))

        return address

    def update(self, channel_id, balance_a, balance_b, nonce, signature_a, signature_b):
        """Commit a mutually signed channel state.

        Args:
            channel_id (Identity): Channel address.
            balance_a (int): Party A balance.
            balance_b (int): Party B balance.
            nonce (int): State nonce.
            signature_a (bytes): Party A signature.
            signature_b (bytes): Party B signature.

        """
        channel_id = Identity(channel_id)
        with self._channel_lock(channel_id):
            try:
                model = self._read(channel_id)
                expected_nonce = model.nonce

                # Verify signatures without holding the database lock
                sm = ChannelStateMachine(model, self._verifier, self._clock)
                sm.update(balance_a, balance_b, nonce, signature_a, signature_b)

                with self._db.lock:
                    with self._db:
                        self._db.update(model, expected_nonce)
            except errors.PaymentChannelError as e:
                logger.info("[ChannelServer] Rejected update of channel {}: {}".format(channel_id, e))
                raise

        logger.info("[ChannelServer] Updated channel {} to nonce {} ({} / {})".format(
            channel_id, nonce, balance_a, balance_b))

    def cooperative_close(self, channel_id, balance_a, balance_b, nonce, signature_a, signature_b):
        """Close a channel at a mutually signed final state.

        The state change and the payouts are committed in one transaction.

        Returns:
            Settlement: Payouts issued to both parties.

        """
        channel_id = Identity(channel_id)
        with self._channel_lock(channel_id):
            try:
                model = self._read(channel_id)
                expected_nonce = model.nonce

                sm = ChannelStateMachine(model, self._verifier, self._clock)
                settlement = sm.cooperative_close(balance_a, balance_b, nonce, signature_a, signature_b)

                with self._db.lock:
                    with self._db:
                        self._db.update(model, expected_nonce)
                        self._db.payout(settlement)
            except errors.PaymentChannelError as e:
                logger.info("[ChannelServer] Rejected cooperative close of channel {}: {}".format(channel_id, e))
                raise

        logger.info("[ChannelServer] Closed channel {} cooperatively (paid {} / {})".format(
            channel_id, settlement.amount_a, settlement.amount_b))

        return settlement

    def force_close(self, channel_id, initiator):
        """Close a timed out channel at its last committed balances.

        Args:
            channel_id (Identity): Channel address.
            initiator (Identity): Party requesting the close.

        Returns:
            Settlement: Payouts issued to both parties.

        """
        channel_id = Identity(channel_id)
        with self._channel_lock(channel_id):
            try:
                model = self._read(channel_id)
                expected_nonce = model.nonce

                sm = ChannelStateMachine(model, self._verifier, self._clock)
                settlement = sm.force_close(initiator)

                with self._db.lock:
                    with self._db:
                        self._db.update(model, expected_nonce)
                        self._db.payout(settlement)
            except errors.PaymentChannelError as e:
                logger.info("[ChannelServer] Rejected force close of channel {}: {}".format(channel_id, e))
                raise

        logger.info("[ChannelServer] Force closed channel {} (paid {} / {})".format(
            channel_id, settlement.amount_a, settlement.amount_b))

        return settlement

    def status(self, channel_id):
        """Get the status of a channel.

        Args:
            channel_id (Identity): Channel address.

        Returns:
            ChannelStatus: Channel status.

        Raises:
            ChannelNotFoundError: If no record exists at the address.

        """
        model = self._read(Identity(channel_id))
        return ChannelStatus(
            channel_id=model.address,
            party_a=model.party_a,
            party_b=model.party_b,
            state=model.state,
            balance_a=model.balance_a,
            balance_b=model.balance_b,
            total_balance=model.total_balance,
            nonce=model.nonce,
            opened_at=model.opened_at,
            timeout_at=model.timeout_at,
            timed_out=model.has_timed_out(self._clock.now()),
        )

    def is_timed_out(self, channel_id):
        return self._read(Identity(channel_id)).has_timed_out(self._clock.now())

    def list(self, party=None):
        with self._db.lock:
            with self._db:
                return self._db.list(party)

    def payouts(self, party=None):
        with self._db.lock:
            with self._db:
                return self._db.payouts(party)

    # Private Methods

    def _channel_lock(self, channel_id):
        with self._locks_lock:
            lock = self._locks.get(channel_id)
            if lock is None:
                lock = self._locks[channel_id] = threading.Lock()
            return lock

    def _read(self, channel_id):
        with self._db.lock:
            with self._db:
                model = self._db.read(channel_id)
        if model is None:
            raise errors.ChannelNotFoundError("Channel {} not found.".format(channel_id))
        return model
