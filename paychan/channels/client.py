"""A client acting for one party of its payment channels."""
import logging

from . import errors
from .identity import Identity
from .statemachine import ChannelState
from .voucher import ChannelVoucher


logger = logging.getLogger(__name__)


class PaymentChannelClient:
    """Payment channel client.

    The client produces and countersigns vouchers off-chain, keeps the
    latest voucher of every channel it knows about, and submits them to a
    ChannelServer when a state needs to be committed.
    """

    def __init__(self, server, keypair):
        """Instantiate a payment channel client for a keypair.

        Args:
            server (ChannelServer): Channel server.
            keypair (Keypair): Signing keypair of this party.

        Returns:
            PaymentChannelClient: Instance of PaymentChannelClient.

        """
        self._server = server
        self._keypair = keypair
        self._vouchers = {}

    @property
    def identity(self):
        return self._keypair.public_key

    def open(self, counterparty, deposit):
        """Open a channel funded by this party.

        Args:
            counterparty (Identity): Other party.
            deposit (int): Initial deposit.

        Returns:
            Identity: Channel address.

        Raises:
            InvalidPartyOrderError: If this party does not sort before the
                counterparty, as the funding party must be party A.

        """
        channel_id = self._server.open(self.identity, Identity(counterparty), deposit)
        self._vouchers.pop(channel_id, None)
        return channel_id

    def pay(self, channel_id, amount):
        """Create the next voucher paying `amount` to the counterparty.

        Args:
            channel_id (Identity): Channel address.
            amount (int): Amount to move from this party to the counterparty.

        Returns:
            ChannelVoucher: Voucher signed by this party.

        Raises:
            TypeError: If amount is not an int.
            ValueError: If amount is not positive.
            InsufficientBalanceError: If this party's balance is too small.

        """
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise TypeError("Payment amount type should be int.")
        elif amount <= 0:
            raise ValueError("Payment amount must be positive.")

        channel_id = Identity(channel_id)
        status, latest = self._latest(channel_id)
        is_party_a = self._is_party_a(status)

        own_balance = latest.balance_a if is_party_a else latest.balance_b
        if amount > own_balance:
            raise errors.InsufficientBalanceError(
                "Insufficient balance: {} available, {} requested.".format(own_balance, amount))

        if is_party_a:
            balance_a, balance_b = latest.balance_a - amount, latest.balance_b + amount
        else:
            balance_a, balance_b = latest.balance_a + amount, latest.balance_b - amount

        voucher = ChannelVoucher(channel_id, status.opened_at, balance_a, balance_b, latest.nonce + 1)
        voucher.add_signature(voucher.sign(self._keypair), is_party_a)

        logger.debug("[PaymentChannelClient] Created voucher {}".format(voucher))

        return voucher

    def countersign(self, voucher):
        """Verify a counterparty voucher and add this party's signature.

        Args:
            voucher (ChannelVoucher): Voucher signed by the counterparty.

        Returns:
            ChannelVoucher: Fully signed voucher.

        Raises:
            InvalidNonceError: If the voucher nonce is not newer than the latest state.
            InvalidBalanceError: If the voucher balances are invalid.
            InvalidSignatureError: If the counterparty signature is invalid.

        """
        status, latest = self._latest(voucher.channel_id)
        is_party_a = self._is_party_a(status)

        if not isinstance(voucher.nonce, int) or voucher.nonce <= latest.nonce:
            raise errors.InvalidNonceError(
                "Invalid nonce {} - must be greater than current nonce {}.".format(voucher.nonce, latest.nonce))
        if not voucher.validate() or voucher.total_balance != status.total_balance:
            raise errors.InvalidBalanceError()

        counterparty = status.party_b if is_party_a else status.party_a
        counter_signature = voucher.signature_b if is_party_a else voucher.signature_a
        if not voucher.verify_signature(counter_signature, counterparty):
            raise errors.InvalidSignatureError("Invalid signature from counterparty.")

        voucher.add_signature(voucher.sign(self._keypair), is_party_a)
        self._vouchers[voucher.channel_id] = voucher

        return voucher

    def receive(self, voucher):
        """Record a fully signed voucher returned by the counterparty."""
        if not voucher.is_fully_signed():
            raise errors.InvalidSignatureError("Voucher is not signed by both parties.")
        self._vouchers[voucher.channel_id] = voucher

    def commit(self, voucher=None, channel_id=None):
        """Submit the latest fully signed voucher as an update.

        Args:
            voucher (ChannelVoucher): Voucher to commit. Defaults to the
                latest voucher of `channel_id`.
            channel_id (Identity): Channel address, when no voucher is given.

        """
        voucher = voucher or self._vouchers[Identity(channel_id)]
        self._server.update(voucher.channel_id, voucher.balance_a, voucher.balance_b, voucher.nonce,
                            voucher.signature_a, voucher.signature_b)
        self._vouchers[voucher.channel_id] = voucher

    def close(self, voucher=None, counterparty_keypair=None, channel_id=None):
        """Close a channel cooperatively with a fully signed voucher.

        A channel with no off-chain updates is closed by co-signing its
        current balances at the next nonce, which needs the counterparty's
        keypair.

        Returns:
            Settlement: Payouts issued to both parties.

        """
        if voucher is None:
            channel_id = Identity(channel_id)
            voucher = self._vouchers.get(channel_id)
            if voucher is None or not self._is_pending(voucher):
                status = self._server.status(channel_id)
                voucher = ChannelVoucher(channel_id, status.opened_at, status.balance_a, status.balance_b, status.nonce + 1)
                is_party_a = self._is_party_a(status)
                voucher.add_signature(voucher.sign(self._keypair), is_party_a)
                if counterparty_keypair is not None:
                    voucher.add_signature(voucher.sign(counterparty_keypair), not is_party_a)

        if not voucher.is_fully_signed():
            raise errors.InvalidSignatureError(
                "Closing channel {} requires the counterparty's signature.".format(voucher.channel_id))

        settlement = self._server.cooperative_close(voucher.channel_id, voucher.balance_a, voucher.balance_b,
                                                    voucher.nonce, voucher.signature_a, voucher.signature_b)
        self._vouchers.pop(voucher.channel_id, None)
        return settlement

    def force_close(self, channel_id):
        return self._server.force_close(Identity(channel_id), self.identity)

    def status(self, channel_id):
        return self._server.status(Identity(channel_id))

    def balance(self, channel_id):
        """Get this party's balance in the latest known state.

        Returns:
            int: Balance, including fully signed but uncommitted vouchers.

        """
        status, latest = self._latest(Identity(channel_id))
        return latest.balance_a if self._is_party_a(status) else latest.balance_b

    # Private Methods

    def _is_party_a(self, status):
        if self.identity == status.party_a:
            return True
        elif self.identity == status.party_b:
            return False
        raise errors.NotParticipantError()

    def _is_pending(self, voucher):
        status = self._server.status(voucher.channel_id)
        return voucher.is_fully_signed() and voucher.nonce > status.nonce

    def _latest(self, channel_id):
        """Get the channel status and the newest state known to this party."""
        status = self._server.status(channel_id)
        if status.state != ChannelState.OPEN:
            raise errors.ChannelAlreadyClosedError()

        voucher = self._vouchers.get(channel_id)
        if voucher is not None and voucher.nonce > status.nonce:
            return status, voucher
        return status, ChannelVoucher(channel_id, status.opened_at, status.balance_a, status.balance_b, status.nonce)
