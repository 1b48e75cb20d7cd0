# flake8: noqa
"""The payment channel protocol lets two parties exchange many off-chain
balance updates while committing only the channel open and close."""
from .server import ChannelServer
from .server import ChannelStatus
from .client import PaymentChannelClient
from .database import Sqlite3Database
from .identity import Identity
from .identity import canonical_order
from .identity import derive_channel_address
from .keys import Keypair
from .statemachine import ChannelModel
from .statemachine import ChannelState
from .statemachine import ChannelStateMachine
from .statemachine import Settlement
from .voucher import ChannelVoucher

from .errors import PaymentChannelError
from .errors import ChannelNotOpenError
from .errors import ChannelAlreadyClosedError
from .errors import ChannelNotFoundError
from .errors import InvalidNonceError
from .errors import InvalidSignatureError
from .errors import NotParticipantError
from .errors import ChannelNotTimedOutError
from .errors import InvalidBalanceError
from .errors import InsufficientBalanceError
from .errors import TimeoutNotElapsedError
from .errors import InvalidChannelStateError
from .errors import UnauthorizedError
from .errors import InvalidPartyOrderError
from .errors import ChannelAlreadyExistsError
from .errors import InvalidDepositAmountError
