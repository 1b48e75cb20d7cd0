# 3rd party imports
import pytest

# paychan imports
import paychan
from paychan.channels.database import Sqlite3Database
from paychan.channels.keys import Keypair
from paychan.channels.server import ChannelServer
from paychan.channels.voucher import state_message
from tests.channels import mock as mock_objects


def pytest_configure(config):
    """ Register all markers here """
    config.addinivalue_line("markers", "unit: mark a test as a unit test.")


def pytest_report_header(config):
    """ Adds the paychan version to the report header """
    return "paychan: {}".format(paychan.PAYCHAN_VERSION)


# fixtures
@pytest.fixture()
def keypairs():
    """ Fixture that injects the (party A, party B) keypairs """
    return mock_objects.ordered_keypairs()


@pytest.fixture()
def party_a(keypairs):
    return keypairs[0]


@pytest.fixture()
def party_b(keypairs):
    return keypairs[1]


@pytest.fixture()
def mallory():
    """ Fixture that injects a keypair of neither channel party """
    return Keypair.from_seed(mock_objects.MALLORY_SEED)


@pytest.fixture()
def clock():
    return mock_objects.MockClock()


@pytest.fixture()
def db():
    return Sqlite3Database(":memory:")


@pytest.fixture()
def server(db, clock):
    """ Fixture that injects a ChannelServer with ed25519 verification and a mock clock """
    return ChannelServer(db, clock=clock)


@pytest.fixture()
def channel_id(server, party_a, party_b):
    """ Fixture that injects the address of an open channel with a deposit of 1000 """
    return server.open(party_a.public_key, party_b.public_key, 1000)


@pytest.fixture()
def sign_state(server, party_a, party_b):
    """ Fixture that injects a function signing a state by both parties

    The opening time bound into the signed message is looked up from the server.

    Returns:
        function: (channel_id, balance_a, balance_b, nonce) -> (signature_a, signature_b)
    """
    def _sign_state(channel_id, balance_a, balance_b, nonce):
        opened_at = server.status(channel_id).opened_at
        message = state_message(channel_id, opened_at, balance_a, balance_b, nonce)
        return party_a.sign(message), party_b.sign(message)
    return _sign_state
