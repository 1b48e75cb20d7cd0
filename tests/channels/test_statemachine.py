import pytest

import paychan
import paychan.channels.errors as errors
import paychan.channels.identity as identity
import paychan.channels.statemachine as statemachine
import tests.channels.mock as mock


VALID = mock.MockVerifier.VALID
PROGRAM_ID = identity.Identity(paychan.PAYCHAN_PROGRAM_ID)


def open_channel(party_a, party_b, deposit=1000):
    model = statemachine.ChannelModel()
    verifier = mock.MockVerifier()
    clock = mock.MockClock()
    sm = statemachine.ChannelStateMachine(model, verifier, clock)
    sm.open(party_a.public_key, party_b.public_key, deposit, PROGRAM_ID)
    return sm, model, verifier, clock


def test_statemachine_open(party_a, party_b):
    model = statemachine.ChannelModel()
    sm = statemachine.ChannelStateMachine(model, mock.MockVerifier(), mock.MockClock())

    address = sm.open(party_a.public_key, party_b.public_key, 1000, PROGRAM_ID)

    assert (address, model.bump) == identity.derive_channel_address(
        party_a.public_key, party_b.public_key, PROGRAM_ID)
    assert model.address == address
    assert model.party_a == party_a.public_key
    assert model.party_b == party_b.public_key
    assert model.balance_a == 1000
    assert model.balance_b == 0
    assert model.total_balance == 1000
    assert model.nonce == 0
    assert model.is_open
    assert sm.state == statemachine.ChannelState.OPEN
    assert model.opened_at == mock.START_TIME
    assert model.timeout_at == mock.START_TIME + 24 * 60 * 60

    # A record can only be opened once
    with pytest.raises(errors.InvalidChannelStateError):
        sm.open(party_a.public_key, party_b.public_key, 1000, PROGRAM_ID)


def test_statemachine_open_rejections(party_a, party_b):
    def _open(first, second, deposit):
        model = statemachine.ChannelModel()
        sm = statemachine.ChannelStateMachine(model, mock.MockVerifier(), mock.MockClock())
        sm.open(first, second, deposit, PROGRAM_ID)
        return model

    with pytest.raises(errors.InvalidDepositAmountError):
        _open(party_a.public_key, party_b.public_key, 0)
    with pytest.raises(errors.InvalidDepositAmountError):
        _open(party_a.public_key, party_b.public_key, -5)
    with pytest.raises(errors.InvalidDepositAmountError):
        _open(party_a.public_key, party_b.public_key, 2 ** 64)
    with pytest.raises(TypeError):
        _open(party_a.public_key, party_b.public_key, 10.0)

    # Parties are never reordered on the caller's behalf
    with pytest.raises(errors.InvalidPartyOrderError):
        _open(party_b.public_key, party_a.public_key, 1000)
    with pytest.raises(errors.InvalidPartyOrderError):
        _open(party_a.public_key, party_a.public_key, 1000)

    # Deposit is checked before party order
    with pytest.raises(errors.InvalidDepositAmountError):
        _open(party_b.public_key, party_a.public_key, 0)

    # No partial effects on failure
    model = statemachine.ChannelModel()
    sm = statemachine.ChannelStateMachine(model, mock.MockVerifier(), mock.MockClock())
    with pytest.raises(errors.InvalidPartyOrderError):
        sm.open(party_b.public_key, party_a.public_key, 1000, PROGRAM_ID)
    assert not model.initialized
    assert model.address is None
    assert model.balance_a == 0

    # The largest deposit fits
    assert _open(party_a.public_key, party_b.public_key, 2 ** 64 - 1).balance_a == 2 ** 64 - 1


def test_statemachine_update(party_a, party_b):
    sm, model, verifier, clock = open_channel(party_a, party_b)

    sm.update(700, 300, 1, VALID, VALID)
    assert (model.balance_a, model.balance_b, model.nonce) == (700, 300, 1)
    assert model.is_open

    # Both signatures are checked over the same message, against each party
    message = verifier.calls[0][0]
    assert verifier.calls == [(message, VALID, party_a.public_key), (message, VALID, party_b.public_key)]

    # Nonces may skip ahead
    sm.update(0, 1000, 10, VALID, VALID)
    assert (model.balance_a, model.balance_b, model.nonce) == (0, 1000, 10)


def test_statemachine_update_rejections(party_a, party_b):
    sm, model, verifier, clock = open_channel(party_a, party_b)
    sm.update(700, 300, 1, VALID, VALID)
    verifier.calls.clear()

    def assert_unchanged():
        assert (model.balance_a, model.balance_b, model.nonce, model.is_open) == (700, 300, 1, True)

    # Stale nonces are rejected regardless of signatures
    for nonce in (0, 1):
        with pytest.raises(errors.InvalidNonceError):
            sm.update(600, 400, nonce, VALID, VALID)
        assert_unchanged()
    with pytest.raises(errors.InvalidNonceError):
        sm.update(600, 400, 2 ** 64, VALID, VALID)
    assert verifier.calls == []

    # Balances must keep the deposit and be non-negative
    with pytest.raises(errors.InvalidBalanceError):
        sm.update(800, 300, 2, VALID, VALID)
    with pytest.raises(errors.InvalidBalanceError):
        sm.update(1100, -100, 2, VALID, VALID)
    with pytest.raises(TypeError):
        sm.update(600.0, 400, 2, VALID, VALID)
    assert verifier.calls == []
    assert_unchanged()

    # Nonce is checked before balance
    with pytest.raises(errors.InvalidNonceError):
        sm.update(800, 300, 1, VALID, VALID)

    # Either signature may be invalid
    with pytest.raises(errors.InvalidSignatureError):
        sm.update(600, 400, 2, b'bad', VALID)
    with pytest.raises(errors.InvalidSignatureError):
        sm.update(600, 400, 2, VALID, b'bad')
    with pytest.raises(errors.InvalidSignatureError):
        sm.update(600, 400, 2, None, None)
    assert_unchanged()


def test_statemachine_cooperative_close(party_a, party_b):
    sm, model, verifier, clock = open_channel(party_a, party_b)
    sm.update(700, 300, 1, VALID, VALID)
    clock.advance(60)

    settlement = sm.cooperative_close(650, 350, 2, VALID, VALID)
    assert not model.is_open
    assert sm.state == statemachine.ChannelState.CLOSED
    assert (model.balance_a, model.balance_b, model.nonce) == (650, 350, 2)
    assert settlement == statemachine.Settlement(
        channel_id=model.address, party_a=party_a.public_key, party_b=party_b.public_key,
        amount_a=650, amount_b=350, nonce=2, closed_at=mock.START_TIME + 60, reason='cooperative')

    # Closed is terminal
    with pytest.raises(errors.ChannelAlreadyClosedError):
        sm.update(600, 400, 3, VALID, VALID)
    with pytest.raises(errors.ChannelAlreadyClosedError):
        sm.cooperative_close(600, 400, 3, VALID, VALID)
    with pytest.raises(errors.ChannelNotOpenError):
        sm.force_close(party_a.public_key)
    assert not model.is_open


def test_statemachine_cooperative_close_rejections(party_a, party_b):
    sm, model, verifier, clock = open_channel(party_a, party_b)

    with pytest.raises(errors.InvalidNonceError):
        sm.cooperative_close(1000, 0, 0, VALID, VALID)
    with pytest.raises(errors.InvalidBalanceError):
        sm.cooperative_close(1000, 1, 1, VALID, VALID)
    with pytest.raises(errors.InvalidSignatureError):
        sm.cooperative_close(1000, 0, 1, VALID, b'bad')
    assert model.is_open
    assert model.nonce == 0


def test_statemachine_force_close(party_a, party_b, mallory):
    sm, model, verifier, clock = open_channel(party_a, party_b)
    sm.update(700, 300, 1, VALID, VALID)

    # Non participants are always rejected
    with pytest.raises(errors.NotParticipantError):
        sm.force_close(mallory.public_key)
    with pytest.raises(errors.UnauthorizedError):
        sm.force_close(mallory.public_key)
    clock.advance(48 * 60 * 60)
    with pytest.raises(errors.NotParticipantError):
        sm.force_close(mallory.public_key)
    clock.time = mock.START_TIME

    # Timeout must elapse
    clock.advance(24 * 60 * 60 - 1)
    with pytest.raises(errors.TimeoutNotElapsedError):
        sm.force_close(party_a.public_key)
    with pytest.raises(errors.ChannelNotTimedOutError):
        sm.force_close(party_b.public_key)
    assert model.is_open

    # Accepted exactly at the timeout, paying the last committed balances
    clock.advance(1)
    reads = clock.reads
    settlement = sm.force_close(party_b.public_key)
    assert clock.reads == reads + 1
    assert not model.is_open
    assert settlement.reason == 'force'
    assert (settlement.amount_a, settlement.amount_b, settlement.nonce) == (700, 300, 1)
    assert settlement.closed_at == model.timeout_at

    with pytest.raises(errors.ChannelAlreadyClosedError):
        sm.force_close(party_a.public_key)


def test_statemachine_uninitialized():
    sm = statemachine.ChannelStateMachine(statemachine.ChannelModel(), mock.MockVerifier(), mock.MockClock())

    with pytest.raises(errors.ChannelNotOpenError):
        sm.update(1, 0, 1, VALID, VALID)
    with pytest.raises(errors.ChannelNotOpenError):
        sm.force_close(b'\x01' * 32)


def test_model_encoding(party_a, party_b):
    sm, model, verifier, clock = open_channel(party_a, party_b)
    sm.update(700, 300, 1, VALID, VALID)

    b = bytes(model)
    assert len(b) == 114
    assert statemachine.ChannelModel.LEN == 114
    assert b[:8] == statemachine.ChannelModel.DISCRIMINATOR
    assert b[8:40] == bytes(party_a.public_key)
    assert b[40:72] == bytes(party_b.public_key)

    decoded = statemachine.ChannelModel.from_bytes(b, address=model.address)
    for attr in ('address', 'party_a', 'party_b', 'balance_a', 'balance_b', 'nonce', 'is_open', 'opened_at',
                 'timeout_at', 'bump'):
        assert getattr(decoded, attr) == getattr(model, attr)
    assert statemachine.ChannelModel.from_hex(model.to_hex()).nonce == 1

    # Malformed records
    with pytest.raises(errors.InvalidChannelStateError):
        statemachine.ChannelModel.from_bytes(b[:-1])
    with pytest.raises(errors.InvalidChannelStateError):
        statemachine.ChannelModel.from_bytes(b'\x00' * 8 + b[8:])
    swapped = b[:8] + b[40:72] + b[8:40] + b[72:]
    with pytest.raises(errors.InvalidChannelStateError):
        statemachine.ChannelModel.from_bytes(swapped)


def test_model_parties(party_a, party_b, mallory):
    sm, model, verifier, clock = open_channel(party_a, party_b)

    assert model.is_participant(party_a.public_key)
    assert model.is_participant(str(party_b.public_key))
    assert not model.is_participant(mallory.public_key)
    assert not model.is_participant(b'short')

    assert model.get_other_party(party_a.public_key) == party_b.public_key
    assert model.get_other_party(party_b.public_key) == party_a.public_key
    assert model.get_other_party(mallory.public_key) is None

    assert not model.has_timed_out(model.timeout_at - 1)
    assert model.has_timed_out(model.timeout_at)
    assert str(statemachine.ChannelState.OPEN) == 'Open'
    assert str(statemachine.ChannelState.CLOSED) == 'Closed'
