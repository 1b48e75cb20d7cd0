"""Command-line interface for managing two-party payment channels."""
import collections
import functools
import json as jsonlib
import logging
import sys
import time

import click
from tabulate import tabulate

import paychan
import paychan.logger
from paychan import exceptions
from paychan.config import Config
from paychan.channels import ChannelServer
from paychan.channels import ChannelState
from paychan.channels import Identity
from paychan.channels import Keypair
from paychan.channels import PaymentChannelError
from paychan.channels import Sqlite3Database
from paychan.channels import canonical_order
from paychan.channels import derive_channel_address
from paychan.channels.voucher import state_message


# Creates a ClickLogger
logger = logging.getLogger(__name__)

CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'])

LAMPORTS_PER_SOL = 10 ** 9

COMMANDS_WITHOUT_DATABASE = ('derive', 'keygen', 'help')


class IdentityParamType(click.ParamType):
    name = "identity"

    def __init__(self):
        click.ParamType.__init__(self)

    def convert(self, value, param, ctx):
        try:
            return Identity(value)
        except (TypeError, ValueError):
            self.fail("{} is not a valid base58 32-byte identity.".format(value))


class SignatureParamType(click.ParamType):
    name = "signature"

    def __init__(self):
        click.ParamType.__init__(self)

    def convert(self, value, param, ctx):
        try:
            return bytes.fromhex(value)
        except ValueError:
            self.fail("{} is not a hex encoded signature.".format(value))


IDENTITY = IdentityParamType()
SIGNATURE = SignatureParamType()


def lamports_to_sol(lamports):
    """Convert an amount in lamports to SOL.

    Args:
        lamports (int): Amount in lamports.

    Returns:
        float: Amount in SOL.

    """
    return lamports / LAMPORTS_PER_SOL


def format_balance(lamports):
    return "{} ({:.9f} SOL)".format(lamports, lamports_to_sol(lamports))


def format_state(state):
    """Colorize string representation of payment channel state.

    Args:
        state (ChannelState): Payment channel state.

    Returns:
        str: Colorized payment channel state.

    """
    if state == ChannelState.OPEN:
        return click.style(str(state), fg='green')
    return click.style(str(state), fg='red')


def format_expiration_time(expires, now=None):
    """Format expiration time in terms of days, hours, minutes, and seconds.

    Args:
        expires (int): Absolute UNIX time.
        now (int): Current UNIX time, defaults to the system time.

    Returns:
        str: Human-readable expiration time in terms of days, hours, minutes,
            and seconds.

    """
    now = int(time.time()) if now is None else now
    delta = int(expires - now)

    if delta <= 0:
        return "Timed out at " + time.asctime(time.localtime(expires))

    days, r = divmod(delta, 86400)
    hours, r = divmod(r, 3600)
    minutes, r = divmod(r, 60)
    seconds = r

    if days > 0:
        return "{} days, {} hrs, {} min, {} sec".format(days, hours, minutes, seconds)
    elif hours > 0:
        return "{} hrs, {} min, {} sec".format(hours, minutes, seconds)
    elif minutes > 0:
        return "{} min, {} sec".format(minutes, seconds)
    else:
        return "{} sec".format(seconds)


def status_to_dict(status):
    return {
        'channel_id': str(status.channel_id),
        'party_a': str(status.party_a),
        'party_b': str(status.party_b),
        'state': str(status.state),
        'balance_a': status.balance_a,
        'balance_b': status.balance_b,
        'total_balance': status.total_balance,
        'nonce': status.nonce,
        'opened_at': status.opened_at,
        'timeout_at': status.timeout_at,
        'timed_out': status.timed_out,
    }


def settlement_to_dict(settlement):
    return {
        'channel_id': str(settlement.channel_id),
        'party_a': str(settlement.party_a),
        'party_b': str(settlement.party_b),
        'amount_a': settlement.amount_a,
        'amount_b': settlement.amount_b,
        'nonce': settlement.nonce,
        'closed_at': settlement.closed_at,
        'reason': settlement.reason,
    }


def echo_result(ctx, result, text):
    """Echo a command result as JSON or as text depending on --json."""
    if ctx.obj['json']:
        click.echo(jsonlib.dumps({'result': result}, sort_keys=True))
    else:
        click.echo(text)


def catch_channel_errors(f):
    """ Converts rejected channel operations into CliErrors

    In --json mode the error is printed as
    {"error": {"code": ..., "kind": ..., "message": ...}} before exiting.
    """
    @functools.wraps(f)
    def _catch_channel_errors(ctx, *args, **kwargs):
        try:
            return f(ctx, *args, **kwargs)
        except PaymentChannelError as e:
            error = exceptions.ChannelCommandError(e)
            if ctx.obj['json']:
                click.echo(jsonlib.dumps(error.json, sort_keys=True))
                sys.exit(1)
            raise error

    return _catch_channel_errors


@click.group('paychan', context_settings=CONTEXT_SETTINGS)
@click.option('--json', is_flag=True, default=False, help="JSON output.")
@click.option('--config', 'config_file',
              envvar='PAYCHAN_CONFIG_FILE',
              default=paychan.PAYCHAN_CONFIG_FILE,
              metavar='PATH',
              help='Path to config (default: %s)' % paychan.PAYCHAN_CONFIG_FILE)
@click.option('--db', 'db_path',
              default=None,
              metavar='PATH',
              help='Path to the channel database (overrides the config).')
@click.option('--verbose', is_flag=True, default=False, help="Log channel operations.")
@click.version_option(paychan.PAYCHAN_VERSION, message=paychan.PAYCHAN_VERSION_MESSAGE)
@click.pass_context
def main(ctx, json, config_file, db_path, verbose):
    """Manage two-party payment channels.

    A channel is opened with a deposit from party A, updated with balance
    states signed by both parties, and settled by a cooperative close or,
    once its timeout has elapsed, by a force close from either party.

    $ paychan open <party_a> <party_b> 1000000000\n
    $ paychan sign <channel> 700000000 300000000 1 --key <seed>\n
    $ paychan update <channel> 700000000 300000000 1 <sig_a> <sig_b>\n
    $ paychan status <channel>\n
    $ paychan close <channel> 600000000 400000000 2 <sig_a> <sig_b>\n
    """
    try:
        config = Config(config_file)
    except exceptions.FileDecodeError as e:
        raise exceptions.CliError("Could not decode config file {}.".format(e))

    logging.getLogger('paychan').setLevel(logging.INFO if verbose or config.verbose else logging.WARNING)

    server = None
    if ctx.invoked_subcommand not in COMMANDS_WITHOUT_DATABASE:
        db_path = db_path or config.db_path
        logger.info("Using channel database {}".format(db_path), dim=True, err=True)
        db = Sqlite3Database(db_path)
        server = ChannelServer(db, program_id=config.program_id)

    ctx.obj = {'config': config, 'server': server, 'json': json}


@click.command('open', help="Open channel.")
@click.argument('party_a', type=IDENTITY)
@click.argument('party_b', type=IDENTITY)
@click.argument('deposit', type=click.INT)
@click.option('--sort', is_flag=True, default=False, help="Sort the parties into canonical order first.")
@click.pass_context
@catch_channel_errors
def cli_open(ctx, party_a, party_b, deposit, sort):
    """Open a payment channel funded by party A.

    Args:
        party_a (Identity): Canonically smaller party.
        party_b (Identity): Canonically larger party.
        deposit (int): Deposit amount in lamports.
        sort (bool): Sort the parties instead of rejecting a wrong order.

    """
    if sort:
        try:
            party_a, party_b = canonical_order(party_a, party_b)
        except ValueError as e:
            raise exceptions.CliError(str(e))

    channel_id = ctx.obj['server'].open(party_a, party_b, deposit)
    status = ctx.obj['server'].status(channel_id)

    echo_result(ctx, str(channel_id), "Opened {}\nDeposit: {}. Times out in {}.".format(
        channel_id, format_balance(status.total_balance), format_expiration_time(status.timeout_at)))


@click.command('update', help="Commit a signed channel state.")
@click.argument('channel_id', type=IDENTITY)
@click.argument('balance_a', type=click.INT)
@click.argument('balance_b', type=click.INT)
@click.argument('nonce', type=click.INT)
@click.argument('signature_a', type=SIGNATURE)
@click.argument('signature_b', type=SIGNATURE)
@click.pass_context
@catch_channel_errors
def cli_update(ctx, channel_id, balance_a, balance_b, nonce, signature_a, signature_b):
    """Commit a balance state signed by both parties."""
    ctx.obj['server'].update(channel_id, balance_a, balance_b, nonce, signature_a, signature_b)
    status = ctx.obj['server'].status(channel_id)

    echo_result(ctx, status_to_dict(status), "Updated {} to nonce {}. Balances: {} / {}.".format(
        channel_id, status.nonce, format_balance(status.balance_a), format_balance(status.balance_b)))


@click.command('close', help="Close channel cooperatively.")
@click.argument('channel_id', type=IDENTITY)
@click.argument('balance_a', type=click.INT)
@click.argument('balance_b', type=click.INT)
@click.argument('nonce', type=click.INT)
@click.argument('signature_a', type=SIGNATURE)
@click.argument('signature_b', type=SIGNATURE)
@click.pass_context
@catch_channel_errors
def cli_close(ctx, channel_id, balance_a, balance_b, nonce, signature_a, signature_b):
    """Close a payment channel with a final state signed by both parties."""
    settlement = ctx.obj['server'].cooperative_close(
        channel_id, balance_a, balance_b, nonce, signature_a, signature_b)

    echo_result(ctx, settlement_to_dict(settlement), "Channel closed. Paid {} to {} and {} to {}.".format(
        format_balance(settlement.amount_a), settlement.party_a,
        format_balance(settlement.amount_b), settlement.party_b))


@click.command('force-close', help="Force close a timed out channel.")
@click.argument('channel_id', type=IDENTITY)
@click.argument('initiator', type=IDENTITY)
@click.pass_context
@catch_channel_errors
def cli_force_close(ctx, channel_id, initiator):
    """Force close a payment channel at its last committed balances.

    Args:
        channel_id (Identity): Channel address.
        initiator (Identity): Party requesting the close.

    """
    settlement = ctx.obj['server'].force_close(channel_id, initiator)

    echo_result(ctx, settlement_to_dict(settlement), "Channel force closed. Paid {} to {} and {} to {}.".format(
        format_balance(settlement.amount_a), settlement.party_a,
        format_balance(settlement.amount_b), settlement.party_b))


@click.command('status', help="Get status of channel.")
@click.argument('channel_id', type=IDENTITY)
@click.pass_context
@catch_channel_errors
def cli_status(ctx, channel_id):
    """Get status and basic information of a payment channel."""
    status = ctx.obj['server'].status(channel_id)

    if ctx.obj['json']:
        echo_result(ctx, status_to_dict(status), None)
        return

    lines = [
        click.style(str(status.channel_id), fg='blue'),
        "    {:<16}{}".format("Status", format_state(status.state)),
        "    {:<16}{}".format("Party A", status.party_a),
        "    {:<16}{}".format("Party B", status.party_b),
        "    {:<16}{}".format("Balance A", format_balance(status.balance_a)),
        "    {:<16}{}".format("Balance B", format_balance(status.balance_b)),
        "    {:<16}{}".format("Deposit", format_balance(status.total_balance)),
        "    {:<16}{}".format("Nonce", status.nonce),
        "    {:<16}{}".format("Opened", time.asctime(time.localtime(status.opened_at)))
    ]
    if status.state == ChannelState.OPEN:
        lines.append("    {:<16}{}".format("Times out", format_expiration_time(status.timeout_at)))
    click.echo("\n".join(lines))


@click.command('list', help="List channels.")
@click.option('--party', type=IDENTITY, default=None, help="Only list channels of this party.")
@click.pass_context
@catch_channel_errors
def cli_list(ctx, party):
    """List payment channels and their information."""
    server = ctx.obj['server']
    statuses = [server.status(channel_id) for channel_id in server.list(party)]

    if ctx.obj['json']:
        echo_result(ctx, [status_to_dict(status) for status in statuses], None)
    elif len(statuses) == 0:
        click.echo("No payment channels exist.")
    else:
        headers = ("Channel", "Status", "Balance A", "Balance B", "Nonce")
        rows = [(str(s.channel_id), str(s.state), s.balance_a, s.balance_b, s.nonce) for s in statuses]
        click.echo(tabulate(rows, headers, tablefmt="simple"))


@click.command('payouts', help="List settlement payouts.")
@click.option('--party', type=IDENTITY, default=None, help="Only list payouts to this party.")
@click.pass_context
@catch_channel_errors
def cli_payouts(ctx, party):
    """List the payouts of settled channels."""
    payouts = ctx.obj['server'].payouts(party)

    if ctx.obj['json']:
        echo_result(ctx, [{
            'channel_id': str(p.channel_id),
            'recipient': str(p.recipient),
            'amount': p.amount,
            'nonce': p.nonce,
            'reason': p.reason,
            'closed_at': p.closed_at,
        } for p in payouts], None)
    elif len(payouts) == 0:
        click.echo("No payouts recorded.")
    else:
        headers = ("Channel", "Recipient", "Amount (SOL)", "Reason")
        rows = [(str(p.channel_id), str(p.recipient), lamports_to_sol(p.amount), p.reason) for p in payouts]
        click.echo(tabulate(rows, headers, tablefmt="simple"))


@click.command('derive', help="Derive a channel address.")
@click.argument('party_a', type=IDENTITY)
@click.argument('party_b', type=IDENTITY)
@click.pass_context
def cli_derive(ctx, party_a, party_b):
    """Derive the address of the channel between two ordered parties."""
    address, bump = derive_channel_address(party_a, party_b, ctx.obj['config'].program_id)
    echo_result(ctx, {'address': str(address), 'bump': bump}, "{} (bump {})".format(address, bump))


@click.command('sign', help="Sign a channel state.")
@click.argument('channel_id', type=IDENTITY)
@click.argument('balance_a', type=click.INT)
@click.argument('balance_b', type=click.INT)
@click.argument('nonce', type=click.INT)
@click.option('--key', 'key_hex', envvar='PAYCHAN_SIGNING_KEY', required=True,
              help="Hex encoded 32-byte ed25519 seed.")
@click.option('--opened-at', type=click.INT, default=None,
              help="Opening time of the channel (default: read from the database).")
@click.pass_context
@catch_channel_errors
def cli_sign(ctx, channel_id, balance_a, balance_b, nonce, key_hex, opened_at):
    """Sign a channel state with an ed25519 seed.

    Args:
        channel_id (Identity): Channel address.
        balance_a (int): Party A balance.
        balance_b (int): Party B balance.
        nonce (int): State nonce.
        key_hex (str): Hex encoded signing seed.
        opened_at (int): Opening time of the channel.

    """
    if opened_at is None:
        opened_at = ctx.obj['server'].status(channel_id).opened_at

    try:
        keypair = Keypair.from_hex(key_hex)
        message = state_message(channel_id, opened_at, balance_a, balance_b, nonce)
    except (TypeError, ValueError) as e:
        raise exceptions.CliError(str(e))

    signature = keypair.sign(message).hex()
    logger.info("Signed nonce {} of {} as {}".format(nonce, channel_id, keypair.public_key), fg='cyan', err=True)
    echo_result(ctx, {'public_key': str(keypair.public_key), 'signature': signature}, signature)


@click.command('keygen', help="Generate a signing key.")
@click.pass_context
def cli_keygen(ctx):
    """Generate a random ed25519 seed for signing channel states."""
    keypair = Keypair.generate()
    echo_result(ctx, {'public_key': str(keypair.public_key), 'seed': keypair.seed_hex},
                "Public key: {}\nSeed: {}".format(keypair.public_key, keypair.seed_hex))


@click.command('help', help="Print help.")
@click.pass_context
def cli_help(ctx):
    """Get paychan CLI help."""
    click.echo(ctx.parent.get_help())


main.commands = collections.OrderedDict()
main.list_commands = lambda ctx: main.commands
main.add_command(cli_open)
main.add_command(cli_update)
main.add_command(cli_close)
main.add_command(cli_force_close)
main.add_command(cli_status)
main.add_command(cli_list)
main.add_command(cli_payouts)
main.add_command(cli_derive)
main.add_command(cli_sign)
main.add_command(cli_keygen)
main.add_command(cli_help)

if __name__ == "__main__":
    main()
