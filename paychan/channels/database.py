"""Provides persistent storage and retrieval of payment channel records."""
import os
import fcntl
import sqlite3
import threading

from . import errors
from .identity import Identity
from .statemachine import ChannelModel, Payout


class DatabaseBase:
    """Base class for a Database interface."""

    def create(self, model):
        """Create a new channel record in the database, replacing a closed
        record stored at the same address.

        Args:
            model (ChannelModel): Channel record.

        """
        raise NotImplementedError()

    def read(self, address):
        """Read a channel record from the database.

        Args:
            address (Identity): Channel address (primary key).

        Returns:
            ChannelModel or None: Channel record, or None if not found.

        """
        raise NotImplementedError()

    def update(self, model, expected_nonce):
        """Update a channel record in the database if the stored record is
        still the open lifecycle it was read from, at `expected_nonce`.

        Args:
            model (ChannelModel): Channel record.
            expected_nonce (int): Nonce the record was read at.

        Raises:
            InvalidNonceError: If the stored nonce changed since the read.
            ChannelAlreadyClosedError: If the stored lifecycle was closed or
                replaced since the read.
            ChannelNotFoundError: If the record was deleted since the read.

        """
        raise NotImplementedError()

    def delete(self, address):
        """Delete a channel record from the database.

        Args:
            address (Identity): Channel address (primary key).

        """
        raise NotImplementedError()

    def list(self, party=None):
        """List channel addresses in the database.

        Args:
            party (Identity or None): Restrict to channels with this participant.

        Returns:
            list: List of addresses (Identity).

        """
        raise NotImplementedError()

    def payout(self, settlement):
        """Record the payouts of a settled channel.

        Args:
            settlement (Settlement): Channel settlement.

        """
        raise NotImplementedError()

    def payouts(self, party=None):
        """List recorded payouts.

        Args:
            party (Identity or None): Restrict to payouts to this recipient.

        Returns:
            list: List of Payout tuples.

        """
        raise NotImplementedError()

    @property
    def lock(self):
        """Get a database lock."""
        raise NotImplementedError()

    def __enter__(self):
        """Enter a database transaction session."""
        raise NotImplementedError()

    def __exit__(self, exc_type, exc_value, traceback):
        """Exit a database transaction session."""
        raise NotImplementedError()


class Sqlite3Database(DatabaseBase):
    """Sqlite3 implementation of the database interface."""

    def __init__(self, db_path):
        """Create a new Sqlite3Database instance.

        Args:
            db_path (str): Database path.

        Returns:
            Sqlite3Database: Instance of Sqlite3Database.

        """
        self._db_path = db_path

        if db_path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)

        # Create the channels and payouts tables if they don't exist
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        with self._conn:
            self._conn.execute("CREATE TABLE IF NOT EXISTS "
                               "channels ("
                               "address VARCHAR NOT NULL PRIMARY KEY, "
                               "party_a VARCHAR NOT NULL, "
                               "party_b VARCHAR NOT NULL, "
                               "nonce VARCHAR NOT NULL, "
                               "is_open BOOLEAN NOT NULL, "
                               "opened_at INTEGER NOT NULL, "
                               "record BLOB NOT NULL"
                               ");")
            self._conn.execute("CREATE TABLE IF NOT EXISTS "
                               "payouts ("
                               "id INTEGER PRIMARY KEY AUTOINCREMENT, "
                               "address VARCHAR NOT NULL, "
                               "recipient VARCHAR NOT NULL, "
                               "amount VARCHAR NOT NULL, "
                               "nonce VARCHAR NOT NULL, "
                               "reason VARCHAR(11), "
                               "closed_at INTEGER, "
                               "CONSTRAINT reason CHECK (reason IN ('cooperative', 'force'))"
                               ");")

        if db_path == ":memory:":
            self._lock = threading.Lock()
        else:
            self._lock = Sqlite3DatabaseLock(db_path)

    @staticmethod
    def _model_to_sqlite(model):
        """Convert a ChannelModel into tuple of SQLite values.

        Args:
            model (ChannelModel): Channel record.

        Returns:
            tuple: Tuple of SQLite values representing a ChannelModel.

        """
        # u64 values can exceed sqlite's signed INTEGER, so they are stored as text
        return (str(model.address), str(model.party_a), str(model.party_b), str(model.nonce), model.is_open,
                model.opened_at, bytes(model))

    @staticmethod
    def _sqlite_to_model(values):
        """Convert a tuple of SQLite values to a ChannelModel.

        Args:
            values (tuple): (address, record) SQLite values.

        Returns:
            ChannelModel: Channel record.

        """
        return ChannelModel.from_bytes(bytes(values[1]), address=Identity(values[0]))

    def create(self, model):
        self._conn.execute("INSERT OR REPLACE INTO channels VALUES (?,?,?,?,?,?,?)", self._model_to_sqlite(model))

    def read(self, address):
        cur = self._conn.execute("SELECT address, record FROM channels WHERE address=? LIMIT 1", (str(address),))
        values = cur.fetchone()
        return self._sqlite_to_model(values) if values else None

    def update(self, model, expected_nonce):
        values = self._model_to_sqlite(model)
        # Only the open lifecycle the record was read from, at the nonce it was read at
        cur = self._conn.execute(
            "UPDATE channels SET nonce=?, is_open=?, record=? "
            "WHERE address=? AND nonce=? AND opened_at=? AND is_open=1",
            (values[3], values[4], values[6], values[0], str(expected_nonce), values[5]))
        if cur.rowcount != 1:
            current = self.read(model.address)
            if current is None:
                raise errors.ChannelNotFoundError("Channel {} not found.".format(model.address))
            elif not current.is_open or current.opened_at != model.opened_at:
                raise errors.ChannelAlreadyClosedError(
                    "Channel {} was closed by another writer.".format(model.address))
            raise errors.InvalidNonceError("Channel record was modified concurrently (stale nonce {}).".format(
                expected_nonce))

    def delete(self, address):
        self._conn.execute("DELETE FROM channels WHERE address=?", (str(address),))

    def list(self, party=None):
        if party is None:
            cur = self._conn.execute("SELECT address FROM channels ORDER BY rowid")
        else:
            party = str(Identity(party))
            cur = self._conn.execute("SELECT address FROM channels WHERE party_a=? OR party_b=? ORDER BY rowid",
                                     (party, party))
        return [Identity(row[0]) for row in cur.fetchall()]

    def payout(self, settlement):
        for recipient, amount in ((settlement.party_a, settlement.amount_a), (settlement.party_b, settlement.amount_b)):
            self._conn.execute(
                "INSERT INTO payouts (address, recipient, amount, nonce, reason, closed_at) VALUES (?,?,?,?,?,?)",
                (str(settlement.channel_id), str(recipient), str(amount), str(settlement.nonce), settlement.reason,
                 settlement.closed_at))

    def payouts(self, party=None):
        query = "SELECT address, recipient, amount, nonce, reason, closed_at FROM payouts"
        if party is None:
            cur = self._conn.execute(query + " ORDER BY id")
        else:
            cur = self._conn.execute(query + " WHERE recipient=? ORDER BY id", (str(Identity(party)),))
        return [Payout(Identity(row[0]), Identity(row[1]), int(row[2]), int(row[3]), row[4], row[5])
                for row in cur.fetchall()]

    @property
    def lock(self):
        return self._lock

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        if not exc_type and not exc_value and not traceback:
            self._conn.commit()
        else:
            self._conn.rollback()


class Sqlite3DatabaseLock:
    """Sqlite3 multi-threading and multi-process database lock."""

    def __init__(self, db_path):
        self._db_fd = os.open(db_path, os.O_RDWR)
        self._thread_lock = threading.Lock()

    def __enter__(self):
        # Lock the database interface (multi-threading)
        self._thread_lock.acquire()

        # Lock the database (multi-processing)
        fcntl.lockf(self._db_fd, fcntl.LOCK_EX)

    def __exit__(self, exc_type, exc_value, traceback):
        # Unlock the database (multi-processing)
        fcntl.lockf(self._db_fd, fcntl.LOCK_UN)

        # Unlock the database interface (multi-threading)
        self._thread_lock.release()
