"""
LedgerChat Local Ledger

SQLite-backed development ledger. Stores records by address and runs the
chat program against them, one SQLite transaction per ledger transaction.
"""

import asyncio
import logging
import sqlite3
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional, Sequence

import base58

from ..core.address import Address, DEFAULT_PROGRAM_ID
from ..core.codec import DEFAULT_RECORD_CAPACITY
from ..core.credentials import Credential, verify_signature
from ..core.errors import RejectionCode, RejectionError
from ..core.instructions import Instruction, serialize_instructions
from .interface import LedgerRuntime
from .program import ChatProgram

logger = logging.getLogger(__name__)

MEMORY_PATH = ":memory:"


class _SqliteRecordStore:
    """Record store view bound to the ledger connection and owning program."""

    def __init__(self, conn: sqlite3.Connection, owner: Address, capacity: int):
        self._conn = conn
        self._owner = owner
        self._capacity = capacity

    def get(self, address: Address) -> Optional[bytes]:
        row = self._conn.execute(
            "SELECT data FROM records WHERE address = ?", (address.raw,)
        ).fetchone()
        return bytes(row["data"]) if row else None

    def put(self, address: Address, data: bytes) -> None:
        now_us = int(time.time() * 1_000_000)
        padded = data + bytes(max(0, self._capacity - len(data)))
        self._conn.execute("""
            INSERT INTO records (address, owner, data, created_at_us, updated_at_us)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(address) DO UPDATE SET
                data = excluded.data,
                updated_at_us = excluded.updated_at_us
        """, (address.raw, self._owner.raw, padded, now_us, now_us))


class LocalLedger(LedgerRuntime):
    """
    Local ledger runtime for development and tests.

    Transactions are atomic: every instruction runs inside one SQLite
    transaction and any rejection rolls all of them back. Records are
    stored zero-padded to the record capacity, as fixed-size accounts are.
    """

    def __init__(
        self,
        path: str = MEMORY_PATH,
        program_id: Address = DEFAULT_PROGRAM_ID,
        record_capacity: int = DEFAULT_RECORD_CAPACITY,
        latency_ms: int = 0
    ):
        """
        Initialize local ledger.

        Args:
            path: SQLite database file, or ":memory:"
            program_id: Address of the chat program this ledger hosts
            record_capacity: Size of every record slot in bytes
            latency_ms: Simulated confirmation delay per call
        """
        self.path = path
        self.program = ChatProgram(program_id, record_capacity)
        self.latency_ms = latency_ms
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def program_id(self) -> Address:
        return self.program.program_id

    @property
    def record_capacity(self) -> int:
        return self.program.record_capacity

    def initialize(self) -> "LocalLedger":
        """Open the database and create the schema."""
        if self.path != MEMORY_PATH:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = sqlite3.connect(
            self.path,
            check_same_thread=False,
            isolation_level=None  # Autocommit; transactions are explicit
        )
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.row_factory = sqlite3.Row

        self._run_migrations()
        logger.info(f"Local ledger initialized: {self.path}")
        return self

    def _run_migrations(self):
        """Run database migrations."""
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS _migrations (
                id INTEGER PRIMARY KEY,
                name TEXT UNIQUE NOT NULL,
                applied_at INTEGER NOT NULL
            )
        """)

        applied = {
            row[0] for row in
            self._conn.execute("SELECT name FROM _migrations").fetchall()
        }

        migrations = [
            ("001_records", self._migration_001_records),
        ]

        for name, func in migrations:
            if name not in applied:
                logger.info(f"Running migration: {name}")
                func()
                self._conn.execute(
                    "INSERT INTO _migrations (name, applied_at) VALUES (?, ?)",
                    (name, int(time.time() * 1_000_000))
                )

    def _migration_001_records(self):
        """Record and transaction log tables."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS records (
                address         BLOB PRIMARY KEY,
                owner           BLOB NOT NULL,
                data            BLOB NOT NULL,
                created_at_us   INTEGER NOT NULL,
                updated_at_us   INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS transactions (
                id                  INTEGER PRIMARY KEY AUTOINCREMENT,
                signature           TEXT NOT NULL,
                instruction_count   INTEGER NOT NULL,
                submitted_at_us     INTEGER NOT NULL
            );
        """)

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database transactions."""
        self._conn.execute("BEGIN")
        try:
            yield self._conn
            self._conn.execute("COMMIT")
        except Exception:
            self._conn.execute("ROLLBACK")
            raise

    def _require_open(self):
        if self._conn is None:
            raise RuntimeError("Local ledger not initialized")

    async def _simulate_latency(self):
        if self.latency_ms:
            await asyncio.sleep(self.latency_ms / 1000)

    async def get_record(self, address: Address) -> Optional[bytes]:
        """Return stored bytes at address, or None."""
        self._require_open()
        await self._simulate_latency()
        row = self._conn.execute(
            "SELECT data FROM records WHERE address = ?", (address.raw,)
        ).fetchone()
        return bytes(row["data"]) if row else None

    async def submit_transaction(
        self,
        instructions: Sequence[Instruction],
        signers: Sequence[Credential]
    ) -> str:
        """
        Verify signatures, then apply all instructions atomically.

        Returns:
            base58 signature of the first signer

        Raises:
            RejectionError: any instruction refused; nothing is applied
        """
        self._require_open()
        await self._simulate_latency()

        if not instructions:
            raise RejectionError(RejectionCode.INVALID_INSTRUCTION, "empty transaction")
        if not signers:
            raise RejectionError(RejectionCode.MISSING_SIGNATURE, "transaction has no signers")

        message = serialize_instructions(list(instructions))
        signed_by = set()
        signatures = []
        for signer in signers:
            signature = signer.sign(message)
            if not verify_signature(signer.address, signature, message):
                raise RejectionError(
                    RejectionCode.MISSING_SIGNATURE, "signature verification failed", address=signer.address
                )
            signed_by.add(signer.address)
            signatures.append(signature)

        tx_signature = base58.b58encode(signatures[0]).decode("ascii")
        store = _SqliteRecordStore(self._conn, self.program_id, self.record_capacity)

        try:
            with self.transaction() as conn:
                for ix in instructions:
                    self.program.process(ix, signed_by, store)
                conn.execute(
                    "INSERT INTO transactions (signature, instruction_count, submitted_at_us) VALUES (?, ?, ?)",
                    (tx_signature, len(instructions), int(time.time() * 1_000_000))
                )
        except RejectionError as e:
            logger.debug(f"Transaction rejected: {e}")
            raise

        logger.debug(f"Transaction {tx_signature[:12]} applied ({len(instructions)} instructions)")
        return tx_signature

    # === Test and inspection helpers ===

    def put_raw_record(self, address: Address, data: bytes):
        """Store bytes at address verbatim, bypassing the program."""
        self._require_open()
        now_us = int(time.time() * 1_000_000)
        self._conn.execute("""
            INSERT OR REPLACE INTO records (address, owner, data, created_at_us, updated_at_us)
            VALUES (?, ?, ?, ?, ?)
        """, (address.raw, self.program_id.raw, data, now_us, now_us))

    def delete_record(self, address: Address) -> bool:
        """Remove a record. Used to simulate dangling pointers."""
        self._require_open()
        cursor = self._conn.execute("DELETE FROM records WHERE address = ?", (address.raw,))
        return cursor.rowcount > 0

    def count_records(self) -> int:
        """Count stored records."""
        self._require_open()
        row = self._conn.execute("SELECT COUNT(*) FROM records").fetchone()
        return row[0] if row else 0

    def count_transactions(self) -> int:
        """Count accepted transactions."""
        self._require_open()
        row = self._conn.execute("SELECT COUNT(*) FROM transactions").fetchone()
        return row[0] if row else 0

    def close(self):
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            logger.info("Local ledger closed")
