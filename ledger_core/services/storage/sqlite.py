"""
SQLite Ledger Storage

Reference gateway on aiosqlite. One connection in WAL mode; every call runs
under an asyncio.Lock so a unit of work never interleaves with another one
on the shared connection.

Timestamps are stored as integer epoch milliseconds, booleans as 0/1.
Splits carry copies of their transaction's date/inserted/updated/deleted
columns so balance and listing queries never need the transactions table
for filtering.
"""

import asyncio
import sqlite3
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import aiosqlite
import structlog
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ledger_core.errors import ConflictError
from ledger_core.models.ledger import (
    Account,
    Budget,
    BudgetItem,
    Invite,
    Org,
    Price,
    QueryOptions,
    SortOrder,
    Split,
    Transaction,
)
from ledger_core.services.storage.interface import (
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    StorageError,
)
from ledger_core.utils import from_ms, to_ms

logger = structlog.get_logger(__name__)


SCHEMA = """
CREATE TABLE IF NOT EXISTS org (
    id TEXT PRIMARY KEY,
    inserted INTEGER NOT NULL,
    updated INTEGER NOT NULL,
    name TEXT NOT NULL,
    currency TEXT NOT NULL,
    precision INTEGER NOT NULL,
    timezone TEXT NOT NULL DEFAULT ''
);

CREATE TABLE IF NOT EXISTS userorg (
    user_id TEXT NOT NULL,
    org_id TEXT NOT NULL REFERENCES org(id),
    admin INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (user_id, org_id)
);

CREATE TABLE IF NOT EXISTS account (
    id TEXT PRIMARY KEY,
    org_id TEXT NOT NULL REFERENCES org(id),
    inserted INTEGER NOT NULL,
    updated INTEGER NOT NULL,
    name TEXT NOT NULL,
    parent TEXT NOT NULL DEFAULT '',
    currency TEXT NOT NULL,
    precision INTEGER NOT NULL,
    debit_balance INTEGER NOT NULL
);
CREATE INDEX IF NOT EXISTS account_org ON account(org_id);

CREATE TABLE IF NOT EXISTS permission (
    user_id TEXT NOT NULL,
    org_id TEXT NOT NULL,
    account_id TEXT NOT NULL,
    PRIMARY KEY (user_id, org_id, account_id)
);

CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    org_id TEXT NOT NULL REFERENCES org(id),
    user_id TEXT NOT NULL,
    date INTEGER NOT NULL,
    inserted INTEGER NOT NULL,
    updated INTEGER NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    data TEXT NOT NULL DEFAULT '',
    deleted INTEGER NOT NULL DEFAULT 0,
    superseded_by TEXT
);
CREATE INDEX IF NOT EXISTS transactions_org ON transactions(org_id);

CREATE TABLE IF NOT EXISTS split (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    transaction_id TEXT NOT NULL REFERENCES transactions(id),
    account_id TEXT NOT NULL,
    date INTEGER NOT NULL,
    inserted INTEGER NOT NULL,
    updated INTEGER NOT NULL,
    amount INTEGER NOT NULL,
    native_amount INTEGER NOT NULL,
    deleted INTEGER NOT NULL DEFAULT 0
);
CREATE INDEX IF NOT EXISTS split_account ON split(account_id);
CREATE INDEX IF NOT EXISTS split_transaction ON split(transaction_id);

CREATE TABLE IF NOT EXISTS price (
    id TEXT PRIMARY KEY,
    org_id TEXT NOT NULL REFERENCES org(id),
    currency TEXT NOT NULL,
    date INTEGER NOT NULL,
    inserted INTEGER NOT NULL,
    updated INTEGER NOT NULL,
    price REAL NOT NULL
);
CREATE INDEX IF NOT EXISTS price_org_currency ON price(org_id, currency);

CREATE TABLE IF NOT EXISTS budgetitem (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    org_id TEXT NOT NULL REFERENCES org(id),
    account_id TEXT NOT NULL,
    inserted INTEGER NOT NULL,
    amount INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS invite (
    id TEXT PRIMARY KEY,
    org_id TEXT NOT NULL REFERENCES org(id),
    inserted INTEGER NOT NULL,
    updated INTEGER NOT NULL,
    email TEXT NOT NULL,
    accepted INTEGER NOT NULL DEFAULT 0
);
"""

ORG_FIELDS = "id, inserted, updated, name, currency, precision, timezone"
ACCOUNT_FIELDS = (
    "id, org_id, inserted, updated, name, parent, currency, precision, debit_balance"
)
TRANSACTION_FIELDS = (
    "t.id, t.org_id, t.user_id, t.date, t.inserted, t.updated, "
    "t.description, t.data, t.deleted, t.superseded_by"
)
PRICE_FIELDS = "id, org_id, currency, date, inserted, updated, price"
INVITE_FIELDS = "id, org_id, inserted, updated, email, accepted"


def _org_from_row(row) -> Org:
    return Org(
        id=row[0],
        inserted=from_ms(row[1]),
        updated=from_ms(row[2]),
        name=row[3],
        currency=row[4],
        precision=row[5],
        timezone=row[6],
    )


def _account_from_row(row) -> Account:
    return Account(
        id=row[0],
        org_id=row[1],
        inserted=from_ms(row[2]),
        updated=from_ms(row[3]),
        name=row[4],
        parent=row[5],
        currency=row[6],
        precision=row[7],
        debit_balance=bool(row[8]),
    )


def _transaction_from_row(row) -> Transaction:
    return Transaction(
        id=row[0],
        org_id=row[1],
        user_id=row[2],
        date=from_ms(row[3]),
        inserted=from_ms(row[4]),
        updated=from_ms(row[5]),
        description=row[6],
        data=row[7],
        deleted=bool(row[8]),
        superseded_by=row[9],
    )


def _price_from_row(row) -> Price:
    return Price(
        id=row[0],
        org_id=row[1],
        currency=row[2],
        date=from_ms(row[3]),
        inserted=from_ms(row[4]),
        updated=from_ms(row[5]),
        price=row[6],
    )


def _invite_from_row(row) -> Invite:
    return Invite(
        id=row[0],
        org_id=row[1],
        inserted=from_ms(row[2]),
        updated=from_ms(row[3]),
        email=row[4],
        accepted=bool(row[5]),
    )


def _placeholders(values: list) -> str:
    return ",".join("?" for _ in values)


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


class SQLiteLedgerStorage(LedgerStorageInterface):
    """
    aiosqlite-backed gateway.

    Usage:
        storage = SQLiteLedgerStorage("ledger.db")
        await storage.connect()
        ...
        await storage.close()
    """

    def __init__(self, db_path: Path | str, connect_attempts: int = 3):
        self.db_path = str(db_path)
        self._connect_attempts = connect_attempts
        self._conn: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    async def connect(self) -> None:
        """Open the database (retried with backoff) and create the schema."""
        if self._conn is not None:
            return

        @retry(
            stop=stop_after_attempt(self._connect_attempts),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            retry=retry_if_exception_type(ConnectionError),
            reraise=True,
        )
        async def _open() -> aiosqlite.Connection:
            try:
                if self.db_path != ":memory:":
                    Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
                conn = await aiosqlite.connect(self.db_path)
                await conn.execute("PRAGMA journal_mode=WAL")
                await conn.execute("PRAGMA busy_timeout=30000")
                await conn.execute("PRAGMA foreign_keys=ON")
                await conn.create_function("casefold", 1, _casefold, deterministic=True)
                await conn.executescript(SCHEMA)
                await conn.commit()
                return conn
            except (sqlite3.Error, OSError) as e:
                raise ConnectionError(f"Failed to open SQLite database: {e}")

        self._conn = await _open()
        logger.info("sqlite_connected", db_path=self.db_path)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("sqlite_closed", db_path=self.db_path)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Run a unit of work: commit on success, roll back on any exception.

        sqlite3 errors, and integers too large for an INTEGER column, are
        translated into StorageError subclasses.
        """
        if self._conn is None:
            raise ConnectionError("Not connected to database")

        async with self._lock:
            try:
                yield self._conn
                await self._conn.commit()
            except sqlite3.IntegrityError as e:
                await self._conn.rollback()
                raise DuplicateError(str(e))
            except (sqlite3.Error, OverflowError) as e:
                await self._conn.rollback()
                raise StorageError(str(e))
            except BaseException:
                await self._conn.rollback()
                raise

    async def _fetchall(self, sql: str, parameters: tuple[Any, ...] = ()) -> list:
        async with self.transaction() as conn:
            cursor = await conn.execute(sql, parameters)
            return list(await cursor.fetchall())

    async def _fetchone(self, sql: str, parameters: tuple[Any, ...] = ()):
        async with self.transaction() as conn:
            cursor = await conn.execute(sql, parameters)
            return await cursor.fetchone()

    # -------------------------------------------------------------------------
    # Orgs and membership
    # -------------------------------------------------------------------------

    async def create_org(self, org: Org, user_id: str, accounts: list[Account]) -> None:
        async with self.transaction() as conn:
            await conn.execute(
                f"INSERT INTO org({ORG_FIELDS}) VALUES (?,?,?,?,?,?,?)",
                (org.id, to_ms(org.inserted), to_ms(org.updated), org.name,
                 org.currency, org.precision, org.timezone),
            )
            await conn.execute(
                "INSERT INTO userorg(user_id, org_id, admin) VALUES (?,?,1)",
                (user_id, org.id),
            )
            for account in accounts:
                await self._insert_account(conn, account)
                if account.is_root:
                    await conn.execute(
                        "INSERT INTO permission(user_id, org_id, account_id) VALUES (?,?,?)",
                        (user_id, org.id, account.id),
                    )

    async def update_org(self, org: Org) -> None:
        async with self.transaction() as conn:
            await conn.execute(
                "UPDATE org SET name = ?, timezone = ?, updated = ? WHERE id = ?",
                (org.name, org.timezone, to_ms(org.updated), org.id),
            )

    async def get_org(self, org_id: str, user_id: str) -> Optional[Org]:
        row = await self._fetchone(
            "SELECT o.id, o.inserted, o.updated, o.name, o.currency, o.precision, o.timezone "
            "FROM org o JOIN userorg u ON u.org_id = o.id "
            "WHERE o.id = ? AND u.user_id = ?",
            (org_id, user_id),
        )
        return _org_from_row(row) if row else None

    async def get_org_by_id(self, org_id: str) -> Optional[Org]:
        row = await self._fetchone(f"SELECT {ORG_FIELDS} FROM org WHERE id = ?", (org_id,))
        return _org_from_row(row) if row else None

    async def get_orgs(self, user_id: str) -> list[Org]:
        rows = await self._fetchall(
            "SELECT o.id, o.inserted, o.updated, o.name, o.currency, o.precision, o.timezone "
            "FROM org o JOIN userorg u ON u.org_id = o.id "
            "WHERE u.user_id = ? ORDER BY o.name, o.id",
            (user_id,),
        )
        return [_org_from_row(r) for r in rows]

    async def get_org_user_ids(self, org_id: str) -> list[str]:
        rows = await self._fetchall(
            "SELECT user_id FROM userorg WHERE org_id = ? ORDER BY user_id", (org_id,)
        )
        return [r[0] for r in rows]

    async def get_org_admin_ids(self, org_id: str) -> list[str]:
        rows = await self._fetchall(
            "SELECT user_id FROM userorg WHERE org_id = ? AND admin = 1 ORDER BY user_id",
            (org_id,),
        )
        return [r[0] for r in rows]

    async def user_belongs_to_org(self, user_id: str, org_id: str) -> bool:
        row = await self._fetchone(
            "SELECT 1 FROM userorg WHERE user_id = ? AND org_id = ?", (user_id, org_id)
        )
        return row is not None

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @staticmethod
    async def _insert_account(conn: aiosqlite.Connection, account: Account) -> None:
        await conn.execute(
            f"INSERT INTO account({ACCOUNT_FIELDS}) VALUES (?,?,?,?,?,?,?,?,?)",
            (account.id, account.org_id, to_ms(account.inserted), to_ms(account.updated),
             account.name, account.parent, account.currency, account.precision,
             int(account.debit_balance)),
        )

    async def insert_account(self, account: Account) -> None:
        async with self.transaction() as conn:
            await self._insert_account(conn, account)

    async def update_account(self, account: Account) -> None:
        async with self.transaction() as conn:
            await conn.execute(
                "UPDATE account SET name = ?, parent = ?, currency = ?, precision = ?, "
                "debit_balance = ?, updated = ? WHERE id = ?",
                (account.name, account.parent, account.currency, account.precision,
                 int(account.debit_balance), to_ms(account.updated), account.id),
            )

    async def get_account(self, account_id: str) -> Optional[Account]:
        row = await self._fetchone(
            f"SELECT {ACCOUNT_FIELDS} FROM account WHERE id = ?", (account_id,)
        )
        return _account_from_row(row) if row else None

    async def get_accounts_by_org(self, org_id: str) -> list[Account]:
        rows = await self._fetchall(
            f"SELECT {ACCOUNT_FIELDS} FROM account WHERE org_id = ?", (org_id,)
        )
        return [_account_from_row(r) for r in rows]

    async def get_root_account(self, org_id: str) -> Optional[Account]:
        row = await self._fetchone(
            f"SELECT {ACCOUNT_FIELDS} FROM account WHERE org_id = ? AND parent = ''",
            (org_id,),
        )
        return _account_from_row(row) if row else None

    async def delete_account(self, account_id: str) -> None:
        async with self.transaction() as conn:
            await conn.execute("DELETE FROM permission WHERE account_id = ?", (account_id,))
            await conn.execute("DELETE FROM account WHERE id = ?", (account_id,))

    async def get_split_count(self, account_id: str) -> int:
        row = await self._fetchone(
            "SELECT COUNT(*) FROM split WHERE account_id = ? AND deleted = 0", (account_id,)
        )
        return row[0]

    async def get_child_count(self, account_id: str) -> int:
        row = await self._fetchone(
            "SELECT COUNT(*) FROM account WHERE parent = ?", (account_id,)
        )
        return row[0]

    # -------------------------------------------------------------------------
    # Permissions
    # -------------------------------------------------------------------------

    async def get_permissioned_account_ids(self, org_id: str, user_id: str) -> list[str]:
        rows = await self._fetchall(
            "SELECT account_id FROM permission WHERE org_id = ? AND user_id = ? "
            "ORDER BY account_id",
            (org_id, user_id),
        )
        return [r[0] for r in rows]

    async def grant_permission(self, user_id: str, org_id: str, account_id: str) -> None:
        async with self.transaction() as conn:
            await conn.execute(
                "INSERT OR IGNORE INTO permission(user_id, org_id, account_id) VALUES (?,?,?)",
                (user_id, org_id, account_id),
            )

    async def add_member(self, user_id: str, org_id: str, admin: bool = False) -> None:
        async with self.transaction() as conn:
            await conn.execute(
                "INSERT OR REPLACE INTO userorg(user_id, org_id, admin) VALUES (?,?,?)",
                (user_id, org_id, int(admin)),
            )

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @staticmethod
    async def _insert_transaction(conn: aiosqlite.Connection, transaction: Transaction) -> None:
        date = to_ms(transaction.date)
        inserted = to_ms(transaction.inserted)
        updated = to_ms(transaction.updated)
        await conn.execute(
            "INSERT INTO transactions(id, org_id, user_id, date, inserted, updated, "
            "description, data, deleted, superseded_by) VALUES (?,?,?,?,?,?,?,?,?,?)",
            (transaction.id, transaction.org_id, transaction.user_id, date, inserted,
             updated, transaction.description, transaction.data,
             int(transaction.deleted), transaction.superseded_by),
        )
        await conn.executemany(
            "INSERT INTO split(transaction_id, account_id, date, inserted, updated, "
            "amount, native_amount, deleted) VALUES (?,?,?,?,?,?,?,?)",
            [
                (transaction.id, s.account_id, date, inserted, updated,
                 s.amount, s.native_amount, int(transaction.deleted))
                for s in transaction.splits
            ],
        )

    @staticmethod
    async def _soft_delete(
        conn: aiosqlite.Connection,
        transaction_id: str,
        updated: int,
        superseded_by: Optional[str],
    ) -> None:
        # Compare-and-swap: only an active row may be retired
        cursor = await conn.execute(
            "UPDATE transactions SET deleted = 1, updated = ?, superseded_by = ? "
            "WHERE id = ? AND deleted = 0",
            (updated, superseded_by, transaction_id),
        )
        if cursor.rowcount != 1:
            raise ConflictError("transaction has already been deleted or replaced")
        await conn.execute(
            "UPDATE split SET deleted = 1, updated = ? WHERE transaction_id = ?",
            (updated, transaction_id),
        )

    async def insert_transaction(self, transaction: Transaction) -> None:
        async with self.transaction() as conn:
            await self._insert_transaction(conn, transaction)

    async def _load_splits(self, conn, transaction_ids: list[str]) -> dict[str, list[Split]]:
        splits: dict[str, list[Split]] = {tid: [] for tid in transaction_ids}
        if not transaction_ids:
            return splits
        cursor = await conn.execute(
            "SELECT transaction_id, account_id, amount, native_amount FROM split "
            f"WHERE transaction_id IN ({_placeholders(transaction_ids)}) ORDER BY id",
            tuple(transaction_ids),
        )
        for row in await cursor.fetchall():
            splits[row[0]].append(Split(
                transaction_id=row[0],
                account_id=row[1],
                amount=row[2],
                native_amount=row[3],
            ))
        return splits

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        async with self.transaction() as conn:
            cursor = await conn.execute(
                f"SELECT {TRANSACTION_FIELDS} FROM transactions t WHERE t.id = ?",
                (transaction_id,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            transaction = _transaction_from_row(row)
            transaction.splits = (await self._load_splits(conn, [transaction.id]))[transaction.id]
            return transaction

    async def delete_transaction(self, transaction_id: str, updated: datetime) -> None:
        async with self.transaction() as conn:
            await self._soft_delete(conn, transaction_id, to_ms(updated), None)

    async def delete_and_insert_transaction(self, old_id: str, transaction: Transaction) -> None:
        async with self.transaction() as conn:
            await self._soft_delete(conn, old_id, to_ms(transaction.updated), transaction.id)
            await self._insert_transaction(conn, transaction)

    async def list_transactions(
        self,
        org_id: str,
        account_ids: list[str],
        options: QueryOptions,
    ) -> list[Transaction]:
        if not account_ids:
            return []

        where = [
            "t.org_id = ?",
            f"s.account_id IN ({_placeholders(account_ids)})",
        ]
        params: list[Any] = [org_id, *account_ids]

        if not options.include_deleted:
            where.append("s.deleted = 0")
        for value, clause in (
            (options.since_inserted, "s.inserted > ?"),
            (options.since_updated, "s.updated > ?"),
            (options.before_inserted, "s.inserted < ?"),
            (options.before_updated, "s.updated < ?"),
            (options.start_date, "s.date >= ?"),
            (options.end_date, "s.date < ?"),
        ):
            if value:
                where.append(clause)
                params.append(value)
        if options.description_starts_with:
            prefix = options.description_starts_with.casefold()
            where.append("substr(casefold(t.description), 1, ?) = ?")
            params.extend([len(prefix), prefix])

        if options.sort == SortOrder.UPDATED_ASC:
            order = "t.updated ASC, t.id ASC"
        else:
            order = "t.date DESC, t.inserted DESC, t.id ASC"

        sql = (
            f"SELECT DISTINCT {TRANSACTION_FIELDS} FROM transactions t "
            "JOIN split s ON s.transaction_id = t.id "
            f"WHERE {' AND '.join(where)} ORDER BY {order}"
        )
        if options.limit:
            sql += " LIMIT ? OFFSET ?"
            params.extend([options.limit, options.skip])
        elif options.skip:
            sql += " LIMIT -1 OFFSET ?"
            params.append(options.skip)

        async with self.transaction() as conn:
            cursor = await conn.execute(sql, tuple(params))
            transactions = [_transaction_from_row(r) for r in await cursor.fetchall()]
            splits = await self._load_splits(conn, [t.id for t in transactions])

        for transaction in transactions:
            transaction.splits = splits[transaction.id]
        return transactions

    # -------------------------------------------------------------------------
    # Aggregates
    # -------------------------------------------------------------------------

    async def _sum_splits(
        self,
        column: str,
        org_id: str,
        as_of: datetime,
        account_ids: Optional[list[str]],
    ) -> dict[str, int]:
        sql = (
            f"SELECT s.account_id, SUM(s.{column}) FROM split s "
            "JOIN account a ON a.id = s.account_id "
            "WHERE a.org_id = ? AND s.deleted = 0 AND s.date < ?"
        )
        params: list[Any] = [org_id, to_ms(as_of)]
        if account_ids is not None:
            if not account_ids:
                return {}
            sql += f" AND s.account_id IN ({_placeholders(account_ids)})"
            params.extend(account_ids)
        sql += " GROUP BY s.account_id"
        rows = await self._fetchall(sql, tuple(params))
        return {r[0]: int(r[1]) for r in rows}

    async def sum_split_amounts(
        self,
        org_id: str,
        as_of: datetime,
        account_ids: Optional[list[str]] = None,
    ) -> dict[str, int]:
        return await self._sum_splits("amount", org_id, as_of, account_ids)

    async def sum_split_native_amounts(
        self,
        org_id: str,
        as_of: datetime,
        account_ids: Optional[list[str]] = None,
    ) -> dict[str, int]:
        return await self._sum_splits("native_amount", org_id, as_of, account_ids)

    async def get_nearest_price(
        self,
        org_id: str,
        currency: str,
        as_of: datetime,
    ) -> Optional[Price]:
        row = await self._fetchone(
            f"SELECT {PRICE_FIELDS} FROM price WHERE org_id = ? AND currency = ? "
            "ORDER BY ABS(date - ?), id LIMIT 1",
            (org_id, currency, to_ms(as_of)),
        )
        return _price_from_row(row) if row else None

    # -------------------------------------------------------------------------
    # Prices
    # -------------------------------------------------------------------------

    async def insert_price(self, price: Price) -> None:
        async with self.transaction() as conn:
            await conn.execute(
                f"INSERT INTO price({PRICE_FIELDS}) VALUES (?,?,?,?,?,?,?)",
                (price.id, price.org_id, price.currency, to_ms(price.date),
                 to_ms(price.inserted), to_ms(price.updated), price.price),
            )

    async def get_price(self, price_id: str) -> Optional[Price]:
        row = await self._fetchone(f"SELECT {PRICE_FIELDS} FROM price WHERE id = ?", (price_id,))
        return _price_from_row(row) if row else None

    async def delete_price(self, price_id: str) -> None:
        async with self.transaction() as conn:
            await conn.execute("DELETE FROM price WHERE id = ?", (price_id,))

    async def get_prices_nearest_in_time(self, org_id: str, date: datetime) -> list[Price]:
        rows = await self._fetchall(
            "SELECT DISTINCT currency FROM price WHERE org_id = ? ORDER BY currency", (org_id,)
        )
        prices = []
        for (currency,) in rows:
            price = await self.get_nearest_price(org_id, currency, date)
            if price is not None:
                prices.append(price)
        return prices

    async def get_prices_by_currency(self, org_id: str, currency: str) -> list[Price]:
        rows = await self._fetchall(
            f"SELECT {PRICE_FIELDS} FROM price WHERE org_id = ? AND currency = ? "
            "ORDER BY date ASC, id ASC",
            (org_id, currency),
        )
        return [_price_from_row(r) for r in rows]

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def get_budget(self, org_id: str) -> Optional[Budget]:
        rows = await self._fetchall(
            "SELECT account_id, inserted, amount FROM budgetitem WHERE org_id = ? "
            "ORDER BY account_id",
            (org_id,),
        )
        if not rows:
            return None
        return Budget(
            org_id=org_id,
            inserted=from_ms(rows[0][1]),
            items=[
                BudgetItem(org_id=org_id, account_id=r[0], amount=r[2]) for r in rows
            ],
        )

    async def replace_budget(self, budget: Budget) -> None:
        async with self.transaction() as conn:
            await conn.execute("DELETE FROM budgetitem WHERE org_id = ?", (budget.org_id,))
            await conn.executemany(
                "INSERT INTO budgetitem(org_id, account_id, inserted, amount) VALUES (?,?,?,?)",
                [
                    (budget.org_id, item.account_id, to_ms(budget.inserted), item.amount)
                    for item in budget.items
                ],
            )

    async def delete_budget(self, org_id: str) -> None:
        async with self.transaction() as conn:
            await conn.execute("DELETE FROM budgetitem WHERE org_id = ?", (org_id,))

    # -------------------------------------------------------------------------
    # Invites
    # -------------------------------------------------------------------------

    async def insert_invite(self, invite: Invite) -> None:
        async with self.transaction() as conn:
            await conn.execute(
                f"INSERT INTO invite({INVITE_FIELDS}) VALUES (?,?,?,?,?,?)",
                (invite.id, invite.org_id, to_ms(invite.inserted), to_ms(invite.updated),
                 invite.email, int(invite.accepted)),
            )

    async def get_invite(self, invite_id: str) -> Optional[Invite]:
        row = await self._fetchone(
            f"SELECT {INVITE_FIELDS} FROM invite WHERE id = ?", (invite_id,)
        )
        return _invite_from_row(row) if row else None

    async def get_invites(self, org_id: str, inserted_after: datetime) -> list[Invite]:
        rows = await self._fetchall(
            f"SELECT {INVITE_FIELDS} FROM invite WHERE org_id = ? AND inserted >= ? "
            "ORDER BY inserted, id",
            (org_id, to_ms(inserted_after)),
        )
        return [_invite_from_row(r) for r in rows]

    async def accept_invite(self, invite: Invite, user_id: str) -> None:
        async with self.transaction() as conn:
            cursor = await conn.execute(
                "UPDATE invite SET accepted = 1, updated = ? WHERE id = ? AND accepted = 0",
                (to_ms(invite.updated), invite.id),
            )
            if cursor.rowcount != 1:
                raise ConflictError("invite already accepted")
            await conn.execute(
                "INSERT INTO userorg(user_id, org_id, admin) VALUES (?,?,0)",
                (user_id, invite.org_id),
            )
            await conn.execute(
                "INSERT OR IGNORE INTO permission(user_id, org_id, account_id) "
                "SELECT ?, org_id, id FROM account WHERE org_id = ? AND parent = ''",
                (user_id, invite.org_id),
            )

    async def delete_invite(self, invite_id: str) -> None:
        async with self.transaction() as conn:
            await conn.execute("DELETE FROM invite WHERE id = ?", (invite_id,))

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    async def ping(self) -> None:
        if self._conn is None:
            raise ConnectionError("Not connected to database")
        await self._fetchone("SELECT 1")
