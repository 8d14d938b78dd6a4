"""
SQL Database Handler for SnapList
Runs on SQLite (local/dev) or PostgreSQL (DATABASE_URL=postgresql://...)
"""

import json
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import psycopg2
import psycopg2.extras
import structlog

from .store import ListingStore
from ..errors import DuplicateSettlementError, ListingNotFoundError
from ..schema.listing import (
    Listing,
    ListingStatus,
    MarketplacePublication,
    Notification,
    NotificationType,
    PayoutRequest,
    PayoutStatus,
    PriceChangeReason,
    PriceHistoryEntry,
    SettlementRecord,
    SettlementStatus,
    ensure_utc,
    to_money,
)


logger = structlog.get_logger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///snaplist.db"

# Fixed-width UTC text so string comparison orders chronologically
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

PUBLICATION_CHUNK = 500

# Seconds a connection waits for another writer before raising "database is locked"
SQLITE_BUSY_TIMEOUT = 30.0


def _fmt(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return ensure_utc(value).strftime(TIMESTAMP_FORMAT)


def _parse(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)


def _sqlite_path(database_url: str) -> str:
    if database_url in (":memory:", "sqlite://", "sqlite:///:memory:"):
        return ":memory:"
    if database_url.startswith("sqlite:///"):
        return database_url[len("sqlite:///"):]
    return database_url


def is_postgres_url(database_url: str) -> bool:
    return database_url.startswith(("postgres://", "postgresql://"))


class Database(ListingStore):
    """
    SQL-backed Listing Store.

    One connection per instance, shared across threads behind a lock.
    Conditional writes report whether they applied via the UPDATE row
    count, and settlements carry a UNIQUE constraint on listing_id.
    """

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
        self.postgres = is_postgres_url(self.database_url)
        self._lock = threading.RLock()

        if self.postgres:
            self.conn = psycopg2.connect(self.database_url)
            self._cursor_kwargs = {"cursor_factory": psycopg2.extras.RealDictCursor}
            self._integrity_errors = (psycopg2.IntegrityError,)
        else:
            self.conn = sqlite3.connect(
                _sqlite_path(self.database_url), check_same_thread=False, timeout=SQLITE_BUSY_TIMEOUT
            )
            self.conn.row_factory = sqlite3.Row
            self._cursor_kwargs = {}
            self._integrity_errors = (sqlite3.IntegrityError,)

        logger.info("database_connected", dialect="postgres" if self.postgres else "sqlite")
        self._create_tables()

    def close(self):
        """Close the underlying connection"""
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None

    @contextmanager
    def _cursor(self):
        """Cursor inside one transaction: commit on success, rollback on error"""
        with self._lock:
            cursor = self.conn.cursor(**self._cursor_kwargs)
            try:
                yield cursor
                self.conn.commit()
            except Exception:
                self.conn.rollback()
                raise
            finally:
                cursor.close()

    def _execute(self, cursor, sql: str, params: Sequence[Any] = ()):
        if not self.postgres:
            sql = sql.replace("%s", "?")
        cursor.execute(sql, tuple(params))
        return cursor

    def _money(self, amount: Decimal):
        return amount if self.postgres else str(amount)

    def _create_tables(self):
        """Create all database tables"""
        money = "NUMERIC(12, 2)" if self.postgres else "TEXT"

        statements = [
            f"""
            CREATE TABLE IF NOT EXISTS listings (
                id TEXT PRIMARY KEY,
                seller_id TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT,
                image_urls TEXT,
                condition TEXT,
                category TEXT,
                brand TEXT,
                size TEXT,
                color TEXT,
                price {money} NOT NULL,
                original_price {money} NOT NULL,
                min_price {money} NOT NULL,
                status TEXT NOT NULL DEFAULT 'active',
                last_price_update TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_listings_status ON listings (status, last_price_update)",
            "CREATE INDEX IF NOT EXISTS idx_listings_seller ON listings (seller_id)",
            """
            CREATE TABLE IF NOT EXISTS marketplace_publications (
                listing_id TEXT NOT NULL REFERENCES listings(id),
                marketplace TEXT NOT NULL,
                external_id TEXT NOT NULL,
                external_status TEXT,
                listing_url TEXT,
                updated_at TEXT NOT NULL,
                UNIQUE(listing_id, marketplace)
            )
            """,
            f"""
            CREATE TABLE IF NOT EXISTS price_history (
                id TEXT PRIMARY KEY,
                listing_id TEXT NOT NULL REFERENCES listings(id),
                previous_price {money} NOT NULL,
                new_price {money} NOT NULL,
                reason TEXT NOT NULL,
                created_at TEXT NOT NULL
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_price_history_listing ON price_history (listing_id, created_at)",
            f"""
            CREATE TABLE IF NOT EXISTS settlements (
                id TEXT PRIMARY KEY,
                listing_id TEXT NOT NULL UNIQUE REFERENCES listings(id),
                seller_id TEXT NOT NULL,
                marketplace TEXT NOT NULL,
                gross_amount {money} NOT NULL,
                fees {money} NOT NULL DEFAULT 0,
                shipping_cost {money} NOT NULL DEFAULT 0,
                status TEXT NOT NULL DEFAULT 'pending',
                created_at TEXT NOT NULL,
                completed_at TEXT
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_settlements_seller ON settlements (seller_id, status)",
            f"""
            CREATE TABLE IF NOT EXISTS payout_requests (
                id TEXT PRIMARY KEY,
                seller_id TEXT NOT NULL,
                amount {money} NOT NULL,
                status TEXT NOT NULL DEFAULT 'pending',
                phone TEXT,
                notes TEXT,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                completed_at TEXT
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_payouts_seller ON payout_requests (seller_id, status)",
            """
            CREATE TABLE IF NOT EXISTS notifications (
                id TEXT PRIMARY KEY,
                seller_id TEXT NOT NULL,
                listing_id TEXT,
                type TEXT NOT NULL,
                message TEXT NOT NULL,
                payload TEXT,
                status TEXT NOT NULL DEFAULT 'unread',
                created_at TEXT NOT NULL,
                read_at TEXT
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_notifications_seller ON notifications (seller_id, status)",
        ]

        with self._cursor() as cursor:
            for statement in statements:
                self._execute(cursor, statement)

    # ========================================================================
    # ROW CONVERSION
    # ========================================================================

    @staticmethod
    def _row_to_publication(row) -> MarketplacePublication:
        return MarketplacePublication(
            marketplace=row["marketplace"],
            external_id=row["external_id"],
            external_status=row["external_status"],
            listing_url=row["listing_url"],
            updated_at=_parse(row["updated_at"]),
        )

    @staticmethod
    def _row_to_listing(row, publications: Iterable[MarketplacePublication] = ()) -> Listing:
        return Listing(
            id=row["id"],
            seller_id=row["seller_id"],
            title=row["title"],
            description=row["description"] or "",
            image_urls=json.loads(row["image_urls"] or "[]"),
            condition=row["condition"],
            category=row["category"],
            brand=row["brand"],
            size=row["size"],
            color=row["color"],
            price=to_money(row["price"]),
            original_price=to_money(row["original_price"]),
            min_price=to_money(row["min_price"]),
            status=ListingStatus(row["status"]),
            publications={pub.marketplace: pub for pub in publications},
            last_price_update=_parse(row["last_price_update"]),
            created_at=_parse(row["created_at"]),
            updated_at=_parse(row["updated_at"]),
        )

    @staticmethod
    def _row_to_settlement(row) -> SettlementRecord:
        return SettlementRecord(
            id=row["id"],
            listing_id=row["listing_id"],
            seller_id=row["seller_id"],
            marketplace=row["marketplace"],
            gross_amount=to_money(row["gross_amount"]),
            fees=to_money(row["fees"]),
            shipping_cost=to_money(row["shipping_cost"]),
            status=SettlementStatus(row["status"]),
            created_at=_parse(row["created_at"]),
            completed_at=_parse(row["completed_at"]),
        )

    @staticmethod
    def _row_to_payout(row) -> PayoutRequest:
        return PayoutRequest(
            id=row["id"],
            seller_id=row["seller_id"],
            amount=to_money(row["amount"]),
            status=PayoutStatus(row["status"]),
            phone=row["phone"],
            notes=row["notes"] or "",
            created_at=_parse(row["created_at"]),
            updated_at=_parse(row["updated_at"]),
            completed_at=_parse(row["completed_at"]),
        )

    @staticmethod
    def _row_to_notification(row) -> Notification:
        return Notification(
            id=row["id"],
            seller_id=row["seller_id"],
            listing_id=row["listing_id"],
            type=NotificationType(row["type"]),
            message=row["message"],
            payload=json.loads(row["payload"] or "{}"),
            status=row["status"],
            created_at=_parse(row["created_at"]),
            read_at=_parse(row["read_at"]),
        )

    # ========================================================================
    # LISTING METHODS
    # ========================================================================

    def create_listing(self, listing: Listing) -> Listing:
        with self._cursor() as cursor:
            self._execute(cursor, """
                INSERT INTO listings (
                    id, seller_id, title, description, image_urls, condition,
                    category, brand, size, color, price, original_price,
                    min_price, status, last_price_update, created_at, updated_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """, (
                listing.id, listing.seller_id, listing.title, listing.description,
                json.dumps(listing.image_urls), listing.condition, listing.category,
                listing.brand, listing.size, listing.color,
                self._money(listing.price), self._money(listing.original_price),
                self._money(listing.min_price), listing.status.value,
                _fmt(listing.last_price_update), _fmt(listing.created_at), _fmt(listing.updated_at),
            ))
            for publication in listing.publications.values():
                self._upsert_publication(cursor, listing.id, publication)
        return listing

    def _load_publications(self, cursor, listing_ids: List[str]) -> Dict[str, List[MarketplacePublication]]:
        by_listing: Dict[str, List[MarketplacePublication]] = {}
        for start in range(0, len(listing_ids), PUBLICATION_CHUNK):
            chunk = listing_ids[start:start + PUBLICATION_CHUNK]
            placeholders = ", ".join(["%s"] * len(chunk))
            self._execute(
                cursor,
                f"SELECT * FROM marketplace_publications WHERE listing_id IN ({placeholders})",
                chunk,
            )
            for row in cursor.fetchall():
                by_listing.setdefault(row["listing_id"], []).append(self._row_to_publication(row))
        return by_listing

    def get_listing(self, listing_id: str) -> Optional[Listing]:
        with self._cursor() as cursor:
            self._execute(cursor, "SELECT * FROM listings WHERE id = %s", (listing_id,))
            row = cursor.fetchone()
            if row is None:
                return None
            publications = self._load_publications(cursor, [listing_id])
        return self._row_to_listing(row, publications.get(listing_id, []))

    def query_listings(
        self,
        status: Optional[ListingStatus] = None,
        seller_id: Optional[str] = None,
        price_updated_before: Optional[datetime] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[Listing]:
        clauses = []
        params: List[Any] = []
        if status is not None:
            clauses.append("status = %s")
            params.append(status.value)
        if seller_id is not None:
            clauses.append("seller_id = %s")
            params.append(seller_id)
        if price_updated_before is not None:
            clauses.append("last_price_update <= %s")
            params.append(_fmt(price_updated_before))

        sql = "SELECT * FROM listings"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at ASC, id ASC"

        with self._cursor() as cursor:
            self._execute(cursor, sql, params)
            rows = cursor.fetchall()
            end = offset + limit if limit is not None else None
            rows = rows[offset:end]
            publications = self._load_publications(cursor, [row["id"] for row in rows])

        return [self._row_to_listing(row, publications.get(row["id"], [])) for row in rows]

    def _upsert_publication(self, cursor, listing_id: str, publication: MarketplacePublication):
        self._execute(cursor, """
            INSERT INTO marketplace_publications (
                listing_id, marketplace, external_id, external_status, listing_url, updated_at
            ) VALUES (%s, %s, %s, %s, %s, %s)
            ON CONFLICT (listing_id, marketplace) DO UPDATE SET
                external_id = EXCLUDED.external_id,
                external_status = EXCLUDED.external_status,
                listing_url = EXCLUDED.listing_url,
                updated_at = EXCLUDED.updated_at
        """, (
            listing_id, publication.marketplace, publication.external_id,
            publication.external_status, publication.listing_url, _fmt(publication.updated_at),
        ))

    def set_publication(self, listing_id: str, publication: MarketplacePublication) -> None:
        with self._cursor() as cursor:
            self._execute(cursor, "SELECT id FROM listings WHERE id = %s", (listing_id,))
            if cursor.fetchone() is None:
                raise ListingNotFoundError(listing_id)
            self._upsert_publication(cursor, listing_id, publication)

    def update_publication_status(
        self, listing_id: str, marketplace: str, external_status: str, now: datetime
    ) -> None:
        with self._cursor() as cursor:
            self._execute(cursor, """
                UPDATE marketplace_publications
                SET external_status = %s, updated_at = %s
                WHERE listing_id = %s AND marketplace = %s
            """, (external_status, _fmt(now), listing_id, marketplace))

    def apply_price_change(self, entry: PriceHistoryEntry, now: datetime) -> bool:
        with self._cursor() as cursor:
            self._execute(cursor, """
                UPDATE listings
                SET price = %s, last_price_update = %s, updated_at = %s
                WHERE id = %s AND status = %s AND price = %s
            """, (
                self._money(entry.new_price), _fmt(now), _fmt(now),
                entry.listing_id, ListingStatus.ACTIVE.value, self._money(entry.previous_price),
            ))
            if cursor.rowcount != 1:
                return False

            self._execute(cursor, """
                INSERT INTO price_history (id, listing_id, previous_price, new_price, reason, created_at)
                VALUES (%s, %s, %s, %s, %s, %s)
            """, (
                entry.id, entry.listing_id, self._money(entry.previous_price),
                self._money(entry.new_price), entry.reason.value, _fmt(entry.created_at),
            ))
        return True

    def transition_status(self, listing_id: str, new_status: ListingStatus, now: datetime) -> bool:
        with self._cursor() as cursor:
            self._execute(cursor, """
                UPDATE listings SET status = %s, updated_at = %s
                WHERE id = %s AND status = %s
            """, (new_status.value, _fmt(now), listing_id, ListingStatus.ACTIVE.value))
            return cursor.rowcount == 1

    def list_price_history(self, listing_id: str) -> List[PriceHistoryEntry]:
        with self._cursor() as cursor:
            self._execute(cursor, """
                SELECT * FROM price_history WHERE listing_id = %s
                ORDER BY created_at ASC
            """, (listing_id,))
            rows = cursor.fetchall()
        return [
            PriceHistoryEntry(
                id=row["id"],
                listing_id=row["listing_id"],
                previous_price=to_money(row["previous_price"]),
                new_price=to_money(row["new_price"]),
                reason=PriceChangeReason(row["reason"]),
                created_at=_parse(row["created_at"]),
            )
            for row in rows
        ]

    # ========================================================================
    # SETTLEMENT METHODS
    # ========================================================================

    def record_sale(self, settlement: SettlementRecord, now: datetime) -> Optional[SettlementRecord]:
        """Mark SOLD and insert the settlement in one transaction"""
        with self._cursor() as cursor:
            self._execute(cursor, """
                UPDATE listings SET status = %s, updated_at = %s
                WHERE id = %s AND status = %s
            """, (ListingStatus.SOLD.value, _fmt(now), settlement.listing_id, ListingStatus.ACTIVE.value))

            if cursor.rowcount != 1:
                self._execute(
                    cursor, "SELECT id FROM settlements WHERE listing_id = %s", (settlement.listing_id,)
                )
                if cursor.fetchone() is not None:
                    raise DuplicateSettlementError(settlement.listing_id)
                return None

            self._execute(cursor, "SELECT price FROM listings WHERE id = %s", (settlement.listing_id,))
            gross = to_money(cursor.fetchone()["price"])

            try:
                self._execute(cursor, """
                    INSERT INTO settlements (
                        id, listing_id, seller_id, marketplace, gross_amount,
                        fees, shipping_cost, status, created_at
                    ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                """, (
                    settlement.id, settlement.listing_id, settlement.seller_id,
                    settlement.marketplace, self._money(gross),
                    self._money(settlement.fees), self._money(settlement.shipping_cost),
                    settlement.status.value, _fmt(now),
                ))
            except self._integrity_errors:
                raise DuplicateSettlementError(settlement.listing_id)

        return SettlementRecord(
            id=settlement.id,
            listing_id=settlement.listing_id,
            seller_id=settlement.seller_id,
            marketplace=settlement.marketplace,
            gross_amount=gross,
            fees=settlement.fees,
            shipping_cost=settlement.shipping_cost,
            status=settlement.status,
            created_at=ensure_utc(now),
        )

    def get_settlement(self, listing_id: str) -> Optional[SettlementRecord]:
        with self._cursor() as cursor:
            self._execute(cursor, "SELECT * FROM settlements WHERE listing_id = %s", (listing_id,))
            row = cursor.fetchone()
        return self._row_to_settlement(row) if row else None

    def list_settlements(
        self, seller_id: str, status: Optional[SettlementStatus] = None
    ) -> List[SettlementRecord]:
        sql = "SELECT * FROM settlements WHERE seller_id = %s"
        params: List[Any] = [seller_id]
        if status is not None:
            sql += " AND status = %s"
            params.append(status.value)
        sql += " ORDER BY created_at DESC"

        with self._cursor() as cursor:
            self._execute(cursor, sql, params)
            rows = cursor.fetchall()
        return [self._row_to_settlement(row) for row in rows]

    def complete_settlement(
        self, listing_id: str, fees: Decimal, shipping_cost: Decimal, now: datetime
    ) -> bool:
        with self._cursor() as cursor:
            self._execute(cursor, """
                UPDATE settlements
                SET fees = %s, shipping_cost = %s, status = %s, completed_at = %s
                WHERE listing_id = %s AND status = %s
            """, (
                self._money(fees), self._money(shipping_cost), SettlementStatus.COMPLETED.value,
                _fmt(now), listing_id, SettlementStatus.PENDING.value,
            ))
            return cursor.rowcount == 1

    # ========================================================================
    # PAYOUT METHODS
    # ========================================================================

    def _insert_payout(self, cursor, payout: PayoutRequest) -> None:
        self._execute(cursor, """
            INSERT INTO payout_requests (
                id, seller_id, amount, status, phone, notes, created_at, updated_at, completed_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
        """, (
            payout.id, payout.seller_id, self._money(payout.amount), payout.status.value,
            payout.phone, payout.notes, _fmt(payout.created_at), _fmt(payout.updated_at),
            _fmt(payout.completed_at),
        ))

    def _lock_seller(self, cursor, seller_id: str) -> None:
        """Hold the seller's payout lock until the current transaction ends"""
        if self.postgres:
            self._execute(cursor, "SELECT pg_advisory_xact_lock(hashtext(%s))", (seller_id,))
        else:
            # SQLite has no row locks; take the database write lock up front
            self._execute(cursor, "BEGIN IMMEDIATE")

    def create_payout(self, payout: PayoutRequest) -> PayoutRequest:
        with self._cursor() as cursor:
            self._insert_payout(cursor, payout)
        return payout

    def create_payout_if_covered(self, payout: PayoutRequest) -> Tuple[bool, Decimal]:
        """Re-sum the seller's balance and insert the payout in one locked transaction"""
        with self._cursor() as cursor:
            self._lock_seller(cursor, payout.seller_id)

            self._execute(cursor, """
                SELECT gross_amount, fees, shipping_cost FROM settlements
                WHERE seller_id = %s AND status = %s
            """, (payout.seller_id, SettlementStatus.COMPLETED.value))
            earned = sum(
                (to_money(row["gross_amount"]) - to_money(row["fees"]) - to_money(row["shipping_cost"])
                 for row in cursor.fetchall()),
                Decimal("0.00"),
            )

            self._execute(cursor, """
                SELECT amount FROM payout_requests
                WHERE seller_id = %s AND status IN (%s, %s)
            """, (payout.seller_id, PayoutStatus.PENDING.value, PayoutStatus.COMPLETED.value))
            reserved = sum((to_money(row["amount"]) for row in cursor.fetchall()), Decimal("0.00"))

            available = earned - reserved
            if payout.amount > available:
                return False, available
            self._insert_payout(cursor, payout)
        return True, available

    def get_payout(self, payout_id: str) -> Optional[PayoutRequest]:
        with self._cursor() as cursor:
            self._execute(cursor, "SELECT * FROM payout_requests WHERE id = %s", (payout_id,))
            row = cursor.fetchone()
        return self._row_to_payout(row) if row else None

    def list_payouts(
        self, seller_id: str, statuses: Optional[Sequence[PayoutStatus]] = None
    ) -> List[PayoutRequest]:
        sql = "SELECT * FROM payout_requests WHERE seller_id = %s"
        params: List[Any] = [seller_id]
        if statuses is not None:
            if not statuses:
                return []
            sql += " AND status IN (" + ", ".join(["%s"] * len(statuses)) + ")"
            params.extend(status.value for status in statuses)
        sql += " ORDER BY created_at DESC"

        with self._cursor() as cursor:
            self._execute(cursor, sql, params)
            rows = cursor.fetchall()
        return [self._row_to_payout(row) for row in rows]

    def transition_payout(
        self, payout_id: str, new_status: PayoutStatus, now: datetime, notes: str = ""
    ) -> bool:
        completed_at = _fmt(now) if new_status is PayoutStatus.COMPLETED else None
        with self._cursor() as cursor:
            self._execute(cursor, """
                UPDATE payout_requests
                SET status = %s, notes = %s, updated_at = %s, completed_at = %s
                WHERE id = %s AND status = %s
            """, (
                new_status.value, notes, _fmt(now), completed_at,
                payout_id, PayoutStatus.PENDING.value,
            ))
            return cursor.rowcount == 1

    # ========================================================================
    # NOTIFICATION METHODS
    # ========================================================================

    def create_notification(self, notification: Notification) -> Notification:
        with self._cursor() as cursor:
            self._execute(cursor, """
                INSERT INTO notifications (
                    id, seller_id, listing_id, type, message, payload, status, created_at
                ) VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
            """, (
                notification.id, notification.seller_id, notification.listing_id,
                notification.type.value, notification.message,
                json.dumps(notification.payload, default=str), notification.status,
                _fmt(notification.created_at),
            ))
        return notification

    def list_notifications(self, seller_id: str, status: Optional[str] = None) -> List[Notification]:
        sql = "SELECT * FROM notifications WHERE seller_id = %s"
        params: List[Any] = [seller_id]
        if status is not None:
            sql += " AND status = %s"
            params.append(status)
        sql += " ORDER BY created_at DESC"

        with self._cursor() as cursor:
            self._execute(cursor, sql, params)
            rows = cursor.fetchall()
        return [self._row_to_notification(row) for row in rows]

    def mark_notification_read(self, notification_id: str, now: datetime) -> bool:
        with self._cursor() as cursor:
            self._execute(cursor, """
                UPDATE notifications SET status = 'read', read_at = %s
                WHERE id = %s AND status <> 'read'
            """, (_fmt(now), notification_id))
            return cursor.rowcount == 1
