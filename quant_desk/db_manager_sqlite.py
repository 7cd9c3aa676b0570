"""
SQLite Database Manager for Quant Desk

Lightweight CRUD wrapper around the init_db.py schema.
Used for local development and tests; PostgresDatabaseManager exposes the
same methods for deployments.

Timestamps are stored as ISO-8601 text with microsecond precision so that
lexicographic order equals chronological order.
"""

import os
import json
import sqlite3
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from quant_desk.exceptions import DuplicateUserError, NameConflictError
from quant_desk.models import (
    ActivityLogEntry,
    Product,
    Role,
    Strategy,
    Trade,
    TradeStatus,
    TradeType,
    User,
)

logger = logging.getLogger(__name__)


STRATEGY_COLUMNS = """
    s.id, s.name, s.description, s.configuration, s.tags, s.is_public, s.owner_id,
    s.created_at, s.updated_at, s.published_at,
    u.username AS owner_username, u.name AS owner_name
"""

TRADE_COLUMNS = """
    t.id, t.product_id, t.user_id, t.trade_type, t.notional, t.entry_price,
    t.current_price, t.status, t.notes, t.trade_date,
    p.name AS product_name, p.product_type, p.underlying_asset,
    p.description AS product_description, p.owner_id AS product_owner_id,
    p.created_at AS product_created_at
"""


def _to_db(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat(timespec='microseconds') if value else None


def _from_db(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def name_key(name: str) -> str:
    """Case-folded strategy name; SQLite LOWER() only folds ASCII letters"""
    return name.lower()


def _like_pattern(term: str) -> str:
    """Substring LIKE pattern with %, _ and the escape char taken literally"""
    escaped = term.lower().replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


class SQLiteDatabaseManager:
    """SQLite database operations manager"""

    def __init__(self, db_path: str = 'data/quant_desk.db'):
        """
        Initialize database manager

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path

        if not os.path.exists(db_path):
            raise FileNotFoundError(
                f"Database not found: {db_path}\n"
                f"Please run: python init_db.py"
            )

    def _get_connection(self) -> sqlite3.Connection:
        """Get database connection with row factory"""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _fetchone(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        conn = self._get_connection()
        try:
            return conn.execute(query, params).fetchone()
        finally:
            conn.close()

    def _fetchall(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        conn = self._get_connection()
        try:
            return conn.execute(query, params).fetchall()
        finally:
            conn.close()

    def _execute(self, query: str, params: tuple = ()) -> sqlite3.Cursor:
        """Execute a write statement in its own transaction"""
        conn = self._get_connection()
        try:
            cursor = conn.execute(query, params)
            conn.commit()
            return cursor
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def ping(self) -> bool:
        """Connectivity probe used by the health endpoint"""
        return self._fetchone("SELECT 1 AS ok")['ok'] == 1

    def close(self):
        """Connections are per-call; nothing to release"""
        pass

    # ========================================
    # ROW CONVERSION
    # ========================================

    @staticmethod
    def _row_to_user(row: sqlite3.Row) -> User:
        return User(
            id=row['id'],
            username=row['username'],
            role=Role(row['role']),
            email=row['email'],
            name=row['name'],
            is_active=bool(row['is_active']),
            last_login=_from_db(row['last_login']),
            created_at=_from_db(row['created_at']),
        )

    @staticmethod
    def _row_to_strategy(row: sqlite3.Row) -> Strategy:
        return Strategy(
            id=row['id'],
            name=row['name'],
            description=row['description'],
            configuration=json.loads(row['configuration']) if row['configuration'] else {},
            tags=json.loads(row['tags']) if row['tags'] else [],
            is_public=bool(row['is_public']),
            owner_id=row['owner_id'],
            created_at=_from_db(row['created_at']),
            updated_at=_from_db(row['updated_at']),
            published_at=_from_db(row['published_at']),
            owner_username=row['owner_username'],
            owner_name=row['owner_name'],
        )

    @staticmethod
    def _row_to_product(row: sqlite3.Row) -> Product:
        return Product(
            id=row['id'],
            name=row['name'],
            product_type=row['product_type'],
            underlying_asset=row['underlying_asset'],
            description=row['description'],
            owner_id=row['owner_id'],
            created_at=_from_db(row['created_at']),
        )

    @staticmethod
    def _row_to_trade(row: sqlite3.Row) -> Trade:
        return Trade(
            id=row['id'],
            product_id=row['product_id'],
            user_id=row['user_id'],
            trade_type=TradeType(row['trade_type']),
            notional=row['notional'],
            entry_price=row['entry_price'],
            current_price=row['current_price'],
            status=TradeStatus(row['status']),
            notes=row['notes'],
            trade_date=_from_db(row['trade_date']),
            product=Product(
                id=row['product_id'],
                name=row['product_name'],
                product_type=row['product_type'],
                underlying_asset=row['underlying_asset'],
                description=row['product_description'],
                owner_id=row['product_owner_id'],
                created_at=_from_db(row['product_created_at']),
            ),
        )

    # ========================================
    # USER OPERATIONS
    # ========================================

    def create_user(self, username: str, email: str, name: str, password_hash: str,
                    role: Role, now: Optional[datetime] = None) -> User:
        """
        Insert user

        Raises:
            DuplicateUserError: username or email already registered
        """
        try:
            cursor = self._execute("""
                INSERT INTO users (username, email, name, password_hash, role, is_active, created_at)
                VALUES (?, ?, ?, ?, ?, 1, ?)
            """, (username, email, name, password_hash, Role(role).value, _to_db(now or datetime.now())))
        except sqlite3.IntegrityError as e:
            if 'UNIQUE' in str(e):
                raise DuplicateUserError("Username or email is already taken") from e
            raise

        logger.info(f"Created user: {username} ({Role(role).value})")
        return self.get_user_by_id(cursor.lastrowid)

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        row = self._fetchone("SELECT * FROM users WHERE id = ?", (user_id,))
        return self._row_to_user(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        row = self._fetchone("SELECT * FROM users WHERE username = ?", (username,))
        return self._row_to_user(row) if row else None

    def get_user_credentials(self, username: str) -> Optional[Tuple[User, str]]:
        """
        Get user together with its password hash

        Returns:
            (User, password_hash) or None if no such user
        """
        row = self._fetchone("SELECT * FROM users WHERE username = ?", (username,))
        if not row:
            return None
        return self._row_to_user(row), row['password_hash']

    def username_exists(self, username: str) -> bool:
        return self._fetchone("SELECT 1 FROM users WHERE username = ?", (username,)) is not None

    def email_exists(self, email: str) -> bool:
        return self._fetchone("SELECT 1 FROM users WHERE LOWER(email) = LOWER(?)", (email,)) is not None

    def update_last_login(self, user_id: int, when: datetime):
        self._execute("UPDATE users SET last_login = ? WHERE id = ?", (_to_db(when), user_id))

    # ========================================
    # SESSION OPERATIONS
    # ========================================

    def create_session(self, user_id: int, session_token: str, expires_at: datetime,
                       now: Optional[datetime] = None):
        self._execute("""
            INSERT INTO sessions (user_id, session_token, expires_at, created_at)
            VALUES (?, ?, ?, ?)
        """, (user_id, session_token, _to_db(expires_at), _to_db(now or datetime.now())))

    def get_session(self, session_token: str) -> Optional[Tuple[User, datetime]]:
        """
        Find session and user

        Returns:
            (User, expires_at) or None if the token is unknown
        """
        row = self._fetchone("""
            SELECT u.*, s.expires_at AS session_expires_at
            FROM sessions s
            JOIN users u ON s.user_id = u.id
            WHERE s.session_token = ?
        """, (session_token,))

        if not row:
            return None
        return self._row_to_user(row), _from_db(row['session_expires_at'])

    def delete_session(self, session_token: str) -> bool:
        cursor = self._execute("DELETE FROM sessions WHERE session_token = ?", (session_token,))
        return cursor.rowcount > 0

    def count_active_sessions(self, user_id: int, now: datetime) -> int:
        """Sessions of user_id that expire after now"""
        row = self._fetchone(
            "SELECT COUNT(*) AS total FROM sessions WHERE user_id = ? AND expires_at > ?",
            (user_id, _to_db(now))
        )
        return row['total']

    # ========================================
    # STRATEGY OPERATIONS
    # ========================================

    def _list_strategies(self, where: str, params: list, order_by: str,
                         name_contains: Optional[str]) -> List[Strategy]:
        clauses = [where] if where else []
        if name_contains:
            clauses.append("s.name_key LIKE ? ESCAPE '\\'")
            params = params + [_like_pattern(name_contains)]

        where_clause = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self._fetchall(f"""
            SELECT {STRATEGY_COLUMNS}
            FROM strategies s
            JOIN users u ON s.owner_id = u.id
            {where_clause}
            ORDER BY {order_by}
        """, tuple(params))

        return [self._row_to_strategy(row) for row in rows]

    def get_strategy(self, strategy_id: int) -> Optional[Strategy]:
        row = self._fetchone(f"""
            SELECT {STRATEGY_COLUMNS}
            FROM strategies s
            JOIN users u ON s.owner_id = u.id
            WHERE s.id = ?
        """, (strategy_id,))
        return self._row_to_strategy(row) if row else None

    def list_all_strategies(self, name_contains: Optional[str] = None) -> List[Strategy]:
        """All strategies, most recently updated first"""
        return self._list_strategies("", [], "s.updated_at DESC, s.id DESC", name_contains)

    def list_strategies_by_owner(self, owner_id: int, name_contains: Optional[str] = None) -> List[Strategy]:
        """Strategies owned by owner_id, most recently updated first"""
        return self._list_strategies("s.owner_id = ?", [owner_id], "s.updated_at DESC, s.id DESC", name_contains)

    def list_public_strategies(self, name_contains: Optional[str] = None) -> List[Strategy]:
        """Public strategies, most recently published first (ties by last update)"""
        return self._list_strategies(
            "s.is_public = 1", [],
            "s.published_at DESC, s.updated_at DESC, s.id DESC",
            name_contains
        )

    def strategy_name_exists(self, owner_id: int, name: str, exclude_id: Optional[int] = None) -> bool:
        """Case-insensitive name check within one owner's strategies"""
        query = "SELECT 1 FROM strategies WHERE owner_id = ? AND name_key = ?"
        params = [owner_id, name_key(name)]

        if exclude_id is not None:
            query += " AND id != ?"
            params.append(exclude_id)

        return self._fetchone(query, tuple(params)) is not None

    def _translate_integrity_error(self, e: sqlite3.IntegrityError):
        if 'UNIQUE' in str(e):
            raise NameConflictError("A strategy with this name already exists") from e
        raise e

    def insert_strategy(self, strategy: Strategy) -> Strategy:
        """
        Insert strategy

        Raises:
            NameConflictError: owner already has a strategy with this name
        """
        try:
            cursor = self._execute("""
                INSERT INTO strategies
                    (name, name_key, description, configuration, tags, is_public, owner_id,
                     created_at, updated_at, published_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                strategy.name,
                name_key(strategy.name),
                strategy.description,
                json.dumps(strategy.configuration),
                json.dumps(strategy.tags or []),
                1 if strategy.is_public else 0,
                strategy.owner_id,
                _to_db(strategy.created_at),
                _to_db(strategy.updated_at),
                _to_db(strategy.published_at),
            ))
        except sqlite3.IntegrityError as e:
            self._translate_integrity_error(e)

        return self.get_strategy(cursor.lastrowid)

    def update_strategy(self, strategy: Strategy) -> Strategy:
        """
        Persist every mutable column (owner and created_at are never written)

        Raises:
            NameConflictError: rename collides with another strategy of the owner
        """
        try:
            self._execute("""
                UPDATE strategies
                SET name = ?,
                    name_key = ?,
                    description = ?,
                    configuration = ?,
                    tags = ?,
                    is_public = ?,
                    updated_at = ?,
                    published_at = ?
                WHERE id = ?
            """, (
                strategy.name,
                name_key(strategy.name),
                strategy.description,
                json.dumps(strategy.configuration),
                json.dumps(strategy.tags or []),
                1 if strategy.is_public else 0,
                _to_db(strategy.updated_at),
                _to_db(strategy.published_at),
                strategy.id,
            ))
        except sqlite3.IntegrityError as e:
            self._translate_integrity_error(e)

        return self.get_strategy(strategy.id)

    def delete_strategy(self, strategy_id: int) -> bool:
        cursor = self._execute("DELETE FROM strategies WHERE id = ?", (strategy_id,))
        return cursor.rowcount > 0

    def count_strategies_by_owner(self, owner_id: int) -> int:
        row = self._fetchone("SELECT COUNT(*) AS total FROM strategies WHERE owner_id = ?", (owner_id,))
        return row['total']

    def count_public_strategies_by_owner(self, owner_id: int) -> int:
        row = self._fetchone(
            "SELECT COUNT(*) AS total FROM strategies WHERE owner_id = ? AND is_public = 1",
            (owner_id,)
        )
        return row['total']

    # ========================================
    # ACTIVITY LOG OPERATIONS
    # ========================================

    def insert_activity(self, entry: ActivityLogEntry) -> int:
        cursor = self._execute("""
            INSERT INTO activity_log (username, event_type, message, entity_type, entity_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (
            entry.username,
            entry.event_type,
            entry.message,
            entry.entity_type,
            entry.entity_id,
            _to_db(entry.created_at or datetime.now()),
        ))
        return cursor.lastrowid

    def list_activity(self, username: str, limit: int = 20) -> List[ActivityLogEntry]:
        rows = self._fetchall("""
            SELECT * FROM activity_log
            WHERE username = ?
            ORDER BY created_at DESC, id DESC
            LIMIT ?
        """, (username, limit))

        return [
            ActivityLogEntry(
                id=row['id'],
                username=row['username'],
                event_type=row['event_type'],
                message=row['message'],
                entity_type=row['entity_type'],
                entity_id=row['entity_id'],
                created_at=_from_db(row['created_at']),
            )
            for row in rows
        ]

    # ========================================
    # PRODUCT OPERATIONS
    # ========================================

    def insert_product(self, product: Product) -> Product:
        cursor = self._execute("""
            INSERT INTO products (name, product_type, underlying_asset, description, owner_id, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
        """, (
            product.name,
            product.product_type,
            product.underlying_asset,
            product.description,
            product.owner_id,
            _to_db(product.created_at or datetime.now()),
        ))
        return self.get_product(cursor.lastrowid)

    def get_product(self, product_id: int) -> Optional[Product]:
        row = self._fetchone("SELECT * FROM products WHERE id = ?", (product_id,))
        return self._row_to_product(row) if row else None

    def list_products(self) -> List[Product]:
        rows = self._fetchall("SELECT * FROM products ORDER BY id")
        return [self._row_to_product(row) for row in rows]

    def list_products_by_owner(self, owner_id: int) -> List[Product]:
        rows = self._fetchall("SELECT * FROM products WHERE owner_id = ? ORDER BY id", (owner_id,))
        return [self._row_to_product(row) for row in rows]

    # ========================================
    # TRADE OPERATIONS
    # ========================================

    def insert_trade(self, trade: Trade) -> Trade:
        cursor = self._execute("""
            INSERT INTO trades
                (product_id, user_id, trade_type, notional, entry_price, current_price,
                 status, notes, trade_date)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            trade.product_id,
            trade.user_id,
            TradeType(trade.trade_type).value,
            trade.notional,
            trade.entry_price,
            trade.current_price,
            TradeStatus(trade.status).value,
            trade.notes,
            _to_db(trade.trade_date or datetime.now()),
        ))
        return self.get_trade(cursor.lastrowid)

    def get_trade(self, trade_id: int) -> Optional[Trade]:
        row = self._fetchone(f"""
            SELECT {TRADE_COLUMNS}
            FROM trades t
            JOIN products p ON t.product_id = p.id
            WHERE t.id = ?
        """, (trade_id,))
        return self._row_to_trade(row) if row else None

    def list_trades_by_user(self, user_id: int) -> List[Trade]:
        rows = self._fetchall(f"""
            SELECT {TRADE_COLUMNS}
            FROM trades t
            JOIN products p ON t.product_id = p.id
            WHERE t.user_id = ?
            ORDER BY t.trade_date DESC, t.id DESC
        """, (user_id,))
        return [self._row_to_trade(row) for row in rows]

    def update_trade_status(self, trade_id: int, status: TradeStatus) -> bool:
        cursor = self._execute(
            "UPDATE trades SET status = ? WHERE id = ?",
            (TradeStatus(status).value, trade_id)
        )
        return cursor.rowcount > 0
