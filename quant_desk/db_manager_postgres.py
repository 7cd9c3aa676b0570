"""
PostgreSQL Database Manager

Provides the same interface as SQLiteDatabaseManager while leveraging
PostgreSQL-specific features:
- Connection pooling (ThreadedConnectionPool, safe for concurrent requests)
- JSONB strategy configuration and TEXT[] tags
- Unique expression index on (owner_id, LOWER(name)) as the authoritative
  strategy-name guard

Author: Quant Desk Development Team
"""

import logging
import os
from contextlib import contextmanager
from datetime import datetime
from typing import List, Optional, Tuple

import psycopg2
from psycopg2 import errors, extras, pool
from dotenv import load_dotenv

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


STRATEGY_NAME_INDEX = 'idx_strategies_owner_name'

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS users (
    id BIGSERIAL PRIMARY KEY,
    username VARCHAR(50) NOT NULL UNIQUE,
    email VARCHAR(255) NOT NULL UNIQUE,
    name VARCHAR(255) NOT NULL DEFAULT '',
    password_hash TEXT NOT NULL,
    role VARCHAR(32) NOT NULL CHECK (role IN ('RESEARCHER', 'PORTFOLIO_MANAGER', 'CLIENT')),
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    last_login TIMESTAMP,
    created_at TIMESTAMP NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS sessions (
    id BIGSERIAL PRIMARY KEY,
    user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    session_token TEXT NOT NULL UNIQUE,
    expires_at TIMESTAMP NOT NULL,
    created_at TIMESTAMP NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS strategies (
    id BIGSERIAL PRIMARY KEY,
    name VARCHAR(100) NOT NULL,
    description TEXT,
    configuration JSONB NOT NULL DEFAULT '{{}}',
    tags TEXT[] NOT NULL DEFAULT '{{}}',
    is_public BOOLEAN NOT NULL DEFAULT FALSE,
    owner_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
    created_at TIMESTAMP NOT NULL,
    updated_at TIMESTAMP NOT NULL,
    published_at TIMESTAMP,
    CONSTRAINT chk_strategy_name_length CHECK (LENGTH(name) >= 2 AND LENGTH(name) <= 100),
    CONSTRAINT chk_strategy_description_length CHECK (description IS NULL OR LENGTH(description) <= 2000),
    CONSTRAINT chk_strategy_published_at CHECK (is_public = (published_at IS NOT NULL))
);

CREATE UNIQUE INDEX IF NOT EXISTS {STRATEGY_NAME_INDEX} ON strategies(owner_id, LOWER(name));
CREATE INDEX IF NOT EXISTS idx_strategies_updated_at ON strategies(updated_at DESC);
CREATE INDEX IF NOT EXISTS idx_strategies_public ON strategies(is_public, published_at DESC);

CREATE TABLE IF NOT EXISTS activity_log (
    id BIGSERIAL PRIMARY KEY,
    username VARCHAR(50) NOT NULL,
    event_type VARCHAR(64) NOT NULL,
    message TEXT NOT NULL,
    entity_type VARCHAR(64),
    entity_id BIGINT,
    created_at TIMESTAMP NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_activity_username ON activity_log(username, created_at DESC);

CREATE TABLE IF NOT EXISTS products (
    id BIGSERIAL PRIMARY KEY,
    name VARCHAR(255) NOT NULL,
    product_type VARCHAR(64) NOT NULL,
    underlying_asset VARCHAR(255),
    description TEXT,
    owner_id BIGINT NOT NULL REFERENCES users(id),
    created_at TIMESTAMP NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS trades (
    id BIGSERIAL PRIMARY KEY,
    product_id BIGINT NOT NULL REFERENCES products(id),
    user_id BIGINT NOT NULL REFERENCES users(id),
    trade_type VARCHAR(8) NOT NULL,
    notional DOUBLE PRECISION NOT NULL,
    entry_price DOUBLE PRECISION,
    current_price DOUBLE PRECISION,
    status VARCHAR(16) NOT NULL DEFAULT 'BOOKED',
    notes TEXT,
    trade_date TIMESTAMP NOT NULL DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_trades_user ON trades(user_id);
"""

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


def _like_pattern(term: str) -> str:
    """Substring LIKE pattern with %, _ and the escape char taken literally"""
    escaped = term.lower().replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"


class PostgresDatabaseManager:
    """
    PostgreSQL Database Manager

    Provides the same interface as SQLiteDatabaseManager.
    """

    def __init__(self,
                 host: str = None,
                 port: int = None,
                 database: str = None,
                 user: str = None,
                 password: str = None,
                 pool_min_conn: int = 1,
                 pool_max_conn: int = 10):
        """
        Initialize PostgreSQL connection pool

        Args:
            host: PostgreSQL host (default: localhost)
            port: PostgreSQL port (default: 5432)
            database: Database name (default: quant_desk)
            user: Database user (default: from .env)
            password: Database password (default: from .env)
            pool_min_conn: Minimum connections in pool
            pool_max_conn: Maximum connections in pool
        """
        load_dotenv()

        self.host = host or os.getenv('POSTGRES_HOST', 'localhost')
        self.port = port or int(os.getenv('POSTGRES_PORT', 5432))
        self.database = database or os.getenv('POSTGRES_DB', 'quant_desk')
        self.user = user or os.getenv('POSTGRES_USER')
        self.password = password or os.getenv('POSTGRES_PASSWORD', '')

        try:
            self.pool = pool.ThreadedConnectionPool(
                pool_min_conn,
                pool_max_conn,
                host=self.host,
                port=self.port,
                database=self.database,
                user=self.user,
                password=self.password
            )
            logger.info(f"PostgreSQL connection pool created: {self.database}")
            logger.info(f"   Host: {self.host}:{self.port}")
            logger.info(f"   Pool: {pool_min_conn}-{pool_max_conn} connections")
        except psycopg2.Error as e:
            logger.error(f"Failed to create connection pool: {e}")
            raise

    @classmethod
    def from_config(cls, config) -> 'PostgresDatabaseManager':
        """
        Build from a ConfigLoader

        Args:
            config: ConfigLoader instance
        """
        db = config.get_database_config()
        return cls(
            host=db.get('host'),
            port=db.get('port'),
            database=db.get('name'),
            user=db.get('user'),
            password=db.get('password'),
            pool_min_conn=db.get('pool_min_conn', 1),
            pool_max_conn=db.get('pool_max_conn', 10),
        )

    @contextmanager
    def _cursor(self, commit: bool = False):
        """
        Borrow a pooled connection and yield a RealDictCursor.

        Rolls back on error and always returns the connection to the pool.
        """
        conn = self.pool.getconn()
        try:
            with conn.cursor(cursor_factory=extras.RealDictCursor) as cur:
                yield cur
            if commit:
                conn.commit()
            else:
                conn.rollback()
        except Exception:
            conn.rollback()
            raise
        finally:
            self.pool.putconn(conn)

    def close_pool(self):
        """Close all connections in pool"""
        if self.pool:
            self.pool.closeall()
            logger.info("PostgreSQL connection pool closed")

    close = close_pool

    def ping(self) -> bool:
        """Connectivity probe used by the health endpoint"""
        with self._cursor() as cur:
            cur.execute("SELECT 1 AS ok")
            return cur.fetchone()['ok'] == 1

    def create_schema(self):
        """Create tables and indexes (idempotent)"""
        with self._cursor(commit=True) as cur:
            cur.execute(SCHEMA_SQL)
        logger.info("Schema created/verified")

    # ========================================
    # ROW CONVERSION
    # ========================================

    @staticmethod
    def _row_to_user(row: dict) -> User:
        return User(
            id=row['id'],
            username=row['username'],
            role=Role(row['role']),
            email=row['email'],
            name=row['name'],
            is_active=row['is_active'],
            last_login=row['last_login'],
            created_at=row['created_at'],
        )

    @staticmethod
    def _row_to_strategy(row: dict) -> Strategy:
        return Strategy(
            id=row['id'],
            name=row['name'],
            description=row['description'],
            configuration=row['configuration'] if row['configuration'] else {},
            tags=list(row['tags']) if row['tags'] else [],
            is_public=row['is_public'],
            owner_id=row['owner_id'],
            created_at=row['created_at'],
            updated_at=row['updated_at'],
            published_at=row['published_at'],
            owner_username=row['owner_username'],
            owner_name=row['owner_name'],
        )

    @staticmethod
    def _row_to_product(row: dict) -> Product:
        return Product(
            id=row['id'],
            name=row['name'],
            product_type=row['product_type'],
            underlying_asset=row['underlying_asset'],
            description=row['description'],
            owner_id=row['owner_id'],
            created_at=row['created_at'],
        )

    @staticmethod
    def _row_to_trade(row: dict) -> Trade:
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
            trade_date=row['trade_date'],
            product=Product(
                id=row['product_id'],
                name=row['product_name'],
                product_type=row['product_type'],
                underlying_asset=row['underlying_asset'],
                description=row['product_description'],
                owner_id=row['product_owner_id'],
                created_at=row['product_created_at'],
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
            with self._cursor(commit=True) as cur:
                cur.execute("""
                    INSERT INTO users (username, email, name, password_hash, role, is_active, created_at)
                    VALUES (%s, %s, %s, %s, %s, TRUE, %s)
                    RETURNING *
                """, (username, email, name, password_hash, Role(role).value, now or datetime.now()))
                row = cur.fetchone()
        except errors.UniqueViolation as e:
            raise DuplicateUserError("Username or email is already taken") from e

        logger.info(f"Created user: {username} ({Role(role).value})")
        return self._row_to_user(row)

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM users WHERE id = %s", (user_id,))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_user_by_username(self, username: str) -> Optional[User]:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM users WHERE username = %s", (username,))
            row = cur.fetchone()
        return self._row_to_user(row) if row else None

    def get_user_credentials(self, username: str) -> Optional[Tuple[User, str]]:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM users WHERE username = %s", (username,))
            row = cur.fetchone()
        if not row:
            return None
        return self._row_to_user(row), row['password_hash']

    def username_exists(self, username: str) -> bool:
        with self._cursor() as cur:
            cur.execute("SELECT 1 FROM users WHERE username = %s", (username,))
            return cur.fetchone() is not None

    def email_exists(self, email: str) -> bool:
        with self._cursor() as cur:
            cur.execute("SELECT 1 FROM users WHERE LOWER(email) = LOWER(%s)", (email,))
            return cur.fetchone() is not None

    def update_last_login(self, user_id: int, when: datetime):
        with self._cursor(commit=True) as cur:
            cur.execute("UPDATE users SET last_login = %s WHERE id = %s", (when, user_id))

    # ========================================
    # SESSION OPERATIONS
    # ========================================

    def create_session(self, user_id: int, session_token: str, expires_at: datetime,
                       now: Optional[datetime] = None):
        with self._cursor(commit=True) as cur:
            cur.execute("""
                INSERT INTO sessions (user_id, session_token, expires_at, created_at)
                VALUES (%s, %s, %s, %s)
            """, (user_id, session_token, expires_at, now or datetime.now()))

    def get_session(self, session_token: str) -> Optional[Tuple[User, datetime]]:
        with self._cursor() as cur:
            cur.execute("""
                SELECT u.*, s.expires_at AS session_expires_at
                FROM sessions s
                JOIN users u ON s.user_id = u.id
                WHERE s.session_token = %s
            """, (session_token,))
            row = cur.fetchone()

        if not row:
            return None
        return self._row_to_user(row), row['session_expires_at']

    def delete_session(self, session_token: str) -> bool:
        with self._cursor(commit=True) as cur:
            cur.execute("DELETE FROM sessions WHERE session_token = %s", (session_token,))
            return cur.rowcount > 0

    def count_active_sessions(self, user_id: int, now: datetime) -> int:
        """Sessions of user_id that expire after now"""
        with self._cursor() as cur:
            cur.execute(
                "SELECT COUNT(*) AS total FROM sessions WHERE user_id = %s AND expires_at > %s",
                (user_id, now)
            )
            return cur.fetchone()['total']

    # ========================================
    # STRATEGY OPERATIONS
    # ========================================

    def _list_strategies(self, where: str, params: list, order_by: str,
                         name_contains: Optional[str]) -> List[Strategy]:
        clauses = [where] if where else []
        if name_contains:
            clauses.append("LOWER(s.name) LIKE %s ESCAPE '\\'")
            params = params + [_like_pattern(name_contains)]

        where_clause = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        with self._cursor() as cur:
            cur.execute(f"""
                SELECT {STRATEGY_COLUMNS}
                FROM strategies s
                JOIN users u ON s.owner_id = u.id
                {where_clause}
                ORDER BY {order_by}
            """, params)
            rows = cur.fetchall()

        return [self._row_to_strategy(row) for row in rows]

    def get_strategy(self, strategy_id: int) -> Optional[Strategy]:
        with self._cursor() as cur:
            cur.execute(f"""
                SELECT {STRATEGY_COLUMNS}
                FROM strategies s
                JOIN users u ON s.owner_id = u.id
                WHERE s.id = %s
            """, (strategy_id,))
            row = cur.fetchone()
        return self._row_to_strategy(row) if row else None

    def list_all_strategies(self, name_contains: Optional[str] = None) -> List[Strategy]:
        return self._list_strategies("", [], "s.updated_at DESC, s.id DESC", name_contains)

    def list_strategies_by_owner(self, owner_id: int, name_contains: Optional[str] = None) -> List[Strategy]:
        return self._list_strategies("s.owner_id = %s", [owner_id], "s.updated_at DESC, s.id DESC", name_contains)

    def list_public_strategies(self, name_contains: Optional[str] = None) -> List[Strategy]:
        return self._list_strategies(
            "s.is_public = TRUE", [],
            "s.published_at DESC, s.updated_at DESC, s.id DESC",
            name_contains
        )

    def strategy_name_exists(self, owner_id: int, name: str, exclude_id: Optional[int] = None) -> bool:
        query = "SELECT 1 FROM strategies WHERE owner_id = %s AND LOWER(name) = LOWER(%s)"
        params = [owner_id, name]

        if exclude_id is not None:
            query += " AND id != %s"
            params.append(exclude_id)

        with self._cursor() as cur:
            cur.execute(query, params)
            return cur.fetchone() is not None

    @staticmethod
    def _is_name_conflict(e: errors.UniqueViolation) -> bool:
        return getattr(e.diag, 'constraint_name', None) == STRATEGY_NAME_INDEX

    def insert_strategy(self, strategy: Strategy) -> Strategy:
        """
        Insert strategy

        Raises:
            NameConflictError: owner already has a strategy with this name
        """
        try:
            with self._cursor(commit=True) as cur:
                cur.execute("""
                    INSERT INTO strategies
                        (name, description, configuration, tags, is_public, owner_id,
                         created_at, updated_at, published_at)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING id
                """, (
                    strategy.name,
                    strategy.description,
                    extras.Json(strategy.configuration),
                    list(strategy.tags or []),
                    strategy.is_public,
                    strategy.owner_id,
                    strategy.created_at,
                    strategy.updated_at,
                    strategy.published_at,
                ))
                strategy_id = cur.fetchone()['id']
        except errors.UniqueViolation as e:
            if self._is_name_conflict(e):
                raise NameConflictError("A strategy with this name already exists") from e
            raise

        return self.get_strategy(strategy_id)

    def update_strategy(self, strategy: Strategy) -> Strategy:
        """
        Persist every mutable column (owner and created_at are never written)

        Raises:
            NameConflictError: rename collides with another strategy of the owner
        """
        try:
            with self._cursor(commit=True) as cur:
                cur.execute("""
                    UPDATE strategies
                    SET name = %s,
                        description = %s,
                        configuration = %s,
                        tags = %s,
                        is_public = %s,
                        updated_at = %s,
                        published_at = %s
                    WHERE id = %s
                """, (
                    strategy.name,
                    strategy.description,
                    extras.Json(strategy.configuration),
                    list(strategy.tags or []),
                    strategy.is_public,
                    strategy.updated_at,
                    strategy.published_at,
                    strategy.id,
                ))
        except errors.UniqueViolation as e:
            if self._is_name_conflict(e):
                raise NameConflictError("A strategy with this name already exists") from e
            raise

        return self.get_strategy(strategy.id)

    def delete_strategy(self, strategy_id: int) -> bool:
        with self._cursor(commit=True) as cur:
            cur.execute("DELETE FROM strategies WHERE id = %s", (strategy_id,))
            return cur.rowcount > 0

    def count_strategies_by_owner(self, owner_id: int) -> int:
        with self._cursor() as cur:
            cur.execute("SELECT COUNT(*) AS total FROM strategies WHERE owner_id = %s", (owner_id,))
            return cur.fetchone()['total']

    def count_public_strategies_by_owner(self, owner_id: int) -> int:
        with self._cursor() as cur:
            cur.execute(
                "SELECT COUNT(*) AS total FROM strategies WHERE owner_id = %s AND is_public = TRUE",
                (owner_id,)
            )
            return cur.fetchone()['total']

    # ========================================
    # ACTIVITY LOG OPERATIONS
    # ========================================

    def insert_activity(self, entry: ActivityLogEntry) -> int:
        with self._cursor(commit=True) as cur:
            cur.execute("""
                INSERT INTO activity_log (username, event_type, message, entity_type, entity_id, created_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING id
            """, (
                entry.username,
                entry.event_type,
                entry.message,
                entry.entity_type,
                entry.entity_id,
                entry.created_at or datetime.now(),
            ))
            return cur.fetchone()['id']

    def list_activity(self, username: str, limit: int = 20) -> List[ActivityLogEntry]:
        with self._cursor() as cur:
            cur.execute("""
                SELECT * FROM activity_log
                WHERE username = %s
                ORDER BY created_at DESC, id DESC
                LIMIT %s
            """, (username, limit))
            rows = cur.fetchall()

        return [ActivityLogEntry(**row) for row in rows]

    # ========================================
    # PRODUCT OPERATIONS
    # ========================================

    def insert_product(self, product: Product) -> Product:
        with self._cursor(commit=True) as cur:
            cur.execute("""
                INSERT INTO products (name, product_type, underlying_asset, description, owner_id, created_at)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING *
            """, (
                product.name,
                product.product_type,
                product.underlying_asset,
                product.description,
                product.owner_id,
                product.created_at or datetime.now(),
            ))
            return self._row_to_product(cur.fetchone())

    def get_product(self, product_id: int) -> Optional[Product]:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM products WHERE id = %s", (product_id,))
            row = cur.fetchone()
        return self._row_to_product(row) if row else None

    def list_products(self) -> List[Product]:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM products ORDER BY id")
            return [self._row_to_product(row) for row in cur.fetchall()]

    def list_products_by_owner(self, owner_id: int) -> List[Product]:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM products WHERE owner_id = %s ORDER BY id", (owner_id,))
            return [self._row_to_product(row) for row in cur.fetchall()]

    # ========================================
    # TRADE OPERATIONS
    # ========================================

    def insert_trade(self, trade: Trade) -> Trade:
        with self._cursor(commit=True) as cur:
            cur.execute("""
                INSERT INTO trades
                    (product_id, user_id, trade_type, notional, entry_price, current_price,
                     status, notes, trade_date)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id
            """, (
                trade.product_id,
                trade.user_id,
                TradeType(trade.trade_type).value,
                trade.notional,
                trade.entry_price,
                trade.current_price,
                TradeStatus(trade.status).value,
                trade.notes,
                trade.trade_date or datetime.now(),
            ))
            trade_id = cur.fetchone()['id']

        return self.get_trade(trade_id)

    def get_trade(self, trade_id: int) -> Optional[Trade]:
        with self._cursor() as cur:
            cur.execute(f"""
                SELECT {TRADE_COLUMNS}
                FROM trades t
                JOIN products p ON t.product_id = p.id
                WHERE t.id = %s
            """, (trade_id,))
            row = cur.fetchone()
        return self._row_to_trade(row) if row else None

    def list_trades_by_user(self, user_id: int) -> List[Trade]:
        with self._cursor() as cur:
            cur.execute(f"""
                SELECT {TRADE_COLUMNS}
                FROM trades t
                JOIN products p ON t.product_id = p.id
                WHERE t.user_id = %s
                ORDER BY t.trade_date DESC, t.id DESC
            """, (user_id,))
            rows = cur.fetchall()
        return [self._row_to_trade(row) for row in rows]

    def update_trade_status(self, trade_id: int, status: TradeStatus) -> bool:
        with self._cursor(commit=True) as cur:
            cur.execute(
                "UPDATE trades SET status = %s WHERE id = %s",
                (TradeStatus(status).value, trade_id)
            )
            return cur.rowcount > 0
