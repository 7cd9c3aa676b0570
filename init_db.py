"""
Quant Desk - Database Initialization Script

Creates the SQLite schema used for local development and tests.

Tables:
- users: accounts and roles (RESEARCHER, PORTFOLIO_MANAGER, CLIENT)
- sessions: login session tokens
- strategies: strategy records (configuration and tags stored as JSON text)
- activity_log: user activity audit trail
- products: tradable products
- trades: simulated trades

PostgreSQL deployments use PostgresDatabaseManager.create_schema() instead.

Usage:
    python init_db.py                       # create default DB
    python init_db.py --db-path custom.db   # custom path
    python init_db.py --reset               # drop existing DB and recreate
    python init_db.py --seed-demo           # add demo users (password: "password")
    python init_db.py --backend postgres    # create schema on the configured PostgreSQL DB
"""

import os
import sqlite3
import argparse
import logging
from datetime import datetime

from quant_desk.auth_manager import AuthManager
from quant_desk.models import Role

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)


DEMO_USERS = [
    ('client1', 'client1@quantdesk.com', 'Client One', Role.CLIENT),
    ('pm1', 'pm1@quantdesk.com', 'Portfolio Manager One', Role.PORTFOLIO_MANAGER),
    ('researcher1', 'researcher1@quantdesk.com', 'Researcher One', Role.RESEARCHER),
]
DEMO_PASSWORD = 'password'


class DatabaseInitializer:
    """SQLite database initialization"""

    def __init__(self, db_path: str = 'data/quant_desk.db'):
        self.db_path = db_path

    def initialize(self, reset: bool = False, seed_demo: bool = False):
        """
        Initialize database

        Args:
            reset: Delete the existing DB file before creating tables
            seed_demo: Insert demo users if missing
        """
        db_dir = os.path.dirname(self.db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        if reset and os.path.exists(self.db_path):
            logger.warning(f"Removing existing DB: {self.db_path}")
            os.remove(self.db_path)

        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        logger.info(f"Initializing database: {self.db_path}")

        self._create_users_table(cursor)
        self._create_sessions_table(cursor)
        self._create_strategies_table(cursor)
        self._create_activity_log_table(cursor)
        self._create_products_table(cursor)
        self._create_trades_table(cursor)
        self._create_indexes(cursor)

        if seed_demo:
            self._seed_demo_users(cursor)

        conn.commit()
        conn.close()

        logger.info(f"Database initialized: {self.db_path}")

    def _create_users_table(self, cursor):
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL UNIQUE,
                email TEXT NOT NULL UNIQUE,
                name TEXT NOT NULL DEFAULT '',
                password_hash TEXT NOT NULL,
                role TEXT NOT NULL CHECK (role IN ('RESEARCHER', 'PORTFOLIO_MANAGER', 'CLIENT')),
                is_active INTEGER NOT NULL DEFAULT 1,
                last_login TEXT,
                created_at TEXT NOT NULL
            )
        """)

    def _create_sessions_table(self, cursor):
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS sessions (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                user_id INTEGER NOT NULL,
                session_token TEXT NOT NULL UNIQUE,
                expires_at TEXT NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
            )
        """)

    def _create_strategies_table(self, cursor):
        """
        Strategy records. The unique (owner_id, name_key) index is the authoritative name guard.

        name_key holds the Python-folded name; SQLite LOWER() only folds ASCII.
        """
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS strategies (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL CHECK (LENGTH(name) BETWEEN 2 AND 100),
                name_key TEXT NOT NULL,                     -- str.lower() of name
                description TEXT CHECK (description IS NULL OR LENGTH(description) <= 2000),
                configuration TEXT NOT NULL DEFAULT '{}',   -- JSON document
                tags TEXT NOT NULL DEFAULT '[]',             -- JSON array
                is_public INTEGER NOT NULL DEFAULT 0,
                owner_id INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                published_at TEXT,
                FOREIGN KEY (owner_id) REFERENCES users(id) ON DELETE CASCADE,
                CHECK ((is_public = 1) = (published_at IS NOT NULL))
            )
        """)

    def _create_activity_log_table(self, cursor):
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS activity_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                username TEXT NOT NULL,
                event_type TEXT NOT NULL,
                message TEXT NOT NULL,
                entity_type TEXT,
                entity_id INTEGER,
                created_at TEXT NOT NULL
            )
        """)

    def _create_products_table(self, cursor):
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS products (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                product_type TEXT NOT NULL,
                underlying_asset TEXT,
                description TEXT,
                owner_id INTEGER NOT NULL,
                created_at TEXT NOT NULL,
                FOREIGN KEY (owner_id) REFERENCES users(id)
            )
        """)

    def _create_trades_table(self, cursor):
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS trades (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                product_id INTEGER NOT NULL,
                user_id INTEGER NOT NULL,
                trade_type TEXT NOT NULL,            -- BUY, SELL
                notional REAL NOT NULL,
                entry_price REAL,
                current_price REAL,
                status TEXT NOT NULL DEFAULT 'BOOKED',
                notes TEXT,
                trade_date TEXT NOT NULL,
                FOREIGN KEY (product_id) REFERENCES products(id),
                FOREIGN KEY (user_id) REFERENCES users(id)
            )
        """)

    def _create_indexes(self, cursor):
        indexes = [
            "CREATE UNIQUE INDEX IF NOT EXISTS idx_strategies_owner_name ON strategies(owner_id, name_key)",
            "CREATE INDEX IF NOT EXISTS idx_strategies_updated_at ON strategies(updated_at DESC)",
            "CREATE INDEX IF NOT EXISTS idx_strategies_public ON strategies(is_public, published_at DESC)",
            "CREATE INDEX IF NOT EXISTS idx_sessions_user ON sessions(user_id)",
            "CREATE INDEX IF NOT EXISTS idx_activity_username ON activity_log(username, created_at DESC)",
            "CREATE INDEX IF NOT EXISTS idx_trades_user ON trades(user_id)",
        ]

        for idx_sql in indexes:
            cursor.execute(idx_sql)

    def _seed_demo_users(self, cursor):
        for username, email, name, role in DEMO_USERS:
            cursor.execute("SELECT 1 FROM users WHERE username = ?", (username,))
            if cursor.fetchone():
                continue

            cursor.execute("""
                INSERT INTO users (username, email, name, password_hash, role, is_active, created_at)
                VALUES (?, ?, ?, ?, ?, 1, ?)
            """, (username, email, name, AuthManager.hash_password(DEMO_PASSWORD),
                  role.value, datetime.now().isoformat(timespec='microseconds')))
            logger.info(f"  Created demo user: {username} ({role.value})")

    def verify_tables(self):
        """Log every table with its row count"""
        conn = sqlite3.connect(self.db_path)
        cursor = conn.cursor()

        cursor.execute("SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name")
        tables = cursor.fetchall()

        logger.info("Tables:")
        for table in tables:
            cursor.execute(f"SELECT COUNT(*) FROM {table[0]}")
            count = cursor.fetchone()[0]
            logger.info(f"  - {table[0]:20s} ({count:>6d} rows)")

        conn.close()


def main():
    parser = argparse.ArgumentParser(description='Quant Desk - Database Initialization')
    parser.add_argument('--db-path', default=None, help='SQLite DB path (default: from config)')
    parser.add_argument('--backend', choices=['sqlite', 'postgres'], default=None,
                        help='Database backend (default: from config)')
    parser.add_argument('--reset', action='store_true', help='Drop existing SQLite DB and recreate')
    parser.add_argument('--seed-demo', action='store_true', help='Insert demo users')
    parser.add_argument('--verify', action='store_true', help='Only list tables')

    args = parser.parse_args()

    from quant_desk.config_loader import ConfigLoader
    config = ConfigLoader()
    backend = args.backend or config.get('database.backend', 'sqlite')

    if backend == 'postgres':
        from quant_desk.db_manager_postgres import PostgresDatabaseManager
        manager = PostgresDatabaseManager.from_config(config)
        manager.create_schema()
        if args.seed_demo:
            for username, email, name, role in DEMO_USERS:
                if not manager.get_user_by_username(username):
                    manager.create_user(username, email, name,
                                        AuthManager.hash_password(DEMO_PASSWORD), role)
        manager.close_pool()
        logger.info("PostgreSQL schema ready")
        return

    db_path = args.db_path or config.get('database.path', 'data/quant_desk.db')
    initializer = DatabaseInitializer(db_path=db_path)

    if args.verify:
        initializer.verify_tables()
    else:
        initializer.initialize(reset=args.reset, seed_demo=args.seed_demo)
        initializer.verify_tables()

    logger.info(f"Done: {db_path}")


if __name__ == '__main__':
    main()
