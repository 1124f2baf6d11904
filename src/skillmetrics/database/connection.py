from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import ContextManager, Iterator, Optional, Protocol

import mysql.connector
from mysql.connector.constants import ClientFlag

logger = logging.getLogger(__name__)


class TransactionManager(Protocol):
    """Opens a unit of work; repository calls inside it commit or roll back together."""

    def atomic(self) -> ContextManager[None]:
        raise NotImplementedError


@dataclass
class DBConfig:
    host: str
    port: int
    user: str
    password: str
    database: str


class DatabaseConnection(TransactionManager):
    """Singleton-like DB connection factory.

    Outside a transaction every repository call uses a short-lived connection.
    Inside ``atomic()`` the calls made by the current thread share one
    connection so row locks taken with ``SELECT ... FOR UPDATE`` hold until
    the block commits or rolls back.
    """

    _instance: Optional["DatabaseConnection"] = None

    def __init__(self, config: DBConfig):
        self._config = config
        self._local = threading.local()

    @classmethod
    def get_instance(cls, config: DBConfig) -> "DatabaseConnection":
        if cls._instance is None:
            cls._instance = DatabaseConnection(config)
        return cls._instance

    def connect(self):
        return mysql.connector.connect(
            host=self._config.host,
            port=int(self._config.port),
            user=self._config.user,
            password=self._config.password,
            database=self._config.database,
            # UPDATE rowcount reports matched rows, not only changed ones.
            client_flags=[ClientFlag.FOUND_ROWS],
        )

    def current_transaction(self):
        """Connection bound by an enclosing ``atomic()`` block on this thread, if any."""
        return getattr(self._local, "conn", None)

    @contextmanager
    def atomic(self) -> Iterator[None]:
        if self.current_transaction() is not None:
            # Nested blocks join the outer transaction.
            yield
            return

        conn = self.connect()
        conn.start_transaction(isolation_level="READ COMMITTED")
        self._local.conn = conn
        try:
            yield
            conn.commit()
        except Exception:
            conn.rollback()
            logger.debug("Transaction rolled back", exc_info=True)
            raise
        finally:
            self._local.conn = None
            conn.close()
