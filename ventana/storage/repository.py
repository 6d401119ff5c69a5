# storage/repository.py
import logging
import threading
from datetime import date
from typing import Optional

from ventana.storage.db import get_connection, init_schema

logger = logging.getLogger(__name__)


class Repository:
    """
    Única interfaz con SQLite. Recibe db_path para testear con :memory:.
    Las escrituras van bajo lock porque los adaptadores corren en threads.
    """

    def __init__(self, db_path: str | None = None):
        self._conn = get_connection(db_path)
        self._lock = threading.Lock()
        init_schema(self._conn)

    # ------------------------------------------------------------------
    # Quota
    # ------------------------------------------------------------------

    def add_token_usage(self, model: str, tokens: int, day: Optional[date] = None) -> None:
        """Upsert: incrementa el registro del día o lo crea."""
        today = (day or date.today()).isoformat()
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT INTO quota_usage (model, date, tokens_used, requests)
                VALUES (?, ?, ?, 1)
                ON CONFLICT (model, date)
                DO UPDATE SET tokens_used = tokens_used + excluded.tokens_used,
                              requests    = requests + 1
                """,
                (model, today, tokens),
            )

    def get_token_usage_today(self, model: str) -> int:
        return self._get_usage(model, date.today())["tokens_used"]

    def get_usage(self, model: str, day: Optional[date] = None) -> dict:
        """{'tokens_used': int, 'requests': int} del día (hoy por defecto)."""
        return self._get_usage(model, day or date.today())

    def _get_usage(self, model: str, day: date) -> dict:
        with self._lock:
            row = self._conn.execute(
                "SELECT tokens_used, requests FROM quota_usage WHERE model = ? AND date = ?",
                (model, day.isoformat()),
            ).fetchone()
        if row is None:
            return {"tokens_used": 0, "requests": 0}
        return {"tokens_used": row["tokens_used"], "requests": row["requests"]}

    # ------------------------------------------------------------------
    # Cleanup (para tests)
    # ------------------------------------------------------------------

    def close(self) -> None:
        self._conn.close()
