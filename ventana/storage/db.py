# storage/db.py
import os
import sqlite3
from pathlib import Path


_DEFAULT_DB_PATH = Path.home() / ".ventana" / "ventana.db"

# El estado del rate limiter es de proceso y no se persiste;
# aquí solo vive el consumo diario de tokens por proveedor.
_SCHEMA = """
CREATE TABLE IF NOT EXISTS quota_usage (
    model       TEXT    NOT NULL,
    date        TEXT    NOT NULL,
    tokens_used INTEGER NOT NULL DEFAULT 0,
    requests    INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (model, date)
);
"""


def get_connection(db_path: str | None = None) -> sqlite3.Connection:
    """
    Abre la conexión a SQLite con rows accesibles por nombre.
    check_same_thread=False: los adaptadores corren en asyncio.to_thread.
    """
    path = db_path or os.environ.get("VENTANA_DB_PATH") or str(_DEFAULT_DB_PATH)

    if path != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    if path != ":memory:":
        conn.execute("PRAGMA journal_mode = WAL")
    return conn


def init_schema(conn: sqlite3.Connection) -> None:
    """Idempotente."""
    with conn:
        conn.executescript(_SCHEMA)
