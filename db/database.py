import json
import logging
import sqlite3
import threading
import uuid
from pathlib import Path

from db.models import SCHEMA_SQL
from notes.errors import NotFound, StoreError

logger = logging.getLogger(__name__)

_DIRECTIONS = ("asc", "desc")


def _json_path(field: str) -> str:
    return "$." + field


def merge_fields(doc: dict, fields: dict) -> dict:
    """Apply a partial update to ``doc`` in place.

    Keys may be dotted paths (``"metadata.source"``) that reach into nested
    objects. A ``None`` value removes the key.
    """
    for key, value in fields.items():
        parts = key.split(".")
        target = doc
        for part in parts[:-1]:
            child = target.get(part)
            if not isinstance(child, dict):
                child = {}
                target[part] = child
            target = child
        if value is None:
            target.pop(parts[-1], None)
        else:
            target[parts[-1]] = value
    return doc


class DocumentStore:
    """Keyed JSON document collections on top of a single SQLite file.

    Must be opened before use and closed on shutdown; it does not connect
    lazily on first access.
    """

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._local = threading.local()
        self._conns: list[sqlite3.Connection] = []
        self._lock = threading.Lock()
        self._open = False

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, *exc):
        self.close()

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self):
        if self._open:
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._open = True
        try:
            self._get_conn().executescript(SCHEMA_SQL)
        except sqlite3.Error as e:
            self._open = False
            raise StoreError(f"No se pudo abrir la base de datos: {e}") from e
        logger.info("Base de datos abierta: %s", self.db_path)

    def close(self):
        with self._lock:
            conns, self._conns = self._conns, []
            self._open = False
        for conn in conns:
            conn.close()
        self._local = threading.local()

    def _get_conn(self) -> sqlite3.Connection:
        if not self._open:
            raise StoreError("La base de datos no esta abierta")
        conn = getattr(self._local, "conn", None)
        if conn is None:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=30,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            self._local.conn = conn
            with self._lock:
                self._conns.append(conn)
        return conn

    def execute(self, sql: str, params: tuple = ()) -> sqlite3.Cursor:
        try:
            return self._get_conn().execute(sql, params)
        except sqlite3.Error as e:
            raise StoreError(f"Error de base de datos: {e}") from e

    def fetchone(self, sql: str, params: tuple = ()) -> dict | None:
        row = self.execute(sql, params).fetchone()
        return dict(row) if row else None

    def fetchall(self, sql: str, params: tuple = ()) -> list[dict]:
        return [dict(row) for row in self.execute(sql, params).fetchall()]

    def collection(self, name: str) -> "Collection":
        return Collection(self, name)


class Collection:
    def __init__(self, store: DocumentStore, name: str):
        self.store = store
        self.name = name

    @staticmethod
    def _to_doc(row: dict) -> dict:
        doc = json.loads(row["body"])
        doc["id"] = row["id"]
        return doc

    def add(self, doc: dict) -> str:
        doc_id = uuid.uuid4().hex
        body = {k: v for k, v in doc.items() if k != "id"}
        self.store.execute(
            "INSERT INTO documents (collection, id, body) VALUES (?, ?, ?)",
            (self.name, doc_id, json.dumps(body, ensure_ascii=False)),
        )
        return doc_id

    def get(self, doc_id: str) -> dict:
        row = self.store.fetchone(
            "SELECT id, body FROM documents WHERE collection = ? AND id = ?",
            (self.name, doc_id),
        )
        if not row:
            raise NotFound(f"Documento '{doc_id}' no encontrado en {self.name}")
        return self._to_doc(row)

    def update(self, doc_id: str, fields: dict):
        if not fields:
            self.get(doc_id)
            return
        conn = self.store._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                row = conn.execute(
                    "SELECT body FROM documents WHERE collection = ? AND id = ?",
                    (self.name, doc_id),
                ).fetchone()
                if row is None:
                    raise NotFound(f"Documento '{doc_id}' no encontrado en {self.name}")
                body = merge_fields(json.loads(row["body"]), fields)
                body.pop("id", None)
                conn.execute(
                    "UPDATE documents SET body = ? WHERE collection = ? AND id = ?",
                    (json.dumps(body, ensure_ascii=False), self.name, doc_id),
                )
                conn.execute("COMMIT")
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise
        except sqlite3.Error as e:
            raise StoreError(f"Error actualizando {doc_id}: {e}") from e

    def delete(self, doc_id: str):
        cursor = self.store.execute(
            "DELETE FROM documents WHERE collection = ? AND id = ?",
            (self.name, doc_id),
        )
        if cursor.rowcount == 0:
            raise NotFound(f"Documento '{doc_id}' no encontrado en {self.name}")

    def query(self, order_by: str, direction: str = "desc",
              range_filter: tuple[str, str, str] | None = None,
              limit: int | None = None, offset: int = 0,
              then_by: tuple[str, str] | None = None) -> list[dict]:
        """Ordered scan, optionally restricted to ``low <= field < high``.

        Documents missing the filtered field never match the range.
        """
        orderings = [(order_by, direction)]
        if then_by:
            orderings.append(then_by)
        for _, d in orderings:
            if d not in _DIRECTIONS:
                raise ValueError(f"Direccion de orden invalida: {d}")

        sql = "SELECT id, body FROM documents WHERE collection = ?"
        params: list = [self.name]
        if range_filter:
            field, low, high = range_filter
            sql += " AND json_extract(body, ?) >= ? AND json_extract(body, ?) < ?"
            params += [_json_path(field), low, _json_path(field), high]

        sql += " ORDER BY " + ", ".join(
            f"json_extract(body, ?) {d.upper()}" for _, d in orderings
        )
        params += [_json_path(f) for f, _ in orderings]

        sql += " LIMIT ? OFFSET ?"
        params += [-1 if limit is None else limit, max(0, offset)]

        return [self._to_doc(row) for row in self.store.fetchall(sql, tuple(params))]

    def all(self) -> list[dict]:
        rows = self.store.fetchall(
            "SELECT id, body FROM documents WHERE collection = ? ORDER BY created_at",
            (self.name,),
        )
        return [self._to_doc(row) for row in rows]

    def count(self) -> int:
        row = self.store.fetchone(
            "SELECT COUNT(*) AS n FROM documents WHERE collection = ?", (self.name,)
        )
        return row["n"]
