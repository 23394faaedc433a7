# Overview: Record store contract and its SQLAlchemy implementation.

"""
Record Store

WHY: The engine talks to its backing store only through five calls
(insert, insert_many, update, delete, query) plus get. Nothing above this
module knows about SQLAlchemy sessions, which keeps the commit protocol
honest: every call is its own round trip and its own commit, exactly like
a remote structured-record API. There is no transaction spanning calls.

Records are plain dicts keyed by column name.

Query filters accept equality by default and these suffixes:
- field__gte / field__lte / field__gt / field__lt
- field__in (iterable)
"""

from __future__ import annotations

import logging
import time
from typing import Iterable

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import NotFoundError, StoreError
from ..extensions import db
from ..models import TABLES

logger = logging.getLogger(__name__)


_OPERATORS = {
    "gte": lambda col, v: col >= v,
    "lte": lambda col, v: col <= v,
    "gt": lambda col, v: col > v,
    "lt": lambda col, v: col < v,
    "in": lambda col, v: col.in_(list(v)),
}


class RecordStore:
    """Abstract record store. Every failure surfaces as StoreError."""

    def insert(self, table: str, record: dict) -> int:
        raise NotImplementedError

    def insert_many(self, table: str, records: Iterable[dict]) -> list[int]:
        raise NotImplementedError

    def update(self, table: str, record_id: int, patch: dict) -> dict:
        raise NotImplementedError

    def delete(self, table: str, record_id: int) -> bool:
        raise NotImplementedError

    def get(self, table: str, record_id: int) -> dict | None:
        raise NotImplementedError

    def query(
        self,
        table: str,
        filters: dict | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        raise NotImplementedError


class SqlRecordStore(RecordStore):
    """
    RecordStore backed by the Flask-SQLAlchemy session.

    Each call commits on its own. Transient failures are retried with
    exponential back-off; the rest are rolled back and raised as StoreError.
    """

    def __init__(self, *, attempts: int = 3, backoff_base: float = 0.1):
        self.attempts = max(1, attempts)
        self.backoff_base = backoff_base

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _model(self, table: str):
        model = TABLES.get(table)
        if model is None:
            raise StoreError(table, "lookup", "unknown table")
        return model

    def _run(self, table: str, operation: str, func):
        """
        Run one store call as its own commit.

        Lock timeouts, dropped connections and stale rows are retried with
        exponential back-off up to self.attempts; any other SQLAlchemy error
        (and the last transient one) is rolled back and raised as StoreError.
        """
        for attempt in range(self.attempts):
            try:
                return func()
            except (OperationalError, StaleDataError) as exc:
                db.session.rollback()
                if attempt >= self.attempts - 1:
                    logger.error("Record store %s on %s failed after %d attempts: %s",
                                 operation, table, self.attempts, exc)
                    raise StoreError(table, operation, str(exc)) from exc
                logger.warning("Transient %s failure on %s (attempt %d/%d): %s",
                               operation, table, attempt + 1, self.attempts, exc)
                time.sleep(self.backoff_base * (2 ** attempt))
            except SQLAlchemyError as exc:
                db.session.rollback()
                logger.error("Record store %s on %s failed: %s", operation, table, exc)
                raise StoreError(table, operation, str(exc)) from exc

    def _build_filters(self, model, filters: dict | None) -> list:
        clauses = []
        for key, value in (filters or {}).items():
            name, _, op = key.partition("__")
            column = getattr(model, name, None)
            if column is None:
                raise StoreError(model.__tablename__, "query", f"unknown column {name!r}")
            if not op:
                clauses.append(column.is_(None) if value is None else column == value)
            elif op in _OPERATORS:
                clauses.append(_OPERATORS[op](column, value))
            else:
                raise StoreError(model.__tablename__, "query", f"unsupported operator {op!r}")
        return clauses

    # ------------------------------------------------------------------
    # contract
    # ------------------------------------------------------------------

    def insert(self, table: str, record: dict) -> int:
        model = self._model(table)

        def _op():
            obj = model(**record)
            db.session.add(obj)
            db.session.commit()
            return obj.id

        return self._run(table, "insert", _op)

    def insert_many(self, table: str, records: Iterable[dict]) -> list[int]:
        model = self._model(table)
        rows = list(records)

        def _op():
            objs = [model(**row) for row in rows]
            db.session.add_all(objs)
            db.session.commit()
            return [obj.id for obj in objs]

        return self._run(table, "insert_many", _op)

    def update(self, table: str, record_id: int, patch: dict) -> dict:
        model = self._model(table)
        unknown = [key for key in patch if not hasattr(model, key)]
        if unknown:
            raise StoreError(table, "update", f"unknown column {unknown[0]!r}")

        def _op():
            obj = db.session.get(model, record_id)
            if obj is None:
                raise NotFoundError(f"{table} {record_id} not found")
            for key, value in patch.items():
                setattr(obj, key, value)
            db.session.commit()
            return obj.to_dict()

        return self._run(table, "update", _op)

    def delete(self, table: str, record_id: int) -> bool:
        model = self._model(table)

        def _op():
            obj = db.session.get(model, record_id)
            if obj is None:
                return False
            db.session.delete(obj)
            db.session.commit()
            return True

        return self._run(table, "delete", _op)

    def get(self, table: str, record_id: int) -> dict | None:
        model = self._model(table)

        def _op():
            obj = db.session.get(model, record_id)
            return obj.to_dict() if obj is not None else None

        return self._run(table, "get", _op)

    def query(
        self,
        table: str,
        filters: dict | None = None,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict]:
        model = self._model(table)
        clauses = self._build_filters(model, filters)

        def _op():
            q = db.session.query(model).filter(*clauses)
            if order_by:
                column = getattr(model, order_by)
                q = q.order_by(column.desc() if descending else column.asc(), model.id.asc())
            else:
                q = q.order_by(model.id.asc())
            if limit is not None:
                q = q.limit(limit)
            return [obj.to_dict() for obj in q.all()]

        return self._run(table, "query", _op)


def first(records: list[dict]) -> dict | None:
    return records[0] if records else None
