"""Store port for the relationship core - SQLAlchemy implementation.

The validator and reconciler only talk to the store through the primitives
select/insert/update/delete (equality filters on columns) plus an optional
transaction scope. Rows are plain dictionaries; dates are ISO strings.
"""
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from immoverwaltung import db
from immoverwaltung.errors import StoreError, InvalidRequestError, COMMON_ERROR_MESSAGES
from immoverwaltung.models import MODELLE
from immoverwaltung.utils import parse_datum


class DatenStore(ABC):
    """Abstract store interface."""

    @abstractmethod
    def select(self, table: str, filter: Optional[dict] = None, order_by: str = None) -> list[dict]:
        """Return all rows matching the equality filter."""
        pass

    @abstractmethod
    def insert(self, table: str, rows: list[dict]) -> list[dict]:
        """Insert rows, return the inserted rows (with generated ids)."""
        pass

    @abstractmethod
    def update(self, table: str, filter: dict, patch: dict) -> list[dict]:
        """Apply patch to all rows matching filter, return updated rows."""
        pass

    @abstractmethod
    def delete(self, table: str, filter: dict) -> int:
        """Delete all rows matching filter, return number of deleted rows."""
        pass

    @contextmanager
    def transaction(self):
        """Run several operations atomically (no-op if unsupported)."""
        yield self


class SqlAlchemyStore(DatenStore):
    """Store backed by the Flask-SQLAlchemy session.

    Outside of transaction() every operation commits on its own. Inside,
    operations only flush and the transaction commits or rolls back as a whole.
    """

    def __init__(self, session=None):
        self.session = session if session is not None else db.session
        self._in_transaction = False

    @staticmethod
    def _model(table: str):
        model = MODELLE.get(table)
        if model is None:
            raise InvalidRequestError(COMMON_ERROR_MESSAGES['invalidTable'])
        return model

    @staticmethod
    def _to_row(obj) -> dict:
        return obj.to_dict()

    def _coerce(self, model, table: str, values: dict) -> dict:
        """Keep only mapped columns and convert ISO strings for date columns."""
        columns = model.__table__.columns
        result = {}
        for key, value in values.items():
            if key not in columns:
                continue
            if isinstance(columns[key].type, db.Date) and not isinstance(value, date):
                try:
                    value = parse_datum(value)
                except ValueError as e:
                    raise StoreError(table, 'invalidData', detail=str(e))
            result[key] = value
        return result

    def _query(self, model, table: str, filter: Optional[dict]):
        query = self.session.query(model)
        for key, value in (filter or {}).items():
            column = getattr(model, key, None)
            if column is None:
                raise InvalidRequestError(f'Unbekanntes Filterfeld: {key}')
            query = query.filter(column == value)
        return query

    def _finish(self, table: str, operation: str):
        """Commit (or flush inside a transaction), mapping errors to StoreError."""
        try:
            if self._in_transaction:
                self.session.flush()
            else:
                self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            current_app.logger.error(f'Store {operation} auf {table} fehlgeschlagen: {e}')
            raise StoreError(table, operation, detail=str(e.orig if hasattr(e, 'orig') and e.orig else e))

    def select(self, table: str, filter: Optional[dict] = None, order_by: str = None) -> list[dict]:
        model = self._model(table)
        try:
            query = self._query(model, table, filter)
            if order_by:
                desc = order_by.startswith('-')
                column = getattr(model, order_by.lstrip('-'))
                query = query.order_by(column.desc() if desc else column.asc())
            return [self._to_row(obj) for obj in query.all()]
        except SQLAlchemyError as e:
            self.session.rollback()
            current_app.logger.error(f'Store select auf {table} fehlgeschlagen: {e}')
            raise StoreError(table, 'fetch', detail=str(e))

    def insert(self, table: str, rows: list[dict]) -> list[dict]:
        model = self._model(table)
        objs = [model(**self._coerce(model, table, row)) for row in rows]
        self.session.add_all(objs)
        self._finish(table, 'create')
        return [self._to_row(obj) for obj in objs]

    def update(self, table: str, filter: dict, patch: dict) -> list[dict]:
        model = self._model(table)
        values = self._coerce(model, table, patch)
        values.pop('id', None)
        try:
            objs = self._query(model, table, filter).all()
            for obj in objs:
                for key, value in values.items():
                    setattr(obj, key, value)
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError(table, 'update', detail=str(e))
        self._finish(table, 'update')
        return [self._to_row(obj) for obj in objs]

    def delete(self, table: str, filter: dict) -> int:
        model = self._model(table)
        try:
            count = self._query(model, table, filter).delete(synchronize_session='fetch')
        except SQLAlchemyError as e:
            self.session.rollback()
            current_app.logger.error(f'Store delete auf {table} fehlgeschlagen: {e}')
            raise StoreError(table, 'delete', detail=str(e))
        self._finish(table, 'delete')
        return count

    @contextmanager
    def transaction(self):
        """Commit all operations of the block together or roll them back."""
        if self._in_transaction:
            yield self
            return

        self._in_transaction = True
        try:
            yield self
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            current_app.logger.error(f'Transaktion fehlgeschlagen: {e}')
            raise StoreError('beziehungen', 'update', detail=str(e))
        except Exception:
            self.session.rollback()
            raise
        finally:
            self._in_transaction = False


def get_store() -> SqlAlchemyStore:
    """Get a store bound to the current session."""
    return SqlAlchemyStore()
