"""
Storage interface consumed by the data-layer services.

The services never touch ``db.session`` directly; they talk to a
``StorageBackend``. ``SQLAlchemyStorage`` is the production adapter over a
Flask-SQLAlchemy session, and tests can substitute any other implementation
(or patch a single method) to inject failures without a live database.

Criteria are SQLAlchemy boolean clauses, e.g. ``Enrollment.user_id == uid``.
Tenant predicates are built by ``app.services.helpers.tenant_filter`` and
passed in like any other criterion.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager

from sqlalchemy import delete, func, select

logger = logging.getLogger(__name__)


class StorageBackend(ABC):
    """Abstract transactional store: the operations the data layer relies on."""

    @abstractmethod
    def insert(self, model, values: dict):
        """Insert one row and return it with generated columns populated."""

    @abstractmethod
    def update(self, model, values: dict, *criteria) -> list:
        """Apply *values* to every row matching *criteria*; return the updated rows."""

    @abstractmethod
    def delete(self, model, *criteria) -> int:
        """Delete rows matching *criteria*; return the affected count."""

    @abstractmethod
    def find_first(self, model, *criteria, order_by=()):
        """Return the first matching row or None."""

    @abstractmethod
    def find_many(self, model, *criteria, order_by=(), limit=None, offset=None) -> list:
        """Return matching rows in *order_by* order, windowed by limit/offset."""

    @abstractmethod
    def count(self, model, *criteria) -> int:
        """Count rows matching *criteria*."""

    @abstractmethod
    def aggregate(self, stmt) -> list:
        """Execute an aggregate SELECT and return its rows."""

    @abstractmethod
    def unit_of_work(self):
        """Context manager: commit on clean exit, roll back on exception."""


class SQLAlchemyStorage(StorageBackend):
    """StorageBackend over a SQLAlchemy (Flask-SQLAlchemy) session."""

    def __init__(self, session):
        self.session = session
        self._depth = 0

    def insert(self, model, values):
        row = model(**values)
        self.session.add(row)
        self.session.flush()
        return row

    def update(self, model, values, *criteria):
        rows = self.find_many(model, *criteria)
        for row in rows:
            for key, value in values.items():
                setattr(row, key, value)
        if rows:
            self.session.flush()
        return rows

    def delete(self, model, *criteria):
        result = self.session.execute(
            delete(model).where(*criteria).execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

    def find_first(self, model, *criteria, order_by=()):
        stmt = select(model).where(*criteria).order_by(*order_by).limit(1)
        return self.session.execute(stmt).scalars().first()

    def find_many(self, model, *criteria, order_by=(), limit=None, offset=None):
        stmt = select(model).where(*criteria).order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        if offset:
            stmt = stmt.offset(offset)
        return list(self.session.execute(stmt).scalars().all())

    def count(self, model, *criteria):
        stmt = select(func.count()).select_from(model).where(*criteria)
        return self.session.execute(stmt).scalar_one()

    def aggregate(self, stmt):
        return self.session.execute(stmt).all()

    @contextmanager
    def unit_of_work(self):
        # Nested units join the outermost one; only it commits.
        self._depth += 1
        try:
            yield self
            if self._depth == 1:
                self.session.commit()
        except Exception:
            if self._depth == 1:
                self.session.rollback()
            raise
        finally:
            self._depth -= 1
