"""Generic data access over a single SQLAlchemy model.

Each repository subclass names its model explicitly::

    class AppointmentRepository(BaseRepository[Appointment]):
        model = Appointment

Filters are plain SQLAlchemy criteria (``Appointment.status == ...``) so
callers keep full query expressiveness without string-keyed lookups.
"""

import logging
import math
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Generic, Iterable, Sequence, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from ashram.core.errors import RecordNotFoundError


logger = logging.getLogger(__name__)

ModelT = TypeVar('ModelT')


@dataclass
class PaginatedResult(Generic[ModelT]):
    data: list[ModelT]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1


class BaseRepository(Generic[ModelT]):
    model: type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    @property
    def model_name(self) -> str:
        return self.model.__name__

    @contextmanager
    def _operation(self, name: str, write: bool = False):
        try:
            yield
        except SQLAlchemyError:
            if write:
                self.db.rollback()
            logger.exception('%s repository - %s failed', self.model_name, name)
            raise

    def _query(self, filters: Iterable[Any] = (), options: Iterable[Any] = ()) -> Query:
        query = self.db.query(self.model)
        filters = list(filters)
        if filters:
            query = query.filter(*filters)
        options = list(options)
        if options:
            query = query.options(*options)
        return query

    def find_by_id(self, record_id: str, options: Iterable[Any] = ()) -> ModelT | None:
        with self._operation('find_by_id'):
            return self._query((self.model.id == record_id,), options).first()

    def find_many(
        self,
        filters: Iterable[Any] = (),
        order_by: Sequence[Any] = (),
        limit: int | None = None,
        offset: int | None = None,
        options: Iterable[Any] = (),
    ) -> list[ModelT]:
        with self._operation('find_many'):
            query = self._query(filters, options)
            if order_by:
                query = query.order_by(*order_by)
            if offset:
                query = query.offset(offset)
            if limit is not None:
                query = query.limit(limit)
            return query.all()

    def find_first(self, filters: Iterable[Any] = (), order_by: Sequence[Any] = ()) -> ModelT | None:
        with self._operation('find_first'):
            query = self._query(filters)
            if order_by:
                query = query.order_by(*order_by)
            return query.first()

    def create(self, data: dict[str, Any]) -> ModelT:
        with self._operation('create', write=True):
            record = self.model(**data)
            self.db.add(record)
            self.db.commit()
            self.db.refresh(record)
            return record

    def create_many(self, rows: Sequence[dict[str, Any]]) -> int:
        with self._operation('create_many', write=True):
            records = [self.model(**row) for row in rows]
            self.db.add_all(records)
            self.db.commit()
            return len(records)

    def update(self, record_id: str, data: dict[str, Any]) -> ModelT:
        with self._operation('update', write=True):
            record = self._query((self.model.id == record_id,)).first()
            if record is None:
                raise RecordNotFoundError(self.model_name, record_id)
            for field, value in data.items():
                setattr(record, field, value)
            self.db.commit()
            self.db.refresh(record)
            return record

    def update_many(self, filters: Iterable[Any], data: dict[str, Any]) -> int:
        with self._operation('update_many', write=True):
            count = self._query(filters).update(data, synchronize_session='fetch')
            self.db.commit()
            return count

    def delete(self, record_id: str) -> ModelT:
        with self._operation('delete', write=True):
            record = self._query((self.model.id == record_id,)).first()
            if record is None:
                raise RecordNotFoundError(self.model_name, record_id)
            self.db.delete(record)
            self.db.commit()
            return record

    def delete_many(self, filters: Iterable[Any]) -> int:
        with self._operation('delete_many', write=True):
            count = self._query(filters).delete(synchronize_session='fetch')
            self.db.commit()
            return count

    def count(self, filters: Iterable[Any] = ()) -> int:
        with self._operation('count'):
            return self._query(filters).count()

    def exists(self, filters: Iterable[Any] = ()) -> bool:
        return self.count(filters) > 0

    def find_many_with_pagination(
        self,
        page: int,
        limit: int,
        filters: Iterable[Any] = (),
        order_by: Sequence[Any] = (),
        options: Iterable[Any] = (),
    ) -> PaginatedResult[ModelT]:
        filters = list(filters)
        page = max(page, 1)
        data = self.find_many(filters, order_by, limit=limit, offset=(page - 1) * limit, options=options)
        total = self.count(filters)
        return PaginatedResult(data=data, page=page, limit=limit, total=total)
