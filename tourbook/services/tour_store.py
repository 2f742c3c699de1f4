import logging
import re
import sqlalchemy as sa
from flask import current_app
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from tourbook import db
from tourbook.models.property import Property
from tourbook.models.tour import Tour
from tourbook.services.tour_status import ACTIVE_STATUSES, LANDLORD

logger = logging.getLogger(__name__)

UNDEFINED_COLUMN = '42703'
INSUFFICIENT_PRIVILEGE = '42501'

_PERMISSION_PATTERN = re.compile(r'row[- ]level security|permission denied|insufficient privilege', re.IGNORECASE)


class StoreError(Exception):
    """A tour write failed at the storage layer"""

    def __init__(self, message, original=None, missing_column=None, permission_denied=False, unavailable=False):
        super().__init__(message)
        self.original = original
        self.missing_column = missing_column
        self.permission_denied = permission_denied
        self.unavailable = unavailable


def _sqlstate(error):
    orig = getattr(error, 'orig', None)
    return getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)


def classify_error(error, optional_columns=()):
    """Wrap a SQLAlchemy error, flagging missing optional columns and policy denials"""
    message = str(getattr(error, 'orig', None) or error)
    code = _sqlstate(error) if isinstance(error, DBAPIError) else None

    missing = None
    for column in optional_columns:
        column_pattern = re.compile(
            rf'column\s+"?{column}"?|has no column named {column}|unknown column \'?{column}',
            re.IGNORECASE,
        )
        if column_pattern.search(message) and (code in (None, UNDEFINED_COLUMN)):
            missing = column
            break

    denied = code == INSUFFICIENT_PRIVILEGE or bool(_PERMISSION_PATTERN.search(message))
    return StoreError(message, original=error, missing_column=missing, permission_denied=denied)


class TourStore:
    """Query interface over the tours table: fetch, filter, insert, update"""

    OPTIONAL_COLUMNS = ('notes',)

    def __init__(self, session=None, service_url=None):
        self.session = session or db.session
        self._service_url = service_url
        self._service_engine = None

    def get(self, tour_id):
        if not tour_id:
            return None
        return self.session.get(Tour, str(tour_id))

    def get_property(self, property_id):
        if not property_id:
            return None
        return self.session.get(Property, str(property_id))

    def find_active_at(self, property_id, scheduled_at, exclude_tour_id=None):
        query = self.session.query(Tour.id).filter(
            Tour.property_id == str(property_id),
            Tour.scheduled_at == scheduled_at,
            Tour.status.in_(ACTIVE_STATUSES),
        )
        if exclude_tour_id is not None:
            query = query.filter(Tour.id != str(exclude_tour_id))
        return [row.id for row in query.all()]

    def filter(self, user_id, role, status=None, scheduled_after=None, limit=None):
        column = Tour.landlord_id if role == LANDLORD else Tour.tenant_id
        query = self.session.query(Tour).filter(column == str(user_id))

        if status:
            query = query.filter(Tour.status == status)
        if scheduled_after is not None:
            query = query.filter(Tour.scheduled_at >= scheduled_after)

        query = query.order_by(Tour.scheduled_at.asc())
        if limit:
            query = query.limit(limit)
        return query.all()

    def insert(self, values, privileged=False):
        """Insert one tour row; raises StoreError on failure"""
        stmt = sa.insert(Tour.__table__).values(**values)

        if privileged:
            engine = self._privileged_engine()
            if engine is None:
                raise StoreError('Privileged database connection is not configured', unavailable=True)
            try:
                with engine.begin() as connection:
                    connection.execute(stmt)
            except SQLAlchemyError as e:
                raise classify_error(e, self.OPTIONAL_COLUMNS)
            return values.get('id')

        try:
            self.session.execute(stmt)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise classify_error(e, self.OPTIONAL_COLUMNS)
        return values.get('id')

    def update(self, tour_id, values):
        """Update one tour row; returns True when the row was written"""
        table = Tour.__table__
        stmt = sa.update(table).where(table.c.id == str(tour_id)).values(**values)
        return self._execute_update(stmt)

    def update_if_slot_free(self, tour_id, property_id, scheduled_at, values):
        """Update a tour only if no other active tour holds the slot.

        The slot check and the write run as one statement, so two requests
        racing for the same slot cannot both succeed.
        """
        table = Tour.__table__
        other = table.alias('other_tours')
        clash = sa.exists().where(
            other.c.property_id == str(property_id),
            other.c.scheduled_at == scheduled_at,
            other.c.status.in_(ACTIVE_STATUSES),
            other.c.id != str(tour_id),
        )
        stmt = (
            sa.update(table)
            .where(table.c.id == str(tour_id))
            .where(~clash)
            .values(**values)
        )
        return self._execute_update(stmt)

    def _execute_update(self, stmt):
        try:
            result = self.session.execute(stmt)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise classify_error(e)
        return result.rowcount == 1

    def _privileged_engine(self):
        if self._service_engine is not None:
            return self._service_engine

        url = self._service_url or current_app.config.get('SERVICE_DATABASE_URL')
        if not url:
            return None

        engines = current_app.extensions.setdefault('tourbook_service_engines', {})
        if url not in engines:
            logger.info("Creating privileged database engine for tour writes")
            engines[url] = sa.create_engine(url, pool_pre_ping=True)
        self._service_engine = engines[url]
        return self._service_engine
