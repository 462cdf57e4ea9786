import logging
from contextlib import contextmanager
from functools import wraps
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import scoped_session, sessionmaker, declarative_base
from sqlalchemy.orm.exc import StaleDataError
from folio.configs import DB_URI, DEBUG
from folio.core.exceptions import StaleRecordError

logger = logging.getLogger(__name__)

# Postgres serialization_failure / deadlock_detected
CONTENTION_PGCODES = {'40001', '40P01'}


def make_engine(uri=DB_URI, **kwargs):
    engine_kwargs = {'echo': DEBUG}
    if uri.startswith('sqlite'):
        engine_kwargs['connect_args'] = {'check_same_thread': False}
    else:
        engine_kwargs['client_encoding'] = 'utf8'
    engine_kwargs.update(kwargs)
    return create_engine(uri, **engine_kwargs)

engine = make_engine()
session = scoped_session(sessionmaker(
    bind=engine, autocommit=False, autoflush=False))

class FolioBase:
    @classmethod
    def get(cls, key):
        return session.get(cls, key)

Base = declarative_base(cls=FolioBase)

def init(bind=None):
    try:
        Base.metadata.create_all(bind=bind or engine)
        return session
    except Exception as e:
        logger.warning(f"[WARNING] Database initialization failed: {e}")

def rebind(new_engine):
    """Points the scoped session at another engine (used by tests and
    scripts that need a database other than `DB_URI`).
    """
    global engine
    session.remove()
    session.configure(bind=new_engine)
    engine = new_engine
    return session

def teardown(func):
    """Releases the calling thread's session once `func` returns, so
    each request starts from a clean identity map.
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        finally:
            session.remove()
    return wrapper


def _is_contention(error):
    orig = getattr(error, 'orig', None)
    if getattr(orig, 'pgcode', None) in CONTENTION_PGCODES:
        return True
    return 'database is locked' in str(orig or error)


class Transaction:
    """Atomic read/conditional-write capability over the session.

    Reads always hit the database (and take a row lock where the
    backend supports `SELECT ... FOR UPDATE`). Pending changes are
    flushed first so a re-read never discards them. Writes are conditional:
    every versioned record is updated with `WHERE version = :expected`
    so a concurrent commit in between aborts this transaction.
    """

    def __init__(self, db):
        self.db = db

    def read(self, model, key, lock=True):
        if key is None:
            return None
        self.db.flush()
        return self.db.get(model, key, populate_existing=True, with_for_update=lock)

    def find(self, model, *criteria, order_by=None, lock=True):
        self.db.flush()
        q = self.db.query(model).populate_existing().filter(*criteria)
        if order_by is not None:
            if not isinstance(order_by, (list, tuple)):
                order_by = (order_by,)
            q = q.order_by(*order_by)
        if lock:
            q = q.with_for_update()
        return q.all()

    def first(self, model, *criteria, order_by=None, lock=True):
        rows = self.find(model, *criteria, order_by=order_by, lock=lock)
        return rows[0] if rows else None

    def count(self, model, *criteria):
        self.db.flush()
        return self.db.query(model).filter(*criteria).count()

    def write(self, record):
        self.db.add(record)
        return record

    def flush(self):
        self.db.flush()


@contextmanager
def atomic():
    """Runs the enclosed block as one all-or-nothing unit of work.

    Commits on success; on any failure rolls back and re-raises.
    Version mismatches, unique-constraint races and lock contention
    are surfaced as `StaleRecordError`.
    """
    tx = Transaction(session)
    try:
        yield tx
        session.commit()
    except StaleDataError as e:
        session.rollback()
        raise StaleRecordError("Record was modified concurrently; please retry.") from e
    except IntegrityError as e:
        session.rollback()
        raise StaleRecordError(f"Conflicting write rejected: {e.orig}") from e
    except OperationalError as e:
        session.rollback()
        if _is_contention(e):
            raise StaleRecordError("Transaction aborted by concurrent access; please retry.") from e
        raise
    except BaseException:
        session.rollback()
        raise
