from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from settlement.errors import SettlementError, StoreUnavailable
from settlement.extensions import db


@contextmanager
def atomic(action):
    """Commit the session when the block finishes; roll back on any error."""
    try:
        yield db.session
        db.session.commit()
    except SettlementError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StoreUnavailable(f"{action} failed; retry") from e
    except Exception:
        db.session.rollback()
        raise
