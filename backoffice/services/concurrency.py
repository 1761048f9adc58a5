# backoffice/services/concurrency.py
import logging
import time

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from backoffice.config import settings
from backoffice.errors import Conflict, Unavailable

logger = logging.getLogger(__name__)

MAX_BACKOFF_SECONDS = 1.0


def run_with_retry(db: Session, func, *, attempts: int = None, backoff_base: float = None,
                   conflict_error=Conflict):
    """
    Run a unit of work and commit it, retrying on concurrency failures.

    ``func`` must do all of its reads inside the call so that a retry sees
    fresh state. IntegrityError (a unique constraint lost a race) and
    StaleDataError surface as ``conflict_error`` once attempts run out;
    a persistent OperationalError (locked or unreachable database) surfaces
    as Unavailable.
    """
    attempts = attempts or settings.RETRY_ATTEMPTS
    backoff_base = settings.RETRY_BACKOFF_SECONDS if backoff_base is None else backoff_base

    for attempt in range(attempts):
        try:
            result = func()
            db.commit()
            return result
        except (IntegrityError, StaleDataError) as exc:
            db.rollback()
            logger.warning("Write conflict (attempt %s/%s): %s", attempt + 1, attempts, exc.__class__.__name__)
            if attempt >= attempts - 1:
                raise conflict_error() from exc
        except OperationalError as exc:
            db.rollback()
            logger.warning("Database busy (attempt %s/%s): %s", attempt + 1, attempts, exc.__class__.__name__)
            if attempt >= attempts - 1:
                raise Unavailable() from exc
        except Exception:
            db.rollback()
            raise
        time.sleep(min(backoff_base * (2 ** attempt), MAX_BACKOFF_SECONDS))
