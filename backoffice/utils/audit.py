import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backoffice.models.log import Log

logger = logging.getLogger(__name__)


def write_log(db: Session, *, actor, action, resource, status="SUCCESS", ip=None, meta=None):
    """Append an audit entry. Called after the business change has been committed."""
    entry = Log(actor=actor, action=action, resource=resource, status=status, ip=ip, meta=meta or {})
    db.add(entry)
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        # The change itself is already committed; losing the audit row must not fail the request
        logger.exception("Failed to write audit log %s/%s", resource, action)
