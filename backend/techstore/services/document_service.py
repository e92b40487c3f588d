# Overview: Service-layer operations for document numbering; encapsulates business logic and database work.

from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from techstore.time_utils import today


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _current_number(document_type: str, period: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, period=period)
        .scalar()
    )


def next_document_number(
    *,
    document_type: str,
    prefix: str,
    on_date: date | None = None,
    pad: int = 4,
) -> str:
    """
    Atomically allocate the next number for a document type on a given day.

    Format: "<prefix>-YYYYMMDD-NNNN" (e.g. "PO-20261019-0003").

    Runs inside the caller's transaction; the first allocation of a day
    inserts the counter row under a savepoint so a concurrent insert only
    discards that savepoint.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    period = (on_date or today()).strftime("%Y%m%d")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.period == period,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_number(document_type, period) - 1
    else:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, period=period, next_number=2))
            next_num = 1
        except IntegrityError:
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            next_num = _current_number(document_type, period) - 1

    return f"{prefix}-{period}-{next_num:0{pad}d}"
