from __future__ import annotations

from ..extensions import db


class DocumentSequence(db.Model):
    """
    Per-day counters backing human-readable document numbers
    (purchase orders "PO-YYYYMMDD-NNNN", receipts "RCP-YYYYMMDD-NNNN").
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", "period", name="uq_document_sequences_type_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False)
    # YYYYMMDD
    period = db.Column(db.String(8), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
