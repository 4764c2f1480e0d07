from __future__ import annotations

from ..extensions import db
from ferreteria.time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic document sequences, one row per document type.

    WHY: "find the last sale number and add one" races under concurrent
    inserts. next_number is bumped with a single UPDATE inside the
    caller's unit of work, so a rolled-back sale releases its number.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", name="uq_doc_sequences_type"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
