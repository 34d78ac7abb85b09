"""AuditLog model for tracking important events across all modules."""
from datetime import datetime
from immoverwaltung import db


class AuditLog(db.Model):
    """Audit log entry for tracking important events.

    Events are categorized by importance (niedrig, mittel, hoch, kritisch)
    and can be filtered by module, entity and date range.

    Entity ids are kept after the entity itself is deleted.
    """
    __tablename__ = 'audit_log'

    id = db.Column(db.Integer, primary_key=True)
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, index=True, nullable=False)

    # In which module? Values: kontakte, immobilien, beziehungen, system
    modul = db.Column(db.String(50), nullable=False, index=True)

    # What happened?
    aktion = db.Column(db.String(100), nullable=False, index=True)
    details = db.Column(db.Text, nullable=True)

    # How important?
    # Values: niedrig, mittel, hoch, kritisch
    wichtigkeit = db.Column(db.String(20), default='niedrig', index=True, nullable=False)

    # Which entity was affected?
    entity_type = db.Column(db.String(50), nullable=True)  # e.g. 'Kontakt', 'Immobilie'
    entity_id = db.Column(db.String(36), nullable=True)

    ip_adresse = db.Column(db.String(45), nullable=True)  # IPv6 compatible

    def __repr__(self):
        return f'<AuditLog {self.id}: {self.aktion} @ {self.timestamp}>'

    def to_dict(self):
        """Return dictionary representation."""
        return {
            'id': self.id,
            'timestamp': self.timestamp.isoformat() if self.timestamp else None,
            'modul': self.modul,
            'aktion': self.aktion,
            'details': self.details,
            'wichtigkeit': self.wichtigkeit,
            'entity_type': self.entity_type,
            'entity_id': self.entity_id,
        }
