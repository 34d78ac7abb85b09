"""Immobilie (Property) model."""
from datetime import datetime

from immoverwaltung import db
from immoverwaltung.utils import new_uuid


class Immobilie(db.Model):
    """Property with its owners, tenants and service providers."""
    __tablename__ = 'immobilien'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    titel = db.Column(db.String(200), nullable=False)
    beschreibung = db.Column(db.Text)
    adresse = db.Column(db.String(500))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    beziehungen = db.relationship(
        'Beziehung',
        back_populates='immobilie',
        cascade='all, delete-orphan',
        passive_deletes=True,
    )

    def __repr__(self):
        return f'<Immobilie {self.titel}>'

    def to_dict(self):
        """Return dictionary representation."""
        return {
            'id': self.id,
            'titel': self.titel,
            'beschreibung': self.beschreibung,
            'adresse': self.adresse,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
