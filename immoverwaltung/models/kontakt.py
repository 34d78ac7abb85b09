"""Kontakt (Contact) model."""
from datetime import datetime

from immoverwaltung import db
from immoverwaltung.utils import new_uuid


class Kontakt(db.Model):
    """Contact: owner, tenant or service provider of properties."""
    __tablename__ = 'kontakte'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    name = db.Column(db.String(200), nullable=False)

    # Freitext-Adresse (aus der Adresssuche übernommen)
    adresse = db.Column(db.String(500))

    email = db.Column(db.String(200))
    telefon = db.Column(db.String(50))
    notizen = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, onupdate=datetime.utcnow)

    beziehungen = db.relationship(
        'Beziehung',
        back_populates='kontakt',
        cascade='all, delete-orphan',
        passive_deletes=True,
    )

    def __repr__(self):
        return f'<Kontakt {self.name}>'

    def to_dict(self):
        """Return dictionary representation."""
        return {
            'id': self.id,
            'name': self.name,
            'adresse': self.adresse,
            'email': self.email,
            'telefon': self.telefon,
            'notizen': self.notizen,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }
