"""Beziehung (Relationship) model between Immobilie and Kontakt.

This module contains the Beziehung model, the enums for relationship kind
and edited side, and BeziehungEntwurf, the transient record used while a
relationship list is edited in a form and before it is persisted.

The display labels ``immobilien_titel`` and ``kontakt_name`` are a read-side
projection. They are never stored and are stripped before every write.
"""
from dataclasses import dataclass, asdict, fields
from datetime import datetime
from enum import Enum
from typing import Optional

from immoverwaltung import db
from immoverwaltung.errors import COMMON_ERROR_MESSAGES, InvalidRequestError
from immoverwaltung.utils import new_uuid, is_valid_uuid, parse_datum, format_datum

# Felder, die nur der Anzeige dienen und nie geschrieben werden
DENORMALISIERTE_FELDER = ('id', 'immobilien_titel', 'kontakt_name')


class BeziehungsArt(str, Enum):
    """Kinds of relationship between a Kontakt and an Immobilie."""
    EIGENTUEMER = 'Eigentümer'
    MIETER = 'Mieter'
    DIENSTLEISTER = 'Dienstleister'

    @classmethod
    def werte(cls):
        """Return all valid values."""
        return tuple(a.value for a in cls)

    @classmethod
    def choices(cls):
        """Return choices for form select fields."""
        return [(a.value, cls.get_label(a.value)) for a in cls]

    @classmethod
    def get_label(cls, value):
        """Get the German label for a relationship kind value."""
        labels = {
            cls.EIGENTUEMER.value: 'Eigentümer',
            cls.MIETER.value: 'Mieter',
            cls.DIENSTLEISTER.value: 'Dienstleister',
        }
        return labels.get(value, value)

    @classmethod
    def ist_exklusiv(cls, value) -> bool:
        """Whether date ranges of this kind must not overlap per entity.

        Currently only Mieter relationships are exclusive.
        """
        return value == cls.MIETER.value


class BeziehungSeite(str, Enum):
    """Side from which a relationship list is edited."""
    IMMOBILIEN = 'immobilien'
    KONTAKTE = 'kontakte'

    @property
    def eigener_schluessel(self) -> str:
        """Foreign key column holding the edited entity's id."""
        return 'immobilien_id' if self is BeziehungSeite.IMMOBILIEN else 'kontakt_id'

    @property
    def gegen_schluessel(self) -> str:
        """Foreign key column holding the user-selected counterpart id."""
        return 'kontakt_id' if self is BeziehungSeite.IMMOBILIEN else 'immobilien_id'


def _id_or_none(value) -> Optional[str]:
    if value is None or value == '':
        return None
    return str(value)


@dataclass
class BeziehungEntwurf:
    """A relationship as edited in a form (pending or already persisted).

    Dates stay as submitted (ISO strings or date objects) so that the
    validator can report unparseable values as field errors.
    """
    art: Optional[str] = None
    id: Optional[str] = None
    immobilien_id: Optional[str] = None
    kontakt_id: Optional[str] = None
    startdatum: Optional[object] = None
    enddatum: Optional[object] = None
    dienstleistungen: Optional[str] = None
    immobilien_titel: Optional[str] = None
    kontakt_name: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'BeziehungEntwurf':
        """Build from a JSON/form dictionary, ignoring unknown keys.

        Raises:
            InvalidRequestError: If data is not a dictionary
        """
        if isinstance(data, cls):
            return data
        if not isinstance(data, dict):
            raise InvalidRequestError(COMMON_ERROR_MESSAGES['invalidRequestData'])
        bekannte = {f.name for f in fields(cls)}
        werte = {k: v for k, v in data.items() if k in bekannte}
        for schluessel in ('id', 'immobilien_id', 'kontakt_id'):
            werte[schluessel] = _id_or_none(werte.get(schluessel))
        for schluessel in ('startdatum', 'enddatum'):
            if werte.get(schluessel) == '':
                werte[schluessel] = None
        art = werte.get('art')
        if isinstance(art, BeziehungsArt):
            werte['art'] = art.value
        return cls(**werte)

    @classmethod
    def from_model(cls, beziehung: 'Beziehung') -> 'BeziehungEntwurf':
        """Build from a persisted Beziehung, including the display labels."""
        return cls(
            art=beziehung.art,
            id=beziehung.id,
            immobilien_id=beziehung.immobilien_id,
            kontakt_id=beziehung.kontakt_id,
            startdatum=beziehung.startdatum,
            enddatum=beziehung.enddatum,
            dienstleistungen=beziehung.dienstleistungen,
            immobilien_titel=beziehung.immobilie.titel if beziehung.immobilie else None,
            kontakt_name=beziehung.kontakt.name if beziehung.kontakt else None,
        )

    @property
    def ist_temporaer(self) -> bool:
        """True if the id is absent or a client placeholder (e.g. 'temp-…')."""
        return not is_valid_uuid(self.id)

    @property
    def start(self):
        """Parsed startdatum (raises ValueError on invalid input)."""
        return parse_datum(self.startdatum)

    @property
    def ende(self):
        """Parsed enddatum (raises ValueError on invalid input)."""
        return parse_datum(self.enddatum)

    def gegenseite_id(self, seite: BeziehungSeite) -> Optional[str]:
        """Id of the user-selected counterpart for the edited side."""
        return getattr(self, seite.gegen_schluessel)

    def ist_vollstaendig(self, seite: BeziehungSeite) -> bool:
        """Whether art and the counterpart id are set."""
        return bool(self.art) and bool(self.gegenseite_id(seite))

    def to_row(self, entity_id: str, seite: BeziehungSeite) -> dict:
        """Build the row written to the store.

        The edited entity's id is substituted into its foreign key column,
        denormalized fields are dropped and dienstleistungen is only kept
        for Dienstleister relationships.
        """
        seite = BeziehungSeite(seite)
        dienstleistungen = None
        if self.art == BeziehungsArt.DIENSTLEISTER.value and self.dienstleistungen:
            dienstleistungen = str(self.dienstleistungen).strip()

        row = {k: v for k, v in asdict(self).items() if k not in DENORMALISIERTE_FELDER}
        row['startdatum'] = format_datum(self.start)
        row['enddatum'] = format_datum(self.ende)
        row['dienstleistungen'] = dienstleistungen
        row[seite.eigener_schluessel] = str(entity_id)
        return row

    def to_dict(self) -> dict:
        """Return dictionary representation."""
        data = asdict(self)
        for schluessel in ('startdatum', 'enddatum'):
            wert = data[schluessel]
            if hasattr(wert, 'isoformat'):
                data[schluessel] = wert.isoformat()
        return data


class Beziehung(db.Model):
    """Persisted relationship between one Immobilie and one Kontakt."""
    __tablename__ = 'beziehungen'

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    immobilien_id = db.Column(
        db.String(36), db.ForeignKey('immobilien.id', ondelete='CASCADE'),
        nullable=False, index=True
    )
    kontakt_id = db.Column(
        db.String(36), db.ForeignKey('kontakte.id', ondelete='CASCADE'),
        nullable=False, index=True
    )

    # Values: Eigentümer, Mieter, Dienstleister
    art = db.Column(db.String(20), nullable=False, index=True)

    startdatum = db.Column(db.Date, nullable=True)
    enddatum = db.Column(db.Date, nullable=True)

    # Nur für art == Dienstleister
    dienstleistungen = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    immobilie = db.relationship('Immobilie', back_populates='beziehungen')
    kontakt = db.relationship('Kontakt', back_populates='beziehungen')

    __table_args__ = (
        db.CheckConstraint(
            'art IN ({})'.format(', '.join(f"'{a}'" for a in BeziehungsArt.werte())),
            name='ck_beziehungen_art'
        ),
        db.CheckConstraint(
            'startdatum IS NULL OR enddatum IS NULL OR startdatum <= enddatum',
            name='ck_beziehungen_zeitraum'
        ),
    )

    def __repr__(self):
        return f'<Beziehung {self.art} immobilie={self.immobilien_id} kontakt={self.kontakt_id}>'

    def to_dict(self, include_labels=False):
        """Return dictionary representation.

        Args:
            include_labels: Add immobilien_titel and kontakt_name (read-only)
        """
        data = {
            'id': self.id,
            'immobilien_id': self.immobilien_id,
            'kontakt_id': self.kontakt_id,
            'art': self.art,
            'startdatum': format_datum(self.startdatum),
            'enddatum': format_datum(self.enddatum),
            'dienstleistungen': self.dienstleistungen,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
        if include_labels:
            data['immobilien_titel'] = self.immobilie.titel if self.immobilie else None
            data['kontakt_name'] = self.kontakt.name if self.kontakt else None
        return data
