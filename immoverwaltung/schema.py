"""Form field schema for Kontakte, Immobilien and Beziehungen.

Every form is a list of FormFeld records with an explicit field type, so
the UI can render inputs without guessing from untyped data. The schema is
also used server-side to check required fields and to whitelist writable
columns.
"""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import List, Optional

from immoverwaltung.models import BeziehungsArt


class FeldTyp(str, Enum):
    """Input types of form fields."""
    TEXT = 'text'
    TEXTAREA = 'textarea'
    NUMBER = 'number'
    DATE = 'date'
    SELECT = 'select'
    ADDRESS = 'address'
    IMMOBILIE = 'immobilie'
    KONTAKT = 'kontakt'
    RELATIONSHIPS = 'relationships'


@dataclass
class Bedingung:
    """Show a field only if another field has a given value."""
    field: str
    value: str


@dataclass
class FormFeld:
    """Definition of one form field."""
    name: str
    label: str
    typ: FeldTyp
    required: bool = False
    options: List[dict] = field(default_factory=list)
    placeholder: Optional[str] = None
    beziehung_seite: Optional[str] = None  # for RELATIONSHIPS fields
    bedingung: Optional[Bedingung] = None

    @property
    def ist_beziehungsfeld(self) -> bool:
        return self.typ is FeldTyp.RELATIONSHIPS

    def to_dict(self) -> dict:
        data = asdict(self)
        data['type'] = self.typ.value
        del data['typ']
        data['relationshipType'] = data.pop('beziehung_seite')
        data['conditional'] = data.pop('bedingung')
        return data


ART_OPTIONEN = [{'value': wert, 'label': label} for wert, label in BeziehungsArt.choices()]

FORMULARE = {
    'immobilien': [
        FormFeld('titel', 'Titel', FeldTyp.TEXT, required=True,
                 placeholder='Immobilientitel eingeben'),
        FormFeld('beschreibung', 'Beschreibung', FeldTyp.TEXTAREA,
                 placeholder='Beschreibung eingeben'),
        FormFeld('adresse', 'Adresse', FeldTyp.ADDRESS, placeholder='Adresse suchen'),
        FormFeld('relationships', 'Beziehungen', FeldTyp.RELATIONSHIPS,
                 beziehung_seite='immobilien'),
    ],
    'kontakte': [
        FormFeld('name', 'Name', FeldTyp.TEXT, required=True, placeholder='Name eingeben'),
        FormFeld('adresse', 'Adresse', FeldTyp.ADDRESS, placeholder='Adresse suchen'),
        FormFeld('email', 'E-Mail', FeldTyp.TEXT),
        FormFeld('telefon', 'Telefon', FeldTyp.TEXT),
        FormFeld('notizen', 'Notizen', FeldTyp.TEXTAREA),
        FormFeld('relationships', 'Beziehungen', FeldTyp.RELATIONSHIPS,
                 beziehung_seite='kontakte'),
    ],
    'beziehungen': [
        FormFeld('immobilien_id', 'Immobilie', FeldTyp.IMMOBILIE, required=True),
        FormFeld('kontakt_id', 'Kontakt', FeldTyp.KONTAKT, required=True),
        FormFeld('art', 'Art', FeldTyp.SELECT, required=True, options=ART_OPTIONEN),
        FormFeld('startdatum', 'Startdatum', FeldTyp.DATE),
        FormFeld('enddatum', 'Enddatum', FeldTyp.DATE),
        FormFeld('dienstleistungen', 'Dienstleistungen', FeldTyp.TEXTAREA, required=True,
                 bedingung=Bedingung('art', BeziehungsArt.DIENSTLEISTER.value)),
    ],
}


def should_show_field(feld: FormFeld, daten: dict) -> bool:
    """Whether a conditional field is visible for the given form data."""
    if feld.bedingung is None:
        return True
    return daten.get(feld.bedingung.field) == feld.bedingung.value


def pflichtfelder_pruefen(table: str, daten: dict, nur_vorhandene: bool = False) -> dict:
    """Check required fields of a form.

    Hidden conditional fields are not required.

    Args:
        table: Table name ('kontakte', 'immobilien', 'beziehungen')
        daten: Submitted form data
        nur_vorhandene: Only check fields present in daten (PATCH semantics)

    Returns:
        Dict field name -> error message (empty if all required fields are set)
    """
    fehler = {}
    for feld in FORMULARE[table]:
        if not feld.required or feld.ist_beziehungsfeld:
            continue
        if nur_vorhandene and feld.name not in daten:
            continue
        if not should_show_field(feld, daten):
            continue
        wert = daten.get(feld.name)
        if wert is None or (isinstance(wert, str) and not wert.strip()):
            fehler[feld.name] = f'{feld.label} ist erforderlich.'
    return fehler


def schreibbare_felder(table: str) -> tuple:
    """Column names a client may write for a table."""
    return tuple(f.name for f in FORMULARE[table] if not f.ist_beziehungsfeld)


def schema_fuer(table: str) -> list[dict]:
    """Serializable schema of a form."""
    return [f.to_dict() for f in FORMULARE[table]]
