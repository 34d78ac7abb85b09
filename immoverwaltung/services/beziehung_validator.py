"""Validation rules for relationships between Kontakte and Immobilien.

The validator is a pure function over the data it is given. The form-local
check compares a candidate with relationships already held in memory; the
pre-submit check (validate_beziehungen_gegen_store) compares against the
persisted state, which also covers relationships created by other sessions.
"""
from dataclasses import dataclass, field, replace
from typing import Iterable, List, Optional, Union

from immoverwaltung.errors import StoreError
from immoverwaltung.models import BeziehungEntwurf, BeziehungsArt, BeziehungSeite
from immoverwaltung.services.konflikt_pruefung import has_overlap

MELDUNG_ART_FEHLT = 'Beziehungstyp ist erforderlich.'
MELDUNG_ART_UNGUELTIG = 'Ungültiger Beziehungstyp: {art}'
MELDUNG_ENTITY_FEHLT = 'Kontakt/Immobilie ist erforderlich.'
MELDUNG_DIENSTLEISTUNGEN = 'Dienstleistungen sind für Dienstleister-Beziehungen erforderlich.'
MELDUNG_MIETKONFLIKT = 'Mieter ist in diesem Zeitraum schon zur Miete'
MELDUNG_ZEITRAUM = 'Enddatum muss nach dem Startdatum liegen.'
MELDUNG_DATUM_UNGUELTIG = 'Ungültiges Datum.'
MELDUNG_BESTEHENDE_FEHLER = 'Fehler beim Abrufen bestehender Beziehungen'


@dataclass
class FieldError:
    """A validation error attached to one form field (or 'general')."""
    field: str
    message: str

    def to_dict(self) -> dict:
        return {'field': self.field, 'message': self.message}


@dataclass
class ValidationResult:
    """Result of validating one or more relationships."""
    errors: List[FieldError] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add(self, field_name: str, message: str):
        """Add an error."""
        self.errors.append(FieldError(field_name, message))

    def extend(self, other: 'ValidationResult'):
        """Add all errors of another result."""
        self.errors.extend(other.errors)

    def errors_by_field(self) -> dict:
        """Map field name to message (last error per field wins)."""
        return {e.field: e.message for e in self.errors}

    def to_dict(self) -> dict:
        return {
            'isValid': self.is_valid,
            'errors': [e.to_dict() for e in self.errors],
        }


Kandidat = Union[BeziehungEntwurf, dict]


class BeziehungValidator:
    """Rule engine for a single candidate relationship.

    All rules run independently so that every applicable error is reported
    at once.
    """

    def validate(
        self,
        kandidat: Kandidat,
        bestehende: Optional[Iterable[Kandidat]] = None,
        seite: Union[BeziehungSeite, str] = BeziehungSeite.IMMOBILIEN
    ) -> ValidationResult:
        """Validate a candidate against the existing relationships.

        Args:
            kandidat: Relationship to check (id may be missing or temporary)
            bestehende: Relationships already accepted in the form or persisted
            seite: Side of the edited entity ('immobilien' or 'kontakte')

        Returns:
            ValidationResult with field errors
        """
        kandidat = BeziehungEntwurf.from_dict(kandidat)
        bestehende = [BeziehungEntwurf.from_dict(b) for b in (bestehende or [])]
        seite = BeziehungSeite(seite)

        result = ValidationResult()
        self._validate_art(kandidat, result)
        self._validate_entity(kandidat, seite, result)
        self._validate_dienstleistungen(kandidat, result)

        start, ende, daten_ok = self._parse_daten(kandidat, result)
        if daten_ok:
            self._validate_mietkonflikt(kandidat, start, ende, bestehende, seite, result)
            self._validate_zeitraum(start, ende, result)

        return result

    def _validate_art(self, kandidat: BeziehungEntwurf, result: ValidationResult):
        if not kandidat.art:
            result.add('art', MELDUNG_ART_FEHLT)
        elif kandidat.art not in BeziehungsArt.werte():
            result.add('art', MELDUNG_ART_UNGUELTIG.format(art=kandidat.art))

    def _validate_entity(self, kandidat: BeziehungEntwurf, seite: BeziehungSeite,
                         result: ValidationResult):
        if not kandidat.gegenseite_id(seite):
            result.add('entity', MELDUNG_ENTITY_FEHLT)

    def _validate_dienstleistungen(self, kandidat: BeziehungEntwurf, result: ValidationResult):
        if kandidat.art != BeziehungsArt.DIENSTLEISTER.value:
            return
        wert = kandidat.dienstleistungen
        if not isinstance(wert, str) or not wert.strip():
            result.add('dienstleistungen', MELDUNG_DIENSTLEISTUNGEN)

    def _parse_daten(self, kandidat: BeziehungEntwurf, result: ValidationResult):
        """Parse both dates; unparseable values become field errors."""
        ok = True
        start = ende = None
        try:
            start = kandidat.start
        except ValueError:
            result.add('startdatum', MELDUNG_DATUM_UNGUELTIG)
            ok = False
        try:
            ende = kandidat.ende
        except ValueError:
            result.add('enddatum', MELDUNG_DATUM_UNGUELTIG)
            ok = False
        return start, ende, ok

    def _validate_mietkonflikt(self, kandidat, start, ende, bestehende, seite, result):
        """Check overlapping Mieter intervals on the edited side.

        Only runs when the candidate has both dates. Existing entries are
        compared when they share the edited side's key; the candidate's own
        id is excluded so that edit-in-place does not conflict with itself.
        """
        if not BeziehungsArt.ist_exklusiv(kandidat.art) or start is None or ende is None:
            return

        schluessel = seite.eigener_schluessel
        zeitraeume = []
        for b in bestehende:
            if not BeziehungsArt.ist_exklusiv(b.art):
                continue
            if kandidat.id is not None and b.id == kandidat.id:
                continue
            if getattr(b, schluessel) != getattr(kandidat, schluessel):
                continue
            try:
                zeitraeume.append((b.start, b.ende))
            except ValueError:
                # Einträge mit ungültigem Datum sind nicht vergleichbar
                continue

        if has_overlap(start, ende, zeitraeume):
            result.add('general', MELDUNG_MIETKONFLIKT)

    def _validate_zeitraum(self, start, ende, result: ValidationResult):
        if start is not None and ende is not None and start > ende:
            result.add('enddatum', MELDUNG_ZEITRAUM)


_validator = BeziehungValidator()


def validate_beziehung(
    kandidat: Kandidat,
    bestehende: Optional[Iterable[Kandidat]] = None,
    seite: Union[BeziehungSeite, str] = BeziehungSeite.IMMOBILIEN,
    entity_id: Optional[str] = None
) -> ValidationResult:
    """Validate one candidate relationship (form-local check).

    If entity_id is given it is set as the edited side's foreign key of the
    candidate and of the existing entries before comparing.
    """
    if entity_id is None:
        return _validator.validate(kandidat, bestehende, seite)
    seite = BeziehungSeite(seite)
    kandidat, *bestehende = _fuer_entitaet([kandidat, *(bestehende or [])], seite, entity_id)
    return _validator.validate(kandidat, bestehende, seite)


def _fuer_entitaet(kandidaten, seite: BeziehungSeite, entity_id) -> list:
    """Copy candidates with the edited entity's id in its foreign key."""
    kandidaten = [BeziehungEntwurf.from_dict(k) for k in kandidaten]
    if entity_id is None:
        return kandidaten
    return [replace(k, **{seite.eigener_schluessel: str(entity_id)}) for k in kandidaten]


def validate_beziehungsliste(
    kandidaten: Iterable[Kandidat],
    seite: Union[BeziehungSeite, str],
    entity_id: Optional[str] = None
) -> ValidationResult:
    """Validate a submitted relationship list, each entry against the others.

    If entity_id is given it is set as the edited side's foreign key of
    every candidate before comparing.
    """
    seite = BeziehungSeite(seite)
    kandidaten = _fuer_entitaet(kandidaten, seite, entity_id)
    result = ValidationResult()
    for i, kandidat in enumerate(kandidaten):
        andere = kandidaten[:i] + kandidaten[i + 1:]
        result.extend(_validator.validate(kandidat, andere, seite))
    return result


def validate_beziehungen_gegen_store(
    kandidaten: Iterable[Kandidat],
    seite: Union[BeziehungSeite, str],
    entity_id: str,
    store
) -> ValidationResult:
    """Pre-submit check against the persisted relationships of an entity.

    Fetches the persisted Mieter relationships of the entity and checks each
    candidate against them and against the other candidates of the set.

    Raises:
        StoreError: If the persisted relationships cannot be read
    """
    seite = BeziehungSeite(seite)
    kandidaten = _fuer_entitaet(kandidaten, seite, entity_id)

    try:
        persistiert = store.select('beziehungen', {
            'art': BeziehungsArt.MIETER.value,
            seite.eigener_schluessel: str(entity_id),
        })
    except StoreError as e:
        raise StoreError('beziehungen', 'fetch', detail=e.detail, message=MELDUNG_BESTEHENDE_FEHLER)

    bestehende = [BeziehungEntwurf.from_dict(row) for row in persistiert]
    result = ValidationResult()
    for i, kandidat in enumerate(kandidaten):
        andere = kandidaten[:i] + kandidaten[i + 1:]
        result.extend(_validator.validate(kandidat, bestehende + andere, seite))
    return result
