"""Entity Service for Kontakte, Immobilien and Beziehungen.

Generic CRUD on top of the store port. Updates of a Kontakt or an
Immobilie may carry the full relationship list of the entity; the list is
validated before any write and then reconciled with the persisted set.
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from flask import current_app

from immoverwaltung import db
from immoverwaltung.errors import (
    COMMON_ERROR_MESSAGES, BeziehungValidationError, InvalidRequestError,
    NotFoundError, StoreError, is_valid_table
)
from immoverwaltung.models import MODELLE, BeziehungEntwurf, BeziehungSeite
from immoverwaltung.schema import pflichtfelder_pruefen, schreibbare_felder
from immoverwaltung.services.beziehung_abgleich import (
    MODUS_ATOMAR, ReconcileResult, get_abgleich
)
from immoverwaltung.services.beziehung_validator import (
    validate_beziehung, validate_beziehungen_gegen_store, validate_beziehungsliste
)
from immoverwaltung.services.logging_service import log_event, log_hoch, log_kritisch, log_mittel
from immoverwaltung.services.store import get_store

SEITEN = {
    'immobilien': BeziehungSeite.IMMOBILIEN,
    'kontakte': BeziehungSeite.KONTAKTE,
}

# (Tabelle, Fremdschlüssel, Anzeigefeld, Label in der Beziehung)
LABEL_QUELLEN = (
    ('immobilien', 'immobilien_id', 'titel', 'immobilien_titel'),
    ('kontakte', 'kontakt_id', 'name', 'kontakt_name'),
)


@dataclass
class EntityUpdateResult:
    """Result of an entity update.

    If the entity was saved but its relationships could not be reconciled,
    relationship_error is set and the result is a partial success.
    """
    entity: dict
    relationship_error: Optional[str] = None
    relationship_error_detail: Optional[str] = None
    reconcile: Optional[ReconcileResult] = None

    @property
    def ist_teilerfolg(self) -> bool:
        return self.relationship_error is not None

    def to_dict(self) -> dict:
        if not self.ist_teilerfolg:
            return self.entity
        return {
            'entity': self.entity,
            'error': self.relationship_error,
            'details': self.relationship_error_detail,
        }


class EntityService:
    """CRUD operations with relationship validation and reconciliation."""

    def __init__(self, store=None, modus: Optional[str] = None):
        self.store = store if store is not None else get_store()
        self.abgleich = get_abgleich(self.store, modus)

    @staticmethod
    def _pruefe_table(table: str):
        if not is_valid_table(table):
            raise InvalidRequestError(COMMON_ERROR_MESSAGES['invalidTable'])

    @staticmethod
    def _entity_type(table: str) -> str:
        return MODELLE[table].__name__

    @staticmethod
    def _schreibbar(table: str, data: dict) -> dict:
        if not isinstance(data, dict):
            raise InvalidRequestError(COMMON_ERROR_MESSAGES['invalidRequestData'])
        erlaubt = schreibbare_felder(table)
        return {k: v for k, v in data.items() if k in erlaubt}

    @staticmethod
    def _pflichtfelder(table: str, data: dict, nur_vorhandene: bool = False):
        fehler = pflichtfelder_pruefen(table, data, nur_vorhandene=nur_vorhandene)
        if fehler:
            feld, meldung = next(iter(fehler.items()))
            raise InvalidRequestError(meldung, field=feld)

    def _aktuell(self, table: str, entity_id: str) -> dict:
        """Read the current row of an entity."""
        try:
            rows = self.store.select(table, {'id': str(entity_id)})
        except StoreError as e:
            raise StoreError(table, 'fetchCurrent', detail=e.detail)
        if not rows:
            raise NotFoundError(table, entity_id)
        return rows[0]

    def _label(self, table: str, entity_id, feld: str, cache: dict):
        if entity_id is None:
            return None
        if (table, entity_id) not in cache:
            try:
                treffer = self.store.select(table, {'id': entity_id})
            except StoreError as e:
                current_app.logger.warning(
                    f'Anzeigename für {table} {entity_id} nicht ermittelbar: {e.message}'
                )
                treffer = []
            cache[(table, entity_id)] = treffer[0][feld] if treffer else None
        return cache[(table, entity_id)]

    def _mit_labels(self, rows: list[dict]) -> list[dict]:
        """Add immobilien_titel and kontakt_name to relationship rows."""
        cache = {}
        for row in rows:
            for table, schluessel, feld, label in LABEL_QUELLEN:
                row[label] = self._label(table, row.get(schluessel), feld, cache)
        return rows

    def _beziehungen(self, seite: BeziehungSeite, entity_id: str) -> list[dict]:
        rows = self.store.select(
            'beziehungen', {seite.eigener_schluessel: str(entity_id)}, order_by='created_at'
        )
        return self._mit_labels(rows)

    def _pruefe_liste(self, table: str, beziehungen, entity_id=None):
        """Form-local validation of a submitted relationship list (no store access)."""
        seite = SEITEN.get(table)
        if seite is None:
            raise InvalidRequestError(COMMON_ERROR_MESSAGES['invalidRequestData'])
        if not isinstance(beziehungen, list):
            raise InvalidRequestError(COMMON_ERROR_MESSAGES['invalidRequestData'])
        result = validate_beziehungsliste(beziehungen, seite, entity_id)
        if not result.is_valid:
            raise BeziehungValidationError(result)
        return seite

    def _pruefe_einzelbeziehung(self, entwurf: BeziehungEntwurf):
        """Validate a directly written relationship against the persisted ones."""
        if entwurf.immobilien_id:
            result = validate_beziehungen_gegen_store(
                [entwurf], BeziehungSeite.IMMOBILIEN, entwurf.immobilien_id, self.store
            )
        else:
            result = validate_beziehung(entwurf)
        if not result.is_valid:
            raise BeziehungValidationError(result)
        self._pflichtfelder('beziehungen', entwurf.to_dict())
        for table, schluessel, _, _ in LABEL_QUELLEN:
            if not self.store.select(table, {'id': getattr(entwurf, schluessel)}):
                raise NotFoundError(table, getattr(entwurf, schluessel))

    # -------------------------------------------------------------------------
    # Read
    # -------------------------------------------------------------------------

    def list(self, table: str) -> list[dict]:
        """List all rows of a table, newest first."""
        self._pruefe_table(table)
        rows = self.store.select(table, order_by='-created_at')
        if table == 'beziehungen':
            rows = self._mit_labels(rows)
        return rows

    def get(self, table: str, entity_id: str, include_beziehungen: bool = True) -> dict:
        """Get one entity.

        Kontakte and Immobilien carry their relationships with display
        labels under 'relationships'.

        Raises:
            NotFoundError: If no row has this id
        """
        self._pruefe_table(table)
        try:
            rows = self.store.select(table, {'id': str(entity_id)})
        except StoreError as e:
            raise StoreError(table, 'fetch', detail=e.detail)
        if not rows:
            raise NotFoundError(table, entity_id)

        entity = rows[0]
        seite = SEITEN.get(table)
        if seite is None:
            return self._mit_labels([entity])[0]
        if include_beziehungen:
            entity['relationships'] = self._beziehungen(seite, entity_id)
        return entity

    # -------------------------------------------------------------------------
    # Write
    # -------------------------------------------------------------------------

    def create(self, table: str, data: dict, beziehungen: Optional[Iterable] = None) -> dict:
        """Create an entity, optionally together with its relationships.

        Raises:
            InvalidRequestError: Invalid table or missing required field
            BeziehungValidationError: Relationship list violates a rule
            StoreError: Write failed (nothing is persisted)
        """
        self._pruefe_table(table)
        werte = self._schreibbar(table, data)

        if table == 'beziehungen':
            entwurf = BeziehungEntwurf.from_dict(werte)
            self._pruefe_einzelbeziehung(entwurf)
            werte = entwurf.to_row(entwurf.immobilien_id, BeziehungSeite.IMMOBILIEN)
        else:
            self._pflichtfelder(table, werte)

        seite = None
        if beziehungen is not None:
            seite = self._pruefe_liste(table, beziehungen)

        with self.store.transaction():
            entity = self.store.insert(table, [werte])[0]
            if seite is not None:
                self.abgleich.diff_anwenden(entity['id'], seite, beziehungen)
            log_event(
                table, 'angelegt',
                entity_type=self._entity_type(table), entity_id=entity['id']
            )

        current_app.logger.info(f'{self._entity_type(table)} {entity["id"]} angelegt')
        return self.get(table, entity['id'])

    def update(
        self,
        table: str,
        entity_id: str,
        data: dict,
        beziehungen: Optional[Iterable] = None
    ) -> EntityUpdateResult:
        """Update an entity and reconcile its relationships.

        Only fields whose value differs from the current row are written.
        In 'atomic' mode the entity patch and the relationship reconciliation
        share one transaction; a failure leaves everything unchanged. In
        'replace' mode the entity is saved first and a failed reconciliation
        is reported as a partial success.

        Raises:
            InvalidRequestError: Invalid table or payload
            BeziehungValidationError: Relationship list violates a rule
            NotFoundError: Entity does not exist
            StoreError: Read or write failed
        """
        self._pruefe_table(table)
        werte = self._schreibbar(table, data or {})

        seite = None
        if beziehungen is not None:
            seite = self._pruefe_liste(table, beziehungen, entity_id)

        aktuell = self._aktuell(table, entity_id)

        if table == 'beziehungen':
            entwurf = BeziehungEntwurf.from_dict({**aktuell, **werte})
            self._pruefe_einzelbeziehung(entwurf)
            werte = entwurf.to_row(entwurf.immobilien_id, BeziehungSeite.IMMOBILIEN)
        else:
            self._pflichtfelder(table, werte, nur_vorhandene=True)

        patch = {k: v for k, v in werte.items() if aktuell.get(k) != v}
        entity_type = self._entity_type(table)

        if self.abgleich.modus == MODUS_ATOMAR:
            with self.store.transaction():
                if patch:
                    self.store.update(table, {'id': str(entity_id)}, patch)
                reconcile = None
                if seite is not None:
                    reconcile = self.abgleich.diff_anwenden(entity_id, seite, beziehungen)
                if patch or reconcile is not None:
                    log_event(
                        table, 'geaendert', details=self._details(patch, reconcile),
                        entity_type=entity_type, entity_id=entity_id
                    )
            return EntityUpdateResult(entity=self.get(table, entity_id), reconcile=reconcile)

        if patch:
            self.store.update(table, {'id': str(entity_id)}, patch)

        reconcile = None
        if seite is not None:
            reconcile = self.abgleich.reconcile(entity_id, seite, beziehungen)

        if reconcile is not None and not reconcile.success:
            current_app.logger.warning(
                f'{entity_type} {entity_id} gespeichert, Beziehungen fehlgeschlagen '
                f'({reconcile.failed_step}): {reconcile.error_detail}'
            )
            # Einfügen nach dem Löschen gescheitert: Entität ohne Beziehungen
            log_fehler = log_kritisch if reconcile.beziehungen_entfernt else log_hoch
            log_fehler(
                'beziehungen', 'abgleich_fehlgeschlagen',
                details=f'{reconcile.error} ({reconcile.error_detail})',
                entity_type=entity_type, entity_id=entity_id
            )
        elif patch or reconcile is not None:
            log_event(
                table, 'geaendert', details=self._details(patch, reconcile),
                entity_type=entity_type, entity_id=entity_id
            )
        db.session.commit()

        result = EntityUpdateResult(entity=self.get(table, entity_id), reconcile=reconcile)
        if reconcile is not None and not reconcile.success:
            result.relationship_error = reconcile.error
            result.relationship_error_detail = reconcile.error_detail
        return result

    @staticmethod
    def _details(patch: dict, reconcile: Optional[ReconcileResult]) -> str:
        teile = []
        if patch:
            teile.append('Felder: ' + ', '.join(sorted(patch)))
        if reconcile is not None:
            teile.append(
                f'Beziehungen: {len(reconcile.eingefuegt)} neu, '
                f'{len(reconcile.aktualisiert)} geändert, {reconcile.geloescht} entfernt'
            )
        return '; '.join(teile)

    def delete(self, table: str, entity_id: str):
        """Delete an entity; its relationships are removed by cascade.

        Raises:
            NotFoundError: Entity does not exist
        """
        self._pruefe_table(table)
        self._aktuell(table, entity_id)
        self.store.delete(table, {'id': str(entity_id)})
        log_mittel(table, 'geloescht', entity_type=self._entity_type(table), entity_id=entity_id)
        db.session.commit()
        current_app.logger.info(f'{self._entity_type(table)} {entity_id} gelöscht')


def get_entity_service(store=None, modus: Optional[str] = None) -> EntityService:
    """Get an entity service for the current app context."""
    return EntityService(store, modus)
