"""Reconciliation of an entity's relationship set with a submitted target list.

Two modes:

- ``replace``: delete all persisted relationships of the entity, then insert
  the target list. Each step commits on its own. If the insert fails after
  the delete, the entity is left without any relationships; the result
  reports this as ``failed_step='insert'`` with ``beziehungen_entfernt``.
- ``atomic``: compute the difference by id (delete removed, update changed,
  insert new) inside one store transaction. A failure rolls back everything.
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Union

from flask import current_app

from immoverwaltung.errors import StoreError, InvalidRequestError
from immoverwaltung.models import BeziehungEntwurf, BeziehungSeite

MODUS_ATOMAR = 'atomic'
MODUS_ERSETZEN = 'replace'
VALID_MODI = (MODUS_ATOMAR, MODUS_ERSETZEN)

MELDUNG_LOESCHEN_FEHLGESCHLAGEN = (
    'Die bestehenden Beziehungen konnten nicht entfernt werden. '
    'Die Beziehungen wurden nicht geändert.'
)
MELDUNG_EINFUEGEN_FEHLGESCHLAGEN = (
    'Die Beziehungen konnten nicht gespeichert werden. '
    'Die bisherigen Beziehungen wurden bereits entfernt.'
)
MELDUNG_ABGLEICH_FEHLGESCHLAGEN = (
    'Die Beziehungen konnten nicht gespeichert werden. Es wurde nichts geändert.'
)
MELDUNG_DATUM_UNGUELTIG = 'Ungültiges Datum in Beziehung'


@dataclass
class ReconcileResult:
    """Outcome of a reconciliation."""
    success: bool
    modus: str = MODUS_ATOMAR
    geloescht: int = 0
    eingefuegt: List[dict] = field(default_factory=list)
    aktualisiert: List[dict] = field(default_factory=list)
    verworfen: int = 0
    failed_step: Optional[str] = None  # 'delete' | 'insert' | 'transaction'
    beziehungen_entfernt: bool = False
    error: Optional[str] = None
    error_detail: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'success': self.success,
            'modus': self.modus,
            'geloescht': self.geloescht,
            'eingefuegt': len(self.eingefuegt),
            'aktualisiert': len(self.aktualisiert),
            'verworfen': self.verworfen,
            'failed_step': self.failed_step,
            'beziehungen_entfernt': self.beziehungen_entfernt,
            'error': self.error,
            'details': self.error_detail,
        }


class BeziehungAbgleich:
    """Makes the persisted relationship set of an entity match a target list."""

    def __init__(self, store, modus: str = MODUS_ATOMAR):
        if modus not in VALID_MODI:
            raise ValueError(f'Unbekannter Abgleich-Modus: {modus}')
        self.store = store
        self.modus = modus

    def _vorbereiten(self, seite: BeziehungSeite, ziel: Iterable) -> tuple[list, int]:
        """Drop incomplete entries (no art or no counterpart id)."""
        entwuerfe = [BeziehungEntwurf.from_dict(b) for b in (ziel or [])]
        vollstaendig = [e for e in entwuerfe if e.ist_vollstaendig(seite)]
        verworfen = len(entwuerfe) - len(vollstaendig)
        if verworfen:
            current_app.logger.warning(
                f'{verworfen} unvollständige Beziehung(en) beim Abgleich verworfen'
            )
        return vollstaendig, verworfen

    @staticmethod
    def _rows(entwuerfe: list, entity_id: str, seite: BeziehungSeite) -> list[dict]:
        try:
            return [e.to_row(entity_id, seite) for e in entwuerfe]
        except ValueError as e:
            raise InvalidRequestError(f'{MELDUNG_DATUM_UNGUELTIG}: {e}')

    def reconcile(
        self,
        entity_id: str,
        seite: Union[BeziehungSeite, str],
        ziel: Iterable
    ) -> ReconcileResult:
        """Reconcile and report the outcome; store errors become a failed result."""
        seite = BeziehungSeite(seite)
        entity_id = str(entity_id)
        if self.modus == MODUS_ERSETZEN:
            return self._ersetzen(entity_id, seite, ziel)

        entwuerfe, verworfen = self._vorbereiten(seite, ziel)
        rows = self._rows(entwuerfe, entity_id, seite)
        try:
            with self.store.transaction():
                result = self._diff(entity_id, seite, entwuerfe, rows)
        except StoreError as e:
            current_app.logger.warning(
                f'Beziehungsabgleich für {seite.value} {entity_id} zurückgerollt: {e.message}'
            )
            return ReconcileResult(
                success=False,
                modus=self.modus,
                verworfen=verworfen,
                failed_step='transaction',
                error=MELDUNG_ABGLEICH_FEHLGESCHLAGEN,
                error_detail=e.detail or e.message,
            )
        result.verworfen = verworfen
        return result

    def diff_anwenden(
        self,
        entity_id: str,
        seite: Union[BeziehungSeite, str],
        ziel: Iterable
    ) -> ReconcileResult:
        """Apply the id-based difference without own error handling.

        Meant to run inside a surrounding store.transaction(); StoreError
        propagates so that the caller's transaction rolls back.
        """
        seite = BeziehungSeite(seite)
        entity_id = str(entity_id)
        entwuerfe, verworfen = self._vorbereiten(seite, ziel)
        rows = self._rows(entwuerfe, entity_id, seite)
        result = self._diff(entity_id, seite, entwuerfe, rows)
        result.verworfen = verworfen
        return result

    def _diff(self, entity_id: str, seite: BeziehungSeite, entwuerfe: list,
              rows: list) -> ReconcileResult:
        bestehend = {
            row['id']: row
            for row in self.store.select('beziehungen', {seite.eigener_schluessel: entity_id})
        }

        behalten = set()
        aenderungen = []
        neue = []
        for entwurf, row in zip(entwuerfe, rows):
            if entwurf.id in bestehend and entwurf.id not in behalten:
                behalten.add(entwurf.id)
                alt = bestehend[entwurf.id]
                patch = {k: v for k, v in row.items() if alt.get(k) != v}
                if patch:
                    aenderungen.append((entwurf.id, patch))
            else:
                neue.append(row)

        result = ReconcileResult(success=True, modus=MODUS_ATOMAR)
        for beziehung_id in bestehend.keys() - behalten:
            result.geloescht += self.store.delete('beziehungen', {'id': beziehung_id})
        for beziehung_id, patch in aenderungen:
            result.aktualisiert.extend(self.store.update('beziehungen', {'id': beziehung_id}, patch))
        if neue:
            result.eingefuegt = self.store.insert('beziehungen', neue)
        return result

    def _ersetzen(self, entity_id: str, seite: BeziehungSeite, ziel: Iterable) -> ReconcileResult:
        entwuerfe, verworfen = self._vorbereiten(seite, ziel)
        rows = self._rows(entwuerfe, entity_id, seite)
        result = ReconcileResult(success=True, modus=MODUS_ERSETZEN, verworfen=verworfen)

        try:
            result.geloescht = self.store.delete('beziehungen', {seite.eigener_schluessel: entity_id})
        except StoreError as e:
            current_app.logger.warning(
                f'Beziehungen von {seite.value} {entity_id} konnten nicht gelöscht werden: {e.message}'
            )
            result.success = False
            result.failed_step = 'delete'
            result.error = MELDUNG_LOESCHEN_FEHLGESCHLAGEN
            result.error_detail = e.detail or e.message
            return result

        if not rows:
            return result

        try:
            result.eingefuegt = self.store.insert('beziehungen', rows)
        except StoreError as e:
            current_app.logger.warning(
                f'Beziehungen von {seite.value} {entity_id} nach dem Löschen '
                f'nicht eingefügt: {e.message}'
            )
            result.success = False
            result.failed_step = 'insert'
            result.beziehungen_entfernt = True
            result.error = MELDUNG_EINFUEGEN_FEHLGESCHLAGEN
            result.error_detail = e.detail or e.message
        return result


def get_abgleich(store, modus: Optional[str] = None) -> BeziehungAbgleich:
    """Create a reconciler using the configured mode."""
    if modus is None:
        modus = current_app.config.get('RECONCILE_MODE', MODUS_ATOMAR)
    return BeziehungAbgleich(store, modus)


def reconcile_beziehungen(
    entity_id: str,
    seite: Union[BeziehungSeite, str],
    ziel: Iterable,
    store=None,
    modus: Optional[str] = None
) -> ReconcileResult:
    """Replace the relationship set of an entity with the target list."""
    if store is None:
        from immoverwaltung.services.store import get_store
        store = get_store()
    return get_abgleich(store, modus).reconcile(entity_id, seite, ziel)
