"""Tests for the entity service (CRUD, relationship lists, partial failure)."""
import pytest

from immoverwaltung.errors import (
    BeziehungValidationError, InvalidRequestError, NotFoundError, StoreError
)
from immoverwaltung.models import AuditLog
from immoverwaltung.services.beziehung_abgleich import MELDUNG_EINFUEGEN_FEHLGESCHLAGEN
from immoverwaltung.services.beziehung_validator import MELDUNG_MIETKONFLIKT
from immoverwaltung.services.entity_service import EntityService

UNBEKANNT = '00000000-0000-4000-8000-000000000000'


def inhalt(rows):
    return sorted((r['kontakt_id'], r['art'], r['startdatum'], r['enddatum']) for r in rows)


class TestLesen:

    def test_get_includes_relationships_with_labels(self, store, mietobjekt):
        entity = EntityService(store).get('immobilien', mietobjekt['immobilie'].id)
        labels = sorted((b['kontakt_name'], b['immobilien_titel']) for b in entity['relationships'])
        assert labels == [('Anna Müller', 'Altbau Südstadt'), ('Jens Schmidt', 'Altbau Südstadt')]

    def test_get_from_contact_side(self, store, mietobjekt):
        entity = EntityService(store).get('kontakte', mietobjekt['mieter'].id)
        assert [b['art'] for b in entity['relationships']] == ['Mieter']

    def test_label_lookup_failure_is_not_raised(self, store, mietobjekt, monkeypatch):
        select = store.select

        def select_ohne_kontakte(table, filter=None, order_by=None):
            if table == 'kontakte':
                raise StoreError('kontakte', 'fetch', detail='timeout')
            return select(table, filter, order_by)

        monkeypatch.setattr(store, 'select', select_ohne_kontakte)
        entity = EntityService(store).get('immobilien', mietobjekt['immobilie'].id)
        assert [b['kontakt_name'] for b in entity['relationships']] == [None, None]

    def test_get_unknown_id(self, store):
        with pytest.raises(NotFoundError):
            EntityService(store).get('kontakte', UNBEKANNT)

    def test_invalid_table(self, store):
        with pytest.raises(InvalidRequestError):
            EntityService(store).list('benutzer')

    def test_list_relationships_carries_labels(self, store, mietobjekt):
        rows = EntityService(store).list('beziehungen')
        assert {r['kontakt_name'] for r in rows} == {'Anna Müller', 'Jens Schmidt'}


class TestAnlegen:

    def test_create_with_relationships(self, store, kontakt_factory):
        kontakt = kontakt_factory('Anna Müller')
        entity = EntityService(store).create(
            'immobilien', {'titel': 'Loft Rheinauhafen', 'unbekannt': 'x'},
            [{'id': 'temp-1', 'art': 'Eigentümer', 'kontakt_id': kontakt.id}]
        )
        assert entity['titel'] == 'Loft Rheinauhafen'
        assert [b['kontakt_id'] for b in entity['relationships']] == [kontakt.id]
        assert AuditLog.query.filter_by(modul='immobilien', aktion='angelegt').count() == 1

    def test_create_requires_title(self, store):
        with pytest.raises(InvalidRequestError) as exc:
            EntityService(store).create('immobilien', {'beschreibung': 'ohne Titel'})
        assert exc.value.field == 'titel'

    def test_create_relationship_directly(self, store, mietobjekt):
        entity = EntityService(store).create('beziehungen', {
            'immobilien_id': mietobjekt['immobilie'].id,
            'kontakt_id': mietobjekt['eigentuemer'].id,
            'art': 'Mieter',
            'startdatum': '2024-04-01',
            'enddatum': '2024-12-31',
        })
        assert entity['kontakt_name'] == 'Anna Müller'

    def test_create_relationship_with_conflict(self, store, mietobjekt):
        with pytest.raises(BeziehungValidationError) as exc:
            EntityService(store).create('beziehungen', {
                'immobilien_id': mietobjekt['immobilie'].id,
                'kontakt_id': mietobjekt['eigentuemer'].id,
                'art': 'Mieter',
                'startdatum': '2024-03-01',
                'enddatum': '2024-04-30',
            })
        assert exc.value.message == MELDUNG_MIETKONFLIKT

    def test_create_relationship_with_unknown_contact(self, store, mietobjekt):
        with pytest.raises(NotFoundError):
            EntityService(store).create('beziehungen', {
                'immobilien_id': mietobjekt['immobilie'].id,
                'kontakt_id': UNBEKANNT,
                'art': 'Eigentümer',
            })


class TestAendern:

    def test_only_changed_fields_are_written(self, store, immobilie_factory, monkeypatch):
        immobilie = immobilie_factory('Altbau Südstadt', beschreibung='3 Zimmer')
        patches = []
        update = store.update

        def update_merken(table, filter, patch):
            patches.append(patch)
            return update(table, filter, patch)

        monkeypatch.setattr(store, 'update', update_merken)
        result = EntityService(store).update(
            'immobilien', immobilie.id, {'titel': 'Altbau Südstadt', 'beschreibung': '4 Zimmer'}
        )
        assert patches == [{'beschreibung': '4 Zimmer'}]
        assert result.entity['beschreibung'] == '4 Zimmer'
        assert not result.ist_teilerfolg

    def test_validation_error_writes_nothing(self, store, mietobjekt, monkeypatch):
        def kein_zugriff(*args, **kwargs):
            raise AssertionError('store must not be called')

        for methode in ('select', 'insert', 'update', 'delete'):
            monkeypatch.setattr(store, methode, kein_zugriff)

        service = EntityService(store)
        with pytest.raises(BeziehungValidationError) as exc:
            service.update('immobilien', mietobjekt['immobilie'].id, {'titel': 'Neu'}, [
                {'art': 'Mieter', 'kontakt_id': 'k1', 'startdatum': '2024-01-01', 'enddatum': '2024-06-30'},
                {'art': 'Mieter', 'kontakt_id': 'k2', 'startdatum': '2024-06-01', 'enddatum': '2024-12-31'},
            ])
        assert exc.value.to_dict()['isValid'] is False

    def test_update_unknown_id(self, store):
        with pytest.raises(NotFoundError):
            EntityService(store).update('kontakte', UNBEKANNT, {'name': 'X'})

    def test_reconciles_relationship_list(self, store, mietobjekt, kontakt_factory):
        neu = kontakt_factory('Hausmeisterservice Rhein GmbH')
        ziel = [
            mietobjekt['b'].to_dict(include_labels=True),
            {'id': 'temp-2', 'art': 'Dienstleister', 'kontakt_id': neu.id,
             'dienstleistungen': 'Winterdienst'},
        ]
        result = EntityService(store).update('immobilien', mietobjekt['immobilie'].id, {}, ziel)
        assert inhalt(result.entity['relationships']) == sorted([
            (mietobjekt['mieter'].id, 'Mieter', '2024-01-01', '2024-03-31'),
            (neu.id, 'Dienstleister', None, None),
        ])

    def test_atomic_failure_keeps_entity_and_relationships(self, store, mietobjekt, monkeypatch):
        immobilie_id = mietobjekt['immobilie'].id
        vorher = inhalt(store.select('beziehungen', {'immobilien_id': immobilie_id}))

        def kaputt(table, rows):
            raise StoreError(table, 'create', detail='disk full')

        monkeypatch.setattr(store, 'insert', kaputt)
        with pytest.raises(StoreError):
            EntityService(store, modus='atomic').update(
                'immobilien', immobilie_id, {'titel': 'Neuer Titel'},
                [{'art': 'Eigentümer', 'kontakt_id': mietobjekt['mieter'].id}]
            )

        assert store.select('immobilien', {'id': immobilie_id})[0]['titel'] == 'Altbau Südstadt'
        assert inhalt(store.select('beziehungen', {'immobilien_id': immobilie_id})) == vorher

    def test_replace_insert_failure_is_partial_success(self, store, mietobjekt, monkeypatch):
        immobilie_id = mietobjekt['immobilie'].id

        def kaputt(table, rows):
            raise StoreError(table, 'create', detail='disk full')

        monkeypatch.setattr(store, 'insert', kaputt)
        result = EntityService(store, modus='replace').update(
            'immobilien', immobilie_id, {'titel': 'Neuer Titel'},
            [mietobjekt['a'].to_dict(), mietobjekt['b'].to_dict()]
        )

        assert result.ist_teilerfolg
        assert result.relationship_error == MELDUNG_EINFUEGEN_FEHLGESCHLAGEN
        assert result.relationship_error_detail == 'disk full'
        assert result.entity['titel'] == 'Neuer Titel'
        assert result.entity['relationships'] == []
        assert result.to_dict()['error'] == MELDUNG_EINFUEGEN_FEHLGESCHLAGEN
        assert AuditLog.query.filter_by(aktion='abgleich_fehlgeschlagen', wichtigkeit='kritisch').count() == 1

    def test_replace_delete_failure_keeps_relationships(self, store, mietobjekt, monkeypatch):
        immobilie_id = mietobjekt['immobilie'].id

        def kaputt(table, filter):
            raise StoreError(table, 'delete', detail='locked')

        monkeypatch.setattr(store, 'delete', kaputt)
        result = EntityService(store, modus='replace').update(
            'immobilien', immobilie_id, {}, [mietobjekt['a'].to_dict()]
        )

        assert result.ist_teilerfolg
        assert len(result.entity['relationships']) == 2
        assert AuditLog.query.filter_by(aktion='abgleich_fehlgeschlagen', wichtigkeit='hoch').count() == 1
        assert AuditLog.query.filter_by(wichtigkeit='kritisch').count() == 0

    def test_dienstleistungen_must_be_text(self, store, mietobjekt):
        with pytest.raises(BeziehungValidationError) as exc:
            EntityService(store).update(
                'immobilien', mietobjekt['immobilie'].id, {},
                [{'art': 'Dienstleister', 'kontakt_id': mietobjekt['mieter'].id,
                  'dienstleistungen': 123}]
            )
        assert exc.value.field == 'dienstleistungen'

    def test_relationship_entry_must_be_object(self, store, mietobjekt):
        with pytest.raises(InvalidRequestError):
            EntityService(store).update('immobilien', mietobjekt['immobilie'].id, {}, ['x'])

    def test_relationship_update_normalizes_dienstleistungen(self, store, mietobjekt):
        a = mietobjekt['a']
        result = EntityService(store).update('beziehungen', a.id, {'dienstleistungen': 'Reinigung'})
        assert result.entity['dienstleistungen'] is None

    def test_relationship_update_excludes_itself_from_conflicts(self, store, mietobjekt):
        b = mietobjekt['b']
        result = EntityService(store).update('beziehungen', b.id, {'enddatum': '2024-02-29'})
        assert result.entity['enddatum'] == '2024-02-29'


class TestLoeschen:

    def test_delete_removes_relationships(self, store, mietobjekt):
        service = EntityService(store)
        service.delete('kontakte', mietobjekt['mieter'].id)
        assert store.select('beziehungen', {'kontakt_id': mietobjekt['mieter'].id}) == []
        assert AuditLog.query.filter_by(aktion='geloescht').count() == 1

    def test_delete_unknown(self, store):
        with pytest.raises(NotFoundError):
            EntityService(store).delete('immobilien', UNBEKANNT)
