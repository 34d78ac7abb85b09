"""Tests for the JSON API."""
import pytest

from immoverwaltung.errors import StoreError
from immoverwaltung.services.beziehung_validator import MELDUNG_MIETKONFLIKT, MELDUNG_BESTEHENDE_FEHLER
from immoverwaltung.services.store import SqlAlchemyStore

UNBEKANNT = '00000000-0000-4000-8000-000000000000'


def test_list_entities(client, mietobjekt):
    response = client.get('/api/kontakte')
    assert response.status_code == 200
    assert {k['name'] for k in response.get_json()} == {'Anna Müller', 'Jens Schmidt'}


def test_invalid_table(client):
    response = client.get('/api/benutzer')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Ungültiger Tabellenname'


def test_invalid_uuid(client):
    response = client.get('/api/kontakte/123')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Ungültiges UUID-Format'


def test_not_found(client):
    response = client.get(f'/api/immobilien/{UNBEKANNT}')
    assert response.status_code == 404
    assert response.get_json()['error'] == 'Immobilie nicht gefunden'


def test_create_entity(client):
    response = client.post('/api/kontakte', json={'name': 'Anna Müller', 'relationships': []})
    assert response.status_code == 201
    data = response.get_json()
    assert data['name'] == 'Anna Müller'
    assert data['relationships'] == []


def test_create_without_body(client):
    response = client.post('/api/kontakte', data='kein json', content_type='text/plain')
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Ungültige Anfragedaten'


def test_patch_returns_entity(client, mietobjekt):
    immobilie_id = mietobjekt['immobilie'].id
    response = client.patch(f'/api/immobilien/{immobilie_id}', json={'beschreibung': 'Dachgeschoss'})
    assert response.status_code == 200
    assert response.get_json()['beschreibung'] == 'Dachgeschoss'


def test_patch_with_conflicting_relationships(client, mietobjekt):
    immobilie_id = mietobjekt['immobilie'].id
    response = client.patch(f'/api/immobilien/{immobilie_id}', json={'relationships': [
        {'id': 'temp-1', 'art': 'Mieter', 'kontakt_id': mietobjekt['mieter'].id,
         'startdatum': '2024-01-01', 'enddatum': '2024-06-30'},
        {'id': 'temp-2', 'art': 'Mieter', 'kontakt_id': mietobjekt['eigentuemer'].id,
         'startdatum': '2024-06-30', 'enddatum': '2024-12-31'},
    ]})
    assert response.status_code == 400
    data = response.get_json()
    assert data['isValid'] is False
    assert data['error'] == MELDUNG_MIETKONFLIKT


def test_patch_partial_failure_returns_207(replace_mode, client, mietobjekt, monkeypatch):
    def kaputt(self, table, rows):
        raise StoreError(table, 'create', detail='disk full')

    monkeypatch.setattr(SqlAlchemyStore, 'insert', kaputt)
    immobilie_id = mietobjekt['immobilie'].id
    response = client.patch(f'/api/immobilien/{immobilie_id}', json={
        'titel': 'Altbau Südstadt (saniert)',
        'relationships': [{'art': 'Mieter', 'kontakt_id': mietobjekt['mieter'].id}],
    })

    assert response.status_code == 207
    data = response.get_json()
    assert data['entity']['titel'] == 'Altbau Südstadt (saniert)'
    assert data['entity']['relationships'] == []
    assert data['details'] == 'disk full'
    assert data['error']


def test_delete_entity(client, mietobjekt):
    kontakt_id = mietobjekt['mieter'].id
    assert client.delete(f'/api/kontakte/{kontakt_id}').status_code == 200
    assert client.get(f'/api/kontakte/{kontakt_id}').status_code == 404


def test_validate_relationship_endpoint(client):
    response = client.post('/api/validate-relationship', json={
        'relationship': {'art': 'Mieter', 'immobilien_id': 'P1', 'kontakt_id': 'K1',
                         'startdatum': '2024-06-01', 'enddatum': '2024-06-30'},
        'existing': [{'art': 'Mieter', 'immobilien_id': 'P1', 'kontakt_id': 'K2',
                      'startdatum': '2024-06-15', 'enddatum': '2024-06-20'}],
        'entityType': 'immobilien',
    })
    assert response.status_code == 200
    assert response.get_json() == {
        'isValid': False,
        'errors': [{'field': 'general', 'message': MELDUNG_MIETKONFLIKT}],
    }


def test_validate_relationship_with_entity_id(client):
    immobilie_id = '3f2b8c1e-4d5a-4e6f-9a0b-1c2d3e4f5a6b'
    body = {
        'relationship': {'id': 'temp-1', 'art': 'Mieter', 'kontakt_id': 'K1',
                         'startdatum': '2024-06-01', 'enddatum': '2024-06-30'},
        'existing': [{'art': 'Mieter', 'immobilien_id': immobilie_id, 'kontakt_id': 'K2',
                      'startdatum': '2024-06-15', 'enddatum': '2024-06-20'}],
        'entityType': 'immobilien',
    }
    assert client.post('/api/validate-relationship', json=body).get_json()['isValid'] is True

    body['entityId'] = immobilie_id
    response = client.post('/api/validate-relationship', json=body)
    assert response.status_code == 200
    assert response.get_json()['errors'] == [{'field': 'general', 'message': MELDUNG_MIETKONFLIKT}]


def test_validate_relationship_invalid_entity_id(client):
    response = client.post('/api/validate-relationship', json={
        'relationship': {'art': 'Mieter', 'kontakt_id': 'K1'},
        'entityId': 'temp-1',
    })
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Ungültiges UUID-Format'


@pytest.mark.parametrize('url, body', [
    ('/api/validate-relationship', {'relationship': {'art': 'Mieter', 'kontakt_id': 'K1'},
                                    'existing': ['x']}),
    ('/api/validate-relationships', {'relationships': ['x'], 'entityType': 'immobilien',
                                     'entityId': UNBEKANNT}),
])
def test_relationship_entries_must_be_objects(client, url, body):
    response = client.post(url, json=body)
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Ungültige Anfragedaten'


def test_patch_relationship_entries_must_be_objects(client, mietobjekt):
    response = client.patch(f'/api/immobilien/{mietobjekt["immobilie"].id}',
                            json={'relationships': ['x']})
    assert response.status_code == 400
    assert response.get_json()['error'] == 'Ungültige Anfragedaten'


def test_patch_numeric_dienstleistungen(client, mietobjekt):
    response = client.patch(f'/api/immobilien/{mietobjekt["immobilie"].id}', json={
        'relationships': [{'art': 'Dienstleister', 'kontakt_id': mietobjekt['mieter'].id,
                           'dienstleistungen': 123}],
    })
    assert response.status_code == 400
    assert response.get_json()['field'] == 'dienstleistungen'


class TestValidateRelationships:

    def _post(self, client, mietobjekt, beziehungen):
        return client.post('/api/validate-relationships', json={
            'relationships': beziehungen,
            'entityType': 'immobilien',
            'entityId': mietobjekt['immobilie'].id,
        })

    def test_conflict_with_persisted_state(self, client, mietobjekt):
        response = self._post(client, mietobjekt, [
            {'art': 'Mieter', 'kontakt_id': mietobjekt['eigentuemer'].id,
             'startdatum': '2024-02-01', 'enddatum': '2024-02-28'},
        ])
        assert response.status_code == 400
        data = response.get_json()
        assert data['isValid'] is False
        assert data['error'] == MELDUNG_MIETKONFLIKT

    def test_valid_list(self, client, mietobjekt):
        response = self._post(client, mietobjekt, [mietobjekt['b'].to_dict()])
        assert response.status_code == 200
        assert response.get_json()['isValid'] is True

    def test_store_failure(self, client, mietobjekt, monkeypatch):
        def kaputt(self, table, filter=None, order_by=None):
            raise StoreError(table, 'fetch', detail='timeout')

        monkeypatch.setattr(SqlAlchemyStore, 'select', kaputt)
        response = self._post(client, mietobjekt, [])
        assert response.status_code == 500
        assert response.get_json()['error'] == MELDUNG_BESTEHENDE_FEHLER

    @pytest.mark.parametrize('body', [
        {'relationships': [], 'entityType': 'benutzer', 'entityId': UNBEKANNT},
        {'relationships': [], 'entityType': 'immobilien', 'entityId': 'temp-1'},
        {'relationships': 'keine Liste', 'entityType': 'immobilien', 'entityId': UNBEKANNT},
    ])
    def test_invalid_request(self, client, body):
        assert client.post('/api/validate-relationships', json=body).status_code == 400


def test_schema_endpoint(client):
    response = client.get('/api/schema/kontakte')
    assert response.status_code == 200
    assert response.get_json()[0] == {
        'name': 'name',
        'label': 'Name',
        'type': 'text',
        'required': True,
        'options': [],
        'placeholder': 'Name eingeben',
        'relationshipType': None,
        'conditional': None,
    }
