"""JSON API Blueprint for Kontakte, Immobilien and Beziehungen.

Generic CRUD endpoints per table plus the relationship validation
endpoints used by the edit forms.
"""
from flask import Blueprint, current_app, jsonify, request

from immoverwaltung.errors import (
    COMMON_ERROR_MESSAGES, ImmoverwaltungError, InvalidRequestError, StoreError, is_valid_table
)
from immoverwaltung.models import BeziehungSeite
from immoverwaltung.schema import schema_fuer
from immoverwaltung.services.beziehung_validator import (
    validate_beziehung, validate_beziehungen_gegen_store
)
from immoverwaltung.services.entity_service import get_entity_service
from immoverwaltung.services.store import get_store
from immoverwaltung.utils import is_valid_uuid

api_bp = Blueprint('api', __name__, url_prefix='/api')


@api_bp.errorhandler(ImmoverwaltungError)
def handle_immoverwaltung_error(error):
    """Render domain errors as JSON with their status code."""
    if error.status_code >= 500:
        current_app.logger.error(f'{request.method} {request.path}: {error.message}')
    return jsonify(error.to_dict()), error.status_code


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequestError(COMMON_ERROR_MESSAGES['invalidRequestData'])
    return data


def _pruefe_table(table: str):
    if not is_valid_table(table):
        raise InvalidRequestError(COMMON_ERROR_MESSAGES['invalidTable'])


def _pruefe_uuid(entity_id):
    if not is_valid_uuid(entity_id):
        raise InvalidRequestError(COMMON_ERROR_MESSAGES['invalidUUID'])


def _seite(entity_type) -> BeziehungSeite:
    try:
        return BeziehungSeite(entity_type)
    except ValueError:
        raise InvalidRequestError(COMMON_ERROR_MESSAGES['invalidTable'])


def _split_beziehungen(data: dict):
    """Separate the relationship list from the entity fields."""
    data = dict(data)
    beziehungen = data.pop('relationships', None)
    return data, beziehungen


# =============================================================================
# CRUD ENDPOINTS
# =============================================================================

@api_bp.route('/<table>', methods=['GET'])
def list_entities(table):
    """List all rows of a table, newest first.

    Usage:
        curl http://localhost:5000/api/immobilien
    """
    _pruefe_table(table)
    return jsonify(get_entity_service().list(table))


@api_bp.route('/<table>', methods=['POST'])
def create_entity(table):
    """Create an entity.

    Kontakte and Immobilien accept an optional 'relationships' list.

    Usage:
        curl -X POST -H 'Content-Type: application/json' \\
             -d '{"titel": "Altbau Südstadt"}' http://localhost:5000/api/immobilien
    """
    _pruefe_table(table)
    data, beziehungen = _split_beziehungen(_json_body())
    entity = get_entity_service().create(table, data, beziehungen)
    return jsonify(entity), 201


@api_bp.route('/<table>/<entity_id>', methods=['GET'])
def get_entity(table, entity_id):
    """Get one entity including its relationships.

    Usage:
        curl http://localhost:5000/api/kontakte/<uuid>
    """
    _pruefe_table(table)
    _pruefe_uuid(entity_id)
    return jsonify(get_entity_service().get(table, entity_id))


@api_bp.route('/<table>/<entity_id>', methods=['PATCH'])
def update_entity(table, entity_id):
    """Update changed fields and, if given, the relationship list.

    Returns 200 with the entity, or 207 with {entity, error, details} if
    the entity was saved but its relationships were not.

    Usage:
        curl -X PATCH -H 'Content-Type: application/json' \\
             -d '{"relationships": [...]}' http://localhost:5000/api/immobilien/<uuid>
    """
    _pruefe_table(table)
    _pruefe_uuid(entity_id)
    data, beziehungen = _split_beziehungen(_json_body())

    result = get_entity_service().update(table, entity_id, data, beziehungen)
    if result.ist_teilerfolg:
        return jsonify(result.to_dict()), 207
    return jsonify(result.to_dict())


@api_bp.route('/<table>/<entity_id>', methods=['DELETE'])
def delete_entity(table, entity_id):
    """Delete an entity and its relationships.

    Usage:
        curl -X DELETE http://localhost:5000/api/kontakte/<uuid>
    """
    _pruefe_table(table)
    _pruefe_uuid(entity_id)
    get_entity_service().delete(table, entity_id)
    return jsonify({'success': True, 'message': COMMON_ERROR_MESSAGES['success']})


# =============================================================================
# VALIDATION ENDPOINTS
# =============================================================================

@api_bp.route('/validate-relationship', methods=['POST'])
def validate_relationship():
    """Form-local check of one relationship against the entries in the form.

    Body:
        relationship: Candidate relationship
        existing: Relationships already in the form (optional)
        entityType: 'immobilien' or 'kontakte' (default: immobilien)
        entityId: Id of the edited entity (optional, absent for new entities)
    """
    data = _json_body()
    kandidat = data.get('relationship')
    if not isinstance(kandidat, dict):
        raise InvalidRequestError(COMMON_ERROR_MESSAGES['invalidRequestData'])
    bestehende = data.get('existing') or []
    if not isinstance(bestehende, list):
        raise InvalidRequestError(COMMON_ERROR_MESSAGES['invalidRequestData'])

    entity_id = data.get('entityId')
    if entity_id is not None:
        _pruefe_uuid(entity_id)

    seite = _seite(data.get('entityType', 'immobilien'))
    result = validate_beziehung(kandidat, bestehende, seite, entity_id=entity_id)
    return jsonify(result.to_dict())


@api_bp.route('/validate-relationships', methods=['POST'])
def validate_relationships():
    """Pre-submit check of a relationship list against the persisted state.

    Body:
        relationships: Submitted relationship list
        entityType: 'immobilien' or 'kontakte'
        entityId: Id of the edited entity

    Returns 200 with isValid true, or 400 with isValid false and the
    first conflict as 'error'.
    """
    data = _json_body()
    beziehungen = data.get('relationships')
    if not isinstance(beziehungen, list):
        raise InvalidRequestError(COMMON_ERROR_MESSAGES['invalidRequestData'])
    seite = _seite(data.get('entityType'))
    entity_id = data.get('entityId')
    _pruefe_uuid(entity_id)

    try:
        result = validate_beziehungen_gegen_store(beziehungen, seite, entity_id, get_store())
    except StoreError as e:
        current_app.logger.error(f'Bestehende Beziehungen nicht lesbar: {e.detail}')
        return jsonify({'error': e.message}), 500

    if not result.is_valid:
        body = result.to_dict()
        body['error'] = result.errors[0].message
        return jsonify(body), 400
    return jsonify(result.to_dict())


# =============================================================================
# SCHEMA ENDPOINT
# =============================================================================

@api_bp.route('/schema/<table>', methods=['GET'])
def get_schema(table):
    """Form field schema of a table.

    Usage:
        curl http://localhost:5000/api/schema/beziehungen
    """
    _pruefe_table(table)
    return jsonify(schema_fuer(table))
