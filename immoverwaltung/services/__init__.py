"""Service modules for immoverwaltung."""
from immoverwaltung.services.store import DatenStore, SqlAlchemyStore, get_store
from immoverwaltung.services.konflikt_pruefung import intervals_overlap, has_overlap, finde_konflikte
from immoverwaltung.services.beziehung_validator import (
    BeziehungValidator, ValidationResult, FieldError,
    validate_beziehung, validate_beziehungsliste, validate_beziehungen_gegen_store
)
from immoverwaltung.services.beziehung_abgleich import (
    BeziehungAbgleich, ReconcileResult, reconcile_beziehungen, get_abgleich
)
from immoverwaltung.services.entity_service import EntityService, EntityUpdateResult, get_entity_service

__all__ = [
    # Store
    'DatenStore', 'SqlAlchemyStore', 'get_store',
    # Konfliktprüfung
    'intervals_overlap', 'has_overlap', 'finde_konflikte',
    # Validator
    'BeziehungValidator', 'ValidationResult', 'FieldError',
    'validate_beziehung', 'validate_beziehungsliste', 'validate_beziehungen_gegen_store',
    # Abgleich
    'BeziehungAbgleich', 'ReconcileResult', 'reconcile_beziehungen', 'get_abgleich',
    # Entity Service
    'EntityService', 'EntityUpdateResult', 'get_entity_service',
]
