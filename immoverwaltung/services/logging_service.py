"""Audit-Log Service for tracking important events."""
from immoverwaltung import db
from immoverwaltung.models import AuditLog

VALID_MODULE = ('kontakte', 'immobilien', 'beziehungen', 'system')
VALID_LEVELS = ('niedrig', 'mittel', 'hoch', 'kritisch')


def log_event(
    modul: str,
    aktion: str,
    details: str = None,
    wichtigkeit: str = 'niedrig',
    entity_type: str = None,
    entity_id: str = None
) -> AuditLog:
    """Create an audit log entry.

    This function should be called within an existing database transaction.
    The caller is responsible for calling db.session.commit() after this function.

    Args:
        modul: Module code ('kontakte', 'immobilien', 'beziehungen', 'system')
        aktion: Action code (e.g. 'angelegt', 'beziehungen_abgeglichen')
        details: Optional detailed description (human-readable)
        wichtigkeit: Importance level - 'niedrig', 'mittel', 'hoch', 'kritisch'
        entity_type: Optional type of affected entity (e.g. 'Kontakt', 'Immobilie')
        entity_id: Optional ID of affected entity

    Returns:
        AuditLog: The created log entry

    Raises:
        ValueError: If the module code is unknown

    Example:
        ```python
        from immoverwaltung.services.logging_service import log_event

        log_event(
            modul='beziehungen',
            aktion='abgleich_teilweise_fehlgeschlagen',
            details='Einfügen nach Löschen fehlgeschlagen',
            wichtigkeit='hoch',
            entity_type='Immobilie',
            entity_id='3f2b8c1e-4d5a-4e6f-9a0b-1c2d3e4f5a6b'
        )

        db.session.commit()
        ```
    """
    if wichtigkeit not in VALID_LEVELS:
        wichtigkeit = 'niedrig'

    if modul not in VALID_MODULE:
        raise ValueError(f"Unknown module: {modul}")

    # Get IP address from request if available
    ip_adresse = None
    try:
        from flask import request
        if request:
            ip_adresse = request.remote_addr
    except RuntimeError:
        # Outside of request context
        pass

    log_entry = AuditLog(
        modul=modul,
        aktion=aktion,
        details=details,
        wichtigkeit=wichtigkeit,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip_adresse=ip_adresse
    )

    db.session.add(log_entry)

    return log_entry


def log_hoch(modul: str, aktion: str, details: str = None, **kwargs) -> AuditLog:
    """Shortcut for logging high-importance events."""
    return log_event(modul, aktion, details, wichtigkeit='hoch', **kwargs)


def log_mittel(modul: str, aktion: str, details: str = None, **kwargs) -> AuditLog:
    """Shortcut for logging medium-importance events."""
    return log_event(modul, aktion, details, wichtigkeit='mittel', **kwargs)


def log_kritisch(modul: str, aktion: str, details: str = None, **kwargs) -> AuditLog:
    """Shortcut for logging critical events."""
    return log_event(modul, aktion, details, wichtigkeit='kritisch', **kwargs)
