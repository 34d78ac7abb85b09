"""Fehlerklassen und lokalisierte Fehlermeldungen.

Jeder Fehler trägt eine kurze, deutschsprachige Meldung und optional das
betroffene Feld, damit die Oberfläche ihn dem richtigen Eingabefeld
zuordnen kann.
"""

# Erlaubte Tabellennamen für die generische API
ALLOWED_TABLES = ('kontakte', 'immobilien', 'beziehungen')

TABLE_ERROR_MESSAGES = {
    'kontakte': {
        'fetch': 'Fehler beim Abrufen der Kontaktdaten',
        'create': 'Fehler beim Erstellen des Kontakts',
        'update': 'Fehler beim Aktualisieren des Kontakts',
        'delete': 'Fehler beim Löschen des Kontakts',
        'notFound': 'Kontakt nicht gefunden',
        'invalidData': 'Ungültige Kontaktdaten',
        'fetchCurrent': 'Fehler beim Abrufen der aktuellen Kontaktdaten',
    },
    'immobilien': {
        'fetch': 'Fehler beim Abrufen der Immobiliendaten',
        'create': 'Fehler beim Erstellen der Immobilie',
        'update': 'Fehler beim Aktualisieren der Immobilie',
        'delete': 'Fehler beim Löschen der Immobilie',
        'notFound': 'Immobilie nicht gefunden',
        'invalidData': 'Ungültige Immobiliendaten',
        'fetchCurrent': 'Fehler beim Abrufen der aktuellen Immobiliendaten',
    },
    'beziehungen': {
        'fetch': 'Fehler beim Abrufen der Beziehungsdaten',
        'create': 'Fehler beim Erstellen der Beziehung',
        'update': 'Fehler beim Aktualisieren der Beziehung',
        'delete': 'Fehler beim Löschen der Beziehung',
        'notFound': 'Beziehung nicht gefunden',
        'invalidData': 'Ungültige Beziehungsdaten',
        'fetchCurrent': 'Fehler beim Abrufen der aktuellen Beziehungsdaten',
    },
}

COMMON_ERROR_MESSAGES = {
    'invalidTable': 'Ungültiger Tabellenname',
    'internalServerError': 'Interner Serverfehler',
    'invalidRequestData': 'Ungültige Anfragedaten',
    'invalidUUID': 'Ungültiges UUID-Format',
    'success': 'Vorgang erfolgreich abgeschlossen',
}


def is_valid_table(table: str) -> bool:
    """Check whether a table name is served by the API."""
    return table in ALLOWED_TABLES


class ImmoverwaltungError(Exception):
    """Basisklasse aller fachlichen Fehler."""

    field = None
    status_code = 500

    def __init__(self, message: str, field: str = None):
        super().__init__(message)
        self.message = message
        if field is not None:
            self.field = field

    def to_dict(self) -> dict:
        """Return dictionary representation for JSON responses."""
        data = {'error': self.message}
        if self.field:
            data['field'] = self.field
        return data


class InvalidRequestError(ImmoverwaltungError):
    """Ungültiger Tabellenname, ungültige UUID oder ungültige Nutzdaten."""
    status_code = 400


class BeziehungValidationError(ImmoverwaltungError):
    """Eine oder mehrere Beziehungen verletzen eine fachliche Regel.

    Wird ausschließlich vor einem Store-Zugriff ausgelöst.
    """
    status_code = 400

    def __init__(self, result):
        first = result.errors[0] if result.errors else None
        super().__init__(
            first.message if first else COMMON_ERROR_MESSAGES['invalidRequestData'],
            field=first.field if first else None,
        )
        self.result = result

    def to_dict(self) -> dict:
        data = self.result.to_dict()
        data['error'] = self.message
        return data


class NotFoundError(ImmoverwaltungError):
    """Referenzierte Entität existiert nicht."""
    status_code = 404

    def __init__(self, table: str, entity_id):
        super().__init__(TABLE_ERROR_MESSAGES[table]['notFound'])
        self.table = table
        self.entity_id = entity_id


class StoreError(ImmoverwaltungError):
    """Fehler beim Lesen oder Schreiben im Datenspeicher.

    Args:
        table: Betroffene Tabelle
        operation: Schlüssel aus TABLE_ERROR_MESSAGES (fetch, create, ...)
        detail: Technische Fehlerbeschreibung des Speichers
        message: Optional abweichende Meldung
    """
    status_code = 500

    def __init__(self, table: str, operation: str, detail: str = None, message: str = None):
        if message is None:
            messages = TABLE_ERROR_MESSAGES.get(table, {})
            message = messages.get(operation, COMMON_ERROR_MESSAGES['internalServerError'])
        super().__init__(message)
        self.table = table
        self.operation = operation
        self.detail = detail

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.detail:
            data['details'] = self.detail
        return data
