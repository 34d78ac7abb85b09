"""Database models."""
from immoverwaltung.models.kontakt import Kontakt
from immoverwaltung.models.immobilie import Immobilie
from immoverwaltung.models.beziehung import (
    Beziehung, BeziehungsArt, BeziehungSeite, BeziehungEntwurf, DENORMALISIERTE_FELDER
)
from immoverwaltung.models.audit_log import AuditLog

# Tabellenname -> Modellklasse (für Store und generische API)
MODELLE = {
    'kontakte': Kontakt,
    'immobilien': Immobilie,
    'beziehungen': Beziehung,
}

__all__ = [
    'Kontakt', 'Immobilie',
    'Beziehung', 'BeziehungsArt', 'BeziehungSeite', 'BeziehungEntwurf',
    'DENORMALISIERTE_FELDER',
    'AuditLog',
    'MODELLE',
]
