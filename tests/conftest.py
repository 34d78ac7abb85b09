"""Shared fixtures: app with in-memory SQLite, client, store and factories."""
from datetime import date

import pytest

from immoverwaltung import create_app, db
from immoverwaltung.models import Kontakt, Immobilie, Beziehung, BeziehungsArt
from immoverwaltung.services.store import SqlAlchemyStore
from immoverwaltung.utils import parse_datum


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return SqlAlchemyStore()


@pytest.fixture
def replace_mode(app):
    app.config['RECONCILE_MODE'] = 'replace'
    return app


@pytest.fixture
def kontakt_factory(app):
    def _create(name='Max Mustermann', **kwargs):
        kontakt = Kontakt(name=name, **kwargs)
        db.session.add(kontakt)
        db.session.commit()
        return kontakt
    return _create


@pytest.fixture
def immobilie_factory(app):
    def _create(titel='Altbau Südstadt', **kwargs):
        immobilie = Immobilie(titel=titel, **kwargs)
        db.session.add(immobilie)
        db.session.commit()
        return immobilie
    return _create


@pytest.fixture
def beziehung_factory(app):
    def _create(immobilie, kontakt, art=BeziehungsArt.MIETER.value,
                startdatum=None, enddatum=None, dienstleistungen=None):
        beziehung = Beziehung(
            immobilien_id=immobilie.id,
            kontakt_id=kontakt.id,
            art=art,
            startdatum=parse_datum(startdatum),
            enddatum=parse_datum(enddatum),
            dienstleistungen=dienstleistungen,
        )
        db.session.add(beziehung)
        db.session.commit()
        return beziehung
    return _create


@pytest.fixture
def mietobjekt(immobilie_factory, kontakt_factory, beziehung_factory):
    """Immobilie with an Eigentümer (A) and a Mieter for Q1 2024 (B)."""
    immobilie = immobilie_factory()
    eigentuemer = kontakt_factory('Anna Müller')
    mieter = kontakt_factory('Jens Schmidt')
    a = beziehung_factory(immobilie, eigentuemer, BeziehungsArt.EIGENTUEMER.value,
                          startdatum=date(2019, 5, 1))
    b = beziehung_factory(immobilie, mieter, BeziehungsArt.MIETER.value,
                          startdatum='2024-01-01', enddatum='2024-03-31')
    return {
        'immobilie': immobilie,
        'eigentuemer': eigentuemer,
        'mieter': mieter,
        'a': a,
        'b': b,
    }
