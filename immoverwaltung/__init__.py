"""Flask Application Factory."""
import logging
import os
import sys
from datetime import date

import click
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_wtf.csrf import CSRFProtect
from sqlalchemy import event
from sqlalchemy.engine import Engine

from immoverwaltung.config import config

db = SQLAlchemy()
migrate = Migrate(compare_type=True, render_as_batch=True)
csrf = CSRFProtect()


@event.listens_for(Engine, 'connect')
def _set_sqlite_pragma(dbapi_conn, conn_record):
    """Enable foreign keys on SQLite so relationship rows cascade on delete."""
    if dbapi_conn.__class__.__module__.startswith('sqlite3'):
        cursor = dbapi_conn.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


def create_app(config_name=None):
    """Create and configure the Flask application."""
    if config_name is None:
        config_name = os.environ.get('FLASK_CONFIG', 'default')

    app = Flask(__name__)
    app.config.from_object(config[config_name])

    # Ensure instance folder exists
    try:
        os.makedirs(app.instance_path, exist_ok=True)
    except OSError:
        pass

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)

    # Import models so metadata is complete for create_all/migrations
    from immoverwaltung import models  # noqa: F401

    # Register blueprints
    from immoverwaltung.routes import api_bp
    csrf.exempt(api_bp)
    app.register_blueprint(api_bp)

    _configure_logging(app)

    # Register CLI commands
    register_cli_commands(app)

    return app


def _configure_logging(app: Flask) -> None:
    """Set the application log level and a console handler."""
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    app.logger.setLevel(level)

    if not app.testing and not any(isinstance(h, logging.StreamHandler) for h in app.logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s:%(lineno)d %(message)s'
        ))
        app.logger.addHandler(handler)

    app.logger.debug('Logging initialisiert (level=%s).', logging.getLevelName(level))


def register_cli_commands(app):
    """Register CLI commands."""

    @app.cli.command('init-db')
    def init_db_command():
        """Create all tables without running migrations (development only)."""
        db.create_all()
        click.echo('Tabellen angelegt.')

    @app.cli.command('seed')
    def seed_command():
        """Seed the database with demo Kontakte, Immobilien and Beziehungen."""
        from immoverwaltung.models import Kontakt, Immobilie, Beziehung, BeziehungsArt

        if Kontakt.query.first() or Immobilie.query.first():
            click.echo('Datenbank enthält bereits Daten, Seed übersprungen.')
            return

        kontakte = {
            'mueller': Kontakt(name='Anna Müller', adresse='Lindenstraße 4, 50674 Köln',
                               email='anna.mueller@example.com'),
            'schmidt': Kontakt(name='Jens Schmidt', adresse='Hauptstraße 12, 40213 Düsseldorf',
                               telefon='0211 123456'),
            'hausmeister': Kontakt(name='Hausmeisterservice Rhein GmbH',
                                   adresse='Industriestraße 8, 51063 Köln'),
        }
        immobilien = {
            'altbau': Immobilie(titel='Altbau Südstadt', adresse='Bonner Straße 21, 50677 Köln',
                                beschreibung='3-Zimmer-Wohnung, 2. OG'),
            'loft': Immobilie(titel='Loft Rheinauhafen', adresse='Agrippinawerft 6, 50678 Köln'),
        }
        for obj in list(kontakte.values()) + list(immobilien.values()):
            db.session.add(obj)
        db.session.flush()

        beziehungen = [
            Beziehung(immobilien_id=immobilien['altbau'].id, kontakt_id=kontakte['mueller'].id,
                      art=BeziehungsArt.EIGENTUEMER.value, startdatum=date(2019, 5, 1)),
            Beziehung(immobilien_id=immobilien['altbau'].id, kontakt_id=kontakte['schmidt'].id,
                      art=BeziehungsArt.MIETER.value,
                      startdatum=date(2024, 1, 1), enddatum=date(2025, 12, 31)),
            Beziehung(immobilien_id=immobilien['altbau'].id, kontakt_id=kontakte['hausmeister'].id,
                      art=BeziehungsArt.DIENSTLEISTER.value,
                      dienstleistungen='Treppenhausreinigung, Winterdienst'),
            Beziehung(immobilien_id=immobilien['loft'].id, kontakt_id=kontakte['mueller'].id,
                      art=BeziehungsArt.EIGENTUEMER.value, startdatum=date(2021, 9, 1)),
        ]
        for beziehung in beziehungen:
            db.session.add(beziehung)

        db.session.commit()
        click.echo(f'Created {len(kontakte)} Kontakte, {len(immobilien)} Immobilien, '
                   f'{len(beziehungen)} Beziehungen.')

    @app.cli.command('beziehungen-pruefen')
    def beziehungen_pruefen_command():
        """Report overlapping Mieter relationships in the database."""
        from immoverwaltung.models import Beziehung, BeziehungEntwurf, BeziehungsArt
        from immoverwaltung.services.konflikt_pruefung import finde_konflikte

        mieter = Beziehung.query.filter_by(art=BeziehungsArt.MIETER.value).all()
        eintraege = [BeziehungEntwurf.from_model(b).to_dict() for b in mieter]

        gefunden = 0
        for schluessel, bezeichnung in (('immobilien_id', 'Immobilie'), ('kontakt_id', 'Kontakt')):
            for erste, zweite in finde_konflikte(eintraege, schluessel):
                gefunden += 1
                label = (erste.get('immobilien_titel') if schluessel == 'immobilien_id'
                         else erste.get('kontakt_name')) or erste[schluessel]
                click.echo(
                    f'Konflikt ({bezeichnung} {label}): '
                    f'{erste["id"]} [{erste["startdatum"]} – {erste["enddatum"] or "offen"}] '
                    f'überschneidet {zweite["id"]} '
                    f'[{zweite["startdatum"]} – {zweite["enddatum"] or "offen"}]'
                )

        if gefunden:
            click.echo(f'{gefunden} Konflikt(e) gefunden.')
            sys.exit(1)
        click.echo('Keine überschneidenden Mietverhältnisse gefunden.')
