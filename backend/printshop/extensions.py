# Overview: Flask extension instances for database, migrations and the domain event bus.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .events import EventBus

db = SQLAlchemy()
migrate = Migrate()
event_bus = EventBus()
