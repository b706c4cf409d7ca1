from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def init_db(app):
    """Initialize database with app"""
    db.init_app(app)


from .user import DiscoveredPlace, User
from .mission import Mission, MissionProgress, MissionProgressPlace
from .operator import Operator
from .place import Place
from .place_edit_request import PlaceEditRequest

__all__ = [
    'db',
    'init_db',
    'DiscoveredPlace',
    'Mission',
    'MissionProgress',
    'MissionProgressPlace',
    'Operator',
    'Place',
    'PlaceEditRequest',
    'User',
]
