"""Declarative base for every table, plus the listeners that keep created/modified current."""
from dictalchemy import DictableModel
from sqlalchemy.orm import declarative_base

from consent_service import clock

# DictableModel gives each model asdict()/fromdict(); tests compare models through asdict().
Base = declarative_base(cls=DictableModel)


# pylint: disable=unused-argument
def model_insert_listener(mapper, connection, target):
    target.created = target.modified = clock.CLOCK.now()


# pylint: disable=unused-argument
def model_update_listener(mapper, connection, target):
    target.modified = clock.CLOCK.now()
