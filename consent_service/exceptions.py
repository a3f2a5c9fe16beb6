"""HTTP errors raised by the DAOs and services beyond the ones werkzeug provides directly."""
from werkzeug.exceptions import BadRequest, Conflict


class EntityAlreadyExists(Conflict):
    description = "The entity already exists."


class ConcurrentModification(Conflict):
    description = "The entity is held by another account."


class ConstraintViolation(Conflict):
    description = "The entity cannot be deleted while other records depend on it."


class InvalidEntity(BadRequest):
    description = "The entity is invalid."
