"""Domain errors raised by the progression engine.

Routers never catch these; the global error handler maps each ``code`` to an
HTTP status (see ``questline.middleware.error_handler``).
"""

from __future__ import annotations


class ProgressionError(Exception):
    """Base class for every error the progression core raises on purpose."""

    code = "progression_error"

    def __init__(self, message: str = "", **context: object) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.context = context


class NotFoundError(ProgressionError):
    """A user, quest, objective or record referenced by id does not exist."""

    code = "not_found"


class ObjectiveNotFound(NotFoundError):
    """The quest catalog has no objective with the requested id."""

    code = "objective_not_found"


class AlreadyClaimed(ProgressionError):
    code = "already_claimed"


class NotCompleted(ProgressionError):
    code = "not_completed"


class InvalidObjective(ProgressionError):
    """Malformed objective id or definition (e.g. both targets nonzero)."""

    code = "invalid_objective"


class PersistenceFailure(ProgressionError):
    """The store was unavailable or a write conflict could not be resolved."""

    code = "persistence_failure"
