# Overview: Domain error taxonomy shared by services, routes and the CLI.

from __future__ import annotations


class RegistrarError(Exception):
    """Base class for every error raised by the registrar services."""


class InvalidArgumentError(RegistrarError, ValueError):
    """Caller input is missing or malformed (empty key, short reason, bad range)."""


class DateConflictError(RegistrarError, ValueError):
    """A date falls outside its parent's range or collides with a neighbour."""


class StateTransitionError(RegistrarError, ValueError):
    """The requested lifecycle transition is not allowed from the current state."""


class ConfigurationError(RegistrarError, ValueError):
    """A stored settings document is corrupt or cannot be used."""


class NotFoundError(RegistrarError, LookupError):
    """The entity does not exist for this tenant (or was soft-deleted)."""


class StorageError(RegistrarError, RuntimeError):
    """Persistence failed; the operation was rolled back."""


class TransientError(StorageError):
    """
    A lock timeout or deadlock outlived the retry budget.

    Safe to retry: nothing was committed.
    """
