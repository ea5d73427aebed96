# standpos/domain/errors.py


class RemoteStoreError(RuntimeError):
    """Remote store unreachable or the query failed."""


class OrderBusyError(RuntimeError):
    """Another mutation of the same order is in flight."""


class InvalidTransitionError(ValueError):
    """Requested status is not reachable from the current one."""


class ConfirmationCodeError(ValueError):
    """Delivery confirmation code missing, wrong, or could not be verified."""
