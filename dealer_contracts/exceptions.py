"""Error taxonomy for contract generation, signing and archiving"""


class ContractError(Exception):
    """Base class for all errors raised by dealer_contracts."""


class ValidationError(ContractError):
    """Malformed or missing input, rejected before any computation."""


class NotFoundError(ContractError):
    """A session token, vehicle or archived contract could not be resolved."""


class ExpiredError(ContractError):
    """The signature session is past its validity window."""


class AlreadyCompletedError(ContractError):
    """The signature session has already been signed."""


class StorageError(ContractError):
    """A binary or metadata read/write against the backend failed."""


class RenderError(ContractError):
    """The document could not be materialized to PDF."""


class DeliveryError(ContractError):
    """An outgoing email could not be handed to the mail server."""
