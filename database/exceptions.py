"""Exceptions raised by the data-access engines.

Engines raise these internally; the Facade never lets them escape and hands
them back in the error slot of a `Result` instead.
"""
from typing import Optional

class DatabaseError(Exception):
    """Base class for data-access errors."""
    pass

class InvalidRecordError(DatabaseError):
    """Raised when caller input does not satisfy a record type's constraints."""
    pass

class DuplicateUserError(DatabaseError):
    """Raised when signing up with an email that is already registered."""
    pass

class InvalidCredentialsError(DatabaseError):
    """Raised when no user matches the given email and password."""
    pass

class NotFoundError(DatabaseError):
    """Raised when a product, cart item, order or seller does not exist."""
    def __init__(self, entity: str, key: Optional[str] = None):
        self.entity = entity
        self.key = key
        super().__init__(f"{entity} not found" if key is None else f"{entity} {key} not found")

class DuplicateReviewError(DatabaseError):
    """Raised when a user reviews the same product twice."""
    pass

class InsufficientInventoryError(DatabaseError):
    """Raised when an order asks for more units than a product has."""
    def __init__(self, product_id: str, available: int, requested: int):
        self.product_id = product_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient inventory for product {product_id}: "
            f"available {available}, requested {requested}"
        )

class EmptyCartError(DatabaseError):
    """Raised when placing an order with nothing in the cart."""
    pass

class OperationNotSupportedError(DatabaseError):
    """Raised when the selected engine cannot perform an operation."""
    pass

class RemoteServiceError(DatabaseError):
    """Raised when the hosted service is unreachable, misconfigured or fails."""
    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        code: Optional[str] = None
    ):
        self.cause = cause
        self.code = code
        super().__init__(message)

class DatabaseSchemaError(DatabaseError):
    """Raised when the remote schema cannot be provisioned or migrated."""
    pass
