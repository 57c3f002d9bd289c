"""
Error types raised by the order cadence engine.

Insufficient purchase history and unknown product references are not
errors: they surface as ``has_sufficient_data = False`` on a prediction
and as skipped line items respectively.
"""


class OrderCadenceError(Exception):
    """Base class for engine errors"""


class InvalidFilterError(OrderCadenceError, ValueError):
    """Filter parameters outside their accepted ranges"""


class SourceFetchError(OrderCadenceError):
    """The live order/product source could not be read"""


class PersistenceError(OrderCadenceError):
    """The categorized orders store rejected a read or write"""
