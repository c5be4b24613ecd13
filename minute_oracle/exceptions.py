"""
Minute Oracle Exceptions

Custom exception classes for the price oracle. Every kind also derives from
the closest builtin so callers that only know about ``ValueError`` or
``LookupError`` still catch it.
"""


class OracleException(Exception):
    """Base exception for the oracle."""
    pass


class OutOfOrderTimestamp(OracleException, ValueError):
    """Trade timestamp precedes the last recorded trade."""
    pass


class InvalidPrice(OracleException, ValueError):
    """price_sqrt is not a positive finite number."""
    pass


class InvalidTimestamp(OracleException, ValueError):
    """Timestamp is not a non-negative integer."""
    pass


class InvalidInterval(OracleException, ValueError):
    """Interval ends round to the same minute or are reversed."""
    pass


class EmptyOracle(OracleException, LookupError):
    """No observation has been stored yet."""
    pass


class OutOfRange(OracleException, LookupError):
    """Queried timestamp lies outside the stored observations."""
    pass


class ArithmeticOverflow(OracleException, ArithmeticError):
    """Fixed-point value exceeds the representable range."""
    pass


class ConfigurationError(OracleException):
    """Configuration error."""
    pass
