"""Classified failures raised across the assessment pipeline.

Every exception carries a ``kind`` string which is what ends up in reports and
log records, so callers never have to match on class names.
"""

from typing import Optional


class ValidatorError(Exception):
    """Base error type for assessment failures."""

    kind = "ValidatorError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# --- encoder ---------------------------------------------------------------

class EncodingError(ValidatorError):
    """Raised when no bit stream can be produced from the request payload."""

    kind = "EncodingError"


class InvalidFormat(EncodingError):
    """A token is not a base-10 integer, or base64 data is malformed."""

    kind = "InvalidFormat"


class RangeViolation(EncodingError):
    """A value does not fit the declared range or bit width."""

    kind = "RangeViolation"


class EmptyInput(EncodingError):
    """The payload contains zero values."""

    kind = "EmptyInput"


class InvalidParameter(EncodingError):
    """A request option is malformed or inapplicable to the input format."""

    kind = "InvalidParameter"


# --- tier selection --------------------------------------------------------

class InsufficientBits(ValidatorError):
    """The bit stream is shorter than the tier-1 threshold."""

    kind = "InsufficientBits"

    def __init__(self, bit_count: int, required: int):
        super().__init__(
            f"{bit_count} bits supplied; the statistical test suite needs at least {required} bits"
        )
        self.bit_count = bit_count
        self.required = required


# --- external suite --------------------------------------------------------

class SuiteError(ValidatorError):
    """Base class for failures of the external statistical test suite."""

    kind = "SuiteError"


class SuiteUnavailable(SuiteError):
    """The suite executable is missing or cannot be launched."""

    kind = "SuiteUnavailable"


class SuiteTimeout(SuiteError):
    """The suite did not finish within the configured timeout."""

    kind = "SuiteTimeout"

    def __init__(self, message: str, timeout: Optional[float] = None):
        super().__init__(message)
        self.timeout = timeout


class SuiteProcessFailure(SuiteError):
    """The suite exited without producing any usable output."""

    kind = "SuiteProcessFailure"

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class ResultParseFailure(ValidatorError):
    """A single test's result file is missing or unreadable."""

    kind = "ResultParseFailure"


class ConfigurationError(ValidatorError):
    """Configuration file or environment override is invalid."""

    kind = "ConfigurationError"
