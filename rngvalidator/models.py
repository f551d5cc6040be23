"""Data model shared by the encoder, scorer, suite driver and aggregator."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Sequence, Tuple, Union

import numpy as np


class InputFormat(str, Enum):
    """Encoding of the ``numbers`` field of a request."""

    NUMBERS = "numbers"
    BASE64 = "base64"


@dataclass(frozen=True)
class NumericInput:
    """Raw request payload as received from the HTTP or CLI layer."""

    numbers: str
    input_format: InputFormat = InputFormat.NUMBERS
    range_min: Optional[int] = None
    range_max: Optional[int] = None
    bit_width: Optional[int] = None
    debug_log: bool = False

    def __post_init__(self):
        # Accept the plain string tag ("numbers"/"base64") as well as the enum.
        if not isinstance(self.input_format, InputFormat):
            object.__setattr__(self, "input_format", InputFormat(str(self.input_format).lower()))

    @property
    def has_range(self) -> bool:
        return self.range_min is not None or self.range_max is not None


_ASCII_TABLE = bytes.maketrans(b"\x00\x01", b"01")


class BitStream:
    """Immutable, ordered sequence of bits.

    Bits are held as an immutable ``bytes`` object with one 0/1 value per
    position, so every view handed out (``as_array``, iteration, slicing) is
    read-only. ``bits_per_value`` records the width each input number was
    encoded with; the length is always a whole multiple of it.
    """

    __slots__ = ("_bits", "_width")

    def __init__(self, bits: Union[bytes, bytearray, Sequence[int]] = b"", bits_per_value: int = 1):
        raw = bytes(bits)
        if raw.translate(None, b"\x00\x01"):
            raise ValueError("bit stream values must be 0 or 1")
        width = int(bits_per_value)
        if width < 1:
            raise ValueError("bits_per_value must be a positive integer")
        if len(raw) % width:
            raise ValueError(
                f"bit stream length {len(raw)} is not a multiple of bits_per_value {width}"
            )
        self._bits = raw
        self._width = width

    @classmethod
    def from_array(cls, bits: np.ndarray, bits_per_value: int = 1) -> "BitStream":
        return cls(np.asarray(bits, dtype=np.uint8).tobytes(), bits_per_value)

    @classmethod
    def from_bytes(cls, data: bytes) -> "BitStream":
        """Unpack raw bytes, MSB-first per byte, eight bits per value."""
        unpacked = np.unpackbits(np.frombuffer(bytes(data), dtype=np.uint8))
        return cls(unpacked.tobytes(), 8)

    @property
    def bits_per_value(self) -> int:
        return self._width

    @property
    def value_count(self) -> int:
        return len(self._bits) // self._width

    def as_array(self) -> np.ndarray:
        """Read-only uint8 view of the bits."""
        return np.frombuffer(self._bits, dtype=np.uint8)

    def ones(self) -> int:
        return self._bits.count(1)

    def transitions(self) -> int:
        """Number of adjacent positions whose bits differ."""
        if len(self._bits) < 2:
            return 0
        arr = self.as_array()
        return int(np.count_nonzero(arr[1:] != arr[:-1]))

    def to_ascii(self) -> str:
        """Render as the suite's ASCII '0'/'1' input format."""
        return self._bits.translate(_ASCII_TABLE).decode("ascii")

    def __len__(self) -> int:
        return len(self._bits)

    def __iter__(self) -> Iterator[int]:
        return iter(self._bits)

    def __getitem__(self, key):
        return self._bits[key]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BitStream):
            return NotImplemented
        return self._bits == other._bits and self._width == other._width

    def __hash__(self) -> int:
        return hash((self._bits, self._width))

    def __repr__(self) -> str:
        preview = self.to_ascii()[:32]
        suffix = "..." if len(self._bits) > 32 else ""
        return f"BitStream(len={len(self._bits)}, bits_per_value={self._width}, bits='{preview}{suffix}')"


@dataclass(frozen=True)
class Tier:
    """Bit-count threshold unlocking a set of statistical tests."""

    level: int
    name: str
    description: str
    min_bits: int
    recommended_bits: int


@dataclass(frozen=True)
class TestDefinition:
    """A named suite test and the output it is read from.

    ``directory`` is the suite's per-test output folder. Some suite tests
    write several p-values into one file (e.g. forward and reverse cumulative
    sums); ``index`` selects the one this definition reports, ``None`` keeps
    them all.
    """

    __test__ = False
    name: str
    description: str
    tier: int
    directory: str
    min_bits: int = 0
    index: Optional[int] = None

    def applies_to(self, tier_level: int, bit_count: int) -> bool:
        return tier_level >= self.tier and bit_count >= self.min_bits


@dataclass(frozen=True)
class TestResult:
    """Outcome of one suite test against a bit stream."""

    __test__ = False
    name: str
    passed: bool
    p_value: Optional[float]
    p_values: Tuple[float, ...] = ()
    description: str = ""
    metrics: Dict[str, str] = field(default_factory=dict)
    status: str = "completed"
    reason: Optional[str] = None

    def __post_init__(self):
        if self.status not in ("completed", "skipped"):
            raise ValueError(f"unknown test status: {self.status}")
        object.__setattr__(self, "p_values", tuple(float(p) for p in self.p_values))
        candidates = list(self.p_values)
        if self.p_value is not None:
            candidates.append(self.p_value)
        for p in candidates:
            if not (0.0 <= p <= 1.0):
                raise ValueError("p_value must be between 0 and 1")

    @property
    def skipped(self) -> bool:
        return self.status == "skipped"

    @classmethod
    def skipped_result(cls, definition: TestDefinition, reason: str) -> "TestResult":
        return cls(
            name=definition.name,
            passed=False,
            p_value=None,
            description=definition.description,
            status="skipped",
            reason=reason,
        )


def serialize_test_result(result: TestResult) -> Dict[str, Any]:
    """Serialize a TestResult into the ``individual_tests`` entry shape."""
    out: Dict[str, Any] = {
        "name": result.name,
        "passed": result.passed,
        "p_value": result.p_value,
        "p_values": list(result.p_values),
        "description": result.description,
        "status": result.status,
    }
    if result.metrics:
        out["metrics"] = dict(result.metrics)
    if result.reason:
        out["reason"] = result.reason
    return out


@dataclass(frozen=True)
class QualityScore:
    """Output of the basic quality scorer."""

    score: float
    balance: float
    runs: float
    ones: int
    transitions: int
    bit_count: int
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "score": self.score,
            "balance": self.balance,
            "runs": self.runs,
            "ones": self.ones,
            "transitions": self.transitions,
            "bit_count": self.bit_count,
        }
        if self.reason:
            out["reason"] = self.reason
        return out


@dataclass(frozen=True)
class AssessmentReport:
    """Unified result of one validation request."""

    valid: bool
    quality_score: float
    message: str
    bit_count: int
    quality: Optional[QualityScore] = None
    tier: int = 0
    tier_name: Optional[str] = None
    results: Tuple[TestResult, ...] = ()
    tests_passed: int = 0
    total_tests: int = 0
    success_rate: float = 0.0
    suite_ran: bool = False
    error_kind: Optional[str] = None
    raw_output: Optional[str] = None
    debug_file: Optional[str] = None

    def __post_init__(self):
        if not (0.0 <= self.quality_score <= 1.0):
            raise ValueError("quality_score must be between 0 and 1")
        object.__setattr__(self, "results", tuple(self.results))

    def result(self, name: str) -> Optional[TestResult]:
        for r in self.results:
            if r.name == name:
                return r
        return None

    @property
    def skipped_tests(self) -> Tuple[TestResult, ...]:
        return tuple(r for r in self.results if r.skipped)

    def to_dict(self) -> Dict[str, Any]:
        """Response JSON for the HTTP and CLI layers."""
        nist_data = None
        if self.suite_ran:
            nist_data = {
                "bit_count": self.bit_count,
                "tier": self.tier,
                "tier_name": self.tier_name,
                "tests_passed": self.tests_passed,
                "total_tests": self.total_tests,
                "success_rate": self.success_rate,
                "individual_tests": [serialize_test_result(r) for r in self.results],
            }
        out: Dict[str, Any] = {
            "valid": self.valid,
            "quality_score": self.quality_score,
            "message": self.message,
            "nist_data": nist_data,
            "basic_quality": self.quality.to_dict() if self.quality is not None else None,
        }
        if self.error_kind:
            out["error_kind"] = self.error_kind
        if self.raw_output:
            out["nist_results"] = self.raw_output
        if self.debug_file:
            out["debug_file"] = self.debug_file
        return out
