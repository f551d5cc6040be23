"""Bit-count tiers and the catalog of suite tests each tier unlocks."""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .models import TestDefinition, Tier

TIERS: Tuple[Tier, ...] = (
    Tier(1, "Minimal", "Basic frequency, runs and spectral checks", 100, 1_000),
    Tier(2, "Light", "Adds block frequency and template matching", 1_000, 10_000),
    Tier(3, "Standard", "Adds longest run, matrix rank, entropy and serial tests", 10_000, 100_000),
    Tier(4, "Full", "Adds linear complexity and Maurer's universal test", 100_000, 1_000_000),
    Tier(5, "Comprehensive", "Complete suite including random excursions", 1_000_000, 10_000_000),
)

# Maurer's universal test needs at least 387,840 bits for its smallest block
# length (L = 6); below that the suite refuses to compute it.
UNIVERSAL_MIN_BITS = 387_840

TEST_CATALOG: Tuple[TestDefinition, ...] = (
    TestDefinition("Frequency", "Proportion of ones and zeros (monobit)", 1, "Frequency"),
    TestDefinition("Runs", "Number of uninterrupted runs of identical bits", 1, "Runs"),
    TestDefinition("FFT", "Discrete Fourier transform peak heights", 1, "FFT"),
    TestDefinition("CumulativeSums-Forward", "Maximal excursion of the forward cumulative sum", 1, "CumulativeSums", index=0),
    TestDefinition("CumulativeSums-Reverse", "Maximal excursion of the reverse cumulative sum", 1, "CumulativeSums", index=1),
    TestDefinition("BlockFrequency", "Proportion of ones within M-bit blocks", 2, "BlockFrequency"),
    TestDefinition("NonOverlappingTemplate", "Occurrences of aperiodic templates", 2, "NonOverlappingTemplate"),
    TestDefinition("OverlappingTemplate", "Occurrences of an all-ones template, overlapping", 2, "OverlappingTemplate"),
    TestDefinition("LongestRun", "Longest run of ones within blocks", 3, "LongestRun"),
    TestDefinition("Rank", "Rank of disjoint binary sub-matrices", 3, "Rank"),
    TestDefinition("ApproximateEntropy", "Frequency of overlapping m and m+1 bit patterns", 3, "ApproximateEntropy"),
    TestDefinition("Serial-1", "Uniformity of overlapping m-bit patterns (first statistic)", 3, "Serial", index=0),
    TestDefinition("Serial-2", "Uniformity of overlapping m-bit patterns (second statistic)", 3, "Serial", index=1),
    TestDefinition("LinearComplexity", "Length of the generating LFSR per block", 4, "LinearComplexity"),
    TestDefinition("Universal", "Maurer's universal statistical compressibility", 4, "Universal",
                   min_bits=UNIVERSAL_MIN_BITS),
    TestDefinition("RandomExcursions", "Visits to states in cumulative sum cycles", 5, "RandomExcursions"),
    TestDefinition("RandomExcursionsVariant", "Total visits to states across the random walk", 5,
                   "RandomExcursionsVariant"),
)

TESTS_BY_NAME: Dict[str, TestDefinition] = {t.name: t for t in TEST_CATALOG}


@dataclass(frozen=True)
class TierSelection:
    """Tier reached by a bit count and the tests it unlocks."""

    bit_count: int
    tier: Optional[Tier]
    tests: Tuple[TestDefinition, ...]
    next_tier: Optional[Tier]

    @property
    def level(self) -> int:
        return self.tier.level if self.tier is not None else 0

    @property
    def runnable(self) -> bool:
        return self.tier is not None and bool(self.tests)


def select_tier(bit_count: int) -> Optional[Tier]:
    """Highest tier whose threshold ``bit_count`` meets, or None below tier 1."""
    reached = None
    for tier in TIERS:
        if bit_count >= tier.min_bits:
            reached = tier
    return reached


def next_tier(bit_count: int) -> Optional[Tier]:
    for tier in TIERS:
        if bit_count < tier.min_bits:
            return tier
    return None


def applicable_tests(bit_count: int, tier: Optional[Tier] = None) -> List[TestDefinition]:
    if tier is None:
        tier = select_tier(bit_count)
    if tier is None:
        return []
    return [t for t in TEST_CATALOG if t.applies_to(tier.level, bit_count)]


def select(bit_count: int) -> TierSelection:
    """Select the tier and applicable tests for a stream of ``bit_count`` bits."""
    tier = select_tier(bit_count)
    return TierSelection(
        bit_count=bit_count,
        tier=tier,
        tests=tuple(applicable_tests(bit_count, tier)),
        next_tier=next_tier(bit_count),
    )


def describe_tiers() -> List[dict]:
    """Tier table with the names of the tests each tier adds."""
    out = []
    for tier in TIERS:
        out.append({
            "level": tier.level,
            "name": tier.name,
            "description": tier.description,
            "min_bits": tier.min_bits,
            "recommended_bits": tier.recommended_bits,
            "tests": [
                {"name": t.name, "description": t.description, "min_bits": max(t.min_bits, tier.min_bits)}
                for t in TEST_CATALOG if t.tier == tier.level
            ],
        })
    return out
