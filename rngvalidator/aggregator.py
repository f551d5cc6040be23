"""Merge suite artifacts and the basic quality score into one report."""

import logging
from dataclasses import replace
from typing import Dict, List, Optional

from .errors import ResultParseFailure, SuiteError, ValidatorError
from .models import AssessmentReport, BitStream, QualityScore, TestDefinition, TestResult
from .sts.driver import RawResults
from .sts.parser import parse_location
from .tiers import TierSelection

logger = logging.getLogger(__name__)

DEFAULT_ALPHA = 0.01
DEFAULT_VALIDITY_THRESHOLD = 0.8


def evaluate_test(definition: TestDefinition, raw: RawResults, alpha: float = DEFAULT_ALPHA) -> TestResult:
    """Build the TestResult for one definition; unreadable output yields a skipped result.

    A test reporting several p-values passes only when every one of them
    reaches ``alpha``; its primary p-value is the smallest.
    """
    location = raw.location(definition)
    try:
        outcome = parse_location(location).select(definition.index)
    except ResultParseFailure as e:
        reason = e.message
        if location is None and raw.error is not None:
            reason = f"no result before {raw.error.kind}: {raw.error.message}"
        logger.warning("test_skipped", extra={"test_name": definition.name, "reason": reason})
        return TestResult.skipped_result(definition, reason)

    p_values = outcome.p_values
    primary = min(p_values)
    passed = all(p >= alpha for p in p_values)
    metrics: Dict[str, str] = {
        "source": outcome.source.name,
        "alpha": f"{alpha:g}",
    }
    if len(p_values) > 1:
        metrics["values"] = str(len(p_values))
        metrics["values_passed"] = str(sum(1 for p in p_values if p >= alpha))
    if outcome.suite_verdicts:
        metrics["suite_verdict"] = "SUCCESS" if all(outcome.suite_verdicts) else "FAILURE"
    return TestResult(
        name=definition.name,
        passed=passed,
        p_value=primary,
        p_values=p_values,
        description=definition.description,
        metrics=metrics,
    )


def aggregate(stream: BitStream, selection: TierSelection, raw: RawResults, quality: QualityScore,
              alpha: float = DEFAULT_ALPHA, validity_threshold: float = DEFAULT_VALIDITY_THRESHOLD,
              debug_file: Optional[str] = None) -> AssessmentReport:
    """Assemble the report for a stream that went through the suite."""
    results = [evaluate_test(d, raw, alpha) for d in selection.tests]
    attempted = [r for r in results if not r.skipped]
    passed = sum(1 for r in attempted if r.passed)
    total = len(attempted)

    if total:
        success_rate = passed / total
        score = success_rate
    else:
        success_rate = 0.0
        score = quality.score
    valid = score >= validity_threshold
    if raw.error is not None:
        # an interrupted run cannot certify the stream
        valid = False

    bit_count = len(stream)
    message = summary_message(bit_count, selection, passed, total, len(results) - total, raw.error)
    report = AssessmentReport(
        valid=valid,
        quality_score=score,
        message=message,
        bit_count=bit_count,
        quality=quality,
        tier=selection.level,
        tier_name=selection.tier.name if selection.tier else None,
        results=tuple(results),
        tests_passed=passed,
        total_tests=total,
        success_rate=success_rate,
        suite_ran=True,
        error_kind=raw.error.kind if raw.error else None,
        debug_file=debug_file,
    )
    logger.info(
        "Suite assessment complete (tier %d): %d/%d passed, %d skipped, quality score %.4f",
        selection.level, passed, total, len(results) - total, score,
    )
    return _with_raw_output(report, selection, alpha)


def basic_report(stream: BitStream, selection: TierSelection, quality: QualityScore, reason: str,
                 error: Optional[ValidatorError] = None,
                 validity_threshold: float = DEFAULT_VALIDITY_THRESHOLD,
                 debug_file: Optional[str] = None) -> AssessmentReport:
    """Report carrying only the basic quality score (suite skipped or unavailable)."""
    score = quality.score
    bit_count = len(stream)
    return AssessmentReport(
        valid=score >= validity_threshold,
        quality_score=score,
        message=f"Analyzed {bit_count} bits with basic quality checks only: {reason}. "
                f"Basic quality score {score:.3f} (balance {quality.balance:.3f}, runs {quality.runs:.3f})",
        bit_count=bit_count,
        quality=quality,
        tier=selection.level,
        tier_name=selection.tier.name if selection.tier else None,
        error_kind=error.kind if error is not None else None,
        debug_file=debug_file,
    )


def error_report(error: ValidatorError) -> AssessmentReport:
    """Report for requests whose payload could not be encoded."""
    return AssessmentReport(
        valid=False,
        quality_score=0.0,
        message=error.message,
        bit_count=0,
        error_kind=error.kind,
    )


def summary_message(bit_count: int, selection: TierSelection, passed: int, total: int, skipped: int = 0,
                    error: Optional[SuiteError] = None) -> str:
    tier = selection.tier
    parts = [f"Analyzed {bit_count} bits"]
    if tier is not None:
        parts[0] += f" at tier {tier.level} ({tier.name})"
    parts.append(f"{passed}/{total} NIST tests passed")
    text = ", ".join(parts)
    if skipped:
        text += f" ({skipped} skipped)"
    text += "."
    if error is not None:
        text += f" {error.kind}: {error.message}."
    nxt = selection.next_tier
    if nxt is not None:
        text += f" Provide at least {nxt.min_bits} bits to reach tier {nxt.level} ({nxt.name})."
    return text


def render_raw_output(report: AssessmentReport, selection: TierSelection, alpha: float = DEFAULT_ALPHA) -> str:
    """Plain-text rendering of the suite results for display."""
    tier = selection.tier
    lines: List[str] = [
        "NIST Statistical Test Suite - Results",
        "======================================",
        "",
        f"Dataset: {report.bit_count} bits",
    ]
    if tier is not None:
        lines.append(f"Test Tier: Level {tier.level} - {tier.name} ({tier.description})")
    lines += [
        "",
        f"Overall: {report.tests_passed}/{report.total_tests} tests passed",
        f"Quality Score: {report.quality_score * 100:.1f}%",
    ]
    if report.error_kind:
        lines.append(f"Run interrupted: {report.error_kind}")
    lines += ["", "Individual Test Results:", "------------------------"]
    for r in report.results:
        if r.skipped:
            lines.append(f"  - {r.name}: skipped ({r.reason})")
        else:
            mark = "✓" if r.passed else "✗"
            lines.append(f"  {mark} {r.name}: p-value = {r.p_value:.6f}")
    lines += [
        "",
        f"All tests use significance level α = {alpha:g}",
        f"Tests pass if p-value ≥ {alpha:g}",
        "",
        "Test Coverage:",
        "-------------",
    ]
    nxt = selection.next_tier
    if tier is not None and nxt is not None:
        lines.append(f"Current: Tier {tier.level} ({tier.description}) - {len(report.results)} tests run")
        lines.append(f"Recommended: {tier.recommended_bits} bits (~{tier.recommended_bits // 32} numbers) "
                     "for optimal reliability")
        lines.append(f"Next Tier: Level {nxt.level} ({nxt.name}) requires {nxt.min_bits} bits "
                     f"(~{nxt.min_bits // 32} numbers)")
    elif tier is not None:
        lines.append(f"Maximum tier reached (Tier {tier.level}). All NIST tests available.")
    return "\n".join(lines) + "\n"


def _with_raw_output(report: AssessmentReport, selection: TierSelection, alpha: float) -> AssessmentReport:
    return replace(report, raw_output=render_raw_output(report, selection, alpha))
