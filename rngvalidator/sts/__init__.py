"""Integration with the NIST SP 800-22 Statistical Test Suite."""

from .driver import RawResults, StsDriver, SuiteDriver, SUITE_DIRECTORIES, build_stdin_script
from .parser import ParsedOutcome, parse_location, parse_results_file, parse_stats_file

__all__ = [
    "RawResults",
    "StsDriver",
    "SuiteDriver",
    "SUITE_DIRECTORIES",
    "build_stdin_script",
    "ParsedOutcome",
    "parse_location",
    "parse_results_file",
    "parse_stats_file",
]
