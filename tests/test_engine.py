"""End-to-end tests of the assessment pipeline."""

import re
import sys

import pytest

from rngvalidator.config import ValidatorConfig
from rngvalidator.engine import Engine, write_debug_file
from rngvalidator.models import BitStream, NumericInput
from rngvalidator.sts.driver import StsDriver


EIGHT_NUMBERS = "42,17,89,3,56,91,23,67"


class TestEngineWithoutSuite:

    def setup_method(self):
        self.engine = Engine(ValidatorConfig(suite_enabled=False))

    def test_constant_ones_below_threshold(self):
        report = self.engine.validate_numbers("1,1,1,1,1,1,1,1")
        assert report.bit_count == 64
        assert report.valid is False
        assert report.suite_ran is False
        assert report.results == ()
        assert report.error_kind == "InsufficientBits"
        # every value encodes as 00000001
        assert report.quality.balance == pytest.approx(0.25)
        assert report.quality_score < 0.8

    def test_constant_zeros_score_zero(self):
        report = self.engine.validate_numbers("0,0,0,0,0,0,0,0")
        assert report.quality.balance == 0.0
        assert report.quality.runs == 0.0
        assert report.quality_score == 0.0
        assert report.valid is False

    @pytest.mark.parametrize("numbers,kind", [
        ("1,2,banana", "InvalidFormat"),
        ("", "EmptyInput"),
        ("5000000000", "RangeViolation"),
    ])
    def test_encoder_failures(self, numbers, kind):
        report = self.engine.validate_numbers(numbers)
        assert report.valid is False
        assert report.quality_score == 0.0
        assert report.error_kind == kind
        assert report.message

    def test_range_violation_via_range(self):
        report = self.engine.validate_numbers("1,2,7", range_min=1, range_max=6)
        assert report.error_kind == "RangeViolation"

    def test_disabled_suite_uses_basic_score(self, random_numbers):
        report = self.engine.validate_numbers(random_numbers(64))
        assert report.bit_count == 2048
        assert report.tier == 2
        assert report.suite_ran is False
        assert report.quality_score == report.quality.score
        assert "disabled" in report.message

    def test_idempotent(self, random_numbers):
        numbers = random_numbers(40)
        first = self.engine.validate_numbers(numbers, bit_width=32)
        second = self.engine.validate_numbers(numbers, bit_width=32)
        assert first == second
        assert first.to_dict() == second.to_dict()


class TestEngineWithSuite:

    def test_eight_numbers_at_32_bits(self, make_driver):
        engine = Engine(driver=make_driver())
        report = engine.validate_numbers(EIGHT_NUMBERS, bit_width=32)
        assert report.bit_count == 256
        assert report.suite_ran is True
        assert report.tier == 1
        assert len(report.results) >= 5
        assert report.tests_passed == report.total_tests == 5
        assert report.valid is True
        assert "Provide at least 1000 bits" in report.message

    def test_tier_three(self, make_driver, random_numbers):
        engine = Engine(driver=make_driver())
        report = engine.validate_numbers(random_numbers(320))
        assert report.bit_count == 10240
        assert report.tier == 3
        assert {r.name for r in report.results} >= {"Serial-1", "Serial-2", "NonOverlappingTemplate", "Rank"}
        assert report.result("NonOverlappingTemplate").p_values == (0.9, 0.52345, 0.6)
        assert report.valid is True

    def test_partial_failure_isolation(self, make_driver):
        engine = Engine(driver=make_driver("corrupt=FFT"))
        report = engine.validate_numbers(EIGHT_NUMBERS, bit_width=32)
        assert report.result("FFT").skipped
        assert report.total_tests == 4
        assert report.tests_passed == 4
        assert report.success_rate == 1.0
        assert report.valid is True

    def test_failing_test_lowers_score(self, make_driver):
        engine = Engine(driver=make_driver("fail=Frequency,Runs"))
        report = engine.validate_numbers(EIGHT_NUMBERS, bit_width=32)
        assert report.tests_passed == 3
        assert report.quality_score == pytest.approx(0.6)
        assert report.valid is False
        assert report.result("Frequency").metrics["suite_verdict"] == "FAILURE"

    def test_cumulative_sums_split(self, make_driver):
        engine = Engine(driver=make_driver("fail=CumulativeSums"))
        report = engine.validate_numbers(EIGHT_NUMBERS, bit_width=32)
        assert report.result("CumulativeSums-Forward").passed is False
        assert report.result("CumulativeSums-Reverse").passed is True

    def test_missing_suite_degrades(self, tmp_path):
        engine = Engine(ValidatorConfig(sts_path=str(tmp_path / "missing" / "assess")))
        report = engine.validate_numbers(EIGHT_NUMBERS, bit_width=32)
        assert report.suite_ran is False
        assert report.error_kind == "SuiteUnavailable"
        assert report.quality_score == report.quality.score

    def test_unusable_work_dir_degrades(self, sts_home, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a regular file")
        driver = StsDriver([sys.executable, str(sts_home / "fake_assess.py")], sts_home=sts_home,
                           work_dir=blocker / "work")
        report = Engine(driver=driver).validate_numbers(EIGHT_NUMBERS, bit_width=32)
        assert report.suite_ran is False
        assert report.error_kind == "SuiteUnavailable"
        assert report.bit_count == 256
        assert report.quality_score == report.quality.score

    def test_timeout_reports_partial_results(self, make_driver):
        engine = Engine(driver=make_driver("sleep=Frequency", timeout=2))
        report = engine.validate_numbers(EIGHT_NUMBERS, bit_width=32)
        assert report.error_kind == "SuiteTimeout"
        assert report.valid is False
        assert report.result("Frequency").passed is True
        assert report.total_tests == 1
        assert len(report.skipped_tests) == 4

    def test_crash_reports_process_failure(self, make_driver):
        engine = Engine(driver=make_driver("crash"))
        report = engine.validate_numbers(EIGHT_NUMBERS, bit_width=32)
        assert report.error_kind == "SuiteProcessFailure"
        assert report.total_tests == 0
        assert report.valid is False

    def test_workspaces_cleaned_up(self, make_driver, tmp_path):
        engine = Engine(driver=make_driver())
        engine.validate_numbers(EIGHT_NUMBERS, bit_width=32)
        engine.validate_numbers(EIGHT_NUMBERS, bit_width=32)
        assert list((tmp_path / "work").iterdir()) == []


class TestDebugFile:

    def test_layout(self, tmp_path):
        stream = BitStream([1, 0] * 80, 8)
        path = write_debug_file(stream, tmp_path / "debug")
        assert re.match(r"bits_\d{8}_\d{6}_\d{6}\.txt$", path.name)
        lines = path.read_text().splitlines()
        assert lines[0] == "# Bit Stream Debug Output"
        assert "# Total bits: 160" in lines
        rows = [line for line in lines if not line.startswith("#")]
        assert rows[0] == "00000000: " + "10" * 32
        assert rows[1].startswith("00000064: ")
        assert rows[2] == "00000128: " + "10" * 16

    def test_engine_returns_path(self, tmp_path):
        engine = Engine(ValidatorConfig(suite_enabled=False, debug_dir=str(tmp_path / "dbg")))
        report = engine.validate(NumericInput("1,2,3", debug_log=True))
        assert report.debug_file
        assert report.to_dict()["debug_file"] == report.debug_file
        assert "00000000: " + "000000010000001000000011" in open(report.debug_file).read()

    def test_write_failure_is_not_fatal(self, tmp_path):
        blocker = tmp_path / "file"
        blocker.write_text("x")
        engine = Engine(ValidatorConfig(suite_enabled=False, debug_dir=str(blocker / "sub")))
        report = engine.validate(NumericInput("1,2,3", debug_log=True))
        assert report.debug_file is None
        assert report.bit_count == 24
