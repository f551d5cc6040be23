"""Assessment pipeline: encoder, scorer, tier selector, suite driver, aggregator."""

import datetime
import json
import logging
import os
import traceback
from pathlib import Path
from typing import Dict, Optional, Union

from . import aggregator
from .config import ValidatorConfig
from .encoder import encode
from .errors import EncodingError, InsufficientBits, SuiteError
from .models import AssessmentReport, BitStream, NumericInput
from .quality import score_stream
from .sts.driver import StsDriver, SuiteDriver
from .tiers import TIERS, select

logger = logging.getLogger(__name__)

DEBUG_ROW_BITS = 64


class _JSONFormatter(logging.Formatter):
    """One JSON object per record; ``extra`` context is carried along."""

    _RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

    def format(self, record):
        try:
            rec = {
                "timestamp": datetime.datetime.utcnow().isoformat() + "Z",
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
            }
            for key, value in vars(record).items():
                if key not in self._RESERVED and not key.startswith("_"):
                    rec[key] = value
            if record.exc_info:
                rec["exc"] = "".join(traceback.format_exception(*record.exc_info))
            return json.dumps(rec, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            return super().format(record)


class Engine:
    """Runs one assessment per :meth:`validate` call.

    ``driver`` defaults to an :class:`StsDriver` built from the config, or to
    no driver at all when ``suite_enabled`` is false. The engine keeps no
    per-request state, so one instance can serve concurrent requests.
    """

    def __init__(self, config: Optional[ValidatorConfig] = None, driver: Optional[SuiteDriver] = None):
        self.config = config or ValidatorConfig()
        self._log_handlers: Dict[str, logging.Handler] = {}
        self._configure_logging(self.config)
        if driver is None and self.config.suite_enabled:
            driver = StsDriver(
                self.config.sts_path,
                sts_home=self.config.sts_home,
                work_dir=self.config.work_dir,
                timeout=self.config.timeout,
            )
        self.driver = driver if self.config.suite_enabled else None

    def _configure_logging(self, config: ValidatorConfig) -> None:
        """Apply ``log_level`` to the package logger and attach a JSONL file
        handler when ``log_path`` is set. Repeated calls never add a second
        handler for the same path.
        """
        level_no = getattr(logging, config.log_level, logging.INFO)
        pkg_logger = logging.getLogger("rngvalidator")
        pkg_logger.setLevel(level_no)

        log_path = config.log_path
        if not log_path:
            return
        existing = self._log_handlers.get(log_path)
        if existing:
            existing.setLevel(level_no)
            return
        try:
            fh = logging.FileHandler(log_path, encoding="utf-8")
        except OSError:
            logger.exception("Failed to open log file %s", log_path)
            return
        fh.setLevel(level_no)
        fh.setFormatter(_JSONFormatter())
        pkg_logger.addHandler(fh)
        self._log_handlers[log_path] = fh

    def close(self) -> None:
        """Detach and close the file handlers this engine attached."""
        pkg_logger = logging.getLogger("rngvalidator")
        for fh in self._log_handlers.values():
            pkg_logger.removeHandler(fh)
            fh.close()
        self._log_handlers.clear()

    def validate(self, payload: NumericInput) -> AssessmentReport:
        """Assess ``payload``. Always returns a report; predictable input
        problems are reported in it rather than raised.
        """
        cfg = self.config
        logger.debug("starting_validation", extra={
            "input_length": len(payload.numbers or ""), "input_format": payload.input_format.value,
            "range_min": payload.range_min, "range_max": payload.range_max,
            "bit_width": payload.bit_width, "debug_log": payload.debug_log,
        })
        try:
            stream = encode(payload)
        except EncodingError as e:
            logger.warning("encoding_failed", extra={"error_kind": e.kind, "err": e.message})
            return aggregator.error_report(e)

        debug_file = None
        if payload.debug_log:
            debug_file = self.write_debug_file(stream)

        quality = score_stream(stream)
        selection = select(len(stream))
        logger.info("Encoded %d bits (%d per value), basic quality score %.4f",
                    len(stream), stream.bits_per_value, quality.score)

        if not selection.runnable:
            err = InsufficientBits(len(stream), TIERS[0].min_bits)
            return aggregator.basic_report(stream, selection, quality, err.message, error=err,
                                           validity_threshold=cfg.validity_threshold, debug_file=debug_file)
        if self.driver is None:
            return aggregator.basic_report(stream, selection, quality, "statistical test suite disabled",
                                           validity_threshold=cfg.validity_threshold, debug_file=debug_file)

        try:
            raw = self.driver.run(stream, selection.tests)
        except SuiteError as e:
            logger.warning("suite_unavailable", extra={"error_kind": e.kind, "err": e.message})
            return aggregator.basic_report(stream, selection, quality, e.message, error=e,
                                           validity_threshold=cfg.validity_threshold, debug_file=debug_file)
        with raw:
            report = aggregator.aggregate(stream, selection, raw, quality, alpha=cfg.alpha,
                                          validity_threshold=cfg.validity_threshold, debug_file=debug_file)
        logger.info("Validation complete: valid=%s, quality_score=%.4f, bits=%d, tests_passed=%d/%d",
                    report.valid, report.quality_score, report.bit_count, report.tests_passed, report.total_tests)
        return report

    def validate_numbers(self, numbers: str, **fields) -> AssessmentReport:
        """Shortcut for ``validate(NumericInput(numbers, **fields))``."""
        return self.validate(NumericInput(numbers=numbers, **fields))

    def write_debug_file(self, stream: BitStream) -> Optional[str]:
        """Dump ``stream`` to a timestamped text file; None if it could not be written."""
        try:
            return str(write_debug_file(stream, self.config.debug_dir))
        except OSError as e:
            logger.warning("Failed to write debug file: %s", e)
            return None


def write_debug_file(stream: BitStream, debug_dir: Union[str, Path] = "debug") -> Path:
    """Write ``stream`` as 64-bit rows prefixed with their bit offset."""
    os.makedirs(debug_dir, exist_ok=True)
    now = datetime.datetime.utcnow()
    path = Path(debug_dir) / f"bits_{now:%Y%m%d_%H%M%S}_{now.microsecond:06d}.txt"
    text = stream.to_ascii()
    with open(path, "x", encoding="ascii") as f:
        f.write("# Bit Stream Debug Output\n")
        f.write(f"# Total bits: {len(stream)}\n")
        f.write(f"# Bits per value: {stream.bits_per_value}\n")
        f.write(f"# Timestamp: {now.isoformat()}Z\n")
        f.write("#\n")
        for offset in range(0, len(text), DEBUG_ROW_BITS):
            f.write(f"{offset:08}: {text[offset:offset + DEBUG_ROW_BITS]}\n")
    logger.info("Wrote %d bits to debug file: %s", len(stream), path)
    return path
