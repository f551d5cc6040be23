"""RNG Validator - randomness assessment for submitted number sequences.

The public entry point is :class:`rngvalidator.engine.Engine`; the HTTP and
command line surfaces live in :mod:`rngvalidator.api` and
:mod:`rngvalidator.cli`.
"""

import logging

__version__ = "0.1.0"

# Package logger. Handlers are attached by Engine._configure_logging when a
# `log_path` is configured; until then records are dropped quietly.
logger = logging.getLogger("rngvalidator")
logger.addHandler(logging.NullHandler())
