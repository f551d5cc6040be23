"""Basic quality scorer: two cheap heuristics computed on every request.

The score is the mean of

* ``balance``: ``1 - |ones/n - 0.5| * 2``, 1.0 for a perfect 50/50 split and
  0.0 for a constant stream,
* ``runs``: ``transitions / (n / 2)`` capped at 1.0, where a random stream is
  expected to change value at about every second position.

It never fails and does not depend on the external suite, so it is the
fallback whenever the suite cannot be run.
"""

from .models import BitStream, QualityScore


def score_stream(stream: BitStream) -> QualityScore:
    n = len(stream)
    if n == 0:
        return QualityScore(
            score=0.0, balance=0.0, runs=0.0, ones=0, transitions=0, bit_count=0,
            reason="no bits to score",
        )

    ones = stream.ones()
    transitions = stream.transitions()

    balance = 1.0 - abs(ones / n - 0.5) * 2.0
    runs = min(1.0, transitions / (n / 2.0))

    balance = _clamp(balance)
    runs = _clamp(runs)
    return QualityScore(
        score=_clamp((balance + runs) / 2.0),
        balance=balance,
        runs=runs,
        ones=ones,
        transitions=transitions,
        bit_count=n,
    )


def _clamp(x: float) -> float:
    return max(0.0, min(1.0, float(x)))
