import sys
import textwrap

import pytest

from rngvalidator.sts.driver import StsDriver

# Stand-in for the suite's ``assess`` binary. It checks the stdin answers and
# the input file the way the real program consumes them, then writes
# stats.txt/results.txt files in the real formats. Behaviour switches are
# passed as arguments before the bit count, e.g. ``fail=Rank missing=FFT``;
# ``na=`` writes the "not applicable" notice with placeholder zeros.
FAKE_ASSESS = textwrap.dedent('''
    import sys
    import time
    from pathlib import Path

    GOOD = 0.523450
    BAD = 0.001234


    def simple(title, p):
        return f"\\t\\t\\t{title}\\n\\t\\t---------------------------------------------\\n" \\
               f"\\t\\tCOMPUTATIONAL INFORMATION:\\n\\t\\t(a) n = 1000\\n" \\
               f"{verdict(p)}\\t\\tp_value = {p:f}\\n\\n"


    def verdict(p):
        return "SUCCESS" if p >= 0.01 else "FAILURE"


    def reports(n, p):
        out = {}
        for name, title in [("Frequency", "FREQUENCY TEST"), ("BlockFrequency", "BLOCK FREQUENCY TEST"),
                            ("Runs", "RUNS TEST"), ("LongestRun", "LONGEST RUNS OF ONES TEST"),
                            ("Rank", "RANK TEST"), ("FFT", "FFT TEST"),
                            ("OverlappingTemplate", "OVERLAPPING TEMPLATE OF ALL ONES TEST"),
                            ("ApproximateEntropy", "APPROXIMATE ENTROPY TEST"),
                            ("LinearComplexity", "LINEAR COMPLEXITY")]:
            out[name] = (simple(title, p), [p])
        out["CumulativeSums"] = (simple("CUMULATIVE SUMS (FORWARD) TEST", p)
                                 + simple("CUMULATIVE SUMS (REVERSE) TEST", 0.8), [p, 0.8])
        out["Serial"] = (f"\\t\\t\\tSERIAL TEST\\n{verdict(p)}\\t\\tp_value1 = {p:f}\\n"
                         f"SUCCESS\\t\\tp_value2 = 0.700000\\n", [p, 0.7])
        rows = "".join(
            f"00000000{i}  3 5 2 4 6 7 3 5  4.123456 {q:f} {verdict(q)} {i:3d}\\n"
            for i, q in enumerate([0.9, p, 0.6])
        )
        out["NonOverlappingTemplate"] = (
            "\\t\\t  NONPERIODIC TEMPLATES TEST\\n"
            "Template   W_1  W_2  W_3  W_4  W_5  W_6  W_7  W_8    Chi^2   P_value Assignment Index\\n" + rows,
            [0.9, p, 0.6],
        )
        exc = [-4, -3, -2, -1, 1, 2, 3, 4]
        out["RandomExcursions"] = (
            "".join(f"{verdict(p)}\\t\\tx = {x:2d} chi^2 = 3.123456 p_value = {p:f}\\n" for x in exc),
            [p] * len(exc),
        )
        var = [x for x in range(-9, 10) if x]
        out["RandomExcursionsVariant"] = (
            "".join(f"{verdict(p)}\\t\\t(x = {x:2d}) Total visits = {10 + x:4d}; p-value = {p:f}\\n" for x in var),
            [p] * len(var),
        )
        if n >= 387840:
            out["Universal"] = (simple("UNIVERSAL STATISTICAL TEST", p), [p])
        else:
            out["Universal"] = ("\\t\\tUNIVERSAL STATISTICAL TEST\\n\\t\\tERROR:  L IS OUT OF RANGE.\\n"
                                "\\t\\t-OR- :  Q IS LESS THAN 1.2316.\\n", [])
        return out


    def not_applicable(title, count):
        stats = (f"\\t\\t\\t  {title}\\n\\t\\t(a) Number Of Cycles (J) = 0000023\\n"
                 "\\t\\tWARNING:  TEST NOT APPLICABLE.  THERE ARE AN\\n"
                 "\\t\\t\\t  INSUFFICIENT NUMBER OF CYCLES.\\n")
        return stats, [0.0] * count


    def main(argv):
        n = int(argv[-1])
        options = {}
        for arg in argv[1:-1]:
            key, _, value = arg.partition("=")
            options.setdefault(key, set()).update(v for v in value.split(",") if v)
        if "crash" in options:
            sys.stderr.write("Segmentation fault\\n")
            return 139

        answers = sys.stdin.read().splitlines()
        if len(answers) < 6 or answers[0] != "0" or answers[2:6] != ["1", "0", "1", "0"]:
            sys.stderr.write(f"unexpected answers: {answers!r}\\n")
            return 2
        bits = "".join(Path(answers[1]).read_text().split())
        if len(bits) != n or set(bits) - {"0", "1"}:
            sys.stderr.write("input file does not hold n ASCII bits\\n")
            return 2
        root = Path("experiments") / "AlgorithmTesting"
        if not root.is_dir() or not Path("templates").is_dir():
            sys.stderr.write("workspace not prepared\\n")
            return 3
        print(f"input={answers[1]}")

        for name, (stats, values) in reports(n, GOOD).items():
            if name in options.get("missing", ()):
                continue
            folder = root / name
            if name in options.get("fail", ()):
                stats, values = reports(n, BAD)[name]
            if name in options.get("na", ()):
                stats, values = not_applicable(name.upper(), len(values))
            if name in options.get("corrupt", ()):
                (folder / "stats.txt").write_text("\\x00\\x17 garbled ### output\\n")
                (folder / "results.txt").write_text("not-a-number\\n")
                continue
            (folder / "stats.txt").write_text(stats)
            (folder / "results.txt").write_text("".join(f"{v:f}\\n" for v in values))
            if name in options.get("sleep", ()):
                sys.stdout.flush()
                time.sleep(30)
        return 0


    if __name__ == "__main__":
        sys.exit(main(sys.argv))
''')


@pytest.fixture
def sts_home(tmp_path):
    home = tmp_path / "sts"
    (home / "templates").mkdir(parents=True)
    (home / "templates" / "template9").write_text("0 0 0 0 0 0 0 0 1\n")
    script = home / "fake_assess.py"
    script.write_text(FAKE_ASSESS, encoding="utf-8")
    return home


@pytest.fixture
def make_driver(sts_home, tmp_path):
    """Build an StsDriver running the fake suite with the given switches."""
    def _make(*switches, timeout=20.0):
        command = [sys.executable, str(sts_home / "fake_assess.py"), *switches]
        return StsDriver(command, sts_home=sts_home, work_dir=tmp_path / "work", timeout=timeout)
    return _make


@pytest.fixture
def random_numbers():
    """Deterministic pseudo-random 32-bit values as a comma separated string."""
    def _numbers(count, seed=12345):
        import numpy as np
        rng = np.random.default_rng(seed)
        return ",".join(str(v) for v in rng.integers(0, 2 ** 32, size=count, dtype=np.uint64))
    return _numbers
