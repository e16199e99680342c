# To run:
# python run_tests_with_logs.py            (whole suite)
# python run_tests_with_logs.py layout     (only tests/test_*layout*.py)

from __future__ import annotations

import io
import sys
import unittest
from datetime import datetime
from pathlib import Path

TESTS_DIR = Path("tests")
LOG_DIR = TESTS_DIR / "testlogs"


def _stamp(now: datetime | None = None) -> str:
    return (now or datetime.now()).strftime("%Y%m%d_%H%M%S")


def report_path(log_dir: Path, now: datetime | None = None) -> Path:
    return log_dir / f"plan_graph_failures_{_stamp(now)}.txt"


def discovery_pattern(keyword: str | None) -> str:
    keyword = (keyword or "").strip()
    return f"test_*{keyword}*.py" if keyword else "test_*.py"


def failing_test_ids(result: unittest.TestResult) -> list[str]:
    return sorted(test.id() for test, _trace in [*result.failures, *result.errors])


def render_report(result: unittest.TestResult, test_output: str, *, pattern: str) -> str:
    lines = [
        f"Timestamp: {datetime.now().isoformat(timespec='seconds')}",
        f"Pattern: {pattern}",
        f"Summary: ran={result.testsRun}, failures={len(result.failures)}, errors={len(result.errors)}",
        "Failing tests:",
    ]
    lines.extend(f"  - {test_id}" for test_id in failing_test_ids(result))
    lines.append("Fix hint: rerun one module with 'python -m unittest discover -s tests -p test_<module>.py' after fixing.")
    lines.append("")
    lines.append(test_output.rstrip())
    lines.append("")
    return "\n".join(lines)


def write_report(log_dir: Path, content: str, now: datetime | None = None) -> Path:
    log_dir.mkdir(parents=True, exist_ok=True)
    path = report_path(log_dir, now)
    path.write_text(content, encoding="utf-8")
    return path


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    pattern = discovery_pattern(args[0] if args else None)
    suite = unittest.TestLoader().discover(start_dir=str(TESTS_DIR), pattern=pattern)

    output = io.StringIO()
    result = unittest.TextTestRunner(stream=output, verbosity=2).run(suite)
    test_output = output.getvalue()
    sys.stdout.write(test_output)

    if result.wasSuccessful():
        print(f"All {result.testsRun} tests passed. No failure log written.")
        return 0

    log_path = write_report(LOG_DIR, render_report(result, test_output, pattern=pattern))
    print(f"Test failures detected. Log written to: {log_path}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
