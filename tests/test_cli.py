import csv
import io
import sys
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from tempfile import TemporaryDirectory
from unittest import mock

sys.path.append(str(Path(__file__).resolve().parents[1]))

from SCM.scm_cli import main


def _write_inputs(workdir: Path) -> None:
    (workdir / "students.csv").write_text("StudentID,Score\n1,95\n2,70\n3,60\n", encoding="utf-8")
    (workdir / "preferences.csv").write_text(
        "StudentID,SchoolID,Position\n1,1,1\n1,2,2\n2,1,1\n2,2,2\n3,1,1\n3,2,2\n",
        encoding="utf-8",
    )
    (workdir / "schools.csv").write_text("SchoolID,Capacity\n1,1\n2,2\n", encoding="utf-8")


def _argv(workdir: Path, *extra: str) -> list[str]:
    return [
        "scm_match.py",
        "--students",
        str(workdir / "students.csv"),
        "--preferences",
        str(workdir / "preferences.csv"),
        "--schools",
        str(workdir / "schools.csv"),
        "--out-results",
        str(workdir / "results.csv"),
        "--out-trace",
        str(workdir / "trace.csv"),
        "--out-summary",
        str(workdir / "summary.csv"),
        "--out-preference-stats",
        str(workdir / "preference_stats.csv"),
        "--out-metrics-extended",
        str(workdir / "metrics_extended.csv"),
        *extra,
    ]


def _read_rows(path: Path) -> list[dict[str, str]]:
    with path.open(newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


class TestCli(unittest.TestCase):
    def test_single_run_writes_outputs(self) -> None:
        with TemporaryDirectory() as tmp:
            workdir = Path(tmp)
            _write_inputs(workdir)
            out = io.StringIO()
            with mock.patch.object(sys, "argv", _argv(workdir, "--algorithm", "da", "--sanity-checks")):
                with redirect_stdout(out):
                    self.assertEqual(main(), 0)

            results = _read_rows(workdir / "results.csv")
            self.assertEqual(
                [(r["StudentID"], r["SchoolID"], r["MatchedPreference"]) for r in results],
                [("1", "1", "1"), ("2", "2", "2"), ("3", "2", "2")],
            )
            trace = _read_rows(workdir / "trace.csv")
            self.assertEqual([r["Step"] for r in trace], [str(i) for i in range(len(trace))])
            self.assertEqual(trace[-1]["Action"], "finalize")
            stats = _read_rows(workdir / "preference_stats.csv")
            self.assertEqual([r["MatchedCount"] for r in stats], ["1", "2", "0", "0", "0"])
            summary = _read_rows(workdir / "summary.csv")
            self.assertEqual(summary[0]["algorithm"], "da")
            self.assertIn("OK:", out.getvalue())

    def test_compare_writes_one_set_per_policy(self) -> None:
        with TemporaryDirectory() as tmp:
            workdir = Path(tmp)
            _write_inputs(workdir)
            with mock.patch.object(sys, "argv", _argv(workdir, "--compare", "--strategy", "safety-first")):
                with redirect_stdout(io.StringIO()):
                    self.assertEqual(main(), 0)

            for algorithm in ("baseline", "da"):
                self.assertTrue((workdir / f"results_{algorithm}.csv").exists())
                self.assertTrue((workdir / f"metrics_extended_{algorithm}.csv").exists())
            summary = _read_rows(workdir / "summary_baseline.csv")
            self.assertEqual(summary[0]["strategy"], "safety-first")
            self.assertFalse((workdir / "results.csv").exists())

    def test_compare_rejects_algorithm(self) -> None:
        with TemporaryDirectory() as tmp:
            workdir = Path(tmp)
            _write_inputs(workdir)
            argv = _argv(workdir, "--compare", "--algorithm", "da")
            with mock.patch.object(sys, "argv", argv):
                with redirect_stderr(io.StringIO()):
                    with self.assertRaises(SystemExit) as ctx:
                        main()
            self.assertEqual(ctx.exception.code, 2)
            self.assertFalse((workdir / "results_da.csv").exists())

    def test_algorithm_defaults_to_baseline(self) -> None:
        with TemporaryDirectory() as tmp:
            workdir = Path(tmp)
            _write_inputs(workdir)
            with mock.patch.object(sys, "argv", _argv(workdir)):
                with redirect_stdout(io.StringIO()):
                    self.assertEqual(main(), 0)
            summary = _read_rows(workdir / "summary.csv")
            self.assertEqual(summary[0]["algorithm"], "baseline")


if __name__ == "__main__":
    unittest.main()
