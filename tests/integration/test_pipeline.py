# tests/integration/test_pipeline.py

import copy
import os
import sys
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import numpy as np
import pandas as pd
from scipy.special import expit

from diabetes_readmission.exceptions import DataValidationError
from diabetes_readmission.pipeline import main, run_report
from diabetes_readmission.utils.config import load_config

MEDICATION_LEVELS = ["No", "Up", "Down", "Steady"]
AGE_BRACKETS = [f"[{10 * i}-{10 * (i + 1)})" for i in range(10)]


def make_encounters(n: int = 3000, seed: int = 7) -> pd.DataFrame:
    """Synthetic raw encounter file with every level present and a few unusable rows."""
    rng = np.random.RandomState(seed)
    prior = rng.poisson(0.6, size=n)
    stay = rng.randint(1, 15, size=n)
    medication = rng.choice(MEDICATION_LEVELS, size=n, p=[0.45, 0.15, 0.1, 0.3])
    age_index = rng.randint(0, 10, size=n)

    linear = -2.0 + 0.4 * prior + 0.03 * stay + 0.08 * age_index
    linear = linear + np.where(medication == "Up", 0.3, 0.0)
    readmitted = np.where(rng.uniform(size=n) < expit(linear), "<30", "NO")
    # A share of encounters are readmitted after 30 days
    readmitted = np.where(rng.uniform(size=n) < 0.25, ">30", readmitted)

    frame = pd.DataFrame(
        {
            "encounter_id": np.arange(1, n + 1),
            "race": rng.choice(["Caucasian", "AfricanAmerican", "?"], size=n),
            "age": [AGE_BRACKETS[i] for i in age_index],
            "time_in_hospital": stay,
            "number_inpatient": prior.astype(object),
            "insulin": medication,
            "readmitted": readmitted,
        }
    )
    frame.loc[list(range(0, 300, 30)), "number_inpatient"] = "?"
    return frame


class TestRunReport(unittest.TestCase):
    """
    End-to-end tests of the readmission report on a synthetic encounter file.
    """

    def setUp(self):
        self.config = copy.deepcopy(load_config())
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.csv_path = os.path.join(self.tmp_dir.name, "diabetic_data.csv")
        self.output_dir = os.path.join(self.tmp_dir.name, "reports")
        self.encounters = make_encounters()
        self.encounters.to_csv(self.csv_path, index=False)

    def tearDown(self):
        self.tmp_dir.cleanup()

    def test_report_without_plots(self):
        result = run_report(
            self.config, source_path=self.csv_path, output_dir=self.output_dir, plots=False
        )
        out = Path(self.output_dir).resolve()

        for name in [
            "odds_ratios.csv",
            "odds_ratios.txt",
            "metrics.csv",
            "metrics.txt",
            "confusion_matrix.csv",
            "cohort_flow.csv",
            "readmission_rates_age_bracket.csv",
            "readmission_rates_medication.csv",
            "config_used.yaml",
            "REPORT.md",
        ]:
            self.assertTrue((out / name).exists(), name)
        self.assertEqual(list(out.glob("*.png")), [])

        n_late = int((self.encounters["readmitted"] == ">30").sum())
        n_missing = int(
            (
                (self.encounters["number_inpatient"] == "?")
                & (self.encounters["readmitted"] != ">30")
            ).sum()
        )
        flow = pd.read_csv(out / "cohort_flow.csv")
        self.assertEqual(
            flow["n"].tolist(),
            [3000, n_late, n_missing, 3000 - n_late - n_missing],
        )

        odds = pd.read_csv(out / "odds_ratios.csv")
        self.assertEqual(len(odds), 1 + 2 + 3 + 9)
        self.assertEqual(odds["term"].iloc[0], "Intercept")
        np.testing.assert_allclose(odds["odds_ratio"], np.exp(odds["coefficient"]))
        self.assertTrue((odds["ci_lower"] <= odds["ci_upper"]).all())

        metrics = pd.read_csv(out / "metrics.csv")
        self.assertEqual(metrics["metric"].tolist(), ["Accuracy", "PR-AUC", "ROC-AUC"])
        self.assertTrue(metrics["value"].between(0, 1).all())

        confusion = pd.read_csv(out / "confusion_matrix.csv", index_col=0)
        self.assertEqual(int(confusion.to_numpy().sum()), result.evaluation.n)

        self.assertEqual(result.evaluation.n + result.fitted.n_obs, len(result.design.y))
        self.assertEqual(result.design.references, {"medication": "No", "age_bracket": "[0-10)"})

        report = (out / "REPORT.md").read_text(encoding="utf-8")
        self.assertIn("## Odds Ratios", report)
        self.assertIn("insulin_Up", report)

        saved = load_config(str(out / "config_used.yaml"))
        self.assertEqual(saved["data"]["raw"]["encounters"], str(Path(self.csv_path).resolve()))

    def test_report_is_reproducible(self):
        first = run_report(self.config, source_path=self.csv_path, output_dir=self.output_dir, plots=False)
        second = run_report(self.config, source_path=self.csv_path, output_dir=self.output_dir, plots=False)

        pd.testing.assert_frame_equal(first.odds_ratios, second.odds_ratios)
        self.assertEqual(first.evaluation, second.evaluation)

    def test_report_with_plots(self):
        result = run_report(
            self.config, source_path=self.csv_path, output_dir=self.output_dir, plots=True
        )
        out = Path(self.output_dir).resolve()

        for name in [
            "readmission_rate_age_bracket.png",
            "readmission_rate_medication.png",
            "roc_pr_curves.png",
            "confusion_matrix.png",
        ]:
            self.assertTrue((out / name).exists(), name)
            self.assertIn(out / name, result.files)
        self.assertIn("## Figures", (out / "REPORT.md").read_text(encoding="utf-8"))

    def test_overrides_do_not_touch_the_given_config(self):
        run_report(self.config, source_path=self.csv_path, output_dir=self.output_dir, plots=False)
        self.assertEqual(self.config["reporting"]["output_dir"], "reports/")
        self.assertTrue(self.config["reporting"]["plots"])

    def test_missing_values_raise_under_raise_policy(self):
        self.config["data"]["missing_policy"] = "raise"
        with self.assertRaises(DataValidationError):
            run_report(self.config, source_path=self.csv_path, output_dir=self.output_dir, plots=False)
        self.assertFalse(os.path.exists(os.path.join(self.output_dir, "REPORT.md")))

    def test_missing_input_file(self):
        with self.assertRaises(FileNotFoundError):
            run_report(
                self.config,
                source_path=os.path.join(self.tmp_dir.name, "absent.csv"),
                output_dir=self.output_dir,
                plots=False,
            )


class TestCommandLine(unittest.TestCase):
    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.csv_path = os.path.join(self.tmp_dir.name, "diabetic_data.csv")
        self.output_dir = os.path.join(self.tmp_dir.name, "reports")
        make_encounters().to_csv(self.csv_path, index=False)

    def tearDown(self):
        self.tmp_dir.cleanup()

    def test_main_writes_report(self):
        argv = ["readmission-report", "--input", self.csv_path, "--output-dir", self.output_dir, "--no-plots"]
        with patch.object(sys, "argv", argv):
            main()
        self.assertTrue(os.path.exists(os.path.join(self.output_dir, "REPORT.md")))

    def test_main_exits_on_missing_input(self):
        argv = [
            "readmission-report",
            "--input",
            os.path.join(self.tmp_dir.name, "absent.csv"),
            "--output-dir",
            self.output_dir,
        ]
        with patch.object(sys, "argv", argv):
            with self.assertRaises(SystemExit) as ctx:
                main()
        self.assertEqual(ctx.exception.code, 1)


if __name__ == "__main__":
    unittest.main()
