"""
Unit tests for grouped readmission proportions.
"""

import unittest

import numpy as np
import pandas as pd

from diabetes_readmission.data.summaries import lowest_rate_level, readmission_rates


class TestReadmissionRates(unittest.TestCase):
    def setUp(self):
        self.cohort = pd.DataFrame(
            {
                "medication": ["No", "No", "Up", "Up", "Steady", "Steady", "Steady", "No"],
                "outcome": ["NO", "<30", "<30", "<30", "NO", "NO", "<30", "NO"],
            }
        )

    def test_rates_per_level(self):
        rates = readmission_rates(
            self.cohort, "medication", levels=["No", "Up", "Down", "Steady"]
        )

        self.assertEqual(rates.columns.tolist(), ["level", "n", "readmitted", "rate"])
        self.assertEqual(rates["level"].tolist(), ["No", "Up", "Down", "Steady"])
        self.assertEqual(rates["n"].tolist(), [3, 2, 0, 3])
        self.assertEqual(rates["readmitted"].tolist(), [1, 2, 0, 1])
        self.assertAlmostEqual(rates.loc[0, "rate"], 1 / 3)
        self.assertEqual(rates.loc[1, "rate"], 1.0)
        # Absent level has an undefined rate
        self.assertTrue(np.isnan(rates.loc[2, "rate"]))

    def test_rates_without_levels_are_sorted(self):
        rates = readmission_rates(self.cohort, "medication")
        self.assertEqual(rates["level"].tolist(), ["No", "Steady", "Up"])
        self.assertEqual(int(rates["n"].sum()), len(self.cohort))

    def test_lowest_rate_level(self):
        rates = readmission_rates(
            self.cohort, "medication", levels=["No", "Up", "Down", "Steady"]
        )
        # 'No' and 'Steady' tie at 1/3; the earlier level wins, 'Down' is unobserved
        self.assertEqual(lowest_rate_level(rates), "No")

    def test_lowest_rate_level_without_observations(self):
        rates = readmission_rates(self.cohort.iloc[:0], "medication", levels=["No", "Up"])
        with self.assertRaises(ValueError):
            lowest_rate_level(rates)


if __name__ == "__main__":
    unittest.main()
