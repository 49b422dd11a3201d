"""
Unit tests for the build_features module.
"""

import copy
import unittest
from unittest.mock import patch

import pandas as pd

from diabetes_readmission.exceptions import DataValidationError
from diabetes_readmission.features.build_features import (
    DesignMatrixBuilder,
    build_features,
    indicator_frame,
)
from diabetes_readmission.utils.config import load_config

AGE_BRACKETS = [f"[{10 * i}-{10 * (i + 1)})" for i in range(10)]


class TestIndicatorFrame(unittest.TestCase):
    """
    Test cases for indicator_frame.
    """

    def test_every_level_gets_a_column(self):
        values = pd.Series(["Up", "No", "Up"], index=[10, 11, 12])
        dummies = indicator_frame(values, ["No", "Up", "Down", "Steady"], "insulin")

        self.assertEqual(
            dummies.columns.tolist(),
            ["insulin_No", "insulin_Up", "insulin_Down", "insulin_Steady"],
        )
        self.assertEqual(dummies.index.tolist(), [10, 11, 12])
        self.assertEqual(dummies.sum(axis=1).tolist(), [1.0, 1.0, 1.0])
        self.assertEqual(dummies["insulin_Down"].sum(), 0.0)

    def test_unknown_label(self):
        with self.assertRaises(DataValidationError):
            indicator_frame(pd.Series(["No", "Often"]), ["No", "Up"], "insulin")

    def test_missing_label(self):
        with self.assertRaises(DataValidationError):
            indicator_frame(pd.Series(["No", None]), ["No", "Up"], "insulin")


class TestDesignMatrixBuilder(unittest.TestCase):
    """
    Test cases for DesignMatrixBuilder and build_features.
    """

    def setUp(self):
        self.config = copy.deepcopy(load_config())
        self.cohort = pd.DataFrame(
            {
                "prior_inpatient": [0, 1, 2, 0, 3, 1],
                "length_of_stay": [3, 5, 7, 2, 1, 4],
                "medication": ["No", "Up", "Steady", "Down", "No", "Steady"],
                "age_bracket": ["[0-10)", "[70-80)", "[80-90)", "[30-40)", "[90-100)", "[70-80)"],
                "outcome": ["NO", "<30", "<30", "NO", "NO", "<30"],
            }
        )

    def test_column_order(self):
        design = DesignMatrixBuilder(self.config).fit_transform(self.cohort)

        expected = (
            ["prior_inpatient", "length_of_stay"]
            + ["insulin_Up", "insulin_Down", "insulin_Steady"]
            + [f"age_{bracket}" for bracket in AGE_BRACKETS[1:]]
        )
        self.assertEqual(design.feature_names, expected)
        self.assertEqual(design.references, {"medication": "No", "age_bracket": "[0-10)"})

    def test_one_indicator_or_reference_per_group(self):
        design = DesignMatrixBuilder(self.config).fit_transform(self.cohort)
        medication = design.X[["insulin_Up", "insulin_Down", "insulin_Steady"]].sum(axis=1)
        age = design.X[[c for c in design.X.columns if c.startswith("age_")]].sum(axis=1)

        self.assertTrue(medication.isin([0.0, 1.0]).all())
        self.assertTrue(age.isin([0.0, 1.0]).all())
        # Reference rows have the all-zero pattern
        self.assertEqual(medication[self.cohort["medication"] == "No"].tolist(), [0.0, 0.0])
        self.assertEqual(age[self.cohort["age_bracket"] == "[0-10)"].tolist(), [0.0])

    def test_labels(self):
        design = DesignMatrixBuilder(self.config).fit_transform(self.cohort)
        self.assertEqual(design.y.name, "readmitted")
        self.assertEqual(design.y.tolist(), [0, 1, 1, 0, 0, 1])

    def test_numeric_terms_unchanged(self):
        design = DesignMatrixBuilder(self.config).fit_transform(self.cohort)
        self.assertEqual(design.X["length_of_stay"].tolist(), [3.0, 5.0, 7.0, 2.0, 1.0, 4.0])

    def test_lowest_rate_reference(self):
        self.config["features"]["reference_strategy"] = "lowest_rate"
        builder = DesignMatrixBuilder(self.config).fit(self.cohort)
        # 'No' and 'Down' are never readmitted; 'No' comes first in level order
        self.assertEqual(builder.references["medication"], "No")
        self.assertEqual(builder.references["age_bracket"], "[0-10)")

    def test_custom_fixed_reference(self):
        self.config["features"]["reference_levels"]["medication"] = "Steady"
        design = DesignMatrixBuilder(self.config).fit_transform(self.cohort)
        self.assertIn("insulin_No", design.feature_names)
        self.assertNotIn("insulin_Steady", design.feature_names)

    def test_invalid_reference(self):
        self.config["features"]["reference_levels"]["medication"] = "Never"
        with self.assertRaises(ValueError):
            DesignMatrixBuilder(self.config).fit(self.cohort)

    def test_invalid_strategy(self):
        self.config["features"]["reference_strategy"] = "random"
        with self.assertRaises(ValueError):
            DesignMatrixBuilder(self.config)

    def test_transform_before_fit(self):
        with self.assertRaises(ValueError):
            DesignMatrixBuilder(self.config).transform(self.cohort)

    def test_missing_numeric_value(self):
        self.cohort["prior_inpatient"] = self.cohort["prior_inpatient"].astype(float)
        self.cohort.loc[0, "prior_inpatient"] = float("nan")
        with self.assertRaises(DataValidationError):
            DesignMatrixBuilder(self.config).fit_transform(self.cohort)

    @patch("diabetes_readmission.features.build_features.load_config")
    def test_build_features_default_config(self, mock_load_config):
        mock_load_config.return_value = self.config
        design = build_features(self.cohort)
        mock_load_config.assert_called_once()
        self.assertEqual(design.X.shape, (6, 14))


if __name__ == "__main__":
    unittest.main()
