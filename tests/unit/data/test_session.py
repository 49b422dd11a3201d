"""
Unit tests for the polars query session.
"""

import os
import tempfile
import unittest

import pandas as pd
import polars as pl

from diabetes_readmission.data.session import QuerySession, quote_identifier, quote_literal


class TestQuerySession(unittest.TestCase):
    """
    Test cases for QuerySession.
    """

    def setUp(self):
        self.tmp_dir = tempfile.TemporaryDirectory()
        self.csv_path = os.path.join(self.tmp_dir.name, "encounters.csv")
        pd.DataFrame(
            {
                "number_inpatient": [0, 2, "?", 1],
                "insulin": ["No", "Up", "Steady", "Down"],
                "readmitted": ["NO", "<30", ">30", "NO"],
            }
        ).to_csv(self.csv_path, index=False)

    def tearDown(self):
        self.tmp_dir.cleanup()

    def test_execute_within_context(self):
        with QuerySession(self.csv_path, na_values=["?"]) as session:
            self.assertTrue(session.is_open)
            self.assertEqual(session.tables(), ["encounters"])
            result = session.execute("SELECT COUNT(*) AS n FROM encounters")

        self.assertIsInstance(result, pl.DataFrame)
        self.assertEqual(int(result.item()), 4)

    def test_na_values_read_as_null(self):
        with QuerySession(self.csv_path, na_values=["?"]) as session:
            result = session.execute(
                "SELECT COUNT(*) AS n FROM encounters WHERE number_inpatient IS NULL"
            )
        self.assertEqual(int(result.item()), 1)

    def test_columns(self):
        with QuerySession(self.csv_path) as session:
            self.assertEqual(
                session.columns(), ["number_inpatient", "insulin", "readmitted"]
            )

    def test_closed_after_exit(self):
        session = QuerySession(self.csv_path)
        with session:
            pass
        self.assertFalse(session.is_open)
        with self.assertRaises(RuntimeError):
            session.execute("SELECT * FROM encounters")

    def test_closed_after_failure(self):
        session = QuerySession(self.csv_path)
        with self.assertRaises(ValueError):
            with session:
                raise ValueError("failure inside the session")
        self.assertFalse(session.is_open)

    def test_close_is_idempotent(self):
        session = QuerySession(self.csv_path).open()
        session.close()
        session.close()
        self.assertFalse(session.is_open)

    def test_open_twice_raises(self):
        with QuerySession(self.csv_path) as session:
            with self.assertRaises(RuntimeError):
                session.open()

    def test_missing_file(self):
        session = QuerySession(os.path.join(self.tmp_dir.name, "missing.csv"))
        with self.assertRaises(FileNotFoundError):
            session.open()
        self.assertFalse(session.is_open)

    def test_quoting(self):
        self.assertEqual(quote_identifier("age"), '"age"')
        self.assertEqual(quote_identifier('a"b'), '"a""b"')
        self.assertEqual(quote_literal(">30"), "'>30'")
        self.assertEqual(quote_literal("it's"), "'it''s'")


if __name__ == "__main__":
    unittest.main()
