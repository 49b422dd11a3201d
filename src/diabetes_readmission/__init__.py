"""
Diabetes readmission report.

This package loads the diabetic inpatient encounter dataset, fits a logistic
regression of 30-day readmission on prior inpatient visits, length of stay,
a medication dosage change and the age bracket, and reports odds ratios and
held-out classification metrics.
"""

__version__ = "0.1.0"
