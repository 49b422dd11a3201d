"""
Setup script for the diabetes readmission report project.
"""

from setuptools import find_packages, setup

setup(
    name="diabetes-readmission-report",
    version="0.1.0",
    description="Logistic regression report on 30-day readmission of diabetic inpatient encounters",
    author="Readmission Report Team",
    package_dir={"": "src"},  # Tell setuptools packages are under src
    packages=find_packages(where="src"),  # Find packages in src
    install_requires=[
        "pandas>=1.5.0",
        "numpy>=1.22.0",
        "scipy>=1.9.0",
        "scikit-learn>=1.1.0",
        "statsmodels>=0.14.0",
        "polars>=1.0.0",
        "pyarrow>=10.0.0",
        "matplotlib>=3.5.0",
        "seaborn>=0.12.0",
        "pyyaml>=6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=3.0.0",
            "black>=22.1.0",
            "flake8>=4.0.0",
            "isort>=5.10.0",
            "mypy>=1.0",
            "types-PyYAML",  # Stubs for PyYAML
            "pandas-stubs",  # Stubs for pandas
        ],
    },
    entry_points={
        "console_scripts": [
            "readmission-report=diabetes_readmission.pipeline:main",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: Medical Science Apps.",
    ],
)
