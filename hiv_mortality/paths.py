#!/usr/bin/env python3
"""Centralized Path Management for the HIV Mortality Analysis.

This module provides a single source of truth for all file paths used across
the project. Directories are resolved against the working directory the
pipeline is started from, so an installed package reads and writes next to
the user's data rather than inside its own install location. Nothing is
created on import; each writer creates its own output directory.

Directory Structure:
    working_directory/
    ├── data/           # Raw input data (GBD deaths, WB GDP and population)
    ├── intermediate/   # Merged analytic table (maindata.csv)
    ├── output/         # Coefficient tables and model comparisons
    └── figures/        # Histograms and trend plots

Usage:
    >>> from hiv_mortality.paths import CommonPaths, paths
    >>> maindata = pd.read_csv(paths.maindata)
    >>> run_paths = CommonPaths(output_dir="results")
    >>> run_paths.coefficients("linear_a")  # results/coefficients_linear_a.csv
"""

from pathlib import Path
from typing import Optional, Union

# ============================================================================
# Root Directory
# ============================================================================

PROJECT_ROOT = Path.cwd()

# ============================================================================
# Input Data Directory (Raw Data)
# ============================================================================

DATA_DIR = PROJECT_ROOT / "data"
"""Raw input CSV files (deaths, GDP per capita, population)."""

DEATHS_FILE = "final_hiv_deaths.csv"
GDP_FILE = "final_gdp_per_capita.csv"
POPULATION_FILE = "final_population_total.csv"

# ============================================================================
# Intermediate and Output Directories
# ============================================================================

INTERMEDIATE_DIR = PROJECT_ROOT / "intermediate"
"""Merged analytic table written once per run."""

OUTPUT_DIR = PROJECT_ROOT / "output"
"""Coefficient tables, fit summaries and model comparisons."""

FIGURES_DIR = PROJECT_ROOT / "figures"
"""Generated histograms and trend plots."""


def validate_data_files(data_dir: Path = DATA_DIR) -> bool:
    """Check if all raw input files exist.

    Returns:
        True if all input files exist, False otherwise.
    """
    all_exist = True
    for filename in (DEATHS_FILE, GDP_FILE, POPULATION_FILE):
        if not (Path(data_dir) / filename).exists():
            print(f"Warning: input file not found: {Path(data_dir) / filename}")
            all_exist = False
    return all_exist


# ============================================================================
# Common File Paths
# ============================================================================

PathLike = Union[str, Path]


class CommonPaths:
    """File names of every input and output, relative to four directories.

    Each directory defaults to the module-level constant; pass a directory to
    redirect one stage (e.g. a test run writing to a temporary folder).
    """

    def __init__(self, data_dir: Optional[PathLike] = None,
                 intermediate_dir: Optional[PathLike] = None,
                 output_dir: Optional[PathLike] = None,
                 figures_dir: Optional[PathLike] = None):
        self.data_dir = Path(data_dir) if data_dir is not None else DATA_DIR
        self.intermediate_dir = Path(intermediate_dir) if intermediate_dir is not None else INTERMEDIATE_DIR
        self.output_dir = Path(output_dir) if output_dir is not None else OUTPUT_DIR
        self.figures_dir = Path(figures_dir) if figures_dir is not None else FIGURES_DIR

    # === Raw inputs ===
    @property
    def deaths(self) -> Path:
        """GBD HIV death estimates by country, year, sex and age group."""
        return self.data_dir / DEATHS_FILE

    @property
    def gdp(self) -> Path:
        """World Bank GDP per capita, one column per year."""
        return self.data_dir / GDP_FILE

    @property
    def population(self) -> Path:
        """World Bank total population, one column per year."""
        return self.data_dir / POPULATION_FILE

    # === Merged data ===
    @property
    def maindata(self) -> Path:
        """Merged GDP, population and deaths table."""
        return self.intermediate_dir / "maindata.csv"

    # === Model outputs ===
    @property
    def model_summary(self) -> Path:
        """One row of fit statistics per fitted model."""
        return self.output_dir / "model_summary.csv"

    @property
    def model_comparisons(self) -> Path:
        return self.output_dir / "model_comparisons.csv"

    @property
    def mortality_summary(self) -> Path:
        """Descriptive mortality statistics by period, sex and age."""
        return self.output_dir / "mortality_summary.csv"

    def coefficients(self, model_name: str) -> Path:
        return self.output_dir / f"coefficients_{model_name}.csv"

    # === Figures ===
    @property
    def mortality_histogram(self) -> Path:
        return self.figures_dir / "mortality_histogram.pdf"

    @property
    def log_mortality_histogram(self) -> Path:
        return self.figures_dir / "log_mortality_histogram.pdf"

    @property
    def mortality_trends(self) -> Path:
        """Mean mortality per 100k by year and age group."""
        return self.figures_dir / "mortality_trends.pdf"


# Default layout for quick imports
paths = CommonPaths()


if __name__ == "__main__":
    """Print all configured paths for debugging if run as script."""
    print("=" * 80)
    print("Configured Paths for HIV Mortality Analysis")
    print("=" * 80)
    print(f"\nProject Root: {PROJECT_ROOT}")
    print(f"\n  Data:         {DATA_DIR}")
    print(f"  Intermediate: {INTERMEDIATE_DIR}")
    print(f"  Output:       {OUTPUT_DIR}")
    print(f"  Figures:      {FIGURES_DIR}")

    print(f"\n{'=' * 80}")
    if validate_data_files():
        print("✓ All required input files found")
    else:
        print("✗ Some input files are missing")
