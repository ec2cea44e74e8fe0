#!/usr/bin/env python3
"""
preprocess.py

This script processes raw data from the `data` folder containing:

1. Global Burden of Disease (GBD) HIV death estimates (long format)
2. World Bank (WB) GDP per capita (wide format, one column per year)
3. World Bank (WB) total population (wide format, one column per year)

merging them into the `maindata.csv` analytic table in the `intermediate`
folder that the model scripts use.

Each stage is a function that takes tables and returns a new table:

    gdp = load_gdp(path)
    population = load_population(path)
    deaths = load_deaths(path)
    maindata = merge_datasets(gdp, population, deaths)
"""

import re
import argparse
import pandas as pd
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from hiv_mortality.config import DataParameters
from hiv_mortality.paths import (
    DATA_DIR, INTERMEDIATE_DIR, CommonPaths, validate_data_files
)
from hiv_mortality.schema import (
    SchemaError, DeathRecord, IndicatorLocation, MAINDATA_ID_COLUMNS,
    coerce_numeric, require_columns, schema_columns, validate_table
)

# Year columns can arrive with a filler prefix (e.g. "X1990" from R exports)
_PREFIXED_YEAR = re.compile(r'^x(\d{4})$')


# ============================================================================
# Column Names
# ============================================================================

def to_snake_case(name) -> str:
    """Normalize one column name to snake_case.

    >>> to_snake_case("Country Name")
    'country_name'
    >>> to_snake_case("X1990")
    '1990'
    """
    s = str(name).strip()
    s = re.sub(r'([a-z0-9])([A-Z])', r'\1_\2', s)
    s = re.sub(r'[^0-9a-zA-Z]+', '_', s).strip('_').lower()
    prefixed = _PREFIXED_YEAR.match(s)
    if prefixed:
        return prefixed.group(1)
    return s


def clean_column_names(df: pd.DataFrame, source: str = "table") -> pd.DataFrame:
    """Return a copy of df with snake_case column names.

    Raises:
        SchemaError: If two columns normalize to the same name.
    """
    new_names = [to_snake_case(col) for col in df.columns]
    duplicates = sorted({name for name in new_names if new_names.count(name) > 1})
    if duplicates:
        raise SchemaError(f"Columns in {source} collide after normalization: {duplicates}")
    out = df.copy()
    out.columns = new_names
    return out


def _read_csv(path: Path, skiprows: int = 0) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input file {path} not found")
    try:
        return pd.read_csv(path, skiprows=skiprows)
    except pd.errors.ParserError as e:
        raise SchemaError(
            f"Could not parse {path.name} with {skiprows} header rows skipped: {e}"
        ) from e


def _drop_missing_locations(df: pd.DataFrame, source: str) -> pd.DataFrame:
    missing = df['location_id'].isna()
    if missing.any():
        print(f"Warning: dropping {missing.sum()} rows without location_id from {source}")
    return df.loc[~missing].reset_index(drop=True)


# ============================================================================
# Dataset Loader
# ============================================================================

def load_deaths(path: Path) -> pd.DataFrame:
    """
    Load GBD HIV death estimates.

    One row per (country, year, sex, age group) stratum. The GBD
    `location_name` column is loaded as `country_name`; columns outside the
    deaths schema (measure, cause, metric) are not kept.

    Args:
        path: Path to the long-format deaths CSV

    Returns:
        DataFrame with columns location_id, country_name, sex_id, sex_name,
        age_id, age_name, year, val, upper, lower

    Raises:
        FileNotFoundError: If the file doesn't exist
        SchemaError: If required columns are missing or malformed
    """
    source = Path(path).name
    df = clean_column_names(_read_csv(path), source)
    if 'country_name' not in df.columns and 'location_name' in df.columns:
        df = df.rename(columns={'location_name': 'country_name'})

    require_columns(df, DeathRecord, source)
    df = _drop_missing_locations(df, source)
    df = validate_table(df, DeathRecord, source)
    return df[schema_columns(DeathRecord)].copy()


def load_wide_indicator(path: Path, value_name: str,
                        skiprows: int = 4,
                        years: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Load a wide World Bank indicator file and pivot year columns to long format.

    Produces one output row per input row per requested year; missing
    indicator values stay null.

    Args:
        path: Path to the wide CSV
        value_name: Name of the value column after melting
        skiprows: Number of metadata rows above the header row
        years: Year column names to pivot (default 1990-2019)

    Returns:
        DataFrame with columns location_id, country_name, year, <value_name>

    Raises:
        FileNotFoundError: If the file doesn't exist
        SchemaError: If identifier or year columns are missing, or a year
            column holds non-numeric text
    """
    years = list(years) if years is not None else DataParameters().years
    source = Path(path).name
    df = clean_column_names(_read_csv(path, skiprows=skiprows), source)
    require_columns(df, IndicatorLocation, source)

    missing_years = [year for year in years if year not in df.columns]
    if missing_years:
        raise SchemaError(
            f"{source} is missing year columns {missing_years}; "
            f"check the header row count (skiprows={skiprows})"
        )
    for year in years:
        df[year] = coerce_numeric(df[year], year, source)

    df = _drop_missing_locations(df, source)
    df = validate_table(df, IndicatorLocation, source)

    long_df = pd.melt(
        df,
        id_vars=['location_id', 'country_name'],
        value_vars=years,
        var_name='year',
        value_name=value_name
    )
    long_df['year'] = long_df['year'].astype('int64')
    return long_df


def load_gdp(path: Path, skiprows: int = 4,
             years: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Load GDP per capita in long format (location_id, country_name, year, gdp_per_capita)."""
    return load_wide_indicator(path, 'gdp_per_capita', skiprows, years)


def load_population(path: Path, skiprows: int = 4,
                    years: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Load total population in long format (location_id, country_name, year, population)."""
    return load_wide_indicator(path, 'population', skiprows, years)


# ============================================================================
# Merger
# ============================================================================

def join_tables(left: pd.DataFrame, right: pd.DataFrame,
                on: List[str], how: str) -> pd.DataFrame:
    """Join two tables, preferring the right table's values for shared columns.

    Where the right table has no matching row (or a null value), the shared
    column keeps the left table's value.
    """
    overlap = [col for col in right.columns if col in left.columns and col not in on]
    merged = pd.merge(left, right, on=on, how=how, suffixes=('_left', ''))
    for col in overlap:
        merged[col] = merged[col].combine_first(merged.pop(f"{col}_left"))
    return merged


def order_columns(df: pd.DataFrame, first: List[str] = MAINDATA_ID_COLUMNS) -> pd.DataFrame:
    """Move identifier columns to the front, keeping the rest in arrival order."""
    leading = [col for col in first if col in df.columns]
    return df[leading + [col for col in df.columns if col not in leading]]


def merge_datasets(gdp: pd.DataFrame, population: pd.DataFrame,
                   deaths: pd.DataFrame) -> pd.DataFrame:
    """
    Merge GDP, population and deaths into the analytic table.

    Country-years must be present in both GDP and population (inner join);
    every surviving country-year is kept even without death estimates (left
    join), in which case the death fields are null and country_name keeps the
    population file's name.

    Returns:
        DataFrame with location_id, country_name and year first
    """
    gdp_population = join_tables(gdp, population, on=['location_id', 'year'], how='inner')
    maindata = join_tables(gdp_population, deaths, on=['year', 'location_id'], how='left')
    return order_columns(maindata)


def join_report(gdp: pd.DataFrame, population: pd.DataFrame,
                maindata: pd.DataFrame) -> Dict[str, int]:
    """Row counts describing what each join kept and dropped."""
    keys = ['location_id', 'year']
    gdp_keys = set(map(tuple, gdp[keys].drop_duplicates().to_numpy()))
    pop_keys = set(map(tuple, population[keys].drop_duplicates().to_numpy()))
    return {
        'gdp_rows': len(gdp),
        'population_rows': len(population),
        'gdp_only_country_years': len(gdp_keys - pop_keys),
        'population_only_country_years': len(pop_keys - gdp_keys),
        'merged_country_years': len(gdp_keys & pop_keys),
        'maindata_rows': len(maindata),
        'rows_without_deaths': int(maindata['val'].isna().sum()),
    }


class DataProcessor:
    """Loads the three raw input files and writes the merged analytic table."""

    def __init__(self, data_dir: Path = DATA_DIR,
                 intermediate_dir: Path = INTERMEDIATE_DIR,
                 params: Optional[DataParameters] = None):
        self.data_dir = Path(data_dir)
        self.intermediate_dir = Path(intermediate_dir)
        self.paths = CommonPaths(data_dir=self.data_dir, intermediate_dir=self.intermediate_dir)
        self.params = params or DataParameters()

    def load_all(self) -> Dict[str, pd.DataFrame]:
        """
        Load deaths, GDP and population from the data directory.

        Specifically processes the following files:
            "final_hiv_deaths.csv"
            "final_gdp_per_capita.csv"
            "final_population_total.csv"

        Returns:
            Dict[str, pd.DataFrame]: Clean tables keyed by 'deaths', 'gdp', 'population'
        """
        if not self.data_dir.exists():
            raise FileNotFoundError(f"Data directory {self.data_dir} not found")
        print(f"Loading input data from {self.data_dir}...")
        validate_data_files(self.data_dir)

        skiprows, years = self.params.header_skiprows, self.params.years
        deaths = load_deaths(self.paths.deaths)
        gdp = load_gdp(self.paths.gdp, skiprows, years)
        population = load_population(self.paths.population, skiprows, years)

        print(f"Loaded {len(deaths)} death records, {len(gdp)} GDP records, "
              f"{len(population)} population records")
        return {'deaths': deaths, 'gdp': gdp, 'population': population}

    def run_all_processing(self) -> pd.DataFrame:
        """
        Load, merge and export the analytic table.

        Writes the following file to the intermediate directory:
            "maindata.csv"

        Returns:
            The merged analytic table
        """
        print("Starting data processing...")
        tables = self.load_all()
        maindata = merge_datasets(tables['gdp'], tables['population'], tables['deaths'])

        report = join_report(tables['gdp'], tables['population'], maindata)
        print(f"Merged {report['merged_country_years']} country-years "
              f"(dropped {report['gdp_only_country_years']} GDP-only and "
              f"{report['population_only_country_years']} population-only)")
        if report['rows_without_deaths']:
            print(f"Warning: {report['rows_without_deaths']} country-years have no death estimates")

        self.intermediate_dir.mkdir(parents=True, exist_ok=True)
        output_file = self.paths.maindata
        maindata.to_csv(output_file, index=False)
        print(f"Saved {len(maindata)} rows to {output_file}")
        return maindata


def load_maindata(path: Path) -> pd.DataFrame:
    """Read a previously written maindata.csv."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Merged data file {path} not found; run with --process_data first")
    return pd.read_csv(path)


def main(data_dir: Path = DATA_DIR, skiprows: int = 4):
    """Run all data processing."""
    params = DataParameters(header_skiprows=skiprows)
    return DataProcessor(data_dir=data_dir, params=params).run_all_processing()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description='Merge HIV deaths, GDP and population data')
    parser.add_argument('--data_dir', type=str, default=str(DATA_DIR), help='Directory with raw input files')
    parser.add_argument('--skiprows', type=int, default=4, help='Metadata rows above the wide file header')
    args = parser.parse_args()
    main(Path(args.data_dir), args.skiprows)
