"""Test configuration and synthetic-data fixtures for all tests."""

import numpy as np
import pandas as pd
import pytest
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from hiv_mortality.features import derive_features

METADATA_LINES = [
    '"Data Source","World Development Indicators"',
    '"Last Updated Date","2021-06-30"',
    '"Indicator","synthetic"',
    '"Note","test fixture"',
]

COUNTRIES = {101: "Aland", 102: "Borduria", 103: "Carpania"}
SEXES = {1: "Male", 2: "Female"}
AGES = {5: "0-9 years", 6: "10-24 years"}


def wide_csv_text(rows: List[Dict], years: Sequence[str], skiprows: int = 4) -> str:
    """World Bank style wide CSV: metadata lines, then one column per year."""
    columns = ['Country Name', 'location_id', 'Country Code', 'Indicator Name', 'Indicator Code'] + list(years)
    body = pd.DataFrame(rows, columns=columns).to_csv(index=False)
    return "\n".join(METADATA_LINES[:skiprows]) + ("\n" if skiprows else "") + body


def wide_rows(values: Dict[Tuple[int, str], Dict[str, object]]) -> List[Dict]:
    """Rows for `wide_csv_text` from {(location_id, name): {year: value}}."""
    rows = []
    for (location_id, name), by_year in values.items():
        row = {
            'Country Name': name,
            'location_id': location_id,
            'Country Code': name[:3].upper(),
            'Indicator Name': 'synthetic',
            'Indicator Code': 'SYN',
        }
        row.update(by_year)
        rows.append(row)
    return rows


def deaths_frame(records: List[Dict]) -> pd.DataFrame:
    """GBD style long deaths table from minimal records."""
    rows = []
    for rec in records:
        rows.append({
            'measure_id': 1,
            'measure_name': 'Deaths',
            'location_id': rec['location_id'],
            'location_name': rec.get('location_name', COUNTRIES.get(rec['location_id'], 'Unknown')),
            'sex_id': rec['sex_id'],
            'sex_name': SEXES[rec['sex_id']],
            'age_id': rec['age_id'],
            'age_name': AGES.get(rec['age_id'], rec.get('age_name')),
            'cause_id': 298,
            'cause_name': 'HIV/AIDS',
            'metric_id': 1,
            'metric_name': 'Number',
            'year': rec['year'],
            'val': rec['val'],
            'upper': rec['val'] * 1.2,
            'lower': rec['val'] * 0.8,
        })
    return pd.DataFrame(rows)


@pytest.fixture
def write_wide_csv(tmp_path):
    """Write a wide indicator file and return its path."""
    def _write(filename: str, values: Dict[Tuple[int, str], Dict[str, object]],
               years: Sequence[str], skiprows: int = 4) -> Path:
        path = tmp_path / filename
        path.write_text(wide_csv_text(wide_rows(values), years, skiprows))
        return path
    return _write


@pytest.fixture
def small_grid():
    """2 countries x 2 years x 2 sexes x 2 age groups."""
    years = ['1990', '1991']
    gdp = {
        (101, "Aland"): {'1990': 1000.0, '1991': 1500.0},
        (102, "Borduria"): {'1990': 3000.0, '1991': 2000.0},
    }
    population = {
        (101, "Aland"): {'1990': 2_000_000, '1991': 2_100_000},
        (102, "Borduria"): {'1990': 5_000_000, '1991': 5_200_000},
    }
    records = []
    i = 0
    for location_id in (101, 102):
        for year in (1990, 1991):
            for sex_id in SEXES:
                for age_id in AGES:
                    i += 1
                    records.append({'location_id': location_id, 'sex_id': sex_id, 'age_id': age_id,
                                    'year': year, 'val': 20.0 + 7.0 * i + (i % 3) * 5.0})
    return {'years': years, 'gdp': gdp, 'population': population, 'deaths': deaths_frame(records)}


@pytest.fixture
def raw_data_dir(tmp_path, small_grid):
    """Data directory with the three input files for the small grid."""
    data_dir = tmp_path / "data"
    data_dir.mkdir()
    years = small_grid['years']
    (data_dir / "final_gdp_per_capita.csv").write_text(
        wide_csv_text(wide_rows(small_grid['gdp']), years))
    (data_dir / "final_population_total.csv").write_text(
        wide_csv_text(wide_rows(small_grid['population']), years))
    small_grid['deaths'].to_csv(data_dir / "final_hiv_deaths.csv", index=False)
    return data_dir


def make_maindata(years: Sequence[int] = (2003, 2004, 2005, 2006),
                  seed: int = 0, n_countries: int = 3) -> pd.DataFrame:
    """Synthetic merged table with Poisson death counts around a known trend."""
    rng = np.random.default_rng(seed)
    rows = []
    for location_id, name in list(COUNTRIES.items())[:n_countries]:
        for year in years:
            population = float(rng.integers(1_000_000, 5_000_000))
            gdp = float(rng.uniform(500, 20000))
            for sex_id, sex_name in SEXES.items():
                for age_id, age_name in AGES.items():
                    rate = 50.0 * (1.5 if sex_name == "Male" else 1.0) * (2.0 if age_id == 6 else 1.0)
                    rate *= np.exp(-0.05 * (year - years[0]))
                    expected = rate * population / 100000
                    rows.append({
                        'location_id': location_id,
                        'country_name': name,
                        'year': year,
                        'gdp_per_capita': gdp,
                        'population': population,
                        'sex_id': sex_id,
                        'sex_name': sex_name,
                        'age_id': age_id,
                        'age_name': age_name,
                        'val': float(rng.poisson(expected)),
                    })
    return pd.DataFrame(rows)


@pytest.fixture
def maindata():
    return make_maindata()


@pytest.fixture
def regression_df(maindata):
    return derive_features(maindata)
