#!/usr/bin/env python3
"""Record schemas for the raw input tables.

Each loader validates its table against a pydantic record model right after
reading it, so a missing column or a text value in a numeric column stops the
run with a message naming the file and column instead of turning into nulls
later.

Integer fields accept whole-number floats (pandas reads an integer column
holding a gap as float) and reject fractional values. Empty cells stay
missing; only text that is not a number is an error.
"""

from collections import defaultdict
from typing import List, Optional, Type

import pandas as pd
from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError


class SchemaError(ValueError):
    """Raised when an input table does not match its expected schema."""


# ============================================================================
# Record Models
# ============================================================================

class InputRecord(BaseModel):
    """Base for one validated input row; columns outside the model are ignored."""

    model_config = ConfigDict(extra='ignore', frozen=True)


class DeathRecord(InputRecord):
    """One GBD death estimate for a country, year, sex and age group."""

    location_id: int
    country_name: Optional[str] = None
    sex_id: int
    sex_name: str
    age_id: int
    age_name: str
    year: int
    val: Optional[float] = None
    upper: Optional[float] = None
    lower: Optional[float] = None


class IndicatorLocation(InputRecord):
    """Identifier part of one row of a wide World Bank indicator file."""

    location_id: int
    country_name: Optional[str] = None


# Year columns of the wide files: numbers or empty cells
_YEAR_VALUES = TypeAdapter(List[Optional[float]])

# Identifier columns placed first in the merged table
MAINDATA_ID_COLUMNS = ['location_id', 'country_name', 'year']


# ============================================================================
# Validation
# ============================================================================

def schema_columns(model: Type[InputRecord]) -> List[str]:
    """Column names a record model reads, in declaration order."""
    return list(model.model_fields)


def require_columns(df: pd.DataFrame, model: Type[InputRecord], source: str) -> None:
    """Raise SchemaError if df lacks any column of the record model."""
    missing = [col for col in schema_columns(model) if col not in df.columns]
    if missing:
        raise SchemaError(
            f"{source} is missing required columns {missing} for {model.__name__}; "
            f"found {list(df.columns)}"
        )


def _cells(series: pd.Series) -> List[object]:
    """Python values of a column, with NaN and whitespace-only text as None."""
    values = series.astype(object).where(series.notna(), None).tolist()
    return [None if isinstance(v, str) and not v.strip() else v for v in values]


def _describe_errors(error: ValidationError, source: str) -> str:
    by_column = defaultdict(list)
    for detail in error.errors():
        column = detail['loc'][1] if len(detail['loc']) > 1 else '?'
        by_column[column].append(detail)

    parts = []
    for column, details in by_column.items():
        sample = list(dict.fromkeys(str(d['input']) for d in details))[:5]
        parts.append(f"Column '{column}' in {source} has {len(details)} invalid values, "
                     f"e.g. {sample} ({details[0]['msg']})")
    return "; ".join(parts)


def validate_table(df: pd.DataFrame, model: Type[InputRecord], source: str) -> pd.DataFrame:
    """Validate every row against a record model and cast the model's columns.

    Args:
        df: Table with already normalized column names
        model: Record model describing one row
        source: File name used in error messages

    Returns:
        Copy of df with the model's columns replaced by their validated
        values. Other columns are kept as-is.

    Raises:
        SchemaError: If a column is missing or a row fails validation.
    """
    require_columns(df, model, source)
    columns = schema_columns(model)
    records = [dict(zip(columns, row)) for row in zip(*(_cells(df[col]) for col in columns))]
    try:
        rows = TypeAdapter(List[model]).validate_python(records)
    except ValidationError as e:
        raise SchemaError(_describe_errors(e, source)) from e

    out = df.copy()
    validated = pd.DataFrame([row.model_dump() for row in rows], columns=columns, index=df.index)
    for col in columns:
        annotation = model.model_fields[col].annotation
        if annotation is int:
            out[col] = validated[col].astype('int64')
        elif annotation == Optional[float]:
            out[col] = validated[col].astype(float)
        else:
            out[col] = validated[col].astype(object)
    return out


def coerce_numeric(series: pd.Series, col: str, source: str) -> pd.Series:
    """Convert a wide-file year column to floats, failing on non-numeric text."""
    try:
        values = _YEAR_VALUES.validate_python(_cells(series))
    except ValidationError as e:
        bad = [str(d['input']) for d in e.errors()]
        raise SchemaError(
            f"Column '{col}' in {source} has {len(bad)} non-numeric values, "
            f"e.g. {list(dict.fromkeys(bad))[:5]}"
        ) from e
    return pd.Series(values, index=series.index, dtype=float)
