"""
Search Interest Forecaster - Data Loading and Cleaning
------------------------------------------------------
This module loads the monthly search-interest export, converts the reported
values to numbers and repairs gaps so the series is ready for transformation
and decomposition.
"""

import io
import os
import re
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns

MONTH_PATTERN = re.compile(r'^\s*(\d{4})-(\d{2})\s*$')


class InterestDataError(ValueError):
    """Raised when the interest export cannot be turned into a monthly series."""


def parse_interest_value(raw, below_one_value: float = 0.5) -> float:
    """
    Convert a raw interest cell to a float.

    Values reported as "<1" are mapped to `below_one_value`. Blank or
    unparseable cells become NaN so they can be imputed later.
    """
    if raw is None:
        return np.nan
    if isinstance(raw, (int, float, np.integer, np.floating)):
        return float(raw)

    text = str(raw).strip()
    if text == '' or text.lower() in ('nan', 'none'):
        return np.nan
    if text.startswith('<'):
        return float(below_one_value)
    try:
        return float(text.replace(',', ''))
    except ValueError:
        return np.nan


def _is_month(cell: str) -> bool:
    match = MONTH_PATTERN.match(cell)
    return bool(match) and 1 <= int(match.group(2)) <= 12


def _normalise_series_name(header: Optional[str]) -> str:
    """Turn an export header such as 'Flu: (Worldwide)' into 'flu'."""
    if not header:
        return 'interest'
    name = header.split(':')[0].strip().lower().replace(' ', '_')
    return name or 'interest'


def load_interest_data(file_path: str, below_one_value: float = 0.5) -> pd.Series:
    """
    Load a monthly interest export into a Series.

    Parameters:
    -----------
    file_path : str
        CSV with a month column (YYYY-MM) and an interest value column.
        Preamble lines before the header are skipped.
    below_one_value : float
        Numeric value used for cells reported as "<1"

    Returns:
    --------
    pd.Series
        Interest values on a contiguous month-start index. Months absent
        from the file are present as NaN.
    """
    print(f"Loading interest data from {file_path}...")

    if not os.path.exists(file_path):
        raise InterestDataError(f"Interest data file not found at {file_path}")

    with open(file_path, 'r', encoding='utf-8-sig') as handle:
        lines = handle.read().splitlines()

    # Locate the first data row; the line before it (if any) is the header
    first_data_line = None
    for line_number, line in enumerate(lines):
        first_cell = line.split(',')[0]
        if _is_month(first_cell):
            first_data_line = line_number
            break

    if first_data_line is None:
        raise InterestDataError(f"No YYYY-MM rows found in {file_path}")

    header = None
    if first_data_line > 0 and lines[first_data_line - 1].strip():
        header = lines[first_data_line - 1]

    body = '\n'.join(lines[first_data_line:])
    raw_df = pd.read_csv(io.StringIO(body), header=None, dtype=str, skip_blank_lines=True)

    if raw_df.shape[1] < 2:
        raise InterestDataError(f"Expected a month column and a value column in {file_path}")

    value_header = None
    if header:
        header_cells = pd.read_csv(io.StringIO(header), header=None, dtype=str).iloc[0]
        if len(header_cells) > 1 and isinstance(header_cells.iloc[1], str):
            value_header = header_cells.iloc[1]
    series_name = _normalise_series_name(value_header)

    raw_df = raw_df.iloc[:, :2]
    raw_df.columns = ['month', 'value']
    raw_df = raw_df[raw_df['month'].astype(str).map(_is_month)]

    months = pd.to_datetime(raw_df['month'].str.strip(), format='%Y-%m')
    if months.duplicated().any():
        duplicates = sorted(months[months.duplicated()].dt.strftime('%Y-%m').unique())
        raise InterestDataError(f"Duplicate months in {file_path}: {', '.join(duplicates)}")

    values = raw_df['value'].map(lambda cell: parse_interest_value(cell, below_one_value))
    series = pd.Series(values.values, index=pd.DatetimeIndex(months), name=series_name, dtype=float)
    series = series.sort_index()

    # Reinsert months the export skipped so the index is contiguous
    full_index = pd.date_range(start=series.index.min(), end=series.index.max(), freq='MS')
    series = series.reindex(full_index)
    series.index.name = 'month'

    below_one = int(raw_df['value'].astype(str).str.strip().str.startswith('<').sum())
    print(f"Loaded {series.notna().sum()} observations from "
          f"{series.index.min():%Y-%m} to {series.index.max():%Y-%m}")
    if below_one:
        print(f"Mapped {below_one} '<1' values to {below_one_value}")

    return series


def analyze_missingness(series: pd.Series, output_dir: Optional[str] = None) -> Dict[str, object]:
    """Reports missing months and optionally plots the missing-value mask."""
    print(f"\nAnalyzing missing values for {series.name}...")
    missing_mask = series.isnull()
    missing_values = int(missing_mask.sum())
    missing_percent = (missing_values / len(series)) * 100 if len(series) else 0.0
    missing_dates = [date.strftime('%Y-%m') for date in series.index[missing_mask]]

    print(f"Missing values: {missing_values}")
    print(f"Missing percent: {missing_percent:.2f}%")

    if missing_values > 0:
        print(f"Missing months: {', '.join(missing_dates)}")
        if output_dir:
            os.makedirs(output_dir, exist_ok=True)
            plt.figure(figsize=(12, 3))
            plt.plot(series.index, missing_mask.astype(int), drawstyle='steps-mid')
            plt.yticks([0, 1], ['present', 'missing'])
            plt.title(f'Missing Values in {series.name}')
            plt.tight_layout()
            plt.savefig(os.path.join(output_dir, f'missing_values_{series.name}.png'))
            plt.close()
    else:
        print("No missing values found.")

    return {
        'missing': missing_values,
        'missing_percent': missing_percent,
        'missing_dates': missing_dates,
    }


def impute_by_calendar_month(series: pd.Series) -> Tuple[pd.Series, pd.DataFrame]:
    """
    Fill each missing month with the mean of the same calendar month in the
    other years.

    Returns:
    --------
    Tuple[pd.Series, pd.DataFrame]
        Imputed series and a record of imputed dates, values and donor counts
    """
    imputed = series.copy()
    records: List[Dict[str, object]] = []

    for date in series.index[series.isnull()]:
        donors = series[(series.index.month == date.month) & series.notnull()]
        if donors.empty:
            raise InterestDataError(
                f"Cannot impute {date:%Y-%m}: no other observations for calendar month {date.month}"
            )
        value = float(donors.mean())
        imputed[date] = value
        records.append({'month': date.strftime('%Y-%m'), 'imputed_value': value, 'donor_months': len(donors)})
        print(f"Imputed {date:%Y-%m} with mean of {len(donors)} other {date:%B} values: {value:.4f}")

    record_df = pd.DataFrame(records, columns=['month', 'imputed_value', 'donor_months'])
    return imputed, record_df


def describe_series(series: pd.Series) -> pd.DataFrame:
    """Descriptive statistics for the report."""
    stats = series.describe().round(4).astype(object)
    stats['first_month'] = series.index.min().strftime('%Y-%m')
    stats['last_month'] = series.index.max().strftime('%Y-%m')
    return stats.to_frame('value')


def plot_interest_series(series: pd.Series, output_path: str, imputed_dates=None):
    """Line plot of the cleaned series, marking imputed months."""
    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
    plt.figure(figsize=(12, 6))
    plt.plot(series.index, series, color='black', label='Interest')
    if imputed_dates is not None and len(imputed_dates):
        marked = pd.DatetimeIndex(pd.to_datetime(imputed_dates, format='%Y-%m'))
        plt.scatter(marked, series.reindex(marked), color='red', zorder=5, label='Imputed')
    plt.title(f'Monthly Search Interest - {series.name}')
    plt.xlabel('Month')
    plt.ylabel('Interest (0-100)')
    plt.legend()
    plt.grid(True, linestyle=':', alpha=0.7)
    plt.tight_layout()
    plt.savefig(output_path)
    plt.close()
    print(f"Series plot saved to {output_path}")


def plot_monthly_profile(series: pd.Series, output_path: str):
    """Box plot of interest by calendar month."""
    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
    frame = pd.DataFrame({'month': series.index.strftime('%b'), 'value': series.values})
    order = pd.date_range('2000-01-01', periods=12, freq='MS').strftime('%b')

    plt.figure(figsize=(12, 6))
    sns.boxplot(x='month', y='value', data=frame, order=list(order), color='skyblue')
    plt.title(f'Interest by Calendar Month - {series.name}')
    plt.xlabel('Month')
    plt.ylabel('Interest (0-100)')
    plt.tight_layout()
    plt.savefig(output_path)
    plt.close()
    print(f"Monthly profile plot saved to {output_path}")
