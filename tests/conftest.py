"""
Shared fixtures built on the synthetic series in helpers.py.
"""

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest

from helpers import GAP_MONTH, N_MONTHS, START, make_interest_values, write_interest_csv


@pytest.fixture
def interest_series():
    index = pd.date_range(START, periods=N_MONTHS, freq='MS')
    return pd.Series(make_interest_values(), index=index, name='flu')


@pytest.fixture
def log_interest_series(interest_series):
    return np.log(interest_series)


@pytest.fixture
def interest_csv(tmp_path):
    """Export with a preamble and a blank March 2020 value."""
    return write_interest_csv(tmp_path / 'interest.csv', make_interest_values(), blank_months=(GAP_MONTH,))


@pytest.fixture
def ar1_residuals():
    """AR(1) noise on a monthly index, standing in for a residual component."""
    rng = np.random.default_rng(7)
    n = 132
    shocks = rng.normal(0, 0.05, n)
    values = np.zeros(n)
    for i in range(1, n):
        values[i] = 0.6 * values[i - 1] + shocks[i]
    index = pd.date_range('2012-07-01', periods=n, freq='MS')
    return pd.Series(values, index=index, name='residual')
