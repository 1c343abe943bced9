"""
Synthetic monthly interest series and writers for exports in the
search-interest CSV layout.
"""

import numpy as np
import pandas as pd

START = '2012-01-01'
N_MONTHS = 144
GAP_MONTH = '2020-03'


def make_interest_values(n_months=N_MONTHS, seed=42):
    """Growing level with proportional yearly seasonality and noise."""
    rng = np.random.default_rng(seed)
    t = np.arange(n_months)
    level = 20 * np.exp(0.008 * t)
    seasonal = np.exp(0.25 * np.sin(2 * np.pi * t / 12))
    noise = np.exp(rng.normal(0, 0.05, n_months))
    return level * seasonal * noise


def write_interest_csv(path, values, start=START, blank_months=(), header='flu: (Worldwide)', preamble=True):
    index = pd.date_range(start, periods=len(values), freq='MS')
    lines = []
    if preamble:
        lines += ['Category: All categories', '']
    lines.append(f'Month,{header}')
    for month, value in zip(index.strftime('%Y-%m'), values):
        if month in blank_months:
            lines.append(f'{month},')
        elif isinstance(value, str):
            lines.append(f'{month},{value}')
        else:
            lines.append(f'{month},{int(round(value))}')
    path.write_text('\n'.join(lines) + '\n', encoding='utf-8')
    return path
