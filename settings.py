"""
Search Interest Forecaster - Settings
-------------------------------------
Run settings for the analysis. Values come from the environment (or a .env
file in the working directory) and fall back to the defaults below.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _int_setting(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def _float_setting(name, default):
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


DATA_FILE = os.getenv('INTEREST_DATA_FILE', 'data/interest_over_time.csv')
OUTPUT_DIR = os.getenv('OUTPUT_DIR', 'outputs')

SEASONAL_PERIOD = _int_setting('SEASONAL_PERIOD', 12)
FORECAST_HORIZON = _int_setting('FORECAST_HORIZON', 12)
MAX_AR_ORDER = _int_setting('MAX_AR_ORDER', 5)
MAX_MA_ORDER = _int_setting('MAX_MA_ORDER', 5)
TREND_WINDOW = _int_setting('TREND_WINDOW', 24)
HOLDOUT_MONTHS = _int_setting('HOLDOUT_MONTHS', 12)

# Search-interest exports write "<1" for values that round below one
BELOW_ONE_VALUE = _float_setting('BELOW_ONE_VALUE', 0.5)
CONFIDENCE_LEVEL = _float_setting('CONFIDENCE_LEVEL', 0.95)

INFORMATION_CRITERION = os.getenv('INFORMATION_CRITERION', 'aic').lower()

if not 0 < CONFIDENCE_LEVEL < 1:
    raise ValueError(f"CONFIDENCE_LEVEL must be between 0 and 1, got {CONFIDENCE_LEVEL}")
if INFORMATION_CRITERION not in ('aic', 'bic', 'aicc'):
    raise ValueError(f"INFORMATION_CRITERION must be aic, bic or aicc, got {INFORMATION_CRITERION!r}")
if FORECAST_HORIZON < 1:
    raise ValueError(f"FORECAST_HORIZON must be at least 1, got {FORECAST_HORIZON}")
