"""
Search Interest Forecaster - Forecast Composition
-------------------------------------------------
Builds the forecast from the decomposition: the trend is extrapolated, the
seasonal index is repeated by calendar month and the residual is forecast
with the selected ARMA model. The three parts are added in log space and
transformed back to the original interest scale.
"""

import os
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
from sklearn.linear_model import LinearRegression
from sklearn.metrics import mean_squared_error, mean_absolute_error, r2_score

from variance_stabilization import apply_log_transform, inverse_log_transform
from classical_decomposition import decompose_series, seasonal_indices
from residual_arma import defined_range, fit_arma, grid_search_arma


def mean_absolute_percentage_error(y_true, y_pred):
    """Calculate Mean Absolute Percentage Error (MAPE)"""
    y_true, y_pred = np.array(y_true), np.array(y_pred)
    mask = y_true != 0
    if not np.any(mask):
        return np.nan
    return np.mean(np.abs((y_true[mask] - y_pred[mask]) / y_true[mask])) * 100


def calculate_metrics(y_true, y_pred):
    """Calculate standard forecast accuracy metrics"""
    return {
        'RMSE': float(np.sqrt(mean_squared_error(y_true, y_pred))),
        'MAE': float(mean_absolute_error(y_true, y_pred)),
        'MAPE': float(mean_absolute_percentage_error(y_true, y_pred)),
        'R2': float(r2_score(y_true, y_pred)),
    }


def extrapolate_trend(trend: pd.Series, steps: int, window: int = 24, method: str = 'linear') -> np.ndarray:
    """
    Extend the trend beyond its last defined value.

    Parameters:
    -----------
    trend : pd.Series
        Trend component (NaN edges are ignored)
    steps : int
        Number of months to extend
    window : int
        Number of most recent trend values the extension is based on
    method : str
        'linear' fits a least-squares line to the window, 'drift' continues
        the average month-on-month change across the window

    Returns:
    --------
    np.ndarray
        Extended trend values for the next `steps` months
    """
    values = trend.dropna().values[-window:]
    if len(values) < 2:
        raise ValueError("Trend extrapolation needs at least two defined trend values")

    n = len(values)
    future_x = np.arange(n, n + steps)

    if method == 'linear':
        x = np.arange(n).reshape(-1, 1)
        model = LinearRegression().fit(x, values)
        return model.predict(future_x.reshape(-1, 1))
    elif method == 'drift':
        slope = (values[-1] - values[0]) / (n - 1)
        return values[-1] + slope * np.arange(1, steps + 1)
    else:
        raise ValueError(f"Unknown trend extrapolation method: {method}")


def project_seasonal(indices: pd.Series, future_index: pd.DatetimeIndex) -> np.ndarray:
    """Seasonal value for each future month, looked up by calendar month."""
    return indices.reindex(future_index.month).values


def compose_forecast(log_series: pd.Series, decomposition: pd.DataFrame, arma_results,
                     horizon: int = 12, alpha: float = 0.05, trend_window: int = 24,
                     trend_method: str = 'linear', bias_adjust: bool = False) -> pd.DataFrame:
    """
    Forecast the next `horizon` months as trend + seasonal + ARMA residual
    forecast in log space, then transform back.

    The trend and residual stop period // 2 months before the end of the
    series, so both are extended across that gap before the horizon starts.
    The prediction interval comes from the ARMA forecast and does not
    include uncertainty in the trend.

    Returns:
    --------
    pd.DataFrame
        Indexed by forecast month with the log-space components, the log
        forecast and interval, and the forecast and interval on the original
        scale
    """
    if horizon < 1:
        raise ValueError(f"Forecast horizon must be at least 1 month, got {horizon}")

    print(f"\nComposing {horizon}-month forecast from trend, seasonal and ARMA residual...")

    trend = decomposition['trend']
    last_defined = trend.index.get_loc(trend.last_valid_index())
    gap = len(log_series) - 1 - last_defined
    steps = gap + horizon

    future_index = pd.date_range(
        start=log_series.index[-1] + pd.DateOffset(months=1),
        periods=horizon,
        freq='MS'
    )

    trend_future = extrapolate_trend(trend, steps, window=trend_window, method=trend_method)[-horizon:]
    seasonal_future = project_seasonal(seasonal_indices(decomposition), future_index)

    arma_forecast = arma_results.get_forecast(steps=steps)
    residual_future = np.asarray(arma_forecast.predicted_mean)[-horizon:]
    residual_interval = np.asarray(arma_forecast.conf_int(alpha=alpha))[-horizon:]
    residual_se = np.asarray(arma_forecast.se_mean)[-horizon:]

    base = trend_future + seasonal_future
    log_forecast = base + residual_future
    log_lower = base + residual_interval[:, 0]
    log_upper = base + residual_interval[:, 1]

    forecast = inverse_log_transform(log_forecast)
    if bias_adjust:
        # exp of the log-space mean is the median; scale up to the mean
        forecast = forecast * np.exp(residual_se ** 2 / 2)

    forecast_df = pd.DataFrame({
        'trend': trend_future,
        'seasonal': seasonal_future,
        'residual': residual_future,
        'log_forecast': log_forecast,
        'log_lower': log_lower,
        'log_upper': log_upper,
        'forecast': forecast,
        'lower': inverse_log_transform(log_lower),
        'upper': inverse_log_transform(log_upper),
    }, index=future_index)
    forecast_df.index.name = 'month'

    print(f"Forecast generated for {future_index[0]:%Y-%m} to {future_index[-1]:%Y-%m}")
    return forecast_df


def in_sample_fit(log_series: pd.Series, decomposition: pd.DataFrame, arma_results) -> pd.DataFrame:
    """
    One-step-ahead fitted values of the composed model, on the original
    scale, over the range where the residual is defined.
    """
    fitted_residual = pd.Series(arma_results.fittedvalues)
    defined = decomposition.loc[fitted_residual.index]
    fitted_log = defined['trend'] + defined['seasonal'] + fitted_residual

    return pd.DataFrame({
        'observed': inverse_log_transform(log_series.loc[fitted_residual.index]),
        'fitted': inverse_log_transform(fitted_log),
    })


def seasonal_naive_forecast(train: pd.Series, horizon: int, period: int = 12) -> np.ndarray:
    """Repeat the last observed season."""
    last_season = train.values[-period:]
    return np.array([last_season[i % period] for i in range(horizon)])


def evaluate_holdout(series: pd.Series, holdout: int = 12, period: int = 12,
                     order: Optional[Tuple[int, int]] = None, max_p: int = 5, max_q: int = 5,
                     ic: str = 'aic', trend_window: int = 24, trend_method: str = 'linear',
                     alpha: float = 0.05) -> Dict[str, pd.DataFrame]:
    """
    Hold out the last `holdout` months, rebuild the model on the rest and
    compare its forecast with the actual values and with a seasonal naive
    benchmark.

    Parameters:
    -----------
    series : pd.Series
        Cleaned series on the original scale
    order : tuple or None
        ARMA order to use; None reruns the grid search on the training span

    Returns:
    --------
    dict
        'metrics' (one row per method) and 'predictions' (actuals and both
        forecasts per holdout month)
    """
    if holdout < 1:
        raise ValueError(f"Holdout must be at least 1 month, got {holdout}")
    print(f"\nEvaluating forecast on a {holdout}-month holdout...")
    if len(series) - holdout < 2 * period:
        raise ValueError(f"Holdout of {holdout} months leaves fewer than {2 * period} training months")

    train = series.iloc[:-holdout]
    test = series.iloc[-holdout:]

    log_train = apply_log_transform(train)
    decomposition = decompose_series(log_train, period=period)
    residuals = defined_range(decomposition['residual'])

    if order is None:
        order, arma_results, _ = grid_search_arma(residuals, max_p=max_p, max_q=max_q, ic=ic)
    else:
        arma_results = fit_arma(residuals, order)

    forecast_df = compose_forecast(log_train, decomposition, arma_results, horizon=holdout,
                                   alpha=alpha, trend_window=trend_window, trend_method=trend_method)
    naive = seasonal_naive_forecast(train, holdout, period)

    predictions = pd.DataFrame({
        'actual': test.values,
        'forecast': forecast_df['forecast'].values,
        'lower': forecast_df['lower'].values,
        'upper': forecast_df['upper'].values,
        'seasonal_naive': naive,
    }, index=test.index)

    model_metrics = calculate_metrics(test.values, predictions['forecast'].values)
    model_metrics['Interval_Coverage'] = float(
        ((predictions['actual'] >= predictions['lower']) & (predictions['actual'] <= predictions['upper'])).mean()
    )
    naive_metrics = calculate_metrics(test.values, naive)
    naive_metrics['Interval_Coverage'] = np.nan

    metrics = pd.DataFrame(
        [model_metrics, naive_metrics],
        index=[f'Decomposition + ARMA{tuple(order)}', 'Seasonal naive']
    )
    metrics.index.name = 'method'

    print("\nHoldout Performance (Original Scale):")
    print(metrics.round(4).to_string())

    return {'metrics': metrics, 'predictions': predictions}


def plot_forecast(series: pd.Series, forecast_df: pd.DataFrame, output_path: str,
                  fitted: Optional[pd.Series] = None, confidence_level: float = 0.95):
    """Plot the history, optional in-sample fit and the forecast with its interval."""
    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
    plt.figure(figsize=(14, 7))
    plt.plot(series.index, series, label='Historical Data', color='black', alpha=0.8)
    if fitted is not None:
        plt.plot(fitted.index, fitted, label='In-sample Fit', color='blue', linestyle='--', alpha=0.7)
    plt.plot(forecast_df.index, forecast_df['forecast'], color='red', label='Forecast')
    plt.fill_between(forecast_df.index, forecast_df['lower'], forecast_df['upper'],
                     color='pink', alpha=0.3, label=f'{confidence_level:.0%} Prediction Interval')
    plt.axvline(x=series.index[-1], color='gray', linestyle=':')
    plt.title(f'Search Interest Forecast for Next {len(forecast_df)} Months')
    plt.xlabel('Month')
    plt.ylabel('Interest (0-100)')
    plt.legend()
    plt.grid(True, linestyle=':', alpha=0.7)
    plt.tight_layout()
    plt.savefig(output_path)
    plt.close()
    print(f"Forecast plot saved to {output_path}")


def plot_holdout(predictions: pd.DataFrame, history: pd.Series, output_path: str):
    """Plot the holdout actuals against both forecasts."""
    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
    plt.figure(figsize=(14, 6))
    plt.plot(history.index, history, color='black', alpha=0.6, label='Actual')
    plt.plot(predictions.index, predictions['forecast'], color='red', linestyle='--', label='Decomposition + ARMA')
    plt.plot(predictions.index, predictions['seasonal_naive'], color='green', linestyle='-.', label='Seasonal naive')
    plt.fill_between(predictions.index, predictions['lower'], predictions['upper'], color='pink', alpha=0.3)
    plt.axvline(x=predictions.index[0], color='gray', linestyle='--')
    plt.title('Holdout Evaluation')
    plt.xlabel('Month')
    plt.ylabel('Interest (0-100)')
    plt.legend()
    plt.grid(True, linestyle=':', alpha=0.7)
    plt.tight_layout()
    plt.savefig(output_path)
    plt.close()
    print(f"Holdout plot saved to {output_path}")
