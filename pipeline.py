#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Search Interest Forecaster - Pipeline
-------------------------------------
Runs the full analysis once over the interest export and renders the report:

1. Load and clean the series ('<1' values, missing months)
2. Log transform (with Box-Cox diagnostics)
3. Classical decomposition into trend, seasonal and residual
4. ARMA order selection on the residuals
5. Forecast composition
6. Holdout evaluation
7. Report rendering
"""

import os
import sys
import json
import time
from datetime import datetime

import matplotlib
matplotlib.use('Agg')

import settings
import interest_data
import variance_stabilization
import classical_decomposition
import residual_arma
import decomposition_forecast
import report

STEPS = [
    'load_data',
    'variance_stabilization',
    'decomposition',
    'residual_model',
    'forecast',
    'holdout_evaluation',
    'report',
]


def create_output_directories(output_dir):
    """Create necessary output directories."""
    directories = {
        'data_quality': os.path.join(output_dir, 'visualizations', 'data_quality'),
        'decomposition': os.path.join(output_dir, 'visualizations', 'decomposition'),
        'arma': os.path.join(output_dir, 'visualizations', 'arma'),
        'forecast': os.path.join(output_dir, 'visualizations', 'forecast'),
        'models': os.path.join(output_dir, 'models'),
    }
    for directory in directories.values():
        os.makedirs(directory, exist_ok=True)
    return directories


def _write_record(output_dir, record):
    with open(os.path.join(output_dir, 'pipeline_record.json'), 'w') as f:
        json.dump(record, f, indent=2)


def run_analysis(data_file=None, output_dir=None, horizon=None, period=None, max_p=None, max_q=None,
                 ic=None, holdout=None, below_one_value=None, confidence_level=None, trend_window=None,
                 render_report=True):
    """
    Run the complete analysis.

    Parameters default to the values in settings.py.

    Returns:
    --------
    dict
        Everything the report is built from: cleaned series, decomposition,
        grid search table, selected model, forecast, holdout results, figure
        paths and artifact paths
    """
    data_file = data_file or settings.DATA_FILE
    output_dir = output_dir or settings.OUTPUT_DIR
    horizon = horizon if horizon is not None else settings.FORECAST_HORIZON
    period = period or settings.SEASONAL_PERIOD
    max_p = max_p if max_p is not None else settings.MAX_AR_ORDER
    max_q = max_q if max_q is not None else settings.MAX_MA_ORDER
    ic = ic or settings.INFORMATION_CRITERION
    holdout = holdout if holdout is not None else settings.HOLDOUT_MONTHS
    below_one_value = below_one_value if below_one_value is not None else settings.BELOW_ONE_VALUE
    confidence_level = confidence_level or settings.CONFIDENCE_LEVEL
    trend_window = trend_window or settings.TREND_WINDOW
    alpha = 1 - confidence_level

    start_time = time.time()
    directories = create_output_directories(output_dir)
    figures = {}
    results = {
        'period': period,
        'max_p': max_p,
        'max_q': max_q,
        'ic': ic,
        'below_one_value': below_one_value,
        'confidence_level': confidence_level,
        'figures': figures,
        'holdout': None,
    }
    completed = []

    print("=" * 80)
    print("SEARCH INTEREST DECOMPOSITION AND ARMA FORECAST - PIPELINE")
    print("=" * 80)
    print(f"Data file: {data_file}")
    print(f"Output directory: {output_dir}")
    print("-" * 80)

    def record_failure(step, error):
        print(f"Error in {step.replace('_', ' ')}: {error}")
        _write_record(output_dir, {
            'timestamp': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
            'data_file': data_file,
            'steps_executed': completed,
            'failed_step': step,
            'error': str(error),
            'execution_time_seconds': time.time() - start_time,
            'status': 'failed',
        })

    for number, step in enumerate(STEPS, start=1):
        if step == 'report' and not render_report:
            continue
        print(f"\nSTEP {number}: {step.replace('_', ' ').upper()}")
        try:
            if step == 'load_data':
                raw_series = interest_data.load_interest_data(data_file, below_one_value=below_one_value)
                results['series_name'] = raw_series.name
                results['raw_series'] = raw_series
                results['missingness'] = interest_data.analyze_missingness(
                    raw_series, output_dir=directories['data_quality'])
                clean_series, imputation = interest_data.impute_by_calendar_month(raw_series)
                results['clean_series'] = clean_series
                results['imputation'] = imputation
                results['description'] = interest_data.describe_series(clean_series)

                figures['series'] = os.path.join(directories['data_quality'], 'interest_series.png')
                interest_data.plot_interest_series(clean_series, figures['series'],
                                                   imputed_dates=imputation['month'].tolist())
                figures['monthly_profile'] = os.path.join(directories['data_quality'], 'monthly_profile.png')
                interest_data.plot_monthly_profile(clean_series, figures['monthly_profile'])

            elif step == 'variance_stabilization':
                clean_series = results['clean_series']
                log_series = variance_stabilization.apply_log_transform(clean_series)
                results['log_series'] = log_series
                results['boxcox'] = {
                    'guerrero': variance_stabilization.boxcox_lambda(clean_series, 'guerrero', period=period),
                    'loglik': variance_stabilization.boxcox_lambda(clean_series, 'loglik'),
                }
                print(f"Box-Cox lambda (Guerrero): {results['boxcox']['guerrero']:.4f}")
                print(f"Box-Cox lambda (log-likelihood): {results['boxcox']['loglik']:.4f}")

                figures['variance'] = os.path.join(directories['data_quality'], 'variance_stabilization.png')
                variance_stabilization.plot_variance_stabilization(clean_series, log_series, figures['variance'],
                                                                   window=period)

            elif step == 'decomposition':
                decomposition = classical_decomposition.decompose_series(results['log_series'], period=period)
                results['decomposition'] = decomposition
                results['seasonal_indices'] = classical_decomposition.seasonal_indices(decomposition)
                results['reconstruction_error'] = classical_decomposition.check_reconstruction(decomposition)
                results['statsmodels_difference'] = classical_decomposition.compare_with_statsmodels(
                    results['log_series'], decomposition)
                results['strength'] = classical_decomposition.component_strength(decomposition)
                print(f"Reconstruction error: {results['reconstruction_error']:.2e}")
                print(f"Seasonal index sum: {results['seasonal_indices'].sum():.2e}")
                print(f"Trend strength: {results['strength']['trend_strength']:.3f}, "
                      f"seasonal strength: {results['strength']['seasonal_strength']:.3f}")

                figures['decomposition'] = os.path.join(directories['decomposition'], 'decomposition.png')
                classical_decomposition.plot_decomposition(decomposition, figures['decomposition'],
                                                           title=f"log {results['series_name']}")
                figures['seasonal_profile'] = os.path.join(directories['decomposition'], 'seasonal_profile.png')
                classical_decomposition.plot_seasonal_profile(results['seasonal_indices'],
                                                              figures['seasonal_profile'],
                                                              model=decomposition.attrs['model'])

            elif step == 'residual_model':
                residuals = residual_arma.defined_range(results['decomposition']['residual'])
                results['stationarity'] = residual_arma.check_stationarity(residuals, title='residual component')
                figures['acf_pacf'] = os.path.join(directories['arma'], 'acf_pacf_residuals.png')
                residual_arma.plot_acf_pacf(residuals, figures['acf_pacf'], lags=2 * period)

                best_order, best_model, grid = residual_arma.grid_search_arma(
                    residuals, max_p=max_p, max_q=max_q, ic=ic)
                results['best_order'] = best_order
                results['arma_results'] = best_model
                results['grid'] = grid
                results['parameters'] = residual_arma.model_parameters(best_model)

                figures['diagnostics'] = os.path.join(directories['arma'], 'arma_diagnostics.png')
                results['diagnostics'] = residual_arma.residual_diagnostics(best_model, figures['diagnostics'])
                results['model_path'] = residual_arma.save_model(
                    best_model, os.path.join(directories['models'], 'residual_arma.pkl'))

            elif step == 'forecast':
                forecast_df = decomposition_forecast.compose_forecast(
                    results['log_series'], results['decomposition'], results['arma_results'],
                    horizon=horizon, alpha=alpha, trend_window=trend_window)
                results['forecast'] = forecast_df
                fitted = decomposition_forecast.in_sample_fit(
                    results['log_series'], results['decomposition'], results['arma_results'])
                results['in_sample_fit'] = fitted
                results['in_sample_metrics'] = decomposition_forecast.calculate_metrics(
                    fitted['observed'], fitted['fitted'])

                print(f"\nForecast for the next {horizon} months:")
                print(forecast_df[['forecast', 'lower', 'upper']].round(2).to_string())

                figures['forecast'] = os.path.join(directories['forecast'], 'forecast.png')
                decomposition_forecast.plot_forecast(results['clean_series'], forecast_df, figures['forecast'],
                                                     fitted=fitted['fitted'], confidence_level=confidence_level)

            elif step == 'holdout_evaluation':
                clean_series = results['clean_series']
                if holdout <= 0:
                    print("Holdout evaluation disabled.")
                elif len(clean_series) - holdout < 2 * period:
                    print(f"Skipping holdout evaluation: fewer than {2 * period} months would remain for training.")
                else:
                    results['holdout'] = decomposition_forecast.evaluate_holdout(
                        clean_series, holdout=holdout, period=period, order=results['best_order'],
                        trend_window=trend_window, alpha=alpha)
                    figures['holdout'] = os.path.join(directories['forecast'], 'holdout.png')
                    decomposition_forecast.plot_holdout(results['holdout']['predictions'],
                                                        clean_series.iloc[-(holdout + 3 * period):],
                                                        figures['holdout'])

            elif step == 'report':
                results['artifacts'] = report.build_report(results, output_dir)

        except Exception as e:
            record_failure(step, e)
            raise

        completed.append(step)
        print(f"{step.replace('_', ' ').capitalize()} completed successfully.")

    elapsed_time = time.time() - start_time

    print("\n" + "=" * 80)
    print(f"PIPELINE COMPLETED IN {elapsed_time:.2f} SECONDS")
    print("=" * 80)

    _write_record(output_dir, {
        'timestamp': datetime.now().strftime('%Y-%m-%d %H:%M:%S'),
        'data_file': data_file,
        'steps_executed': completed,
        'selected_order': list(results['best_order']),
        'execution_time_seconds': elapsed_time,
        'status': 'completed',
    })

    return results


def main():
    """Main function to run the pipeline."""
    # Optional first argument overrides the data file
    data_file = sys.argv[1] if len(sys.argv) > 1 else None
    run_analysis(data_file=data_file)


if __name__ == "__main__":
    main()
