"""
Search Interest Forecaster - Report Rendering
---------------------------------------------
Assembles the figures, tables and statistics produced by the analysis into
an HTML report, a PDF report and a plain-text summary.
"""

import base64
import os
from datetime import datetime
from typing import Dict, List

import numpy as np
import pandas as pd
import jinja2
import matplotlib.pyplot as plt
from matplotlib.backends.backend_pdf import PdfPages

REPORT_TITLE = 'Monthly Search Interest: Decomposition and ARMA Forecast'

HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{{ title }}</title>
    <style>
        body { font-family: Helvetica, Arial, sans-serif; margin: 2em auto; max-width: 1100px; color: #222; }
        h1 { border-bottom: 2px solid #444; padding-bottom: 0.3em; }
        h2 { margin-top: 2em; color: #1f4e79; }
        table.dataframe { border-collapse: collapse; margin: 1em 0; font-size: 0.9em; }
        table.dataframe th, table.dataframe td { border: 1px solid #bbb; padding: 4px 8px; text-align: right; }
        table.dataframe th { background: #eef3f8; }
        figure { margin: 1.5em 0; }
        figure img { max-width: 100%; border: 1px solid #ddd; }
        figcaption { font-size: 0.85em; color: #555; }
        p.note { color: #555; }
    </style>
</head>
<body>
    <h1>{{ title }}</h1>
    <p class="note">Generated {{ date }}</p>

    {% for section in sections %}
    <h2>{{ section.title }}</h2>
    {% for line in section.text %}
    <p>{{ line }}</p>
    {% endfor %}
    {% for table in section.tables %}
    <h3>{{ table.caption }}</h3>
    {{ table.html|safe }}
    {% endfor %}
    {% for figure in section.figures %}
    <figure>
        <img src="data:image/png;base64,{{ figure.image }}" alt="{{ figure.caption }}">
        <figcaption>{{ figure.caption }}</figcaption>
    </figure>
    {% endfor %}
    {% endfor %}
</body>
</html>
"""


def _format_order(order):
    return f"ARMA({order[0]},{order[1]})"


def build_sections(results: Dict) -> List[Dict]:
    """
    Turn the analysis results into report sections.

    Each section is a dict with 'title', 'text' (list of lines), 'tables'
    (list of (caption, DataFrame)) and 'figures' (list of (caption, path)).
    """
    figures = results.get('figures', {})
    sections = []

    missing = results['missingness']
    data_text = [
        f"Series: {results['series_name']}",
        f"Months: {len(results['clean_series'])} "
        f"({results['clean_series'].index.min():%Y-%m} to {results['clean_series'].index.max():%Y-%m})",
        f"Values reported as '<1' were set to {results['below_one_value']}.",
        f"Missing months before imputation: {missing['missing']} ({missing['missing_percent']:.2f}%).",
    ]
    data_tables = [('Descriptive statistics (cleaned series)', results['description'])]
    if not results['imputation'].empty:
        data_tables.append(('Imputed months (mean of the same calendar month in other years)',
                            results['imputation']))
    sections.append({
        'title': '1. Data',
        'text': data_text,
        'tables': data_tables,
        'figures': [(caption, figures[key]) for key, caption in (
            ('series', 'Monthly interest with imputed months marked'),
            ('monthly_profile', 'Interest by calendar month'),
        ) if key in figures],
    })

    boxcox = results['boxcox']
    sections.append({
        'title': '2. Variance Stabilization',
        'text': [
            f"Box-Cox lambda (Guerrero): {boxcox['guerrero']:.4f}",
            f"Box-Cox lambda (log-likelihood): {boxcox['loglik']:.4f}",
            "A lambda close to 0 supports modeling the natural log of the series.",
        ],
        'tables': [],
        'figures': [(caption, figures[key]) for key, caption in (
            ('variance', 'Original and log series with 12-month rolling standard deviation'),
        ) if key in figures],
    })

    strength = results['strength']
    indices = results['seasonal_indices'].to_frame()
    indices['multiplier'] = np.exp(indices['seasonal_index'])
    sections.append({
        'title': '3. Classical Decomposition of the Log Series',
        'text': [
            f"Trend: centered {results['period']}-month moving average; "
            f"seasonal: mean detrended value per month, centered to sum to zero.",
            f"Seasonal index sum: {results['seasonal_indices'].sum():.2e}",
            f"Maximum reconstruction error (trend + seasonal + residual): {results['reconstruction_error']:.2e}",
            f"Maximum difference from statsmodels seasonal_decompose: {results['statsmodels_difference']:.2e}",
            f"Trend strength: {strength['trend_strength']:.3f}; "
            f"seasonal strength: {strength['seasonal_strength']:.3f}",
        ],
        'tables': [('Seasonal index by month (log scale and as a multiplier)', indices)],
        'figures': [(caption, figures[key]) for key, caption in (
            ('decomposition', 'Observed, trend, seasonal and residual components'),
            ('seasonal_profile', 'Seasonal index by month'),
        ) if key in figures],
    })

    stationarity = results['stationarity']
    grid = results['grid']
    diagnostics = results['diagnostics']
    sections.append({
        'title': '4. ARMA Model of the Residuals',
        'text': [
            f"ADF p-value: {stationarity['adf_pvalue']:.4f}; KPSS p-value: {stationarity['kpss_pvalue']:.4f} "
            f"({'stationary' if stationarity['is_stationary'] else 'possibly non-stationary'}).",
            f"Grid search over p, q <= {results['max_p']}, {results['max_q']}: "
            f"{int(grid['aic'].notnull().sum())} of {len(grid)} candidates fitted.",
            f"Selected model by {results['ic'].upper()}: {_format_order(results['best_order'])}.",
            f"Jarque-Bera p-value of model residuals: {diagnostics['jarque_bera_pvalue']:.4f}",
        ],
        'tables': [
            ('Top 10 candidates', grid.head(10)[['p', 'q', 'aic', 'bic', 'llf', 'is_stationary', 'is_invertible']]),
            ('Selected model coefficients', results['parameters']),
            ('Ljung-Box test on model residuals', diagnostics['ljung_box']),
        ],
        'figures': [(caption, figures[key]) for key, caption in (
            ('acf_pacf', 'ACF and PACF of the residual component'),
            ('diagnostics', 'Diagnostics of the selected ARMA model'),
        ) if key in figures],
    })

    forecast = results['forecast']
    forecast_table = forecast[['trend', 'seasonal', 'residual', 'forecast', 'lower', 'upper']].copy()
    forecast_table.index = forecast_table.index.strftime('%Y-%m')
    sections.append({
        'title': f"5. {len(forecast)}-Month Forecast",
        'text': [
            "Forecast = exp(extrapolated trend + seasonal index + ARMA residual forecast).",
            f"Interval: {results['confidence_level']:.0%} ARMA prediction interval, shifted by trend and "
            f"seasonal; trend uncertainty is not included.",
        ],
        'tables': [('Forecast (components on log scale, forecast on original scale)', forecast_table)],
        'figures': [(caption, figures[key]) for key, caption in (
            ('forecast', 'History, in-sample fit and forecast'),
        ) if key in figures],
    })

    holdout = results.get('holdout')
    if holdout is not None:
        predictions = holdout['predictions'].copy()
        predictions.index = predictions.index.strftime('%Y-%m')
        sections.append({
            'title': '6. Holdout Evaluation',
            'text': [f"The last {len(predictions)} months were held out and forecast from the remaining history."],
            'tables': [('Accuracy on the holdout', holdout['metrics']), ('Holdout forecasts', predictions)],
            'figures': [(caption, figures[key]) for key, caption in (
                ('holdout', 'Holdout forecasts against actual values'),
            ) if key in figures],
        })

    return sections


def _image_to_base64(path):
    with open(path, 'rb') as handle:
        return base64.b64encode(handle.read()).decode('ascii')


def write_html_report(sections: List[Dict], output_path: str, title: str = REPORT_TITLE) -> str:
    """Write a self-contained HTML report with embedded figures."""
    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)

    rendered_sections = []
    for section in sections:
        rendered_sections.append({
            'title': section['title'],
            'text': section['text'],
            'tables': [
                {'caption': caption,
                 'html': table.to_html(float_format=lambda value: f'{value:.4f}', na_rep='-')}
                for caption, table in section['tables']
            ],
            'figures': [
                {'caption': caption, 'image': _image_to_base64(path)}
                for caption, path in section['figures'] if os.path.exists(path)
            ],
        })

    template = jinja2.Template(HTML_TEMPLATE, autoescape=True)
    page = template.render(
        title=title,
        date=datetime.now().strftime('%Y-%m-%d %H:%M'),
        sections=rendered_sections,
    )

    with open(output_path, 'w', encoding='utf-8') as f:
        f.write(page)
    print(f"HTML report saved to {output_path}")
    return output_path


def _table_cells(table: pd.DataFrame, max_rows: int = 25):
    shown = table.head(max_rows)
    cells = []
    for row in shown.itertuples(index=False):
        formatted = []
        for value in row:
            if isinstance(value, (float, np.floating)):
                formatted.append('-' if np.isnan(value) else f'{value:.4f}')
            else:
                formatted.append(str(value))
        cells.append(formatted)
    return cells, [str(label) for label in shown.index], [str(column) for column in shown.columns]


def _text_page(pdf, heading, lines):
    fig = plt.figure(figsize=(8.27, 11.69))
    fig.text(0.08, 0.94, heading, fontsize=16, weight='bold', va='top')
    y = 0.89
    for line in lines:
        fig.text(0.08, y, line, fontsize=10, va='top', wrap=True)
        y -= 0.03
    pdf.savefig(fig)
    plt.close(fig)


def _table_page(pdf, caption, table):
    cells, row_labels, col_labels = _table_cells(table)
    fig, ax = plt.subplots(figsize=(8.27, 11.69))
    ax.axis('off')
    ax.set_title(caption, fontsize=12, loc='left')
    if cells:
        rendered = ax.table(cellText=cells, rowLabels=row_labels, colLabels=col_labels, loc='upper center')
        rendered.auto_set_font_size(False)
        rendered.set_fontsize(8)
        rendered.scale(1, 1.3)
    pdf.savefig(fig)
    plt.close(fig)


def _figure_page(pdf, caption, path):
    image = plt.imread(path)
    fig, ax = plt.subplots(figsize=(11.69, 8.27))
    ax.imshow(image)
    ax.axis('off')
    ax.set_title(caption, fontsize=12)
    pdf.savefig(fig)
    plt.close(fig)


def write_pdf_report(sections: List[Dict], output_path: str, title: str = REPORT_TITLE) -> str:
    """Write the report as a multi-page PDF: text, tables and figures per section."""
    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
    with PdfPages(output_path) as pdf:
        _text_page(pdf, title, [f"Generated {datetime.now():%Y-%m-%d %H:%M}"] +
                   [section['title'] for section in sections])
        for section in sections:
            _text_page(pdf, section['title'], section['text'])
            for caption, table in section['tables']:
                _table_page(pdf, caption, table)
            for caption, path in section['figures']:
                if os.path.exists(path):
                    _figure_page(pdf, caption, path)

        info = pdf.infodict()
        info['Title'] = title
        info['CreationDate'] = datetime.now()
    print(f"PDF report saved to {output_path}")
    return output_path


def write_text_summary(results: Dict, output_path: str) -> str:
    """Plain-text summary of the selected model and forecast."""
    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
    order = results['best_order']
    forecast = results['forecast']

    with open(output_path, 'w') as f:
        f.write("DECOMPOSITION + ARMA FORECAST OF SEARCH INTEREST\n")
        f.write("================================================\n\n")
        f.write(f"Series: {results['series_name']}\n")
        f.write(f"Period: {results['clean_series'].index.min():%Y-%m} to {results['clean_series'].index.max():%Y-%m}\n\n")
        f.write("Transformations applied:\n")
        f.write(f"- '<1' values set to {results['below_one_value']}\n")
        f.write(f"- {len(results['imputation'])} month(s) imputed by calendar-month mean\n")
        f.write("- Natural log transformation to stabilize variance\n")
        f.write(f"  (Box-Cox lambda: Guerrero {results['boxcox']['guerrero']:.4f}, "
                f"log-likelihood {results['boxcox']['loglik']:.4f})\n\n")
        f.write(f"Decomposition: classical additive, period {results['period']}\n")
        f.write(f"- Trend strength: {results['strength']['trend_strength']:.4f}\n")
        f.write(f"- Seasonal strength: {results['strength']['seasonal_strength']:.4f}\n\n")
        f.write(f"Residual model: {_format_order(order)} selected by {results['ic'].upper()}\n")
        grid = results['grid']
        selected = grid[(grid['p'] == order[0]) & (grid['q'] == order[1])].iloc[0]
        f.write(f"- AIC: {selected['aic']:.4f}, BIC: {selected['bic']:.4f}\n\n")
        if results.get('holdout') is not None:
            f.write("Holdout accuracy (original scale):\n")
            f.write(results['holdout']['metrics'].round(4).to_string())
            f.write("\n\n")
        f.write(f"Forecast ({results['confidence_level']:.0%} interval):\n")
        for month, row in forecast.iterrows():
            f.write(f"- {month:%Y-%m}: {row['forecast']:.2f} [{row['lower']:.2f}, {row['upper']:.2f}]\n")
        f.write("\nForecast generated on: " + datetime.now().strftime("%Y-%m-%d %H:%M:%S"))
    print(f"Text summary saved to {output_path}")
    return output_path


def build_report(results: Dict, output_dir: str = 'outputs') -> Dict[str, str]:
    """
    Write every report artifact into `output_dir`.

    Returns:
    --------
    dict
        Artifact name to file path
    """
    print("\nRendering report...")
    os.makedirs(output_dir, exist_ok=True)

    artifacts = {}

    forecast_path = os.path.join(output_dir, 'forecast.csv')
    results['forecast'].to_csv(forecast_path)
    artifacts['forecast_csv'] = forecast_path

    decomposition_path = os.path.join(output_dir, 'decomposition.csv')
    results['decomposition'].to_csv(decomposition_path)
    artifacts['decomposition_csv'] = decomposition_path

    grid_path = os.path.join(output_dir, 'arma_grid_search.csv')
    results['grid'].to_csv(grid_path, index=False)
    artifacts['grid_csv'] = grid_path

    sections = build_sections(results)
    artifacts['html'] = write_html_report(sections, os.path.join(output_dir, 'report.html'))
    artifacts['pdf'] = write_pdf_report(sections, os.path.join(output_dir, 'report.pdf'))
    artifacts['summary'] = write_text_summary(results, os.path.join(output_dir, 'analysis_summary.txt'))

    return artifacts
