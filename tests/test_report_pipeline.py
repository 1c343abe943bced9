import json

import matplotlib.pyplot as plt
import pandas as pd
import pytest

import pipeline
import settings
from interest_data import InterestDataError
from report import build_sections, write_html_report
from helpers import GAP_MONTH, make_interest_values, write_interest_csv


@pytest.fixture(scope='module')
def analysis(tmp_path_factory):
    base = tmp_path_factory.mktemp('analysis')
    data_file = write_interest_csv(base / 'interest.csv', make_interest_values(), blank_months=[GAP_MONTH])
    output_dir = base / 'outputs'
    results = pipeline.run_analysis(data_file=str(data_file), output_dir=str(output_dir), max_p=1, max_q=1)
    return results, output_dir


def test_pipeline_record_marks_completion(analysis):
    results, output_dir = analysis

    with open(output_dir / 'pipeline_record.json') as f:
        record = json.load(f)

    assert record['status'] == 'completed'
    assert record['steps_executed'] == pipeline.STEPS
    assert record['selected_order'] == list(results['best_order'])


def test_pipeline_imputes_the_gap(analysis):
    results, _ = analysis

    assert results['missingness']['missing'] == 1
    assert results['clean_series'].isnull().sum() == 0
    assert results['imputation']['month'].tolist() == ['2020-03']


def test_pipeline_grid_and_forecast(analysis):
    results, output_dir = analysis

    assert len(results['grid']) == 4
    forecast = pd.read_csv(output_dir / 'forecast.csv', index_col='month', parse_dates=True)
    assert len(forecast) == settings.FORECAST_HORIZON
    assert forecast.index[0] == pd.Timestamp('2024-01-01')
    assert (forecast['lower'] <= forecast['forecast']).all()
    assert (forecast['forecast'] <= forecast['upper']).all()


def test_pipeline_runs_holdout(analysis):
    results, _ = analysis

    assert results['holdout'] is not None
    assert len(results['holdout']['predictions']) == settings.HOLDOUT_MONTHS


def test_report_artifacts_are_written(analysis):
    results, output_dir = analysis

    for name in ['html', 'pdf', 'summary', 'forecast_csv', 'decomposition_csv', 'grid_csv']:
        assert (output_dir / results['artifacts'][name].split('/')[-1]).exists()

    report_html = (output_dir / 'report.html').read_text(encoding='utf-8')
    assert 'data:image/png;base64' in report_html
    assert 'Holdout Evaluation' in report_html

    with open(output_dir / 'report.pdf', 'rb') as f:
        assert f.read(4) == b'%PDF'

    summary = (output_dir / 'analysis_summary.txt').read_text()
    assert 'ARMA(' in summary
    assert '2024-12' in summary


def test_model_is_saved(analysis):
    results, output_dir = analysis

    assert (output_dir / 'models' / 'residual_arma.pkl').exists()
    assert results['model_path'].endswith('residual_arma.pkl')


def test_sections_without_holdout(analysis, tmp_path):
    results, _ = analysis
    without_holdout = dict(results, holdout=None)

    sections = build_sections(without_holdout)
    output_path = write_html_report(sections, str(tmp_path / 'report.html'))

    assert [section['title'][:2] for section in sections] == ['1.', '2.', '3.', '4.', '5.']
    assert 'Holdout Evaluation' not in open(output_path, encoding='utf-8').read()


def test_holdout_skipped_for_short_series(tmp_path):
    data_file = write_interest_csv(tmp_path / 'short.csv', make_interest_values()[:30])
    results = pipeline.run_analysis(data_file=str(data_file), output_dir=str(tmp_path / 'out'),
                                    max_p=1, max_q=0, render_report=False)

    assert results['holdout'] is None
    assert len(results['forecast']) == settings.FORECAST_HORIZON


def test_missing_file_records_failure(tmp_path):
    output_dir = tmp_path / 'out'

    with pytest.raises(InterestDataError):
        pipeline.run_analysis(data_file=str(tmp_path / 'missing.csv'), output_dir=str(output_dir))

    with open(output_dir / 'pipeline_record.json') as f:
        record = json.load(f)
    assert record['status'] == 'failed'
    assert record['failed_step'] == 'load_data'
    assert record['steps_executed'] == []


def test_html_report_escapes_text_and_embeds_tables(tmp_path):
    figure_path = tmp_path / 'figure.png'
    plt.figure(figsize=(2, 2))
    plt.plot([1, 2, 3])
    plt.savefig(figure_path)
    plt.close()

    sections = [{
        'title': '1. Data <raw>',
        'text': ['Term "flu & cold" < 1 mapped to 0.5'],
        'tables': [('Statistics', pd.DataFrame({'value': [1.23456]}, index=['mean']))],
        'figures': [('Series plot', str(figure_path)), ('Missing plot', str(tmp_path / 'absent.png'))],
    }]

    output_path = write_html_report(sections, str(tmp_path / 'report.html'), title='Interest & Forecast')
    page = open(output_path, encoding='utf-8').read()

    assert '<title>Interest &amp; Forecast</title>' in page
    assert '1. Data &lt;raw&gt;' in page
    assert 'flu &amp; cold' in page and '&lt; 1 mapped' in page
    assert '<table border="1" class="dataframe">' in page
    assert '1.2346' in page
    assert page.count('data:image/png;base64,') == 1
    assert 'Missing plot' not in page
