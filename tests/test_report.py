import pandas as pd
from src.maf_quality_filter.core.models import BlockSummary, BlockOutcome
from src.maf_quality_filter.utils.stats import calculate_block_stats, calculate_width_curve
from src.maf_quality_filter.visualization.report_generator import generate_report

def test_calculate_block_stats():
    # Sorted widths 10, 5, 3, 2 -> cumulative 10, 15, 18, 20
    stats = calculate_block_stats([3, 10, 2, 5])
    assert stats["Total Columns"] == 20
    assert stats["Num Blocks"] == 4
    assert stats["N50"] == 10
    assert stats["N50_count"] == 1
    assert stats["N70"] == 5
    assert stats["N80"] == 3
    assert stats["N100"] == 2
    assert stats["N100_count"] == 4

def test_calculate_block_stats_empty():
    stats = calculate_block_stats([])
    assert stats["Total Columns"] == 0
    assert stats["N50"] == 0

def test_calculate_width_curve():
    x, y = calculate_width_curve([3, 10, 2])
    assert x == [1, 2, 3]
    assert y == [10, 13, 15]

def test_generate_report(tmp_path):
    summaries = [
        BlockSummary(0, 10, BlockOutcome.SPLIT, bad_regions=[(0, 3), (7, 10)], kept_widths=[4]),
        BlockSummary(1, 6, BlockOutcome.REMOVED, bad_regions=[(0, 6)]),
        BlockSummary(2, 5, BlockOutcome.UNFILTERED, kept_widths=[5]),
        BlockSummary(3, 8, BlockOutcome.CLEAN, kept_widths=[8])
    ]
    generate_report(summaries, tmp_path, run_parameters={'window_size': 3})

    df = pd.read_csv(tmp_path / 'summary_report.tsv', sep='\t', keep_default_na=False)
    assert list(df['outcome']) == ['SPLIT', 'REMOVED', 'UNFILTERED', 'CLEAN']
    assert list(df['bad_regions']) == ['0-3;7-10', '0-6', '', '']
    assert list(df['kept_columns']) == [4, 0, 5, 8]

    html = (tmp_path / 'report.html').read_text(encoding='utf-8')
    assert "MAF Quality Filter Report" in html
    assert "window_size" in html
    assert "Plotly.newPlot" in html
