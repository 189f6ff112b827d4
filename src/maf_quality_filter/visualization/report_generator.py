"""
Report generation module for MAF Quality Filter.
Writes filtered MAF files, the per-block TSV summary and the interactive HTML dashboard.
"""

import plotly.graph_objects as go
from Bio import Align
from jinja2 import Environment, FileSystemLoader
from pathlib import Path
from typing import List, Dict, Any, Iterable, Optional, TextIO
from src.maf_quality_filter.core.models import AlignmentBlock, BlockSummary, BlockOutcome
from src.maf_quality_filter.parsers.maf_parser import block_to_alignment
from src.maf_quality_filter.utils.stats import calculate_block_stats, calculate_width_curve
import pandas as pd
import logging

logger = logging.getLogger(__name__)

MAF_HEADER = "##maf version=1\n\n"

def format_maf_block(block: AlignmentBlock) -> str:
    """
    Format a block as MAF text ('a' line, 's' lines, 'q' lines), ending with a blank line.

    :param block: The alignment block.
    :return: MAF text for the block.
    """
    text = format(block_to_alignment(block), "maf")
    # Blocks are separated by a blank line
    return text if text.endswith("\n\n") else text.rstrip("\n") + "\n\n"

def write_maf(blocks: Iterable[AlignmentBlock], handle: TextIO) -> List[int]:
    """
    Write blocks to an open text handle as they are pulled from the stream.

    :param blocks: Block stream (any iterable, including block iterators).
    :param handle: Output handle.
    :return: Widths of the written blocks.
    """
    widths = []

    def alignments():
        for block in blocks:
            widths.append(block.number_of_sites)
            yield block_to_alignment(block)

    Align.write(alignments(), handle, "maf")
    return widths

def write_filtered_maf(blocks: Iterable[AlignmentBlock], output_maf: Path) -> List[int]:
    """
    Write blocks to a MAF file.

    :param blocks: Block stream.
    :param output_maf: Path to the output MAF.
    :return: Widths of the written blocks.
    """
    with open(output_maf, "w", encoding='utf-8') as f:
        widths = write_maf(blocks, f)
    logger.info(f"Wrote {len(widths)} blocks ({sum(widths)} columns) to {output_maf}")
    return widths

def summarise_block(summary: BlockSummary) -> Dict[str, Any]:
    """
    Flatten a BlockSummary into a table row.

    :param summary: BlockSummary object.
    :return: Dictionary of metrics.
    """
    return {
        'block_index': summary.block_index,
        'width': summary.width,
        'outcome': summary.outcome.value,
        'bad_regions': ";".join(f"{start}-{end}" for start, end in summary.bad_regions),
        'removed_columns': summary.removed_columns,
        'kept_blocks': len(summary.kept_widths),
        'kept_columns': sum(summary.kept_widths)
    }

def write_summary_table(summaries: List[BlockSummary], output_tsv: Path) -> pd.DataFrame:
    columns = ['block_index', 'width', 'outcome', 'bad_regions', 'removed_columns', 'kept_blocks', 'kept_columns']
    df_summary = pd.DataFrame([summarise_block(s) for s in summaries], columns=columns)
    df_summary.to_csv(output_tsv, sep='\t', index=False, encoding='utf-8')
    return df_summary

def generate_report(
    summaries: List[BlockSummary],
    output_dir: Path,
    run_parameters: Optional[Dict[str, Any]] = None,
    html: bool = True
):
    """
    Generate the TSV summary and the interactive HTML report.

    :param summaries: One BlockSummary per input block.
    :param output_dir: Directory to save outputs.
    :param run_parameters: Dictionary of configurable parameters used for the run.
    :param html: Whether to render report.html in addition to the TSV.
    """
    output_dir.mkdir(parents=True, exist_ok=True)

    # 1. Per-block table
    write_summary_table(summaries, output_dir / 'summary_report.tsv')
    if not html:
        return

    # 2. Width stats before and after filtering
    input_widths = [s.width for s in summaries]
    kept_widths = [w for s in summaries for w in s.kept_widths]
    stats_initial = calculate_block_stats(input_widths)
    stats_filtered = calculate_block_stats(kept_widths)

    # 3. Outcome counts
    outcome_counts = {o.value: sum(1 for s in summaries if s.outcome == o) for o in BlockOutcome}
    removed_regions = sum(len(s.bad_regions) for s in summaries if s.outcome == BlockOutcome.SPLIT)

    # 4. Plots
    # Width distribution
    fig_widths = go.Figure()
    fig_widths.add_trace(go.Histogram(x=input_widths, name='Input Blocks', nbinsx=50, opacity=0.6))
    fig_widths.add_trace(go.Histogram(x=kept_widths, name='Filtered Blocks', nbinsx=50, opacity=0.6))
    fig_widths.update_layout(title="Block Width Distribution", xaxis_title="Width (columns)",
                             yaxis_title="Count", barmode='overlay')
    widths_plot_json = fig_widths.to_json()

    # Cumulative width curve
    xi, yi = calculate_width_curve(input_widths)
    xf, yf = calculate_width_curve(kept_widths)
    fig_curve = go.Figure()
    fig_curve.add_trace(go.Scatter(x=xi, y=yi, mode='lines', name='Input Alignment'))
    fig_curve.add_trace(go.Scatter(x=xf, y=yf, mode='lines', name='Filtered Alignment'))
    fig_curve.update_layout(title="Cumulative Alignment Width", xaxis_title="Block Rank",
                            yaxis_title="Cumulative Columns")
    curve_plot_json = fig_curve.to_json()

    # Removed fraction per block
    outcome_colors = {
        BlockOutcome.UNFILTERED: 'gray',
        BlockOutcome.CLEAN: 'blue',
        BlockOutcome.SPLIT: 'orange',
        BlockOutcome.REMOVED: 'red'
    }
    fig_removed = go.Figure()
    for outcome in BlockOutcome:
        outcome_blocks = [s for s in summaries if s.outcome == outcome]
        if not outcome_blocks:
            continue
        fig_removed.add_trace(go.Scatter(
            x=[s.width for s in outcome_blocks],
            y=[100.0 * s.removed_columns / s.width if s.width else 0.0 for s in outcome_blocks],
            mode='markers',
            name=outcome.value,
            marker=dict(color=outcome_colors[outcome]),
            text=[f"block {s.block_index}" for s in outcome_blocks],
            hoverinfo='text+x+y'
        ))
    fig_removed.update_layout(
        title="Removed Columns vs. Block Width",
        xaxis_type="log",
        xaxis_title="Block Width (columns)",
        yaxis_title="Removed Columns (%)"
    )
    removed_plot_json = fig_removed.to_json()

    # 5. Render HTML
    template_dir = Path(__file__).parent / 'templates'
    env = Environment(loader=FileSystemLoader(str(template_dir)), autoescape=True)
    template = env.get_template('report.html')

    html_content = template.render(
        stats_initial=stats_initial,
        stats_filtered=stats_filtered,
        outcome_counts=outcome_counts,
        removed_regions=removed_regions,
        widths_plot_json=widths_plot_json,
        curve_plot_json=curve_plot_json,
        removed_plot_json=removed_plot_json,
        run_parameters=run_parameters if run_parameters else {}
    )

    with open(output_dir / 'report.html', 'w', encoding='utf-8') as f:
        f.write(html_content)
