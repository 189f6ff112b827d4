"""
Alignment block statistics.
Includes N50 of block widths and cumulative-width curve data.
"""

import numpy as np
from typing import List, Dict, Tuple

def calculate_block_stats(widths: List[int]) -> Dict[str, int]:
    """
    Calculate block width statistics (N50, N60, N70, N80, N90, N100) and total columns.

    :param widths: List of block widths.
    :return: Dictionary with stats.
    """
    if not widths:
        return {f"N{i}": 0 for i in range(50, 110, 10)} | {"Total Columns": 0, "Num Blocks": 0}

    widths_sorted = sorted(widths, reverse=True)
    total_columns = sum(widths_sorted)

    stats = {
        "Total Columns": total_columns,
        "Num Blocks": len(widths_sorted)
    }

    cumulative = np.cumsum(widths_sorted)
    for i in range(50, 110, 10):
        # First block at which the cumulative width reaches i% of the total
        rank = int(np.searchsorted(cumulative, total_columns * (i / 100.0)))
        rank = min(rank, len(widths_sorted) - 1)
        stats[f"N{i}"] = widths_sorted[rank]
        stats[f"N{i}_count"] = rank + 1

    return stats

def calculate_width_curve(widths: List[int]) -> Tuple[List[int], List[int]]:
    """
    Calculate data for the cumulative width curve (blocks sorted by decreasing width).

    :param widths: List of block widths.
    :return: Tuple of (x_counts, y_cumulative_columns).
    """
    widths_sorted = sorted(widths, reverse=True)
    y = np.cumsum(widths_sorted).tolist()
    x = list(range(1, len(widths_sorted) + 1))
    return x, y
