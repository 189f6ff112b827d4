"""
Core filtering logic for MAF Quality Filter.
Includes quality score extraction, the sliding-window quality evaluation,
merging of low-quality windows into bad regions, and block splitting.
"""

import numpy as np
from collections import deque
from dataclasses import dataclass
from typing import List, Tuple, Optional, Iterable, Sequence
from src.maf_quality_filter.core.models import (
    AlignmentBlock,
    QUALITY_SCORE,
    MISSING_QUALITY
)
import logging

logger = logging.getLogger(__name__)


def extract_quality_scores(block: AlignmentBlock, species: Sequence[str]) -> List[np.ndarray]:
    """
    Collect the quality scores of the requested species, in the requested order.
    Species that are absent from the block or carry no quality annotation are skipped.

    :param block: The alignment block.
    :param species: Ordered species identifiers.
    :return: One integer array per species for which scores were found.
    """
    scores = []
    for sp in species:
        seq = block.sequence_for_species(sp)
        if seq is None:
            continue
        quality = seq.get_annotation(QUALITY_SCORE)
        if quality is not None:
            scores.append(np.asarray(quality.values, dtype=np.int64))
    return scores


def get_quality_matrix(block: AlignmentBlock, species: Sequence[str]) -> Optional[np.ndarray]:
    """
    Build a (species x columns) matrix of quality scores.

    :return: The matrix, or None if at least one species has no quality scores.
    """
    scores = extract_quality_scores(block, species)
    if len(scores) != len(species):
        return None
    return np.vstack(scores)


def window_mean_quality(window: Iterable[np.ndarray]) -> Optional[float]:
    """
    Mean quality over all cells of a window.
    Cells equal to MISSING_QUALITY are left out of the denominator, other
    non-positive values count as 0.

    :param window: Column vectors, one value per species.
    :return: The mean, or None if every cell is missing.
    """
    values = np.asarray(list(window))
    n = values.size - np.count_nonzero(values == MISSING_QUALITY)
    if n <= 0:
        return None
    return float(np.clip(values, 0, None).sum()) / n


@dataclass(frozen=True)
class WindowResult:
    """
    Evaluation of the window covering columns [start, end).
    """
    start: int
    end: int
    mean_quality: Optional[float]
    is_bad: bool


class SlidingWindowEvaluator:
    """
    Slides a fixed-size window over the columns of a quality matrix and flags
    windows whose mean quality is below a threshold.
    """

    def __init__(self, window_size: int, step: int, min_quality: float):
        self.window_size = window_size
        self.step = step
        self.min_quality = min_quality

    def _judge(self, window: deque, start: int) -> WindowResult:
        mean = window_mean_quality(window)
        is_bad = mean is not None and mean < self.min_quality
        return WindowResult(start, start + self.window_size, mean, is_bad)

    def evaluate(self, scores: np.ndarray) -> List[WindowResult]:
        """
        Evaluate every window of the block, left to right.
        Windows start at 0, step, 2*step, ... as long as they fit; the
        rightmost window [width - window_size, width) is always evaluated so
        that trailing columns are covered.

        :param scores: Quality matrix with one row per species and one column per site.
        :return: Ordered window results.
        """
        width = scores.shape[1]
        if self.window_size > width:
            raise ValueError(f"Window size {self.window_size} exceeds block width {width}")

        window = deque((scores[:, i] for i in range(self.window_size)), maxlen=self.window_size)
        start = 0
        results = [self._judge(window, start)]

        while start + self.step + self.window_size <= width:
            end = start + self.window_size
            for i in range(end, end + self.step):
                window.append(scores[:, i])
            start += self.step
            results.append(self._judge(window, start))

        # Last window, flush with the end of the block
        if start + self.window_size < width:
            for i in range(max(start + self.window_size, width - self.window_size), width):
                window.append(scores[:, i])
            results.append(self._judge(window, width - self.window_size))

        return results


def merge_bad_windows(windows: Iterable[WindowResult]) -> List[Tuple[int, int]]:
    """
    Merge bad windows into disjoint regions.
    A window starting at or before the end of the current region (overlapping
    or touching) extends it, otherwise it opens a new region.

    :param windows: Window results ordered by start column.
    :return: Ordered list of half-open (start, end) regions.
    """
    regions: List[Tuple[int, int]] = []
    for w in windows:
        if not w.is_bad:
            continue
        if regions and w.start <= regions[-1][1]:
            region_start, region_end = regions[-1]
            regions[-1] = (region_start, max(region_end, w.end))
        else:
            regions.append((w.start, w.end))
    return regions


def covers_whole_block(regions: Sequence[Tuple[int, int]], width: int) -> bool:
    return len(regions) == 1 and regions[0] == (0, width)


def _check_regions(regions: Sequence[Tuple[int, int]], width: int):
    previous_end = 0
    for i, (start, end) in enumerate(regions):
        if start >= end or start < 0 or end > width or (i > 0 and start <= previous_end):
            raise ValueError(f"Invalid bad regions {list(regions)} for block of width {width}")
        previous_end = end


def split_block(
    block: AlignmentBlock,
    regions: Sequence[Tuple[int, int]],
    keep_discarded: bool = False
) -> Tuple[List[AlignmentBlock], List[AlignmentBlock]]:
    """
    Remove bad regions from a block.

    :param block: The block to split.
    :param regions: Ordered, disjoint, non-touching (start, end) regions to remove.
    :param keep_discarded: Whether to build sub-blocks for the removed regions.
    :return: Tuple (kept sub-blocks, discarded sub-blocks), both in column order.
    """
    width = block.number_of_sites
    if not regions:
        return [block], []
    _check_regions(regions, width)
    if covers_whole_block(regions, width):
        return [], [block] if keep_discarded else []

    kept = []
    discarded = []
    cursor = 0
    for start, end in regions:
        if start > cursor:
            kept.append(block.subblock(cursor, start - cursor))
        if keep_discarded:
            discarded.append(block.subblock(start, end - start))
        cursor = end
    if cursor < width:
        kept.append(block.subblock(cursor, width - cursor))

    return kept, discarded
