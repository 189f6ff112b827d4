"""
Block streams for MAF Quality Filter.
Every stage exposes the same pull interface (next_block), so stages can be
chained by wrapping one iterator in another.
"""

import logging
from collections import deque
from typing import Callable, Iterable, Iterator, List, Optional, Union

from src.maf_quality_filter.core.config import FilterConfig
from src.maf_quality_filter.core.filtering import (
    get_quality_matrix,
    SlidingWindowEvaluator,
    merge_bad_windows,
    covers_whole_block,
    split_block
)
from src.maf_quality_filter.core.models import AlignmentBlock, BlockOutcome, BlockSummary

logger = logging.getLogger(__name__)

DiagnosticSink = Callable[[str], None]


class BlockIterator:
    """
    Pull-based stream of alignment blocks.
    next_block() returns None once the stream is exhausted.
    """

    def next_block(self) -> Optional[AlignmentBlock]:
        raise NotImplementedError

    def __iter__(self) -> Iterator[AlignmentBlock]:
        return self

    def __next__(self) -> AlignmentBlock:
        block = self.next_block()
        if block is None:
            raise StopIteration
        return block


class SequenceBlockIterator(BlockIterator):
    """
    Adapts any iterable of blocks (list, generator, parser) to a BlockIterator.
    """

    def __init__(self, blocks: Iterable[AlignmentBlock]):
        self._blocks = iter(blocks)
        self._exhausted = False

    def next_block(self) -> Optional[AlignmentBlock]:
        if self._exhausted:
            return None
        block = next(self._blocks, None)
        if block is None:
            self._exhausted = True
        return block


def as_block_iterator(upstream: Union[BlockIterator, Iterable[AlignmentBlock]]) -> BlockIterator:
    if isinstance(upstream, BlockIterator):
        return upstream
    return SequenceBlockIterator(upstream)


class QualityFilterIterator(BlockIterator):
    """
    Removes low-quality regions from the blocks of an upstream stream.

    Each block is scanned with a sliding window over the quality scores of the
    configured species. Regions covered by windows with a mean quality below
    the threshold are cut out, and the block is re-emitted as the sub-blocks
    in between. Blocks lacking quality scores for any configured species are
    passed through as they are.
    """

    def __init__(
        self,
        upstream: Union[BlockIterator, Iterable[AlignmentBlock]],
        config: FilterConfig,
        log_sink: Optional[DiagnosticSink] = None,
        record_summaries: bool = False
    ):
        """
        :param upstream: Block stream to filter.
        :param config: Validated filter configuration.
        :param log_sink: Optional callable receiving advisory lines.
        :param record_summaries: Whether to keep a BlockSummary for every input block.
        """
        self.upstream = as_block_iterator(upstream)
        self.config = config
        self.evaluator = SlidingWindowEvaluator(config.window_size, config.step, config.min_quality)
        self.log_sink = log_sink
        self.record_summaries = record_summaries
        self.summaries: List[BlockSummary] = []
        self.blocks_read = 0
        self._block_buffer = deque()
        self._trash_buffer = deque()

    def _advise(self, message: str):
        if self.log_sink is not None:
            self.log_sink(message)
        else:
            logger.debug(message)

    def _record(self, summary: BlockSummary):
        if self.record_summaries:
            self.summaries.append(summary)

    def next_block(self) -> Optional[AlignmentBlock]:
        while not self._block_buffer:
            block = self.upstream.next_block()
            if block is None:
                return None
            self._analyse_block(block)
        return self._block_buffer.popleft()

    def next_discarded_block(self) -> Optional[AlignmentBlock]:
        """
        Pop the oldest discarded sub-block, or None if there is none yet.
        """
        if not self._trash_buffer:
            return None
        return self._trash_buffer.popleft()

    @property
    def pending_discarded(self) -> int:
        return len(self._trash_buffer)

    def _pass_through(self, block: AlignmentBlock, index: int, message: str):
        self._block_buffer.append(block)
        self._advise(message)
        self._record(BlockSummary(index, block.number_of_sites, BlockOutcome.UNFILTERED,
                                  kept_widths=[block.number_of_sites]))

    def _analyse_block(self, block: AlignmentBlock):
        index = self.blocks_read
        self.blocks_read += 1
        width = block.number_of_sites

        scores = get_quality_matrix(block, self.config.species)
        if scores is None:
            self._pass_through(block, index, "block is missing quality score for at least one species "
                                             "and will therefore not be filtered.")
            return
        if width < self.config.window_size:
            self._pass_through(block, index, f"block with size {width} is smaller than the window size "
                                             f"({self.config.window_size}) and will therefore not be filtered.")
            return

        windows = self.evaluator.evaluate(scores)
        regions = merge_bad_windows(windows)
        kept, discarded = split_block(block, regions, self.config.keep_discarded_blocks)

        if not regions:
            outcome = BlockOutcome.CLEAN
            self._advise("block is clean and kept as is.")
        elif covers_whole_block(regions, width):
            outcome = BlockOutcome.REMOVED
            self._advise("block was entirely removed. Tried to get the next one.")
        else:
            outcome = BlockOutcome.SPLIT
            self._advise(f"block with size {width} will be split into {len(kept)} blocks.")
            for start, end in regions:
                self._advise(f"removing region ({start}, {end}) from block.")

        self._block_buffer.extend(kept)
        self._trash_buffer.extend(discarded)
        self._record(BlockSummary(index, width, outcome, list(regions), [b.number_of_sites for b in kept]))


class DiscardedBlockIterator(BlockIterator):
    """
    Stream of the sub-blocks removed by a QualityFilterIterator.
    Discarded blocks only appear once the filter has pulled the blocks they
    come from; when the buffer is empty the filter is advanced until it yields
    a discarded block or reaches the end of its stream. Kept blocks pulled
    this way are handed to on_kept, if given, and dropped otherwise.
    """

    def __init__(self, source: QualityFilterIterator,
                 on_kept: Optional[Callable[[AlignmentBlock], None]] = None):
        self.source = source
        self.on_kept = on_kept

    def next_block(self) -> Optional[AlignmentBlock]:
        while True:
            block = self.source.next_discarded_block()
            if block is not None:
                return block
            kept = self.source.next_block()
            if kept is None:
                return self.source.next_discarded_block()
            if self.on_kept is not None:
                self.on_kept(kept)
