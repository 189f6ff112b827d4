"""
MAF alignment file parser for MAF Quality Filter.
Reads and converts Biopython MAF alignments ('a', 's' and 'q' lines) to and from
AlignmentBlock objects, and decodes/encodes MAF quality strings.
"""

import logging
from pathlib import Path
from typing import Iterator, List, Union

import numpy as np
from Bio import Align
from Bio.Align import Alignment
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from src.maf_quality_filter.core.iterators import SequenceBlockIterator
from src.maf_quality_filter.core.models import (
    AlignmentBlock,
    AlignmentSequence,
    SequenceQuality,
    QUALITY_SCORE,
    MISSING_QUALITY,
    GAP_CHARS
)

logger = logging.getLogger(__name__)

FINISHED_QUALITY = 10


def decode_quality(qualities: str) -> List[int]:
    """
    Convert a MAF quality string to integer scores.
    '0'-'9' are scores, 'F' is finished sequence, '-' is a gap (no quality).

    :param qualities: Quality string from a 'q' line.
    :return: List of integer scores, MISSING_QUALITY for gaps.
    """
    scores = []
    for c in qualities:
        if c == '-':
            scores.append(MISSING_QUALITY)
        elif c == 'F':
            scores.append(FINISHED_QUALITY)
        elif c.isdigit():
            scores.append(int(c))
        else:
            raise ValueError(f"Invalid quality character '{c}'")
    return scores


def encode_quality(scores) -> str:
    """
    Inverse of decode_quality. Negative scores become '-', scores of 10 and above 'F'.
    """
    chars = []
    for q in scores:
        if q < 0:
            chars.append('-')
        elif q >= FINISHED_QUALITY:
            chars.append('F')
        else:
            chars.append(str(q))
    return "".join(chars)


def gapped_quality(qualities: str, text: str) -> List[int]:
    """
    Spread an ungapped quality string over an aligned row.

    :param qualities: One quality character per non-gap symbol of the row.
    :param text: Aligned row, gaps included.
    :return: One score per column, MISSING_QUALITY at gap columns.
    """
    scores = iter(decode_quality(qualities))
    n_symbols = sum(1 for c in text if c not in GAP_CHARS)
    if len(qualities) != n_symbols:
        raise ValueError(f"Quality string has {len(qualities)} values for {n_symbols} aligned symbols")
    return [MISSING_QUALITY if c in GAP_CHARS else next(scores) for c in text]


def _record_to_sequence(record: SeqRecord, text: str, coordinates) -> AlignmentSequence:
    species, _, chromosome = record.id.partition('.')
    src_size = len(record.seq)
    # Minus-strand rows run backwards in forward-strand coordinates
    first, last = int(coordinates[0]), int(coordinates[-1])
    if first <= last:
        strand, start = '+', first
    else:
        strand, start = '-', src_size - first

    seq = AlignmentSequence(
        species=species,
        text=text,
        chromosome=chromosome,
        start=start,
        strand=strand,
        src_size=src_size
    )
    qualities = record.annotations.get("quality")
    if qualities is not None:
        seq.add_annotation(SequenceQuality(gapped_quality(qualities, text)))
    return seq


def alignment_to_block(alignment: Alignment) -> AlignmentBlock:
    """
    Convert a Biopython MAF alignment to an AlignmentBlock.

    :param alignment: Alignment yielded by Bio.Align.parse(..., "maf").
    :return: The block, with score, pass number and per-column quality scores.
    """
    annotations = getattr(alignment, "annotations", None) or {}
    pass_number = annotations.get("pass")
    block = AlignmentBlock(
        score=getattr(alignment, "score", None),
        pass_number=int(pass_number) if pass_number is not None else None
    )
    for i, record in enumerate(alignment.sequences):
        block.add_sequence(_record_to_sequence(record, alignment[i], alignment.coordinates[i]))
    return block


def _sequence_to_record(seq: AlignmentSequence) -> SeqRecord:
    ungapped = "".join(c for c in seq.text if c not in GAP_CHARS)
    src_size = max(seq.src_size, seq.stop)
    if seq.strand == '-':
        data = str(Seq(ungapped).reverse_complement())
        offset = src_size - seq.stop
    else:
        data = ungapped
        offset = seq.start
    sequence = Seq({offset: data}, length=src_size) if data else Seq(None, length=src_size)
    record = SeqRecord(sequence, id=seq.name, name="", description="")

    quality = seq.get_annotation(QUALITY_SCORE)
    if quality is not None:
        record.annotations["quality"] = encode_quality(
            q for q, c in zip(quality.values, seq.text) if c not in GAP_CHARS
        )
    return record


def _block_coordinates(block: AlignmentBlock) -> np.ndarray:
    n_rows, width = block.number_of_sequences, block.number_of_sites
    gaps = np.array([[c in GAP_CHARS for c in s.text] for s in block.sequences], dtype=bool)
    gaps = gaps.reshape(n_rows, width)

    # A new segment starts wherever any row switches between gap and symbol
    switches = np.flatnonzero(np.any(gaps[:, 1:] != gaps[:, :-1], axis=0)) + 1
    steps = np.unique(np.concatenate(([0], switches, [width])))

    offsets = np.zeros((n_rows, width + 1), dtype=int)
    offsets[:, 1:] = np.cumsum(~gaps, axis=1)
    offsets = offsets[:, steps]

    coordinates = np.empty_like(offsets)
    for i, seq in enumerate(block.sequences):
        if seq.strand == '-':
            coordinates[i] = max(seq.src_size, seq.stop) - seq.start - offsets[i]
        else:
            coordinates[i] = seq.start + offsets[i]
    return coordinates


def block_to_alignment(block: AlignmentBlock) -> Alignment:
    """
    Convert an AlignmentBlock to a Biopython alignment that the MAF writer accepts.

    :param block: The alignment block.
    :return: Alignment carrying score, pass number and ungapped 'quality' annotations.
    """
    records = [_sequence_to_record(s) for s in block.sequences]
    alignment = Alignment(records, _block_coordinates(block))
    if block.score is not None:
        alignment.score = block.score
    alignment.annotations = {}
    if block.pass_number is not None:
        alignment.annotations["pass"] = block.pass_number
    return alignment


def parse_maf(maf_path: Union[str, Path]) -> Iterator[AlignmentBlock]:
    """
    Lazily parse a MAF file, one block at a time.

    :param maf_path: Path to the MAF file.
    :return: A generator of AlignmentBlock objects, in file order.
    """
    try:
        for alignment in Align.parse(str(maf_path), "maf"):
            yield alignment_to_block(alignment)
    except ValueError as e:
        logger.error(f"Failed to parse MAF file {maf_path}: {e}")
        raise ValueError(f"{maf_path}: {e}") from e


def open_maf(maf_path: Union[str, Path]) -> SequenceBlockIterator:
    """
    Open a MAF file as a block stream.
    """
    return SequenceBlockIterator(parse_maf(maf_path))
