"""
Data models for MAF Quality Filter.
Defines alignment sequences, their per-column annotations, alignment blocks,
and the per-block filtering outcome records.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Tuple, Optional, Dict

QUALITY_SCORE = "QUALITY_SCORE"
MISSING_QUALITY = -1
GAP_CHARS = frozenset("-.")


@dataclass
class SequenceAnnotation:
    """
    Per-column values attached to an AlignmentSequence under a named kind.
    """
    values: Tuple[int, ...]
    kind: str = "annotation"

    def __post_init__(self):
        self.values = tuple(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def subrange(self, start: int, length: int) -> "SequenceAnnotation":
        return replace(self, values=self.values[start:start + length])


@dataclass
class SequenceQuality(SequenceAnnotation):
    """
    Quality scores, one integer per aligned column.
    MISSING_QUALITY (-1) marks a column without quality data.
    """
    kind: str = QUALITY_SCORE

    @property
    def scores(self) -> Tuple[int, ...]:
        return self.values


@dataclass
class AlignmentSequence:
    """
    One row of an alignment block: a species/chromosome source, its aligned
    text, its coordinates on the source and its annotations.
    """
    species: str
    text: str
    chromosome: str = ""
    start: int = 0
    strand: str = "+"
    src_size: int = 0
    annotations: Dict[str, SequenceAnnotation] = field(default_factory=dict)

    def __post_init__(self):
        for annotation in self.annotations.values():
            self._check_annotation(annotation)

    @property
    def name(self) -> str:
        return f"{self.species}.{self.chromosome}" if self.chromosome else self.species

    @property
    def width(self) -> int:
        return len(self.text)

    @property
    def size(self) -> int:
        """Number of non-gap symbols."""
        return sum(1 for c in self.text if c not in GAP_CHARS)

    @property
    def stop(self) -> int:
        return self.start + self.size

    def _check_annotation(self, annotation: SequenceAnnotation):
        if len(annotation) != self.width:
            raise ValueError(
                f"Annotation '{annotation.kind}' has length {len(annotation)}, "
                f"expected {self.width} for sequence {self.name}"
            )

    def add_annotation(self, annotation: SequenceAnnotation):
        self._check_annotation(annotation)
        self.annotations[annotation.kind] = annotation

    def has_annotation(self, kind: str) -> bool:
        return kind in self.annotations

    def get_annotation(self, kind: str) -> Optional[SequenceAnnotation]:
        return self.annotations.get(kind)

    def subsequence(self, start: int, length: int) -> "AlignmentSequence":
        """
        Extract aligned columns [start, start + length).
        The source start coordinate is shifted by the non-gap symbols skipped.

        :param start: Offset of the first column to keep.
        :param length: Number of columns to keep.
        :return: A new AlignmentSequence with identically sliced annotations.
        """
        if start < 0 or length < 0 or start + length > self.width:
            raise ValueError(
                f"Sub-range ({start}, {length}) out of bounds for sequence {self.name} of width {self.width}"
            )
        skipped = sum(1 for c in self.text[:start] if c not in GAP_CHARS)
        return AlignmentSequence(
            species=self.species,
            text=self.text[start:start + length],
            chromosome=self.chromosome,
            start=self.start + skipped,
            strand=self.strand,
            src_size=self.src_size,
            annotations={kind: a.subrange(start, length) for kind, a in self.annotations.items()}
        )


@dataclass
class AlignmentBlock:
    """
    A rectangular set of aligned columns across species.
    All member sequences share the same width.
    """
    sequences: List[AlignmentSequence] = field(default_factory=list)
    score: Optional[float] = None
    pass_number: Optional[int] = None

    def __post_init__(self):
        sequences, self.sequences = self.sequences, []
        for seq in sequences:
            self.add_sequence(seq)

    @property
    def number_of_sites(self) -> int:
        return self.sequences[0].width if self.sequences else 0

    @property
    def number_of_sequences(self) -> int:
        return len(self.sequences)

    @property
    def species(self) -> List[str]:
        return [s.species for s in self.sequences]

    def add_sequence(self, seq: AlignmentSequence):
        if self.sequences and seq.width != self.number_of_sites:
            raise ValueError(
                f"Sequence {seq.name} has width {seq.width}, block width is {self.number_of_sites}"
            )
        self.sequences.append(seq)

    def sequence_for_species(self, species: str) -> Optional[AlignmentSequence]:
        for seq in self.sequences:
            if seq.species == species:
                return seq
        return None

    def subblock(self, start: int, length: int) -> "AlignmentBlock":
        """
        Build a block from columns [start, start + length) of every sequence.
        Score and pass number are inherited unchanged.
        """
        return AlignmentBlock(
            sequences=[s.subsequence(start, length) for s in self.sequences],
            score=self.score,
            pass_number=self.pass_number
        )


class BlockOutcome(Enum):
    """
    Enum representing what the quality filter did with an input block.
    """
    UNFILTERED = "UNFILTERED"
    CLEAN = "CLEAN"
    SPLIT = "SPLIT"
    REMOVED = "REMOVED"


@dataclass
class BlockSummary:
    """
    Data class summarising the filtering of one input block.
    """
    block_index: int
    width: int
    outcome: BlockOutcome
    bad_regions: List[Tuple[int, int]] = field(default_factory=list)
    kept_widths: List[int] = field(default_factory=list)

    @property
    def removed_columns(self) -> int:
        return sum(end - start for start, end in self.bad_regions)
