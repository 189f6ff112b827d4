import numpy as np
import pytest
from src.maf_quality_filter.core.models import AlignmentSequence, AlignmentBlock, SequenceQuality, QUALITY_SCORE
from src.maf_quality_filter.core.filtering import (
    extract_quality_scores,
    get_quality_matrix,
    window_mean_quality,
    WindowResult,
    SlidingWindowEvaluator,
    merge_bad_windows,
    covers_whole_block,
    split_block
)

TEXT = 'ACGTACGTAC'
LOW_HIGH_LOW = [2, 2, 2, 20, 20, 20, 20, 2, 2, 2]

def make_block(qualities, text=TEXT, score=42.0, pass_number=1):
    sequences = []
    for i, (species, scores) in enumerate(qualities.items()):
        seq = AlignmentSequence(species=species, chromosome=f'chr{i + 1}', text=text, start=100 * i, src_size=10000)
        if scores is not None:
            seq.add_annotation(SequenceQuality(scores))
        sequences.append(seq)
    return AlignmentBlock(sequences, score=score, pass_number=pass_number)

def bad(start, end):
    return WindowResult(start, end, 0.0, True)

def good(start, end):
    return WindowResult(start, end, 50.0, False)

def test_get_quality_matrix_orders_rows_by_species():
    block = make_block({'A': [1] * 10, 'B': [2] * 10, 'C': [3] * 10})
    matrix = get_quality_matrix(block, ['C', 'A'])
    assert matrix.shape == (2, 10)
    assert (matrix[0] == 3).all()
    assert (matrix[1] == 1).all()

def test_get_quality_matrix_missing_data():
    block = make_block({'A': [1] * 10, 'B': None})
    # B has no quality annotation
    assert len(extract_quality_scores(block, ['A', 'B'])) == 1
    assert get_quality_matrix(block, ['A', 'B']) is None
    # C is not in the block at all
    assert get_quality_matrix(block, ['A', 'C']) is None
    assert get_quality_matrix(block, ['A']) is not None

def test_window_mean_quality():
    # Columns of two species: -1 is left out of the denominator, -2 counts as 0
    window = [np.array([2, 3]), np.array([-1, 0]), np.array([5, -2])]
    # sum = 2 + 3 + 0 + 0 + 5 + 0 = 10, n = 6 - 1 = 5
    assert window_mean_quality(window) == pytest.approx(2.0)

def test_window_mean_quality_all_missing():
    window = [np.array([-1, -1]), np.array([-1, -1])]
    assert window_mean_quality(window) is None

def test_sliding_window_step_one():
    scores = np.array([LOW_HIGH_LOW, LOW_HIGH_LOW])
    evaluator = SlidingWindowEvaluator(window_size=3, step=1, min_quality=10)
    results = evaluator.evaluate(scores)

    # Every window start from 0 to 7
    assert [r.start for r in results] == list(range(8))
    assert all(r.end - r.start == 3 for r in results)
    # Means: 2, 8, 14, 20, 20, 14, 8, 2
    assert [r.mean_quality for r in results] == pytest.approx([2, 8, 14, 20, 20, 14, 8, 2])
    assert [r.start for r in results if r.is_bad] == [0, 1, 6, 7]

def test_sliding_window_always_evaluates_last_window():
    scores = np.array([LOW_HIGH_LOW])
    evaluator = SlidingWindowEvaluator(window_size=3, step=3, min_quality=10)
    results = evaluator.evaluate(scores)

    # Regular windows at 0, 3, 6 then the flush-right window at 7
    assert [(r.start, r.end) for r in results] == [(0, 3), (3, 6), (6, 9), (7, 10)]
    assert results[-1].is_bad

def test_sliding_window_exact_fit_has_no_extra_window():
    scores = np.array([[5] * 9])
    results = SlidingWindowEvaluator(window_size=3, step=3, min_quality=1).evaluate(scores)
    assert [(r.start, r.end) for r in results] == [(0, 3), (3, 6), (6, 9)]

def test_sliding_window_step_larger_than_window():
    scores = np.array([[0, 0, 0, 0, 0, 9, 9, 0, 4, 4]])
    results = SlidingWindowEvaluator(window_size=2, step=5, min_quality=5).evaluate(scores)

    assert [(r.start, r.end) for r in results] == [(0, 2), (5, 7), (8, 10)]
    assert [r.mean_quality for r in results] == pytest.approx([0, 9, 4])
    assert [r.is_bad for r in results] == [True, False, True]

def test_sliding_window_whole_block_is_one_window():
    scores = np.array([[1, 2, 3]])
    results = SlidingWindowEvaluator(window_size=3, step=1, min_quality=10).evaluate(scores)
    assert [(r.start, r.end, r.is_bad) for r in results] == [(0, 3, True)]

def test_sliding_window_requires_window_within_block():
    with pytest.raises(ValueError):
        SlidingWindowEvaluator(window_size=5, step=1, min_quality=10).evaluate(np.array([[1, 2, 3]]))

def test_sliding_window_missing_data_is_never_bad():
    scores = np.array([[-1] * 6, [-1] * 6])
    results = SlidingWindowEvaluator(window_size=3, step=1, min_quality=1000).evaluate(scores)
    assert results
    assert not any(r.is_bad for r in results)
    assert all(r.mean_quality is None for r in results)

def test_sliding_window_partially_missing_data():
    # Only the present cell counts: mean = 30 / 1
    scores = np.array([[-1, -1], [30, -1]])
    results = SlidingWindowEvaluator(window_size=2, step=1, min_quality=20).evaluate(scores)
    assert results[0].mean_quality == pytest.approx(30.0)
    assert not results[0].is_bad

def test_merge_overlapping_windows():
    assert merge_bad_windows([bad(0, 5), bad(3, 8)]) == [(0, 8)]

def test_merge_touching_windows():
    assert merge_bad_windows([bad(0, 3), bad(3, 6)]) == [(0, 6)]

def test_merge_separate_windows():
    assert merge_bad_windows([bad(0, 3), good(2, 5), bad(4, 7), bad(9, 12)]) == [(0, 3), (4, 7), (9, 12)]
    assert merge_bad_windows([good(0, 3), good(3, 6)]) == []

def test_merge_from_evaluator():
    scores = np.array([LOW_HIGH_LOW, LOW_HIGH_LOW])
    results = SlidingWindowEvaluator(window_size=3, step=1, min_quality=10).evaluate(scores)
    assert merge_bad_windows(results) == [(0, 4), (6, 10)]

    results = SlidingWindowEvaluator(window_size=3, step=1, min_quality=8).evaluate(scores)
    assert merge_bad_windows(results) == [(0, 3), (7, 10)]

def test_covers_whole_block():
    assert covers_whole_block([(0, 10)], 10)
    assert not covers_whole_block([(0, 9)], 10)
    assert not covers_whole_block([(0, 4), (4, 10)], 10)
    assert not covers_whole_block([], 10)

def test_split_block_without_regions():
    block = make_block({'A': LOW_HIGH_LOW, 'B': LOW_HIGH_LOW})
    kept, discarded = split_block(block, [], keep_discarded=True)
    assert kept == [block]
    assert kept[0] is block
    assert discarded == []

def test_split_block_whole_block():
    block = make_block({'A': LOW_HIGH_LOW})
    kept, discarded = split_block(block, [(0, 10)], keep_discarded=True)
    assert kept == []
    assert discarded == [block]

    kept, discarded = split_block(block, [(0, 10)], keep_discarded=False)
    assert kept == []
    assert discarded == []

def test_split_block_regions():
    block = make_block({'A': list(range(10)), 'B': LOW_HIGH_LOW})
    kept, discarded = split_block(block, [(2, 4), (7, 10)], keep_discarded=True)

    # Kept: [0, 2) and [4, 7); discarded: [2, 4) and [7, 10)
    assert [b.number_of_sites for b in kept] == [2, 3]
    assert [b.number_of_sites for b in discarded] == [2, 3]
    assert sum(b.number_of_sites for b in kept + discarded) == block.number_of_sites

    assert kept[1].sequence_for_species('A').get_annotation(QUALITY_SCORE).scores == (4, 5, 6)
    assert kept[1].sequence_for_species('A').text == TEXT[4:7]
    assert discarded[1].sequence_for_species('B').get_annotation(QUALITY_SCORE).scores == (2, 2, 2)

    for sub in kept + discarded:
        assert sub.score == block.score
        assert sub.pass_number == block.pass_number
        assert sub.number_of_sequences == 2
        for seq in sub.sequences:
            assert seq.width == sub.number_of_sites
            assert len(seq.get_annotation(QUALITY_SCORE)) == seq.width

def test_split_block_leading_region_without_discards():
    block = make_block({'A': LOW_HIGH_LOW})
    kept, discarded = split_block(block, [(0, 3)])
    assert [b.number_of_sites for b in kept] == [7]
    assert kept[0].sequences[0].start == 3
    assert discarded == []

def test_split_block_rejects_invalid_regions():
    block = make_block({'A': LOW_HIGH_LOW})
    with pytest.raises(ValueError):
        split_block(block, [(4, 2)])
    with pytest.raises(ValueError):
        split_block(block, [(5, 12)])
    with pytest.raises(ValueError):
        split_block(block, [(0, 4), (3, 6)])
