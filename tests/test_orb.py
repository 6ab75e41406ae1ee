import numpy as np
import pytest

from slamkit.orb import bf_match, compute_orb, hamming_distance


def _random_image(seed=0, shape=(64, 80)):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=shape, dtype=np.uint8)


def test_hamming_identical_is_zero():
    d = [0x12345678] * 8
    assert hamming_distance(d, d) == 0


def test_hamming_all_bits_differ():
    assert hamming_distance([0xFFFFFFFF] * 8, [0] * 8) == 256


def test_hamming_single_bit():
    assert hamming_distance([1, 0, 0, 0, 0, 0, 0, 0], [0] * 8) == 1


def test_hamming_is_symmetric():
    a = [0xDEADBEEF, 7, 9, 0, 1, 2, 3, 4]
    b = [0x0F0F0F0F, 8, 1, 5, 6, 7, 0, 4]
    assert hamming_distance(a, b) == hamming_distance(b, a)


def test_hamming_length_mismatch():
    with pytest.raises(ValueError):
        hamming_distance([0] * 8, [0] * 7)


def test_bf_match_picks_nearest_and_skips_empty():
    base = [0] * 8
    close = [0b1] + [0] * 7
    far = [0xFFFFFFFF] * 8
    matches = bf_match([base, None, far], [None, far, close])
    assert matches == [(0, 2, 1), (2, 1, 0)]


def test_bf_match_respects_threshold():
    a = [0xFFFFFFFF, 0xFF] + [0] * 6
    assert bf_match([a], [[0] * 8]) == []
    assert bf_match([a], [[0] * 8], d_max=41) == [(0, 0, 40)]


def test_bf_match_tie_keeps_first():
    d = [5] * 8
    assert bf_match([d], [d, d]) == [(0, 0, 0)]


def test_compute_orb_border_keypoints_are_none():
    img = _random_image()
    rows, cols = img.shape
    descs = compute_orb(img, [(15.9, 30), (30, 15.0), (cols - 16, 30), (30, rows - 16)])
    assert descs == [None, None, None, None]


def test_compute_orb_descriptor_shape():
    img = _random_image()
    (desc,) = compute_orb(img, [(16, 16)])
    assert desc.shape == (8,)
    assert desc.dtype == np.uint32


def test_compute_orb_uniform_image_gives_zero_bits():
    img = np.full((60, 60), 100, dtype=np.uint8)
    (desc,) = compute_orb(img, [(30, 30)])
    assert desc.tolist() == [0] * 8


def test_compute_orb_translation_invariant():
    img = _random_image(seed=3, shape=(90, 90))
    shifted = np.zeros_like(img)
    shifted[5:, 7:] = img[:-5, :-7]
    (d1,) = compute_orb(img, [(40, 40)])
    (d2,) = compute_orb(shifted, [(47, 45)])
    assert d1.tolist() == d2.tolist()


def test_compute_orb_self_match():
    img = _random_image(seed=5, shape=(100, 100))
    kps = [(20, 20), (50, 40), (70, 75), (5, 5)]
    descs = compute_orb(img, kps)
    assert descs[3] is None
    matches = bf_match(descs, descs)
    assert [(q, t) for q, t, _ in matches] == [(0, 0), (1, 1), (2, 2)]
    assert all(d == 0 for _, _, d in matches)


def test_compute_orb_rejects_colour_image():
    with pytest.raises(ValueError):
        compute_orb(np.zeros((40, 40, 3), dtype=np.uint8), [(20, 20)])