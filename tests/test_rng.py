"""Tests for the seedable random source."""

import numpy as np
import pytest

from shortrate.rng import RandomSource, make_rng


def test_same_seed_reproduces_stream() -> None:
    a, b = RandomSource(11), RandomSource(11)
    assert [a.next_normal() for _ in range(5)] == [b.next_normal() for _ in range(5)]
    assert np.array_equal(a.standard_normal(100), b.standard_normal(100))


def test_reset_rewinds_to_seed() -> None:
    source = RandomSource(3)
    first = source.standard_normal(10)
    source.next_normal()
    source.reset()
    assert np.array_equal(source.standard_normal(10), first)


def test_make_rng_matches_random_source() -> None:
    assert np.array_equal(make_rng(5).standard_normal(4), RandomSource(5).standard_normal(4))


def test_correlated_normals_have_requested_correlation() -> None:
    z = RandomSource(0).correlated_normals(-0.1, 200_000)
    assert z.shape == (2, 200_000)
    assert np.corrcoef(z)[0, 1] == pytest.approx(-0.1, abs=0.01)
    assert z[1].std() == pytest.approx(1.0, abs=0.01)


def test_correlated_pair_is_deterministic() -> None:
    pair = RandomSource(9).next_correlated_pair(0.5)
    assert pair == RandomSource(9).next_correlated_pair(0.5)
    perfect = RandomSource(9).next_correlated_pair(1.0)
    assert perfect[0] == pytest.approx(perfect[1])
