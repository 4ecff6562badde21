"""LSH index behaviour and banding helpers."""
from __future__ import annotations

import math

import pytest

from copyslasher.detector.config import EngineConfig
from copyslasher.detector.errors import InvalidConfigurationError
from copyslasher.detector.lsh_index import LSHIndex, collision_probability, suggest_banding
from copyslasher.detector.minhash import SignatureGenerator

GEN = SignatureGenerator()

OFFER = "Get fifty percent off all summer dresses when you shop online this weekend only"
OFFER_VARIANT = "Get fifty percent off all summer dresses when you shop in store this weekend only"
UNRELATED = "Quarterly tax filing deadlines for small businesses explained step by step"


def test_query_finds_near_duplicate() -> None:
    index = LSHIndex()
    index.insert("offer", GEN.sign_text(OFFER))
    index.insert("tax", GEN.sign_text(UNRELATED))
    assert index.query(GEN.sign_text(OFFER_VARIANT)) == {"offer"}


def test_query_excludes_probe_key() -> None:
    index = LSHIndex()
    sig = GEN.sign_text(OFFER)
    index.insert("offer", sig)
    assert index.query(sig, exclude="offer") == set()


def test_insert_duplicate_key_raises() -> None:
    index = LSHIndex()
    index.insert("a", GEN.sign_text(OFFER))
    with pytest.raises(ValueError):
        index.insert("a", GEN.sign_text(UNRELATED))


def test_remove_strips_all_postings() -> None:
    index = LSHIndex()
    sig = GEN.sign_text(OFFER)
    index.insert("offer", sig)
    index.remove("offer")
    assert "offer" not in index
    assert len(index) == 0
    assert index.query(sig) == set()
    # the key can be reused after removal
    index.insert("offer", sig)
    assert index.query(sig) == {"offer"}


def test_remove_unknown_key_raises() -> None:
    with pytest.raises(KeyError):
        LSHIndex().remove("missing")


def test_clear_empties_index() -> None:
    index = LSHIndex()
    index.insert(0, GEN.sign_text(OFFER))
    index.insert(1, GEN.sign_text(UNRELATED))
    index.clear()
    assert len(index) == 0
    assert index.query(GEN.sign_text(OFFER)) == set()


def test_items_in_insertion_order() -> None:
    index = LSHIndex()
    index.insert("b", GEN.sign_text(UNRELATED))
    index.insert("a", GEN.sign_text(OFFER))
    assert [k for k, _ in index.items()] == ["b", "a"]
    assert index.get_signature("a") is not None


def test_bad_banding_rejected() -> None:
    with pytest.raises(InvalidConfigurationError):
        LSHIndex(num_perm=128, bands=30, rows=4)


def test_from_config_uses_banding() -> None:
    index = LSHIndex.from_config(EngineConfig(num_hashes=64, bands=16, rows_per_band=4))
    assert (index.num_perm, index.bands, index.rows) == (64, 16, 4)


def test_collision_probability_s_curve() -> None:
    assert collision_probability(0.0, 32, 4) == 0.0
    assert collision_probability(1.0, 32, 4) == 1.0
    assert math.isclose(collision_probability(0.5, 32, 4), 1 - (1 - 0.5 ** 4) ** 32)
    assert collision_probability(0.8, 32, 4) > 0.99
    assert collision_probability(0.2, 32, 4) < 0.06


def test_suggest_banding_default_threshold() -> None:
    bands, rows = suggest_banding(128, 0.5)
    assert bands * rows == 128
    assert (bands, rows) == (32, 4)


def test_default_banding_matches_suggestion() -> None:
    config = EngineConfig()
    assert suggest_banding(config.num_hashes, config.similarity_threshold) == (config.bands, config.rows_per_band)
    index = LSHIndex()
    assert (index.num_perm, index.bands, index.rows) == (256, 64, 4)


def test_suggest_banding_low_threshold_falls_back() -> None:
    assert suggest_banding(128, 0.0) == (128, 1)
