"""Library store: add/import/export/remove and search."""
from __future__ import annotations

import json

import pytest

from copyslasher.detector.config import EngineConfig
from copyslasher.detector.errors import InvalidThresholdError
from copyslasher.detector.library import LibraryStore
from copyslasher.detector.models import LibraryItem, TextRecord

LIBRARY = [
    {"id": "promo", "text": "Hello world promo", "category": "greeting"},
    {"id": "offer", "text": "Get fifty percent off all summer dresses when you shop online this weekend only",
     "auxiliary_text": "本周末网购所有夏季连衣裙五折"},
    {"id": "tax", "text": "Quarterly tax filing deadlines for small businesses explained step by step",
     "category": "finance"},
]

OFFER_VARIANT = "Get fifty percent off all summer dresses when you shop in store this weekend only"


@pytest.fixture()
def store() -> LibraryStore:
    lib = LibraryStore()
    assert lib.add_to_library(LIBRARY) == 3
    return lib


def test_add_and_size(store: LibraryStore) -> None:
    assert store.get_library_size() == 3
    assert len(store) == 3
    assert "promo" in store
    assert store.get("offer").auxiliary_text == "本周末网购所有夏季连衣裙五折"
    assert [item.id for item in store.items()] == ["promo", "offer", "tax"]


def test_add_skips_existing_ids(store: LibraryStore) -> None:
    assert store.add_to_library([{"id": "promo", "text": "Something else entirely"}]) == 0
    assert store.get("promo").text == "Hello world promo"


def test_add_skips_blank_and_malformed_items() -> None:
    lib = LibraryStore()
    assert lib.add_to_library(["  ", {"text": 42}, 17, "Valid copy here"]) == 1
    assert lib.items()[0].id == "item_3"


def test_add_with_category_overrides() -> None:
    lib = LibraryStore()
    lib.add_to_library([TextRecord("a", "Spring collection now in stores")], category="seasonal")
    assert lib.get("a").category == "seasonal"


def test_import_overwrites_same_id(store: LibraryStore) -> None:
    assert store.import_library([{"id": "promo", "text": "Brand new promo copy"}]) == 1
    assert store.get_library_size() == 3
    assert store.get("promo").text == "Brand new promo copy"
    # the old text is no longer findable
    [result] = store.search_library(["Hello world promo"])
    assert result.matches == []


def test_import_replace_clears_first(store: LibraryStore) -> None:
    assert store.import_library([{"id": "x", "text": "Only item left"}], replace=True) == 1
    assert store.get_library_size() == 1


def test_export_shape(store: LibraryStore) -> None:
    exported = store.export_library()
    assert exported[0] == {"id": "promo", "text": "Hello world promo",
                           "auxiliary_text": None, "category": "greeting"}
    assert "signature" not in exported[0]
    with_sigs = store.export_library(include_signatures=True)
    sig = with_sigs[0]["signature"]
    assert sig["seed"] == 1 and sig["shingle_size"] == 3 and len(sig["values"]) == 256
    assert sig["shingle_unit"] == "word" and sig["strip_punctuation"] is True
    json.dumps(with_sigs)  # JSON-ready


def test_round_trip_preserves_size_and_search(store: LibraryStore) -> None:
    queries = ["Hello world promo!!", OFFER_VARIANT, "totally novel phrase xyz123"]
    before = [r.as_dict() for r in store.search_library(queries)]
    for include in (False, True):
        copy = LibraryStore()
        copy.import_library(store.export_library(include_signatures=include))
        assert copy.get_library_size() == store.get_library_size()
        assert [r.as_dict() for r in copy.search_library(queries)] == before


def test_import_resigns_incompatible_signature(store: LibraryStore) -> None:
    exported = store.export_library(include_signatures=True)
    other = LibraryStore(EngineConfig(seed=2))
    other.import_library(exported)
    assert all(other.generator.is_compatible(item.signature) for item in other.items())
    [result] = other.search_library(["Hello world promo"])
    assert [m.item.id for m in result.matches] == ["promo"]


def test_import_accepts_library_items(store: LibraryStore) -> None:
    copy = LibraryStore()
    assert copy.import_library(store.items()) == 3
    assert all(isinstance(item, LibraryItem) for item in copy.items())
    assert copy.get("offer").signature is store.get("offer").signature


def test_import_resigns_items_from_other_shingling() -> None:
    char_store = LibraryStore(EngineConfig(shingle_unit="char", shingle_size=4))
    char_store.add_to_library(LIBRARY)
    copy = LibraryStore()
    assert copy.import_library(char_store.items()) == 3
    for item in copy.items():
        assert item.signature_params == copy.generator.signature_params()
        assert list(item.signature.hashvalues) == list(copy.generator.sign_text(item.text).hashvalues)
    [result] = copy.search_library([OFFER_VARIANT])
    assert [m.item.id for m in result.matches] == ["offer"]


def test_import_resigns_exported_signature_from_other_shingling() -> None:
    char_store = LibraryStore(EngineConfig(shingle_unit="char"))
    char_store.add_to_library(LIBRARY)
    copy = LibraryStore()
    copy.import_library(char_store.export_library(include_signatures=True))
    promo = copy.get("promo")
    assert list(promo.signature.hashvalues) == list(copy.generator.sign_text(promo.text).hashvalues)


def test_hand_built_library_item_is_resigned() -> None:
    foreign = LibraryStore(EngineConfig(strip_punctuation=False)).generator.sign_text("Save 50%!")
    copy = LibraryStore()
    copy.import_library([LibraryItem(id="save", text="Save 50%!", signature=foreign)])
    assert list(copy.get("save").signature.hashvalues) == list(copy.generator.sign_text("Save 50%!").hashvalues)


def test_remove_from_library(store: LibraryStore) -> None:
    assert store.remove_from_library(["promo", "missing"]) == 1
    assert store.get_library_size() == 2
    [result] = store.search_library(["Hello world promo"])
    assert result.matches == []


def test_clear_library(store: LibraryStore) -> None:
    store.clear_library()
    assert store.get_library_size() == 0
    assert store.search_library(["Hello world promo"])[0].matches == []


def test_search_finds_near_duplicate(store: LibraryStore) -> None:
    [result] = store.search_library([OFFER_VARIANT], threshold=0.5, max_results=10)
    assert [m.item.id for m in result.matches] == ["offer"]
    assert 0.5 <= result.matches[0].similarity < 1.0


def test_search_unrelated_library_has_no_matches(store: LibraryStore) -> None:
    [result] = store.search_library(["totally novel phrase xyz123"], threshold=0.5, max_results=10)
    assert result.query == "totally novel phrase xyz123"
    assert result.matches == []


def test_search_results_sorted_and_capped() -> None:
    lib = LibraryStore()
    lib.add_to_library([
        {"id": "a", "text": "Flash deal today"},
        {"id": "b", "text": "flash deal today!"},
        {"id": "c", "text": "FLASH DEAL TODAY"},
    ])
    [result] = lib.search_library(["Flash deal today"], max_results=2)
    assert [m.item.id for m in result.matches] == ["a", "b"]


def test_search_category_filter(store: LibraryStore) -> None:
    [hit] = store.search_library(["Hello world promo"], categories=["greeting"])
    [miss] = store.search_library(["Hello world promo"], categories=["finance"])
    assert [m.item.id for m in hit.matches] == ["promo"]
    assert miss.matches == []


def test_search_empty_query_returns_no_matches(store: LibraryStore) -> None:
    [result] = store.search_library(["  ?! "])
    assert result.matches == []


def test_search_is_read_only(store: LibraryStore) -> None:
    store.search_library(["Some brand new copy text"])
    assert store.get_library_size() == 3


def test_search_validates_arguments(store: LibraryStore) -> None:
    with pytest.raises(InvalidThresholdError):
        store.search_library(["x"], threshold=-0.1)
    with pytest.raises(ValueError):
        store.search_library(["x"], max_results=0)


def test_independent_stores_do_not_share_state() -> None:
    a, b = LibraryStore(), LibraryStore()
    a.add_to_library(["Hello world promo"])
    assert b.get_library_size() == 0
