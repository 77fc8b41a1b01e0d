from __future__ import annotations

import json
from pathlib import Path

from citecheck_core.store import DocumentStore, LookupIndex
from citecheck_core.types import ReferenceSummary


def _store(tmp_path: Path) -> DocumentStore:
    store = DocumentStore(tmp_path / "db")
    store.ensure_layout()
    return store


def test_add_document_writes_record_and_index(tmp_path: Path) -> None:
    store = _store(tmp_path)

    document = store.add_document(
        "Deep Learning: A Review",
        "Body text",
        authors=["LeCun, Yann"],
        doi="10.1038/nature14539",
        year="2015",
        journal="Nature",
    )

    assert document.id == "deep_learning_a_review"
    record = json.loads((store.root / "documents" / "deep_learning_a_review.json").read_text(encoding="utf-8"))
    assert record["filePath"] == "documents/deep_learning_a_review.json"
    assert record["authors"] == ["LeCun, Yann"]
    index = json.loads(store.index_path.read_text(encoding="utf-8"))
    assert index["byDoi"] == {"10.1038/nature14539": "documents/deep_learning_a_review.json"}
    assert index["byYear"] == {"2015": ["documents/deep_learning_a_review.json"]}
    assert "review" in index["byTitleWords"]


def test_slug_collisions_get_suffix(tmp_path: Path) -> None:
    store = _store(tmp_path)

    first = store.add_document("Same Title", "one")
    second = store.add_document("Same Title", "two")
    third = store.add_document("Same Title", "three")

    assert [first.id, second.id, third.id] == ["same_title", "same_title_1", "same_title_2"]


def test_reingest_with_explicit_id_replaces_index_entries(tmp_path: Path) -> None:
    store = _store(tmp_path)
    original = store.add_document("Old Title Words", "v1", doi="10.1/old")

    store.add_document("New Title Words", "v2", doi="10.1/new", document_id=original.id)

    index = store.load_index()
    assert index.doi_path("10.1/old") is None
    assert index.doi_path("10.1/new") == original.file_path
    assert store.get_document(original.id).content == "v2"
    assert len(store.list_documents()) == 1


def test_lookup_exact_doi_is_case_insensitive(tmp_path: Path) -> None:
    store = _store(tmp_path)
    stored = store.add_document("Foo", "content", doi="10.1/x")

    match = store.lookup(ReferenceSummary(id="b0", doi="10.1/X"))

    assert match is not None
    assert match.document.id == stored.id
    assert match.strategy == "doi"


def test_lookup_prefers_doi_over_title(tmp_path: Path) -> None:
    store = _store(tmp_path)
    by_doi = store.add_document("Completely different subject matter", "a", doi="10.5/a")
    store.add_document("Neural message passing for quantum chemistry", "b")

    match = store.lookup(
        ReferenceSummary(id="b0", title="Neural message passing for quantum chemistry", doi="10.5/A")
    )

    assert match is not None
    assert match.document.id == by_doi.id


def test_lookup_fuzzy_title(tmp_path: Path) -> None:
    store = _store(tmp_path)
    stored = store.add_document("A graph-convolutional neural network model for chemical reactivity", "text")

    match = store.lookup(
        ReferenceSummary(id="b0", title="graph convolutional neural network model chemical reactivity")
    )

    assert match is not None
    assert match.document.id == stored.id
    assert match.strategy == "title_words"


def test_lookup_author_and_year(tmp_path: Path) -> None:
    store = _store(tmp_path)
    stored = store.add_document("Untitled working paper", "text", authors=["Hopper, Grace"], year="1952")

    match = store.lookup(ReferenceSummary(id="b0", title="Compilers", authors=["G. Hopper"], year="1952"))
    miss = store.lookup(ReferenceSummary(id="b1", title="Compilers", authors=["G. Hopper"], year="1953"))

    assert match is not None
    assert match.document.id == stored.id
    assert match.strategy == "author_year"
    assert miss is None


def test_lookup_falls_back_to_scan_when_index_is_stale(tmp_path: Path) -> None:
    store = _store(tmp_path)
    stored = store.add_document("Stale index paper", "text", doi="10.9/stale")
    store.index_path.write_text(LookupIndex().to_json(), encoding="utf-8")

    fresh = DocumentStore(store.root)
    match = fresh.lookup(ReferenceSummary(id="b0", doi="10.9/STALE"))

    assert match is not None
    assert match.document.id == stored.id


def test_lookup_scans_records_missing_from_a_partial_index(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.add_document("Quantum error correction codes", "text", authors=["Shor, Peter"], year="2017")
    unindexed = {
        "id": "mpnn",
        "title": "Neural message passing for quantum chemistry",
        "authors": ["Gilmer, Justin"],
        "filePath": "documents/mpnn.json",
        "content": "Message passing neural networks.",
        "year": "2017",
    }
    (store.documents_dir / "mpnn.json").write_text(json.dumps(unindexed), encoding="utf-8")

    fresh = DocumentStore(store.root)
    by_title = fresh.lookup(ReferenceSummary(id="b0", title="Neural message passing in quantum chemistry"))
    by_author = fresh.lookup(
        ReferenceSummary(id="b1", title="Totally different wording", authors=["Gilmer, J."], year="2017")
    )

    assert by_title is not None
    assert (by_title.document.id, by_title.strategy) == ("mpnn", "title_words")
    assert by_author is not None
    assert (by_author.document.id, by_author.strategy) == ("mpnn", "author_year")


def test_rebuild_index_is_idempotent(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.add_document("Alpha paper on graphs", "a", doi="10.1/a", year="2020")
    store.add_document("Beta paper on graphs", "b", year="2020")

    store.rebuild_index()
    first = store.index_path.read_bytes()
    store.rebuild_index()
    second = store.index_path.read_bytes()

    assert first == second
    assert json.loads(first)["byTitleWords"]["graphs"] == [
        "documents/alpha_paper_on_graphs.json",
        "documents/beta_paper_on_graphs.json",
    ]


def test_corrupt_records_are_skipped(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.add_document("Healthy paper title", "ok")
    (store.documents_dir / "broken.json").write_text("{not json", encoding="utf-8")
    (store.documents_dir / "partial.json").write_text(json.dumps({"id": "partial"}), encoding="utf-8")

    documents = store.list_documents()
    index = store.rebuild_index()

    assert [document.id for document in documents] == ["healthy_paper_title"]
    assert list(index.by_title.values()) == ["documents/healthy_paper_title.json"]


def test_non_list_authors_are_normalized(tmp_path: Path) -> None:
    store = _store(tmp_path)
    (store.documents_dir / "odd.json").write_text(
        json.dumps({"id": "odd", "title": "Odd record", "content": "x", "authors": "Someone"}),
        encoding="utf-8",
    )

    assert store.get_document("odd").authors == []


def test_corrupt_index_is_rebuilt(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.add_document("Recoverable paper", "x", doi="10.2/r")
    store.index_path.write_text("garbage", encoding="utf-8")

    index = DocumentStore(store.root).load_index()

    assert index.doi_path("10.2/r") == "documents/recoverable_paper.json"


def test_find_matching_documents_by_title(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.add_document("Protein folding with diffusion models", "x")
    store.add_document("Quantum error correction", "y")

    exact = store.find_matching_documents("protein folding with diffusion models")
    loose = store.find_matching_documents("diffusion models for folding")
    none = store.find_matching_documents("Galaxy rotation curves")

    assert [document.title for document in exact] == ["Protein folding with diffusion models"]
    assert [document.title for document in loose] == ["Protein folding with diffusion models"]
    assert none == []


def test_remove_document(tmp_path: Path) -> None:
    store = _store(tmp_path)
    document = store.add_document("Removable paper", "x", doi="10.3/x")

    assert store.remove_document(document.id) is True
    assert store.remove_document(document.id) is False
    assert store.get_document(document.id) is None
    assert store.load_index().doi_path("10.3/x") is None


def test_fetch_list_dedupes_by_title(tmp_path: Path) -> None:
    store = _store(tmp_path)

    assert store.add_to_fetch_list(ReferenceSummary(id="b0", title="Missing Paper")) is True
    assert store.add_to_fetch_list(ReferenceSummary(id="b7", title="missing paper ")) is False

    entries = store.load_fetch_list()
    assert [entry.id for entry in entries] == ["b0"]


def test_corrupt_fetch_list_is_moved_aside(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.fetch_list_path.write_text("[oops", encoding="utf-8")

    assert store.load_fetch_list() == []
    assert (store.root / "fetch-list.json.corrupt").exists()
    assert store.add_to_fetch_list(ReferenceSummary(id="b0", title="Fresh entry")) is True
