from __future__ import annotations

import pytest

from conftest import make_question
from review_app.core.services.category_catalog import CategoryCatalog, CategoryError
from review_app.core.services.question_bank import QuestionBank


@pytest.fixture
def catalog_bank():
    bank = QuestionBank(
        [
            make_question("alg", subject_id="1", chapter_id="1", type_id="1"),
            make_question("calc", subject_id="1", chapter_id="2", type_id="3"),
            make_question("mech", subject_id="2", chapter_id="3", type_id="1"),
        ]
    )
    return CategoryCatalog.with_defaults(bank), bank


def test_defaults_are_seeded(catalog_bank):
    catalog, _ = catalog_bank
    assert [s.name for s in catalog.list_subjects()] == ["Mathematics", "Physics", "Chemistry"]
    assert [c.name for c in catalog.chapters_for_subject("1")] == ["Algebra", "Calculus"]
    assert [t.name for t in catalog.types_for_chapter("1")] == ["Conceptual", "Numerical"]


def test_add_and_update_subject(catalog_bank):
    catalog, _ = catalog_bank
    subject = catalog.add_subject("  Biology ", "hsl(120, 50%, 50%)")
    assert subject.name == "Biology"

    renamed = catalog.update_subject(subject.id, name="Life Science")
    assert renamed.color == "hsl(120, 50%, 50%)"
    assert catalog.get_subject(subject.id).name == "Life Science"
    assert catalog.find_subject_by_name("life science") == renamed


def test_blank_names_are_rejected(catalog_bank):
    catalog, _ = catalog_bank
    with pytest.raises(CategoryError):
        catalog.add_subject("  ")
    with pytest.raises(CategoryError):
        catalog.update_chapter("1", "")


def test_children_require_existing_parent(catalog_bank):
    catalog, _ = catalog_bank
    with pytest.raises(CategoryError):
        catalog.add_chapter("Optics", "missing")
    with pytest.raises(CategoryError):
        catalog.add_question_type("Proof", "missing")


def test_delete_subject_cascades(catalog_bank):
    catalog, bank = catalog_bank
    catalog.delete_subject("1")

    assert [s.id for s in catalog.list_subjects()] == ["2", "3"]
    assert all(c.subject_id != "1" for c in catalog.list_chapters())
    assert catalog.list_question_types() == []
    assert [q.id for q in bank.list_questions()] == ["mech"]


def test_delete_chapter_cascades_to_types_and_questions(catalog_bank):
    catalog, bank = catalog_bank
    catalog.delete_chapter("1")

    assert [t.id for t in catalog.list_question_types()] == ["3"]
    assert sorted(q.id for q in bank.list_questions()) == ["calc", "mech"]


def test_delete_type_keeps_questions(catalog_bank):
    catalog, bank = catalog_bank
    catalog.delete_question_type("1")

    assert [t.id for t in catalog.list_question_types()] == ["2", "3"]
    assert bank.get_question_count() == 3
    assert bank.get_question("alg").type_id == "1"


def test_unknown_ids_raise_key_error(catalog_bank):
    catalog, _ = catalog_bank
    with pytest.raises(KeyError):
        catalog.delete_subject("missing")
    with pytest.raises(KeyError):
        catalog.get_chapter("missing")
    with pytest.raises(KeyError):
        catalog.update_question_type("missing", "x")


def test_find_by_name_is_scoped_to_parent(catalog_bank):
    catalog, _ = catalog_bank
    assert catalog.find_chapter_by_name("1", "ALGEBRA").id == "1"
    assert catalog.find_chapter_by_name("2", "Algebra") is None
    assert catalog.find_type_by_name("2", "application").id == "3"
