import json

import pytest

from postdates.content import ContentRecord
from postdates.errors import ValidationError
from postdates.tags import Tag, TagVocabulary


def record(*tags):
    return ContentRecord("post", "blog/post.md", "Post", "", tuple(tags), "")


def test_load_vocabulary(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(
        json.dumps([{"name": "scala", "description": {"short": "Scala", "long": "The Scala language"}}]),
        encoding="utf-8",
    )

    vocabulary = TagVocabulary.load(path)

    assert "scala" in vocabulary
    assert vocabulary.tags["scala"] == Tag("scala", "Scala", "The Scala language")


def test_unknown_tag_fails_with_file_and_tag():
    vocabulary = TagVocabulary([Tag("scala")], source="tags/data.json")

    with pytest.raises(ValidationError) as excinfo:
        vocabulary.validate([record("scala"), record("scalla")])

    assert excinfo.value.tag == "scalla"
    assert excinfo.value.path == "blog/post.md"
    assert "tags/data.json" in str(excinfo.value)


def test_known_tags_pass():
    TagVocabulary([Tag("a"), Tag("b")]).validate([record("a"), record("b", "a"), record()])


def test_missing_vocabulary_is_validation_error(tmp_path):
    with pytest.raises(ValidationError):
        TagVocabulary.load(tmp_path / "missing.json")


def test_malformed_vocabulary_is_validation_error(tmp_path):
    path = tmp_path / "data.json"
    path.write_text(json.dumps({"name": "scala"}), encoding="utf-8")

    with pytest.raises(ValidationError):
        TagVocabulary.load(path)
