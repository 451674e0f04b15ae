import pytest

from postdates.content import ContentStore, extract_title, parse_front_matter, parse_list
from postdates.errors import ConfigError

POST = """---
title: Hello, World
description: The first post
tags: [scala, meta]
canonicalUrl: https://dev.to/hello
socialImage: /images/hello.png
socialImageAlt: A wave
---
Some *markdown*.
"""


@pytest.fixture
def store(tmp_path):
    blog = tmp_path / "blog"
    blog.mkdir()
    (blog / "hello-world.md").write_text(POST, encoding="utf-8")
    (blog / "notes.txt").write_text("ignored", encoding="utf-8")
    return ContentStore(blog, repo_root=tmp_path)


def test_slugs_come_from_markdown_filenames(store):
    assert store.slugs() == ["hello-world"]


def test_read_extracts_fields(store):
    record = store.read("hello-world")

    assert record.slug == "hello-world"
    assert record.path == "blog/hello-world.md"
    assert record.title == "Hello, World"
    assert record.description == "The first post"
    assert record.tags == ("scala", "meta")
    assert record.raw_body.strip() == "Some *markdown*."
    assert record.canonical_url == "https://dev.to/hello"
    assert record.social_image == "/images/hello.png"
    assert record.social_image_alt == "A wave"


def test_tags_default_to_empty(tmp_path):
    (tmp_path / "blog").mkdir()
    (tmp_path / "blog" / "plain.md").write_text("---\ntitle: Plain\n---\nBody\n", encoding="utf-8")

    record = ContentStore(tmp_path / "blog", repo_root=tmp_path).read("plain")

    assert record.tags == ()
    assert record.description == ""
    assert record.canonical_url is None


def test_title_falls_back_to_heading():
    title, body = extract_title({}, "# Heading\n\nText")

    assert title == "Heading"
    assert body == "Text"


def test_no_front_matter():
    meta, body = parse_front_matter("just text")

    assert meta == {}
    assert body == "just text"


def test_parse_list_accepts_strings_and_dedupes():
    assert parse_list("a, b, a") == ["a", "b"]
    assert parse_list("['x', 'y']") == ["x", "y"]
    assert parse_list(["x", None, "x"]) == ["x"]
    assert parse_list(None) == []


def test_invalid_front_matter_is_config_error(tmp_path):
    (tmp_path / "blog").mkdir()
    (tmp_path / "blog" / "bad.md").write_text("---\ntitle: [unclosed\n---\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        ContentStore(tmp_path / "blog", repo_root=tmp_path).read("bad")


def test_missing_root_has_no_slugs(tmp_path):
    assert ContentStore(tmp_path / "nope").slugs() == []
