import json

import pytest
from conftest import requires_git

from postdates.cli import main

pytestmark = requires_git

TAGS = json.dumps([{"name": "scala", "description": {"short": "Scala", "long": "Scala"}}])


@pytest.fixture
def site(git_repo, monkeypatch):
    monkeypatch.delenv("VERCEL_ENV", raising=False)
    monkeypatch.delenv("POSTDATES_ENV", raising=False)
    monkeypatch.delenv("NODE_ENV", raising=False)
    git_repo.write("tags/data.json", TAGS)
    git_repo.write("blog/hello-world.md", "---\ntitle: Hello\ntags: [scala]\n---\nFirst.\n")
    git_repo.commit("Add hello world", "2023-01-01T00:00:00+00:00")
    git_repo.write("blog/hello-world.md", "---\ntitle: Hello\ntags: [scala]\n---\nSecond.\n")
    git_repo.commit("Edit hello world", "2023-06-15T12:00:00+00:00")
    git_repo.write("blog/draft-post.md", "---\ntitle: Draft\n---\nWIP.\n")
    return git_repo.root


def run(site, *extra):
    main(["--config", str(site / "site.toml"), "--repo-root", str(site), *extra])


def test_build_writes_manifest_and_cache(site, capsys):
    run(site, "--environment", "full")

    manifest = json.loads((site / "dist" / "content.json").read_text(encoding="utf-8"))
    hello = next(item for item in manifest if item["slug"] == "hello-world")
    assert hello["published"] == "2023-01-01T00:00:00Z"
    assert hello["lastUpdated"] == "2023-06-15T12:00:00Z"
    assert next(item for item in manifest if item["slug"] == "draft-post")["draft"] is True
    assert (site / "dist" / "posts" / "hello-world.html").exists()
    assert json.loads((site / "dist" / "tags.json").read_text(encoding="utf-8")) == {"scala": ["hello-world"]}
    feed = json.loads((site / "dist" / "feed.json").read_text(encoding="utf-8"))
    assert [item["slug"] for item in feed] == ["hello-world"]

    cache = json.loads((site / "caches" / "posts.json").read_text(encoding="utf-8"))
    assert [entry["slug"] for entry in cache["entries"]] == ["hello-world"]
    assert "Resolved 2 posts (1 drafts)" in capsys.readouterr().out


def test_check_mode_writes_no_output(site):
    run(site, "--environment", "full", "--check", "--cache-writes", "false")

    assert not (site / "dist").exists()
    assert not (site / "caches").exists()


def test_shallow_build_without_cache_fails(site, capsys):
    with pytest.raises(SystemExit) as excinfo:
        run(site, "--environment", "shallow", "--tags-file", "")

    assert excinfo.value.code == 1
    err = capsys.readouterr().err
    assert "hello-world" in err


def test_shallow_build_reads_committed_cache(site):
    run(site, "--environment", "full", "--check")
    run(site, "--environment", "shallow")

    manifest = json.loads((site / "dist" / "content.json").read_text(encoding="utf-8"))
    hello = next(item for item in manifest if item["slug"] == "hello-world")
    assert hello["published"] == "2023-01-01T00:00:00Z"


def test_unknown_tag_exits_with_error(site, capsys):
    (site / "blog" / "typo.md").write_text("---\ntitle: Typo\ntags: [scalla]\n---\n", encoding="utf-8")

    with pytest.raises(SystemExit):
        run(site, "--environment", "full")

    assert "scalla" in capsys.readouterr().err


def test_unknown_log_level_exits_with_error(site, capsys):
    with pytest.raises(SystemExit) as excinfo:
        run(site, "--environment", "full", "--log-level", "chatty")

    assert excinfo.value.code == 1
    assert "Unknown log level: 'chatty'" in capsys.readouterr().err
    assert not (site / "dist").exists()
