"""Tests for the publish manifest.

Covers:
- parse_manifest acceptance and rejection
- SyncManifest load/save against an in-memory repository
- change detection, carry-forward and deletion computation
- best-effort deletion execution
"""

from __future__ import annotations

import json

import pytest

from vault_publish.sync.manifest import (
    MANIFEST_PATH,
    SyncManifest,
    create_empty_manifest,
    parse_manifest,
)
from vault_publish.sync.models import MANIFEST_VERSION, SyncOperations

ROOT = "src/content/posts"

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _post(slug: str, assets: list[str] | None = None, sha: str = "abc") -> dict:
    return {
        "vaultPath": f"posts/{slug}/index.md",
        "repoPath": f"{ROOT}/{slug}/index.md",
        "assets": assets or [],
        "contentSha": sha,
    }


def _manifest_json(posts: dict, last_publish: str = "2026-01-01T00:00:00+00:00") -> str:
    return json.dumps(
        {"version": MANIFEST_VERSION, "lastPublish": last_publish, "posts": posts}
    )


@pytest.fixture
def manifest(fake_store):
    return SyncManifest(fake_store, ROOT)


def _seed(fake_store, posts: dict, **kwargs) -> None:
    fake_store.files[MANIFEST_PATH] = _manifest_json(posts, **kwargs).encode()


# ---------------------------------------------------------------------------
# parse_manifest
# ---------------------------------------------------------------------------


class TestParseManifest:
    def test_valid(self):
        parsed = parse_manifest(_manifest_json({"a": _post("a", ["x.png"])}))
        assert parsed is not None
        assert parsed.posts["a"].repo_path == f"{ROOT}/a/index.md"
        assert parsed.posts["a"].assets == ["x.png"]
        assert parsed.last_publish == "2026-01-01T00:00:00+00:00"

    @pytest.mark.parametrize(
        "content",
        [
            None,
            "",
            "{not json",
            "[]",
            json.dumps({"version": 2, "lastPublish": "x", "posts": {}}),
            json.dumps({"version": 1, "lastPublish": "x", "posts": []}),
        ],
    )
    def test_rejected(self, content):
        assert parse_manifest(content) is None

    def test_malformed_entry_is_skipped(self, caplog):
        content = _manifest_json(
            {"a": _post("a"), "broken": {"vaultPath": 1}, "c": _post("c")}
        )

        with caplog.at_level("WARNING", logger="vault_publish.sync.manifest"):
            parsed = parse_manifest(content)

        assert parsed is not None
        assert list(parsed.posts) == ["a", "c"]
        assert parsed.last_publish == "2026-01-01T00:00:00+00:00"
        assert "Skipping malformed manifest entry 'broken'" in caplog.text

    def test_round_trip_keys_are_camel_case(self):
        empty = create_empty_manifest()
        data = empty.to_json_dict()
        assert set(data) == {"version", "lastPublish", "posts"}


# ---------------------------------------------------------------------------
# load / save
# ---------------------------------------------------------------------------


class TestLoadSave:
    async def test_load_missing_is_empty(self, manifest):
        loaded = await manifest.load()
        assert loaded.posts == {}
        assert manifest.previous is loaded

    async def test_load_existing(self, fake_store, manifest):
        _seed(fake_store, {"a": _post("a")})
        loaded = await manifest.load()
        assert list(loaded.posts) == ["a"]

    async def test_load_corrupt_is_empty(self, fake_store, manifest):
        fake_store.files[MANIFEST_PATH] = b"{garbage"
        loaded = await manifest.load()
        assert loaded.posts == {}

    async def test_load_undecodable_is_empty(self, fake_store, manifest):
        fake_store.files[MANIFEST_PATH] = b"\xff\xfe\x00"
        loaded = await manifest.load()
        assert loaded.posts == {}

    async def test_load_outage_is_empty(self, fake_store, manifest):
        fake_store.fail_reads = True
        loaded = await manifest.load()
        assert loaded.posts == {}

    async def test_save_writes_camel_case_json(self, fake_store, manifest):
        await manifest.load()
        manifest.register_published(
            "a", "posts/a/index.md", f"{ROOT}/a/index.md", [f"{ROOT}/a/x.png"], "sha1"
        )

        result = await manifest.save()

        assert result.uploaded
        saved = json.loads(fake_store.files[MANIFEST_PATH])
        assert saved["version"] == MANIFEST_VERSION
        assert saved["posts"]["a"] == {
            "vaultPath": "posts/a/index.md",
            "repoPath": f"{ROOT}/a/index.md",
            "assets": [f"{ROOT}/a/x.png"],
            "contentSha": "sha1",
        }

    async def test_unchanged_save_is_byte_identical(self, fake_store, manifest):
        _seed(fake_store, {"a": _post("a", sha="s")})
        await manifest.load()
        manifest.carry_forward("a")
        first = await manifest.save()
        before = fake_store.files[MANIFEST_PATH]

        again = SyncManifest(fake_store, ROOT)
        await again.load()
        again.carry_forward("a")
        second = await again.save()

        assert second.uploaded is False
        assert fake_store.files[MANIFEST_PATH] == before
        assert first.sha == second.sha

    async def test_save_keeps_timestamp_when_posts_equal(self, fake_store, manifest):
        _seed(fake_store, {"a": _post("a")}, last_publish="2020-05-05T00:00:00+00:00")
        await manifest.load()
        manifest.carry_forward("a")

        await manifest.save()

        saved = json.loads(fake_store.files[MANIFEST_PATH])
        assert saved["lastPublish"] == "2020-05-05T00:00:00+00:00"

    async def test_save_restamps_when_posts_change(self, fake_store, manifest):
        _seed(fake_store, {"a": _post("a")}, last_publish="2020-05-05T00:00:00+00:00")
        await manifest.load()

        await manifest.save()

        saved = json.loads(fake_store.files[MANIFEST_PATH])
        assert saved["lastPublish"] != "2020-05-05T00:00:00+00:00"
        assert saved["posts"] == {}


# ---------------------------------------------------------------------------
# Queries and bookkeeping
# ---------------------------------------------------------------------------


class TestBookkeeping:
    async def test_has_changed(self, fake_store, manifest):
        _seed(fake_store, {"a": _post("a", sha="s1")})
        await manifest.load()

        assert not manifest.has_changed("a", "s1")
        assert manifest.has_changed("a", "s2")
        assert manifest.has_changed("b", "s1")

    def test_has_changed_before_load(self, manifest):
        assert manifest.has_changed("a", "s1")

    async def test_carry_forward(self, fake_store, manifest):
        _seed(fake_store, {"a": _post("a")})
        await manifest.load()

        assert manifest.carry_forward("a")
        assert "a" in manifest.current.posts
        assert not manifest.carry_forward("missing")

    async def test_carry_forward_does_not_overwrite(self, fake_store, manifest):
        _seed(fake_store, {"a": _post("a", sha="old")})
        await manifest.load()
        manifest.register_published("a", "posts/a/index.md", f"{ROOT}/a/index.md", [], "new")

        assert not manifest.carry_forward("a")
        assert manifest.current.posts["a"].content_sha == "new"

    async def test_previous_is_not_mutated(self, fake_store, manifest):
        _seed(fake_store, {"a": _post("a")})
        await manifest.load()
        manifest.register_published("b", "posts/b/index.md", f"{ROOT}/b/index.md", [], "s")

        assert list(manifest.previous.posts) == ["a"]

    async def test_reset(self, fake_store, manifest):
        await manifest.load()
        manifest.register_published("b", "posts/b/index.md", f"{ROOT}/b/index.md", [], "s")
        manifest.reset()
        assert manifest.current.posts == {}


# ---------------------------------------------------------------------------
# Deletions
# ---------------------------------------------------------------------------


class TestComputeDeletions:
    def test_before_load_is_empty(self, manifest):
        assert manifest.compute_deletions() == SyncOperations()

    async def test_removed_post_and_its_assets(self, fake_store, manifest):
        _seed(
            fake_store,
            {
                "a": _post("a", [f"{ROOT}/a/x.png"]),
                "b": _post("b"),
            },
        )
        await manifest.load()
        manifest.carry_forward("b")

        ops = manifest.compute_deletions()

        assert ops.removed_slugs == ["a"]
        assert [c.path for c in ops.paths_to_delete] == [
            f"{ROOT}/a/index.md",
            f"{ROOT}/a/x.png",
        ]

    async def test_malformed_entry_keeps_deletion_tracking(self, fake_store, manifest):
        _seed(
            fake_store,
            {
                "a": _post("a", [f"{ROOT}/a/x.png"]),
                "broken": ["not", "a", "post"],
                "b": _post("b"),
            },
        )
        await manifest.load()
        manifest.carry_forward("b")

        ops = manifest.compute_deletions()

        assert ops.removed_slugs == ["a"]
        assert [c.path for c in ops.paths_to_delete] == [
            f"{ROOT}/a/index.md",
            f"{ROOT}/a/x.png",
        ]

    async def test_paths_outside_content_root_are_refused(self, fake_store, manifest):
        _seed(
            fake_store,
            {
                "evil": {
                    "vaultPath": "evil.md",
                    "repoPath": "README.md",
                    "assets": [
                        "src/content/posts-old/x.png",
                        f"{ROOT}/../../package.json",
                        f"{ROOT}/evil/ok.png",
                    ],
                    "contentSha": "s",
                }
            },
        )
        await manifest.load()

        ops = manifest.compute_deletions()

        assert [c.path for c in ops.paths_to_delete] == [f"{ROOT}/evil/ok.png"]
        assert ops.removed_slugs == ["evil"]

    async def test_result_independent_of_registration_order(self, fake_store):
        posts = {s: _post(s) for s in ("a", "b", "c")}

        results = []
        for order in (["a", "c"], ["c", "a"]):
            _seed(fake_store, posts)
            m = SyncManifest(fake_store, ROOT)
            await m.load()
            for slug in order:
                m.register_published(
                    slug, f"posts/{slug}/index.md", f"{ROOT}/{slug}/index.md", [], "s"
                )
            results.append(m.compute_deletions())

        assert results[0] == results[1]
        assert results[0].removed_slugs == ["b"]


class TestExecuteDeletions:
    async def test_deletes_existing_files(self, fake_store, manifest):
        fake_store.files[f"{ROOT}/a/index.md"] = b"x"
        fake_store.files[f"{ROOT}/a/x.png"] = b"y"
        _seed(fake_store, {"a": _post("a", [f"{ROOT}/a/x.png"])})
        await manifest.load()

        count = await manifest.execute_deletions(manifest.compute_deletions())

        assert count == 2
        assert fake_store.deletes == [f"{ROOT}/a/index.md", f"{ROOT}/a/x.png"]

    async def test_already_gone_is_skipped(self, fake_store, manifest):
        _seed(fake_store, {"a": _post("a")})
        await manifest.load()

        count = await manifest.execute_deletions(manifest.compute_deletions())

        assert count == 0
        assert fake_store.deletes == []

    async def test_failure_does_not_stop_the_rest(self, fake_store, manifest):
        first = f"{ROOT}/a/index.md"
        second = f"{ROOT}/a/x.png"
        fake_store.files[first] = b"x"
        fake_store.files[second] = b"y"
        fake_store.fail_deletes.add(first)
        _seed(fake_store, {"a": _post("a", [second])})
        await manifest.load()

        count = await manifest.execute_deletions(manifest.compute_deletions())

        assert count == 1
        assert fake_store.deletes == [second]
        assert first in fake_store.files
