"""Tests for the .gitmodules reader/patcher and the local config view."""

import pytest

from conftest import git
from modkeeper.errors import ConfigParseError, ConflictError, ManifestParseError
from modkeeper.git.superproject import Superproject
from modkeeper.manifest import LocalConfig, Manifest, normalize_path, paths_overlap
from modkeeper.manifest.local_config import parse_bool, split_key
from modkeeper.state.model import SubmoduleSpec

SAMPLE = """\
# managed by hand
[core]
\tbare = false
[submodule "foo"]
\tpath = libs/foo
\turl = https://example.com/foo.git
\tbranch = main
; a comment inside bar
[submodule "bar"]
  path = libs/bar   # trailing comment
  url = "https://example.com/bar.git"
"""


# ── Parsing ──────────────────────────────────────────────────────


class TestParse:

    def test_specs_in_file_order(self):
        manifest = Manifest.parse(SAMPLE)
        assert [s.name for s in manifest] == ["foo", "bar"]
        assert manifest.get("foo") == SubmoduleSpec(
            "foo", "libs/foo", "https://example.com/foo.git", "main",
        )
        assert manifest.get("bar") == SubmoduleSpec(
            "bar", "libs/bar", "https://example.com/bar.git", None,
        )
        assert len(manifest) == 2
        assert "foo" in manifest
        assert "baz" not in manifest

    def test_find_by_path(self):
        manifest = Manifest.parse(SAMPLE)
        assert manifest.find_by_path("libs/bar/").name == "bar"
        assert manifest.find_by_path("libs/baz") is None

    def test_empty_text(self):
        assert len(Manifest.parse("")) == 0

    def test_missing_file_is_empty(self, tmp_path):
        manifest = Manifest.load(tmp_path / ".gitmodules")
        assert len(manifest) == 0
        assert manifest.render() == ""

    def test_quoted_values_and_escapes(self):
        text = '[submodule "odd"]\n\tpath = "dir with space "\n\turl = a\\tb\n'
        spec = Manifest.parse(text).get("odd")
        assert spec.path == "dir with space"
        assert spec.url == "a\tb"

    def test_value_continuation(self):
        text = '[submodule "long"]\n\tpath = libs/long\n\turl = https://example.com/\\\nlong.git\n'
        assert Manifest.parse(text).get("long").url == "https://example.com/long.git"

    def test_legacy_dotted_header(self):
        text = "[submodule.old]\n\tpath = old\n\turl = https://example.com/old.git\n"
        assert Manifest.parse(text).get("old").path == "old"

    def test_name_with_dots_and_slashes(self):
        text = '[submodule "vendor/lib.v2"]\n\tpath = vendor/lib\n\turl = u\n'
        assert Manifest.parse(text).get("vendor/lib.v2").path == "vendor/lib"


class TestParseErrors:

    @pytest.mark.parametrize("text, message", [
        ('[submodule "a"\n\tpath = a\n', "malformed section header"),
        ("path = a\n", "key outside of any section"),
        ('[submodule "a"]\n\t= a\n', "malformed line"),
        ('[submodule "a"]\n\tpath = a\n', "has no url"),
        ('[submodule "a"]\n\turl = u\n', "has no path"),
        ('[submodule "a"]\n\tpath = "a\n\turl = u\n', "unterminated"),
        ('[submodule "a"]\n\tpath = /abs\n\turl = u\n', "relative"),
        ('[submodule "a"]\n\tpath = ../up\n\turl = u\n', "relative"),
    ])
    def test_malformed(self, text, message):
        with pytest.raises(ManifestParseError, match=message):
            Manifest.parse(text, source=".gitmodules")

    def test_duplicate_name_reports_line(self):
        text = (
            '[submodule "a"]\n\tpath = a\n\turl = u\n'
            '[submodule "a"]\n\tpath = b\n\turl = u\n'
        )
        with pytest.raises(ManifestParseError) as exc_info:
            Manifest.parse(text, source=".gitmodules")
        assert exc_info.value.line == 4
        assert str(exc_info.value).startswith(".gitmodules:4:")

    def test_line_counts_comment_above_header(self):
        text = (
            '[submodule "a"]\n\tpath = a\n\turl = u\n'
            "# again\n"
            '[submodule "a"]\n\tpath = b\n\turl = u\n'
        )
        with pytest.raises(ManifestParseError) as exc_info:
            Manifest.parse(text)
        assert exc_info.value.line == 5

    def test_nested_paths_rejected(self):
        text = (
            '[submodule "a"]\n\tpath = libs\n\turl = u\n'
            '[submodule "b"]\n\tpath = libs/b\n\turl = u\n'
        )
        with pytest.raises(ManifestParseError, match="overlaps"):
            Manifest.parse(text)


# ── Editing ──────────────────────────────────────────────────────


class TestEdits:

    def test_untouched_render_is_identical(self):
        assert Manifest.parse(SAMPLE).render() == SAMPLE

    def test_crlf_preserved(self):
        text = SAMPLE.replace("\n", "\r\n")
        manifest = Manifest.parse(text)
        manifest.add(SubmoduleSpec("new", "libs/new", "u"))
        rendered = manifest.render()
        assert rendered.startswith(text)
        assert rendered.endswith('[submodule "new"]\r\n\tpath = libs/new\r\n\turl = u\r\n')

    def test_add_appends_section(self):
        manifest = Manifest.parse(SAMPLE)
        manifest.add(SubmoduleSpec("baz", "libs/baz", "https://example.com/baz.git", "dev"))
        assert manifest.render() == SAMPLE + (
            '[submodule "baz"]\n'
            "\tpath = libs/baz\n"
            "\turl = https://example.com/baz.git\n"
            "\tbranch = dev\n"
        )

    def test_add_to_file_without_final_newline(self):
        manifest = Manifest.parse('[submodule "a"]\n\tpath = a\n\turl = u')
        manifest.add(SubmoduleSpec("b", "b", "v"))
        assert manifest.render() == (
            '[submodule "a"]\n\tpath = a\n\turl = u\n'
            '[submodule "b"]\n\tpath = b\n\turl = v\n'
        )

    def test_add_conflicts(self):
        manifest = Manifest.parse(SAMPLE)
        with pytest.raises(ConflictError, match="already exists"):
            manifest.add(SubmoduleSpec("foo", "elsewhere", "u"))
        with pytest.raises(ConflictError, match="overlaps"):
            manifest.add(SubmoduleSpec("other", "libs/foo", "u"))
        with pytest.raises(ConflictError, match="overlaps"):
            manifest.add(SubmoduleSpec("inner", "libs/foo/inner", "u"))

    def test_update_rewrites_only_changed_lines(self):
        manifest = Manifest.parse(SAMPLE)
        changed = manifest.update(SubmoduleSpec("bar", "libs/bar", "https://example.com/bar.git", "dev"))
        assert changed
        rendered = manifest.render()
        # bar gains a branch line with its own indentation; foo is byte-identical
        assert '  url = "https://example.com/bar.git"\n  branch = dev\n' in rendered
        assert rendered.split('[submodule "bar"]')[0] == SAMPLE.split('[submodule "bar"]')[0]

    def test_update_without_changes(self):
        manifest = Manifest.parse(SAMPLE)
        assert not manifest.update(manifest.get("foo"))
        assert manifest.render() == SAMPLE

    def test_update_removes_branch(self):
        manifest = Manifest.parse(SAMPLE)
        manifest.update(SubmoduleSpec("foo", "libs/foo", "https://example.com/foo.git", None))
        assert "branch" not in manifest.render()
        assert manifest.get("foo").branch is None

    def test_update_missing_name(self):
        with pytest.raises(KeyError):
            Manifest.parse(SAMPLE).update(SubmoduleSpec("nope", "x", "u"))

    def test_remove_keeps_other_sections(self):
        manifest = Manifest.parse(SAMPLE)
        assert manifest.remove("foo")
        assert not manifest.remove("foo")
        assert manifest.render() == (
            "# managed by hand\n"
            "[core]\n"
            "\tbare = false\n"
            "; a comment inside bar\n"
            '[submodule "bar"]\n'
            "  path = libs/bar   # trailing comment\n"
            '  url = "https://example.com/bar.git"\n'
        )

    def test_remove_keeps_comment_above_next_section(self):
        text = (
            '[submodule "a"]\n\tpath = a\n\turl = u\n'
            "# b is vendored from upstream\n"
            '[submodule "b"]\n\tpath = b\n\turl = v\n'
        )
        manifest = Manifest.parse(text)
        manifest.remove("a")
        assert manifest.render() == (
            "# b is vendored from upstream\n"
            '[submodule "b"]\n\tpath = b\n\turl = v\n'
        )

    def test_remove_takes_its_own_comment(self):
        text = (
            '[submodule "a"]\n\tpath = a\n\turl = u\n'
            "\n"
            "; b is pinned\n"
            '[submodule "b"]\n\tpath = b\n\turl = v\n'
            "\n"
            '[submodule "c"]\n\tpath = c\n\turl = w\n'
        )
        manifest = Manifest.parse(text)
        manifest.remove("b")
        assert manifest.render() == (
            '[submodule "a"]\n\tpath = a\n\turl = u\n'
            "\n"
            '[submodule "c"]\n\tpath = c\n\turl = w\n'
        )

    def test_save_and_reload(self, tmp_path):
        target = tmp_path / ".gitmodules"
        target.write_text(SAMPLE)
        manifest = Manifest.load(target)
        manifest.upsert(SubmoduleSpec("foo", "libs/foo", "https://example.com/moved.git", "main"))
        manifest.save()
        reloaded = Manifest.load(target)
        assert reloaded.get("foo").url == "https://example.com/moved.git"
        assert [s.name for s in reloaded] == ["foo", "bar"]

    def test_git_reads_what_we_write(self, tmp_path):
        target = tmp_path / ".gitmodules"
        manifest = Manifest(source=target)
        manifest.add(SubmoduleSpec("odd", "dir/odd", "https://example.com/o.git;x", "main"))
        manifest.save()
        assert git(tmp_path, "config", "-f", str(target), "submodule.odd.url") == (
            "https://example.com/o.git;x"
        )


class TestPaths:

    @pytest.mark.parametrize("raw, expected", [
        ("libs/foo", "libs/foo"),
        ("libs/foo/", "libs/foo"),
        ("./libs//foo", "libs/foo"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_path(raw) == expected

    @pytest.mark.parametrize("raw", ["", "/abs", "a/../../b"])
    def test_normalize_rejects(self, raw):
        with pytest.raises(ValueError):
            normalize_path(raw)

    def test_overlap(self):
        assert paths_overlap("libs", "libs/foo")
        assert paths_overlap("libs/foo", "libs/foo")
        assert not paths_overlap("libs/foo", "libs/foobar")


# ── Local config ─────────────────────────────────────────────────


class TestLocalConfig:

    def test_parse_bool(self):
        assert parse_bool(None)
        assert parse_bool("Yes")
        assert not parse_bool("0")
        with pytest.raises(ConfigParseError):
            parse_bool("maybe")

    def test_split_key(self):
        assert split_key("submodule.foo.url") == ("foo", "url")
        assert split_key("submodule.a.b.c.URL") == ("a.b.c", "url")
        assert split_key("submodule.recurse") is None
        assert split_key("core.bare") is None

    def test_read_after_submodule_add(self, with_foo):
        configs = LocalConfig(Superproject.discover(with_foo)).read()
        assert list(configs) == ["foo"]
        assert configs["foo"].active
        assert configs["foo"].url_override

    def test_empty_config(self, superproject):
        assert LocalConfig(Superproject.discover(superproject)).read() == {}

    def test_url_without_active_counts_as_active(self, superproject):
        git(superproject, "config", "submodule.legacy.url", "https://example.com/l.git")
        configs = LocalConfig(Superproject.discover(superproject)).read()
        assert configs["legacy"].active

    def test_inactive(self, superproject):
        git(superproject, "config", "submodule.off.url", "u")
        git(superproject, "config", "submodule.off.active", "false")
        assert not LocalConfig(Superproject.discover(superproject)).read()["off"].active

    def test_bad_active_value(self, superproject):
        git(superproject, "config", "submodule.bad.active", "sometimes")
        with pytest.raises(ConfigParseError, match="submodule.bad.active"):
            LocalConfig(Superproject.discover(superproject)).read()

    def test_write_and_remove(self, superproject):
        config = LocalConfig(Superproject.discover(superproject))
        config.set_url("x.y", "https://example.com/x.git")
        config.set_branch("x.y", "dev")
        config.set_active("x.y")
        entry = config.read()["x.y"]
        assert (entry.active, entry.url_override, entry.branch_override) == (
            True, "https://example.com/x.git", "dev",
        )
        config.set_branch("x.y", None)
        assert config.read()["x.y"].branch_override is None
        assert config.remove_section("x.y")
        assert not config.remove_section("x.y")
        assert config.read() == {}

    def test_has_section_escapes_name(self, superproject):
        config = LocalConfig(Superproject.discover(superproject))
        config.set_url("a.b", "u")
        assert config.has_section("a.b")
        assert not config.has_section("axb")
