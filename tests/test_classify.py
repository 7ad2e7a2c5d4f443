"""Tests for classification of merged submodule records (no git involved)."""

import pytest

from modkeeper.state import (
    SubmoduleConfig,
    SubmoduleRecord,
    SubmoduleSpec,
    SubmoduleStatus,
    WorkingTreeProbe,
    classify,
    explain,
)

A = "a" * 40
B = "b" * 40

SPEC = SubmoduleSpec("foo", "libs/foo", "https://example.com/foo.git", "main")
ACTIVE = SubmoduleConfig("foo", active=True, url_override="https://example.com/foo.git")
INACTIVE = SubmoduleConfig("foo", active=False)


def probe(**kwargs) -> WorkingTreeProbe:
    defaults = dict(path="libs/foo", index_commit=A)
    defaults.update(kwargs)
    return WorkingTreeProbe(**defaults)


CHECKED_OUT = dict(initialized=True, populated=True, is_repository=True, module_valid=True)


class TestClassify:

    @pytest.mark.parametrize("spec, config, observed, expected", [
        (SPEC, ACTIVE, probe(**CHECKED_OUT, checked_out_commit=A), SubmoduleStatus.UP_TO_DATE),
        (SPEC, ACTIVE, probe(**CHECKED_OUT, checked_out_commit=B), SubmoduleStatus.BEHIND),
        (SPEC, ACTIVE, probe(**CHECKED_OUT, checked_out_commit=None), SubmoduleStatus.BEHIND),
        (SPEC, None, probe(), SubmoduleStatus.UNINITIALIZED),
        (SPEC, INACTIVE, probe(initialized=True), SubmoduleStatus.UNINITIALIZED),
        (SPEC, None, probe(index_commit=None), SubmoduleStatus.UNINITIALIZED),
        (SPEC, ACTIVE, probe(), SubmoduleStatus.NOT_CLONED),
        (SPEC, ACTIVE, probe(initialized=True), SubmoduleStatus.NOT_CLONED),
        (SPEC, ACTIVE, probe(**CHECKED_OUT, checked_out_commit=A, is_dirty=True), SubmoduleStatus.DIRTY),
        (SPEC, ACTIVE, probe(**CHECKED_OUT, checked_out_commit=B, has_untracked=True), SubmoduleStatus.DIRTY),
        (None, ACTIVE, probe(), SubmoduleStatus.ORPHANED),
        (None, None, probe(initialized=True, index_commit=None), SubmoduleStatus.ORPHANED),
        (None, None, probe(index_commit=A), SubmoduleStatus.ORPHANED),
        (None, ACTIVE, probe(**CHECKED_OUT, is_dirty=True), SubmoduleStatus.ORPHANED),
        (None, None, probe(index_commit=None), SubmoduleStatus.UNINITIALIZED),
        (SPEC, ACTIVE, probe(populated=True), SubmoduleStatus.INCONSISTENT),
        (SPEC, INACTIVE, probe(**CHECKED_OUT, checked_out_commit=A), SubmoduleStatus.INCONSISTENT),
        (SPEC, ACTIVE, probe(populated=True, is_repository=True, checked_out_commit=A),
         SubmoduleStatus.INCONSISTENT),
        (SPEC, ACTIVE, probe(**CHECKED_OUT, checked_out_commit=A, index_commit=None),
         SubmoduleStatus.INCONSISTENT),
        (SPEC, ACTIVE, probe(initialized=True, module_valid=True, worktree_path="libs/old"),
         SubmoduleStatus.INCONSISTENT),
        (SPEC, ACTIVE, probe(**CHECKED_OUT, checked_out_commit=A, worktree_path="libs/foo"),
         SubmoduleStatus.UP_TO_DATE),
        (None, ACTIVE, probe(initialized=True, worktree_path="libs/old"), SubmoduleStatus.ORPHANED),
    ])
    def test_decision_table(self, spec, config, observed, expected):
        assert classify(spec, config, observed) is expected

    def test_missing_probe(self):
        assert classify(SPEC, None, None) is SubmoduleStatus.UNINITIALIZED
        assert classify(None, ACTIVE, None) is SubmoduleStatus.ORPHANED

    def test_pure(self):
        observed = probe(**CHECKED_OUT, checked_out_commit=B)
        results = {classify(SPEC, ACTIVE, observed) for _ in range(5)}
        assert results == {SubmoduleStatus.BEHIND}

    def test_status_string(self):
        assert str(SubmoduleStatus.NOT_CLONED) == "NotCloned"


class TestExplain:

    def test_orphan_lists_where_it_was_found(self):
        text = explain(None, ACTIVE, probe(initialized=True))
        assert ".git/config" in text
        assert ".git/modules" in text
        assert "the index" in text

    def test_dirty_kinds(self):
        assert explain(SPEC, ACTIVE, probe(**CHECKED_OUT, is_dirty=True)) == "has local modifications"
        assert explain(SPEC, ACTIVE, probe(**CHECKED_OUT, has_untracked=True)) == "has untracked files"

    def test_non_repository_directory(self):
        assert "not a git repository" in explain(SPEC, ACTIVE, probe(populated=True))

    def test_relocated_names_both_paths(self):
        text = explain(SPEC, ACTIVE, probe(initialized=True, worktree_path="libs/old"))
        assert "libs/foo" in text
        assert "libs/old" in text


class TestProbe:

    def test_relocated(self):
        assert probe(worktree_path="libs/old").relocated
        assert not probe(worktree_path="libs/foo").relocated
        assert not probe().relocated
        assert not probe(path=None, worktree_path="libs/old").relocated


class TestRecord:

    def test_override_wins(self):
        config = SubmoduleConfig("foo", True, url_override="https://mirror/foo.git", branch_override="dev")
        record = SubmoduleRecord("foo", "libs/foo", spec=SPEC, config=config)
        assert record.url == "https://mirror/foo.git"
        assert record.branch == "dev"

    def test_manifest_fallback(self):
        record = SubmoduleRecord("foo", "libs/foo", spec=SPEC, config=INACTIVE)
        assert record.url == SPEC.url
        assert record.branch == "main"

    def test_nameless_label(self):
        record = SubmoduleRecord(None, "vendor/x", probe=probe(path="vendor/x"))
        assert record.label == "vendor/x"
        assert record.status is SubmoduleStatus.ORPHANED
