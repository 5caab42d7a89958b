"""Tests for treelens.tree_builder."""

from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest

from tests._fixtures.tree_fixture import TreeFixture, relative_paths
from treelens.diagnostics import DiagnosticCollector, DiagnosticKind
from treelens.models import BuildOptions, NodeKind
from treelens.tree_builder import RootUnavailable, TreeBuilder, build_ignore_rule, should_ignore

_IS_ROOT = hasattr(os, "geteuid") and os.geteuid() == 0


def test_depth_one_cuts_off_subdirectory(sample_tree: TreeFixture) -> None:
    tree = sample_tree.build(max_depth=1)

    assert relative_paths(tree) == {".", "a.txt", "b.jpg", "sub"}
    assert len(tree) == 4
    sub = tree.find("sub")
    assert sub is not None and sub.kind is NodeKind.DIRECTORY
    assert tree.children(sub) == ()


def test_type_filter_keeps_directories(sample_tree: TreeFixture) -> None:
    shallow = sample_tree.build(type_filters=["txt"], max_depth=1)
    assert relative_paths(shallow) == {".", "a.txt", "sub"}

    deep = sample_tree.build(type_filters=[".TXT"], max_depth=2)
    assert relative_paths(deep) == {".", "a.txt", "sub", "sub/c.txt"}


def test_depth_bound_holds_for_every_node(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({"l1/l2/l3/l4/deep.txt": "x", "l1/top.txt": "y"})
    for max_depth in range(0, 6):
        tree = tree_fixture.build(max_depth=max_depth)
        assert all(node.depth <= max_depth for node in tree.iter_nodes())
        for node in tree.directories():
            if node.depth == max_depth:
                assert tree.children(node) == ()


def test_max_depth_zero_yields_only_root(sample_tree: TreeFixture) -> None:
    tree = sample_tree.build(max_depth=0)
    assert len(tree) == 1
    assert tree.root.depth == 0


def test_ignore_prunes_whole_subtrees(tree_fixture: TreeFixture) -> None:
    tree_fixture.write(
        {
            "src/app.py": "",
            "src/build/out.o": "",
            "node_modules/pkg/index.js": "",
            "docs/notes.log": "",
            "docs/guide.md": "",
        }
    )
    tree = tree_fixture.build(ignore=["node_modules", "*.log", "src/build"])
    paths = relative_paths(tree)

    assert "src/app.py" in paths
    assert "docs/guide.md" in paths
    for path in paths:
        assert not path.startswith("node_modules")
        assert not path.startswith("src/build")
        assert not path.endswith(".log")


def test_ignore_rule_variants() -> None:
    dir_only = build_ignore_rule("cache/")
    assert dir_only is not None
    assert dir_only.matches("a/cache", is_dir=True)
    assert not dir_only.matches("a/cache", is_dir=False)

    anchored = build_ignore_rule("/dist")
    assert anchored is not None
    assert anchored.matches("dist", is_dir=True)
    assert not anchored.matches("pkg/dist", is_dir=True)

    rules = [build_ignore_rule("*.txt"), build_ignore_rule("!keep.txt")]
    assert should_ignore("notes.txt", False, rules)  # type: ignore[arg-type]
    assert not should_ignore("keep.txt", False, rules)  # type: ignore[arg-type]
    assert build_ignore_rule("   ") is None


def test_type_filter_only_admits_matching_files(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({"a.py": "", "b.md": "", "pkg/c.py": "", "pkg/d.json": "", "README": ""})
    tree = tree_fixture.build(type_filters=["py"])

    files = list(tree.files())
    assert files
    assert all(node.extension == "py" for node in files)
    assert tree.find("pkg") is not None


def test_prune_empty_dirs_drops_directories_without_matches(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({"keep/a.py": "", "drop/b.md": "", "nested/inner/c.py": ""})
    tree_fixture.mkdirs(["empty"])

    kept = tree_fixture.build(type_filters=["py"])
    assert {"drop", "empty"} <= relative_paths(kept)

    pruned = tree_fixture.build(type_filters=["py"], prune_empty_dirs=True)
    paths = relative_paths(pruned)
    assert "drop" not in paths
    assert "empty" not in paths
    assert {"keep/a.py", "nested", "nested/inner", "nested/inner/c.py"} <= paths


def test_sizes_recorded_for_files(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({"five.txt": "12345"})
    tree = tree_fixture.build()
    node = tree.find("five.txt")
    assert node is not None and node.size == 5
    assert tree.root.size is None


def test_shape_invariant_on_built_tree(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({"a/b/c.txt": "", "a/d.txt": "", "e/f/g/h.txt": "", "i.txt": ""})
    tree = tree_fixture.build()

    nodes = list(tree.iter_nodes())
    assert [node for node in nodes if tree.parent(node) is None] == [tree.root]
    assert len(list(tree.edges())) == len(nodes) - 1
    for node in nodes[1:]:
        assert node.depth == tree.parent(node).depth + 1  # type: ignore[union-attr]


def test_respect_gitignore(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({".gitignore": "build/\n*.tmp\n", "build/x.txt": "", "a.tmp": "", "a.txt": ""})

    plain = tree_fixture.build()
    assert "build/x.txt" in relative_paths(plain)

    filtered = relative_paths(tree_fixture.build(respect_gitignore=True))
    assert "build" not in filtered
    assert "a.tmp" not in filtered
    assert "a.txt" in filtered


def test_missing_root_raises_root_unavailable(tmp_path: Path) -> None:
    diagnostics = DiagnosticCollector()
    missing = tmp_path / "missing"

    with pytest.raises(RootUnavailable) as info:
        TreeBuilder().build(missing, diagnostics=diagnostics)

    assert str(missing) in str(info.value)
    assert diagnostics.of_kind(DiagnosticKind.ROOT_UNAVAILABLE)
    assert info.value.diagnostics


def test_file_root_yields_single_node(tmp_path: Path) -> None:
    target = tmp_path / "lonely.txt"
    target.write_text("abc", encoding="utf-8")

    tree = TreeBuilder().build(target)

    assert len(tree) == 1
    assert tree.root.kind is NodeKind.FILE
    assert tree.root.size == 3


@pytest.mark.skipif(sys.platform.startswith("win"), reason="symlinks need privileges on Windows")
def test_broken_symlink_is_skipped_with_diagnostic(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({"ok.txt": ""})
    os.symlink(tree_fixture.path() / "nowhere", tree_fixture.path() / "dangling.txt")
    diagnostics = DiagnosticCollector()

    tree = TreeBuilder().build(tree_fixture.path(), diagnostics=diagnostics)

    assert relative_paths(tree) == {".", "ok.txt"}
    skipped = diagnostics.of_kind(DiagnosticKind.ENTRY_SKIPPED)
    assert len(skipped) == 1
    assert skipped[0].subject.endswith("dangling.txt")


@pytest.mark.skipif(sys.platform.startswith("win"), reason="symlinks need privileges on Windows")
def test_symlinked_directory_cycle_is_not_followed_twice(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({"pkg/a.txt": ""})
    os.symlink(tree_fixture.path(), tree_fixture.path() / "pkg" / "loop")
    diagnostics = DiagnosticCollector()

    not_followed = TreeBuilder().build(tree_fixture.path(), diagnostics=diagnostics)
    loop = not_followed.find("pkg/loop")
    assert loop is not None and not_followed.children(loop) == ()

    followed = TreeBuilder(BuildOptions(follow_symlinks=True)).build(
        tree_fixture.path(), diagnostics=diagnostics
    )
    assert "pkg/loop" not in relative_paths(followed)
    assert diagnostics.of_kind(DiagnosticKind.ENTRY_SKIPPED)


@pytest.mark.skipif(
    _IS_ROOT or sys.platform.startswith("win"), reason="permission bits are not enforced"
)
def test_unreadable_directory_is_skipped(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({"open/a.txt": "", "locked/b.txt": ""})
    locked = tree_fixture.path() / "locked"
    locked.chmod(0)
    diagnostics = DiagnosticCollector()
    try:
        tree = TreeBuilder().build(tree_fixture.path(), diagnostics=diagnostics)
    finally:
        locked.chmod(0o755)

    paths = relative_paths(tree)
    assert "open/a.txt" in paths
    assert "locked" not in paths
    assert [item.subject for item in diagnostics.of_kind(DiagnosticKind.ENTRY_SKIPPED)] == [
        locked.resolve().as_posix()
    ]


def test_build_options_normalise_inputs() -> None:
    options = BuildOptions.create(ignore=[" .git ", ""], type_filters=[".PY", " md", ""], max_depth=None)
    assert options.ignore == (".git",)
    assert options.type_filters == frozenset({"py", "md"})
    assert options.max_depth == 1000

    with pytest.raises(ValueError):
        BuildOptions(max_depth=-1)


def test_slash_fragment_matches_at_any_depth(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({"a/gen/out/x.txt": "", "gen/out/y.txt": "", "a/gen/keep.txt": ""})

    paths = relative_paths(tree_fixture.build(ignore=["gen/out"]))

    assert "a/gen/out" not in paths
    assert "gen/out" not in paths
    assert "a/gen/keep.txt" in paths


def test_anchored_fragment_only_matches_from_root(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({"a/gen/out/x.txt": "", "gen/out/y.txt": ""})

    paths = relative_paths(tree_fixture.build(ignore=["/gen/out"]))

    assert "gen/out" not in paths
    assert "a/gen/out/x.txt" in paths


def test_absolute_ignore_path_below_root(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({"keep.txt": "", "sub/x.txt": "", "other/sub/y.txt": ""})
    absolute = (tree_fixture.path() / "sub").as_posix()

    paths = relative_paths(tree_fixture.build(ignore=[absolute]))

    assert paths == {".", "keep.txt", "other", "other/sub", "other/sub/y.txt"}


def test_gitignore_slash_patterns_are_relative_to_root(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({".gitignore": "gen/out\n", "gen/out/x.txt": "", "a/gen/out/y.txt": ""})

    paths = relative_paths(tree_fixture.build(respect_gitignore=True))

    assert "gen/out" not in paths
    assert "a/gen/out/y.txt" in paths


def test_unreadable_gitignore_is_reported(tree_fixture: TreeFixture) -> None:
    tree_fixture.write({"a.txt": ""})
    (tree_fixture.path() / ".gitignore").write_bytes(b"\xff\xfebuild/\n")
    diagnostics = DiagnosticCollector()

    tree = TreeBuilder(BuildOptions(respect_gitignore=True)).build(
        tree_fixture.path(), diagnostics=diagnostics
    )

    assert tree.find("a.txt") is not None
    [diagnostic] = diagnostics.of_kind(DiagnosticKind.ENTRY_SKIPPED)
    assert diagnostic.subject.endswith("/.gitignore")
    assert "cannot read ignore file" in diagnostic.message


def test_build_options_accept_single_strings() -> None:
    options = BuildOptions.create(ignore=".git", type_filters="py")

    assert options.ignore == (".git",)
    assert options.type_filters == frozenset({"py"})
