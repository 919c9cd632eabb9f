import pytest

from imgspec.BUILDERS.build_context import BuildContext, IgnoreRules
from imgspec.errors import BuildError


@pytest.fixture
def context(tmp_path):
    root = tmp_path / "ctx"
    (root / "src" / "pkg").mkdir(parents=True)
    (root / "src" / "pkg" / "mod.py").write_text("x = 1\n")
    (root / "src" / "util.py").write_text("y = 2\n")
    (root / "main.py").write_text("print('hi')\n")
    (root / "notes.md").write_text("notes\n")
    (root / "__pycache__").mkdir()
    (root / "__pycache__" / "main.cpython-39.pyc").write_bytes(b"\0")
    (root / ".dockerignore").write_text("# build junk\n__pycache__\n*.md\n!README.md\n")
    (root / "README.md").write_text("readme\n")
    return root


def test_files_honour_dockerignore(context):
    files = BuildContext(str(context)).files()
    assert files == [".dockerignore", "README.md", "main.py", "src/pkg/mod.py", "src/util.py"]


def test_ignore_rules():
    rules = IgnoreRules(["**/*.log", "build/", "!build/keep.txt", "/secret"])
    assert rules.is_ignored("a/b/c.log")
    assert rules.is_ignored("top.log")
    assert rules.is_ignored("build/out/x.bin")
    assert not rules.is_ignored("build/keep.txt")
    assert rules.is_ignored("secret")
    assert not rules.is_ignored("src/secret.py")


def test_resolve_whole_context(context):
    pairs = BuildContext(str(context)).resolve(".")
    assert ("main.py", "main.py") in pairs
    assert ("src/pkg/mod.py", "src/pkg/mod.py") in pairs


def test_resolve_directory_copies_contents(context):
    pairs = BuildContext(str(context)).resolve("src")
    assert sorted(pairs) == [("src/pkg/mod.py", "pkg/mod.py"), ("src/util.py", "util.py")]


def test_resolve_single_file_and_wildcard(context):
    ctx = BuildContext(str(context))
    assert ctx.resolve("./main.py") == [("main.py", "main.py")]
    assert ctx.is_single_file("main.py")
    assert not ctx.is_single_file("src")
    assert ctx.resolve("src/*.py") == [("src/util.py", "util.py")]


@pytest.mark.parametrize("source", ["../outside", "/etc/passwd", "missing.py", "*.txt", "notes.md"])
def test_resolve_rejects_sources(context, source):
    with pytest.raises(BuildError):
        BuildContext(str(context)).resolve(source)


def test_digest_tracks_content(context):
    first = BuildContext(str(context)).digest()
    assert BuildContext(str(context)).digest() == first

    (context / "notes.md").write_text("ignored files do not count\n")
    assert BuildContext(str(context)).digest() == first

    (context / "main.py").write_text("print('changed')\n")
    assert BuildContext(str(context)).digest() != first


def test_missing_context_raises(tmp_path):
    with pytest.raises(BuildError):
        BuildContext(str(tmp_path / "nope"))
