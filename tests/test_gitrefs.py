from pathlib import Path

from llvm_src.gitrefs import read_head


def test_detached_head_is_returned_as_is(tmp_path: Path) -> None:
    _write(tmp_path / ".git" / "HEAD", "a" * 40)

    assert read_head(tmp_path) == "a" * 40


def test_branch_head_resolves_loose_and_packed_refs(tmp_path: Path) -> None:
    _write(tmp_path / ".git" / "HEAD", "ref: refs/heads/main")
    _write(tmp_path / ".git" / "packed-refs", f"# pack-refs\n{'b' * 40} refs/heads/main")

    assert read_head(tmp_path) == "b" * 40

    _write(tmp_path / ".git" / "refs" / "heads" / "main", "c" * 40)
    assert read_head(tmp_path) == "c" * 40


def test_missing_or_malformed_head_is_none(tmp_path: Path) -> None:
    assert read_head(tmp_path) is None

    _write(tmp_path / ".git" / "HEAD", "not-a-commit")
    assert read_head(tmp_path) is None


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text + "\n", encoding="utf-8")
