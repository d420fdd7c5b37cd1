"""
Tests for the Wall of Apps generator.
"""

import json

import pytest

from appstore_cli.exceptions import ValidationError
from appstore_cli.wallgen import (
    END_MARKER,
    GENERATED_HEADER,
    START_MARKER,
    build_snippet,
    generate,
    main,
    normalize_entry,
    read_entries,
)


@pytest.fixture
def repo(tmp_path):
    """A repository with a source file and a README holding the markers."""
    (tmp_path / "docs").mkdir()
    (tmp_path / "README.md").write_text(
        f"# Project\n\n{START_MARKER}\nold\n{END_MARKER}\n\nFooter\n"
    )

    def write_source(entries):
        (tmp_path / "docs" / "wall-of-apps.json").write_text(json.dumps(entries))
        return tmp_path

    return write_source


def entry(app="Foo", link="https://example.com/foo", creator="Jane", platform=None):
    return {"app": app, "link": link, "creator": creator, "platform": platform or ["iOS"]}


class TestNormalizeEntry:
    """Test validation of source entries."""

    def test_platforms_normalized_and_deduped(self):
        result = normalize_entry(entry(platform=["iOS", "ios", "vision-os", "macOS"]), 1)
        assert result.platform == ["IOS", "VISION_OS", "MAC_OS"]

    @pytest.mark.parametrize("field", ["app", "link", "creator"])
    def test_required_fields(self, field):
        raw = entry()
        raw[field] = "  "
        with pytest.raises(ValidationError, match=f"entry #3: '{field}' is required"):
            normalize_entry(raw, 3)

    def test_invalid_link(self):
        with pytest.raises(ValidationError, match="valid http/https URL"):
            normalize_entry(entry(link="ftp://example.com"), 1)

    def test_empty_platforms(self):
        raw = entry()
        raw["platform"] = []
        with pytest.raises(ValidationError, match="'platform' must be a non-empty array"):
            normalize_entry(raw, 1)

    def test_invalid_platform(self):
        with pytest.raises(ValidationError, match='invalid platform "watchOS"'):
            normalize_entry(entry(platform=["watchOS"]), 1)


class TestReadEntries:
    """Test loading the source file."""

    def test_sorted_case_insensitively(self, repo):
        root = repo([entry(app="beta"), entry(app="Alpha"), entry(app="alpha", link="https://a.example")])
        entries = read_entries(root / "docs" / "wall-of-apps.json")
        assert [(e.app, e.link) for e in entries] == [
            ("alpha", "https://a.example"),
            ("Alpha", "https://example.com/foo"),
            ("beta", "https://example.com/foo"),
        ]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError, match="missing source file"):
            read_entries(tmp_path / "nope.json")

    def test_empty_array(self, repo):
        root = repo([])
        with pytest.raises(ValidationError, match="source file has no entries"):
            read_entries(root / "docs" / "wall-of-apps.json")

    def test_not_an_array(self, repo):
        root = repo({"app": "Foo"})
        with pytest.raises(ValidationError, match="expected an array"):
            read_entries(root / "docs" / "wall-of-apps.json")


class TestGenerate:
    """Test rendering and README sync."""

    def test_snippet_escapes_pipes(self):
        snippet = build_snippet([normalize_entry(entry(app="Foo | Bar", platform=["iOS", "tvOS"]), 1)])
        assert "| Foo \\| Bar | [Open](https://example.com/foo) | Jane | iOS, tvOS |" in snippet

    def test_generate_writes_files(self, repo):
        root = repo([entry()])

        result = generate(root)

        generated = result.generated_path.read_text()
        assert generated.startswith(GENERATED_HEADER)
        readme = result.readme_path.read_text()
        assert "old" not in readme
        assert readme.startswith("# Project\n\n" + START_MARKER + "\n## Wall of Apps")
        assert readme.endswith(END_MARKER + "\n\nFooter\n")
        assert "| Foo |" in readme

    def test_missing_markers(self, repo):
        root = repo([entry()])
        (root / "README.md").write_text("# Project\n")
        with pytest.raises(ValidationError, match="README markers not found"):
            generate(root)

    def test_main_reports_errors(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert main() == 1
        assert "missing source file" in capsys.readouterr().err
