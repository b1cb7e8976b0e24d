"""Unit tests for catalog entities and file classification."""

import pytest

from repolens.errors import InvalidRepositoryError
from repolens.models.catalog import (
    FileRecord,
    RepositoryInfo,
    RepositoryRef,
    detect_language,
    is_code_file,
    is_manifest_file,
    is_source_file,
    is_test_file,
)


class TestRepositoryRef:
    """Tests for RepositoryRef.parse()."""

    @pytest.mark.parametrize(
        "identifier",
        [
            "octocat/hello-world",
            "https://github.com/octocat/hello-world",
            "https://github.com/octocat/hello-world/",
            "https://github.com/octocat/hello-world.git",
            "github.com/octocat/hello-world",
            "https://github.com/octocat/hello-world/tree/main/src",
            "git@github.com:octocat/hello-world.git",
        ],
    )
    def test_accepted_forms(self, identifier: str) -> None:
        """Test URL and shorthand spellings parse to the same ref."""
        ref = RepositoryRef.parse(identifier)

        assert ref.owner == "octocat"
        assert ref.name == "hello-world"
        assert ref.full_name == "octocat/hello-world"

    def test_normalized_is_lowercase(self) -> None:
        """Test normalization for cache keys."""
        assert RepositoryRef.parse("OctoCat/Hello").normalized == "octocat/hello"

    @pytest.mark.parametrize(
        "identifier",
        ["", "   ", "octocat", "not a repo", "https://gitlab.com/a/b", "a/b/c/d"],
    )
    def test_malformed(self, identifier: str) -> None:
        """Test malformed identifiers raise InvalidRepositoryError."""
        with pytest.raises(InvalidRepositoryError):
            RepositoryRef.parse(identifier)


class TestFileClassification:
    """Tests for source, code, test and manifest predicates."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("src/index.ts", True),
            ("README.md", True),
            ("package.json", True),
            ("node_modules/lodash/index.js", False),
            ("dist/bundle.js", False),
            ("assets/logo.png", False),
            ("src/app.min.js", False),
            ("src/types.d.ts", False),
            ("vite.config.ts", False),
            ("package-lock.json", False),
            (".eslintrc", False),
            ("requirements.txt", False),
        ],
    )
    def test_is_source_file(self, path: str, expected: bool) -> None:
        """Test source file filtering."""
        assert is_source_file(path) is expected

    def test_code_files_exclude_docs_and_data(self) -> None:
        """Test markdown and JSON are source but not code."""
        assert is_code_file("src/main.py")
        assert not is_code_file("README.md")
        assert not is_code_file("package.json")

    @pytest.mark.parametrize(
        "path",
        [
            "src/app.test.ts",
            "src/__tests__/app.js",
            "tests/test_app.py",
            "pkg/handler_test.go",
            "src/UserServiceTest.java",
        ],
    )
    def test_is_test_file(self, path: str) -> None:
        """Test test-file detection."""
        assert is_test_file(path)

    def test_manifests(self) -> None:
        """Test manifests outside excluded directories."""
        assert is_manifest_file("package.json")
        assert is_manifest_file("services/api/go.mod")
        assert not is_manifest_file("node_modules/x/package.json")
        assert not is_manifest_file("setup.py")

    def test_detect_language(self) -> None:
        """Test extension to language mapping."""
        assert detect_language("a/b.tsx") == "typescript"
        assert detect_language("Dockerfile") == "dockerfile"
        assert detect_language("a/b.unknown") is None


class TestEntities:
    """Tests for FileRecord and RepositoryInfo."""

    def test_file_record_derived_fields(self) -> None:
        """Test name, language and size are derived."""
        record = FileRecord(path="src/app.py", content="print('hi')\n")

        assert record.name == "app.py"
        assert record.language == "python"
        assert record.size == 12
        assert record.directory == "src"
        assert "content" not in record.to_dict()

    def test_repository_info_round_trip(self) -> None:
        """Test from_dict(to_dict()) preserves metadata."""
        info = RepositoryInfo(owner="o", name="r", stars=3, topics=["x"])

        restored = RepositoryInfo.from_dict(info.to_dict())

        assert restored == info
        assert restored.url == "https://github.com/o/r"
