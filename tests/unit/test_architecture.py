"""Unit tests for architecture classification."""

import pytest

from repolens.analyzers.architecture import (
    PATTERN_COMPONENT_BASED,
    PATTERN_EVENT_DRIVEN,
    PATTERN_LAYERED,
    PATTERN_MICROSERVICES,
    ArchitectureClassifier,
    classify_architecture,
    component_key,
    component_name,
    infer_component_type,
)
from repolens.analyzers.import_graph import build_import_graph
from repolens.models.architecture import DEFAULT_PATTERN, ComponentType, LayerType
from repolens.models.catalog import FileRecord
from repolens.models.report import FileQuality


class TestComponentTypeInference:
    """Tests for infer_component_type()."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("frontend/app.js", ComponentType.FRONTEND),
            ("src/components/Button", ComponentType.FRONTEND),
            ("server/index.js", ComponentType.BACKEND),
            ("src/controllers", ComponentType.BACKEND),
            ("app/models", ComponentType.DATABASE),
            ("src/db", ComponentType.DATABASE),
            ("app/services", ComponentType.SERVICE),
            ("src/api", ComponentType.API),
            ("src/middleware", ComponentType.MIDDLEWARE),
            ("tests/unit", ComponentType.TEST),
            ("src/utils", ComponentType.UTIL),
        ],
    )
    def test_path_markers(self, path: str, expected: ComponentType) -> None:
        """Test path markers select the expected type."""
        assert infer_component_type(path) is expected

    def test_first_rule_wins(self) -> None:
        """Test a path matching several rules takes the earliest one."""
        assert infer_component_type("frontend/services") is ComponentType.FRONTEND

    def test_config_by_extension(self) -> None:
        """Test config extensions classify as config."""
        assert infer_component_type("deploy", {".yaml"}) is ComponentType.CONFIG

    def test_frontend_by_extension(self) -> None:
        """Test JSX/TSX files without markers classify as frontend."""
        assert infer_component_type("src/App.tsx") is ComponentType.FRONTEND

    def test_default_is_service(self) -> None:
        """Test paths without markers default to service."""
        assert infer_component_type("src/index.ts") is ComponentType.SERVICE


class TestGrouping:
    """Tests for component keys and names."""

    def test_component_key_depths(self) -> None:
        """Test the grouping key for shallow and deep files."""
        assert component_key("main.py") == "main.py"
        assert component_key("src/main.py") == "src/main.py"
        assert component_key("src/api/users.py") == "src/api"
        assert component_key("src/api/v1/users.py") == "src/api/v1"
        assert component_key("src/api/v1/admin/users.py") == "src/api/v1"

    def test_component_name(self) -> None:
        """Test names are title-cased from the last segment."""
        assert component_name("src/user-service.ts") == "User Service"
        assert component_name("app/data_access") == "Data Access"
        assert component_name("src/.env") == ".env"


class TestArchitectureClassifier:
    """Tests for ArchitectureClassifier."""

    @pytest.fixture
    def analysis(self, sample_files: list[FileRecord]):
        """Classify the code files of the sample catalog with their import graph."""
        code = [r for r in sample_files if r.path.endswith((".ts", ".py"))]
        graph = build_import_graph(code)
        return classify_architecture(code, graph)

    def test_components_from_sample(self, analysis) -> None:
        """Test sample files group into the expected components."""
        paths = [c.path for c in analysis.components]

        assert paths == ["app/models", "app/services", "src/index.ts", "src/util.ts"]

    def test_every_component_in_exactly_one_layer(self, analysis) -> None:
        """Test layers partition the components."""
        layered = [c.id for layer in analysis.layers for c in layer.components]

        assert sorted(layered) == sorted(c.id for c in analysis.components)
        assert len(layered) == len(set(layered))

    def test_layers_follow_types(self, analysis) -> None:
        """Test each component sits in the layer its type maps to."""
        for layer in analysis.layers:
            for component in layer.components:
                assert component.layer is layer.type

        assert [layer.type for layer in analysis.layers] == [
            LayerType.BUSINESS,
            LayerType.DATA,
            LayerType.INFRASTRUCTURE,
        ]

    def test_dependency_lifted_from_file_edge(self, analysis) -> None:
        """Test index.ts -> util.ts becomes a component dependency."""
        deps = {(d.source, d.target) for d in analysis.dependencies}

        assert ("src_index_ts", "src_util_ts") in deps
        index = analysis.get_component("src_index_ts")
        assert index is not None
        assert "src_util_ts" in index.dependencies

    def test_no_self_dependencies(self, analysis) -> None:
        """Test component dependencies never point at their source."""
        assert all(d.source != d.target for d in analysis.dependencies)

    def test_patterns_never_empty(self, analysis) -> None:
        """Test the default pattern is used when nothing matches."""
        assert analysis.patterns == [DEFAULT_PATTERN]

    def test_mermaid_and_summary(self, analysis) -> None:
        """Test a diagram and a rule-based summary are produced."""
        assert analysis.mermaid.startswith("graph TB")
        assert "Total Components: 4" in analysis.summary

    def test_files_without_content_are_ignored(self) -> None:
        """Test unfetched files do not form components."""
        files = [FileRecord(path="src/big.ts"), FileRecord(path="src/small.ts", content="x")]

        analysis = classify_architecture(files)

        assert [c.path for c in analysis.components] == ["src/small.ts"]

    def test_complexity_from_quality(self) -> None:
        """Test component complexity averages its files' complexity."""
        files = [
            FileRecord(path="src/api/a.ts", content="a"),
            FileRecord(path="src/api/b.ts", content="b"),
        ]
        quality = {
            "src/api/a.ts": FileQuality(path="src/api/a.ts", complexity=4),
            "src/api/b.ts": FileQuality(path="src/api/b.ts", complexity=8),
        }

        analysis = ArchitectureClassifier().classify(files, None, quality)

        assert analysis.components[0].complexity == 6

    def test_empty_catalog(self) -> None:
        """Test an empty catalog still yields a pattern and a summary."""
        analysis = classify_architecture([])

        assert analysis.components == []
        assert analysis.patterns == [DEFAULT_PATTERN]
        assert "No analyzable source components" in analysis.summary


class TestPatternDetection:
    """Tests for architectural pattern detection."""

    def test_layered(self) -> None:
        """Test frontend + backend + database is layered."""
        files = [
            FileRecord(path="frontend/app.js", content="x"),
            FileRecord(path="backend/server.js", content="x"),
            FileRecord(path="database/schema.js", content="x"),
        ]

        assert PATTERN_LAYERED in classify_architecture(files).patterns

    def test_microservices(self) -> None:
        """Test three or more service components."""
        files = [FileRecord(path=f"services/svc{i}/main.go", content="x") for i in range(3)]

        assert PATTERN_MICROSERVICES in classify_architecture(files).patterns

    def test_component_based(self) -> None:
        """Test five or more frontend components."""
        files = [FileRecord(path=f"src/Widget{i}.tsx", content="x") for i in range(5)]

        assert PATTERN_COMPONENT_BASED in classify_architecture(files).patterns

    def test_event_driven(self) -> None:
        """Test event markers in content."""
        files = [FileRecord(path="src/bus.js", content="bus.emit('ready');")]

        assert PATTERN_EVENT_DRIVEN in classify_architecture(files).patterns
