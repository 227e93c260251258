from pathlib import Path
from unittest.mock import MagicMock

import pytest

from agentic_pipeline.capabilities.edit_applier import WorkspaceEditApplier
from agentic_pipeline.capabilities.repo_indexer import RepoIndexer
from agentic_pipeline.models import (
    FileAnalysis,
    GeneratedTestResult,
    PipelineConfiguration,
)
from fakes import (
    APP_SOURCE,
    APP_TEST_SOURCE,
    CORRECTION_RESPONSE,
    DOCUMENTATION_RESPONSE,
    IMPLEMENTATION_RESPONSE,
    PLAN_RESPONSE,
    FakeChecker,
    FakeCompletion,
    FakeRepository,
    vector_for,
)


@pytest.fixture
def workspace(tmp_path) -> Path:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text(APP_SOURCE, encoding="utf-8")
    (tmp_path / "tests").mkdir()
    (tmp_path / "tests" / "test_app.py").write_text(APP_TEST_SOURCE, encoding="utf-8")
    return tmp_path


@pytest.fixture
def fake_repository() -> FakeRepository:
    return FakeRepository(
        analyses=[
            FileAnalysis(
                file_path="src/app.py",
                language="python",
                size=len(APP_SOURCE),
                line_count=2,
                complexity=1.0,
                structure={"function": 1},
            )
        ],
        imports={"src/app.py": []},
        dependents={"src/app.py": ["src/cli.py"]},
    )


@pytest.fixture
def fake_completion() -> FakeCompletion:
    return FakeCompletion(
        planning=PLAN_RESPONSE,
        implementation=IMPLEMENTATION_RESPONSE,
        documentation=DOCUMENTATION_RESPONSE,
        correction=CORRECTION_RESPONSE,
    )


@pytest.fixture
def passing_suite_runner() -> MagicMock:
    runner = MagicMock()
    runner.run_tests.side_effect = lambda cases, changes=(): [
        GeneratedTestResult(name=case.name, passed=True, output="ok") for case in cases
    ]
    return runner


@pytest.fixture
def make_pipeline(workspace, fake_repository, passing_suite_runner):
    """Factory for an inline AgenticPipeline over the test workspace."""
    from agentic_pipeline.pipeline.service import AgenticPipeline

    def _make(completion, config=None, checker=None, suite_runner=None, **kwargs):
        kwargs.setdefault("background", False)
        return AgenticPipeline(
            completion=completion,
            repository=fake_repository,
            checker=checker or FakeChecker(),
            applier=WorkspaceEditApplier(str(workspace), check_with_git=False),
            suite_runner=suite_runner or passing_suite_runner,
            workspace_root=str(workspace),
            config=config or PipelineConfiguration(),
            **kwargs,
        )

    return _make


@pytest.fixture
def mock_openai_client():
    """Mock OpenAI client that returns engineered vectors based on input text."""
    def create_embeddings(**kwargs):
        embeddings = []
        for i, text in enumerate(kwargs.get("input", [])):
            embedding_obj = MagicMock()
            embedding_obj.embedding = vector_for(text)
            embedding_obj.index = i
            embeddings.append(embedding_obj)
        response = MagicMock()
        response.data = embeddings
        return response

    mock_client = MagicMock()
    mock_client.embeddings.create = MagicMock(side_effect=create_embeddings)
    return mock_client


@pytest.fixture
def chroma_temp_dir(tmp_path):
    return str(tmp_path / "chroma_test")


@pytest.fixture
def embedding_repo(tmp_path) -> Path:
    root = tmp_path / "embedding_repo"
    (root / "src").mkdir(parents=True)
    (root / "src" / "file_ops.py").write_text(
        "def read_file(path):\n    return open(path).read()\n\n\n"
        "def write_file(path, data):\n    open(path, 'w').write(data)\n",
        encoding="utf-8",
    )
    (root / "src" / "strings.py").write_text(
        "def capitalize_words(text):\n    return text.title()\n",
        encoding="utf-8",
    )
    (root / "src" / "loader.py").write_text(
        "class DataLoader:\n    def fetch(self):\n        return []\n",
        encoding="utf-8",
    )
    return root


@pytest.fixture
def sample_repo_index(embedding_repo):
    return RepoIndexer().index(str(embedding_repo))
