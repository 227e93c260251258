"""Tests for IndexedRepository queries."""

from pathlib import Path

import pytest

from agentic_pipeline.capabilities.repository import (
    IndexedRepository,
    classify_name,
    dominant_style,
)


@pytest.fixture
def repo_root(tmp_path) -> Path:
    files = {
        "src/services/user_service.py": (
            "from ..models.user_model import User\n\n\n"
            "class UserService:\n"
            "    def find_user(self, user_id):\n"
            "        if user_id:\n"
            "            return User()\n"
            "        return None\n\n\n"
            "def load_users():\n"
            "    return []\n"
        ),
        "src/models/user_model.py": "class User:\n    pass\n",
        "src/controllers/user_controller.py": "def show_user():\n    return 1\n",
        "src/views/user_view.py": "def render_user():\n    return ''\n",
    }
    for relative_path, content in files.items():
        path = tmp_path / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    (tmp_path / "requirements.txt").write_text("fastapi>=0.100\n")
    return tmp_path


@pytest.fixture
def repository(repo_root) -> IndexedRepository:
    return IndexedRepository.from_path(str(repo_root))


class TestIndexedRepository:
    def test_analyze_file(self, repository):
        analysis = repository.analyze_file("src/services/user_service.py")
        assert analysis.language == "python"
        assert analysis.structure == {"functions": 1, "classes": 1, "methods": 1, "imports": 1}
        assert analysis.complexity == 2.0
        assert analysis.imports == ["..models.user_model"]

    def test_absolute_paths_accepted(self, repository, repo_root):
        absolute = str(repo_root / "src" / "models" / "user_model.py")
        assert repository.analyze_file(absolute).file_path == "src/models/user_model.py"

    def test_unknown_and_outside_paths(self, repository, tmp_path_factory):
        outside = tmp_path_factory.mktemp("elsewhere") / "x.py"
        assert repository.analyze_file("src/missing.py") is None
        assert repository.analyze_file(str(outside)) is None
        assert repository.file_imports("src/missing.py") == []

    def test_dependents(self, repository):
        assert repository.dependents_of("src/models/user_model.py") == [
            "src/services/user_service.py"
        ]
        assert repository.dependents_of("src/views/user_view.py") == []

    def test_architectural_patterns(self, repository):
        assert repository.architectural_patterns() == [
            "MVC controllers",
            "domain models",
            "model-view-controller",
            "service layer",
            "view layer",
        ]

    def test_naming_conventions(self, repository):
        assert repository.naming_conventions() == {
            "functions": "snake_case",
            "classes": "PascalCase",
            "files": "snake_case",
        }

    def test_summary(self, repository):
        summary = repository.summary()
        assert summary.total_files == 4
        assert summary.total_elements == 6
        assert summary.average_complexity == 1.25

    def test_project_context(self, repository):
        context = repository.project_context()
        assert context.framework == "fastapi"
        assert context.dependencies == {"fastapi": ">=0.100"}
        assert "service layer" in context.architectural_patterns


@pytest.mark.parametrize("name, style", [
    ("load_users", "snake_case"),
    ("loadUsers", "camelCase"),
    ("UserService", "PascalCase"),
    ("user-service", "kebab-case"),
    ("MAX_RETRIES", "UPPER_SNAKE_CASE"),
    ("users", None),
])
def test_classify_name(name, style):
    assert classify_name(name) == style


def test_dominant_style():
    assert dominant_style(["a_b", "c_d", "e_f", "gH"]) == "snake_case"
    assert dominant_style(["a_b", "cD"]) == "mixed"
    assert dominant_style(["x", "y"]) == "unknown"
