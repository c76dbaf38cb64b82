"""Tests for installation targets, project systems and the solution loader."""

import pytest

from common.errors import SchemaError
from repository.local import LocalRepository
from resolution.models import PackageIdentity
from targets.installation_target import Project, Solution, TargetKind
from targets.loader import build_solution, load_solution
from targets.project_system import InMemoryProjectSystem, PhysicalProjectSystem, reference_name


def make_project(name, framework=None):
    return Project(name, InMemoryProjectSystem(framework), LocalRepository())


class TestInstallationTargets:
    """Test the project/solution hierarchy."""

    def test_solution_yields_itself_then_projects(self):
        web, core = make_project("Web"), make_project("Core")
        solution = Solution("Shop", LocalRepository(), [web, core])
        assert list(solution.get_all_targets_recursively()) == [solution, web, core]

    def test_project_yields_only_itself(self):
        web = make_project("Web")
        assert list(web.get_all_targets_recursively()) == [web]

    def test_owner_solution(self):
        web = make_project("Web")
        assert web.owner_solution is None
        solution = Solution("Shop", LocalRepository(), [web])
        assert web.owner_solution is solution
        assert solution.owner_solution is solution

    def test_project_belongs_to_one_solution(self):
        web = make_project("Web")
        Solution("One", LocalRepository(), [web])
        with pytest.raises(ValueError):
            Solution("Two", LocalRepository(), [web])

    def test_kinds_and_frameworks(self):
        web = make_project("Web", "net45")
        solution = Solution("Shop", LocalRepository(), [web])
        assert web.kind == TargetKind.PROJECT and not web.is_solution
        assert solution.kind == TargetKind.SOLUTION and solution.is_solution
        assert web.target_framework == "net45"
        assert solution.target_framework is None

    def test_find_target(self):
        web = make_project("Web")
        solution = Solution("Shop", LocalRepository(), [web])
        assert solution.find_target("web") is web
        assert solution.find_target("SHOP") is solution
        assert solution.find_target("Other") is None


class TestInMemoryProjectSystem:
    """Test the in-memory project system."""

    def test_references(self):
        system = InMemoryProjectSystem("net45")
        system.add_reference("lib/net45/Foo.Bar.dll")
        assert system.reference_exists("foo.bar")
        assert system.get_references() == ["lib/net45/Foo.Bar.dll"]
        system.remove_reference("Foo.Bar")
        assert not system.reference_exists("Foo.Bar")

    def test_files(self):
        system = InMemoryProjectSystem()
        system.add_file("scripts\\app.js", "x")
        assert system.file_exists("scripts/app.js")
        assert system.read_file("scripts/app.js") == "x"
        system.delete_file("scripts/app.js")
        assert not system.file_exists("scripts/app.js")
        with pytest.raises(FileNotFoundError):
            system.read_file("scripts/app.js")

    def test_reference_name(self):
        assert reference_name("lib\\net45\\A.B.dll") == "A.B"


class TestPhysicalProjectSystem:
    """Test the directory-backed project system."""

    def test_files_and_empty_directory_pruning(self, tmp_path):
        system = PhysicalProjectSystem(str(tmp_path / "Web"), "net45")
        system.add_file("Content/Scripts/app.js", "alert(1)")
        assert (tmp_path / "Web" / "Content" / "Scripts" / "app.js").read_text(encoding="utf-8") == "alert(1)"
        assert system.read_file("Content/Scripts/app.js") == "alert(1)"

        system.delete_file("Content/Scripts/app.js")
        assert not (tmp_path / "Web" / "Content").exists()
        assert (tmp_path / "Web").exists()

    def test_references_persisted(self, tmp_path):
        system = PhysicalProjectSystem(str(tmp_path))
        system.add_reference("lib/A.dll")
        system.add_reference("lib/B.dll")
        system.add_reference("lib/net45/A.dll")

        again = PhysicalProjectSystem(str(tmp_path))
        assert again.get_references() == ["lib/B.dll", "lib/net45/A.dll"]
        again.remove_reference("a")
        assert not again.reference_exists("A")
        assert again.reference_exists("B")


class TestSolutionLoader:
    """Test building solutions from documents."""

    DOC = {
        "name": "Shop",
        "target_framework": "net45",
        "packages": [{"id": "Tools", "version": "1.0"}],
        "projects": [
            {"name": "Web", "target_framework": "net472", "packages": [{"id": "B", "version": "0.9"}]},
            {"name": "Core"},
        ],
    }

    def test_in_memory(self):
        solution = build_solution(self.DOC)
        web, core = solution.projects
        assert solution.repository.is_installed("Tools", "1.0")
        assert web.target_framework == "net472"
        assert core.target_framework == "net45"
        assert web.repository.get_installed_packages() == [PackageIdentity.create("B", "0.9")]
        assert web.repository.get_dependencies(PackageIdentity.create("B", "0.9")) is None
        assert isinstance(web.project_system, InMemoryProjectSystem)

    def test_workspace_prefers_state_on_disk(self, tmp_path):
        (tmp_path / "Web").mkdir()
        (tmp_path / "Web" / "packages.config").write_text(
            '<packages><package id="B" version="1.0"/></packages>', encoding="utf-8"
        )
        solution = build_solution(self.DOC, workspace=str(tmp_path))
        web = solution.projects[0]
        assert isinstance(web.project_system, PhysicalProjectSystem)
        assert web.repository.get_installed_packages() == [PackageIdentity.create("B", "1.0")]
        assert (tmp_path / "packages" / "packages.config").exists()

    def test_load_from_yaml(self, tmp_path):
        path = tmp_path / "solution.yml"
        path.write_text("name: Shop\nprojects:\n  - name: Web\n", encoding="utf-8")
        solution = load_solution(str(path))
        assert [p.name for p in solution.projects] == ["Web"]

    def test_schema_violation(self):
        with pytest.raises(SchemaError):
            build_solution({"projects": []})
