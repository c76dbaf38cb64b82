"""Tests for applying resolved plans."""

import logging
from unittest.mock import MagicMock

import pytest

from common.errors import ActionApplicationError, ScriptExecutionError
from execution.executor import ActionExecutor
from execution.script_host import ScriptHost
from repository.local import LocalRepository
from repository.source import InMemoryPackageSource
from resolution.models import PackageAction, PackageIdentity
from targets.installation_target import Project, Solution
from targets.project_system import InMemoryProjectSystem


def identity(package_id, version):
    return PackageIdentity.create(package_id, version)


class FailingProjectSystem(InMemoryProjectSystem):
    """In-memory project system that refuses to write one path."""

    def __init__(self, fail_on, target_framework="net45"):
        super().__init__(target_framework)
        self.fail_on = fail_on

    def add_file(self, path, content):
        if path == self.fail_on:
            raise OSError(f"disk full while writing {path}")
        super().add_file(path, content)


@pytest.fixture
def source():
    src = InMemoryPackageSource()
    src.add_package(
        "A",
        "1.0",
        dependencies={"B": "1.0"},
        files={
            "lib/net45/A.dll": "a-net45",
            "lib/netstandard2.0/A.dll": "a-standard",
            "content/Scripts/a.js": "// a 1.0",
            "readme.txt": "Thanks for installing A",
        },
    )
    src.add_package("A", "2.0", files={"lib/net45/A.dll": "a2", "content/Scripts/a.js": "// a 2.0"})
    src.add_package("B", "1.0", files={"lib/net40/B.dll": "b", "content/site.css": "body {}"})
    return src


@pytest.fixture
def project():
    return Project("Web", InMemoryProjectSystem("net45"), LocalRepository())


@pytest.fixture
def host():
    return MagicMock(spec=ScriptHost)


class TestInstallExecution:
    """Test Install actions."""

    def test_install_adds_references_content_and_record(self, source, project, host):
        executor = ActionExecutor(source, host)
        plan = [PackageAction.install(identity("B", "1.0"), project), PackageAction.install(identity("A", "1.0"), project)]
        result = executor.execute(plan)

        assert result.applied == plan
        system = project.project_system
        assert system.get_references() == ["lib/net40/B.dll", "lib/net45/A.dll"]
        assert system.read_file("Scripts/a.js") == "// a 1.0"
        assert system.read_file("site.css") == "body {}"
        assert [str(p) for p in project.repository.get_installed_packages()] == ["A 1.0.0", "B 1.0.0"]
        recorded = project.repository.get_dependencies(identity("A", "1.0"))
        assert [d.id for d in recorded] == ["B"]
        host.run.assert_not_called()

    def test_best_framework_folder_is_referenced(self, source):
        core = Project("Api", InMemoryProjectSystem("netcoreapp3.1"), LocalRepository())
        ActionExecutor(source, MagicMock(spec=ScriptHost)).execute([PackageAction.install(identity("A", "1.0"), core)])
        assert core.project_system.get_references() == ["lib/netstandard2.0/A.dll"]

    def test_existing_content_is_not_overwritten(self, source, project, caplog):
        project.project_system.add_file("site.css", "mine")
        with caplog.at_level(logging.WARNING):
            ActionExecutor(source, MagicMock(spec=ScriptHost)).execute(
                [PackageAction.install(identity("B", "1.0"), project)]
            )
        assert project.project_system.read_file("site.css") == "mine"
        assert "already exists" in caplog.text

    def test_solution_target_only_records_package(self, source, project, host):
        solution = Solution("Shop", LocalRepository(), [project])
        ActionExecutor(source, host).execute([PackageAction.install(identity("B", "1.0"), solution)])
        assert solution.repository.is_installed("B", "1.0")
        assert project.project_system.get_references() == []
        assert not project.repository.is_installed("B")

    def test_readme_of_requested_package(self, source, project):
        executor = ActionExecutor(source, MagicMock(spec=ScriptHost))
        plan = [PackageAction.install(identity("B", "1.0"), project), PackageAction.install(identity("A", "1.0"), project)]
        result = executor.execute(plan, requested="a")
        assert result.readme_path == "A.1.0.0/readme.txt"
        assert result.readme == "Thanks for installing A"

    def test_no_readme_without_request(self, source, project):
        result = ActionExecutor(source, MagicMock(spec=ScriptHost)).execute(
            [PackageAction.install(identity("B", "1.0"), project)], requested="B"
        )
        assert result.readme_path is None
        assert result.readme is None


class TestUninstallAndUpdateExecution:
    """Test Uninstall and Update actions."""

    @pytest.fixture
    def installed(self, source, project):
        executor = ActionExecutor(source, MagicMock(spec=ScriptHost))
        executor.execute(
            [PackageAction.install(identity("B", "1.0"), project), PackageAction.install(identity("A", "1.0"), project)]
        )
        return project

    def test_uninstall_removes_everything(self, source, installed):
        ActionExecutor(source, MagicMock(spec=ScriptHost)).execute(
            [PackageAction.uninstall(identity("A", "1.0"), installed)]
        )
        system = installed.project_system
        assert system.get_references() == ["lib/net40/B.dll"]
        assert not system.file_exists("Scripts/a.js")
        assert not installed.repository.is_installed("A")

    def test_modified_content_is_kept(self, source, installed, caplog):
        installed.project_system.add_file("site.css", "body { color: red }")
        with caplog.at_level(logging.WARNING):
            ActionExecutor(source, MagicMock(spec=ScriptHost)).execute(
                [PackageAction.uninstall(identity("B", "1.0"), installed)]
            )
        assert installed.project_system.read_file("site.css") == "body { color: red }"
        assert "modified" in caplog.text
        assert not installed.repository.is_installed("B")

    def test_update_swaps_versions(self, source, installed):
        ActionExecutor(source, MagicMock(spec=ScriptHost)).execute(
            [PackageAction.update(identity("A", "1.0"), identity("A", "2.0"), installed)]
        )
        assert installed.repository.is_installed("A", "2.0")
        assert installed.project_system.read_file("Scripts/a.js") == "// a 2.0"
        assert sorted(installed.project_system.get_references()) == ["lib/net40/B.dll", "lib/net45/A.dll"]

    def test_uninstall_of_package_missing_from_source(self, installed):
        ActionExecutor(InMemoryPackageSource(), MagicMock(spec=ScriptHost)).execute(
            [PackageAction.uninstall(identity("B", "1.0"), installed)]
        )
        assert not installed.repository.is_installed("B")


class TestFailures:
    """Test rollback of a failing action."""

    def test_failed_action_is_rolled_back(self, source):
        project = Project("Web", FailingProjectSystem("Scripts/a.js"), LocalRepository())
        executor = ActionExecutor(source, MagicMock(spec=ScriptHost))
        plan = [PackageAction.install(identity("B", "1.0"), project), PackageAction.install(identity("A", "1.0"), project)]

        with pytest.raises(ActionApplicationError) as exc:
            executor.execute(plan)

        assert exc.value.action == plan[1]
        assert exc.value.applied == plan[:1]
        assert isinstance(exc.value.cause, OSError)
        system = project.project_system
        assert system.get_references() == ["lib/net40/B.dll"]
        assert project.repository.is_installed("B")
        assert not project.repository.is_installed("A")

    def test_remaining_actions_are_not_run(self, source):
        project = Project("Web", FailingProjectSystem("site.css"), LocalRepository())
        plan = [PackageAction.install(identity("B", "1.0"), project), PackageAction.install(identity("A", "1.0"), project)]
        with pytest.raises(ActionApplicationError) as exc:
            ActionExecutor(source, MagicMock(spec=ScriptHost)).execute(plan)
        assert exc.value.applied == []
        assert project.project_system.get_references() == []
        assert len(project.repository) == 0


class TestScripts:
    """Test package script invocation."""

    @pytest.fixture
    def scripted(self):
        src = InMemoryPackageSource()
        src.add_package(
            "Tool",
            "1.0",
            files={
                "lib/Tool.dll": "tool",
                "tools/install.py": "print('installed')",
                "tools/uninstall.py": "print('removed')",
            },
        )
        return src

    def test_install_script_receives_context(self, scripted, project, host):
        ActionExecutor(scripted, host).execute([PackageAction.install(identity("Tool", "1.0"), project)])
        host.run.assert_called_once()
        script, files, message = host.run.call_args[0]
        assert script == "tools/install.py"
        assert {f.path for f in files} == {"lib/Tool.dll", "tools/install.py", "tools/uninstall.py"}
        assert message["event"] == "install"
        assert message["package"] == {"id": "Tool", "version": "1.0.0"}
        assert message["target"]["name"] == "Web"
        assert message["target"]["kind"] == "project"
        assert message["target"]["target_framework"] == "net45"

    def test_uninstall_script_runs(self, scripted, project, host):
        executor = ActionExecutor(scripted, host)
        executor.execute([PackageAction.install(identity("Tool", "1.0"), project)])
        executor.execute([PackageAction.uninstall(identity("Tool", "1.0"), project)])
        assert [c[0][0] for c in host.run.call_args_list] == ["tools/install.py", "tools/uninstall.py"]

    def test_failing_script_rolls_back_install(self, scripted, project, host):
        host.run.side_effect = ScriptExecutionError("tools/install.py", "boom", 1)
        with pytest.raises(ActionApplicationError) as exc:
            ActionExecutor(scripted, host).execute([PackageAction.install(identity("Tool", "1.0"), project)])
        assert isinstance(exc.value.cause, ScriptExecutionError)
        assert project.project_system.get_references() == []
        assert not project.repository.is_installed("Tool")

    def test_scripts_disabled(self, scripted, project, host):
        ActionExecutor(scripted, host, run_scripts=False).execute(
            [PackageAction.install(identity("Tool", "1.0"), project)]
        )
        host.run.assert_not_called()
        assert project.repository.is_installed("Tool")

    def test_solution_targets_do_not_run_scripts(self, scripted, project, host):
        solution = Solution("Shop", LocalRepository(), [project])
        ActionExecutor(scripted, host).execute([PackageAction.install(identity("Tool", "1.0"), solution)])
        host.run.assert_not_called()
