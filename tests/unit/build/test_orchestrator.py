"""End-to-end tests for PipelineOrchestrator using a fake toolchain."""

from pathlib import Path

import pytest

from twophase.build import (
    BuildParams,
    ConfigurationError,
    DescriptorList,
    FileDescriptor,
    FileSetDescriptor,
    Mode,
    Parameter,
    PipelineOrchestrator,
    PipelineState,
    ResolutionError,
    Toolchain,
    ToolInvocationError,
)


FS_TOOLCHAIN = Toolchain(compile_executable="fsc", link_executable="fslink", object_extension=".fsobj")


@pytest.fixture
def fs_runner(make_runner):
    return make_runner(object_extension=".fsobj", compile_executable="fsc")


@pytest.fixture
def project(tmp_path, make_sources):
    make_sources("a.fs", "b.fs")
    return tmp_path


def make_params(project_dir: Path, **overrides) -> BuildParams:
    values = dict(
        project_dir=project_dir,
        sources=DescriptorList.of(FileDescriptor(Path("a.fs")), FileDescriptor(Path("b.fs"))),
        intermediate_dir=Path("obj"),
        final_artifact=Path("final.exe"),
        mode=Mode.BOTH,
        toolchain=FS_TOOLCHAIN,
    )
    values.update(overrides)
    return BuildParams(**values)


def run(params: BuildParams, runner):
    return PipelineOrchestrator(runner_factory=lambda p: runner).build(params)


class TestIncrementalBuild:
    """Full compile/link cycles over the same project."""

    def test_clean_build_compiles_and_links(self, project, fs_runner):
        result = run(make_params(project), fs_runner)

        assert result.success
        assert result.state == PipelineState.DONE
        assert result.linked

        (compile_call,) = fs_runner.calls_to("fsc")
        assert fs_runner.positional(compile_call) == [str(project / "a.fs"), str(project / "b.fs")]
        assert compile_call["working_dir"] == project / "obj"

        (link_call,) = fs_runner.calls_to("fslink")
        assert fs_runner.positional(link_call) == [
            str(project / "obj" / "a.fsobj"),
            str(project / "obj" / "b.fsobj"),
            "/out",
            str(project / "final.exe"),
        ]
        assert (project / "final.exe").exists()

    def test_rerun_without_changes_invokes_nothing(self, project, fs_runner):
        run(make_params(project), fs_runner)
        fs_runner.calls.clear()

        result = run(make_params(project), fs_runner)

        assert result.success
        assert fs_runner.calls == []
        assert not result.compiled
        assert not result.linked
        assert len(result.targets) == 2
        assert result.message == "nothing to compile, link up to date"

    def test_touching_one_source_recompiles_it_and_relinks(self, project, fs_runner, set_mtime):
        run(make_params(project), fs_runner)
        fs_runner.calls.clear()

        set_mtime(project / "a.fs", fs_runner.tick())
        result = run(make_params(project), fs_runner)

        (compile_call,) = fs_runner.calls_to("fsc")
        assert fs_runner.positional(compile_call) == [str(project / "a.fs")]
        (link_call,) = fs_runner.calls_to("fslink")
        # Every target is linked, not only the recompiled one
        assert str(project / "obj" / "b.fsobj") in link_call["argv"]
        assert result.linked
        assert list(result.compiled) == [project / "a.fs"]

    def test_compile_only_never_links(self, project, fs_runner):
        result = run(make_params(project, mode=Mode.COMPILE_ONLY), fs_runner)

        assert result.success
        assert result.state == PipelineState.DONE
        assert fs_runner.calls_to("fslink") == []
        assert not (project / "final.exe").exists()
        assert PipelineState.LINKING not in result.history

    def test_compile_only_without_final_artifact(self, project, fs_runner):
        result = run(make_params(project, mode=Mode.COMPILE_ONLY, final_artifact=None), fs_runner)

        assert result.success
        assert len(fs_runner.calls_to("fsc")) == 1

    def test_link_only_links_raw_sources(self, project, fs_runner):
        result = run(make_params(project, mode=Mode.LINK_ONLY), fs_runner)

        assert result.success
        assert fs_runner.calls_to("fsc") == []
        (link_call,) = fs_runner.calls_to("fslink")
        assert fs_runner.positional(link_call)[:2] == [str(project / "a.fs"), str(project / "b.fs")]
        assert result.history == [
            PipelineState.IDLE,
            PipelineState.RESOLVING,
            PipelineState.LINKING,
            PipelineState.DONE,
        ]

    def test_state_history_for_full_build(self, project, fs_runner):
        result = run(make_params(project), fs_runner)

        assert result.history == [
            PipelineState.IDLE,
            PipelineState.RESOLVING,
            PipelineState.COMPILING,
            PipelineState.LINKING,
            PipelineState.DONE,
        ]

    def test_file_set_and_parameters(self, tmp_path, make_sources, fs_runner):
        make_sources("src/a.fs", "src/b.fs", "src/skip.fs", "src/readme.txt")
        params = make_params(
            tmp_path,
            sources=DescriptorList.of(FileSetDescriptor(Path("src"), ("*.fs",), ("skip.fs",))),
            parameters=(Parameter("Version", "2.0"),),
        )

        result = run(params, fs_runner)

        assert result.success
        (compile_call,) = fs_runner.calls_to("fsc")
        assert compile_call["argv"] == [
            "/nologo",
            str(tmp_path / "src" / "a.fs"),
            str(tmp_path / "src" / "b.fs"),
            "-dVersion=2.0",
        ]

    def test_auxiliary_change_rebuilds_everything(self, project, make_sources, fs_runner, set_mtime):
        make_sources("common.fsi")
        params = make_params(project, more_sources=DescriptorList.of(FileDescriptor(Path("common.fsi"))))
        run(params, fs_runner)
        fs_runner.calls.clear()

        set_mtime(project / "common.fsi", fs_runner.tick())
        result = run(params, fs_runner)

        assert len(result.compiled) == 2
        assert result.linked
        assert all(str(project / "common.fsi") not in c["argv"] for c in fs_runner.calls)


class TestFailures:
    """Failures end in FAILED and stop the remaining stages."""

    def test_empty_sources_fail_before_anything_runs(self, tmp_path, fs_runner):
        result = run(make_params(tmp_path, sources=DescriptorList()), fs_runner)

        assert not result.success
        assert result.state == PipelineState.FAILED
        assert isinstance(result.error, ConfigurationError)
        assert result.history == [PipelineState.IDLE, PipelineState.FAILED]
        assert fs_runner.calls == []

    def test_missing_final_artifact_when_linking(self, project, fs_runner):
        result = run(make_params(project, final_artifact=None), fs_runner)

        assert isinstance(result.error, ConfigurationError)
        assert fs_runner.calls == []

    def test_missing_explicit_source(self, project, fs_runner):
        params = make_params(project, sources=DescriptorList.of(FileDescriptor(Path("missing.fs"))))
        result = run(params, fs_runner)

        assert isinstance(result.error, ConfigurationError)
        assert "doesn't exist" in result.message

    def test_unresolvable_file_set(self, project, fs_runner):
        params = make_params(project, sources=DescriptorList.of(FileSetDescriptor(Path("nowhere"), ("*.fs",))))
        result = run(params, fs_runner)

        assert isinstance(result.error, ResolutionError)
        assert result.history == [PipelineState.IDLE, PipelineState.RESOLVING, PipelineState.FAILED]

    def test_compile_failure_skips_link(self, project, fs_runner):
        fs_runner.fail_executables.add("fsc")
        result = run(make_params(project), fs_runner)

        assert isinstance(result.error, ToolInvocationError)
        assert fs_runner.calls_to("fslink") == []
        assert PipelineState.LINKING not in result.history

    def test_raise_for_error(self, project, fs_runner):
        fs_runner.fail_executables.add("fslink")
        result = run(make_params(project), fs_runner)

        with pytest.raises(ToolInvocationError):
            result.raise_for_error()
        # Compiled targets survive a failed link
        assert len(result.targets) == 2

    def test_successful_result_raise_for_error_is_noop(self, project, fs_runner):
        run(make_params(project), fs_runner).raise_for_error()

    def test_intermediate_dir_is_a_file(self, project, fs_runner):
        (project / "obj").write_text("not a directory")

        result = run(make_params(project), fs_runner)

        assert result.state == PipelineState.FAILED
        assert isinstance(result.error, ConfigurationError)
        assert "not a directory" in result.message
        assert fs_runner.calls == []

    def test_intermediate_dir_under_a_file(self, project, fs_runner):
        (project / "build").write_text("not a directory")

        result = run(make_params(project, intermediate_dir=Path("build/obj")), fs_runner)

        assert result.state == PipelineState.FAILED
        assert isinstance(result.error, ConfigurationError)
        assert fs_runner.calls == []


def test_tolerated_compile_failure_still_links(project, fs_runner):
    """A non-zero compile exit that the runner tolerates does not stop the run."""
    fs_runner.exit_codes["fsc"] = 1

    result = run(make_params(project, fail_on_error=False), fs_runner)

    assert result.success
    assert result.state == PipelineState.DONE
    assert len(fs_runner.calls_to("fsc")) == 1
    assert len(fs_runner.calls_to("fslink")) == 1
    assert result.linked
    assert PipelineState.FAILED not in result.history


def test_runs_do_not_share_state(project, fs_runner):
    orchestrator = PipelineOrchestrator(runner_factory=lambda p: fs_runner)
    first = orchestrator.build(make_params(project))
    second = orchestrator.build(make_params(project))

    assert first.history == second.history
    assert first.compiled != second.compiled
