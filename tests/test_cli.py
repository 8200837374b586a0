from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from repo_init import cli
from repo_init.errors import CacheHandlingError, SSHInitializationError
from repo_init.git import read_marker
from repo_init.orchestrator import run_init, run_setup_working_directory, ssh_session
from repo_init.config import WorkingDirectorySettings
from repo_init.runner import CommandResult, FakeCommandRunner
from repo_init.ssh import SSHSession

KEYSCAN = CommandResult(args=("ssh-keyscan",), returncode=0, stdout="github.com ssh-ed25519 AAAA\n", stderr="")


def make_session(tmp_path: Path) -> SSHSession:
    ssh_dir = tmp_path / "home" / ".ssh"
    return SSHSession(socket_path=tmp_path / "agent.sock", ssh_dir=ssh_dir, known_hosts_file=ssh_dir / "known_hosts")


def test_run_init_full_flow(tmp_path: Path, make_settings) -> None:
    settings = make_settings()
    fake = FakeCommandRunner(
        {
            ("ssh-keyscan",): KEYSCAN,
            ("git", "remote"): CommandResult(args=("git", "remote"), returncode=128, stdout="", stderr=""),
        }
    )

    result = asyncio.run(run_init(settings, fake, session=make_session(tmp_path)))

    assert result == settings.working_directory
    programs = [" ".join(args[:2]) for args in fake.commands]
    assert programs[:3] == ["ssh-agent -a", "ssh-keyscan -H", "ssh-add -"]
    assert programs[-1] == "ssh-add -D"
    assert programs.index("git clone") < programs.index("ssh-add -D")
    clone = next(invocation for invocation in fake.invocations if invocation.args[:2] == ("git", "clone"))
    assert clone.env["SSH_AUTH_SOCK"] == str(tmp_path / "agent.sock")
    assert read_marker(settings.marker_path) == "4242"


def test_cleanup_runs_when_sync_fails(tmp_path: Path, make_settings) -> None:
    settings = make_settings()
    fake = FakeCommandRunner(
        {
            ("ssh-keyscan",): KEYSCAN,
            ("git", "remote"): CommandResult(args=("git", "remote"), returncode=0, stdout="origin\n", stderr=""),
            ("git", "reset"): CommandResult(args=("git", "reset"), returncode=128, stdout="", stderr="bad object"),
            ("ssh-add", "-D"): CommandResult(args=("ssh-add", "-D"), returncode=2, stdout="", stderr="agent gone"),
        }
    )

    with pytest.warns(RuntimeWarning, match="agent gone"):
        with pytest.raises(CacheHandlingError, match="bad object"):
            asyncio.run(run_init(settings, fake, session=make_session(tmp_path)))

    assert fake.commands[-1] == ("ssh-add", "-D")


def test_cleanup_runs_when_initialize_fails(tmp_path: Path, make_settings) -> None:
    settings = make_settings(SSH_PRIVATE_KEY=None)
    fake = FakeCommandRunner()

    async def scenario() -> None:
        async with ssh_session(settings, fake, session=make_session(tmp_path)):
            raise AssertionError("body must not run")

    with pytest.raises(SSHInitializationError, match="SSH_PRIVATE_KEY"):
        asyncio.run(scenario())

    assert fake.commands == [("ssh-add", "-D")]


def test_setup_working_directory_publishes_path(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    output_file = tmp_path / "github_output"
    env_file = tmp_path / "github_env"
    monkeypatch.setenv("GITHUB_OUTPUT", str(output_file))
    monkeypatch.setenv("GITHUB_ENV", str(env_file))
    settings = WorkingDirectorySettings(GITHUB_REPOSITORY="octo/widgets", GITHUB_REF="refs/heads/main")

    path = run_setup_working_directory(settings, str(tmp_path / "runner"))

    assert path == tmp_path / "runner" / "octo/widgets/branches/refs/heads/main"
    assert path.is_dir()
    assert output_file.read_text(encoding="utf-8") == f"working-directory={path}\n"
    assert env_file.read_text(encoding="utf-8") == f"WORKING_DIRECTORY={path}\n"
    assert os.environ["WORKING_DIRECTORY"] == str(path)


def test_setup_working_directory_uses_prefix(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_REPOSITORY", "octo/widgets")
    monkeypatch.setenv("GITHUB_REF", "refs/heads/dev")
    monkeypatch.setenv("WORKING_DIRECTORY_PREFIX", str(tmp_path / "prefix"))
    monkeypatch.setenv("GITHUB_OUTPUT", str(tmp_path / "out"))

    assert cli.main(["setup-working-directory"]) == 0

    expected = tmp_path / "prefix" / "octo/widgets/branches/refs/heads/dev"
    assert expected.is_dir()
    assert f"working-directory={expected}" in (tmp_path / "out").read_text(encoding="utf-8")


def test_cli_reports_configuration_errors(capsys: pytest.CaptureFixture[str]) -> None:
    exit_code = cli.main(["init"], runner=FakeCommandRunner())

    assert exit_code == 1
    out = capsys.readouterr().out
    assert out.startswith("::error::Action failed: Required environment variables")
    assert "GITHUB_REPOSITORY" in out


def test_cli_init_success(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    for name, value in {
        "GITHUB_REPOSITORY": "octo/widgets",
        "GITHUB_SHA": "abc123",
        "GITHUB_ACTOR": "octocat",
        "GITHUB_REF": "refs/heads/main",
        "GITHUB_RUN_ID": "7",
        "INIT_REPOSITORY_PIPELINE_ID_ENV_FILE": ".pipeline-id.env",
        "SSH_PRIVATE_KEY": "key",
    }.items():
        monkeypatch.setenv(name, value)
    monkeypatch.setattr(cli, "run_init", _recording_run_init)
    _recording_run_init.calls.clear()

    exit_code = cli.main(["init", "--working-directory", str(tmp_path / "wd")], runner=FakeCommandRunner())

    assert exit_code == 0
    (settings, _runner), = _recording_run_init.calls
    assert settings.working_directory == tmp_path / "wd"
    assert settings.run_id == "7"


def test_cli_init_failure_names_phase(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    for name, value in {
        "GITHUB_REPOSITORY": "octo/widgets",
        "GITHUB_SHA": "abc123",
        "GITHUB_ACTOR": "octocat",
        "GITHUB_REF": "refs/heads/main",
        "GITHUB_RUN_ID": "7",
        "INIT_REPOSITORY_PIPELINE_ID_ENV_FILE": ".pipeline-id.env",
        "WORKING_DIRECTORY": str(tmp_path / "wd"),
    }.items():
        monkeypatch.setenv(name, value)
    monkeypatch.setattr("repo_init.ssh.session.Path.home", lambda: tmp_path / "home")
    fake = FakeCommandRunner()

    exit_code = cli.main(["init"], runner=fake)

    assert exit_code == 1
    out = capsys.readouterr().out
    assert "::error::Action failed: SSH initialization failed during identity loading" in out
    assert "SSH_PRIVATE_KEY" in out
    assert fake.commands == [("ssh-add", "-D")]


def test_cli_without_subcommand_prints_help(capsys) -> None:
    assert cli.main([]) == 2
    assert "setup-working-directory" in capsys.readouterr().out


async def _recording_run_init(settings, runner=None):
    _recording_run_init.calls.append((settings, runner))
    return settings.working_directory


_recording_run_init.calls = []  # type: ignore[attr-defined]


def test_logging_level_comes_from_loaded_settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("GITHUB_REPOSITORY", "octo/widgets")
    monkeypatch.setenv("GITHUB_REF", "refs/heads/main")
    monkeypatch.setenv("INIT_LOG_LEVEL", "debug")
    levels: list[str] = []
    monkeypatch.setattr(cli, "configure_logging", levels.append)

    assert cli.main(["setup-working-directory", "--path", str(tmp_path)]) == 0
    assert levels == ["DEBUG"]


def test_invalid_log_level_is_a_configuration_error(monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    monkeypatch.setenv("GITHUB_REPOSITORY", "octo/widgets")
    monkeypatch.setenv("GITHUB_REF", "refs/heads/main")
    monkeypatch.setenv("INIT_LOG_LEVEL", "chatty")
    levels: list[str] = []
    monkeypatch.setattr(cli, "configure_logging", levels.append)

    assert cli.main(["setup-working-directory"]) == 1
    assert levels == []
    assert "INIT_LOG_LEVEL" in capsys.readouterr().out
