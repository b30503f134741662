"""Pytest fixtures for the entire portbuild-jail test suite."""

from pathlib import Path

import pytest

from portbuild.jail.context import CommandRunner, HostContext
from portbuild.jail.exceptions import CommandError


class FakeRunner(CommandRunner):
    """Records commands and imitates poudriere's effects on the filesystem."""

    def __init__(self, base_fs: Path) -> None:
        self.base_fs = base_fs
        self.calls: list[list[str]] = []
        self.listed_jails: set[str] = set()
        self.listed_ports: set[str] = set()
        self.fail_on: str | None = None

    def run(self, command: list[str], timeout: int | None = None) -> str:
        self.calls.append(command)
        if self.fail_on and self.fail_on in command:
            raise CommandError(command, 1, stderr=f"{self.fail_on} failed")
        subcommand, flag = command[1], command[2]
        if flag == "-l":
            names = self.listed_jails if subcommand == "jail" else self.listed_ports
            header = "JAILNAME VERSION ARCH" if subcommand == "jail" else "PORTSTREE METHOD"
            return "\n".join([header, *(f"{n} x y" for n in sorted(names))])
        name = command[command.index("-j" if subcommand == "jail" else "-p") + 1]
        marker_root = self.base_fs / ("jails" if subcommand == "jail" else "ports")
        listed = self.listed_jails if subcommand == "jail" else self.listed_ports
        if flag == "-c":
            (marker_root / name.replace(":", "_")).mkdir(parents=True, exist_ok=True)
            listed.add(name)
        elif flag == "-d":
            listed.discard(name)
        return ""

    def commands(self, flag: str) -> list[list[str]]:
        return [c for c in self.calls if len(c) > 2 and c[2] == flag]


@pytest.fixture
def fake_runner(tmp_path: Path) -> FakeRunner:
    return FakeRunner(tmp_path / "poudriere")


@pytest.fixture
def context(tmp_path: Path, fake_runner: FakeRunner) -> HostContext:
    """A HostContext whose every path lives under tmp_path."""
    return HostContext(
        binary="/usr/local/bin/poudriere",
        config_root=tmp_path / "etc" / "poudriere.d",
        etc_root=tmp_path / "etc",
        base_fs=tmp_path / "poudriere",
        cron_dir=tmp_path / "etc" / "cron.d",
        runner=fake_runner,
        declared_ports_trees={"default"},
    )
