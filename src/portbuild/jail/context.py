"""Host handle passed to planners and the applier instead of ambient globals."""

from collections.abc import Iterable, Mapping
from pathlib import Path
import subprocess
from typing import Any, Self

from attrs import define, field, validators
from pyvider.telemetry import logger

from .exceptions import CommandError, ManifestError

DEFAULT_BINARY = "/usr/local/bin/poudriere"
DEFAULT_CONFIG_ROOT = "/usr/local/etc/poudriere.d"
DEFAULT_ETC_ROOT = "/usr/local/etc"
DEFAULT_BASE_FS = "/usr/local/poudriere"
DEFAULT_CRON_DIR = "/usr/local/etc/cron.d"


class CommandRunner:
    """Runs external commands and raises CommandError on a non-zero exit."""

    def run(self, command: list[str], timeout: int | None = None) -> str:
        logger.info(f"Running command: {' '.join(command)}")
        try:
            result = subprocess.run(
                command, capture_output=True, text=True, check=False, timeout=timeout
            )
        except FileNotFoundError as e:
            raise CommandError(command, 127, stderr=str(e)) from e
        except subprocess.TimeoutExpired as e:
            raise CommandError(command, -1, stderr=f"Timed out after {timeout} seconds.") from e

        if result.returncode != 0:
            raise CommandError(command, result.returncode, result.stdout, result.stderr)
        if result.stderr:
            logger.debug("Command stderr", output=result.stderr.strip())
        return result.stdout.strip()

    def lists(self, command: list[str], name: str) -> bool:
        """True when `name` is the first column of any line `command` prints."""
        output = self.run(command)
        return any(
            line.split()[0] == name for line in output.splitlines() if line.strip()
        )


@define
class HostContext:
    binary: str = field(default=DEFAULT_BINARY, validator=validators.instance_of(str))
    config_root: Path = field(default=Path(DEFAULT_CONFIG_ROOT), converter=Path)
    etc_root: Path = field(default=Path(DEFAULT_ETC_ROOT), converter=Path)
    base_fs: Path = field(default=Path(DEFAULT_BASE_FS), converter=Path)
    cron_dir: Path = field(default=Path(DEFAULT_CRON_DIR), converter=Path)
    cron_user: str = field(default="root", validator=validators.instance_of(str))
    runner: CommandRunner = field(factory=CommandRunner)
    declared_ports_trees: set[str] = field(factory=set, converter=set)

    @classmethod
    def from_mapping(
        cls, data: Mapping[str, Any], runner: CommandRunner | None = None
    ) -> Self:
        allowed = {"binary", "config_root", "etc_root", "base_fs", "cron_dir", "cron_user"}
        unknown = set(data) - allowed
        if unknown:
            raise ManifestError(
                f"Unknown [poudriere] settings: {', '.join(sorted(unknown))}"
            )
        try:
            return cls(runner=runner or CommandRunner(), **data)
        except (TypeError, ValueError) as e:
            raise ManifestError(f"Invalid [poudriere] settings: {e}") from e

    def declare_ports_trees(self, names: Iterable[str]) -> None:
        self.declared_ports_trees.update(names)

    def make_conf_path(self, jail: str) -> Path:
        return self.config_root / f"{jail}-make.conf"

    def package_list_path(self, jail: str) -> Path:
        return self.config_root / f"{jail}.list"

    def options_dir(self, jail: str) -> Path:
        return self.config_root / f"{jail}-options"

    def jail_marker(self, marker_name: str) -> Path:
        return self.base_fs / "jails" / marker_name

    def ports_marker(self, name: str) -> Path:
        return self.base_fs / "ports" / name

    def cron_file(self, marker_name: str) -> Path:
        return self.cron_dir / f"poudriere-{marker_name}"

    @property
    def poudriere_conf_path(self) -> Path:
        return self.etc_root / "poudriere.conf"
