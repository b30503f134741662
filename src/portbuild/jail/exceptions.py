class JailError(Exception):
    pass


class ConfigError(JailError):
    pass


class ConflictingBuildOptions(ConfigError):
    pass


class ManifestError(ConfigError):
    pass


class CommandError(JailError):
    def __init__(
        self,
        command: list[str],
        returncode: int,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            f"Command failed with exit code {returncode}.\n"
            f"  Command: {' '.join(command)}\n"
            f"  Stdout:\n{stdout.strip()}\n"
            f"  Stderr:\n{stderr.strip()}"
        )
