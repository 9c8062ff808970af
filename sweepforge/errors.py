class SweepError(Exception):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class ConfigError(SweepError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class InvalidConfigError(ConfigError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class UnsupportedConfigFormatError(InvalidConfigError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class InvalidConfigFormatError(ConfigError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class NotFoundError(SweepError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class SweepIOError(SweepError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class UnsupportedOptionError(SweepError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class ExecuteFailError(SweepError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)


class BuildFailError(SweepError):
    def __init__(self, returncode: int, stderr: str):
        super().__init__(f"Build step failed with exit code {returncode}:\n{stderr}")
        self.returncode = returncode
        self.stderr = stderr


class RetryLimitExceededError(SweepError):
    def __init__(self, command: str, attempts: int, returncode: int):
        super().__init__(
            f"Command failed {attempts} time(s), last exit code {returncode}: {command}"
        )
        self.command = command
        self.attempts = attempts
        self.returncode = returncode


class TaskTimeoutError(SweepError):
    def __init__(self, command: str, timeout: float):
        super().__init__(f"Command timed out after {timeout}s: {command}")
        self.command = command
        self.timeout = timeout


class TaskCancelledError(SweepError):
    def __init__(self, command: str):
        super().__init__(f"Run aborted before command could finish: {command}")
        self.command = command


class OutputDecodeError(SweepError):
    def __init__(self, command: str, stream: str, encoding: str):
        super().__init__(f"{stream} of '{command}' is not valid {encoding}")
        self.command = command
        self.stream = stream
        self.encoding = encoding


class JoinError(SweepError):
    def __init__(self, *args: object) -> None:
        super().__init__(*args)
