class BackportError(Exception):
    """Base class for errors raised by the backport bot itself."""


class ConfigError(BackportError):
    pass


class NotReadyInTime(BackportError):
    """Raised when a polled resource never became ready within the allowed attempts."""

    def __init__(self, description: str, attempts: int):
        super().__init__(f"{description} was not ready in time after {attempts} attempts")
        self.description = description
        self.attempts = attempts


class ForkNotReadyError(NotReadyInTime):
    def __init__(self, fork_name: str, attempts: int):
        super().__init__(f"Fork {fork_name}", attempts)
        self.fork_name = fork_name


class RemoteBindError(BackportError):
    def __init__(self, remote_name: str, reason: str):
        super().__init__(f"Failed to bind remote '{remote_name}': {reason}")
        self.remote_name = remote_name


class PatchApplyError(BackportError):
    """Raised when a patch does not apply, even with a three-way merge."""

    def __init__(self, position: int, total: int, reason: str):
        super().__init__(f"Patch {position}/{total} failed to apply: {reason}")
        self.position = position
        self.total = total
