"""Domain exceptions shared across services."""


class BackupError(Exception):
    """A backup destination failed. Message is safe to show and store."""

    pass


class InvalidBackupFilename(ValueError):
    """Backup filename failed sanitisation."""

    pass


class InvalidTransitionError(Exception):
    """Workflow execution state change not allowed from the current status."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition workflow execution from {current} to {target}")


class SsrfBlockedError(ValueError):
    """Outbound URL points at a non-public address or uses a forbidden scheme."""

    pass
