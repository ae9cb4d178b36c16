"""Backup enums."""

from enum import Enum


class BackupDestination(str, Enum):
    """Places a backup snapshot can be written to."""

    LOCAL = "local"
    FTP = "ftp"
    S3 = "s3"
