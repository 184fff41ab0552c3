"""Runtime configuration model for librarian.

This module owns all environment variable parsing and validation.
Other modules consume a typed config object instead of raw env reads.
"""

from __future__ import annotations

from dataclasses import dataclass
import os

from core.constants import DEFAULT_LOG_LEVEL, DEFAULT_PARTITION_KEY_TYPE, SUPPORTED_LOG_LEVELS
from core.errors import LibrarianConfigError


@dataclass(frozen=True)
class LibrarianConfig:
    """Validated runtime configuration.

    Attributes:
        table_name: DynamoDB table under version control.
        partition_key: Partition key attribute name.
        partition_key_type: Partition key type, ``S`` or ``N``.
        sort_key: Optional sort key attribute name.
        sort_key_type: Sort key type when a sort key exists.
        aws_region: Optional AWS region for the boto3 session.
        aws_profile: Optional AWS profile for the boto3 session.
        endpoint_url: Optional DynamoDB endpoint, e.g. DynamoDB Local.
        log_level: Root log level used by the CLI.
    """

    table_name: str | None
    partition_key: str | None
    partition_key_type: str
    sort_key: str | None
    sort_key_type: str | None
    aws_region: str | None
    aws_profile: str | None
    endpoint_url: str | None
    log_level: str

    @classmethod
    def from_env(cls) -> "LibrarianConfig":
        """Build config from process environment variables.

        Returns:
            A validated config object.

        Raises:
            LibrarianConfigError: If environment values are invalid.
        """
        log_level = _parse_log_level(os.getenv("LIBRARIAN_LOG_LEVEL", DEFAULT_LOG_LEVEL))
        return cls(
            table_name=os.getenv("LIBRARIAN_TABLE"),
            partition_key=os.getenv("LIBRARIAN_PARTITION_KEY"),
            partition_key_type=os.getenv(
                "LIBRARIAN_PARTITION_KEY_TYPE", DEFAULT_PARTITION_KEY_TYPE
            ).upper(),
            sort_key=os.getenv("LIBRARIAN_SORT_KEY"),
            sort_key_type=_upper_or_none(os.getenv("LIBRARIAN_SORT_KEY_TYPE")),
            aws_region=os.getenv("LIBRARIAN_AWS_REGION"),
            aws_profile=os.getenv("LIBRARIAN_AWS_PROFILE"),
            endpoint_url=os.getenv("LIBRARIAN_ENDPOINT_URL"),
            log_level=log_level,
        )

    def require_table(self) -> None:
        """Ensure the config names a table and its partition key.

        Raises:
            LibrarianConfigError: If either value is missing.
        """
        if not self.table_name:
            raise LibrarianConfigError(
                "No DynamoDB table configured. "
                "Set LIBRARIAN_TABLE or pass --table."
            )
        if not self.partition_key:
            raise LibrarianConfigError(
                f"No partition key configured for table '{self.table_name}'. "
                "Set LIBRARIAN_PARTITION_KEY or pass --partition-key."
            )


def _parse_log_level(raw_value: str) -> str:
    """Parse the log level environment value.

    Args:
        raw_value: Raw string from environment.

    Returns:
        Upper-case level name.

    Raises:
        LibrarianConfigError: If the level is not supported.
    """
    level = raw_value.strip().upper()
    if level not in SUPPORTED_LOG_LEVELS:
        raise LibrarianConfigError(
            "Invalid LIBRARIAN_LOG_LEVEL value: "
            f"expected one of {', '.join(SUPPORTED_LOG_LEVELS)}, got '{raw_value}'."
        )
    return level


def _upper_or_none(raw_value: str | None) -> str | None:
    if raw_value is None:
        return None
    return raw_value.upper()
