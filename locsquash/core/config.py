"""Configuration management for locsquash."""

from dataclasses import dataclass


@dataclass
class SquashConfig:
    """Configuration for squash operations."""

    # Backup branches
    backup_branch_prefix: str = "locsquash/backup-"
    backup_timestamp_format: str = "%Y%m%d-%H%M%S"
    max_backup_attempts: int = 10

    # Stash settings
    stash_message: str = "locsquash auto-stash"

    def __post_init__(self):
        """Validate configuration parameters after initialization."""
        # Validate backup naming
        if not isinstance(self.backup_branch_prefix, str):
            raise ValueError(
                f"backup_branch_prefix must be a string, got {type(self.backup_branch_prefix)}")
        if not self.backup_branch_prefix:
            raise ValueError("backup_branch_prefix cannot be empty")
        if not self.backup_timestamp_format:
            raise ValueError("backup_timestamp_format cannot be empty")

        # Validate branch prefix doesn't contain invalid characters
        invalid_chars = [' ', '\n', '\t', '..',
                         '~', '^', ':', '?', '*', '[', '\\']
        for char in invalid_chars:
            if char in self.backup_branch_prefix:
                raise ValueError(
                    f"backup_branch_prefix contains invalid character '{char}': {self.backup_branch_prefix}")
        if self.backup_branch_prefix.startswith(('-', '/')):
            raise ValueError(
                f"backup_branch_prefix cannot start with '{self.backup_branch_prefix[0]}': {self.backup_branch_prefix}")

        # Validate retry attempts
        if self.max_backup_attempts <= 0:
            raise ValueError(
                f"max_backup_attempts must be positive, got {self.max_backup_attempts}")
        if self.max_backup_attempts > 100:
            raise ValueError(
                f"max_backup_attempts should not exceed 100, got {self.max_backup_attempts}")

        if not self.stash_message.strip():
            raise ValueError("stash_message cannot be empty")

    @classmethod
    def from_cli_args(cls, args) -> 'SquashConfig':
        """Create config from command line arguments."""
        try:
            return cls(
                backup_branch_prefix=getattr(
                    args, 'backup_prefix', None) or cls.backup_branch_prefix
            )
        except ValueError as e:
            raise ValueError(
                f"Invalid configuration from command line arguments: {e}") from e

    def with_overrides(self, **kwargs) -> 'SquashConfig':
        """Create a new config with specific overrides."""
        fields = {field.name: getattr(self, field.name)
                  for field in self.__dataclass_fields__.values()}
        fields.update(kwargs)
        return SquashConfig(**fields)
