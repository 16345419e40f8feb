"""Command execution package."""

from organizer.commands.executor import (
    CommandExecutionError,
    CommandExecutor,
    map_completion_status,
)

__all__ = ["CommandExecutionError", "CommandExecutor", "map_completion_status"]
