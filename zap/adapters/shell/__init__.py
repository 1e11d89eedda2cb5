"""Process helpers shared by the backends."""

from zap.adapters.shell.command import CommandResult, command_exists, run_command, run_interactive

__all__ = ["CommandResult", "command_exists", "run_command", "run_interactive"]
