"""UI-facing console operations."""

from command_console.console.mutations import ConsoleMutations, MutationError

__all__ = ["ConsoleMutations", "MutationError"]
