"""Configuration exceptions."""

from typing import List, Optional


class ConfigurationError(Exception):
    """Raised when configuration cannot be loaded or resolved.

    Carries the individual problems and operator hints so the CLI can print
    one readable report. This is the only error class that aborts
    ``JobOrchestrator.start()``.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        """
        Initialize ConfigurationError.

        Args:
            message: Headline describing what failed
            errors: Individual validation problems
            suggestions: Hints for fixing them
        """
        self.message = message
        self.errors = list(errors or [])
        self.suggestions = list(suggestions or [])
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [self.message]

        if self.errors:
            lines.append("\nProblems:")
            lines.extend(f"  {index}. {error}" for index, error in enumerate(self.errors, 1))

        if self.suggestions:
            lines.append("\nHow to fix:")
            lines.extend(f"  - {suggestion}" for suggestion in self.suggestions)

        return "\n".join(lines)
