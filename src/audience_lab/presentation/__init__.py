"""Console rendering for the command-line interface."""

from audience_lab.presentation.console import ResultConsole

__all__ = ["ResultConsole"]
