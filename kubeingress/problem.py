"""Collect problems so that a function can note an error and carry on."""

from __future__ import annotations


class ProblemList:
    """An ordered list of problems noted while work goes on."""

    def __init__(self) -> None:
        self._errors: list[Exception] = []

    def add(self, message: str, *args: object) -> "ProblemList":
        """Note a problem; ``message`` is %-formatted with ``args``."""
        text = message % args if args else message
        self._errors.append(Exception(text))
        return self

    def errors(self) -> list[Exception]:
        """Return every problem noted so far, oldest first."""
        return list(self._errors)

    def __len__(self) -> int:
        return len(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)