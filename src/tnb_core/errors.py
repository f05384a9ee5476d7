from __future__ import annotations


class InvalidInput(ValueError):
    """Evaluation cannot proceed with the values it was given (e.g. no references)."""


class ParseFailure(ValueError):
    """Caller-supplied text does not represent a number."""

    def __init__(self, text: str):
        super().__init__(f'Couldn\'t parse "{text}" as a number.')
        self.text = text
