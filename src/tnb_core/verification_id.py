from __future__ import annotations

import random
from typing import Optional, Sequence

ID_LETTERS: tuple[str, ...] = ("L", "P", "K", "M", "N", "O")


class VerificationIdGenerator:
    """
    Cosmetic "Data Verified" identifiers of the form NNNN-XX-NNNN.

    Purely decorative; nothing downstream depends on the value. Pass a seeded
    random.Random to get a reproducible sequence.
    """

    def __init__(self, rng: Optional[random.Random] = None, letters: Sequence[str] = ID_LETTERS):
        if not letters:
            raise ValueError("letters must not be empty")
        self.rng = rng or random.Random()
        self.letters = tuple(letters)

    def _digits(self, n: int) -> str:
        return "".join(str(self.rng.randrange(10)) for _ in range(n))

    def _letters(self, n: int) -> str:
        return "".join(self.rng.choice(self.letters) for _ in range(n))

    def __call__(self) -> str:
        return f"{self._digits(4)}-{self._letters(2)}-{self._digits(4)}"
