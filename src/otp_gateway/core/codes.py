"""Passcode generation."""

from __future__ import annotations

import secrets
from typing import Protocol


class CodeGenerator(Protocol):
    def generate(self) -> str:
        ...


class SixDigitCodeGenerator:
    """Uniform numeric codes drawn from the ``secrets`` CSPRNG.

    The name reflects the default; pass ``length`` for deployments
    that want longer codes.
    """

    def __init__(self, length: int = 6) -> None:
        if length < 1:
            raise ValueError("Code length must be positive")
        self._length = length
        self._upper = 10**length

    def generate(self) -> str:
        return f"{secrets.randbelow(self._upper):0{self._length}d}"
