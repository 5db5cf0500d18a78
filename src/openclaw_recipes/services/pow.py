"""Proof-of-work policy for Sybil resistance."""

from __future__ import annotations

from openclaw_recipes.core import pow as core_pow
from openclaw_recipes.core.pow import ProofOfWork
from openclaw_recipes.core.settings import Settings, settings


class PowService:
    """Holds the configured difficulty and verifies solutions against it."""

    def __init__(self, difficulty: int | None = None) -> None:
        self._difficulty = settings.pow_difficulty if difficulty is None else difficulty

    @classmethod
    def from_settings(cls, config: Settings) -> PowService:
        return cls(difficulty=config.pow_difficulty)

    @property
    def difficulty(self) -> int:
        """Number of leading hex zeros a registration proof must carry."""
        return self._difficulty

    def verify(self, challenge: str, solution: ProofOfWork) -> bool:
        """Return True if `solution` solves `challenge` at the configured difficulty."""
        return core_pow.verify_proof_of_work(challenge, solution, self._difficulty)
