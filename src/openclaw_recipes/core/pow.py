"""Proof-of-Work helpers.

Agents must find a nonce such that ``sha256(f"{challenge}:{nonce}")`` starts
with ``difficulty`` hexadecimal zeros before they may register. Verification
is a single hash; solving costs about ``16 ** difficulty`` hashes.
"""
from __future__ import annotations

import hashlib
from dataclasses import dataclass

DEFAULT_DIFFICULTY = 4
MAX_DIFFICULTY = 64  # hex characters in a SHA-256 digest
DEFAULT_MAX_ITERATIONS = 100_000_000


class PowSolutionNotFound(RuntimeError):
    """Raised by the reference solver when the iteration ceiling is reached."""


@dataclass(frozen=True)
class ProofOfWork:
    """A claimed solution: the nonce and the digest it produces."""

    nonce: int
    hash: str


def compute_pow_hash(challenge: str, nonce: int) -> str:
    """Return the hex SHA-256 digest of ``challenge:nonce``."""
    return hashlib.sha256(f"{challenge}:{nonce}".encode()).hexdigest()


def meets_difficulty(digest_hex: str, difficulty: int) -> bool:
    """Return True if the digest starts with `difficulty` hex zeros."""
    return digest_hex.startswith("0" * difficulty)


def verify_proof_of_work(challenge: str, solution: ProofOfWork, difficulty: int) -> bool:
    """Validate a proposed proof-of-work solution.

    Args:
        challenge: The challenge string the solution was computed for.
        solution: Client-supplied nonce and digest.
        difficulty: Number of leading hexadecimal zeros required.

    Returns:
        True if the recomputed digest equals `solution.hash` and meets the
        difficulty; False otherwise.
    """
    if not (0 <= difficulty <= MAX_DIFFICULTY):
        return False
    if isinstance(solution.nonce, bool) or not isinstance(solution.nonce, int):
        return False
    if solution.nonce < 0:
        return False

    digest = compute_pow_hash(challenge, solution.nonce)
    if digest != solution.hash.lower():
        return False
    return meets_difficulty(digest, difficulty)


def solve_proof_of_work(
    challenge: str,
    difficulty: int = DEFAULT_DIFFICULTY,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> ProofOfWork:
    """Find a proof-of-work solution by brute force.

    This is the reference client-side solver; the server never relies on it.

    Raises:
        PowSolutionNotFound: If no nonce below `max_iterations` satisfies the difficulty.
    """
    if not (0 <= difficulty <= MAX_DIFFICULTY):
        raise ValueError(f"Difficulty must be between 0 and {MAX_DIFFICULTY}")

    prefix = "0" * difficulty
    for nonce in range(max_iterations):
        digest = compute_pow_hash(challenge, nonce)
        if digest.startswith(prefix):
            return ProofOfWork(nonce=nonce, hash=digest)
    raise PowSolutionNotFound(
        f"No proof-of-work solution found within {max_iterations} iterations"
    )
