"""Proof-of-work nonce search."""

from __future__ import annotations

from .strops import b64_encode, hash_bytes, hex_encode, random_bytes


class Miner:
    """Finds nonces whose SHA-256 hex digest starts with ``pow_req`` zeros."""

    def __init__(self, pow_req: int) -> None:
        self.pow = pow_req

    def check_valid_hash(self, digest: str) -> bool:
        """Return whether the first ``pow`` characters of ``digest`` are '0'."""
        if len(digest) < self.pow:
            raise ValueError(
                f"hash of length {len(digest)} is shorter than the work requirement {self.pow}"
            )
        return all(char == "0" for char in digest[: self.pow])

    def generate_nonce(self) -> str:
        """Return a random 24-character base64 nonce."""
        return b64_encode(random_bytes(16), 24)

    def generate_valid_nonce(self, content: str | bytes, debug_info: bool = False) -> tuple[str, str]:
        """Return ``(nonce, hex_digest)`` satisfying the work requirement.

        The empty nonce is tried first.
        """
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        nonce = ""
        digest = hex_encode(hash_bytes(data))
        while not self.check_valid_hash(digest):
            nonce = self.generate_nonce()
            digest = hex_encode(hash_bytes(data + nonce.encode("ascii")))
            if debug_info:
                print(f"Used nonce {nonce} to generate hash {digest}")
        if debug_info:
            print(f"Succeeded on {nonce}")
        return nonce, digest