"""Utility modules for the repair kernel."""

from repair_kernel.utils.tokens import (
    build_approval_url,
    generate_token,
    hash_token,
    verify_token,
)

__all__ = [
    "build_approval_url",
    "generate_token",
    "hash_token",
    "verify_token",
]
