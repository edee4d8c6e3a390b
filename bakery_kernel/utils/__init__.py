"""Utility functions for the bakery payment core."""

from bakery_kernel.utils.hashing import canonicalize_json, hash_payload, hash_snapshot

__all__ = ["canonicalize_json", "hash_payload", "hash_snapshot"]
