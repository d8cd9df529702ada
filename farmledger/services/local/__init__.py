"""Local fallback storage package."""

from farmledger.services.local.store import LocalFallbackStore

__all__ = ["LocalFallbackStore"]
