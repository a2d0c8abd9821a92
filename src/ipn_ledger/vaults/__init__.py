"""Concrete VaultBackend implementations."""

from ipn_ledger.vaults.file import FileVault

__all__ = ["FileVault"]
