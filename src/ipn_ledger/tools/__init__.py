"""Service-level operations over the IPN client and ledger store."""
