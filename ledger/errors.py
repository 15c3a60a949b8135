# ledger/errors.py


class LedgerError(Exception):
    pass


class DuplicateKeyError(LedgerError):
    """A unique secondary key (telegram id, signature) is already taken."""


class InvariantViolation(LedgerError):
    pass
