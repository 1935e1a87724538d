"""Error taxonomy shared by the signing and verification endpoints.

Every error carries the HTTP status it maps to; ``main.py`` renders it as
``{"error": message}``. Messages must only contain caller-safe text.
"""


class ScoreServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ScoreServiceError):
    status_code = 400


class MissingFields(ScoreServiceError):
    status_code = 400


class InvalidAddress(ScoreServiceError):
    status_code = 400


class NotConfigured(ScoreServiceError):
    status_code = 500


class TransactionMismatch(ScoreServiceError):
    status_code = 400


class SigningFailure(ScoreServiceError):
    status_code = 500


class PersistenceFailure(ScoreServiceError):
    status_code = 500


class DuplicateGame(PersistenceFailure):
    status_code = 409


class ReceiptUnavailable(ScoreServiceError):
    """Raised only when unconfirmed receipts are not trusted."""
    status_code = 503


class VerificationAborted(ScoreServiceError):
    """The caller went away while the receipt was being polled."""
    status_code = 499
