"""Exceptions raised before any store call is made."""


class QScoreValidationError(ValueError):
    """Input rejected; no state was created or changed."""


class EntryValidationError(QScoreValidationError):
    pass


class ProfileValidationError(QScoreValidationError):
    pass


class PrincipalRejectedError(PermissionError):
    """Signed-in identity is outside the allowed email domain."""
