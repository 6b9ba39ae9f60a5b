"""
Error kinds raised by the generation core.

Every error carries a short, stable `kind` string so the presentation
layer can report it without matching on classes.
"""


class SigilError(Exception):
    """Base class for all errors raised by the generation core."""

    kind = "error"


class ValidationError(SigilError, ValueError):
    """Bad input parameter (key size, empty required field, ...)."""

    kind = "validation"


class UnsupportedAlgorithmError(SigilError):
    """The cryptographic library/runtime lacks support for an algorithm."""

    kind = "unsupported_algorithm"


class CryptoError(SigilError):
    """Key generation, signing or encoding failed."""

    kind = "crypto"


class OutputError(SigilError, OSError):
    """Directory creation, file write or permission change failed."""

    kind = "io"
