"""Exceptions for scheme-registry."""


class SchemeError(Exception):
    """Base exception for scheme registry errors."""

    pass


class DuplicateSchemeNameError(SchemeError):
    """A scheme with the same name is already registered."""

    def __init__(self, name: str):
        super().__init__(f"Scheme '{name}' already exists")
        self.name = name


class SchemeFileError(SchemeError):
    """Error reading, writing or deleting a scheme file."""

    def __init__(self, message: str, scheme_name: str | None = None):
        super().__init__(message)
        self.scheme_name = scheme_name


class SchemeValidationError(SchemeError):
    """Error validating scheme data."""

    pass
