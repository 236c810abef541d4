"""
errors.py - Application Exceptions
Raised by models and validators, translated into flash messages or JSON
responses by the blueprints.
"""


class BlogError(Exception):
    """Base class for errors that carry a user-facing message."""

    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def __str__(self):
        return self.message


class NotFoundError(BlogError):
    """Record not found"""

    status_code = 404


class ConflictError(BlogError):
    """Record already exists"""


class NotAuthorizedError(BlogError):
    """Not authorized to perform this action"""

    status_code = 403


class ValidationError(BlogError):
    """
    Form validation failed.

    `errors` maps each field to its messages in the order they were found.
    """

    def __init__(self, errors):
        self.errors = errors
        super().__init__(filter_messages(errors))


def filter_messages(errors):
    """
    Join the first message of every field into one comma separated string.
    Returns None when there are no errors.
    """
    messages = [field_messages[0] for field_messages in errors.values() if field_messages]
    if not messages:
        return None
    return ', '.join(messages)
