"""Exceptions for WebDAV app."""


class MalformedRequestError(Exception):
    """Raised when a request header or path cannot be interpreted."""


class ResourceConflictError(Exception):
    """Raised when a request conflicts with the state of the target."""
