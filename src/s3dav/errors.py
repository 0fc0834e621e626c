class InvalidPath(ValueError):
    """Raised for empty resource paths or paths containing '..'."""


class StoreError(Exception):
    """Wraps boto3 ClientError to avoid leaking AWS infrastructure details."""


class RenderError(Exception):
    """Raised when a collection listing cannot be rendered."""
