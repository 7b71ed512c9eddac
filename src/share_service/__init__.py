"""Share service: blob sharing with filesystem or S3 storage and a WebDAV view."""

__version__ = "0.1.0"
