"""camrelay: camera feed relay behind a login gateway."""

__version__ = "1.0.0"
