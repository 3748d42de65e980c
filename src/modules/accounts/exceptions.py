"""Account domain exceptions."""


class DriverNotFound(Exception):
    """The driver does not exist or has been deactivated."""
