"""
Error taxonomy for the transfer pacer

- ConfigurationError: fatal, raised at startup before any scheduling
- ClientError: recoverable per call, converted to a Failed outcome
"""


class ConfigurationError(ValueError):
    """Invalid or missing configuration (credential, address, inverted range)"""


class ClientError(Exception):
    """Chain client failure: RPC/network error, rejected submission, confirmation timeout"""

    def __init__(self, message: str, method: str = None):
        super().__init__(message)
        self.method = method
