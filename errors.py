class FroggiOcrError(Exception):
    """Base class for fatal relay errors"""
    pass


class ConfigError(FroggiOcrError):
    pass


class BootstrapError(FroggiOcrError):
    pass


class BootstrapAborted(BootstrapError):
    """Raised when an attempt cap is exhausted during bootstrap"""
    pass


class RelayError(FroggiOcrError):
    pass


class OcrBodyError(RelayError):
    """OCR response arrived but its body could not be read as text"""

    def __init__(self, message, status=None):
        self.status = status
        super().__init__(message)
