"""updater errors."""


class UpdaterError(Exception):
    """base error. `details` holds raw output from the last aws call, if any."""

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class ConfigurationError(UpdaterError):
    pass


class PrerequisiteMissingError(UpdaterError):
    pass


class IpLookupError(UpdaterError):
    pass


class ExternalCommandError(UpdaterError):
    pass


class JsonParseError(UpdaterError):
    pass


class StorageReadError(UpdaterError):
    pass


class StorageWriteError(UpdaterError):
    pass
