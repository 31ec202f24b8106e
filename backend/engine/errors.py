"""Errors raised by the model workspace."""


class HostError(Exception):
    """Base class for every failure reported by the modeling host."""


class ModelNotFoundError(HostError, LookupError):
    """No file on the search path provides the requested model."""


class ModelLoadError(HostError, ValueError):
    """A model file exists but could not be read."""


class BlockNotFoundError(HostError, LookupError):
    """A block or system path does not resolve."""


class DuplicateBlockError(HostError, ValueError):
    """A block with the requested name already exists in the system."""


class UnknownParameterError(HostError, KeyError):
    """The block has no parameter of that name."""

    def __str__(self):
        # KeyError would repr() the message
        return str(self.args[0]) if self.args else ''


class LineError(HostError, ValueError):
    """A line endpoint is missing or already connected."""


class VariantError(HostError, ValueError):
    """A variant choice does not exist on the block."""


class InvalidParameterError(HostError, ValueError):
    """A parameter value is malformed or the parameter is read-only."""
