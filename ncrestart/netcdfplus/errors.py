"""
Exceptions raised by the NetCDF+ container
"""


class NetCDFPlusError(Exception):
    pass


class NetCDFPlusIOError(NetCDFPlusError, IOError):
    """The underlying file could not be opened, read or written."""
    pass


class NetCDFPlusLookupError(NetCDFPlusError, KeyError):
    """A dimension or variable is missing or has the wrong element type."""

    def __str__(self):
        # KeyError would repr() the message
        return str(self.args[0]) if self.args else ''


class PhaseError(NetCDFPlusError, RuntimeError):
    """An operation was used in the wrong define/data phase."""
    pass


class BoundsError(NetCDFPlusError, IndexError):
    pass
