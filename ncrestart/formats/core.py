from collections import namedtuple


FormatInfo = namedtuple(
    'FormatInfo', ['name', 'extension', 'description', 'reference'])


class FormatError(Exception):
    pass


class FormatValidationError(FormatError):
    """The file does not follow the convention of the format."""
    pass


class UnsupportedModeError(FormatError):
    pass


class UnsupportedOptionError(FormatError):
    pass


class SingleFrameViolationError(FormatError):
    """More than one frame was read from or written to a single frame file."""
    pass


class FormatWarning(UserWarning):
    pass


class TrajectoryFormat(object):
    """Base class for readers and writers of one file format.

    A format object owns exactly one open file. Subclasses implement
    :meth:`read_step`, :meth:`write`, :meth:`nsteps` and :meth:`close`;
    :meth:`read` reads the next frame.

    Subclasses describe themselves with a :class:`FormatInfo` in the
    ``info`` class attribute.
    """
    info = None

    def read(self, frame=None):
        """Read the next frame.

        Parameters
        ----------
        frame : :class:`ncrestart.Frame` or None
            the frame to fill, a new one is created if None

        Returns
        -------
        :class:`ncrestart.Frame`
        """
        raise NotImplementedError()

    def read_step(self, step, frame=None):
        """Read the frame at index ``step``."""
        raise NotImplementedError()

    def write(self, frame):
        """Write a frame to the file."""
        raise NotImplementedError()

    def nsteps(self):
        """Number of frames in the file."""
        raise NotImplementedError()

    def close(self):
        raise NotImplementedError()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
