"""
Thin layer over netCDF4 with an explicit define/data phase protocol
"""

import logging
import os.path

import netCDF4
import numpy as np

from .errors import (NetCDFPlusIOError, NetCDFPlusLookupError, PhaseError,
                     BoundsError)
from .util import with_timing_logging

logger = logging.getLogger(__name__)


def _coerce_to_string(value, encoding='ascii'):
    """
    Decodes input to a string with the specified encoding if it is a bytes
    object. Otherwise, it just returns the input as a string.
    """
    try:
        return value.decode(encoding)
    except AttributeError:
        return str(value)


class Phase(object):
    """
    Mutation phases of a :class:`NetCDFPlus` file.

    Dimensions, variables and attributes can only be declared in `DEFINE`,
    values can only be read and written in `DATA`. The transition from
    `DEFINE` to `DATA` is one-way.
    """
    DEFINE = 'define'
    DATA = 'data'

    values = (DEFINE, DATA)


# ==============================================================================
# NetCDF file with dimensioned, typed variables
# ==============================================================================

class NetCDFPlus(netCDF4.Dataset):
    """
    Extension of the python netCDF wrapper with typed variable access

    The netCDF4 library already handles the switch between the define and
    data modes of NetCDF3 files on its own. Here the phase is tracked
    explicitly so that a frozen schema is a checked property of the file
    rather than a convention between callers.
    """
    default_format = 'NETCDF3_64BIT_OFFSET'

    _type_conversion = {
        'char': np.dtype('S1'),
        'byte': np.dtype(np.int8),
        'short': np.dtype(np.int16),
        'int': np.dtype(np.int32),
        'float': np.dtype(np.float32),
        'double': np.dtype(np.float64),
    }

    class VariableDelegate(object):
        """
        Accessor for a single netCDF variable

        Values are exchanged as flat numpy arrays addressed by a `start`
        index and a `count` per dimension, in declaration order of the
        dimensions.

        Attributes
        ----------
        storage : :class:`NetCDFPlus`
            the file the variable lives in
        variable : netCDF4.Variable
            the wrapped variable
        var_type : str
            the element type, one of the keys of
            `NetCDFPlus._type_conversion`
        """

        def __init__(self, storage, variable, var_type):
            self.storage = storage
            self.variable = variable
            self.var_type = var_type

            # raw values only, scale_factor is applied by the caller
            variable.set_auto_maskandscale(False)
            variable.set_auto_chartostring(False)

        @property
        def name(self):
            return self.variable.name

        @property
        def dimensions(self):
            return tuple(self.variable.dimensions)

        @property
        def shape(self):
            return tuple(self.variable.shape)

        def _slices(self, start, count, writing):
            start = [int(s) for s in start]
            count = [int(c) for c in count]
            dimensions = self.dimensions

            if len(start) != len(dimensions) or len(count) != len(dimensions):
                raise BoundsError(
                    "Variable '%s' has %d dimensions, got start=%s and "
                    "count=%s" % (self.name, len(dimensions), start, count))

            slices = []
            for dim_name, first, size in zip(dimensions, start, count):
                dim = self.storage.dimensions[dim_name]
                if first < 0 or size < 0:
                    raise BoundsError(
                        "Negative start or count for dimension '%s' of "
                        "variable '%s'" % (dim_name, self.name))
                if writing and dim.isunlimited():
                    pass
                elif first + size > len(dim):
                    raise BoundsError(
                        "Out of bounds access to dimension '%s' of variable "
                        "'%s': %d + %d > %d" % (
                            dim_name, self.name, first, size, len(dim)))

                slices.append(slice(first, first + size))

            return tuple(slices), count

        @with_timing_logging
        def get(self, start, count):
            """
            Read a block of values

            Parameters
            ----------
            start : list of int
                the first index along every dimension
            count : list of int
                the number of values along every dimension

            Returns
            -------
            numpy.ndarray
                the raw values, flattened in C order
            """
            self.storage._require_phase(Phase.DATA,
                                        "read variable '%s'" % self.name)
            slices, count = self._slices(start, count, writing=False)

            if int(np.prod(count)) == 0:
                return np.empty(0, dtype=self.variable.dtype)

            logger.debug("Reading %s from variable '%s'", count, self.name)
            try:
                data = np.array(self.variable[slices])
            except (OSError, RuntimeError) as e:
                raise NetCDFPlusIOError(
                    "Could not read variable '%s' from file '%s': %s" % (
                        self.name, self.storage.filename, e))

            return data.reshape(-1)

        @with_timing_logging
        def add(self, start, count, values):
            """
            Write a block of values

            Parameters
            ----------
            start : list of int
                the first index along every dimension
            count : list of int
                the number of values along every dimension
            values : array-like or str or list of str
                `prod(count)` values, or for `char` variables one string per
                entry of the leading dimensions, each at most as long as the
                last dimension
            """
            self.storage._require_phase(Phase.DATA,
                                        "write variable '%s'" % self.name)
            if self.storage.mode == 'r':
                raise NetCDFPlusIOError(
                    "Can not write variable '%s': file '%s' is opened in "
                    "read-only mode" % (self.name, self.storage.filename))

            slices, count = self._slices(start, count, writing=True)
            shape = tuple(count)

            if self.var_type == 'char':
                data = self._to_char_array(values, shape)
            else:
                data = np.asarray(values, dtype=self.variable.dtype)
                if data.size != int(np.prod(shape)):
                    raise BoundsError(
                        "Got %d values for variable '%s', expected %d" % (
                            data.size, self.name, int(np.prod(shape))))
                data = data.reshape(shape)

            if data.size == 0:
                return

            logger.debug("Writing %s to variable '%s'", count, self.name)
            try:
                self.variable[slices] = data
            except (OSError, RuntimeError) as e:
                raise NetCDFPlusIOError(
                    "Could not write variable '%s' to file '%s': %s" % (
                        self.name, self.storage.filename, e))

        def _to_char_array(self, values, shape):
            if isinstance(values, np.ndarray) and values.dtype == 'S1':
                if values.size != int(np.prod(shape)):
                    raise BoundsError(
                        "Got %d characters for variable '%s', expected %d"
                        % (values.size, self.name, int(np.prod(shape))))
                return values.reshape(shape)

            if isinstance(values, (str, bytes)):
                values = [values]
            strings = [_coerce_to_string(v) for v in values]

            width = shape[-1] if shape else 1
            n_strings = int(np.prod(shape[:-1])) if shape else 1
            if len(strings) != n_strings:
                raise BoundsError(
                    "Got %d strings for variable '%s', expected %d" % (
                        len(strings), self.name, n_strings))
            for string in strings:
                if len(string) > width:
                    raise BoundsError(
                        "String '%s' is too long for variable '%s' (max %d)"
                        % (string, self.name, width))

            if width == 0 or n_strings == 0:
                return np.empty(shape, dtype='S1')

            padded = np.array(strings, dtype='S%d' % width)
            return netCDF4.stringtochar(padded, encoding='ascii').reshape(
                shape)

        def attribute_exists(self, name):
            self.storage._require_open(
                "read attributes of variable '%s'" % self.name)
            return name in self.variable.ncattrs()

        def float_attribute(self, name):
            """
            Return a numeric attribute of this variable as a float

            Parameters
            ----------
            name : str
                the attribute name, e.g. `scale_factor`
            """
            if not self.attribute_exists(name):
                raise NetCDFPlusLookupError(
                    "Can not find attribute '%s' on variable '%s'" % (
                        name, self.name))

            value = np.asarray(self.variable.getncattr(name)).reshape(-1)
            if value.size != 1 or value.dtype.kind not in 'fiu':
                raise NetCDFPlusLookupError(
                    "Attribute '%s' on variable '%s' is not a single "
                    "number" % (name, self.name))

            return float(value[0])

        def string_attribute(self, name):
            if not self.attribute_exists(name):
                raise NetCDFPlusLookupError(
                    "Can not find attribute '%s' on variable '%s'" % (
                        name, self.name))

            return _coerce_to_string(self.variable.getncattr(name))

        def add_string_attribute(self, name, value):
            self.storage._require_phase(
                Phase.DEFINE,
                "add attribute '%s' to variable '%s'" % (name, self.name))
            self.variable.setncattr(name, str(value))

        def __getattr__(self, item):
            return getattr(self.variable, item)

        def __len__(self):
            return len(self.variable)

        def __str__(self):
            return str(self.variable)

        def __repr__(self):
            return "VariableDelegate('%s', %s, %s)" % (
                self.name, self.var_type, self.dimensions)

    def __init__(self, filename, mode='r', format=None):
        """
        Open or create a NetCDF file

        Parameters
        ----------
        filename : string
            filename of the netcdf file to be used or created
        mode : str
            the mode of file creation, one of 'w' (write), 'a' (append) or
            'r' (read-only, the default)
        format : str
            the on-disk format used for new files. Defaults to
            `NetCDFPlus.default_format`, the NetCDF3 64-bit offset format
            used by Amber

        Raises
        ------
        NetCDFPlusIOError
            if the file can not be opened or is not a NetCDF file
        """
        if mode not in ('r', 'w', 'a'):
            raise NetCDFPlusIOError(
                "Unknown mode '%s' for NetCDF file '%s', should be one of "
                "'r', 'w' or 'a'" % (mode, filename))

        exists = os.path.isfile(filename)
        if exists and mode == 'a':
            logger.info(
                "Open existing netCDF file '%s' for appending", filename)
        elif exists and mode == 'w':
            logger.info(
                "Create new netCDF file '%s' for writing - "
                "deleting existing file", filename)
        elif not exists and mode == 'w':
            logger.info(
                "Create new netCDF file '%s' for writing - "
                "creating new file", filename)
        elif not exists:
            raise NetCDFPlusIOError("File '%s' does not exist." % filename)
        else:
            logger.info(
                "Open existing netCDF file '%s' for reading", filename)

        self.mode = mode
        self._filename = os.path.abspath(filename)

        if format is None:
            format = self.default_format

        try:
            super(NetCDFPlus, self).__init__(filename, mode, format=format)
        except (OSError, RuntimeError) as e:
            raise NetCDFPlusIOError(
                "Could not open NetCDF file '%s': %s" % (filename, e))

        # new files start with an empty schema
        if mode == 'w':
            self._phase = Phase.DEFINE
        else:
            self._phase = Phase.DATA

        self.set_auto_maskandscale(False)
        self.set_auto_chartostring(False)

    @property
    def filename(self):
        return self._filename

    @property
    def file_size(self):
        return os.path.getsize(self.filename)

    @property
    def file_size_str(self):
        current = float(self.file_size)
        output_prefix = ''
        for prefix in ["k", "M", "G"]:
            if current >= 1024:
                output_prefix = prefix
                current /= 1024.0
        return "{0:.2f}{1}B".format(current, output_prefix)

    @property
    def phase(self):
        return self._phase

    def set_phase(self, phase):
        """
        Switch between the define and the data phase

        Parameters
        ----------
        phase : str
            `Phase.DEFINE` or `Phase.DATA`. Setting the current phase again
            does nothing.

        Raises
        ------
        PhaseError
            when trying to go back to `Phase.DEFINE` from `Phase.DATA`
        """
        if phase not in Phase.values:
            raise ValueError("Unknown phase '%s'" % phase)

        if phase == self._phase:
            return

        if phase == Phase.DEFINE:
            raise PhaseError(
                "Can not go back to define phase in file '%s'" %
                self.filename)

        logger.info("Switch file '%s' to %s phase", self.filename, phase)
        self._phase = phase

    def _require_open(self, action):
        if not self.isopen():
            raise NetCDFPlusIOError(
                "Can not %s: file '%s' is closed" % (action, self.filename))

    def _require_phase(self, phase, action):
        self._require_open(action)
        if self._phase != phase:
            raise PhaseError(
                "Can not %s in %s phase of file '%s'" % (
                    action, self._phase, self.filename))

    def add_dimension(self, name, size):
        """
        Initialize a new dimension in the storage.

        Parameters
        ----------
        name : str
            the name for the new dimension
        size : int
            the number of elements in this dimension. `0` creates an
            unlimited dimension, which is the only way to store an empty
            dimension in NetCDF3
        """
        self._require_phase(Phase.DEFINE, "add dimension '%s'" % name)
        if name in self.dimensions:
            raise ValueError("Dimension '%s' already exists" % name)

        size = int(size)
        if size < 0:
            raise ValueError(
                "Invalid size %d for dimension '%s'" % (size, name))

        self.createDimension(name, size if size > 0 else None)

    def add_global_attribute(self, name, value):
        self._require_phase(Phase.DEFINE, "add global attribute '%s'" % name)
        self.setncattr(name, str(value))

    def add_variable(self, name, var_type, *dimensions):
        """
        Create a new variable in the netCDF storage.

        Parameters
        ----------
        name : str
            The name of the variable to be created
        var_type : str
            The element type, one of `char`, `byte`, `short`, `int`,
            `float` or `double`
        *dimensions : str
            names of existing dimensions, slowest varying first

        Returns
        -------
        :class:`NetCDFPlus.VariableDelegate`
            accessor for the new variable
        """
        self._require_phase(Phase.DEFINE, "add variable '%s'" % name)

        if name in self.variables:
            raise ValueError("Variable '%s' already exists" % name)

        if var_type not in self._type_conversion:
            raise ValueError(
                "Unknown variable type '%s', should be one of %s" % (
                    var_type, ', '.join(sorted(self._type_conversion))))

        for dim_name in dimensions:
            if dim_name not in self.dimensions:
                raise NetCDFPlusLookupError(
                    "Can not find dimension '%s' for variable '%s'" % (
                        dim_name, name))

        self.createVariable(name, self._type_conversion[var_type],
                            tuple(dimensions))

        return self.variable(name, var_type)

    def dimension(self, name):
        """
        Return the size of a dimension

        Raises
        ------
        NetCDFPlusLookupError
            if the dimension does not exist
        """
        self._require_open("read dimension '%s'" % name)
        try:
            return len(self.dimensions[name])
        except KeyError:
            raise NetCDFPlusLookupError(
                "Can not find dimension '%s' in file '%s'" % (
                    name, self.filename))

    def optional_dimension(self, name, default):
        """Return the size of a dimension, or `default` if it is absent."""
        self._require_open("read dimension '%s'" % name)
        if name in self.dimensions:
            return len(self.dimensions[name])

        return default

    def variable_exists(self, name):
        self._require_open("look up variable '%s'" % name)
        return name in self.variables

    def global_attribute(self, name):
        """
        Return a global attribute as a string

        Returns
        -------
        str or None
            the value of the attribute or `None` if it does not exist
        """
        self._require_open("read global attribute '%s'" % name)
        if name not in self.ncattrs():
            return None

        return _coerce_to_string(self.getncattr(name))

    def variable(self, name, var_type='double'):
        """
        Return an accessor for an existing variable

        Parameters
        ----------
        name : str
            the name of the variable
        var_type : str
            the expected element type

        Raises
        ------
        NetCDFPlusLookupError
            if the variable does not exist, or if its element type differs
            from `var_type`
        """
        if var_type not in self._type_conversion:
            raise ValueError("Unknown variable type '%s'" % var_type)

        self._require_open("look up variable '%s'" % name)

        try:
            ncvar = self.variables[name]
        except KeyError:
            raise NetCDFPlusLookupError(
                "Can not find variable '%s' in file '%s'" % (
                    name, self.filename))

        if ncvar.dtype != self._type_conversion[var_type]:
            raise NetCDFPlusLookupError(
                "Variable '%s' in file '%s' is of type %s, expected %s" % (
                    name, self.filename, ncvar.dtype, var_type))

        return NetCDFPlus.VariableDelegate(self, ncvar, var_type)

    def sync(self):
        self._require_open("sync")
        try:
            super(NetCDFPlus, self).sync()
        except (OSError, RuntimeError) as e:
            raise NetCDFPlusIOError(
                "Could not sync file '%s': %s" % (self.filename, e))

    def close(self):
        if self.isopen():
            logger.info("Closing netCDF file '%s'", self.filename)
            super(NetCDFPlus, self).close()

    def __repr__(self):
        return "NetCDFPlus @ '" + self.filename + "'"

    def __getattr__(self, item):
        # special names are never instance data
        if item.startswith("__") and item.endswith("__"):
            raise AttributeError(item)
        try:
            return self.__dict__[item]
        except KeyError:
            try:
                return self.__class__.__dict__[item]
            except KeyError:
                raise AttributeError(
                    "'{cls}' object has no attribute '{itm}'".format(
                        cls=self.__class__, itm=item
                    )
                )

    def __setattr__(self, key, value):
        self.__dict__[key] = value
