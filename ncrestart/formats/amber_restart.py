"""
Amber NetCDF restart files (`.ncrst`)

A restart file holds exactly one frame: coordinates, optionally velocities,
and the unit cell. See http://ambermd.org/netcdf/nctraj.xhtml for the
convention.
"""

import logging
import warnings

from ncrestart import version
from ncrestart.frame import Frame, UnitCell
from ncrestart.ncrestart_logging import initialization_logging, init_log
from ncrestart.netcdfplus import NetCDFPlus, Phase
from ncrestart.netcdfplus.errors import NetCDFPlusIOError

from .core import (TrajectoryFormat, FormatInfo, FormatWarning,
                   FormatValidationError, UnsupportedModeError,
                   UnsupportedOptionError, SingleFrameViolationError)

logger = logging.getLogger(__name__)

# length of the `label` dimension used for the angle names
STRING_MAXLEN = 10

CONVENTIONS = 'AMBERRESTART'
CONVENTION_VERSION = '1.0'


def is_valid(storage, natoms=None):
    """
    Check that a NetCDF file follows the Amber restart convention

    Parameters
    ----------
    storage : :class:`ncrestart.netcdfplus.NetCDFPlus`
        the file to check
    natoms : int or None
        the expected size of the `atom` dimension. Only given when checking
        a file we just initialized for writing; the `atom` dimension is not
        checked when None.

    Returns
    -------
    bool
        True if all checks pass. Checks stop at the first failure, which is
        reported as a :class:`FormatWarning` when reading.
    """
    writing = natoms is not None

    def _invalid(message):
        if writing:
            logger.warning("Amber Restart writer: %s", message)
        else:
            warnings.warn("Amber Restart reader: " + message, FormatWarning)
        return False

    if storage.global_attribute('Conventions') != CONVENTIONS:
        return _invalid("we can only read AMBER convention")

    if storage.global_attribute('ConventionVersion') != CONVENTION_VERSION:
        return _invalid(
            "we can only read version %s of AMBER convention" %
            CONVENTION_VERSION)

    spatial = storage.optional_dimension('spatial', None)
    if spatial != 3:
        return _invalid(
            "wrong size for spatial dimension: should be 3, is %s" % spatial)

    if writing:
        n_atoms = storage.optional_dimension('atom', None)
        if n_atoms != natoms:
            logger.warning(
                "Amber Restart writer: wrong size for atoms dimension: "
                "should be %d, is %s", natoms, n_atoms)
            return False

    return True


class AmberRestartFormat(TrajectoryFormat):
    """
    Reader and writer for Amber NetCDF restart files

    Opening for reading validates the file right away. Opening for writing
    creates an empty file; its schema is written with the first (and only)
    frame, since the number of atoms is not known before.

    Parameters
    ----------
    path : str
        the file name
    mode : str
        'r' (read, the default) or 'w' (write). Appending is not possible for
        a single frame format.
    compression : str or None
        must be None, NetCDF files are not compressed

    Attributes
    ----------
    file : :class:`ncrestart.netcdfplus.NetCDFPlus`
        the underlying NetCDF file, owned by this object
    validated : bool
        whether the file is known to follow the convention
    step_done : bool
        whether the frame has been read or written
    """
    info = FormatInfo(
        name="Amber Restart",
        extension=".ncrst",
        description="Amber convention for binary NetCDF Restart files",
        reference="http://ambermd.org/netcdf/nctraj.xhtml"
    )

    def __init__(self, path, mode='r', compression=None):
        if mode == 'a':
            raise UnsupportedModeError(
                "append mode ('a') is not supported with Amber Restart "
                "format")
        if mode not in ('r', 'w'):
            raise ValueError(
                "Unknown mode '%s' for Amber Restart file '%s'" % (mode, path))
        if compression is not None:
            raise UnsupportedOptionError(
                "compression is not supported with NetCDF format")

        self.path = path
        self.mode = mode
        self.step_done = False
        self.validated = False

        self.file = NetCDFPlus(path, mode)

        if mode == 'r':
            if not is_valid(self.file):
                self.file.close()
                raise FormatValidationError(
                    "invalid Amber Restart file at '%s'" % path)
            self.validated = True

        initialization_logging(init_log, self, ['path', 'mode'])

    def nsteps(self):
        return 1

    def read(self, frame=None):
        if self.step_done:
            raise SingleFrameViolationError(
                "Amber Restart format only supports reading one frame")

        return self.read_step(0, frame)

    def read_step(self, step, frame=None):
        """
        Read the frame of this file

        Parameters
        ----------
        step : int
            must be 0
        frame : :class:`ncrestart.Frame` or None
            the frame to fill, a new one is created if None. It is only
            modified once all data has been read.

        Returns
        -------
        :class:`ncrestart.Frame`
            the frame, with velocities only if the file contains some
        """
        if step != 0 or self.step_done:
            raise SingleFrameViolationError(
                "Amber Restart format only supports reading one frame")
        if self.mode != 'r':
            raise NetCDFPlusIOError(
                "Can not read from Amber Restart file '%s' opened in "
                "mode '%s'" % (self.path, self.mode))

        cell = self._read_cell()

        n_atoms = self.file.dimension('atom')
        positions = self._read_array('coordinates', n_atoms)
        velocities = None
        if self.file.variable_exists('velocities'):
            velocities = self._read_array('velocities', n_atoms)

        if frame is None:
            frame = Frame()

        frame.cell = cell
        frame.resize(n_atoms)
        frame.positions[:] = positions
        if velocities is not None:
            frame.add_velocities()
            frame.velocities[:] = velocities
        else:
            frame.velocities = None

        self.step_done = True
        return frame

    def _read_cell(self):
        if not (self.file.variable_exists('cell_lengths')
                and self.file.variable_exists('cell_angles')):
            return UnitCell()

        if (self.file.optional_dimension('cell_spatial', 0) != 3
                or self.file.optional_dimension('cell_angular', 0) != 3):
            return UnitCell()

        length_var = self.file.variable('cell_lengths')
        angles_var = self.file.variable('cell_angles')

        lengths = self._scaled(length_var, length_var.get([0], [3]))
        angles = self._scaled(angles_var, angles_var.get([0], [3]))

        return UnitCell(lengths[0], lengths[1], lengths[2],
                        angles[0], angles[1], angles[2])

    def _read_array(self, name, n_atoms):
        variable = self.file.variable(name)
        data = self._scaled(variable, variable.get([0, 0], [n_atoms, 3]))
        return data.reshape((n_atoms, 3))

    @staticmethod
    def _scaled(variable, data):
        if variable.attribute_exists('scale_factor'):
            scale_factor = variable.float_attribute('scale_factor')
            logger.debug("Applying scale_factor %f to '%s'",
                         scale_factor, variable.name)
            data = data * scale_factor
        return data

    def write(self, frame):
        """
        Write the frame of this file

        The first call on a new file also writes the schema. Stored values
        are always in angstrom, degree and angstrom/picosecond, without any
        `scale_factor`.

        Parameters
        ----------
        frame : :class:`ncrestart.Frame`
            the frame to write
        """
        if self.step_done:
            raise SingleFrameViolationError(
                "Amber Restart format only supports writing one frame")
        if self.mode != 'w':
            raise NetCDFPlusIOError(
                "Can not write to Amber Restart file '%s' opened in "
                "mode '%s'" % (self.path, self.mode))

        n_atoms = frame.n_atoms
        if not self.validated:
            self._initialize(n_atoms, frame.has_velocities)
            if not is_valid(self.file, n_atoms):
                raise FormatValidationError(
                    "could not initialize Amber Restart file at '%s'" %
                    self.path)
            self.validated = True

        self._write_cell(frame.cell)
        self._write_array(frame.positions, 'coordinates')
        if frame.has_velocities:
            self._write_array(frame.velocities, 'velocities')

        self.file.sync()
        self.step_done = True

    def _initialize(self, n_atoms, with_velocities):
        logger.info("Setup Amber Restart file '%s' for %d atoms",
                    self.path, n_atoms)
        storage = self.file
        storage.set_phase(Phase.DEFINE)

        storage.add_global_attribute('Conventions', CONVENTIONS)
        storage.add_global_attribute('ConventionVersion', CONVENTION_VERSION)
        storage.add_global_attribute('program', 'ncrestart')
        storage.add_global_attribute('programVersion', version.short_version)

        storage.add_dimension('spatial', 3)
        storage.add_dimension('atom', n_atoms)
        storage.add_dimension('cell_spatial', 3)
        storage.add_dimension('cell_angular', 3)
        storage.add_dimension('label', STRING_MAXLEN)

        spatial = storage.add_variable('spatial', 'char', 'spatial')
        cell_spatial = storage.add_variable(
            'cell_spatial', 'char', 'cell_spatial')
        cell_angular = storage.add_variable(
            'cell_angular', 'char', 'cell_angular', 'label')

        coordinates = storage.add_variable(
            'coordinates', 'double', 'atom', 'spatial')
        coordinates.add_string_attribute('units', 'angstrom')

        cell_lengths = storage.add_variable(
            'cell_lengths', 'double', 'cell_spatial')
        cell_lengths.add_string_attribute('units', 'angstrom')

        cell_angles = storage.add_variable(
            'cell_angles', 'double', 'cell_angular')
        cell_angles.add_string_attribute('units', 'degree')

        if with_velocities:
            velocities = storage.add_variable(
                'velocities', 'double', 'atom', 'spatial')
            velocities.add_string_attribute('units', 'angstrom/picosecond')

        storage.set_phase(Phase.DATA)

        spatial.add([0], [3], 'xyz')
        cell_spatial.add([0], [3], 'abc')
        cell_angular.add([0, 0], [3, STRING_MAXLEN],
                         ['alpha', 'beta', 'gamma'])

    def _write_array(self, array, name):
        variable = self.file.variable(name)
        n_atoms = array.shape[0]
        variable.add([0, 0], [n_atoms, 3], array)

    def _write_cell(self, cell):
        lengths = self.file.variable('cell_lengths')
        angles = self.file.variable('cell_angles')

        lengths.add([0], [3], [cell.a, cell.b, cell.c])
        angles.add([0], [3], [cell.alpha, cell.beta, cell.gamma])

    def close(self):
        self.file.close()

    def __repr__(self):
        return "AmberRestartFormat('%s', mode='%s')" % (self.path, self.mode)
