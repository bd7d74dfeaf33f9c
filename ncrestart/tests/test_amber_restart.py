import os
import warnings

import netCDF4
import numpy as np
import numpy.testing as npt
import pytest

from ncrestart import version
from ncrestart.frame import Frame, UnitCell, CellShape
from ncrestart.formats import (AmberRestartFormat, is_valid, FormatWarning,
                               FormatValidationError, UnsupportedModeError,
                               UnsupportedOptionError,
                               SingleFrameViolationError, TrajectoryFormat)
from ncrestart.netcdfplus import (NetCDFPlus, Phase, NetCDFPlusIOError,
                                  NetCDFPlusLookupError)

from .test_helpers import (TemporaryDirectory, make_restart_file,
                           make_water_file, make_scaled_file,
                           water_positions, assert_vectors_close,
                           WATER_FIRST, WATER_LAST)


def _file_bytes(filename):
    with open(filename, 'rb') as f:
        return f.read()


class TestReadWater(TemporaryDirectory):
    def setup_method(self):
        super(TestReadWater, self).setup_method()
        self.water = make_water_file(self.filename("water.ncrst"))

    def test_is_a_trajectory_format(self):
        with AmberRestartFormat(self.water) as restart:
            assert isinstance(restart, TrajectoryFormat)
            assert restart.info.extension == '.ncrst'
            assert restart.info.name == 'Amber Restart'

    def test_read(self):
        with AmberRestartFormat(self.water) as restart:
            assert restart.validated
            assert restart.nsteps() == 1
            frame = restart.read()

        assert frame.n_atoms == 297
        assert len(frame) == 297

        cell = frame.cell
        assert cell.shape == CellShape.ORTHORHOMBIC
        assert abs(cell.a - 15.0) < 1e-5
        assert abs(cell.b - 15.0) < 1e-5
        assert abs(cell.c - 15.0) < 1e-5

        assert_vectors_close(frame.positions[0], WATER_FIRST)
        assert_vectors_close(frame.positions[296], WATER_LAST)
        assert_vectors_close(frame.positions, water_positions(), tol=1e-12)
        assert not frame.has_velocities

    def test_read_into_existing_frame(self):
        frame = Frame(positions=np.ones((3, 3)))
        with AmberRestartFormat(self.water) as restart:
            result = restart.read(frame)

        assert result is frame
        assert frame.n_atoms == 297
        assert_vectors_close(frame.positions[0], WATER_FIRST)

    def test_read_step(self):
        with AmberRestartFormat(self.water) as restart:
            frame = restart.read_step(0)
        assert frame.n_atoms == 297

    def test_read_twice(self):
        with AmberRestartFormat(self.water) as restart:
            restart.read()
            with pytest.raises(SingleFrameViolationError,
                               match="only supports reading one frame"):
                restart.read()

    def test_read_step_after_read(self):
        with AmberRestartFormat(self.water) as restart:
            restart.read()
            with pytest.raises(SingleFrameViolationError):
                restart.read_step(0)

    def test_read_other_step(self):
        with AmberRestartFormat(self.water) as restart:
            with pytest.raises(SingleFrameViolationError):
                restart.read_step(1)
            # the frame is still there
            frame = restart.read()
        assert frame.n_atoms == 297

    def test_write_in_read_mode(self):
        before = _file_bytes(self.water)
        with AmberRestartFormat(self.water) as restart:
            with pytest.raises(NetCDFPlusIOError):
                restart.write(Frame(positions=np.zeros((297, 3))))
        assert _file_bytes(self.water) == before


class TestReadSpecialFiles(TemporaryDirectory):
    def test_missing_cell(self):
        filename = make_restart_file(self.filename("no-cell.ncrst"),
                                     np.ones((1989, 3)))
        with AmberRestartFormat(filename) as restart:
            frame = restart.read_step(0)

        assert frame.n_atoms == 1989
        assert frame.cell == UnitCell()
        assert frame.cell.shape == CellShape.INFINITE

    def test_missing_cell_angles(self):
        filename = make_restart_file(self.filename("half-cell.ncrst"),
                                     np.ones((5, 3)),
                                     lengths=[10.0, 10.0, 10.0],
                                     angles=[90.0, 90.0, 90.0],
                                     omit=["cell_angles"])

        with AmberRestartFormat(filename) as restart:
            frame = restart.read()
        assert frame.cell == UnitCell()

    def test_scale_factor(self):
        filename = make_scaled_file(self.filename("scaled.ncrst"))
        with AmberRestartFormat(filename) as restart:
            frame = restart.read()

        assert frame.n_atoms == 1938

        cell = frame.cell
        assert cell.shape == CellShape.ORTHORHOMBIC
        assert abs(cell.a - 60.9682 * 1.765) < 1e-4
        assert abs(cell.b - 60.9682 * 1.765) < 1e-4
        assert cell.c == 0
        npt.assert_allclose(cell.angles, [90.0, 90.0, 90.0])

        assert_vectors_close(frame.positions[0],
                             np.array([1.39, 1.39, 0]) * 0.455)
        assert_vectors_close(frame.positions[296],
                             np.array([29.10, 37.41, 0]) * 0.455)

        assert frame.has_velocities
        assert_vectors_close(
            frame.velocities[1400],
            np.array([-0.042603, -0.146347, 12.803150]) * -0.856)
        assert_vectors_close(
            frame.velocities[1600],
            np.array([0.002168, 0.125240, 4.188500]) * -0.856)

    def test_missing_coordinates(self):
        filename = make_restart_file(self.filename("no-coordinates.ncrst"),
                                     np.ones((5, 3)), omit=["coordinates"])

        with AmberRestartFormat(filename) as restart:
            with pytest.raises(NetCDFPlusLookupError, match="coordinates"):
                restart.read()
            assert not restart.step_done

    def test_read_reuses_existing_velocities(self):
        filename = make_restart_file(self.filename("vel.ncrst"),
                                     np.ones((2, 3)),
                                     velocities=np.full((2, 3), 2.0))
        frame = Frame(positions=np.zeros((4, 3)),
                      velocities=np.zeros((4, 3)))
        with AmberRestartFormat(filename) as restart:
            restart.read(frame)

        assert frame.n_atoms == 2
        npt.assert_array_equal(frame.velocities, np.full((2, 3), 2.0))

    def test_read_drops_velocities_missing_from_file(self):
        filename = make_restart_file(self.filename("no-vel.ncrst"),
                                     np.ones((2, 3)))
        frame = Frame(positions=np.zeros((3, 3)),
                      velocities=np.full((3, 3), 7.0))
        with AmberRestartFormat(filename) as restart:
            restart.read(frame)

        assert frame.n_atoms == 2
        assert not frame.has_velocities
        assert frame.velocities is None

    def test_wrong_cell_dimension(self):
        filename = make_restart_file(self.filename("cell2.ncrst"),
                                     np.ones((3, 3)),
                                     lengths=[10.0, 10.0],
                                     angles=[90.0, 90.0, 90.0],
                                     n_cell=2)
        with AmberRestartFormat(filename) as restart:
            frame = restart.read()

        assert frame.cell == UnitCell()
        assert frame.cell.shape == CellShape.INFINITE
        assert frame.n_atoms == 3


class TestClosedFile(TemporaryDirectory):
    def test_read_after_close(self):
        filename = make_water_file(self.filename("water.ncrst"))
        restart = AmberRestartFormat(filename)
        restart.close()
        with pytest.raises(IOError, match="closed"):
            restart.read()
        assert not restart.step_done

    def test_write_after_close(self):
        restart = AmberRestartFormat(self.filename("out.ncrst"), 'w')
        restart.close()
        with pytest.raises(NetCDFPlusIOError, match="closed"):
            restart.write(Frame(positions=np.ones((2, 3))))
        assert not restart.step_done


class TestValidation(TemporaryDirectory):
    @pytest.mark.parametrize('kwargs, message', [
        ({'conventions': 'AMBER'}, "AMBER convention"),
        ({'conventions': None}, "AMBER convention"),
        ({'convention_version': '2.0'}, "version 1.0"),
        ({'n_spatial': 2}, "spatial dimension"),
    ])
    def test_invalid_files(self, kwargs, message):
        filename = make_restart_file(self.filename("invalid.ncrst"),
                                     np.ones((3, 3)), **kwargs)
        with pytest.warns(FormatWarning, match=message):
            with pytest.raises(FormatValidationError,
                               match="invalid Amber Restart file"):
                AmberRestartFormat(filename)

    def test_is_valid(self):
        filename = make_water_file(self.filename("water.ncrst"))
        with NetCDFPlus(filename) as storage:
            assert is_valid(storage)
            with warnings.catch_warnings():
                warnings.simplefilter("error")
                assert is_valid(storage, 297)
                assert not is_valid(storage, 12)

    def test_trajectory_is_not_a_restart(self):
        filename = make_restart_file(self.filename("traj.nc"),
                                     np.ones((3, 3)), conventions='AMBER')
        with NetCDFPlus(filename) as storage:
            with pytest.warns(FormatWarning):
                assert not is_valid(storage)

    def test_not_a_netcdf_file(self):
        filename = self.filename("garbage.ncrst")
        with open(filename, 'w') as f:
            f.write("garbage\n")
        with pytest.raises(IOError):
            AmberRestartFormat(filename)


class TestModes(TemporaryDirectory):
    def test_append_is_unsupported(self):
        filename = self.filename("append.ncrst")
        with pytest.raises(UnsupportedModeError, match="append mode"):
            AmberRestartFormat(filename, 'a')
        assert not os.path.exists(filename)

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown mode"):
            AmberRestartFormat(self.filename("x.ncrst"), 'x')

    def test_compression_is_unsupported(self):
        filename = self.filename("compressed.ncrst")
        with pytest.raises(UnsupportedOptionError, match="compression"):
            AmberRestartFormat(filename, 'w', compression='gzip')
        assert not os.path.exists(filename)

    def test_write_mode_defers_schema(self):
        filename = self.filename("new.ncrst")
        with AmberRestartFormat(filename, 'w') as restart:
            assert not restart.validated
            assert restart.file.phase == Phase.DEFINE
            assert restart.nsteps() == 1
            assert len(restart.file.dimensions) == 0

    def test_read_in_write_mode(self):
        with AmberRestartFormat(self.filename("new.ncrst"), 'w') as restart:
            with pytest.raises(NetCDFPlusIOError):
                restart.read()


class TestWrite(TemporaryDirectory):
    def setup_method(self):
        super(TestWrite, self).setup_method()
        self.path = self.filename("out.ncrst")
        positions = np.array([[1.0, 2.0, 3.0]] * 4)
        velocities = np.array([[-3.0, -2.0, -1.0]] * 4)
        self.frame = Frame(positions=positions, velocities=velocities,
                           cell=UnitCell(10.0, 11.0, 12.0, 90.0, 80.0, 120.0))

    def test_write_and_read(self):
        with AmberRestartFormat(self.path, 'w') as restart:
            restart.write(self.frame)
            assert restart.validated
            assert restart.step_done

        with AmberRestartFormat(self.path, 'r') as restart:
            frame = restart.read()

        assert_vectors_close(frame.positions, self.frame.positions)
        assert frame.has_velocities
        assert_vectors_close(frame.velocities, self.frame.velocities)
        assert frame.cell == self.frame.cell
        assert frame.cell.shape == CellShape.TRICLINIC

    def test_write_twice(self):
        restart = AmberRestartFormat(self.path, 'w')
        restart.write(self.frame)
        restart.file.sync()
        written = _file_bytes(self.path)

        other = Frame(positions=np.zeros((4, 3)))
        with pytest.raises(SingleFrameViolationError,
                           match="only supports writing one frame"):
            restart.write(other)
        restart.close()

        assert _file_bytes(self.path) == written
        with AmberRestartFormat(self.path) as check:
            frame = check.read()
        assert_vectors_close(frame.positions, self.frame.positions)

    def test_schema(self):
        with AmberRestartFormat(self.path, 'w') as restart:
            restart.write(self.frame)

        dataset = netCDF4.Dataset(self.path, 'r')
        try:
            assert dataset.file_format == 'NETCDF3_64BIT_OFFSET'
            assert dataset.getncattr('Conventions') == 'AMBERRESTART'
            assert dataset.getncattr('ConventionVersion') == '1.0'
            assert dataset.getncattr('program') == 'ncrestart'
            assert dataset.getncattr('programVersion') == \
                version.short_version

            dims = {name: len(dim) for name, dim in dataset.dimensions.items()}
            assert dims == {'spatial': 3, 'atom': 4, 'cell_spatial': 3,
                            'cell_angular': 3, 'label': 10}

            variables = dataset.variables
            assert variables['coordinates'].dimensions == ('atom', 'spatial')
            assert variables['coordinates'].units == 'angstrom'
            assert variables['cell_lengths'].units == 'angstrom'
            assert variables['cell_angles'].units == 'degree'
            assert variables['velocities'].units == 'angstrom/picosecond'
            assert variables['coordinates'].dtype == np.float64

            for name in variables:
                assert 'scale_factor' not in variables[name].ncattrs()

            dataset.set_auto_mask(False)
            dataset.set_auto_chartostring(False)
            spatial = variables['spatial'][:]
            assert b''.join(spatial).decode('ascii') == 'xyz'
            labels = netCDF4.chartostring(variables['cell_angular'][:])
            assert list(labels) == ['alpha', 'beta', 'gamma']
        finally:
            dataset.close()

    def test_no_velocities(self):
        frame = Frame(positions=self.frame.positions)
        with AmberRestartFormat(self.path, 'w') as restart:
            restart.write(frame)

        with NetCDFPlus(self.path) as storage:
            assert not storage.variable_exists('velocities')

        with AmberRestartFormat(self.path) as restart:
            frame = restart.read()
        assert not frame.has_velocities
        assert frame.cell == UnitCell()

    def test_write_empty_frame(self):
        with AmberRestartFormat(self.path, 'w') as restart:
            restart.write(Frame())

        with AmberRestartFormat(self.path) as restart:
            frame = restart.read()
        assert frame.n_atoms == 0
        assert frame.positions.shape == (0, 3)

    @pytest.mark.parametrize('n_atoms', [1, 2, 17, 300])
    @pytest.mark.parametrize('with_velocities', [True, False])
    def test_round_trip(self, n_atoms, with_velocities):
        rng = np.random.RandomState(n_atoms)
        positions = rng.uniform(-50.0, 50.0, size=(n_atoms, 3))
        velocities = None
        if with_velocities:
            velocities = rng.normal(size=(n_atoms, 3))
        frame = Frame(positions, velocities,
                      UnitCell(20.0, 21.0, 22.0, 90.0, 90.0, 90.0))

        with AmberRestartFormat(self.path, 'w') as restart:
            restart.write(frame)
        with AmberRestartFormat(self.path) as restart:
            result = restart.read()

        npt.assert_allclose(result.positions, positions)
        assert result.has_velocities == with_velocities
        if with_velocities:
            npt.assert_allclose(result.velocities, velocities)
        assert result.cell == frame.cell

    def test_scale_factor_is_not_written_back(self):
        scaled = make_scaled_file(self.filename("scaled.ncrst"))
        with AmberRestartFormat(scaled) as restart:
            frame = restart.read()

        with AmberRestartFormat(self.path, 'w') as restart:
            restart.write(frame)

        with NetCDFPlus(self.path) as storage:
            lengths = storage.variable('cell_lengths')
            assert not lengths.attribute_exists('scale_factor')
            npt.assert_allclose(lengths.get([0], [3]),
                                [frame.cell.a, frame.cell.b, 0.0])

        with AmberRestartFormat(self.path) as restart:
            again = restart.read()
        npt.assert_allclose(again.positions, frame.positions)
        npt.assert_allclose(again.velocities, frame.velocities)
        assert again.cell == frame.cell
