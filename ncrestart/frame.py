"""
In-memory representation of a single structure: positions, optional
velocities and the periodic unit cell.
"""

import copy
import math

import numpy as np


def _is_roughly_90(angle):
    return abs(angle - 90.0) < 1e-5


class CellShape(object):
    """Possible shapes of a :class:`UnitCell`"""
    INFINITE = 'infinite'
    ORTHORHOMBIC = 'orthorhombic'
    TRICLINIC = 'triclinic'


class UnitCell(object):
    """
    Periodic simulation box given by three lengths and three angles

    The default cell has zero lengths and right angles. It is the "infinite"
    cell used for non periodic systems, carrying no geometric information.
    Any cell with three zero lengths is infinite.

    Parameters
    ----------
    a, b, c : float
        lengths of the cell vectors, in angstrom
    alpha, beta, gamma : float
        angles between the cell vectors, in degree
    """
    __slots__ = ('_lengths', '_angles', '_shape')

    def __init__(self, a=0.0, b=0.0, c=0.0, alpha=90.0, beta=90.0,
                 gamma=90.0):
        lengths = (float(a), float(b), float(c))
        angles = (float(alpha), float(beta), float(gamma))

        if any(length < 0 for length in lengths):
            raise ValueError(
                "Unit cell lengths can not be negative, got %s" % (lengths,))

        if all(length == 0 for length in lengths):
            shape = CellShape.INFINITE
        elif all(_is_roughly_90(angle) for angle in angles):
            shape = CellShape.ORTHORHOMBIC
        else:
            if any(angle <= 0 or angle >= 180 for angle in angles):
                raise ValueError(
                    "Unit cell angles must be between 0 and 180 degrees, "
                    "got %s" % (angles,))
            shape = CellShape.TRICLINIC

        object.__setattr__(self, '_lengths', lengths)
        object.__setattr__(self, '_angles', angles)
        object.__setattr__(self, '_shape', shape)

    def __setattr__(self, key, value):
        raise AttributeError("UnitCell is immutable")

    @property
    def a(self):
        return self._lengths[0]

    @property
    def b(self):
        return self._lengths[1]

    @property
    def c(self):
        return self._lengths[2]

    @property
    def alpha(self):
        return self._angles[0]

    @property
    def beta(self):
        return self._angles[1]

    @property
    def gamma(self):
        return self._angles[2]

    @property
    def lengths(self):
        return self._lengths

    @property
    def angles(self):
        return self._angles

    @property
    def shape(self):
        return self._shape

    @property
    def box_vectors(self):
        """
        Returns
        -------
        numpy.ndarray, shape=(3, 3)
            the cell vectors as rows, `a` along x and `b` in the xy plane.
            All zeros for an infinite cell.
        """
        if self._shape == CellShape.INFINITE:
            return np.zeros((3, 3))

        a, b, c = self._lengths
        if self._shape == CellShape.ORTHORHOMBIC:
            return np.diag([a, b, c])

        cos_alpha, cos_beta, cos_gamma = [
            math.cos(math.radians(angle)) for angle in self._angles]
        sin_gamma = math.sin(math.radians(self.gamma))

        c_y = (cos_alpha - cos_beta * cos_gamma) / sin_gamma
        c_z = math.sqrt(max(0.0, 1.0 - cos_beta ** 2 - c_y ** 2))

        return np.array([
            [a, 0.0, 0.0],
            [b * cos_gamma, b * sin_gamma, 0.0],
            [c * cos_beta, c * c_y, c * c_z],
        ])

    @property
    def volume(self):
        return abs(float(np.linalg.det(self.box_vectors)))

    def __eq__(self, other):
        if not isinstance(other, UnitCell):
            return NotImplemented
        return (self._shape == other._shape
                and self._lengths == other._lengths
                and self._angles == other._angles)

    def __ne__(self, other):
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self):
        return hash((self._shape, self._lengths, self._angles))

    def __reduce__(self):
        return (UnitCell, self._lengths + self._angles)

    def __repr__(self):
        return "UnitCell(a=%g, b=%g, c=%g, alpha=%g, beta=%g, gamma=%g)" % (
            self._lengths + self._angles)


class Frame(object):
    """
    One snapshot of a system

    Parameters
    ----------
    positions : array-like, shape=(atoms, 3)
        atomic positions in angstrom
    velocities : array-like, shape=(atoms, 3) or None
        atomic velocities in angstrom/picosecond. `None` (the default) means
        that this frame carries no velocities at all, which is different from
        all velocities being zero
    cell : :class:`UnitCell`
        the unit cell, defaults to the infinite cell
    """

    def __init__(self, positions=None, velocities=None, cell=None):
        if positions is None:
            positions = np.zeros((0, 3))
        self.positions = self._as_vectors(positions, 'positions')

        if velocities is not None:
            velocities = self._as_vectors(velocities, 'velocities')
            if velocities.shape != self.positions.shape:
                raise ValueError(
                    "Got %d velocities for %d atoms" % (
                        velocities.shape[0], self.positions.shape[0]))
        self.velocities = velocities

        if cell is None:
            cell = UnitCell()
        self.cell = cell

    @staticmethod
    def _as_vectors(values, name):
        array = np.array(values, dtype=np.float64)
        if array.size == 0:
            return array.reshape((0, 3))
        if array.ndim != 2 or array.shape[1] != 3:
            raise ValueError(
                "%s must have shape (atoms, 3), got %s" % (name, array.shape))
        return array

    @property
    def n_atoms(self):
        """
        Returns the number of atoms in the frame
        """
        return self.positions.shape[0]

    def __len__(self):
        return self.n_atoms

    @property
    def has_velocities(self):
        return self.velocities is not None

    def resize(self, n_atoms):
        """
        Change the number of atoms, keeping the leading ones

        New positions (and velocities, if present) are set to zero.
        """
        n_atoms = int(n_atoms)
        if n_atoms < 0:
            raise ValueError("Can not resize a frame to %d atoms" % n_atoms)

        def _resized(array):
            new = np.zeros((n_atoms, 3))
            keep = min(n_atoms, array.shape[0])
            new[:keep] = array[:keep]
            return new

        self.positions = _resized(self.positions)
        if self.velocities is not None:
            self.velocities = _resized(self.velocities)

    def add_velocities(self):
        """Allocate zero velocities, if this frame has none yet."""
        if self.velocities is None:
            self.velocities = np.zeros_like(self.positions)

    def copy(self):
        """
        Returns
        -------
        Frame
            a deep copy of this frame
        """
        return Frame(positions=self.positions,
                     velocities=copy.deepcopy(self.velocities),
                     cell=self.cell)

    def __repr__(self):
        return "Frame(n_atoms=%d, velocities=%s, cell=%r)" % (
            self.n_atoms, self.has_velocities, self.cell)
