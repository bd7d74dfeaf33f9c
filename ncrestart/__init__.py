from . import version

from .frame import Frame, UnitCell, CellShape

from .netcdfplus import (NetCDFPlus, Phase, NetCDFPlusError,
                         NetCDFPlusIOError, NetCDFPlusLookupError, PhaseError,
                         BoundsError)

from .formats import (AmberRestartFormat, is_valid, TrajectoryFormat,
                      FormatInfo, FormatError, FormatValidationError,
                      UnsupportedModeError, UnsupportedOptionError,
                      SingleFrameViolationError, FormatWarning)

__version__ = version.short_version
