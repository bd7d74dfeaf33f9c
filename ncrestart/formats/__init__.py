from .core import (TrajectoryFormat, FormatInfo, FormatError,
                   FormatValidationError, UnsupportedModeError,
                   UnsupportedOptionError, SingleFrameViolationError,
                   FormatWarning)
from .amber_restart import AmberRestartFormat, is_valid
