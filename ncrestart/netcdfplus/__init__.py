from .netcdfplus import NetCDFPlus, Phase
from .errors import (NetCDFPlusError, NetCDFPlusIOError,
                     NetCDFPlusLookupError, PhaseError, BoundsError)
from .util import with_timing_logging
