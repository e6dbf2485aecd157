from .exceptions import (
    DegenerateGridError,
    FGTError,
    InvalidConfiguration,
    NotComputedError,
)
from .kernel import GaussianKernel
from .multiindex import MultiIndexTable
from .grid import GridGeometry
from .indexer import SpatialIndexer
from .expansion import ExpansionEngine
from .parameters import Parameters
from .config import Config
from .fgt import FGTKde, fgt_kde
from .naive import naive_kde

__version__ = "0.1.0"
