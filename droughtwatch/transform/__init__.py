from .align import SeriesAligner  # noqa: F401
from .location import (  # noqa: F401
    CoordinatePair,
    LocationResolver,
    MapClick,
    NameQuery,
    UploadedGeometry,
)
from .regions import GridSubRegions  # noqa: F401
