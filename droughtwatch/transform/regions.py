"""Grid decomposition of a polygon into sub-regions."""
from __future__ import annotations

from typing import List, Sequence, Tuple

import shapely.geometry as sgeom

from droughtwatch.fetch.base import SubRegionSource
from droughtwatch.models import LatLng, Location
from droughtwatch.transform.location import to_polygon


def point_in_polygon(point: LatLng, ring: Sequence[LatLng]) -> bool:
    """Strict containment of a (lat, lng) point; boundary points count as outside."""
    lat, lng = point
    return to_polygon(ring).contains(sgeom.Point(lng, lat))


class GridSubRegions(SubRegionSource):
    """
    Split the polygon's bounding box into ``rows × cols`` cells and keep the
    cells whose centre falls inside the polygon.  Region ids are ``r{row}c{col}``
    counted from the south-west corner.
    """

    def __init__(self, rows: int = 2, cols: int = 2) -> None:
        if rows < 1 or cols < 1:
            raise ValueError("grid needs at least one row and one column")
        self.rows = rows
        self.cols = cols

    def split(self, location: Location) -> List[Tuple[str, Location]]:
        if not location.polygon:
            return []
        geom = to_polygon(location.polygon)
        min_lng, min_lat, max_lng, max_lat = geom.bounds
        dlat = (max_lat - min_lat) / self.rows
        dlng = (max_lng - min_lng) / self.cols
        out = []
        for r in range(self.rows):
            for c in range(self.cols):
                lat, lng = min_lat + (r + 0.5) * dlat, min_lng + (c + 0.5) * dlng
                if geom.contains(sgeom.Point(lng, lat)):
                    region_id = f"r{r}c{c}"
                    name = f"{location.name} {region_id}" if location.name else region_id
                    out.append((region_id, Location(lat=lat, lng=lng, name=name)))
        return out


__all__ = ["GridSubRegions", "point_in_polygon"]
