from __future__ import annotations

from geo.aoi import LatLng

GOOGLE_MAPS_DIR_URL = "https://www.google.com/maps/dir/"


def build_navigation_url(target: LatLng) -> str:
    """
    Destination-only driving directions link; routing is left to the maps app.
    """
    return f"{GOOGLE_MAPS_DIR_URL}?api=1&destination={target.lat},{target.lng}&travelmode=driving"
