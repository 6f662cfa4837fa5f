"""Browser helpers for web sessions."""

import logging
from typing import Any

from selenium.common.exceptions import WebDriverException

logger = logging.getLogger(__name__)

GEOLOCATION_MOCK_TEMPLATE = """
(function(latitude, longitude) {
    var position = function() {
        return {
            coords: {
                latitude: latitude,
                longitude: longitude,
                accuracy: 100,
                altitude: null,
                altitudeAccuracy: null,
                heading: null,
                speed: null
            },
            timestamp: Date.now()
        };
    };
    window.navigator.geolocation.getCurrentPosition = function(success) {
        success(position());
    };
    window.navigator.geolocation.watchPosition = function(success) {
        success(position());
        return 1;
    };
    window.__geolocationMocked = true;
})(arguments[0], arguments[1]);
"""


def inject_geolocation_mock(driver: Any, coordinates: tuple[float, float] | None) -> bool:
    """Replace the page's geolocation API with a fixed position.

    Parameters
    ----------
    driver : Any
        Selenium driver with a loaded page
    coordinates : tuple[float, float] | None
        Latitude and longitude; nothing is injected when None

    Returns
    -------
    bool
        True if the mock was injected
    """
    if coordinates is None:
        logger.debug("No mock geolocation set, skipping injection")
        return False

    latitude, longitude = coordinates
    try:
        driver.execute_script(GEOLOCATION_MOCK_TEMPLATE, latitude, longitude)
    except WebDriverException as e:
        logger.warning(f"JavaScript geolocation mock failed: {e}")
        return False

    logger.info(f"Injected geolocation mock: {latitude}, {longitude}")
    return True


def open_page(
    driver: Any, base_url: str, path: str = "/", coordinates: tuple[float, float] | None = None
) -> None:
    """Navigate to a page under the web base URL and apply any pending location."""
    url = base_url.rstrip("/") + "/" + path.lstrip("/")
    driver.get(url)
    inject_geolocation_mock(driver, coordinates)
