"""Announcement fixtures created through the PetSpot REST API."""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any

import requests

from petspot_e2e.constants import (
    ADMIN_ANNOUNCEMENTS_PATH,
    ANNOUNCEMENTS_PATH,
    REQUEST_TIMEOUT_SECONDS,
)
from petspot_e2e.exceptions import (
    FixtureCreationError,
    FixtureDeletionError,
    FixtureError,
    FixtureNotFoundError,
)

logger = logging.getLogger(__name__)

DEFAULT_LABEL = "unnamed"

OPTIONAL_FIELDS = (
    "petName",
    "breed",
    "age",
    "description",
    "microchipNumber",
    "email",
    "phone",
    "reward",
)
FLOAT_FIELDS = ("locationLatitude", "locationLongitude")
INT_FIELDS = ("age",)

# 1x1 baseline JPEG; announcements without a photo are hidden from the list.
PLACEHOLDER_JPEG = bytes.fromhex(
    "ffd8ffe000104a46494600010100000100010000ffdb00430008060607060508"
    "0707070909080a0c140d0c0b0b0c1912130f141d1a1f1e1d1a1c1c20242e2720"
    "222c231c1c2837292c30313434341f27393d38323c2e333432ffc0000b080001"
    "000101011100ffc4001f00000105010101010101000000000000000001020304"
    "05060708090a0bffc400b5100002010303020403050504040000017d01020300"
    "041105122131410613516107227114328191a1082342b1c11552d1f024336272"
    "82090a161718191a25262728292a3435363738393a434445464748494a535455"
    "565758595a636465666768696a737475767778797a838485868788898a929394"
    "95969798999aa2a3a4a5a6a7a8a9aab2b3b4b5b6b7b8b9bac2c3c4c5c6c7c8c9"
    "cad2d3d4d5d6d7d8d9dae1e2e3e4e5e6e7e8e9eaf1f2f3f4f5f6f7f8f9faffda"
    "0008010100003f00fbd500000000ffd9"
)


def fixture_defaults(today: date | None = None) -> dict[str, Any]:
    """Return the required announcement fields filled with neutral values.

    The observation date is yesterday so a server running in UTC never sees
    a date in the future.
    """
    today = today or date.today()
    return {
        "species": "DOG",
        "sex": "UNKNOWN",
        "locationLatitude": 51.1,
        "locationLongitude": 17.0,
        "lastSeenDate": (today - timedelta(days=1)).isoformat(),
        "status": "MISSING",
    }


def build_payload(fields: dict[str, Any], today: date | None = None) -> dict[str, Any]:
    """Merge caller fields over the defaults and coerce table strings.

    Parameters
    ----------
    fields : dict[str, Any]
        Caller-supplied fields, typically strings from a behave table
    today : date | None
        Reference date for the default observation date

    Returns
    -------
    dict[str, Any]
        JSON-ready announcement payload
    """
    payload = fixture_defaults(today)
    allowed = set(payload) | set(OPTIONAL_FIELDS)

    for key, value in fields.items():
        if key not in allowed:
            logger.warning(f"Dropping unknown announcement field: {key}")
            continue
        if value is None or value == "":
            continue
        if key in FLOAT_FIELDS:
            value = float(value)
        elif key in INT_FIELDS:
            value = int(value)
        payload[key] = value

    return payload


@dataclass(frozen=True)
class Fixture:
    """A created announcement and the credential that can mutate it.

    Attributes
    ----------
    id : str
        Server-issued identifier
    management_password : str
        Secret required for owner-level changes such as photo upload
    label : str
        Caller label used for lookup, the pet name by default
    """

    id: str
    management_password: str
    label: str


class TestDataGateway:
    """Create, read and delete announcement fixtures for one scenario.

    Every created fixture is tracked until deleted, so ``cleanup_all``
    removes exactly what this gateway created. One instance belongs to one
    scenario; nothing is shared between scenarios.

    Parameters
    ----------
    base_url : str
        Backend base URL
    admin_token : str
        Value of the ``Authorization`` header for admin deletes
    timeout : float
        Per-request timeout in seconds
    session : requests.Session | None
        HTTP session; a new one is created when omitted
    """

    __test__ = False

    def __init__(
        self,
        base_url: str,
        admin_token: str,
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.admin_token = admin_token
        self.timeout = timeout
        self._http = session or requests.Session()
        self._fixtures: dict[str, Fixture] = {}
        self._labels: dict[str, str] = {}

    @property
    def tracked(self) -> list[Fixture]:
        """Fixtures created by this gateway and not yet deleted."""
        return list(self._fixtures.values())

    def _url(self, path: str, *parts: str) -> str:
        return "/".join([self.base_url + path, *parts])

    def create_fixture(self, fields: dict[str, Any], upload_photo: bool = True) -> Fixture:
        """Create an announcement and start tracking it.

        Parameters
        ----------
        fields : dict[str, Any]
            Announcement fields; required ones default when absent
        upload_photo : bool
            Attach a placeholder photo so the announcement is listed

        Returns
        -------
        Fixture
            Identifier and management credential

        Raises
        ------
        FixtureCreationError
            On a network failure, a non-2xx status or a malformed response
        """
        try:
            payload = build_payload(fields)
        except ValueError as e:
            raise FixtureCreationError(f"Invalid announcement field value: {e}") from e

        try:
            response = self._http.post(
                self._url(ANNOUNCEMENTS_PATH), json=payload, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise FixtureCreationError(f"Failed to create announcement: {e}") from e

        if not 200 <= response.status_code < 300:
            raise FixtureCreationError(
                f"Failed to create announcement. Status: {response.status_code}, "
                f"Body: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
            fixture_id = str(data["id"])
            password = str(data.get("managementPassword") or "")
        except (ValueError, KeyError, TypeError) as e:
            raise FixtureCreationError(
                f"Unexpected create response: {response.text}",
                status_code=response.status_code,
                body=response.text,
            ) from e

        label = str(payload.get("petName") or DEFAULT_LABEL)
        fixture = Fixture(id=fixture_id, management_password=password, label=label)
        self._fixtures[fixture_id] = fixture
        self._labels[label] = fixture_id
        logger.info(f"Created announcement: {label} (ID: {fixture_id})")

        if upload_photo and password:
            self.upload_placeholder_photo(fixture)

        return fixture

    def upload_placeholder_photo(self, fixture: Fixture) -> bool:
        """Attach a tiny JPEG to a fixture; failures are logged only."""
        try:
            response = self._http.post(
                self._url(ANNOUNCEMENTS_PATH, fixture.id, "photos"),
                files={"photo": ("test.jpg", PLACEHOLDER_JPEG, "image/jpeg")},
                auth=("user", fixture.management_password),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.warning(f"Failed to upload photo for {fixture.id}: {e}")
            return False

        if response.status_code != 201:
            logger.warning(
                f"Failed to upload photo for {fixture.id}. "
                f"Status: {response.status_code}, Body: {response.text}"
            )
            return False

        logger.debug(f"Uploaded placeholder photo for announcement: {fixture.id}")
        return True

    def get_fixture(self, fixture_id: str) -> dict[str, Any]:
        """Fetch an announcement as parsed JSON.

        Raises
        ------
        FixtureNotFoundError
            If the API answers 404
        FixtureError
            On a network failure or another non-200 status
        """
        try:
            response = self._http.get(
                self._url(ANNOUNCEMENTS_PATH, fixture_id), timeout=self.timeout
            )
        except requests.RequestException as e:
            raise FixtureError(f"Failed to get announcement {fixture_id}: {e}") from e

        if response.status_code == 404:
            raise FixtureNotFoundError(
                f"Announcement not found: {fixture_id}", status_code=404, body=response.text
            )
        if response.status_code != 200:
            raise FixtureError(
                f"Failed to get announcement. Status: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )
        return response.json()

    def fixture_id_for(self, label: str) -> str | None:
        return self._labels.get(label)

    def delete_fixture(self, fixture_id: str) -> None:
        """Delete an announcement through the admin API.

        A 404 counts as success, so deleting twice is safe.

        Raises
        ------
        FixtureDeletionError
            On a network failure or a status other than 2xx/404
        """
        try:
            response = self._http.delete(
                self._url(ADMIN_ANNOUNCEMENTS_PATH, fixture_id),
                headers={"Authorization": self.admin_token},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise FixtureDeletionError(f"Failed to delete announcement {fixture_id}: {e}") from e

        if response.status_code != 404 and not 200 <= response.status_code < 300:
            raise FixtureDeletionError(
                f"Failed to delete announcement {fixture_id}. Status: {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

        self._forget(fixture_id)
        logger.info(f"Deleted announcement: {fixture_id}")

    def _forget(self, fixture_id: str) -> None:
        fixture = self._fixtures.pop(fixture_id, None)
        if fixture is not None and self._labels.get(fixture.label) == fixture_id:
            del self._labels[fixture.label]

    def cleanup_all(self) -> dict[str, Any]:
        """Delete every tracked fixture, continuing past failures.

        Tracking is cleared afterwards even for fixtures that failed to
        delete; they are reported in the result.

        Returns
        -------
        dict[str, Any]
            ``deleted`` count and ``failed`` identifiers
        """
        deleted = 0
        failed: list[str] = []
        for fixture in list(self._fixtures.values()):
            try:
                self.delete_fixture(fixture.id)
                deleted += 1
            except FixtureError as e:
                failed.append(fixture.id)
                logger.warning(f"Failed to cleanup announcement {fixture.label}: {e}")

        self._fixtures.clear()
        self._labels.clear()
        return {"deleted": deleted, "failed": failed}
