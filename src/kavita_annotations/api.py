"""
Kavita API client

Retrieves annotations and the series/volume metadata used to label them from
a Kavita server. Authentication uses the plugin API-key handshake, which
trades the API key for a JWT sent as a bearer token on every later request.
"""

import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar
from urllib.parse import urljoin

import requests

from kavita_annotations.config import DEFAULT_KAVITA_URL, RetryConfig
from kavita_annotations.errors import KavitaAuthError, KavitaNetworkError, KavitaParseError
from kavita_annotations.models import Annotation, Library, Series, SeriesMetadata, Volume

logger = logging.getLogger(__name__)

PLUGIN_NAME = "kavita-annotations"

AUTHENTICATE_ENDPOINT = "/api/Plugin/authenticate"
ANNOTATIONS_ENDPOINT = "/api/Annotation/all-filtered"
VOLUMES_ENDPOINT = "/api/Series/volumes"
SERIES_METADATA_ENDPOINT = "/api/Series/metadata"
LIBRARIES_ENDPOINT = "/api/Library/libraries"
ALL_SERIES_ENDPOINT = "/api/Series/all-v2"
HEALTH_ENDPOINT = "/api/health"

# Transient statuses worth another attempt
RETRY_STATUSES = (429, 500, 502, 503, 504)

M = TypeVar("M")


class KavitaAPI:
    """Class to interact with a Kavita server's REST API"""

    def __init__(self, base_url: str = DEFAULT_KAVITA_URL, api_key: str = "",
                 plugin_name: str = PLUGIN_NAME, timeout: float = 30.0,
                 retry: Optional[RetryConfig] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize the Kavita API client

        Args:
            base_url: Base URL of the Kavita server (default: http://localhost:5000)
            api_key: Kavita API key used for the plugin handshake
            plugin_name: Name reported to Kavita during authentication
            timeout: HTTP request timeout in seconds
            retry: Retry behavior for transient failures
            sleep: Called with the backoff delay between attempts
        """
        self.base_url = base_url.rstrip('/')
        self.api_key = api_key
        self.plugin_name = plugin_name
        self.timeout = timeout
        self.retry = retry or RetryConfig()
        self.session = requests.Session()
        self._sleep = sleep
        self._token: Optional[str] = None

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "KavitaAPI":
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def _url(self, endpoint: str) -> str:
        return urljoin(self.base_url + '/', endpoint.lstrip('/'))

    def _send(self, method: str, endpoint: str, *, params: Optional[Dict[str, Any]] = None,
              json_body: Any = None, authenticated: bool = True,
              not_found_ok: bool = False) -> Optional[requests.Response]:
        """
        Send a request, retrying transient failures with exponential backoff.

        Args:
            method: HTTP method
            endpoint: API endpoint (joined with base_url)
            params: Query parameters
            json_body: JSON request body
            authenticated: Whether to send the bearer token (authenticating first if needed)
            not_found_ok: Return None on 404 instead of raising

        Returns:
            The successful response, or None for a tolerated 404

        Raises:
            KavitaAuthError: On 401/403
            KavitaNetworkError: On connection failures and error statuses
        """
        if authenticated:
            self._ensure_authenticated()

        url = self._url(endpoint)
        attempt = 0
        while True:
            attempt += 1
            logger.debug("%s %s (attempt %d)", method, url, attempt)
            try:
                response = self.session.request(
                    method, url, params=params, json=json_body, timeout=self.timeout)
            except requests.exceptions.RequestException as e:
                if attempt < self.retry.max_attempts:
                    self._backoff(attempt, endpoint, str(e))
                    continue
                raise KavitaNetworkError(endpoint, message=str(e)) from e

            status = response.status_code
            if status in (401, 403):
                raise KavitaAuthError(f"Not authorized for {endpoint} (HTTP {status})")
            if status in RETRY_STATUSES:
                if attempt < self.retry.max_attempts:
                    self._backoff(attempt, endpoint, f"HTTP {status}")
                    continue
                raise KavitaNetworkError(endpoint, status)
            if status == 404 and not_found_ok:
                return None
            if not response.ok:
                raise KavitaNetworkError(endpoint, status)
            return response

    def _backoff(self, attempt: int, endpoint: str, reason: str) -> None:
        delay = self.retry.get_delay(attempt)
        logger.warning(
            "Request to %s failed (%s). Retrying in %.1fs (attempt %d/%d)",
            endpoint, reason, delay, attempt + 1, self.retry.max_attempts,
        )
        self._sleep(delay)

    @staticmethod
    def _json(response: requests.Response, expected: str) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise KavitaParseError(expected, response.text[:200]) from e

    @staticmethod
    def _parse_list(data: Any, model: Type[M], expected: str) -> List[M]:
        if not isinstance(data, list):
            raise KavitaParseError(expected, data)
        return [model.from_api(item) for item in data]  # type: ignore[attr-defined]

    def authenticate(self) -> str:
        """
        Exchange the API key for a JWT and attach it to the session.

        Returns:
            The JWT token

        Raises:
            KavitaAuthError: If no API key is configured or Kavita rejects it
            KavitaParseError: If the response carries no token
        """
        if not self.api_key:
            raise KavitaAuthError("No API key configured")

        try:
            response = self._send(
                "POST", AUTHENTICATE_ENDPOINT,
                params={"apiKey": self.api_key, "pluginName": self.plugin_name},
                authenticated=False,
            )
        except KavitaAuthError as e:
            raise KavitaAuthError("Invalid API key") from e

        data = self._json(response, "{ token: string }")
        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise KavitaParseError("{ token: string }", data)

        self._token = token
        self.session.headers["Authorization"] = f"Bearer {token}"
        logger.debug("Authenticated with %s", self.base_url)
        return token

    def _ensure_authenticated(self) -> None:
        if self._token is None:
            self.authenticate()

    def fetch_all_annotations(self) -> List[Annotation]:
        """
        Get every annotation visible to the authenticated user

        Returns:
            Annotations in server order
        """
        response = self._send("POST", ANNOTATIONS_ENDPOINT, json_body={})
        annotations = self._parse_list(
            self._json(response, "annotation list"), Annotation, "annotation list")
        logger.debug("Fetched %d annotations", len(annotations))
        return annotations

    def fetch_annotations_filtered(self, series_ids: Optional[Sequence[int]] = None,
                                   chapter_ids: Optional[Sequence[int]] = None,
                                   include_spoilers: Optional[bool] = None) -> List[Annotation]:
        """
        Get annotations matching a filter

        Args:
            series_ids: Only annotations in these series
            chapter_ids: Only annotations in these chapters
            include_spoilers: Whether the server should return spoiler annotations

        Returns:
            Matching annotations in server order
        """
        body: Dict[str, Any] = {}
        if series_ids is not None:
            body["seriesIds"] = list(series_ids)
        if chapter_ids is not None:
            body["chapterIds"] = list(chapter_ids)
        if include_spoilers is not None:
            body["includeSpoilers"] = include_spoilers

        response = self._send("POST", ANNOTATIONS_ENDPOINT, json_body=body)
        return self._parse_list(
            self._json(response, "annotation list"), Annotation, "annotation list")

    def get_volumes(self, series_id: int) -> List[Volume]:
        """Get the volumes (with their chapters) of a series"""
        response = self._send("GET", VOLUMES_ENDPOINT, params={"seriesId": series_id})
        return self._parse_list(self._json(response, "volume list"), Volume, "volume list")

    def get_series_metadata(self, series_id: int) -> Optional[SeriesMetadata]:
        """
        Get the metadata (writers, genres, summary) of a series

        Returns:
            Series metadata, or None if Kavita has none for this series
        """
        response = self._send(
            "GET", SERIES_METADATA_ENDPOINT, params={"seriesId": series_id}, not_found_ok=True)
        if response is None or not response.content:
            return None
        return SeriesMetadata.from_api(self._json(response, "series metadata"))

    def get_libraries(self) -> List[Library]:
        response = self._send("GET", LIBRARIES_ENDPOINT)
        return self._parse_list(self._json(response, "library list"), Library, "library list")

    def get_all_series(self) -> List[Series]:
        """
        Get all series

        Kavita answers either with a bare array or with a paged
        ``{"result": [...], "pagination": {...}}`` object.
        """
        response = self._send("POST", ALL_SERIES_ENDPOINT, json_body={})
        data = self._json(response, "series list")
        if isinstance(data, dict) and "result" in data:
            data = data["result"]
        return self._parse_list(data, Series, "series list")

    def health_check(self) -> bool:
        """
        Check whether the Kavita server is up (no authentication needed)

        Raises:
            KavitaNetworkError: If the server cannot be reached
        """
        try:
            response = self.session.get(self._url(HEALTH_ENDPOINT), timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise KavitaNetworkError(HEALTH_ENDPOINT, message=str(e)) from e
        return response.status_code == 200
