"""
Client for the central application inventory.

The inventory answers ``GET {base_url}?assetId=<id>`` with a JSON
document describing the application and its ownership chain.  The
client validates the document before returning it so that callers
never persist a partially understood response.  Every failure
(transport error, non-2xx status, invalid JSON or unexpected shape)
is raised as ``CentralApiError``.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests
from pydantic import ValidationError

from .config import settings
from .exceptions import CentralApiError
from ..schemas.application import CentralApiResponse, CentralApplication

logger = logging.getLogger(__name__)


class CentralApiClient:
    """Thin ``requests`` wrapper around the inventory lookup endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or settings.central_api_url).rstrip("/")
        self.timeout = timeout or settings.central_api_timeout
        self.session = session or requests.Session()

    def fetch_application(self, asset_id: int | str) -> CentralApplication:
        """Look up one application by asset id.

        Parameters
        ----------
        asset_id : int or str
            Inventory asset identifier.

        Returns
        -------
        CentralApplication
            The validated ``data.application`` object.

        Raises
        ------
        CentralApiError
            If the request fails or the payload does not match the
            expected structure.
        """
        try:
            logger.debug("Fetching asset %s from %s", asset_id, self.base_url)
            response = self.session.request(
                method="GET",
                url=self.base_url,
                params={"assetId": asset_id},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except requests.HTTPError as exc:
            status_code = exc.response.status_code if exc.response is not None else None
            logger.error("Central API returned %s for asset %s", status_code, asset_id)
            raise CentralApiError(
                f"Central API request failed with status {status_code}", status_code
            ) from exc
        except requests.RequestException as exc:
            logger.error("Central API request for asset %s failed: %s", asset_id, exc)
            raise CentralApiError(f"Central API request failed: {exc}") from exc
        except ValueError as exc:
            logger.error("Central API returned invalid JSON for asset %s", asset_id)
            raise CentralApiError("Central API returned invalid JSON") from exc

        try:
            return CentralApiResponse.model_validate(payload).data.application
        except ValidationError as exc:
            logger.error("Central API payload for asset %s failed validation: %s", asset_id, exc)
            raise CentralApiError("Central API returned an unexpected payload") from exc


def get_central_api_client() -> CentralApiClient:
    """Return a client configured from settings (overridable in tests)."""
    return CentralApiClient()
