"""
HTTP policy evaluator.

This module implements the PolicyEvaluator interface against a remote
policy decision service speaking JSON over HTTP.

Endpoints:
    GET  /v1/services/{service_type}  service registration check
    POST /v1/access                   {"allowed": bool}
    POST /v1/row-filter               {"enabled": bool, "filterExpr": str | null}
    POST /v1/data-mask                {"enabled": bool, "maskType": str,
                                       "transformer": str, "maskedValue": str}

Usage:
    from sqlwarden.core.config import SiteConfig
    from sqlwarden.evaluator.http import HttpPolicyEvaluator

    evaluator = HttpPolicyEvaluator(SiteConfig(evaluator_url="http://pdp:6080"))
    evaluator.init("presto", "presto")
    evaluator.is_allowed(request)
"""

import json
import logging
from typing import Any

import httpx

from sqlwarden.core.config import SiteConfig
from sqlwarden.errors import (
    EvaluatorConnectionError,
    EvaluatorInitError,
    EvaluatorResponseError,
)
from sqlwarden.evaluator.base import PolicyEvaluator
from sqlwarden.schema import AccessRequest, FilterDescriptor, MaskDescriptor

logger = logging.getLogger(__name__)

ACCESS_PATH = "/v1/access"
ROW_FILTER_PATH = "/v1/row-filter"
DATA_MASK_PATH = "/v1/data-mask"
SERVICE_PATH = "/v1/services/{service_type}"


class HttpPolicyEvaluator(PolicyEvaluator):
    """
    PolicyEvaluator backed by a remote decision service.

    A single httpx.Client is shared by all calls; it is thread-safe.
    Requests are never retried: a failed call is a denied call.
    """

    def __init__(
        self,
        config: SiteConfig | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Initialize the evaluator client.

        Args:
            config: Site configuration. If None, uses defaults.
            transport: Optional httpx transport (tests use MockTransport)
        """
        self.config = config or SiteConfig()
        self._transport = transport
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.config.evaluator_url,
                timeout=self.config.timeout_seconds,
                headers=self.config.headers,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            self._client.close()
            self._client = None

    def __enter__(self) -> "HttpPolicyEvaluator":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def init(self, service_type: str, app_id: str) -> None:
        path = SERVICE_PATH.format(service_type=service_type)
        try:
            response = self._get_client().get(path, params={"appId": app_id})
        except httpx.HTTPError as e:
            raise EvaluatorInitError(
                endpoint=path,
                service_type=service_type,
                underlying_error=str(e),
            ) from e

        if not response.is_success:
            raise EvaluatorInitError(
                endpoint=path,
                service_type=service_type,
                underlying_error=f"HTTP {response.status_code}: {response.text}",
            )

        logger.info(
            "Policy evaluator initialized for service %s (app %s) at %s",
            service_type,
            app_id,
            self.config.evaluator_url,
        )

    def is_allowed(self, request: AccessRequest) -> bool:
        data = self._post(ACCESS_PATH, request)
        allowed = data.get("allowed")
        if not isinstance(allowed, bool):
            raise EvaluatorResponseError(
                endpoint=ACCESS_PATH,
                body=str(data)[:500],
                message=f"Evaluator answer from {ACCESS_PATH} has no boolean 'allowed'",
            )
        return allowed

    def evaluate_row_filter_policies(self, request: AccessRequest) -> FilterDescriptor | None:
        data = self._post(ROW_FILTER_PATH, request)
        if not data:
            return None
        try:
            return FilterDescriptor(
                enabled=data.get("enabled", False),
                filter_expr=data.get("filterExpr"),
            )
        except ValueError as e:
            raise EvaluatorResponseError(
                endpoint=ROW_FILTER_PATH,
                body=str(data)[:500],
                message=f"Malformed row filter from {ROW_FILTER_PATH}: {e}",
            ) from e

    def evaluate_data_mask_policies(self, request: AccessRequest) -> MaskDescriptor | None:
        data = self._post(DATA_MASK_PATH, request)
        if not data:
            return None
        try:
            return MaskDescriptor(
                enabled=data.get("enabled", False),
                mask_type=data.get("maskType"),
                transformer=data.get("transformer"),
                masked_value=data.get("maskedValue"),
            )
        except ValueError as e:
            raise EvaluatorResponseError(
                endpoint=DATA_MASK_PATH,
                body=str(data)[:500],
                message=f"Malformed data mask from {DATA_MASK_PATH}: {e}",
            ) from e

    def _post(self, path: str, request: AccessRequest) -> dict[str, Any]:
        """Make a single call to the decision service and return the JSON object."""
        payload = request.to_payload()
        logger.debug("POST %s %s", path, payload)

        try:
            response = self._get_client().post(path, json=payload)
        except httpx.HTTPError as e:
            raise EvaluatorConnectionError(
                endpoint=path,
                underlying_error=str(e),
            ) from e

        if not response.is_success:
            raise EvaluatorResponseError(
                endpoint=path,
                status_code=response.status_code,
                body=response.text[:500],
                message=f"Policy evaluator returned HTTP {response.status_code} for {path}",
            )

        try:
            data = response.json()
        except json.JSONDecodeError as e:
            raise EvaluatorResponseError(
                endpoint=path,
                status_code=response.status_code,
                body=response.text[:500],
                message=f"Invalid JSON from policy evaluator: {e}",
            ) from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise EvaluatorResponseError(
                endpoint=path,
                status_code=response.status_code,
                body=response.text[:500],
                message=f"Policy evaluator answer from {path} is not an object",
            )

        logger.debug("Evaluator answered %s: %s", path, data)
        return data

    def get_name(self) -> str:
        return f"HttpPolicyEvaluator({self.config.evaluator_url})"

    def get_config(self) -> dict[str, Any]:
        return {
            "backend": "http",
            "evaluator_url": self.config.evaluator_url,
            "timeout_seconds": self.config.timeout_seconds,
            "service_type": self.config.service_type,
            "app_id": self.config.app_id,
        }

    def ping(self) -> tuple[bool, str]:
        """
        Check if the decision service is reachable.

        Returns:
            Tuple of (is_ok, message)
        """
        path = SERVICE_PATH.format(service_type=self.config.service_type)
        try:
            response = self._get_client().get(path, params={"appId": self.config.app_id})
        except httpx.ConnectError:
            return False, f"Cannot connect to policy evaluator at {self.config.evaluator_url}"
        except httpx.HTTPError as e:
            return False, f"Error reaching policy evaluator: {e}"

        if not response.is_success:
            return False, f"Policy evaluator returned HTTP {response.status_code}"

        return True, (
            f"Connected to policy evaluator at {self.config.evaluator_url}, "
            f"service '{self.config.service_type}' available"
        )
