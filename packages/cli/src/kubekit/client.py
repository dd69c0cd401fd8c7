"""HTTP client for the cluster API server."""

import logging
from typing import Any, TYPE_CHECKING

import requests

from kubekit.config import KubeKitConfig
from kubekit.errors import KubeKitError

if TYPE_CHECKING:
    from kubekit.resource import ResourceMapping

logger = logging.getLogger(__name__)

STRATEGIC_MERGE_PATCH = "application/strategic-merge-patch+json"


class ApiError(KubeKitError):
    """Exception for failed API server requests."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        reason: str | None = None,
        code: str = "API_ERROR",
    ):
        self.status_code = status_code
        self.reason = reason
        super().__init__(code=code, message=message)

    @classmethod
    def from_response(cls, response: requests.Response) -> "ApiError":
        """Build an error from a non-2xx response, preferring the Status body."""
        message = None
        reason = None
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and body.get("kind") == "Status":
            message = body.get("message")
            reason = body.get("reason")

        if not message:
            text = response.text.strip()
            message = text or f"the server responded with status {response.status_code}"

        return cls(
            message=message,
            status_code=response.status_code,
            reason=reason or response.reason,
        )


class ApiClient:
    """Thin REST client for reading and patching cluster objects."""

    def __init__(self, config: KubeKitConfig, session: requests.Session | None = None) -> None:
        self.config = config
        self.base_url = config.require_server()
        self.session = session or self._build_session(config)

    @staticmethod
    def _build_session(config: KubeKitConfig) -> requests.Session:
        session = requests.Session()
        session.headers["Accept"] = "application/json"

        if config.token:
            session.headers["Authorization"] = f"Bearer {config.token}"
        elif config.username is not None:
            session.auth = (config.username, config.password or "")

        if config.client_certificate and config.client_key:
            session.cert = (str(config.client_certificate), str(config.client_key))

        if config.insecure_skip_tls_verify:
            session.verify = False
        elif config.certificate_authority:
            session.verify = str(config.certificate_authority)

        return session

    def url_for(self, mapping: "ResourceMapping", namespace: str | None, name: str | None = None) -> str:
        """Build the REST path for a resource or collection."""
        if mapping.group:
            prefix = f"/apis/{mapping.group}/{mapping.version}"
        else:
            prefix = f"/api/{mapping.version}"

        parts = [self.base_url + prefix]
        if mapping.namespaced and namespace:
            parts.append(f"namespaces/{namespace}")
        parts.append(mapping.resource)
        if name:
            parts.append(name)
        return "/".join(parts)

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        logger.debug("%s %s", method, url)
        try:
            response = self.session.request(
                method,
                url,
                timeout=self.config.request_timeout,
                **kwargs,
            )
        except requests.RequestException as e:
            raise ApiError(
                message=f"unable to connect to the server: {e}",
                code="CONNECTION_ERROR",
            ) from e

        logger.debug("%s %s -> %s", method, url, response.status_code)
        if not response.ok:
            raise ApiError.from_response(response)

        try:
            return response.json()
        except ValueError as e:
            raise ApiError(
                message=f"the server returned an invalid response: {e}",
                status_code=response.status_code,
                code="INVALID_RESPONSE",
            ) from e

    def get(self, mapping: "ResourceMapping", namespace: str | None, name: str) -> dict[str, Any]:
        """Fetch the current state of a single object."""
        return self._request("GET", self.url_for(mapping, namespace, name))

    def list(self, mapping: "ResourceMapping", namespace: str | None) -> list[dict[str, Any]]:
        """List all objects of a type in the namespace.

        List items come back without kind and apiVersion, so both are filled
        in from the mapping.
        """
        body = self._request("GET", self.url_for(mapping, namespace))
        items = body.get("items") or []
        for item in items:
            item.setdefault("kind", mapping.kind)
            item.setdefault("apiVersion", mapping.api_version)
        return items

    def patch(
        self,
        mapping: "ResourceMapping",
        namespace: str | None,
        name: str,
        data: bytes,
        patch_type: str = STRATEGIC_MERGE_PATCH,
    ) -> dict[str, Any]:
        """Send a partial update and return the updated object."""
        logger.debug("patch %s %s/%s: %s", mapping.qualified_resource, namespace, name, data)
        return self._request(
            "PATCH",
            self.url_for(mapping, namespace, name),
            data=data,
            headers={"Content-Type": patch_type},
        )
