import logging
import re
import threading
from typing import Any, Dict, Iterable, List, Optional

import requests

from . import config
from .errors import BlockMigrationUnsupported, NovaAPIError
from .models import VM, RemoteService
from .utils import paginated

log = logging.getLogger(__name__)

# Nova's wording has varied between "can not" and "cannot" across releases
_SHARED_STORAGE_RE = re.compile(r"block migration can ?not be used with shared storage", re.IGNORECASE)

def _fault_message(resp: requests.Response) -> str:
    """Pull the message out of a Nova fault body such as {"badRequest": {"message": ..., "code": 400}}."""
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "").strip()
    if isinstance(body, dict):
        for fault in body.values():
            if isinstance(fault, dict) and "message" in fault:
                return str(fault["message"])
    return str(body)

def _json_body(resp: requests.Response, what: str) -> Dict[str, Any]:
    try:
        body = resp.json()
    except ValueError as exc:
        raise NovaAPIError(f"{what} returned a malformed body: {exc}", resp.status_code) from exc
    if not isinstance(body, dict):
        raise NovaAPIError(f"{what} returned a malformed body: {body!r}", resp.status_code)
    return body


class NovaClient:
    def __init__(
        self,
        auth_url: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        user_domain: Optional[str] = None,
        project_name: Optional[str] = None,
        project_domain: Optional[str] = None,
        interface: Optional[str] = None,
        api_version: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.auth_url = (auth_url or config.OS_AUTH_URL).rstrip("/")
        self.username = username or config.OS_USERNAME
        self.password = password if password is not None else config.OS_PASSWORD
        self.user_domain = user_domain or config.OS_USER_DOMAIN_NAME
        self.project_name = project_name or config.OS_PROJECT_NAME
        self.project_domain = project_domain or config.OS_PROJECT_DOMAIN_NAME
        self.interface = interface or config.OS_INTERFACE
        self.api_version = api_version or config.OS_COMPUTE_API_VERSION
        self.timeout = timeout if timeout is not None else config.HTTP_TIMEOUT_SEC

        # Shared by every migration thread
        self.session = session or requests.Session()
        self.token: Optional[str] = None
        self.nova_endpoint: Optional[str] = None
        self._auth_lock = threading.Lock()

    # ---------------------------
    # Keystone auth + catalog
    # ---------------------------
    def authenticate(self) -> None:
        """
        Get a project-scoped token & the Nova endpoint from the service catalog.
        """
        with self._auth_lock:
            if self.token is not None:
                return

            payload = {
                "auth": {
                    "identity": {
                        "methods": ["password"],
                        "password": {
                            "user": {
                                "name": self.username,
                                "domain": {"name": self.user_domain},
                                "password": self.password,
                            }
                        },
                    },
                    "scope": {
                        "project": {
                            "name": self.project_name,
                            "domain": {"name": self.project_domain},
                        }
                    },
                }
            }

            url = f"{self.auth_url}/auth/tokens"
            try:
                r = self.session.post(url, json=payload, timeout=self.timeout)
            except requests.RequestException as exc:
                raise NovaAPIError(f"Keystone authentication failed: {exc}") from exc
            if r.status_code != 201:
                raise NovaAPIError(f"Keystone authentication failed ({r.status_code}): {_fault_message(r)}",
                                   r.status_code)

            token = r.headers.get("X-Subject-Token")
            if not token:
                raise NovaAPIError("Keystone authentication returned no X-Subject-Token", r.status_code)
            catalog = _json_body(r, "Keystone authentication").get("token", {}).get("catalog", [])
            self.nova_endpoint = self._find_endpoint(catalog, "compute")
            self.token = token
            log.debug("Authenticated as %s; compute endpoint %s", self.username, self.nova_endpoint)

    def invalidate(self) -> None:
        with self._auth_lock:
            self.token = None

    def _find_endpoint(self, catalog: Iterable[Dict[str, Any]], service_type: str) -> str:
        for svc in catalog:
            if svc.get("type") == service_type:
                for ep in svc.get("endpoints", []):
                    if ep.get("interface") == self.interface:
                        return ep["url"].rstrip("/")
        raise NovaAPIError(f"No {self.interface} endpoint for {service_type}")

    def _headers(self) -> Dict[str, str]:
        return {
            "X-Auth-Token": self.token or "",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "X-OpenStack-Nova-API-Version": self.api_version,
        }

    def _request(self, method: str, url: str, ok_codes: Iterable[int] = (200,), **kwargs) -> requests.Response:
        self.authenticate()
        if not url.startswith(("http://", "https://")):
            url = f"{self.nova_endpoint}/{url.lstrip('/')}"
        for attempt in (1, 2):
            try:
                r = self.session.request(method, url, headers=self._headers(), timeout=self.timeout, **kwargs)
            except requests.RequestException as exc:
                raise NovaAPIError(f"{method} {url} failed: {exc}") from exc
            # expired token: re-authenticate once
            if r.status_code == 401 and attempt == 1:
                log.info("Token rejected by %s; re-authenticating", url)
                self.invalidate()
                self.authenticate()
                continue
            break
        if r.status_code not in ok_codes:
            raise NovaAPIError(f"{method} {url} returned {r.status_code}: {_fault_message(r)}", r.status_code)
        return r

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return _json_body(self._request("GET", url, ok_codes=(200, 203), params=params), f"GET {url}")

    # ---------------------------
    # Services (os-services)
    # ---------------------------
    def list_services(self) -> List[RemoteService]:
        body = self._get_json("os-services")
        try:
            return [RemoteService.from_dict(s) for s in body.get("services", [])]
        except (TypeError, AttributeError) as exc:
            raise NovaAPIError(f"Malformed os-services entry: {exc!r}") from exc

    def set_node_scheduling(self, hostname: str, binary: str, enable: bool) -> int:
        """Enable or disable scheduling for host/binary. Returns the accepted status code."""
        action = "enable" if enable else "disable"
        r = self._request("PUT", f"os-services/{action}", ok_codes=(200, 204),
                          json={"host": hostname, "binary": binary})
        return r.status_code

    # ---------------------------
    # Servers
    # ---------------------------
    def list_vms_on_host(self, hostname: str) -> List[VM]:
        pages = paginated(self._get_json, "servers/detail", "servers",
                          params={"host": hostname, "all_tenants": 1})
        try:
            vms = [VM.from_dict(s) for s in pages]
        except (KeyError, TypeError, AttributeError) as exc:
            raise NovaAPIError(f"Malformed server entry for host {hostname}: {exc!r}") from exc
        log.info("Retrieved list of %d VMs for host %s", len(vms), hostname)
        return vms

    def get_vm(self, vm_id: str) -> VM:
        server = self._get_json(f"servers/{vm_id}").get("server")
        if not isinstance(server, dict):
            raise NovaAPIError(f"GET servers/{vm_id} returned no server object")
        return VM.from_dict(dict(server, id=server.get("id", vm_id)))

    def request_live_migration(self, vm_id: str, block_migration: bool) -> None:
        """
        Ask Nova to live-migrate vm_id to a scheduler-chosen host.
        Raises BlockMigrationUnsupported when block migration is refused because of shared storage.
        """
        body = {"os-migrateLive": {"host": None, "block_migration": block_migration, "disk_over_commit": False}}
        try:
            self._request("POST", f"servers/{vm_id}/action", ok_codes=(202,), json=body)
        except NovaAPIError as exc:
            if block_migration and exc.status_code == 400 and _SHARED_STORAGE_RE.search(str(exc)):
                raise BlockMigrationUnsupported(str(exc), exc.status_code) from exc
            raise


_client: Optional[NovaClient] = None
_client_lock = threading.Lock()

def get_client() -> NovaClient:
    global _client
    with _client_lock:
        if _client is None:
            _client = NovaClient()
        return _client
