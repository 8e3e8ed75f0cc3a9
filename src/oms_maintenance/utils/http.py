import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterator, Optional, Tuple, Union

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..errors import SendError
from ..logging import get_logger
from .config import MaintenanceSettings
from .files import file_exists_nonempty

logger = get_logger(__name__)

ClientCert = Tuple[Union[str, Path], Union[str, Path]]


def read_proxy(proxy_path: Optional[Union[str, Path]]) -> Optional[str]:
    """
    Read the proxy URL from the agent's proxy file.

    The file holds a single ``[scheme://][user:password@]host[:port]`` line.
    A missing or empty file means no proxy.
    """
    if not file_exists_nonempty(proxy_path):
        return None
    proxy = Path(proxy_path).read_text(encoding="utf-8").strip()
    if not proxy:
        return None
    if "://" not in proxy:
        proxy = f"http://{proxy}"
    return proxy


class ServiceClient:
    """
    HTTPS client for the OMS agent management service.
    Enforces timeouts, retries, proxy settings and mutual TLS.
    """
    def __init__(
        self,
        settings: Optional[MaintenanceSettings] = None,
        proxy_path: Optional[Union[str, Path]] = None,
    ):
        self.settings = settings or MaintenanceSettings()
        self.proxy_path = proxy_path
        self.session = requests.Session()

        # Retry connection errors and 5xx; the last response is returned
        # rather than raised so callers can report the status code
        retries = Retry(
            total=self.settings.HTTP_RETRIES,
            backoff_factor=1,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["POST"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        self.session.mount("https://", adapter)
        self.session.mount("http://", adapter)

    def _proxies(self) -> Dict[str, str]:
        proxy = read_proxy(self.proxy_path)
        if not proxy:
            return {}
        return {"http": proxy, "https": proxy}

    def post(
        self,
        url: str,
        body: str,
        client_cert: ClientCert,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        """POST ``body`` authenticated with ``client_cert``; raises SendError on transport failure."""
        request_headers = {"Content-Type": "application/xml"}
        request_headers.update(headers or {})

        try:
            proxies = self._proxies()
        except (OSError, ValueError) as e:
            raise SendError(f"Unreadable proxy configuration {self.proxy_path}: {e}", details={"url": url}) from e

        try:
            return self.session.post(
                url,
                data=body.encode("utf-8"),
                headers=request_headers,
                cert=(str(client_cert[0]), str(client_cert[1])),
                proxies=proxies,
                timeout=self.settings.HTTP_TIMEOUT_SECONDS,
            )
        except requests.exceptions.RequestException as e:
            logger.debug(f"Network Error: {e}")
            raise SendError(str(e), details={"url": url}) from e


@contextmanager
def temporary_client_cert(cert_pem: bytes, key_pem: bytes) -> Iterator[ClientCert]:
    """
    Materialize an in-memory identity pair as files for ``requests``.

    The files are created 0600 and removed when the block exits.
    """
    paths = []
    try:
        for suffix, data in ((".crt", cert_pem), (".key", key_pem)):
            fd, path = tempfile.mkstemp(prefix="oms-identity-", suffix=suffix)
            paths.append(path)
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
        yield paths[0], paths[1]
    finally:
        for path in paths:
            if os.path.exists(path):
                os.unlink(path)
