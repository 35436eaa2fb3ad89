import logging
import os
from typing import Iterator, List, Optional, Tuple
from urllib.parse import quote

import requests
from google.auth.exceptions import GoogleAuthError
from retrying import retry

from .config import Settings
from .errors import ConfigurationError, ProtocolError, TransportError
from .messages import summarize_google_error

logger = logging.getLogger(__name__)


def parse_gs_uri(uri: str) -> Tuple[str, str]:
    """Split gs://bucket/some/prefix into ('bucket', 'some/prefix')."""
    if not uri.startswith("gs://"):
        raise ConfigurationError(f"Invalid GCS path: '{uri}'")
    bucket, _, prefix = uri[len("gs://"):].partition("/")
    if not bucket:
        raise ConfigurationError(f"Invalid GCS path: '{uri}'")
    return bucket, prefix.strip("/")


def _transport_error(action: str, error: Exception) -> TransportError:
    return TransportError(f"Network error when {action}, type: {type(error).__name__}, message: {error}")


def _retry_on_transport(exc: Exception) -> bool:
    return isinstance(exc, TransportError)


class GcsBlobStore:
    """Google Cloud Storage access over the JSON API."""

    def __init__(self, session: requests.Session, settings: Optional[Settings] = None,
                 timeout: Optional[float] = None):
        self.session = session
        self.settings = settings or Settings()
        self.timeout = (self.settings.connect_timeout, timeout) if timeout else self.settings.timeouts

    def _request(self, method: str, url: str, action: str, **kwargs) -> requests.Response:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.exceptions.RequestException, GoogleAuthError) as e:
            raise _transport_error(action, e) from e
        if resp.status_code != 200:
            message = f"Failed {action}: {summarize_google_error(resp.text)}"
            resp.close()
            raise ProtocolError(message)
        return resp

    def _object_url(self, bucket: str, name: str) -> str:
        return f"{self.settings.storage_endpoint}/storage/v1/b/{bucket}/o/{quote(name, safe='')}"

    @retry(stop_max_attempt_number=3, wait_fixed=2000, retry_on_exception=_retry_on_transport)
    def upload(self, local_path: str, destination: str) -> str:
        bucket, name = parse_gs_uri(destination)
        url = f"{self.settings.storage_endpoint}/upload/storage/v1/b/{bucket}/o"
        with open(local_path, "rb") as f:
            self._request(
                "POST", url, f"uploading {local_path}",
                params={"uploadType": "media", "name": name},
                data=f,
                headers={"Content-Type": "application/octet-stream"},
            )
        logger.info(f"Uploaded {local_path} to {destination}")
        return destination

    def _list(self, bucket: str, prefix: str, delimiter: Optional[str] = None) -> Iterator[dict]:
        url = f"{self.settings.storage_endpoint}/storage/v1/b/{bucket}/o"
        params = {"prefix": prefix}
        if delimiter:
            params["delimiter"] = delimiter
        while True:
            page = self._request("GET", url, f"listing gs://{bucket}/{prefix}", params=dict(params)).json()
            yield page
            token = page.get("nextPageToken")
            if not token:
                return
            params["pageToken"] = token

    def list_folders(self, source: str) -> List[str]:
        """Names of the immediate sub-folders of a gs:// location."""
        bucket, prefix = parse_gs_uri(source)
        prefix = prefix + "/" if prefix else ""
        folders = []
        for page in self._list(bucket, prefix, delimiter="/"):
            for sub in page.get("prefixes") or []:
                folders.append(sub[len(prefix):].rstrip("/"))
        return folders

    def download_file(self, source: str, destination: str) -> str:
        """Stream an object to disk; the file only appears under its final name once complete."""
        bucket, name = parse_gs_uri(source)
        action = f"downloading {source}"
        partial = destination + ".part"
        os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)

        with self._request("GET", self._object_url(bucket, name), action,
                           params={"alt": "media"}, stream=True) as resp:
            try:
                with open(partial, "wb") as f:
                    for chunk in resp.iter_content(chunk_size=1024 * 1024):
                        f.write(chunk)
            except requests.exceptions.RequestException as e:
                os.remove(partial)
                raise _transport_error(action, e) from e

        os.replace(partial, destination)
        logger.debug(f"Downloaded {source} to {destination}")
        return destination

    def download_tree(self, source: str, destination_dir: str) -> List[str]:
        bucket, prefix = parse_gs_uri(source)
        prefix = prefix + "/" if prefix else ""
        downloaded = []
        for page in self._list(bucket, prefix):
            for item in page.get("items") or []:
                name = item["name"]
                relative = name[len(prefix):]
                if not relative or name.endswith("/"):
                    continue
                target = os.path.join(destination_dir, *relative.split("/"))
                downloaded.append(self.download_file(f"gs://{bucket}/{name}", target))
        logger.info(f"Downloaded {len(downloaded)} file(s) from {source} to {destination_dir}")
        return downloaded
