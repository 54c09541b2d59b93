import base64
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Tuple
from urllib.parse import quote

from . import transport
from .errors import StoreWriteFailed, TransportError
from .models import RemoteFile

GITHUB_API_BASE = "https://api.github.com"

# key -> (lock, number of threads holding or waiting on it)
_PATH_LOCKS: Dict[str, Tuple[threading.Lock, int]] = {}
_PATH_LOCKS_GUARD = threading.Lock()


@contextmanager
def _path_lock(key: str) -> Iterator[None]:
    with _PATH_LOCKS_GUARD:
        lock, users = _PATH_LOCKS.get(key) or (threading.Lock(), 0)
        _PATH_LOCKS[key] = (lock, users + 1)
    try:
        with lock:
            yield
    finally:
        with _PATH_LOCKS_GUARD:
            lock, users = _PATH_LOCKS[key]
            if users <= 1:
                del _PATH_LOCKS[key]
            else:
                _PATH_LOCKS[key] = (lock, users - 1)


class GitHubContentStore:
    """Create-or-update files through the GitHub contents API.

    Every upload looks the path up first to learn its current sha. The lookup
    and the write are not atomic on GitHub's side, so both run under a
    per-path lock held by this process.
    """

    def __init__(
        self,
        repo: str,
        token: str,
        branch: str = "",
        timeout: float = 10.0,
        send: transport.Transport = transport.send,
        api_base: str = GITHUB_API_BASE,
    ) -> None:
        self.repo = repo
        self.token = token
        self.branch = branch
        self.timeout = timeout
        self._send = send
        self._api_base = api_base.rstrip("/")

    def _url(self, path: str) -> str:
        return f"{self._api_base}/repos/{self.repo}/contents/{quote(path.lstrip('/'), safe='/')}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
        }

    def lookup(self, path: str) -> Optional[str]:
        """Return the current sha of ``path``, or None when it should be created."""
        url = self._url(path)
        if self.branch:
            url = f"{url}?ref={quote(self.branch, safe='')}"
        try:
            response = self._send("GET", url, "github", self.timeout, headers=self._headers())
        except TransportError as exc:
            # Ambiguous lookups are treated as "absent"; the write decides.
            print(f"GitHub lookup failed for {path}; assuming new file: {exc}")
            return None
        if response.status != 200:
            if response.status != 404:
                print(f"GitHub lookup for {path} returned {response.status}; assuming new file.")
            return None
        try:
            payload = response.json()
        except ValueError:
            print(f"GitHub lookup for {path} returned invalid JSON; assuming new file.")
            return None
        sha = payload.get("sha") if isinstance(payload, dict) else None
        return sha if isinstance(sha, str) and sha else None

    def upload(self, path: str, content: bytes, message: str) -> RemoteFile:
        with _path_lock(f"{self.repo}:{self.branch}:{path}"):
            sha = self.lookup(path)
            remote = RemoteFile(
                path=path,
                content_base64=base64.b64encode(content).decode("ascii"),
                commit_message=message,
                revision_token=sha,
            )
            body = {"message": remote.commit_message, "content": remote.content_base64}
            if sha:
                body["sha"] = sha
            if self.branch:
                body["branch"] = self.branch
            response = self._send("PUT", self._url(path), "github", self.timeout, payload=body, headers=self._headers())
            if response.status not in (200, 201):
                raise StoreWriteFailed(path, f"{response.status} {response.body}")
        print(f"GitHub {'updated' if sha else 'created'} {self.repo}/{path}")
        return remote
