"""Bare mirror cache and read-only access to git object stores."""

from __future__ import annotations

import os
import shutil
import subprocess
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Sequence

from ..errors import (
    GitCommandError,
    NetworkError,
    NotAGitRepositoryError,
    NotFoundError,
    redact_url,
)
from ..logging import get_logger
from ..models import Credentials, Ref, RepositoryHandle, TreeEntry
from .credentials import CredentialStore, resolve_credentials
from .progress import ProgressObserver, ProgressTracker
from .remote import (
    apply_credentials,
    cache_dirname,
    check_protocol,
    is_local_url,
    should_proxy,
)

CONTENT_CACHE_FOLDER = "content"
VALID_MARKER = "valid"
REF_KINDS = ("branch", "tag")

_REF_PREFIXES = {"branch": "refs/heads/", "tag": "refs/tags/"}
_FETCH_REFSPECS = ("+refs/heads/*:refs/heads/*", "+refs/tags/*:refs/tags/*")

GitRunner = Callable[..., bytes]
"""``runner(args, *, cwd, env, timeout, progress, input) -> stdout bytes``."""


@dataclass(frozen=True)
class ProxySettings:
    """HTTP(S) proxy configuration for remote fetches."""

    http_proxy: Optional[str] = None
    https_proxy: Optional[str] = None
    no_proxy: Optional[str] = None

    def proxy_for(self, url: str) -> Optional[str]:
        if url.startswith("https://"):
            proxy = self.https_proxy
        elif url.startswith("http://"):
            proxy = self.http_proxy
        else:
            return None
        if proxy and should_proxy(url, self.no_proxy):
            return proxy
        return None


class RepositoryLocks:
    """One lock per on-disk repository, addressed by its path."""

    def __init__(self) -> None:
        self._locks: Dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def get(self, path: Path) -> threading.RLock:
        key = os.path.abspath(path)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock


class GitRepositoryManager:
    """Clones, fetches and reads repositories without a working tree.

    Remote repositories are mirrored as bare clones under
    ``<cache_dir>/content/<basename>-<sha1>.git``. A zero-byte ``valid`` file is
    written into the mirror only after a clone or fetch completes; when it is
    present and ``fetch`` is off, no network access happens at all. Every
    operation on one repository path runs under that path's lock.
    """

    def __init__(
        self,
        cache_dir: Path,
        *,
        fetch: bool = False,
        credential_store: Optional[CredentialStore] = None,
        proxy: Optional[ProxySettings] = None,
        timeout: Optional[float] = 300.0,
        runner: Optional[GitRunner] = None,
        progress: Optional[ProgressObserver] = None,
        locks: Optional[RepositoryLocks] = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.fetch = fetch
        self.credential_store = credential_store
        self.proxy = proxy or ProxySettings()
        self.timeout = timeout
        self.progress = progress
        self._runner = runner or self._default_runner
        self._locks = locks or RepositoryLocks()
        self._env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
        self.logger = get_logger("git.repository")

    @property
    def content_dir(self) -> Path:
        return self.cache_dir / CONTENT_CACHE_FOLDER

    # ------------------------------------------------------------------
    # Repository resolution

    def resolve(self, url: str, credentials: Optional[Credentials] = None) -> RepositoryHandle:
        """Return a handle for ``url``, cloning or fetching when required."""
        if is_local_url(url):
            return self._open_local(url)

        check_protocol(url)
        display_url = redact_url(url)
        path = self.content_dir / cache_dirname(url)
        with self._locks.get(path):
            marker = path / VALID_MARKER
            if marker.is_file() and not self.fetch:
                self.logger.debug("Using cached repository for %s at %s", display_url, path)
                return RepositoryHandle(url=display_url, path=path)

            effective = resolve_credentials(url, credentials, self.credential_store)
            remote_url = apply_credentials(display_url, effective)
            operation = "fetch" if marker.is_file() else "clone"
            # Cache I/O failures belong to this source only.
            try:
                if operation == "fetch":
                    marker.unlink()
                    self.logger.info("Fetching %s", display_url)
                    self._fetch(path, url, remote_url, operation="fetch")
                else:
                    if path.exists():
                        self.logger.info("Discarding incomplete cache for %s", display_url)
                        shutil.rmtree(path)
                    self.logger.info("Cloning %s into %s", display_url, path)
                    self._clone(path, url, remote_url, display_url)
                marker.touch()
            except OSError as exc:
                raise NetworkError(url, operation, cache_path=path, detail=str(exc)) from exc
        return RepositoryHandle(url=display_url, path=path)

    def _open_local(self, url: str) -> RepositoryHandle:
        path = Path(url).expanduser().resolve()
        if not path.is_dir():
            raise NotAGitRepositoryError(str(path))
        is_worktree = (path / ".git").exists()
        is_bare = (path / "HEAD").is_file() and (path / "objects").is_dir()
        if not (is_worktree or is_bare):
            raise NotAGitRepositoryError(str(path))
        return RepositoryHandle(url=str(path), path=path, local=True)

    def _clone(self, path: Path, url: str, remote_url: str, display_url: str) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
            self._run(["git", "init", "--bare", "--quiet", str(path)], cwd=path)
            self._run(["git", "config", "remote.origin.url", display_url], cwd=path)
        except (GitCommandError, OSError) as exc:
            shutil.rmtree(path, ignore_errors=True)
            raise NetworkError(url, "clone", cache_path=path, detail=str(exc)) from exc
        try:
            self._fetch(path, url, remote_url, operation="clone")
        except NetworkError:
            shutil.rmtree(path, ignore_errors=True)
            raise

    def _fetch(self, path: Path, url: str, remote_url: str, *, operation: str) -> None:
        args = ["git", *self._transport_options(remote_url), "fetch", "--prune", "--force"]
        tracker = None
        if self.progress is not None:
            args.append("--progress")
            tracker = ProgressTracker(redact_url(url), self.progress)
        args.append(remote_url)
        args.extend(_FETCH_REFSPECS)
        try:
            self._run(args, cwd=path, timeout=self.timeout, progress=tracker)
        except TimeoutError as exc:
            raise NetworkError(url, operation, cache_path=path, detail=str(exc)) from exc
        except (GitCommandError, OSError) as exc:
            raise NetworkError(url, operation, cache_path=path, detail=str(exc)) from exc

    def _transport_options(self, remote_url: str) -> List[str]:
        options = ["-c", "credential.helper="]
        proxy = self.proxy.proxy_for(remote_url)
        if proxy:
            options.extend(["-c", f"http.proxy={proxy}"])
        return options

    # ------------------------------------------------------------------
    # Read operations

    def list_refs(self, handle: RepositoryHandle, kind: str) -> List[Ref]:
        """Return refs of ``kind`` sorted by name."""
        if kind not in _REF_PREFIXES:
            raise ValueError(f"Unknown ref kind: {kind}")
        prefix = _REF_PREFIXES[kind]
        output = self._git(
            handle,
            ["for-each-ref", "--format=%(objectname)%09%(*objectname)%09%(refname)", prefix.rstrip("/")],
        )
        refs: List[Ref] = []
        for line in output.decode("utf-8", errors="replace").splitlines():
            if not line.strip():
                continue
            oid, peeled, refname = line.split("\t", 2)
            if not refname.startswith(prefix):
                continue
            refs.append(Ref(name=refname[len(prefix):], kind=kind, oid=peeled or oid))
        refs.sort(key=lambda ref: ref.name)
        return refs

    def current_branch(self, handle: RepositoryHandle) -> Optional[str]:
        """Name of the branch HEAD points to, or None when detached."""
        try:
            output = self._git(handle, ["symbolic-ref", "--short", "-q", "HEAD"])
        except GitCommandError:
            return None
        name = output.decode("utf-8", errors="replace").strip()
        return name or None

    def read_tree(self, handle: RepositoryHandle, ref: Ref, subpath: str = "") -> Iterator[TreeEntry]:
        """Yield entries under ``subpath`` at ``ref``, relative to ``subpath``."""
        treeish = f"{ref.oid}:{subpath.strip('/')}"
        try:
            output = self._git(handle, ["ls-tree", "-r", "-t", "-z", treeish])
        except GitCommandError as exc:
            raise NotFoundError(handle.url, ref.name, subpath) from exc
        return _parse_tree(output)

    def read_blob(self, handle: RepositoryHandle, ref: Ref, path: str) -> bytes:
        try:
            return self._git(handle, ["cat-file", "blob", f"{ref.oid}:{path.strip('/')}"])
        except GitCommandError as exc:
            raise NotFoundError(handle.url, ref.name, path) from exc

    def read_blobs(self, handle: RepositoryHandle, ref: Ref, paths: Sequence[str]) -> List[bytes]:
        """Read several files at ``ref`` through a single ``git cat-file --batch``."""
        if not paths:
            return []
        names = [f"{ref.oid}:{path.strip('/')}" for path in paths]
        if any("\n" in name for name in names):
            # The batch protocol is line based.
            return [self.read_blob(handle, ref, path) for path in paths]
        request = "".join(f"{name}\n" for name in names).encode("utf-8")
        output = self._git(handle, ["cat-file", "--batch"], input=request)
        blobs: List[bytes] = []
        for path, blob in zip(paths, _parse_batch(output, len(names))):
            if blob is None:
                raise NotFoundError(handle.url, ref.name, path)
            blobs.append(blob)
        return blobs

    def commit_time(self, handle: RepositoryHandle, ref: Ref) -> Optional[float]:
        try:
            output = self._git(handle, ["show", "-s", "--format=%ct", ref.oid])
        except GitCommandError:
            return None
        text = output.decode("utf-8", errors="replace").strip()
        return float(text) if text.isdigit() else None

    # ------------------------------------------------------------------
    # Helpers

    def _git(self, handle: RepositoryHandle, args: Sequence[str], *, input: Optional[bytes] = None) -> bytes:
        with self._locks.get(handle.path):
            return self._run(["git", *args], cwd=handle.path, input=input)

    def _run(
        self,
        args: Sequence[str],
        *,
        cwd: Path,
        timeout: Optional[float] = None,
        progress: Optional[ProgressTracker] = None,
        input: Optional[bytes] = None,
    ) -> bytes:
        return self._runner(args, cwd=cwd, env=self._env, timeout=timeout, progress=progress, input=input)

    @staticmethod
    def _default_runner(
        args: Sequence[str],
        *,
        cwd: Path,
        env: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        progress: Optional[ProgressTracker] = None,
        input: Optional[bytes] = None,
    ) -> bytes:
        if progress is not None:
            return _run_streaming(args, cwd=cwd, env=env, timeout=timeout, progress=progress)
        try:
            completed = subprocess.run(
                list(args),
                cwd=str(cwd),
                env=env,
                input=input,
                capture_output=True,
                timeout=timeout,
                check=False,
            )
        except FileNotFoundError as exc:
            raise GitCommandError(args, 127, "git executable not found") from exc
        except subprocess.TimeoutExpired as exc:
            raise TimeoutError(f"git command timed out after {timeout}s") from exc
        if completed.returncode != 0:
            raise GitCommandError(args, completed.returncode, completed.stderr.decode("utf-8", errors="replace"))
        return completed.stdout


def _run_streaming(
    args: Sequence[str],
    *,
    cwd: Path,
    env: Optional[Dict[str, str]],
    timeout: Optional[float],
    progress: ProgressTracker,
) -> bytes:
    try:
        process = subprocess.Popen(
            list(args),
            cwd=str(cwd),
            env=env,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except FileNotFoundError as exc:
        raise GitCommandError(args, 127, "git executable not found") from exc

    timed_out = threading.Event()

    def _kill() -> None:
        timed_out.set()
        process.kill()

    timer = threading.Timer(timeout, _kill) if timeout else None
    if timer is not None:
        timer.daemon = True
        timer.start()
    tail = ""
    try:
        assert process.stderr is not None
        while True:
            chunk = os.read(process.stderr.fileno(), 4096)
            if not chunk:
                break
            text = chunk.decode("utf-8", errors="replace")
            progress.feed(text)
            tail = (tail + text)[-4096:]
        returncode = process.wait()
    finally:
        if timer is not None:
            timer.cancel()
        if process.stderr is not None:
            process.stderr.close()
    progress.close()
    if timed_out.is_set():
        raise TimeoutError(f"git fetch timed out after {timeout}s")
    if returncode != 0:
        raise GitCommandError(args, returncode, tail)
    return b""


def _parse_batch(output: bytes, count: int) -> List[Optional[bytes]]:
    """Split ``cat-file --batch`` output into one entry per request; None when missing."""
    blobs: List[Optional[bytes]] = []
    offset = 0
    while len(blobs) < count:
        end = output.find(b"\n", offset)
        if end == -1:
            break
        header = output[offset:end]
        offset = end + 1
        if header.endswith((b" missing", b" ambiguous")):
            blobs.append(None)
            continue
        fields = header.split()
        if len(fields) != 3 or not fields[2].isdigit():
            break
        size = int(fields[2])
        content = output[offset:offset + size]
        offset += size + 1
        blobs.append(content if fields[1] == b"blob" else None)
    blobs.extend([None] * (count - len(blobs)))
    return blobs


def _parse_tree(output: bytes) -> Iterator[TreeEntry]:
    for record in output.split(b"\0"):
        if not record:
            continue
        meta, _, raw_path = record.partition(b"\t")
        fields = meta.split()
        if len(fields) < 2:
            continue
        object_type = fields[1]
        if object_type == b"commit":
            # Submodules have no content in this repository.
            continue
        yield TreeEntry(path=raw_path.decode("utf-8", errors="replace"), is_dir=object_type == b"tree")


__all__ = [
    "CONTENT_CACHE_FOLDER",
    "GitRepositoryManager",
    "GitRunner",
    "ProxySettings",
    "REF_KINDS",
    "RepositoryLocks",
    "VALID_MARKER",
]
