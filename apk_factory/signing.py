from __future__ import annotations

import asyncio
import contextlib
import os
import time
from typing import Any, Mapping
from urllib.parse import urlsplit

from apk_factory.errors import KeygenError
from apk_factory.fs_utils import createFolderTree
from apk_factory.process_utils import run_shell
from apk_factory.templates import TemplateRenderer
from apk_factory.toolchain import DEFAULT_KEY_LOCK_TIMEOUT, SigningIdentity


KEYGEN_TEMPLATE = "keygen.sh"
LOCK_POLL_SECONDS = 0.1


def manifest_hostname(manifest_url: str) -> str:
    hostname = urlsplit(manifest_url or "").hostname
    if not hostname:
        raise ValueError(f"Manifest URL has no hostname: {manifest_url!r}")
    return hostname


def _lock_is_stale(lock_path: str, max_age: float) -> bool:
    """True when the holder recorded in the lock is gone or the lock is too old."""
    try:
        with open(lock_path, "r", encoding="ascii", errors="replace") as handle:
            content = handle.read().strip()
        age = time.time() - os.path.getmtime(lock_path)
    except FileNotFoundError:
        return False

    if age > max_age:
        return True
    if content.isdigit():
        try:
            os.kill(int(content), 0)
        except ProcessLookupError:
            return True
        except (PermissionError, OverflowError):
            return False
    return False


@contextlib.asynccontextmanager
async def key_lock(key_file: str, timeout: float = DEFAULT_KEY_LOCK_TIMEOUT):
    """Hold ``<key_file>.lock`` for the duration of the block.

    The lock file is created exclusively, so builds in other processes that
    share the key directory wait here too. A lock left by a dead process, or
    older than ``timeout``, is broken once.
    """
    lock_path = key_file + ".lock"
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    broken = False

    while True:
        try:
            fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            break
        except FileExistsError:
            if not broken and _lock_is_stale(lock_path, timeout):
                broken = True
                with contextlib.suppress(FileNotFoundError):
                    os.unlink(lock_path)
                continue
            if loop.time() >= deadline:
                raise KeygenError("keytool", None, f"Timed out waiting for {lock_path}") from None
            await asyncio.sleep(LOCK_POLL_SECONDS)

    try:
        os.write(fd, str(os.getpid()).encode("ascii"))
        os.close(fd)
        yield lock_path
    finally:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(lock_path)


class SigningProvisioner:
    """Makes sure a keystore exists for every manifest hostname.

    Keys live in ``key_dir`` named after the hostname; an existing key is
    never regenerated or overwritten.
    """

    def __init__(
        self,
        parent: Any,
        renderer: TemplateRenderer,
        key_dir: str,
        identity: SigningIdentity | None = None,
        keytool: str = "keytool",
        lock_timeout: float = DEFAULT_KEY_LOCK_TIMEOUT,
    ) -> None:
        self.parent = parent
        self.renderer = renderer
        self.key_dir = os.path.abspath(key_dir)
        self.identity = identity or SigningIdentity()
        self.keytool = keytool
        self.lock_timeout = lock_timeout

    def key_file_for(self, manifest_url: str) -> str:
        return os.path.join(self.key_dir, manifest_hostname(manifest_url))

    def keygen_command(self, manifest_url: str, developer: Mapping[str, Any] | None) -> str:
        developer = developer or {}
        hostname = manifest_hostname(manifest_url)

        return self.renderer.render(
            KEYGEN_TEMPLATE,
            {
                "keytool": self.keytool,
                "keystore": self.key_file_for(manifest_url),
                "store_password": self.identity.store_password,
                "alias": self.identity.alias,
                "alias_password": self.identity.alias_password,
                "commonName": developer.get("name") or "Unknown",
                "organizationUnit": developer.get("url") or "Unknown",
                "organization": hostname,
                "city": "Unknown",
                "state": "Unknown",
                "countryCode": "XX",
            },
        ).strip()

    async def ensure_key(self, manifest_url: str, developer: Mapping[str, Any] | None = None) -> str:
        key_file = self.key_file_for(manifest_url)
        if os.path.exists(key_file):
            return key_file

        createFolderTree(self.key_dir)
        async with key_lock(key_file, self.lock_timeout):
            # Another build may have created it while we waited.
            if os.path.exists(key_file):
                return key_file

            self.parent.trace(" Generate ", key_file, " keystore")
            command = self.keygen_command(manifest_url, developer)
            try:
                code, out, err = await run_shell(command)
            except OSError as exc:
                self.parent.trace("Error on generate keystore: ", exc)
                raise KeygenError("keytool", None, str(exc)) from exc

            if code != 0:
                self.parent.trace("Error on generate keystore: ", err)
                raise KeygenError("keytool", code, err)
            if out:
                self.parent.trace(out)

        return key_file
