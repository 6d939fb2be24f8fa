from __future__ import annotations

import asyncio
import contextlib
import os
import shutil
import tempfile
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping
from urllib.parse import urljoin

from apk_factory.errors import AssetFetchError
from apk_factory.fs_utils import ensureDirectoryFor


DEFAULT_TIMEOUT_SECONDS = 30
USER_AGENT = "apk-factory-icon-fetch/1.0"


@dataclass
class IconFetch:
    key: str
    source: str
    destination: str
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class IconReport:
    fetched: list[IconFetch] = field(default_factory=list)
    failed: list[IconFetch] = field(default_factory=list)
    skipped: list[IconFetch] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def __len__(self) -> int:
        return len(self.fetched) + len(self.failed)


def resolve_icon_source(manifest_url: str, icon_ref: str) -> str:
    if not manifest_url:
        return icon_ref
    return urljoin(manifest_url, icon_ref)


def download_file(url: str, output_path: str) -> int:
    ensureDirectoryFor(output_path)
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    total = 0
    with urllib.request.urlopen(req, timeout=DEFAULT_TIMEOUT_SECONDS) as response, open(output_path, "wb") as dst:
        while True:
            chunk = response.read(1024 * 64)
            if not chunk:
                break
            dst.write(chunk)
            total += len(chunk)
    return total


class AssetLoader:
    """Copies a local file or downloads a URL (http, https, file, data) to a path.

    The data lands in a temporary file beside ``destination`` and is moved
    into place only once complete.
    """

    def _copy_sync(self, source: str, destination: str) -> None:
        ensureDirectoryFor(destination)
        fd, partial = tempfile.mkstemp(
            prefix="." + os.path.basename(destination) + ".",
            suffix=".part",
            dir=os.path.dirname(os.path.abspath(destination)),
        )
        os.close(fd)
        try:
            if os.path.isfile(source):
                shutil.copyfile(source, partial)
            else:
                download_file(source, partial)
            os.replace(partial, destination)
        finally:
            with contextlib.suppress(FileNotFoundError):
                os.unlink(partial)

    async def copy(self, source: str, destination: str) -> None:
        try:
            await asyncio.to_thread(self._copy_sync, source, destination)
        except urllib.error.HTTPError as exc:
            raise AssetFetchError(source, destination, f"HTTP {exc.code}: {exc.reason}") from exc
        except (OSError, ValueError) as exc:
            raise AssetFetchError(source, destination, exc) from exc


def _icon_rank(key: str) -> tuple[int, int]:
    try:
        return 1, int(key.strip())
    except ValueError:
        return 0, 0


def plan_icon_fetches(
    icons: Mapping[str, str],
    destination_for: Callable[[str], str],
    manifest_url: str = "",
) -> tuple[list[IconFetch], list[IconFetch]]:
    """Pick one icon per destination: the largest numeric size wins.

    Returns ``(chosen, skipped)``, both in manifest order.
    """
    candidates = [
        IconFetch(
            key=str(key),
            source=resolve_icon_source(manifest_url, str(ref)),
            destination=destination_for(str(key)),
        )
        for key, ref in icons.items()
    ]

    best: dict[str, IconFetch] = {}
    for item in candidates:
        current = best.get(item.destination)
        if current is None or _icon_rank(item.key) > _icon_rank(current.key):
            best[item.destination] = item

    chosen = [item for item in candidates if best[item.destination] is item]
    skipped = [item for item in candidates if best[item.destination] is not item]
    return chosen, skipped


async def fetch_icons(
    parent: Any,
    loader: Any,
    icons: Mapping[str, str],
    destination_for: Callable[[str], str],
    manifest_url: str = "",
) -> IconReport:
    """Fetch one icon per destination and wait for all of them.

    Keys sharing a destination are narrowed to the largest size first, so no
    two fetches write the same file. Each fetch is counted exactly once
    whatever its outcome; failures are traced and reported in
    ``IconReport.failed`` rather than raised.
    """
    report = IconReport()
    if not icons:
        return report

    fetches, report.skipped = plan_icon_fetches(icons, destination_for, manifest_url)
    for item in report.skipped:
        parent.trace("Skip icon ", item.key, ": another icon fills ", item.destination)

    results = await asyncio.gather(
        *(loader.copy(item.source, item.destination) for item in fetches),
        return_exceptions=True,
    )

    for item, result in zip(fetches, results):
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            item.error = result
            parent.trace("Warn: icon ", item.key, " not fetched: ", result)
            report.failed.append(item)
        else:
            report.fetched.append(item)

    return report
