from __future__ import annotations

import asyncio
import base64
import os

import pytest

from apk_factory.errors import AssetFetchError
from apk_factory.icons import AssetLoader, IconReport, fetch_icons, plan_icon_fetches, resolve_icon_source


class OutOfOrderLoader:
    """Completes copies in the reverse order they were issued."""

    def __init__(self, fail=()):
        self.fail = set(fail)
        self.issued: list[str] = []
        self.completed: list[str] = []

    async def copy(self, source, destination):
        self.issued.append(source)
        # Later requests sleep less, so they finish first.
        await asyncio.sleep(0.01 * (10 - len(self.issued)))
        self.completed.append(source)
        if source in self.fail:
            raise AssetFetchError(source, destination, "boom")


def _dest(tmp_path):
    return lambda key: str(tmp_path / f"drawable-{key}" / "ic_launcher.png")


def test_fan_in_waits_for_every_fetch_regardless_of_order(ctx, tmp_path):
    loader = OutOfOrderLoader()
    icons = {"16": "http://x/16.png", "48": "http://x/48.png", "128": "http://x/128.png"}

    report = asyncio.run(fetch_icons(ctx, loader, icons, _dest(tmp_path)))

    assert len(loader.completed) == 3
    assert loader.completed == list(reversed(loader.issued))
    assert report.ok
    assert [item.key for item in report.fetched] == ["16", "48", "128"]
    assert report.fetched[1].destination == str(tmp_path / "drawable-48" / "ic_launcher.png")


def test_fan_in_counts_failures_once_and_reports_them(ctx, tmp_path):
    loader = OutOfOrderLoader(fail={"http://x/48.png"})
    icons = {"16": "http://x/16.png", "48": "http://x/48.png"}

    report = asyncio.run(fetch_icons(ctx, loader, icons, _dest(tmp_path)))

    assert len(report) == 2
    assert not report.ok
    assert [item.key for item in report.failed] == ["48"]
    assert isinstance(report.failed[0].error, AssetFetchError)
    assert "icon 48 not fetched" in ctx.text()


def test_empty_icon_mapping_completes_without_scheduling(ctx, tmp_path):
    class ExplodingLoader:
        async def copy(self, source, destination):
            raise AssertionError("no fetch expected")

    report = asyncio.run(fetch_icons(ctx, ExplodingLoader(), {}, _dest(tmp_path)))
    assert report == IconReport()
    assert report.ok


def test_icon_sources_resolve_against_manifest_url():
    base = "https://demo.example.com/apps/manifest.json"
    assert resolve_icon_source(base, "/img/a.png") == "https://demo.example.com/img/a.png"
    assert resolve_icon_source(base, "img/a.png") == "https://demo.example.com/apps/img/a.png"
    assert resolve_icon_source(base, "http://x/a.png") == "http://x/a.png"
    assert resolve_icon_source(base, "data:image/png;base64,AAAA") == "data:image/png;base64,AAAA"
    assert resolve_icon_source("", "img/a.png") == "img/a.png"


def test_asset_loader_copies_local_files(tmp_path):
    src = tmp_path / "icon.png"
    src.write_bytes(b"\x89PNG local")
    dest = tmp_path / "res" / "drawable-hdpi" / "ic_launcher.png"

    asyncio.run(AssetLoader().copy(str(src), str(dest)))

    assert dest.read_bytes() == b"\x89PNG local"


def test_asset_loader_decodes_data_urls(tmp_path):
    payload = base64.b64encode(b"\x89PNG data").decode("ascii")
    dest = tmp_path / "out" / "ic_launcher.png"

    asyncio.run(AssetLoader().copy("data:image/png;base64," + payload, str(dest)))

    assert dest.read_bytes() == b"\x89PNG data"


def test_asset_loader_wraps_failures(tmp_path):
    dest = tmp_path / "ic_launcher.png"
    missing = "file://" + os.path.join(str(tmp_path), "nope.png")
    with pytest.raises(AssetFetchError):
        asyncio.run(AssetLoader().copy(missing, str(dest)))


def test_icons_sharing_a_bucket_are_fetched_once_largest_first(ctx, tmp_path):
    small = tmp_path / "16.png"
    large = tmp_path / "32.png"
    small.write_bytes(b"A" * (3 * 1024 * 1024))
    large.write_bytes(b"B" * 10)
    destination = str(tmp_path / "res" / "drawable-ldpi" / "ic_launcher.png")

    report = asyncio.run(
        fetch_icons(ctx, AssetLoader(), {"16": str(small), "32": str(large)}, lambda key: destination)
    )

    assert [item.key for item in report.fetched] == ["32"]
    assert [item.key for item in report.skipped] == ["16"]
    assert len(report) == 1
    with open(destination, "rb") as handle:
        assert handle.read() == b"B" * 10
    assert os.listdir(os.path.dirname(destination)) == ["ic_launcher.png"]
    assert "Skip icon 16" in ctx.text()


def test_plan_prefers_numeric_keys_and_keeps_distinct_buckets(tmp_path):
    icons = {"128": "a.png", "any": "b.png", "120": "c.png", "16": "d.png"}
    buckets = {"128": "xxhdpi", "120": "xxhdpi", "16": "ldpi", "any": "xxhdpi"}

    chosen, skipped = plan_icon_fetches(icons, lambda key: buckets[key])

    assert [item.key for item in chosen] == ["128", "16"]
    assert [item.key for item in skipped] == ["any", "120"]


def test_failed_download_leaves_no_partial_file(tmp_path):
    dest = tmp_path / "drawable-hdpi" / "ic_launcher.png"
    dest.parent.mkdir()
    dest.write_bytes(b"previous")
    missing = "file://" + os.path.join(str(tmp_path), "nope.png")

    with pytest.raises(AssetFetchError):
        asyncio.run(AssetLoader().copy(missing, str(dest)))

    assert dest.read_bytes() == b"previous"
    assert os.listdir(str(dest.parent)) == ["ic_launcher.png"]
