#!/usr/bin/env python3
"""
apk-factory command-line builder.

Examples:
  python3 apkfactory_cli.py create https://demo.example.com/manifest.json --dest /tmp/demo
  python3 apkfactory_cli.py build https://demo.example.com/manifest.json --manifest manifest.json --keep
  python3 apkfactory_cli.py clean --dest /tmp/demo --dry-run
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Optional, Sequence

from apk_factory.apk_project import ApkProject
from apk_factory.toolchain import (
    FactoryToolchain,
    default_destination,
    resolve_signing_identity,
    resolve_toolchain_paths,
)


DEFAULT_TIMEOUT_SECONDS = 30
USER_AGENT = "apk-factory/1.0"
APP_TYPES = ("hosted", "packaged", "privileged", "certified")


class CliContext:
    def trace(self, *args: object) -> None:
        print("".join(str(item) for item in args), flush=True)


def load_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, dict):
        raise ValueError(f"Invalid JSON object in {path}")
    return data


def http_get_json(url: str) -> Any:
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT, "Accept": "application/json"})
    with urllib.request.urlopen(req, timeout=DEFAULT_TIMEOUT_SECONDS) as response:
        return json.loads(response.read().decode("utf-8"))


def describe_error(exc: Exception) -> str:
    if isinstance(exc, urllib.error.HTTPError):
        return f"HTTP {exc.code}: {exc.reason}"
    return str(exc)


def load_manifest(ctx: CliContext, manifest_url: str, manifest_file: str = "") -> dict:
    if manifest_file:
        path = Path(manifest_file).expanduser().resolve()
        ctx.trace("Manifest: ", path)
        return load_json(path)

    ctx.trace("Fetch manifest ", manifest_url)
    data = http_get_json(manifest_url)
    if not isinstance(data, dict):
        raise ValueError(f"Manifest at {manifest_url} is not a JSON object")
    return data


def resolve_config_path(repo_root: Path, explicit: str = "") -> Path:
    if explicit:
        return Path(explicit).expanduser().resolve()
    return repo_root / "config.json"


def resolve_toolchain(config_path: Path) -> FactoryToolchain:
    return resolve_toolchain_paths(config_path=str(config_path))


def make_project(ctx: CliContext, args: argparse.Namespace, repo_root: Path) -> ApkProject:
    config_path = resolve_config_path(repo_root, args.config)
    toolchain = resolve_toolchain(config_path)
    signing = resolve_signing_identity(str(config_path))
    dest = args.dest or default_destination()

    ctx.trace("Template: ", toolchain.PROJECT_TEMPLATE)
    ctx.trace("Destination: ", dest)
    return ApkProject(ctx, toolchain, dest=dest, signing=signing)


async def create_project(ctx: CliContext, project: ApkProject, args: argparse.Namespace) -> bool:
    manifest = load_manifest(ctx, args.manifest_url, args.manifest)
    result = await project.create(args.manifest_url, manifest, args.app_type)

    ctx.trace("Package name: ", result.properties["packageName"])
    ctx.trace("Version code: ", result.properties["versionCode"])
    ctx.trace("Icons: ", len(result.icons.fetched), " fetched, ", len(result.icons.failed), " failed")
    if not result.icons.ok and args.strict_icons:
        ctx.trace("Icon fetch failed (--strict-icons)")
        return False
    return True


def command_create(args: argparse.Namespace, repo_root: Path) -> int:
    ctx = CliContext()
    project = make_project(ctx, args, repo_root)
    ok = asyncio.run(create_project(ctx, project, args))
    return 0 if ok else 1


async def create_and_build(ctx: CliContext, project: ApkProject, args: argparse.Namespace) -> int:
    if not await create_project(ctx, project, args):
        return 1

    result = await project.build(args.key_dir or None)
    if not result.ok:
        ctx.trace("Build failed: ", result.error)
        return 1

    ctx.trace("Package: ", result.package_path)
    return 0


def command_build(args: argparse.Namespace, repo_root: Path) -> int:
    ctx = CliContext()
    project = make_project(ctx, args, repo_root)
    try:
        return asyncio.run(create_and_build(ctx, project, args))
    finally:
        if not args.keep and project.manifest is not None:
            ctx.trace("Remove ", project.dest)
            project.cleanup()


def command_clean(args: argparse.Namespace, repo_root: Path) -> int:
    ctx = CliContext()
    dest = os.path.abspath(args.dest or default_destination())
    if not os.path.exists(dest):
        ctx.trace("Nothing to clean in ", dest)
        return 0

    if args.dry_run:
        ctx.trace("[dry-run] remove ", dest)
        return 0

    config_path = resolve_config_path(repo_root, args.config)
    ApkProject(ctx, resolve_toolchain(config_path), dest=dest).cleanup()
    ctx.trace("Removed ", dest)
    return 0


def add_project_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("manifest_url", help="URL the web app manifest is served from")
    parser.add_argument(
        "--manifest",
        default="",
        help="Read the manifest from this file instead of fetching manifest_url",
    )
    parser.add_argument("--dest", default="", help="Project directory (default: $TMPDIR/app)")
    parser.add_argument(
        "--app-type",
        default="hosted",
        choices=APP_TYPES,
        help="Web app type recorded in the Android manifest",
    )
    parser.add_argument(
        "--strict-icons",
        action="store_true",
        help="Fail when any icon can't be fetched",
    )
    parser.add_argument("--config", default="", help="Explicit path to config.json")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Build an Android package from a web app manifest.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    create = subparsers.add_parser("create", help="Lay out the Android project only")
    add_project_arguments(create)

    build = subparsers.add_parser("build", help="Create the project and build the signed package")
    add_project_arguments(build)
    build.add_argument("--key-dir", default="", help="Directory holding per-host keystores")
    build.add_argument("--keep", action="store_true", help="Keep the project directory after the build")

    clean = subparsers.add_parser("clean", help="Remove a project directory")
    clean.add_argument("--dest", default="", help="Project directory (default: $TMPDIR/app)")
    clean.add_argument("--config", default="", help="Explicit path to config.json")
    clean.add_argument("--dry-run", action="store_true", help="Show what would be removed")

    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    repo_root = Path(__file__).resolve().parent

    commands = {
        "create": command_create,
        "build": command_build,
        "clean": command_clean,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        return 1

    try:
        return command(args, repo_root)
    except KeyboardInterrupt:
        print("Interrupted", flush=True)
        return 130
    except Exception as exc:
        print(f"{args.command.capitalize()} failed: {type(exc).__name__}: {describe_error(exc)}", flush=True)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
