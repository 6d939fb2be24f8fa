from __future__ import annotations

import json
import os
import shutil
from dataclasses import dataclass
from typing import Any, Mapping
from urllib.parse import urlsplit

from apk_factory import androidify
from apk_factory.errors import BuildToolError, KeygenError, ManifestError, SkeletonError
from apk_factory.fs_utils import makeNewSkeleton, sanitize, writeFile
from apk_factory.icons import AssetLoader, IconReport, fetch_icons
from apk_factory.locales import default_strings, localized_strings
from apk_factory.process_utils import run_process
from apk_factory.signing import SigningProvisioner
from apk_factory.templates import TemplateRenderer
from apk_factory.toolchain import FactoryToolchain, SigningIdentity, default_destination


@dataclass
class CreateResult:
    properties: dict[str, Any]
    icons: IconReport


@dataclass
class BuildResult:
    error: Exception | None
    package_path: str | None

    @property
    def ok(self) -> bool:
        return self.error is None


class ApkProject:
    """One Android project materialized from a web app manifest.

    ``create()`` lays the project out in ``dest``, ``build()`` signs and
    packages it (as often as needed) and ``cleanup()`` removes it again.
    """

    def __init__(
        self,
        parent: Any,
        toolchain: FactoryToolchain,
        dest: str | None = None,
        loader: Any = None,
        signing: SigningIdentity | None = None,
    ) -> None:
        self.parent = parent
        self.toolchain = toolchain
        self.signing = signing or SigningIdentity()

        self.src = os.path.abspath(toolchain.PROJECT_TEMPLATE)
        self.dest = os.path.abspath(dest or default_destination())

        self.env = TemplateRenderer([self.src, toolchain.UTIL_TEMPLATES])
        self.loader = loader or AssetLoader()

        self.manifest_url: str | None = None
        self.manifest: dict[str, Any] | None = None

    def render_in_place(self, template_name: str, data: Mapping[str, Any]) -> str:
        return self.render_to(template_name, template_name, data)

    def render_to(self, template_name: str, dest_relative_path: str, data: Mapping[str, Any]) -> str:
        out = self.env.render(template_name, dict(data))
        fileout = os.path.join(self.dest, dest_relative_path)
        writeFile(fileout, out)
        return fileout

    def icon_destination(self, key: str) -> str:
        bucket = androidify.icon_size(key)
        return os.path.join(self.dest, "res", "drawable-" + bucket, "ic_launcher.png")

    def package_path(self) -> str:
        name = sanitize((self.manifest or {}).get("name") or "")
        return os.path.join(
            self.dest,
            "bin",
            f"{name}-release.{self.toolchain.PACKAGE_EXTENSION}",
        )

    def _write_strings(self, manifest: Mapping[str, Any], strings_obj: dict[str, Any]) -> None:
        if manifest.get("default_locale") and manifest.get("locales"):
            if self.toolchain.LOCALIZED_STRINGS:
                for qualifier, strings in localized_strings(strings_obj, manifest):
                    if qualifier is None:
                        self.parent.trace("Skip locale without Android qualifier")
                        continue
                    self.render_to(
                        "res/values/strings.xml",
                        f"res/values-{qualifier}/strings.xml",
                        strings,
                    )
            self.render_in_place("res/values/strings.xml", default_strings(strings_obj, manifest))
        else:
            self.render_in_place("res/values/strings.xml", strings_obj)

    async def create(
        self,
        manifest_url: str,
        manifest: dict[str, Any],
        app_type: str = "hosted",
    ) -> CreateResult:
        if not isinstance(manifest, dict) or not isinstance(manifest_url, str):
            raise ManifestError("A JSON manifest is required, with a valid manifest_url")
        if not urlsplit(manifest_url).hostname:
            raise ManifestError(f"Manifest URL has no hostname: {manifest_url!r}")

        self.manifest_url = manifest_url
        self.manifest = manifest

        try:
            self.dest = await makeNewSkeleton(self.src, self.dest)
        except (OSError, SkeletonError) as exc:
            self.parent.trace("Error creating project skeleton: ", exc)
            raise

        properties = {
            "version": manifest.get("version"),
            "versionCode": androidify.version_code(manifest.get("version")),
            "manifestUrl": manifest_url,
            "appType": app_type,
            "permissions": androidify.permissions(manifest.get("permissions")),
            "packageName": androidify.package_name(manifest_url),
        }
        self.render_in_place("AndroidManifest.xml", properties)

        strings_obj = {
            "name": manifest.get("name"),
            "description": manifest.get("description") or "",
        }
        self._write_strings(manifest, strings_obj)

        self.render_in_place("build.xml", sanitize(strings_obj))

        writeFile(os.path.join(self.dest, "res", "raw", "manifest.json"), json.dumps(manifest))

        icons = await fetch_icons(
            self.parent,
            self.loader,
            manifest.get("icons") or {},
            self.icon_destination,
            manifest_url=manifest_url,
        )
        self.parent.trace("Project created in ", self.dest)
        return CreateResult(properties=properties, icons=icons)

    def provisioner(self, key_dir: str | None = None) -> SigningProvisioner:
        return SigningProvisioner(
            self.parent,
            self.env,
            key_dir or self.toolchain.KEY_DIR,
            identity=self.signing,
            keytool=self.toolchain.KEYTOOL,
            lock_timeout=self.toolchain.KEY_LOCK_TIMEOUT,
        )

    async def build(self, key_dir: str | None = None) -> BuildResult:
        if self.manifest is None or self.manifest_url is None:
            raise ManifestError("create() must run before build()")

        provisioner = self.provisioner(key_dir)
        try:
            key_file = await provisioner.ensure_key(self.manifest_url, self.manifest.get("developer"))
        except KeygenError as exc:
            return BuildResult(error=exc, package_path=None)

        library_project = ""
        if self.toolchain.LIBRARY_PROJECT:
            library_project = os.path.relpath(self.toolchain.LIBRARY_PROJECT, self.dest)

        self.render_in_place(
            "project.properties",
            {
                "libraryProject": library_project,
                "sdkDir": self.toolchain.ANDROID_SDK,
                "keystore": key_file,
                "keystore_password": self.signing.store_password,
                "alias": self.signing.alias,
                "alias_password": self.signing.alias_password,
            },
        )

        return await self._build_with_ant()

    async def _build_with_ant(self) -> BuildResult:
        self.parent.trace("Build ", self.dest, " with ", self.toolchain.ANT, " release")
        error = None
        try:
            code, out, err = await run_process(self.toolchain.ANT, ["release"], cwd=self.dest)
        except OSError as exc:
            error = BuildToolError(self.toolchain.ANT, None, str(exc))
            self.parent.trace("Error running build tool: ", exc)
        else:
            if code != 0:
                error = BuildToolError(self.toolchain.ANT, code, err or out)
                self.parent.trace("Error building package: ", error)
                self.parent.trace(err)

        return BuildResult(error=error, package_path=self.package_path())

    def cleanup(self) -> None:
        if os.path.exists(self.dest):
            shutil.rmtree(self.dest)
