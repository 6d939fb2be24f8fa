import json
import os
import tempfile
from dataclasses import dataclass

from apk_factory.templates import PROJECT_TEMPLATE, UTIL_TEMPLATES


DEFAULT_STORE_PASSWORD = "apkfactory"
DEFAULT_ALIAS = "alias"
DEFAULT_ALIAS_PASSWORD = "alias_password"
DEFAULT_KEY_LOCK_TIMEOUT = 120.0


@dataclass(frozen=True)
class FactoryToolchain:
    ANDROID_SDK: str
    JAVA_SDK: str
    ANT: str
    KEYTOOL: str
    PROJECT_TEMPLATE: str
    UTIL_TEMPLATES: str
    LIBRARY_PROJECT: str
    KEY_DIR: str
    PACKAGE_EXTENSION: str = "apk"
    LOCALIZED_STRINGS: bool = False
    KEY_LOCK_TIMEOUT: float = DEFAULT_KEY_LOCK_TIMEOUT


@dataclass(frozen=True)
class SigningIdentity:
    store_password: str = DEFAULT_STORE_PASSWORD
    alias: str = DEFAULT_ALIAS
    alias_password: str = DEFAULT_ALIAS_PASSWORD


def _read_config(config_path):
    if not config_path or not os.path.exists(config_path):
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as handle:
            return json.load(handle)
    except (OSError, ValueError):
        return {}


def _get_factory_config(data):
    if not isinstance(data, dict):
        return {}

    if isinstance(data.get("Factory"), dict):
        return data["Factory"]

    configuration = data.get("Configuration")
    if isinstance(configuration, dict) and isinstance(configuration.get("Factory"), dict):
        return configuration["Factory"]

    return {}


def _as_bool(value, default=False):
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "on"):
        return True
    if text in ("0", "false", "no", "off"):
        return False
    return default


def _as_float(value, default):
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _java_tool(java_sdk, name):
    if java_sdk:
        candidate = os.path.join(java_sdk, "bin", name)
        if os.path.exists(candidate):
            return candidate
    return name


def _ant_tool(ant_home):
    if ant_home:
        candidate = os.path.join(ant_home, "bin", "ant")
        if os.path.exists(candidate):
            return candidate
    return "ant"


def default_key_dir():
    return os.path.join(os.path.expanduser("~"), ".apk-factory", "keys")


def default_destination():
    return os.path.join(os.environ.get("TMPDIR") or tempfile.gettempdir(), "app")


def resolve_toolchain_paths(
    config_path,
    default_sdk="",
    default_java="",
    fallback_key_dir=None,
):
    config = _get_factory_config(_read_config(config_path))

    android_sdk = (
        os.environ.get("ANDROID_SDK_ROOT")
        or os.environ.get("ANDROID_HOME")
        or config.get("AndroidSdk")
        or default_sdk
    )

    java_sdk = os.environ.get("JAVA_HOME") or config.get("JavaSdk") or default_java

    ant = os.environ.get("APK_FACTORY_ANT") or config.get("Ant") or _ant_tool(os.environ.get("ANT_HOME"))
    keytool = os.environ.get("APK_FACTORY_KEYTOOL") or config.get("Keytool") or _java_tool(java_sdk, "keytool")

    project_template = (
        os.environ.get("APK_FACTORY_TEMPLATE")
        or config.get("ProjectTemplate")
        or PROJECT_TEMPLATE
    )
    util_templates = config.get("UtilTemplates") or UTIL_TEMPLATES

    library_project = os.environ.get("APK_FACTORY_LIBRARY") or config.get("LibraryProject") or ""

    key_dir = (
        os.environ.get("APK_FACTORY_KEY_DIR")
        or config.get("KeyDir")
        or fallback_key_dir
        or default_key_dir()
    )

    localized = _as_bool(
        os.environ.get("APK_FACTORY_LOCALIZED_STRINGS", config.get("LocalizedStrings")),
        default=False,
    )
    lock_timeout = _as_float(
        os.environ.get("APK_FACTORY_KEY_LOCK_TIMEOUT", config.get("KeyLockTimeout")),
        DEFAULT_KEY_LOCK_TIMEOUT,
    )

    return FactoryToolchain(
        ANDROID_SDK=android_sdk,
        JAVA_SDK=java_sdk,
        ANT=ant,
        KEYTOOL=keytool,
        PROJECT_TEMPLATE=os.path.abspath(project_template),
        UTIL_TEMPLATES=os.path.abspath(util_templates),
        LIBRARY_PROJECT=os.path.abspath(library_project) if library_project else "",
        KEY_DIR=os.path.abspath(os.path.expanduser(key_dir)),
        PACKAGE_EXTENSION=str(config.get("PackageExtension") or "apk").lstrip("."),
        LOCALIZED_STRINGS=localized,
        KEY_LOCK_TIMEOUT=lock_timeout,
    )


def resolve_signing_identity(config_path):
    config = _get_factory_config(_read_config(config_path))
    signing = config.get("Signing") if isinstance(config.get("Signing"), dict) else {}

    return SigningIdentity(
        store_password=(
            os.environ.get("APK_FACTORY_STORE_PASSWORD")
            or signing.get("StorePassword")
            or DEFAULT_STORE_PASSWORD
        ),
        alias=os.environ.get("APK_FACTORY_KEY_ALIAS") or signing.get("Alias") or DEFAULT_ALIAS,
        alias_password=(
            os.environ.get("APK_FACTORY_ALIAS_PASSWORD")
            or signing.get("AliasPassword")
            or DEFAULT_ALIAS_PASSWORD
        ),
    )
