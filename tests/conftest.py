import sys
from pathlib import Path

import pytest

# Ensure the repo root is on sys.path so tests can import `apk_factory` and the CLI script.
ROOT = str(Path(__file__).resolve().parents[1])
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from apk_factory.templates import PROJECT_TEMPLATE, UTIL_TEMPLATES  # noqa: E402
from apk_factory.toolchain import FactoryToolchain  # noqa: E402


class RecordingContext:
    def __init__(self) -> None:
        self.lines: list[str] = []

    def trace(self, *args: object) -> None:
        self.lines.append("".join(str(item) for item in args))

    def text(self) -> str:
        return "\n".join(self.lines)


@pytest.fixture
def ctx() -> RecordingContext:
    return RecordingContext()


@pytest.fixture
def toolchain(tmp_path: Path) -> FactoryToolchain:
    return FactoryToolchain(
        ANDROID_SDK=str(tmp_path / "sdk"),
        JAVA_SDK="",
        ANT="ant",
        KEYTOOL="keytool",
        PROJECT_TEMPLATE=PROJECT_TEMPLATE,
        UTIL_TEMPLATES=UTIL_TEMPLATES,
        LIBRARY_PROJECT="",
        KEY_DIR=str(tmp_path / "keys"),
    )


@pytest.fixture(autouse=True)
def _clear_factory_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # Toolchain resolution reads these; keep the developer's shell out of the tests.
    for name in (
        "ANDROID_SDK_ROOT",
        "ANDROID_HOME",
        "JAVA_HOME",
        "ANT_HOME",
        "APK_FACTORY_ANT",
        "APK_FACTORY_KEYTOOL",
        "APK_FACTORY_TEMPLATE",
        "APK_FACTORY_LIBRARY",
        "APK_FACTORY_KEY_DIR",
        "APK_FACTORY_LOCALIZED_STRINGS",
        "APK_FACTORY_KEY_LOCK_TIMEOUT",
        "APK_FACTORY_STORE_PASSWORD",
        "APK_FACTORY_KEY_ALIAS",
        "APK_FACTORY_ALIAS_PASSWORD",
    ):
        monkeypatch.delenv(name, raising=False)
