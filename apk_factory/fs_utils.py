import asyncio
import os
import re
import shutil

from apk_factory.errors import SkeletonError


_UNSAFE_CHARS = re.compile(r"[^\w.]+", re.ASCII)


def sanitize(value):
    """Strip everything but word characters and periods.

    Strings are cleaned directly, dicts and lists are cleaned value by value
    into a new container, anything else is returned unchanged.
    """
    if isinstance(value, str):
        return _UNSAFE_CHARS.sub("", value)
    if isinstance(value, dict):
        return {key: sanitize(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize(item) for item in value]
    return value


def createFolderTree(maindir):
    if not os.path.exists(maindir):
        os.makedirs(maindir, exist_ok=True)


def ensureDirectoryFor(filename):
    createFolderTree(os.path.dirname(os.path.abspath(filename)))


def writeFile(filename, content):
    ensureDirectoryFor(filename)
    if os.path.exists(filename):
        os.unlink(filename)
    mode = "wb" if isinstance(content, bytes) else "w"
    encoding = None if isinstance(content, bytes) else "utf-8"
    with open(filename, mode, encoding=encoding) as handle:
        handle.write(content)


def removeTree(path):
    if os.path.isdir(path) and not os.path.islink(path):
        shutil.rmtree(path)
    elif os.path.lexists(path):
        os.unlink(path)


async def makeNewSkeleton(src, dest):
    # Clearing and recreating the destination must succeed before any copy
    # starts; errors here propagate as-is.
    removeTree(dest)
    os.makedirs(dest)
    dest = os.path.realpath(dest)

    try:
        await asyncio.to_thread(shutil.copytree, src, dest, dirs_exist_ok=True)
    except OSError as exc:
        raise SkeletonError(f"Failed to copy template {src} -> {dest}: {exc}") from exc

    # ant needs src/ but an empty directory can't live in the template repo.
    createFolderTree(os.path.join(dest, "src"))
    return dest
