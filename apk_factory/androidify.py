import re
from urllib.parse import urlsplit


PACKAGE_PREFIX = "org.apkfactory"

# Web app permission name -> Android permissions it needs.
PERMISSION_MAP = {
    "geolocation": ["ACCESS_FINE_LOCATION", "ACCESS_COARSE_LOCATION"],
    "camera": ["CAMERA"],
    "video-capture": ["CAMERA"],
    "audio-capture": ["RECORD_AUDIO"],
    "contacts": ["READ_CONTACTS", "WRITE_CONTACTS"],
    "device-storage:pictures": ["WRITE_EXTERNAL_STORAGE"],
    "device-storage:videos": ["WRITE_EXTERNAL_STORAGE"],
    "device-storage:music": ["WRITE_EXTERNAL_STORAGE"],
    "device-storage:sdcard": ["WRITE_EXTERNAL_STORAGE"],
    "storage": ["WRITE_EXTERNAL_STORAGE"],
    "systemXHR": ["INTERNET"],
    "tcp-socket": ["INTERNET"],
    "wifi-manage": ["ACCESS_WIFI_STATE", "CHANGE_WIFI_STATE"],
    "vibration": ["VIBRATE"],
}

DENSITY_BUCKETS = [
    (36, "ldpi"),
    (48, "mdpi"),
    (72, "hdpi"),
    (96, "xhdpi"),
    (144, "xxhdpi"),
]


def _clean_segment(part):
    cleaned = re.sub(r"[^A-Za-z0-9_]", "", part)
    if cleaned and cleaned[0].isdigit():
        cleaned = "p" + cleaned
    return cleaned


def package_name(manifest_url):
    """Reverse-domain package id for a manifest URL.

    ``https://demo.example.com/manifest.json`` -> ``com.example.demo``;
    directories in the path are appended so apps sharing a host don't
    collide.
    """
    parts = urlsplit(manifest_url)
    hostname = parts.hostname or ""

    segments = list(reversed(hostname.split(".")))
    if parts.port:
        segments.append(str(parts.port))
    segments += parts.path.split("/")[:-1]

    clean = [_clean_segment(segment).lower() for segment in segments]
    clean = [segment for segment in clean if segment]
    if len(clean) < 2:
        clean = PACKAGE_PREFIX.split(".") + clean
    return ".".join(clean)


def version_code(version):
    """Monotonic integer for a dotted version string; always at least 1."""
    numbers = []
    for part in str(version or "").split(".")[:3]:
        match = re.match(r"\d+", part.strip())
        numbers.append(int(match.group()) if match else 0)
    numbers += [0] * (3 - len(numbers))

    major, minor, patch = numbers
    code = major * 1000000 + min(minor, 999) * 1000 + min(patch, 999)
    return max(code, 1)


def permissions(manifest_permissions):
    if isinstance(manifest_permissions, dict):
        names = list(manifest_permissions)
    elif isinstance(manifest_permissions, (list, tuple)):
        names = [str(name) for name in manifest_permissions]
    else:
        names = []

    result = set()
    for name in names:
        for permission in PERMISSION_MAP.get(name, []):
            result.add("android.permission." + permission)
    return sorted(result)


def icon_size(key):
    try:
        size = int(str(key).strip())
    except ValueError:
        return "nodpi"

    for limit, bucket in DENSITY_BUCKETS:
        if size <= limit:
            return bucket
    return "xxxhdpi"
