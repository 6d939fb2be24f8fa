import re


_LOCALE_RE = re.compile(r"(\w+)(?:-(\w+))?", re.ASCII)


def normalize_locale(locale):
    """Turn a manifest locale key into an Android resource qualifier.

    ``en`` -> ``en``, ``pt-br`` -> ``pt-rBR``. Languages longer than two
    characters have no qualifier and give ``None``, as does anything that is
    not ``language[-region]``.
    """
    match = _LOCALE_RE.fullmatch(locale or "")
    if not match:
        return None

    lang, country = match.group(1), match.group(2)
    if len(lang) > 2:
        return None
    if country:
        return lang + "-r" + country.upper()
    return lang


def localized_strings(base, manifest):
    """Yield ``(qualifier, strings)`` for every entry in ``manifest["locales"]``."""
    locales = manifest.get("locales") or {}
    for locale, overrides in locales.items():
        strings = dict(base)
        strings.update(overrides or {})
        yield normalize_locale(locale), strings


def default_strings(base, manifest):
    default_locale = manifest.get("default_locale")
    locales = manifest.get("locales")
    strings = dict(base)
    if default_locale and locales:
        strings.update(locales.get(default_locale) or {})
    return strings
