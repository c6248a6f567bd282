"""
Internationalization (i18n) support for squeezeclip.

User-facing status and error texts go through gettext. Catalogs live in
squeezeclip/locales/<lang>/LC_MESSAGES/squeezeclip.mo; when a catalog is
missing the English text is used unchanged.
"""

import gettext
import locale
import os
from pathlib import Path
from typing import Callable, Optional

_current_translation: Optional[Callable[[str], str]] = None

SUPPORTED_LANGUAGES = ["en", "fr", "es", "de"]
DEFAULT_LANGUAGE = "en"


def get_locales_dir() -> Path:
    """Get the locales directory path."""
    return Path(__file__).parent / "locales"


def detect_system_language() -> str:
    """Detect the language code ('fr', 'en', ...) from the environment."""
    for env_var in ["SQUEEZECLIP_LANG", "LANGUAGE", "LC_ALL", "LC_MESSAGES", "LANG"]:
        lang = os.environ.get(env_var, "")
        if lang:
            lang_code = lang.split("_")[0].split(".")[0].lower()
            if lang_code in SUPPORTED_LANGUAGES:
                return lang_code

    try:
        loc = locale.getlocale()[0]
        if loc:
            lang_code = loc.split("_")[0].lower()
            if lang_code in SUPPORTED_LANGUAGES:
                return lang_code
    except ValueError:
        pass

    return DEFAULT_LANGUAGE


def setup_i18n(lang: Optional[str] = None) -> Callable[[str], str]:
    """
    Configure the translation function and return it.

    Args:
        lang: Language code (e.g. 'fr'). Auto-detected when None.
    """
    global _current_translation

    if lang is None:
        lang = detect_system_language()

    lang = lang.lower().split("_")[0].split(".")[0]
    if lang not in SUPPORTED_LANGUAGES:
        lang = DEFAULT_LANGUAGE

    translation = gettext.translation(
        "squeezeclip",
        localedir=get_locales_dir(),
        languages=[lang, DEFAULT_LANGUAGE],
        fallback=True,
    )
    _current_translation = translation.gettext
    return _current_translation


def _(message: str) -> str:
    """
    Translate a message.

        from squeezeclip.i18n import _
        print(_("Pass 1"))
    """
    if _current_translation is None:
        setup_i18n()
    return _current_translation(message) if _current_translation else message
