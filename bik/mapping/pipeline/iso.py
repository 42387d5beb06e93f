"""Named iso tables of the `table` filter.

Languages (iso 639) and countries (iso 3166-1) are read from pycountry, with
its French catalogs, and the native names from the CLDR data of langcodes.
"""

from __future__ import annotations

import gettext

import langcodes
import pycountry

ISO_TABLES = (
    "iso-639-native",
    "iso-639-english",
    "iso-639-english-inverted",
    "iso-639-french",
    "iso-639-french-inverted",
    "iso-3166-native",
    "iso-3166-english",
    "iso-3166-french",
)


def _language(code: str):
    code = code.strip().lower()
    if len(code) == 2:
        return pycountry.languages.get(alpha_2=code)
    if len(code) == 3:
        return pycountry.languages.get(alpha_3=code) or pycountry.languages.get(bibliographic=code)
    return None


def _country(code: str):
    code = code.strip().upper()
    if len(code) == 2:
        return pycountry.countries.get(alpha_2=code)
    if len(code) == 3:
        return pycountry.countries.get(alpha_3=code)
    return None


def _french(domain: str, text: str) -> str:
    translation = gettext.translation(domain, pycountry.LOCALES_DIR, languages=["fr"], fallback=True)
    return translation.gettext(text)


def _native_language(language) -> str | None:
    tag = getattr(language, "alpha_2", None) or language.alpha_3
    name = langcodes.Language.get(tag).autonym()
    # Without cldr data, langcodes answers with the code between brackets.
    return None if not name or "[" in name else name


def _native_country(country) -> str | None:
    language = langcodes.Language.get(f"und-{country.alpha_2}").maximize().language
    if not language or language == "und":
        return None
    return langcodes.Language.make(territory=country.alpha_2).territory_name(language)


def iso_label(table: str, code: str) -> str | None:
    """Name of a language or country code in one of the iso tables.

    Returns:
        The name, or None when the table or the code is unknown
    """
    if table.startswith("iso-639-"):
        language = _language(code)
        if language is None:
            return None
        english = language.name
        inverted = getattr(language, "inverted_name", None) or english
        if table == "iso-639-native":
            return _native_language(language)
        if table == "iso-639-english":
            return english
        if table == "iso-639-english-inverted":
            return inverted
        if table == "iso-639-french":
            return _french("iso639-3", english)
        if table == "iso-639-french-inverted":
            return _french("iso639-3", inverted)
        return None

    if table.startswith("iso-3166-"):
        country = _country(code)
        if country is None:
            return None
        if table == "iso-3166-native":
            return _native_country(country)
        if table == "iso-3166-english":
            return country.name
        if table == "iso-3166-french":
            return _french("iso3166-1", country.name)
    return None
