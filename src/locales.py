"""Static mapping from resource-file locales to translation service languages."""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

import jsonschema

from src.errors import ConfigurationError

DEFAULT_LANGUAGE_CODE = "en"

# Schema for the optional `locales` list in config.yaml.
LOCALES_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "locale": {"type": "string", "minLength": 1},
            "language_code": {"type": "string", "minLength": 2, "maxLength": 5},
            "name": {"type": "string"}
        },
        "required": ["locale", "language_code"],
        "additionalProperties": False
    }
}


@dataclass(frozen=True)
class LocaleTarget:
    locale: str
    language_code: str
    display_name: str


DEFAULT_LOCALES = (
    LocaleTarget("en_US", "en", "English (US)"),
    LocaleTarget("en_GB", "en", "English (UK)"),
    LocaleTarget("de_DE", "de", "Deutsch (Deutschland)"),
    LocaleTarget("es_ES", "es", "Español (España)"),
    LocaleTarget("es_MX", "es", "Español (México)"),
    LocaleTarget("fr_FR", "fr", "Français (France)"),
    LocaleTarget("fr_CA", "fr", "Français (Canada)"),
    LocaleTarget("it_IT", "it", "Italiano (Italia)"),
    LocaleTarget("ja_JP", "ja", "日本語 (日本)"),
    LocaleTarget("ko_KR", "ko", "한국어 (대한민국)"),
    LocaleTarget("pt_BR", "pt", "Português (Brasil)"),
    LocaleTarget("pt_PT", "pt", "Português (Portugal)"),
    LocaleTarget("ru_RU", "ru", "Русский (Россия)"),
    LocaleTarget("zh_CN", "zh-CN", "简体中文 (中国)"),
    LocaleTarget("zh_TW", "zh-TW", "繁體中文 (台灣)"),
    LocaleTarget("nl_NL", "nl", "Nederlands (Nederland)"),
    LocaleTarget("bg_BG", "bg", "Български (BG)"),
    LocaleTarget("cs_CZ", "cs", "Čeština (Česká republika)"),
    LocaleTarget("da_DK", "da", "Dansk (DA)"),
    LocaleTarget("el_GR", "el", "Ελληνικά (Ελλάδα)"),
    LocaleTarget("fi_FI", "fi", "Suomi (Suomi)"),
    LocaleTarget("hu_HU", "hu", "Magyar (HU)"),
    LocaleTarget("id_ID", "id", "Bahasa Indonesia (Indonesia)"),
    LocaleTarget("nb_NO", "no", "Norsk bokmål (Norge)"),
    LocaleTarget("pl_PL", "pl", "Polski (PL)"),
    LocaleTarget("sk_SK", "sk", "Slovensky (SK)"),
    LocaleTarget("sv_SE", "sv", "Svenska (Sverige)"),
    LocaleTarget("tr_TR", "tr", "Türkçe (Türkiye)"),
    LocaleTarget("uk_UA", "uk", "Українська (Україна)"),
)


class LocaleTable:
    """Ordered lookup of the locales a file can be translated into."""

    def __init__(self, targets: Iterable[LocaleTarget], default_language_code: str = DEFAULT_LANGUAGE_CODE):
        self._targets: Dict[str, LocaleTarget] = {target.locale: target for target in targets}
        self.default_language_code = default_language_code

    def __contains__(self, locale: object) -> bool:
        return locale in self._targets

    def __len__(self) -> int:
        return len(self._targets)

    def get(self, locale: str) -> Optional[LocaleTarget]:
        return self._targets.get(locale)

    def locales(self) -> List[str]:
        return list(self._targets)

    def resolve_language_code(self, locale: str) -> str:
        """
        Convert a locale (e.g. "pt_BR") to the translation service code (e.g. "pt").

        Unknown locales resolve to the default language code.
        """
        target = self._targets.get(locale)
        return target.language_code if target else self.default_language_code

    def display_name(self, locale: str) -> str:
        """Return the configured display name, or the locale itself when it is unknown."""
        target = self._targets.get(locale)
        if target and target.display_name:
            return target.display_name
        return locale


def build_locale_table(entries: Optional[List[Dict[str, Any]]] = None) -> LocaleTable:
    """
    Build the locale table from the `locales` section of the configuration.

    Args:
        entries: A list of ``{locale, language_code, name}`` dictionaries, or None
            to use the built-in locales.

    Returns:
        LocaleTable: The lookup table.

    Raises:
        ConfigurationError: If the entries do not match LOCALES_SCHEMA.
    """
    if not entries:
        return LocaleTable(DEFAULT_LOCALES)

    try:
        jsonschema.validate(instance=entries, schema=LOCALES_SCHEMA)
    except jsonschema.ValidationError as schema_exc:
        raise ConfigurationError(f"Invalid 'locales' configuration: {schema_exc.message}") from schema_exc

    return LocaleTable(
        LocaleTarget(entry['locale'], entry['language_code'], entry.get('name', entry['locale']))
        for entry in entries
    )
