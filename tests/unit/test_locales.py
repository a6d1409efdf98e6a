import unittest

from src.errors import ConfigurationError
from src.locales import DEFAULT_LOCALES, LocaleTable, LocaleTarget, build_locale_table


class TestLocaleTable(unittest.TestCase):

    def setUp(self):
        self.table = build_locale_table()

    def test_default_table_has_builtin_locales_in_order(self):
        self.assertEqual(len(self.table), len(DEFAULT_LOCALES))
        self.assertEqual(self.table.locales()[:3], ["en_US", "en_GB", "de_DE"])
        self.assertEqual(self.table.locales()[-1], "uk_UA")

    def test_resolve_language_code(self):
        self.assertEqual(self.table.resolve_language_code("pt_BR"), "pt")
        self.assertEqual(self.table.resolve_language_code("zh_TW"), "zh-TW")
        self.assertEqual(self.table.resolve_language_code("nb_NO"), "no")

    def test_unknown_locale_falls_back_to_default_code(self):
        self.assertEqual(self.table.resolve_language_code("xx_YY"), "en")
        self.assertNotIn("xx_YY", self.table)

    def test_display_name_falls_back_to_locale(self):
        self.assertEqual(self.table.display_name("ja_JP"), "日本語 (日本)")
        self.assertEqual(self.table.display_name("xx_YY"), "xx_YY")

    def test_custom_default_code(self):
        table = LocaleTable([LocaleTarget("de_AT", "de", "Deutsch (Österreich)")], default_language_code="fr")
        self.assertEqual(table.resolve_language_code("it_IT"), "fr")


class TestBuildLocaleTable(unittest.TestCase):

    def test_entries_from_configuration(self):
        table = build_locale_table([
            {"locale": "de_AT", "language_code": "de", "name": "Deutsch (Österreich)"},
            {"locale": "pirate", "language_code": "en"},
        ])
        self.assertEqual(table.locales(), ["de_AT", "pirate"])
        self.assertEqual(table.display_name("de_AT"), "Deutsch (Österreich)")
        self.assertEqual(table.display_name("pirate"), "pirate")

    def test_invalid_entries_raise(self):
        with self.assertRaises(ConfigurationError):
            build_locale_table([{"locale": "de_DE"}])
        with self.assertRaises(ConfigurationError):
            build_locale_table([{"locale": "de_DE", "language_code": "german-long"}])


if __name__ == '__main__':
    unittest.main()
