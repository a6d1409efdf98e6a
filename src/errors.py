"""Exception types raised by the lang file translator."""


class LangTranslatorError(Exception):
    """Base class for all errors raised by this package."""


class TranslationError(LangTranslatorError):
    """A translation provider could not translate a piece of text."""


class ConfigurationError(LangTranslatorError):
    """The configuration file or environment is invalid."""


class ArchiveError(LangTranslatorError):
    """The translation archive could not be written."""
