"""Packaging of translated locale files into a downloadable archive."""
import json
import zipfile
from typing import Dict, Iterable, List, Sequence

from src.errors import ArchiveError
from src.locales import LocaleTable
from src.logging_config import get_logger

logger = get_logger(__name__)

LANGUAGES_MANIFEST = "languages.json"
LANGUAGE_NAMES_MANIFEST = "language_names.json"


class ArchiveWriter:
    """Destination for the files of a translation archive."""

    def add_file(self, name: str, text: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        return None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class ZipArchiveWriter(ArchiveWriter):
    """Writes archive members into a deflate-compressed zip file."""

    def __init__(self, path: str):
        self.path = path
        try:
            self._zip = zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED)
        except OSError as exc:
            raise ArchiveError(f"Could not create archive '{path}': {exc}") from exc

    def add_file(self, name: str, text: str) -> None:
        self._zip.writestr(name, text.encode("utf-8"))

    def close(self) -> None:
        self._zip.close()


def build_manifests(locales: Sequence[str], locale_table: LocaleTable) -> Dict[str, str]:
    """
    Build the two JSON manifests stored next to the locale files.

    `languages.json` lists the locales in selection order; `language_names.json`
    pairs each locale with its display name, or the locale itself when unknown.
    """
    names: List[List[str]] = [[locale, locale_table.display_name(locale)] for locale in locales]
    return {
        LANGUAGES_MANIFEST: json.dumps(list(locales), indent=4, ensure_ascii=False),
        LANGUAGE_NAMES_MANIFEST: json.dumps(names, indent=4, ensure_ascii=False),
    }


def write_translation_archive(
        outputs: Iterable,
        writer: ArchiveWriter,
        locale_table: LocaleTable,
        extension: str = "lang"
) -> List[str]:
    """
    Write one `<locale>.<extension>` member per translated locale plus the manifests.

    Args:
        outputs (Iterable[LocaleOutput]): The translated files, in selection order.
        writer (ArchiveWriter): The archive destination.
        locale_table (LocaleTable): Used for the display names manifest.
        extension (str): File extension of the locale files.

    Returns:
        List[str]: The names of the archive members, in write order.

    Raises:
        ArchiveError: If there is nothing to archive.
    """
    outputs = list(outputs)
    if not outputs:
        raise ArchiveError("Translate something first to download.")

    members = []
    for output in outputs:
        name = f"{output.locale}.{extension}"
        writer.add_file(name, output.text)
        members.append(name)

    for name, content in build_manifests([output.locale for output in outputs], locale_table).items():
        writer.add_file(name, content)
        members.append(name)

    logger.info("Archived %d locale file(s).", len(outputs))
    return members
