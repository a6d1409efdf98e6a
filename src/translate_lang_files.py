import argparse
import asyncio
import os
import re
import sys
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from tqdm.asyncio import tqdm

from src.app_config import AppConfig, SUPPORTED_PROVIDERS, load_app_config
from src.batch_translator import RequestLimiter, SOURCE_LANGUAGE_AUTO, translate_entries
from src.errors import ArchiveError, ConfigurationError
from src.lang_file_parser import LineRecord, format_lang_output, has_entries, parse_lang_text
from src.locales import LocaleTable
from src.logging_config import get_logger
from src.translation_archive import ZipArchiveWriter, write_translation_archive
from src.translation_providers import TranslationProvider, create_provider

logger = get_logger(__name__)

STATUS_NO_ENTRIES = "No valid .lang entries found."
STATUS_NO_LOCALES = "Select at least one target locale."
STATUS_COMPLETE = "Translation complete."

LOCALE_ID_PATTERN = re.compile(r'^[A-Za-z]{2,3}(?:[_-][A-Za-z0-9]+)*$')


@dataclass(frozen=True)
class LocaleOutput:
    locale: str
    text: str


@dataclass
class TranslationRun:
    """
    The result of translating one source text into a set of locales.

    Each call to translate_locales returns its own run, so overlapping runs
    never share state.
    """
    source_text: str
    locales: List[str]
    outputs: List[LocaleOutput] = field(default_factory=list)
    status: str = ""

    @property
    def succeeded(self) -> bool:
        return bool(self.outputs)

    @property
    def preview(self) -> str:
        return build_preview(self.outputs)


def build_preview(outputs: Sequence[LocaleOutput]) -> str:
    """Concatenate the outputs under a `# <locale>` heading each, separated by a blank line."""
    return "\n\n".join(f"# {output.locale}\n{output.text}" for output in outputs)


async def _translate_locale(
        index: int,
        records: Sequence[LineRecord],
        locale: str,
        provider: TranslationProvider,
        locale_table: LocaleTable,
        limiter: Optional[RequestLimiter],
        source_lang: str,
        use_batching: bool
) -> Tuple[int, LocaleOutput]:
    translated_records = await translate_entries(
        records, locale, provider, locale_table, limiter, source_lang, use_batching
    )
    return index, LocaleOutput(locale=locale, text=format_lang_output(translated_records))


async def translate_locales(
        source_text: str,
        locales: Sequence[str],
        provider: TranslationProvider,
        locale_table: LocaleTable,
        limiter: Optional[RequestLimiter] = None,
        source_lang: str = SOURCE_LANGUAGE_AUTO,
        use_batching: bool = True,
        show_progress: bool = True
) -> TranslationRun:
    """
    Translate a .lang file into every requested locale.

    The locales are translated concurrently; the outputs keep the order of `locales`.

    Args:
        source_text (str): The content of the source .lang file.
        locales (Sequence[str]): The target locales, in selection order.
        provider (TranslationProvider): The translation service.
        locale_table (LocaleTable): Locale to language code lookup.
        limiter (Optional[RequestLimiter]): Throttle shared by all requests of the run.
        source_lang (str): The source language code.
        use_batching (bool): Whether to try a combined request per locale first.
        show_progress (bool): Whether to display a progress bar.

    Returns:
        TranslationRun: The outputs and a status message.
    """
    locales = list(locales)
    run = TranslationRun(source_text=source_text, locales=locales)
    logger.info("Parsing...")
    records = parse_lang_text(source_text)

    if not has_entries(records):
        run.status = STATUS_NO_ENTRIES
        logger.warning(run.status)
        return run

    if not locales:
        run.status = STATUS_NO_LOCALES
        logger.warning(run.status)
        return run

    for locale in locales:
        if locale not in locale_table:
            logger.warning("Locale '%s' is not configured; translating it to '%s'.",
                           locale, locale_table.default_language_code)

    tasks = [
        _translate_locale(index, records, locale, provider, locale_table, limiter, source_lang, use_batching)
        for index, locale in enumerate(locales)
    ]

    results = []
    total = len(tasks)
    for coro in tqdm.as_completed(tasks, total=total, desc="Translating locales", unit="locale",
                                  disable=not show_progress):
        index, output = await coro
        results.append((index, output))
        completed = len(results)
        logger.info("Translating %d/%d locales (%d%%)...", completed, total, round(completed / total * 100))

    results.sort(key=lambda x: x[0])
    run.outputs = [output for _, output in results]
    run.status = STATUS_COMPLETE
    logger.info(run.status)
    return run


def write_locale_files(outputs: Sequence[LocaleOutput], output_dir: str, extension: str = "lang") -> List[str]:
    """
    Write one `<locale>.<extension>` file per output into `output_dir`.

    Returns:
        List[str]: The paths of the written files.
    """
    os.makedirs(output_dir, exist_ok=True)
    written = []
    for output in outputs:
        path = os.path.join(output_dir, f"{output.locale}.{extension}")
        with open(path, 'w', encoding='utf-8', newline='') as file:
            file.write(output.text)
        logger.info("Translated file saved to '%s'.", path)
        written.append(path)
    return written


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Machine-translate a .lang resource file into one or more locales."
    )
    parser.add_argument("input", nargs="?",
                        help="Path to the source .lang file, or '-' to read it from stdin.")
    locale_group = parser.add_mutually_exclusive_group()
    locale_group.add_argument("-l", "--locales", nargs="+", default=[], metavar="LOCALE",
                              help="Target locales, e.g. de_DE fr_FR.")
    locale_group.add_argument("--all-locales", action="store_true",
                              help="Translate into every configured locale.")
    parser.add_argument("--list-locales", action="store_true",
                        help="Print the configured locales and exit.")
    parser.add_argument("-z", "--output-zip", metavar="PATH",
                        help="Write the translations and manifests into a zip archive.")
    parser.add_argument("-o", "--output-dir", metavar="DIR",
                        help="Write one file per locale into this directory.")
    parser.add_argument("--extension", default=None,
                        help="File extension of the translated files (default from config: lang).")
    parser.add_argument("--preview", action="store_true",
                        help="Print the translated files to stdout.")
    parser.add_argument("--no-batching", action="store_true",
                        help="Send one request per value instead of a combined request.")
    parser.add_argument("--provider", choices=SUPPORTED_PROVIDERS, default=None,
                        help="Translation service to use.")
    parser.add_argument("--no-progress", action="store_true",
                        help="Do not display the progress bar.")
    args = parser.parse_args(argv)
    # `-l de_DE fr_FR in.lang`: the locale list also takes the input path
    if args.input is None and args.locales and not LOCALE_ID_PATTERN.match(args.locales[-1]):
        args.input = args.locales.pop()
    return args


def _read_source(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    with open(path, 'r', encoding='utf-8', newline='') as file:
        return file.read()


async def run_translation(args: argparse.Namespace, config: AppConfig, source_text: str,
                          locales: Sequence[str]) -> int:
    """Translate, then write the preview, the locale files and the archive requested on the command line."""
    extension = args.extension or config.output_extension
    provider = create_provider(config)
    limiter = RequestLimiter(config.max_concurrent_api_calls, config.rate_limit, config.rate_period)
    logger.info("Using the '%s' translation provider.", provider.name)

    async with provider:
        run = await translate_locales(
            source_text,
            locales,
            provider,
            config.locale_table,
            limiter=limiter,
            source_lang=config.source_language,
            use_batching=config.use_batching and not args.no_batching,
            show_progress=not args.no_progress
        )

    if not run.succeeded:
        print(run.status, file=sys.stderr)
        return 1

    if args.preview or not (args.output_zip or args.output_dir):
        sys.stdout.write(run.preview + "\n")

    try:
        if args.output_dir:
            write_locale_files(run.outputs, args.output_dir, extension)
        if args.output_zip:
            with ZipArchiveWriter(args.output_zip) as writer:
                write_translation_archive(run.outputs, writer, config.locale_table, extension)
            logger.info("Zip written to '%s'.", args.output_zip)
    except ArchiveError as archive_exc:
        logger.error("%s", archive_exc)
        return 1
    except OSError as os_exc:
        logger.error("Could not write translated files: %s", os_exc)
        return 1

    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Command line entry point.

    Returns:
        int: The process exit status.
    """
    args = parse_args(argv)
    try:
        config = load_app_config(args.provider)
    except ConfigurationError as config_exc:
        print(f"Error: {config_exc}", file=sys.stderr)
        return 1

    if args.list_locales:
        for locale in config.locale_table.locales():
            target = config.locale_table.get(locale)
            print(f"{locale}\t{target.language_code}\t{target.display_name}")
        return 0

    if not args.input:
        print("Error: an input .lang file is required.", file=sys.stderr)
        return 1

    try:
        source_text = _read_source(args.input)
    except (OSError, UnicodeDecodeError) as read_exc:
        logger.error("Could not read input file '%s': %s", args.input, read_exc)
        return 1

    locales = config.locale_table.locales() if args.all_locales else list(dict.fromkeys(args.locales))

    try:
        return asyncio.run(run_translation(args, config, source_text, locales))
    except ConfigurationError as config_exc:
        logger.error("%s", config_exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
