import re
from dataclasses import dataclass
from typing import List, Sequence, Union

# Lines are split on LF with an optional preceding CR, so CRLF files are
# normalized to LF when they are formatted again.
LINE_SPLIT_PATTERN = re.compile(r'\r?\n')
VALUE_PATTERN = re.compile(r'^(\s*)(.*?)(\s*)$', re.DOTALL)
COMMENT_PREFIXES = ('#', ';')
# utf-8 decoding keeps the byte order mark at the start of files saved with one.
BYTE_ORDER_MARK = '\ufeff'


@dataclass(frozen=True)
class RawLine:
    """A comment, blank or malformed line kept exactly as it was read."""
    text: str


@dataclass(frozen=True)
class EntryLine:
    """
    A ``key=value`` line split at the first ``=``.

    ``key_part`` is the untouched text before the separator. The value is split
    into the whitespace before it (``leading``), the translatable text
    (``core``) and the whitespace after it (``trailing``).
    """
    key_part: str
    leading: str
    core: str
    trailing: str

    @property
    def key(self) -> str:
        return _strip_line(self.key_part)

    def render(self) -> str:
        return f"{self.key_part}={self.leading}{self.core}{self.trailing}"


LineRecord = Union[RawLine, EntryLine]


def _strip_line(text: str) -> str:
    return text.strip().lstrip(BYTE_ORDER_MARK).lstrip()


def _parse_line(line: str) -> LineRecord:
    stripped_line = _strip_line(line)
    if not stripped_line or stripped_line.startswith(COMMENT_PREFIXES):
        return RawLine(line)

    sep_index = line.find('=')
    if sep_index == -1:
        return RawLine(line)

    key_part = line[:sep_index]
    if not _strip_line(key_part):
        return RawLine(line)

    value_part = line[sep_index + 1:]
    match = VALUE_PATTERN.match(value_part)
    leading, core, trailing = match.groups()
    return EntryLine(key_part=key_part, leading=leading, core=core, trailing=trailing)


def parse_lang_text(text: str) -> List[LineRecord]:
    """
    Parse the content of a .lang file.

    Args:
        text (str): The file content.

    Returns:
        List[LineRecord]: One record per line, in file order.
    """
    return [_parse_line(line) for line in LINE_SPLIT_PATTERN.split(text)]


def parse_lang_file(file_path: str) -> List[LineRecord]:
    """
    Parse a .lang file from disk.

    Args:
        file_path (str): The path to the UTF-8 encoded .lang file.

    Returns:
        List[LineRecord]: The parsed lines.
    """
    with open(file_path, 'r', encoding='utf-8', newline='') as file:
        return parse_lang_text(file.read())


def format_lang_output(records: Sequence[LineRecord]) -> str:
    """
    Reassemble file content from parsed lines.

    Args:
        records (Sequence[LineRecord]): The parsed (and possibly translated) lines.

    Returns:
        str: The file content, lines joined with a single newline.
    """
    lines = []
    for record in records:
        if isinstance(record, EntryLine):
            lines.append(record.render())
        else:
            lines.append(record.text)
    return '\n'.join(lines)


def has_entries(records: Sequence[LineRecord]) -> bool:
    return any(isinstance(record, EntryLine) for record in records)
