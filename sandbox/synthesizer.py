"""
Synthesis of runnable host scripts from caller-supplied code fragments.

A fragment is a block of statements meant to run as a function body. It is
turned into a complete script in three passes: ``print`` calls are redirected
to an output-capturing function, leading spaces are converted to tabs, and the
result is indented into ``UNIT_TEMPLATE``.
"""

from __future__ import annotations

from dataclasses import dataclass

CAPTURE_FUNCTION = "_capture_output"
DEFAULT_INDENT_WIDTH = 4

_QUOTES = "\"'"
_STRING_PREFIX_CHARS = set("rRbBuUfF")
_OPENERS = "([{"
_CLOSERS = ")]}"


def _is_name_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _skip_string(text: str, index: int) -> int:
    """Return the index just past the string literal opening at ``index``."""
    quote = text[index]
    delimiter = quote * 3 if text.startswith(quote * 3, index) else quote
    i = index + len(delimiter)
    while i < len(text):
        ch = text[i]
        if ch == "\\":
            i += 2
            continue
        if text.startswith(delimiter, i):
            return i + len(delimiter)
        if ch == "\n" and len(delimiter) == 1:
            return i
        i += 1
    return len(text)


def _skip_comment(text: str, index: int) -> int:
    end = text.find("\n", index)
    return len(text) if end == -1 else end


def find_call_end(text: str, open_index: int) -> int | None:
    """Return the index of the ``)`` balancing the ``(`` at ``open_index``.

    Brackets inside string literals and comments are ignored. Returns None when
    the call is never closed or is closed by the wrong kind of bracket.
    """
    depth = 0
    i = open_index
    while i < len(text):
        ch = text[i]
        if ch in _QUOTES:
            i = _skip_string(text, i)
            continue
        if ch == "#":
            i = _skip_comment(text, i)
            continue
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth -= 1
            if depth == 0:
                return i if ch == ")" else None
        i += 1
    return None


def _is_call_site(text: str, start: int) -> bool:
    """True unless the name at ``start`` is an attribute or a def/class name."""
    k = start - 1
    while k >= 0 and text[k] in " \t":
        k -= 1
    if k >= 0 and text[k] == ".":
        return False
    word_end = k + 1
    while k >= 0 and _is_name_char(text[k]):
        k -= 1
    return text[k + 1:word_end] not in ("def", "class")


def rewrite_print_calls(fragment: str) -> str:
    """Redirect every ``print(...)`` call in ``fragment`` to ``_capture_output``."""
    out: list[str] = []
    i = 0
    n = len(fragment)
    while i < n:
        ch = fragment[i]
        if ch in _QUOTES:
            end = _skip_string(fragment, i)
            out.append(fragment[i:end])
            i = end
            continue
        if ch == "#":
            end = _skip_comment(fragment, i)
            out.append(fragment[i:end])
            i = end
            continue
        if not (ch.isalpha() or ch == "_"):
            out.append(ch)
            i += 1
            continue

        j = i
        while j < n and _is_name_char(fragment[j]):
            j += 1
        word = fragment[i:j]

        # String prefixes such as f"..." or rb'...'
        if j < n and fragment[j] in _QUOTES and len(word) <= 2 and set(word) <= _STRING_PREFIX_CHARS:
            end = _skip_string(fragment, j)
            out.append(fragment[i:end])
            i = end
            continue

        if word == "print" and _is_call_site(fragment, i):
            open_index = j
            while open_index < n and fragment[open_index] in " \t":
                open_index += 1
            if open_index < n and fragment[open_index] == "(":
                close_index = find_call_end(fragment, open_index)
                if close_index is not None:
                    arguments = rewrite_print_calls(fragment[open_index + 1:close_index])
                    out.append(f"{CAPTURE_FUNCTION}({arguments})")
                    i = close_index + 1
                    continue

        out.append(word)
        i = j
    return "".join(out)


def _string_spans(text: str) -> list[tuple[int, int]]:
    """Return ``(start, end)`` offsets of every string literal outside comments."""
    spans: list[tuple[int, int]] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch in _QUOTES:
            end = _skip_string(text, i)
            spans.append((i, end))
            i = end
        elif ch == "#":
            i = _skip_comment(text, i)
        else:
            i += 1
    return spans


def split_source_lines(text: str) -> list[tuple[str, bool]]:
    """Split ``text`` on newlines, flagging lines that start inside a string literal.

    Flagged lines are data, not code, and must be kept byte for byte.
    """
    spans = _string_spans(text)
    lines: list[tuple[str, bool]] = []
    offset = 0
    k = 0
    for line in text.split("\n"):
        while k < len(spans) and spans[k][1] <= offset:
            k += 1
        lines.append((line, k < len(spans) and spans[k][0] < offset))
        offset += len(line) + 1
    return lines


def _leading(line: str) -> str:
    return line[:len(line) - len(line.lstrip(" \t"))]


def normalize_indentation(fragment: str, indent_width: int = DEFAULT_INDENT_WIDTH) -> str:
    """Replace each run of ``indent_width`` leading spaces with a tab, line by line.

    Lines inside multi-line string literals are left alone. If any code line
    is indented by a run of spaces that is not a multiple of ``indent_width``,
    the fragment is returned unchanged: converting only part of such an
    indent would mix tabs and spaces within one block.
    """
    if indent_width < 1:
        raise ValueError("indent_width must be at least 1")
    lines = split_source_lines(fragment)
    for line, in_string in lines:
        if in_string or not line.strip():
            continue
        if any(len(run) % indent_width for run in _leading(line).split("\t")):
            return fragment

    spaces = " " * indent_width
    converted: list[str] = []
    for line, in_string in lines:
        if in_string:
            converted.append(line)
            continue
        leading = _leading(line)
        converted.append(leading.replace(spaces, "\t") + line[len(leading):])
    return "\n".join(converted)


_UNIT_TEMPLATE_SOURCE = '''\
OK = 0
FAILED = 1

result = None
output_lines = []
error_message = ""


def _capture_output(*args, sep=" ", end="\\n", file=None, flush=False):
    if sep is None:
        sep = " "
    if end is None:
        end = "\\n"
    if file is None:
        output_lines.append(sep.join(str(arg) for arg in args))
    print(*args, sep=sep, end=end, file=file, flush=flush)


async def _run_fragment(node):
    global result
{body}
    return OK


async def _ready(node):
    global error_message
    try:
        status = await _run_fragment(node)
    except Exception as exc:
        error_message = "%s: %s" % (exc.__class__.__name__, exc)
        return
    if status is not None and status != OK:
        error_message = "Script returned error status %s" % (status,)
'''

UNIT_TEMPLATE = normalize_indentation(_UNIT_TEMPLATE_SOURCE)
BODY_START_LINE = UNIT_TEMPLATE.split("{body}")[0].count("\n") + 1


@dataclass(frozen=True)
class SynthesizedUnit:
    source: str
    fragment: str
    body_start_line: int
    body_line_count: int

    def fragment_line(self, unit_line: int | None) -> int | None:
        """Map a line of ``source`` back to the fragment, if it lies inside it."""
        if unit_line is None:
            return None
        offset = unit_line - self.body_start_line
        if 0 <= offset < self.body_line_count:
            return offset + 1
        return None


def synthesize(fragment: str, indent_width: int = DEFAULT_INDENT_WIDTH) -> SynthesizedUnit:
    """Build a complete host script around ``fragment``."""
    text = normalize_indentation(rewrite_print_calls(fragment), indent_width)
    lines = split_source_lines(text)
    if text.endswith("\n"):
        lines.pop()
    body_lines: list[str] = []
    for line, in_string in lines:
        if in_string:
            body_lines.append(line)
        else:
            body_lines.append("\t" + line if line.strip() else "")
    return SynthesizedUnit(
        source=UNIT_TEMPLATE.format(body="\n".join(body_lines)),
        fragment=fragment,
        body_start_line=BODY_START_LINE,
        body_line_count=len(body_lines),
    )
