"""Sample sources: reading and writing annotated name samples.

Two on-disk formats are supported:

-   **Inline markup**, one tokenized sentence per line, with names wrapped in
    `<START:type>` ... `<END>` tags (the type may be omitted as `<START>`). A
    blank line separates documents; the first sentence after it is flagged
    with `clear_adaptive_data`. `NameSampleDataStream` reads this format
    lazily and can be rewound with `reset`.
-   **JSON**, with the sample list stored under a "samples" key, handled by
    `load_samples` and `save_samples`.
"""
from __future__ import annotations
import json
import re
from pathlib import Path
from typing import IO, Iterator, List, Optional, Sequence, Union

from .errors import SourceReadError
from .types import NameSample, Span

__all__ = [
    "parse_name_sample",
    "format_name_sample",
    "NameSampleDataStream",
    "load_samples",
    "save_samples",
]

_START_TAG = re.compile(r"^<START(?::([^>]+))?>$")
_END_TAG = "<END>"


def parse_name_sample(line: str, clear_adaptive_data: bool = False) -> NameSample:
    """
    Parses one line of inline name markup.

    Raises:
        ValueError: If tags are nested, unbalanced or enclose no tokens.
    """
    tokens: List[str] = []
    names: List[Span] = []
    start: Optional[int] = None
    name_type: Optional[str] = None

    for part in line.split():
        match = _START_TAG.match(part)
        if match:
            if start is not None:
                raise ValueError(f"Nested <START> tag before token {len(tokens)}.")
            start, name_type = len(tokens), match.group(1)
        elif part == _END_TAG:
            if start is None:
                raise ValueError(f"<END> tag without <START> at token {len(tokens)}.")
            if start == len(tokens):
                raise ValueError(f"Empty name at token {start}.")
            names.append(Span(start, len(tokens), name_type))
            start, name_type = None, None
        elif part.startswith(("<START", "<END")):
            raise ValueError(f"Malformed tag {part!r} at token {len(tokens)}.")
        else:
            tokens.append(part)

    if start is not None:
        raise ValueError(f"Unclosed <START> tag at token {start}.")
    return NameSample(tuple(tokens), tuple(names), None, clear_adaptive_data)


def format_name_sample(sample: NameSample) -> str:
    """Renders a sample back into inline markup."""
    starts = {span.start: span for span in sample.names}
    ends = {span.end for span in sample.names}
    parts: List[str] = []
    for i, token in enumerate(sample.tokens):
        if i in ends:
            parts.append(_END_TAG)
        if i in starts:
            t = starts[i].type
            parts.append(f"<START:{t}>" if t else "<START>")
        parts.append(token)
    if len(sample.tokens) in ends:
        parts.append(_END_TAG)
    return " ".join(parts)


class NameSampleDataStream:
    """
    Lazily reads name samples from an inline-markup file.

    The file is opened on first iteration and closed when it is exhausted,
    on `close`, or when a `with` block exits. `reset` rewinds to the first
    sample.

    Args:
        path: The file to read.
        encoding: The file's text encoding.

    Raises:
        SourceReadError: While iterating, if the file cannot be opened or a
            line holds malformed markup. The message names the file and line.
    """

    def __init__(self, path: Union[str, Path], encoding: str = "utf-8"):
        self.path = Path(path)
        self.encoding = encoding
        self._handle: Optional[IO[str]] = None

    def _open(self) -> IO[str]:
        if self._handle is None:
            try:
                self._handle = open(self.path, "r", encoding=self.encoding)
            except OSError as e:
                raise SourceReadError(f"Cannot open sample file {self.path}: {e}") from e
        return self._handle

    def __iter__(self) -> Iterator[NameSample]:
        handle = self._open()
        clear = False
        line_no = 0
        try:
            for line_no, line in enumerate(handle, start=1):
                if not line.strip():
                    clear = True
                    continue
                try:
                    sample = parse_name_sample(line, clear_adaptive_data=clear)
                except ValueError as e:
                    raise SourceReadError(f"{self.path}:{line_no}: {e}") from e
                clear = False
                yield sample
        except UnicodeDecodeError as e:
            self.close()
            # decoding reads ahead in chunks; the reported line is a lower bound
            raise SourceReadError(f"{self.path}:{line_no + 1}: {e}") from e
        self.close()

    def reset(self) -> None:
        if self._handle is not None:
            self._handle.seek(0)

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def __enter__(self) -> "NameSampleDataStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def _sample_from_dict(item: dict) -> NameSample:
    names = [Span(n["start"], n["end"], n.get("type")) for n in item.get("names", [])]
    context = item.get("additional_context")
    if context is not None:
        if not isinstance(context, list) or not all(
            isinstance(row, list) and all(isinstance(v, str) for v in row) for row in context
        ):
            raise TypeError("'additional_context' must be a list of string lists.")
    return NameSample(
        tokens=tuple(item["tokens"]),
        names=tuple(names),
        additional_context=context,
        clear_adaptive_data=bool(item.get("clear_adaptive_data", False)),
    )


def load_samples(path: str) -> List[NameSample]:
    """
    Loads a list of NameSample objects from a JSON file.

    Each entry under the "samples" key needs a "tokens" list and may carry
    "names" (objects with "start", "end" and an optional "type"),
    "additional_context" and "clear_adaptive_data".

    Raises:
        FileNotFoundError: If the file at the specified path does not exist.
        ValueError: If the file is not valid JSON.
        TypeError: If the JSON structure is incorrect.
        InvalidSpanError: If a name has inconsistent bounds.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise FileNotFoundError(f"Sample file not found at: {path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Error decoding JSON from {path}: {e}")

    items = data.get("samples") if isinstance(data, dict) else None
    if not isinstance(items, list):
        raise TypeError(f"Expected a 'samples' key with a list of objects in {path}")

    out = []
    for i, item in enumerate(items):
        if not isinstance(item, dict) or not isinstance(item.get("tokens"), list):
            raise TypeError(f"Sample at index {i} in {path} needs a 'tokens' list.")
        try:
            out.append(_sample_from_dict(item))
        except (KeyError, TypeError) as e:
            raise TypeError(f"Malformed sample {i} in {path}: {e}")
    return out


def save_samples(path: str, samples: Sequence[NameSample]) -> None:
    """Saves samples to a JSON file in the layout read by `load_samples`."""
    items = []
    for sample in samples:
        item = {
            "tokens": list(sample.tokens),
            "names": [{"start": n.start, "end": n.end, "type": n.type} for n in sample.names],
            "clear_adaptive_data": sample.clear_adaptive_data,
        }
        if sample.additional_context is not None:
            item["additional_context"] = [list(row) for row in sample.additional_context]
        items.append(item)

    with open(path, "w", encoding="utf-8") as f:
        json.dump({"samples": items}, f, ensure_ascii=False, indent=2)
