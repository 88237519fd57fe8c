"""
OPTION=value configuration file parser for kvconfig.

This module scans a configuration file line by line, classifies each line as a
comment, blank, ``key=value`` entry or malformed, and hands every entry to the
coercion engine, which writes the converted value into the slot the option was
declared with. Problems with individual lines never abort the scan; they are
collected as diagnostics and, in verbose mode, passed to a reporter.
"""

import os
import re
import sys
import logging
from enum import Enum
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from .coercion import coerce_value
from ..errors import CoercionError, FileOpenError
from ..models.options import OptionRegistry, canonical_name
from ..tools.discovery import find_config_file


logger = logging.getLogger(__name__)

COMMENT_RE = re.compile(r'^\s*#')
NONBLANK_RE = re.compile(r'\S')
OPTION_RE = re.compile(r'^\s*([^:=]+)=(.*)$')

PathLike = Union[str, os.PathLike]


class LineKind(Enum):
    """Classification of a single configuration file line."""
    COMMENT = "comment"
    BLANK = "blank"
    ENTRY = "entry"
    MALFORMED = "malformed"


class DiagnosticKind(Enum):
    """Non-fatal problems found while scanning a file."""
    MALFORMED_LINE = "malformed_line"
    UNRECOGNIZED_OPTION = "unrecognized_option"
    COERCION_FAILURE = "coercion_failure"


@dataclass
class ParsedLine:
    """A classified line; ``key`` and ``value`` are only set for entries."""
    kind: LineKind
    key: Optional[str] = None
    value: Optional[str] = None


@dataclass
class Diagnostic:
    """
    A non-fatal problem with one line of a configuration file.

    Attributes:
        kind: What went wrong
        line_number: 1-based line number in the file
        line: The offending line, without its line terminator
        message: Human-readable description
    """
    kind: DiagnosticKind
    line_number: int
    line: str
    message: str

    def __str__(self) -> str:
        return f"line {self.line_number}: {self.message}"


Reporter = Callable[[Diagnostic], None]


@dataclass
class ConfigParseResult:
    """
    Result of a configure operation.

    Attributes:
        config_path: The configuration file that was read
        assignments: Canonical option name to the value written, last write wins
        diagnostics: Non-fatal problems, in file order
        lines_read: Number of physical lines scanned
    """
    config_path: Path
    assignments: Dict[str, Any] = field(default_factory=dict)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    lines_read: int = 0

    @property
    def has_diagnostics(self) -> bool:
        return bool(self.diagnostics)

    def diagnostics_of(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.kind is kind]


def stderr_reporter(diagnostic: Diagnostic) -> None:
    """Default verbose reporter: one line per diagnostic on stderr."""
    print(diagnostic.message, file=sys.stderr)


def make_logging_reporter(log: Optional[logging.Logger] = None, level: int = logging.WARNING) -> Reporter:
    """Build a reporter that sends diagnostics to a logger instead of stderr."""
    target = log or logger

    def report(diagnostic: Diagnostic) -> None:
        target.log(level, str(diagnostic))

    return report


def classify_line(line: str) -> ParsedLine:
    """
    Classify one line of a configuration file.

    Comments win over everything else, so ``# a=b`` is a comment. An entry's
    key is everything before the first ``=`` and may not contain ``:``; the
    value is the rest of the line, untouched. The key is returned as written,
    but lookups strip it, so ``port = 80`` matches option ``PORT``. Plain
    OPTION=value readers that keep the trailing space treat that line as an
    unknown option ``"PORT "``.
    """
    if COMMENT_RE.match(line):
        return ParsedLine(LineKind.COMMENT)
    if not NONBLANK_RE.search(line):
        return ParsedLine(LineKind.BLANK)

    match = OPTION_RE.match(line)
    if match is None:
        return ParsedLine(LineKind.MALFORMED)
    return ParsedLine(LineKind.ENTRY, key=match.group(1), value=match.group(2))


class ConfigParser:
    """
    Loads OPTION=value files into the slots of an option registry.

    The parser reads the first existing file from a list of candidates. Only
    file discovery and file open errors are raised; malformed lines, unknown
    options and values that fail to coerce are recorded as diagnostics and
    skipped, leaving the affected slot at its previous value. Lines holding
    bytes that are not valid UTF-8 are reported as malformed.

    Keys are matched after stripping surrounding whitespace and upper-casing,
    so ``Port = 80`` sets option ``PORT``.
    """

    def __init__(self, registry: OptionRegistry, verbose: bool = False, reporter: Optional[Reporter] = None):
        """
        Initialize the parser.

        Args:
            registry: Declared options to populate
            verbose: If True, pass each diagnostic to the reporter
            reporter: Callable receiving diagnostics; defaults to stderr_reporter
        """
        self.registry = registry
        self.verbose = verbose
        self.reporter = reporter or stderr_reporter
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def configure(self, candidates: Union[PathLike, Iterable[PathLike]]) -> ConfigParseResult:
        """
        Read the first existing candidate file and populate declared options.

        Args:
            candidates: A path, or an ordered iterable of paths

        Returns:
            ConfigParseResult describing what was read and assigned

        Raises:
            NoConfigFileFoundError: If no candidate exists
            FileOpenError: If the selected file cannot be opened or read
        """
        config_path = find_config_file(candidates)
        result = self._scan(config_path, write=True)
        self.logger.info(
            f"Configuration loaded from {config_path}: "
            f"{len(result.assignments)} option(s) set, {len(result.diagnostics)} problem(s)"
        )
        return result

    def validate_config_file(self, config_path: PathLike) -> List[Diagnostic]:
        """
        Check a file against the registry without writing any slot.

        Args:
            config_path: Path to the configuration file

        Returns:
            Diagnostics found in the file (empty if every line is usable)

        Raises:
            NoConfigFileFoundError: If the file does not exist
            FileOpenError: If the file cannot be opened or read
        """
        path = find_config_file([config_path])
        return self._scan(path, write=False).diagnostics

    def _scan(self, config_path: Path, write: bool) -> ConfigParseResult:
        result = ConfigParseResult(config_path=config_path)
        lines = self._read_lines(config_path)
        result.lines_read = len(lines)

        for line_number, line in enumerate(lines, start=1):
            parsed = classify_line(line)

            if parsed.kind in (LineKind.COMMENT, LineKind.BLANK):
                continue

            if _has_undecodable_bytes(line):
                shown = _displayable(line)
                self._diagnose(result, DiagnosticKind.MALFORMED_LINE, line_number, shown,
                               f'ignoring line with invalid UTF-8: "{shown}"')
                continue

            if parsed.kind is LineKind.MALFORMED:
                self._diagnose(result, DiagnosticKind.MALFORMED_LINE, line_number, line,
                               f'ignoring malformed line: "{line}"')
                continue

            self._set_option(result, parsed.key, parsed.value, line_number, line, write)

        return result

    def _set_option(self, result: ConfigParseResult, key: str, raw: str,
                    line_number: int, line: str, write: bool) -> None:
        uname = canonical_name(key)
        declaration = self.registry.get(uname)
        if declaration is None:
            self._diagnose(result, DiagnosticKind.UNRECOGNIZED_OPTION, line_number, line,
                           f'unrecognized option "{uname}"')
            return

        try:
            value = coerce_value(declaration, raw)
        except CoercionError as e:
            self._diagnose(result, DiagnosticKind.COERCION_FAILURE, line_number, line,
                           f"{declaration.name}: {e}")
            return

        if write:
            declaration.target.set(value)
            self.logger.debug(f"Set {declaration.name} = {value!r} (line {line_number})")
        result.assignments.pop(declaration.name, None)
        result.assignments[declaration.name] = value

    def _diagnose(self, result: ConfigParseResult, kind: DiagnosticKind,
                  line_number: int, line: str, message: str) -> None:
        diagnostic = Diagnostic(kind=kind, line_number=line_number, line=line, message=message)
        result.diagnostics.append(diagnostic)
        self.logger.debug(f"{result.config_path}: {diagnostic}")
        if self.verbose:
            self.reporter(diagnostic)

    def _read_lines(self, config_path: Path) -> List[str]:
        """
        Read every line of the file with its terminator removed.

        Bytes that are not valid UTF-8 are kept as surrogate escapes so only
        the lines containing them are affected.

        Raises:
            FileOpenError: If the file cannot be opened or read
        """
        try:
            with open(config_path, 'r', encoding='utf-8', errors='surrogateescape', newline='\n') as f:
                lines = list(f)
        except OSError as e:
            raise FileOpenError(config_path, e.strerror or str(e)) from e

        return [_strip_terminator(line) for line in lines]


def _strip_terminator(line: str) -> str:
    if line.endswith('\n'):
        line = line[:-1]
    if line.endswith('\r'):
        line = line[:-1]
    return line


def _has_undecodable_bytes(line: str) -> bool:
    return any('\udc80' <= ch <= '\udcff' for ch in line)


def _displayable(line: str) -> str:
    return line.encode('utf-8', 'surrogateescape').decode('utf-8', 'replace')


def configure(registry: OptionRegistry, candidates: Union[PathLike, Iterable[PathLike]],
              verbose: bool = False, reporter: Optional[Reporter] = None) -> ConfigParseResult:
    """
    Convenience function to populate a registry from the first existing file.

    Args:
        registry: Declared options to populate
        candidates: A path, or an ordered iterable of paths
        verbose: Whether to report non-fatal problems
        reporter: Where verbose diagnostics go (stderr by default)

    Returns:
        ConfigParseResult describing what was read and assigned

    Raises:
        NoConfigFileFoundError: If no candidate exists
        FileOpenError: If the selected file cannot be opened or read
    """
    parser = ConfigParser(registry, verbose=verbose, reporter=reporter)
    return parser.configure(candidates)


def validate_config_file(registry: OptionRegistry, config_path: PathLike) -> List[Diagnostic]:
    """
    Convenience function to check a file without touching any slot.

    Args:
        registry: Declared options to check against
        config_path: Path to the configuration file

    Returns:
        Diagnostics found in the file (empty if every line is usable)
    """
    parser = ConfigParser(registry)
    return parser.validate_config_file(config_path)
