"""
Unit tests for the configuration file parser.

Tests line classification, file discovery, coercion write-back, diagnostics
and error handling of the ConfigParser class.
"""

import os
import shutil
import logging
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

from kvconfig.config.parser import (
    ConfigParser,
    ConfigParseResult,
    Diagnostic,
    DiagnosticKind,
    LineKind,
    classify_line,
    configure,
    validate_config_file,
    stderr_reporter,
    make_logging_reporter
)
from kvconfig.errors import NoConfigFileFoundError, FileOpenError, ConfigurationError
from kvconfig.models.options import OptionFlag, OptionRegistry, Slot


EXAMPLE_CONF = """\
# Example configuration
integer_value = 17
INTEGER_VALUE=17
plural_noun=   Python programmers
true_or_false=no

verb=  eat
real_valued_quantity=3.5
mass_noun= tons of spam
"""


class TestClassifyLine:
    """Test cases for classify_line."""

    @pytest.mark.parametrize("line", ["# comment", "   # indented", "\t#", "#a=b", "  # x=1"])
    def test_comments(self, line):
        """Test comment lines, including ones that look like entries."""
        assert classify_line(line).kind is LineKind.COMMENT

    @pytest.mark.parametrize("line", ["", "   ", "\t \t"])
    def test_blank(self, line):
        """Test lines with only whitespace."""
        assert classify_line(line).kind is LineKind.BLANK

    def test_entry(self):
        """Test a simple key=value line."""
        parsed = classify_line("verb=swallow")
        assert parsed.kind is LineKind.ENTRY
        assert parsed.key == "verb"
        assert parsed.value == "swallow"

    def test_entry_leading_whitespace(self):
        """Test leading whitespace before the key is dropped."""
        parsed = classify_line("   verb=swallow")
        assert parsed.key == "verb"

    def test_value_may_contain_equals(self):
        """Test only the first '=' separates key from value."""
        parsed = classify_line("url=http://host/?a=b")
        assert parsed.kind is LineKind.ENTRY
        assert parsed.key == "url"
        assert parsed.value == "http://host/?a=b"

    def test_value_kept_unprocessed(self):
        """Test the value is not trimmed."""
        parsed = classify_line("name=  spaced out  ")
        assert parsed.value == "  spaced out  "

    def test_empty_value(self):
        """Test an entry with an empty value."""
        parsed = classify_line("name=")
        assert parsed.kind is LineKind.ENTRY
        assert parsed.value == ""

    @pytest.mark.parametrize("line", ["no separator here", "host:port=80", "=value", ":=x", "key: value"])
    def test_malformed(self, line):
        """Test lines that do not match the entry grammar."""
        assert classify_line(line).kind is LineKind.MALFORMED


class TestConfigParser:
    """Test cases for ConfigParser."""

    def setup_method(self):
        """Set up a temporary directory and a registry with example options."""
        self.temp_dir = tempfile.mkdtemp()
        self.root = Path(self.temp_dir)

        self.registry = OptionRegistry()
        self.number = Slot(4)
        self.pl_noun = Slot("Go programmers")
        self.t_or_f = Slot(True)
        self.verb = Slot("swallow")
        self.amt = Slot(12.6)
        self.mass_noun = Slot("kilograms of seawater")

        self.registry.add_int(self.number, "integer_value", OptionFlag.NONE)
        self.registry.add_string(self.pl_noun, "plural_noun", OptionFlag.STRIP)
        self.registry.add_bool(self.t_or_f, "true_or_false")
        self.registry.add_string(self.verb, "verb", OptionFlag.STRIP)
        self.registry.add_float(self.amt, "real_valued_quantity", OptionFlag.NONE)
        self.registry.add_string(self.mass_noun, "mass_noun", OptionFlag.STRIP)

    def teardown_method(self):
        """Clean up temporary files."""
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def _write(self, name, content):
        path = self.root / name
        path.write_text(content, encoding='utf-8')
        return path

    def test_init_defaults(self):
        """Test default initialization."""
        parser = ConfigParser(self.registry)
        assert parser.registry is self.registry
        assert parser.verbose is False
        assert parser.reporter is stderr_reporter

    def test_configure_example_file(self):
        """Test loading a complete well-formed file."""
        path = self._write("example.conf", EXAMPLE_CONF)

        result = ConfigParser(self.registry).configure([path])

        assert isinstance(result, ConfigParseResult)
        assert result.config_path == path
        assert result.lines_read == 9
        assert self.number.value == 17
        assert self.pl_noun.value == "Python programmers"
        assert self.t_or_f.value is False
        assert self.verb.value == "eat"
        assert self.amt.value == pytest.approx(3.5)
        assert self.mass_noun.value == "tons of spam"

    def test_key_whitespace_is_ignored(self):
        """Test spaces around the key do not prevent a match."""
        path = self._write("spaced.conf", "  integer_value   =  9\n")
        result = configure(self.registry, path)

        assert self.number.value == 9
        assert not result.has_diagnostics

    def test_integer_round_trip(self):
        """Test an integer option is written and a bad value leaves the default."""
        good = self._write("good.conf", "x=7\n")
        bad = self._write("bad.conf", "x=notanumber\n")

        registry = OptionRegistry()
        x = Slot(4)
        registry.add_int(x, "X")

        configure(registry, [good])
        assert x.value == 7

        x = Slot(4)
        registry.reset()
        registry.add_int(x, "X")
        reported = []
        result = configure(registry, [bad], verbose=True, reporter=reported.append)

        assert x.value == 4
        assert x.assigned is False
        assert len(reported) == 1
        assert reported[0].kind is DiagnosticKind.COERCION_FAILURE
        assert result.diagnostics == reported

    def test_idempotent(self):
        """Test parsing the same file twice yields the same values."""
        path = self._write("example.conf", EXAMPLE_CONF)

        parser = ConfigParser(self.registry)
        first = parser.configure(path)
        values_first = self.registry.values()
        second = parser.configure(path)

        assert self.registry.values() == values_first
        assert first.assignments == second.assignments

    def test_string_precedence(self):
        """Test LOWER wins over UPPER on the same option."""
        registry = OptionRegistry()
        slot = Slot("")
        registry.add_string(slot, "case", OptionFlag.UPPER | OptionFlag.LOWER)
        path = self._write("case.conf", "case=MixedCase\n")

        configure(registry, path)
        assert slot.value == "mixedcase"

    def test_string_without_strip_keeps_whitespace(self):
        """Test string values are written verbatim without STRIP."""
        registry = OptionRegistry()
        slot = Slot("")
        registry.add_string(slot, "raw")
        path = self._write("raw.conf", "raw=  padded \n")

        configure(registry, path)
        assert slot.value == "  padded "

    def test_boolean_values(self):
        """Test boolean literals from a file."""
        registry = OptionRegistry()
        slots = {name: Slot(None) for name in ["a", "b", "c", "d", "e", "f", "g", "h"]}
        for name, slot in slots.items():
            registry.add_bool(slot, name)
        content = "a=YES\nb= true \nc=1\nd=+\ne=no\nf=0\ng=nil\nh=maybe\n"
        path = self._write("bools.conf", content)

        result = configure(registry, path)

        assert [slots[n].value for n in "abcd"] == [True, True, True, True]
        assert [slots[n].value for n in "efg"] == [False, False, False]
        assert slots["h"].value is None
        failures = result.diagnostics_of(DiagnosticKind.COERCION_FAILURE)
        assert len(failures) == 1
        assert failures[0].line_number == 8

    def test_comments_and_blank_lines_only(self):
        """Test a file of comments and blank lines assigns nothing."""
        path = self._write("empty.conf", "# comment\n\n   \n  # another=1\n\n")

        result = configure(self.registry, path, verbose=True, reporter=pytest.fail)

        assert result.assignments == {}
        assert result.diagnostics == []
        assert self.number.value == 4
        assert not any(d.target.assigned for d in self.registry)

    def test_empty_file(self):
        """Test an empty file is read without errors."""
        path = self._write("empty.conf", "")
        result = configure(self.registry, path)
        assert result.lines_read == 0
        assert result.assignments == {}

    def test_unsigned_integer(self):
        """Test UNSIGNED integers drop the sign instead of failing."""
        registry = OptionRegistry()
        slot = Slot(0)
        registry.add_int(slot, "count", OptionFlag.UNSIGNED)
        path = self._write("count.conf", "count=-42\n")

        configure(registry, path)
        assert slot.value == 42

    def test_unrecognized_option(self):
        """Test unknown keys are reported and do not affect state."""
        path = self._write("unknown.conf", "colour=blue\ninteger_value=8\n")
        reported = []

        result = configure(self.registry, path, verbose=True, reporter=reported.append)

        assert self.number.value == 8
        assert len(reported) == 1
        assert reported[0].kind is DiagnosticKind.UNRECOGNIZED_OPTION
        assert reported[0].message == 'unrecognized option "COLOUR"'
        assert reported[0].line_number == 1
        assert "COLOUR" not in result.assignments

    def test_malformed_line(self):
        """Test malformed lines are skipped and scanning continues."""
        path = self._write("malformed.conf", "just some words\nverb=run\nhost:port=1\n")
        reported = []

        result = configure(self.registry, path, verbose=True, reporter=reported.append)

        assert self.verb.value == "run"
        assert [d.kind for d in reported] == [DiagnosticKind.MALFORMED_LINE] * 2
        assert reported[0].message == 'ignoring malformed line: "just some words"'
        assert reported[1].line == "host:port=1"
        assert result.assignments == {"VERB": "run"}

    def test_bad_value_keeps_previous_assignment(self):
        """Test a later bad value does not undo an earlier good one."""
        path = self._write("twice.conf", "integer_value=5\ninteger_value=five\n")

        result = configure(self.registry, path)

        assert self.number.value == 5
        assert result.assignments == {"INTEGER_VALUE": 5}
        assert len(result.diagnostics_of(DiagnosticKind.COERCION_FAILURE)) == 1

    def test_last_assignment_wins(self):
        """Test repeated keys overwrite earlier values."""
        path = self._write("repeat.conf", "verb=a\nverb=b\n")
        configure(self.registry, path)
        assert self.verb.value == "b"

    def test_crlf_line_endings(self):
        """Test Windows line endings are removed before parsing."""
        path = self.root / "crlf.conf"
        path.write_bytes(b"verb=jump\r\ninteger_value=3\r\n")

        configure(self.registry, path)

        assert self.verb.value == "jump"
        assert self.number.value == 3

    def test_not_verbose_is_silent(self, capsys):
        """Test diagnostics are collected but not printed when not verbose."""
        path = self._write("noisy.conf", "garbage\nunknown=1\ninteger_value=x\n")

        result = configure(self.registry, path)

        captured = capsys.readouterr()
        assert captured.err == ""
        assert captured.out == ""
        assert len(result.diagnostics) == 3

    def test_verbose_default_reporter_writes_stderr(self, capsys):
        """Test verbose mode prints each diagnostic once to stderr."""
        path = self._write("noisy.conf", "garbage\nunknown=1\ninteger_value=x\n")

        configure(self.registry, path, verbose=True)

        err_lines = capsys.readouterr().err.splitlines()
        assert err_lines == [
            'ignoring malformed line: "garbage"',
            'unrecognized option "UNKNOWN"',
            'INTEGER_VALUE: "x" not a recognizable integer',
        ]

    def test_logging_reporter(self, caplog):
        """Test diagnostics can be routed to a logger."""
        path = self._write("noisy.conf", "garbage\n")
        log = logging.getLogger("kvconfig.tests")

        with caplog.at_level(logging.WARNING, logger="kvconfig.tests"):
            configure(self.registry, path, verbose=True, reporter=make_logging_reporter(log))

        assert "line 1: ignoring malformed line" in caplog.text

    def test_discovery_order(self):
        """Test the first existing candidate is read and later ones ignored."""
        a = self.root / "a.conf"
        b = self._write("b.conf", "verb=from_b\n")
        c = self._write("c.conf", "verb=from_c\n")

        result = configure(self.registry, [a, b, c])

        assert result.config_path == b
        assert self.verb.value == "from_b"

    def test_no_config_file_found(self):
        """Test configure fails when no candidate exists."""
        a = self.root / "a.conf"
        b = self.root / "b.conf"

        with pytest.raises(NoConfigFileFoundError, match="no configuration files found"):
            configure(self.registry, [a, b])

        assert self.number.value == 4

    def test_no_candidates(self):
        """Test an empty candidate list is a discovery failure."""
        with pytest.raises(NoConfigFileFoundError):
            configure(self.registry, [])

    def test_directory_candidate_cannot_be_opened(self):
        """Test a candidate that exists but is not readable as a file."""
        directory = self.root / "conf.d"
        directory.mkdir()

        with pytest.raises(FileOpenError, match="error opening"):
            configure(self.registry, [directory])

    def test_open_error(self):
        """Test OSError on open is reported as FileOpenError."""
        path = self._write("locked.conf", "verb=x\n")

        with patch("builtins.open", side_effect=PermissionError(13, "Permission denied")):
            with pytest.raises(FileOpenError) as exc_info:
                configure(self.registry, path)

        assert exc_info.value.path == path
        assert isinstance(exc_info.value, ConfigurationError)
        assert self.verb.value == "swallow"

    def test_invalid_utf8_line_is_skipped(self):
        """Test a line with undecodable bytes is skipped and the rest still loads."""
        path = self.root / "latin1.conf"
        path.write_bytes(b"integer_value=80\nmass_noun=caf\xe9\nverb=run\n# caf\xe9 in a comment\n")
        reported = []

        result = configure(self.registry, path, verbose=True, reporter=reported.append)

        assert self.number.value == 80
        assert self.verb.value == "run"
        assert self.mass_noun.value == "kilograms of seawater"
        assert [d.kind for d in reported] == [DiagnosticKind.MALFORMED_LINE]
        assert reported[0].line_number == 2
        assert reported[0].line == "mass_noun=caf\ufffd"
        assert "invalid UTF-8" in reported[0].message
        assert result.assignments == {"INTEGER_VALUE": 80, "VERB": "run"}

    def test_invalid_utf8_reported_on_stderr(self, capsys):
        """Test the default reporter can print lines holding undecodable bytes."""
        path = self.root / "binary.conf"
        path.write_bytes(b"verb=\xff\xfe\n")

        configure(self.registry, path, verbose=True)

        assert "invalid UTF-8" in capsys.readouterr().err
        assert self.verb.value == "swallow"

    def test_utf8_values(self):
        """Test non-ASCII values are read as UTF-8."""
        path = self._write("utf8.conf", "mass_noun= kilogrammes d'eau salée \n")
        configure(self.registry, path)
        assert self.mass_noun.value == "kilogrammes d'eau salée"

    def test_validate_config_file_does_not_write(self):
        """Test validation reports problems without touching slots."""
        path = self._write("check.conf", "integer_value=99\nverb=x\ntrue_or_false=perhaps\nnope=1\n")

        diagnostics = validate_config_file(self.registry, path)

        assert [d.kind for d in diagnostics] == [
            DiagnosticKind.COERCION_FAILURE,
            DiagnosticKind.UNRECOGNIZED_OPTION,
        ]
        assert self.number.value == 4
        assert self.verb.value == "swallow"
        assert not any(d.target.assigned for d in self.registry)

    def test_validate_config_file_missing(self):
        """Test validating a missing file raises NoConfigFileFoundError."""
        with pytest.raises(NoConfigFileFoundError):
            validate_config_file(self.registry, self.root / "missing.conf")

    def test_configure_logs_summary(self, caplog):
        """Test a successful configure logs where it loaded from."""
        path = self._write("example.conf", EXAMPLE_CONF)

        with caplog.at_level(logging.INFO):
            configure(self.registry, path)

        assert f"Configuration loaded from {path}" in caplog.text


class TestDiagnostic:
    """Test cases for Diagnostic."""

    def test_str(self):
        """Test the string form includes the line number."""
        diagnostic = Diagnostic(
            kind=DiagnosticKind.MALFORMED_LINE,
            line_number=3,
            line="oops",
            message='ignoring malformed line: "oops"'
        )
        assert str(diagnostic) == 'line 3: ignoring malformed line: "oops"'

    def test_stderr_reporter(self, capsys):
        """Test the stderr reporter prints the message only."""
        stderr_reporter(Diagnostic(DiagnosticKind.UNRECOGNIZED_OPTION, 1, "a=b", 'unrecognized option "A"'))
        assert capsys.readouterr().err == 'unrecognized option "A"\n'
