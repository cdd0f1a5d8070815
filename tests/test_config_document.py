"""Tests for the includeIf scanner and the locked read-modify-write."""

import os

import pytest

from gitswitch.config_document import UNKNOWN, ConfigDocument, edit_document, parse_value, quote_value
from gitswitch.errors import ConflictError

GLOBAL_TEXT = (
    "[user]\n"
    "    name = Global Person\n"
    "    email = global@example.com\n"
    "\n"
    '[includeIf "gitdir:/home/u/work/"]\n'
    "    path = /home/u/.gitconfig_work\n"
    "\n"
    "[alias]\n"
    "    st = status\n"
    "\n"
    '[includeIf "gitdir:~/oss/"]\n'
    "\n"
    "    path = ~/.gitconfig_oss\n"
)


def test_find_directives_returns_folder_path_and_exact_block():
    doc = ConfigDocument(GLOBAL_TEXT)
    directives = doc.find_directives()

    assert [d.folder for d in directives] == ["/home/u/work", "~/oss"]
    assert [d.path for d in directives] == ["/home/u/.gitconfig_work", "~/.gitconfig_oss"]
    first = directives[0]
    assert first.block == '[includeIf "gitdir:/home/u/work/"]\n    path = /home/u/.gitconfig_work\n'
    assert GLOBAL_TEXT[first.start:first.end] == first.block
    assert doc.issues == []


def test_header_without_path_is_skipped_and_reported():
    text = (
        '[includeIf "gitdir:/broken/"]\n'
        "[core]\n"
        "    editor = vim\n"
        '[includeIf "gitdir:/ok/"]\n'
        "    path = /x/.gitconfig_ok\n"
    )
    doc = ConfigDocument(text)
    directives = doc.find_directives()

    assert [d.folder for d in directives] == ["/ok"]
    assert len(doc.issues) == 1
    assert doc.issues[0].line == 1


def test_other_conditional_includes_are_ignored():
    text = '[includeIf "onbranch:main"]\n    path = /x/branch.inc\n'
    assert ConfigDocument(text).find_directives() == []


def test_quoted_path_is_unquoted():
    text = '[includeIf "gitdir:/a/"]\n    path = "/x/with space/.gitconfig_a"\n'
    (directive,) = ConfigDocument(text).find_directives()
    assert directive.path == "/x/with space/.gitconfig_a"


def test_append_directive_separates_from_existing_content():
    doc = ConfigDocument("[user]\n    name = A")
    doc.append_directive("/work/", "/h/.gitconfig_w")

    assert doc.text == '[user]\n    name = A\n\n[includeIf "gitdir:/work/"]\n    path = /h/.gitconfig_w\n'


def test_append_directive_to_empty_document_has_no_leading_blank():
    doc = ConfigDocument("")
    doc.append_directive("/work", "/h/.gitconfig_w")
    assert doc.text.startswith("[includeIf")


def test_remove_literal_is_a_noop_when_block_is_absent():
    doc = ConfigDocument(GLOBAL_TEXT)
    assert doc.remove_literal('[includeIf "gitdir:/nope/"]\n    path = /x\n') is False
    assert doc.text == GLOBAL_TEXT


def test_remove_literal_removes_first_occurrence_only():
    block = '[includeIf "gitdir:/a/"]\n    path = /x\n'
    doc = ConfigDocument(block + "\n" + block)
    assert doc.remove_literal(block) is True
    assert doc.text == "\n" + block


def test_remove_directive_leaves_everything_else_byte_identical():
    doc = ConfigDocument(GLOBAL_TEXT)
    work = doc.find_directives()[0]

    removed = doc.remove_directive("/home/u/work/")

    assert removed == work
    assert doc.text == GLOBAL_TEXT.replace(work.block, "", 1)
    assert [d.folder for d in doc.find_directives()] == ["~/oss"]


def test_remove_directive_survives_whitespace_drift():
    doc = ConfigDocument('[includeIf "gitdir:/a/"]  \n\tpath=/x/.gitconfig_a\n')
    assert doc.remove_directive("/a", "/x/.gitconfig_a") is not None
    assert doc.text == ""


def test_remove_directive_requires_matching_path_when_given():
    doc = ConfigDocument(GLOBAL_TEXT)
    assert doc.remove_directive("/home/u/work", "/elsewhere") is None
    assert doc.text == GLOBAL_TEXT


class TestReadField:
    def test_first_match_wins(self):
        doc = ConfigDocument("[user]\n    name = First\n    name = Second\n")
        assert doc.read_field("name") == "First"

    def test_section_filter(self):
        doc = ConfigDocument("[alias]\n    name = nope\n[user]\n    name = Yes\n")
        assert doc.read_field("name", section="user") == "Yes"

    def test_quoted_value_is_unquoted(self):
        doc = ConfigDocument('[core]\n    sshCommand = "ssh -i /k"\n')
        assert doc.read_field("sshcommand", section="core") == "ssh -i /k"

    def test_missing_key_returns_sentinel(self):
        assert ConfigDocument("[user]\n").read_field("email") == UNKNOWN


class TestEditDocument:
    def test_writes_changes(self, tmp_path):
        path = tmp_path / ".gitconfig"
        path.write_text("[user]\n    name = A\n")

        with edit_document(str(path)) as doc:
            doc.append_directive("/w", "/h/.gitconfig_w")

        assert "gitdir:/w/" in path.read_text()

    def test_creates_missing_file_when_changed(self, tmp_path):
        path = tmp_path / ".gitconfig"
        with edit_document(str(path)) as doc:
            assert doc.exists is False
            doc.append("[core]\n")
        assert path.read_text() == "[core]\n"

    def test_unchanged_document_is_not_written(self, tmp_path):
        path = tmp_path / ".gitconfig"
        with edit_document(str(path)):
            pass
        assert not path.exists()

    def test_concurrent_external_edit_raises_conflict(self, tmp_path):
        path = tmp_path / ".gitconfig"
        path.write_text("[user]\n")

        with pytest.raises(ConflictError):
            with edit_document(str(path)) as doc:
                doc.append("[core]\n")
                # Another writer that ignores our lock
                path.write_text("[user]\n    name = Someone Else\n")

        assert path.read_text() == "[user]\n    name = Someone Else\n"

    def test_exception_inside_block_leaves_file_alone(self, tmp_path):
        path = tmp_path / ".gitconfig"
        path.write_text("[user]\n")

        with pytest.raises(RuntimeError):
            with edit_document(str(path)) as doc:
                doc.append("[core]\n")
                raise RuntimeError("boom")

        assert path.read_text() == "[user]\n"
        assert not os.path.exists(str(path) + ".tmp")


class TestValueQuoting:
    @pytest.mark.parametrize(
        "raw, rendered",
        [
            ("Work", "Work"),
            ("Team #1", '"Team #1"'),
            ("a;b", '"a;b"'),
            ('Jo "JJ" Smith', 'Jo \\"JJ\\" Smith'),
            ("A\\B", "A\\\\B"),
        ],
    )
    def test_quote_value(self, raw, rendered):
        assert quote_value(raw) == rendered
        assert parse_value(quote_value(raw)) == raw

    def test_always_quotes_on_request(self):
        assert quote_value("ssh -i /k", always=True) == '"ssh -i /k"'

    def test_trailing_comment_is_dropped(self):
        assert parse_value("Team # the real name") == "Team"
        assert parse_value('"Team #1" ; comment') == "Team #1"

    def test_read_field_decodes_escapes(self):
        doc = ConfigDocument('[user]\n    name = "Jo \\"JJ\\" Smith"\n    email = a\\\\b@x.com\n')
        assert doc.read_field("name", section="user") == 'Jo "JJ" Smith'
        assert doc.read_field("email", section="user") == "a\\b@x.com"

    def test_directive_path_with_comment_character_is_quoted(self):
        doc = ConfigDocument("")
        doc.append_directive("/w", "/h/.gitconfig_team_#1")
        assert 'path = "/h/.gitconfig_team_#1"' in doc.text
        (directive,) = doc.find_directives()
        assert directive.path == "/h/.gitconfig_team_#1"
