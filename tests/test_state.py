from core.state import (
    LineKind, OutputLine, Session, Transcript, complete, history_down, history_up,
)
from core.virtual_fs import File


class TestSession:
    def test_defaults(self):
        s = Session()
        assert s.cwd == "~"
        assert s.env["USER"] == "guest"
        assert set(s.env) >= {"PATH", "USER", "HOME", "SHELL"}
        assert s.history == ()
        assert s.history_index is None
        assert s.has_package("apt", "base-system")

    def test_every_change_bumps_version(self):
        s = Session()
        s2 = s.with_env("FOO", "bar")
        assert s2.version == s.version + 1
        assert s2.env["FOO"] == "bar"
        assert "FOO" not in s.env

    def test_write_keeps_old_snapshot(self):
        s = Session()
        s2 = s.write("~/a.txt", File("a"))
        assert s2.fs.exists("~/a.txt")
        assert not s.fs.exists("~/a.txt")

    def test_packages_are_namespaced(self):
        s = Session().install("npm", "left-pad")
        assert s.has_package("npm", "left-pad")
        assert not s.has_package("pip", "left-pad")
        assert s.packages_for("npm") == ["left-pad"]
        assert not s.uninstall("npm", "left-pad").has_package("npm", "left-pad")

    def test_record_resets_cursor(self):
        s = Session(history=("ls",), history_index=0)
        s = s.record("pwd")
        assert s.history == ("ls", "pwd")
        assert s.history_index is None


class TestHistoryNavigation:
    def _session(self):
        return Session(history=("ls", "pwd", "cat x"))

    def test_up_three_then_down(self):
        s = self._session()
        for _ in range(3):
            s, text = history_up(s)
        assert text == "ls"
        s, text = history_down(s)
        assert text == "pwd"

    def test_up_is_clamped_at_oldest(self):
        s = self._session()
        for _ in range(5):
            s, text = history_up(s)
        assert text == "ls"
        assert s.history_index == 0

    def test_down_past_newest_clears(self):
        s = self._session()
        s, _ = history_up(s)
        s, text = history_down(s)
        assert text == ""
        assert s.history_index is None

    def test_navigation_without_history(self):
        s = Session()
        assert history_up(s) == (s, None)
        assert history_down(s) == (s, None)


class TestComplete:
    def test_matches_in_given_order(self):
        assert complete("c", ["clear", "ls", "cat", "cd"]) == ["clear", "cat", "cd"]

    def test_only_first_word_counts(self):
        assert complete("ech foo", ["echo", "env"]) == ["echo"]

    def test_no_match(self):
        assert complete("zz", ["echo"]) == []


class TestTranscript:
    def test_banner_lines_are_output(self):
        t = Transcript(["hello"])
        assert list(t) == [OutputLine(LineKind.OUTPUT, "hello")]

    def test_since_tracks_new_lines(self):
        t = Transcript(["a"])
        t.add_input("~ $ ls")
        t.add_output(["b", "c"])
        reset, lines = t.since(0, 1)
        assert not reset
        assert [l.text for l in lines] == ["~ $ ls", "b", "c"]
        assert lines[0].kind is LineKind.INPUT

    def test_clear_bumps_epoch(self):
        t = Transcript(["a"])
        t.clear()
        t.add_output(["b"])
        reset, lines = t.since(0, 1)
        assert reset
        assert t.texts() == ["b"]
        assert [l.text for l in lines] == ["b"]

    def test_to_dict(self):
        assert OutputLine(LineKind.INPUT, "x").to_dict() == {"kind": "input", "text": "x"}
