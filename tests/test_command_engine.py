from core import command_engine
from core.command_engine import COMMAND_NAMES, HANDLERS, Terminal, parse_line
from core.commands import Command
from core.state import LineKind


class TestDispatchTable:
    def test_every_command_has_a_handler(self):
        assert set(HANDLERS) == set(Command)

    def test_names_follow_registry_order(self):
        assert COMMAND_NAMES[0] == "help"
        assert COMMAND_NAMES == [c.value for c in Command]


class TestParseLine:
    def test_command_and_args(self):
        parsed = parse_line("ls -l documents")
        assert (parsed.command, parsed.args, parsed.redirect) == ("ls", ["-l", "documents"], None)

    def test_redirect(self):
        parsed = parse_line("echo a > out.txt")
        assert (parsed.command, parsed.args, parsed.redirect) == ("echo", ["a"], "out.txt")

    def test_only_first_redirect_counts(self):
        assert parse_line("echo a > b > c").redirect == "b > c"

    def test_bare_greater_than_is_an_argument(self):
        assert parse_line("echo a>b").args == ["a>b"]


class TestSubmit:
    def test_banner(self, terminal):
        assert terminal.transcript.texts()[0].startswith("Web Terminal v2.0.0")

    def test_empty_input_is_ignored(self, terminal):
        before = len(terminal.transcript)
        assert terminal.submit("   ") is None
        assert len(terminal.transcript) == before
        assert terminal.session.history == ()

    def test_input_line_echo(self, terminal):
        terminal.submit("  pwd  ")
        assert terminal.transcript[-2].kind is LineKind.INPUT
        assert terminal.transcript[-2].text == "~ $ pwd"
        assert terminal.transcript[-1].text == "~"

    def test_prompt_follows_cwd(self, run, terminal):
        run("cd documents")
        assert terminal.prompt == "~/documents $ "

    def test_unknown_command(self, run):
        assert run("frobnicate now") == ["Command not found: frobnicate. Type 'help' for available commands."]

    def test_mkdir_ls_cd_pwd(self, run):
        assert run("mkdir foo") == []
        assert "foo" in run("ls")
        run("cd foo")
        assert run("pwd") == ["~/foo"]

    def test_echo_with_variable(self, run):
        assert run("echo hello $USER") == ["hello guest"]

    def test_export_is_visible_to_echo(self, run):
        run("export NAME=world")
        assert run("echo hi $NAME") == ["hi world"]

    def test_history_lists_only_prior_commands(self, run):
        run("ls")
        run("pwd")
        assert run("history") == ["  1  ls", "  2  pwd"]
        assert run("history") == ["  1  ls", "  2  pwd", "  3  history"]

    def test_calc(self, run):
        assert run("calc 2+2*3") == ["8"]
        assert run("calc alert(1)") == ["1"]
        assert run("calc 1/0") == ["calc: division by zero"]

    def test_clear_resets_transcript(self, terminal):
        epoch = terminal.transcript.epoch
        terminal.submit("clear")
        assert len(terminal.transcript) == 0
        assert terminal.transcript.epoch == epoch + 1

    def test_handler_crash_is_contained(self, run, monkeypatch):
        def boom(ctx, args):
            raise RuntimeError("boom")
        monkeypatch.setitem(command_engine.HANDLERS, Command.PWD, boom)
        assert run("pwd") == ["pwd: internal error"]
        assert run("echo still alive") == ["still alive"]


class TestRedirect:
    def test_ls_into_file(self, run, terminal):
        assert run("ls > out.txt") == []
        assert terminal.session.fs.get("~/out.txt").content == "documents\nreadme.txt"

    def test_redirect_is_relative_to_cwd(self, run, terminal):
        run("cd documents")
        run("echo hi > note.txt")
        assert terminal.session.fs.get("~/documents/note.txt").content == "hi"

    def test_redirect_overwrites(self, run):
        run("echo one > a.txt")
        run("echo two > a.txt")
        assert run("cat a.txt") == ["two"]

    def test_redirect_to_home(self, run):
        assert run("echo x > ~") == ["~: Is a directory"]

    def test_redirect_through_file(self, run):
        assert run("echo x > readme.txt/y") == ["readme.txt/y: Not a directory"]

    def test_errors_are_redirected_too(self, run, terminal):
        assert run("cat nope > err.txt") == []
        assert terminal.session.fs.get("~/err.txt").content == "cat: nope: No such file or directory"

    def test_silent_command_writes_nothing(self, run, terminal):
        run("mkdir x > out.txt")
        assert not terminal.session.fs.exists("~/out.txt")

    def test_deferred_output_is_not_redirected(self, run, terminal):
        lines = run("ping example.com > out.txt")
        assert lines[0].startswith("PING example.com")
        assert not terminal.session.fs.exists("~/out.txt")


class TestTasks:
    def test_task_ticks_on_host_clock(self, terminal, clock):
        terminal.submit("ping example.com")
        assert terminal.busy
        assert terminal.tick() == 0
        clock.advance(1.0)
        assert terminal.tick() == 1
        assert terminal.transcript[-1].text.startswith("64 bytes from example.com: icmp_seq=0")

    def test_submission_does_not_cancel_running_task(self, terminal):
        terminal.submit("ping example.com")
        terminal.submit("echo hi")
        assert terminal.busy
        terminal.run_pending()
        assert terminal.transcript[-1].text.endswith("0% packet loss")

    def test_concurrent_tasks_both_finish(self, terminal):
        terminal.submit("wget http://example.com/a.txt")
        terminal.submit("apt install foo")
        terminal.run_pending()
        assert terminal.session.fs.exists("~/a.txt")
        assert terminal.session.has_package("apt", "foo")

    def test_effect_applies_to_latest_snapshot(self, terminal):
        terminal.submit("wget http://example.com/a.txt")
        terminal.submit("mkdir made-meanwhile")
        terminal.run_pending()
        assert terminal.session.fs.exists("~/a.txt")
        assert terminal.session.fs.exists("~/made-meanwhile")

    def test_interrupt_cancels_tasks(self, terminal, clock):
        terminal.submit("wget http://example.com/a.txt")
        clock.advance(0.2)
        terminal.tick()
        assert terminal.interrupt() == 1
        assert terminal.transcript[-1].text == "^C"
        assert not terminal.busy
        clock.advance(10)
        assert terminal.tick() == 0
        assert not terminal.session.fs.exists("~/a.txt")

    def test_interrupt_when_idle(self, terminal):
        terminal.input = "half typed"
        assert terminal.interrupt() == 0
        assert terminal.input == ""


class TestKeyboard:
    def test_history_navigation(self, run, terminal):
        for line in ("ls", "pwd", "cat x"):
            run(line)
        for _ in range(3):
            terminal.history_up()
        assert terminal.history_down() == "pwd"
        terminal.history_down()
        assert terminal.history_down() == ""
        assert terminal.session.history_index is None

    def test_up_then_submit(self, run, terminal):
        run("echo again")
        terminal.history_up()
        start = len(terminal.transcript)
        terminal.submit()
        assert terminal.transcript[start + 1].text == "again"
        assert terminal.input == ""

    def test_unique_completion(self, terminal):
        terminal.input = "ech"
        assert terminal.complete() == ["echo"]
        assert terminal.input == "echo"

    def test_ambiguous_completion_lists_matches(self, terminal):
        terminal.input = "c"
        matches = terminal.complete()
        assert matches == ["clear", "cd", "cat", "cp", "chmod", "curl", "calc"]
        assert terminal.input == "c"
        assert terminal.transcript[-1].text == "   ".join(matches)

    def test_no_completion(self, terminal):
        before = len(terminal.transcript)
        terminal.input = "zz"
        assert terminal.complete() == []
        assert len(terminal.transcript) == before


def test_custom_banner():
    assert Terminal(banner=["hi"]).transcript.texts() == ["hi"]
