import pytest

from core.errors import NotADirectory
from core.virtual_fs import Directory, File, VirtualFS, build_vfs


class TestSeedTree:
    def test_seed_contents(self):
        fs = build_vfs()
        assert fs.get("~/readme.txt").content == "Welcome to Web Terminal!"
        assert fs.is_dir("~/documents")
        assert fs.is_dir("~/.local/bin")

    def test_each_call_is_independent(self):
        a = build_vfs()
        b = a.set("~/x.txt", File("x"))
        assert not build_vfs().exists("~/x.txt")
        assert not a.exists("~/x.txt")
        assert b.exists("~/x.txt")


class TestSet:
    @pytest.fixture
    def fs(self):
        return build_vfs()

    def test_write_returns_new_snapshot(self, fs):
        updated = fs.set("~/documents/a.txt", File("hi"))
        assert updated.get("~/documents/a.txt").content == "hi"
        assert fs.get("~/documents/a.txt") is None

    def test_untouched_subtrees_are_shared(self, fs):
        updated = fs.set("~/documents/a.txt", File("hi"))
        assert updated.get("~/.local") is fs.get("~/.local")
        assert updated.get("~/readme.txt") is fs.get("~/readme.txt")

    def test_missing_intermediates_are_created(self, fs):
        updated = fs.set("~/a/b/c.txt", File())
        assert updated.is_dir("~/a")
        assert updated.is_dir("~/a/b")

    def test_file_as_intermediate_raises(self, fs):
        with pytest.raises(NotADirectory):
            fs.set("~/readme.txt/child", File())

    def test_delete_removes_subtree(self, fs):
        updated = fs.set("~/.local", None)
        assert not updated.exists("~/.local")
        assert not updated.exists("~/.local/bin")

    def test_delete_missing_is_noop(self, fs):
        assert fs.set("~/nope", None).get("~") is fs.get("~")
        assert fs.set("~/nope/deeper", None).get("~") is fs.get("~")

    def test_root_must_stay_a_directory(self, fs):
        with pytest.raises(NotADirectory):
            fs.set("~", File())
        with pytest.raises(NotADirectory):
            fs.set("~", None)
        assert fs.set("~", Directory()).get("~") == Directory()

    def test_get_does_not_descend_through_files(self, fs):
        assert fs.get("~/readme.txt/x") is None


class TestWalk:
    def test_preorder_sorted(self):
        paths = [p for p, _ in build_vfs().walk("~")]
        assert paths == ["~", "~/.local", "~/.local/bin", "~/documents", "~/readme.txt"]

    def test_walk_missing_yields_nothing(self):
        assert list(VirtualFS().walk("~/missing")) == []
