"""Integration tests running locsquash against real temporary repositories."""

import pytest
import shutil
import subprocess
import os
from pathlib import Path
from typing import List, Optional
from locsquash.cli import main


pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")

BACKUP_PREFIX = "locsquash/backup-"


class GitTestRepository:
    """Helper for managing test git repositories."""

    def __init__(self, repo_path: Path):
        self.repo_path = repo_path
        self.repo_path.mkdir(exist_ok=True)
        self._clock = 0

    def run_git(self, *args, env=None, check=True):
        """Execute a git command."""
        cmd = ["git"] + list(args)
        result = subprocess.run(
            cmd,
            cwd=self.repo_path,
            capture_output=True,
            text=True,
            check=check,
            env=env or os.environ
        )
        return result

    def git(self, *args) -> str:
        """Execute a git command and return its trimmed output."""
        return self.run_git(*args).stdout.strip()

    def init_repo(self, initial_branch="main"):
        """Initialize repository."""
        self.run_git("init")
        self.run_git("config", "user.name", "Test User")
        self.run_git("config", "user.email", "test@example.com")
        self.run_git("config", "commit.gpgsign", "false")
        self.run_git("symbolic-ref", "HEAD", f"refs/heads/{initial_branch}")

    def write_file(self, name: str, content: str):
        """Write a file in the working tree."""
        path = self.repo_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)

    def read_file(self, name: str) -> str:
        """Read a file from the working tree."""
        return (self.repo_path / name).read_text()

    def commit(self, message: str, name: str = "file.txt", content: Optional[str] = None):
        """Commit a change with a distinct, increasing date."""
        if content is None:
            existing = self.read_file(name) if (self.repo_path / name).exists() else ""
            content = existing + message + "\n"
        self.write_file(name, content)
        self.run_git("add", name)

        # One hour apart so dates can be told apart
        self._clock += 1
        date = f"2024-01-01T{self._clock:02d}:00:00+02:00"
        env = os.environ.copy()
        env['GIT_AUTHOR_DATE'] = date
        env['GIT_COMMITTER_DATE'] = date
        self.run_git("commit", "--allow-empty-message", "-m", message, env=env)

    def commit_all(self, *messages: str):
        """Create one commit per message."""
        for message in messages:
            self.commit(message)

    def commit_count(self) -> int:
        """Get commit count."""
        return int(self.git("rev-list", "--count", "HEAD"))

    def head_subject(self) -> str:
        """Subject of the tip commit."""
        return self.git("log", "-1", "--format=%s")

    def head_date(self, placeholder: str = "%cI") -> str:
        """Date of the tip commit."""
        return self.git("log", "-1", f"--format={placeholder}")

    def backup_branches(self) -> List[str]:
        """Backup branches created by locsquash."""
        out = self.git("branch", "--list", "--format=%(refname:short)", f"{BACKUP_PREFIX}*")
        return [line for line in out.split("\n") if line]

    def stash_count(self) -> int:
        """Number of stash entries."""
        out = self.git("stash", "list")
        return len(out.split("\n")) if out else 0


@pytest.fixture
def repo(tmp_path, monkeypatch):
    """A fresh repository that is also the working directory."""
    repo = GitTestRepository(tmp_path / "repo")
    repo.init_repo()
    monkeypatch.chdir(repo.repo_path)
    return repo


class TestSquash:
    """Successful squashes."""

    def test_three_commits_squash_two(self, repo):
        """A,B,C with -n 2: two commits remain, B's message, C's date."""
        repo.commit_all("A", "B", "C")
        date_before = repo.head_date()

        assert main(["-n", "2", "-y"]) == 0

        assert repo.commit_count() == 2
        assert repo.head_subject() == "B"
        assert repo.head_date("%cI") == date_before
        assert repo.head_date("%aI") == date_before

    def test_override_message(self, repo):
        """-m replaces the message."""
        repo.commit_all("first", "second", "third")

        assert main(["-n", "2", "-m", "squashed commit", "-y"]) == 0

        assert repo.commit_count() == 2
        assert repo.head_subject() == "squashed commit"

    @pytest.mark.parametrize("total,count", [(4, 2), (4, 3), (6, 4)])
    def test_remaining_commit_count(self, repo, total, count):
        """Exactly T-N+1 commits remain."""
        repo.commit_all(*[f"commit {i}" for i in range(1, total + 1)])

        assert main(["-n", str(count), "-y"]) == 0

        assert repo.commit_count() == total - count + 1
        assert repo.head_subject() == f"commit {total - count + 1}"

    def test_content_is_preserved(self, repo):
        """The squashed tree equals the old tip tree."""
        repo.commit_all("a", "b", "c", "d")
        tree_before = repo.git("rev-parse", "HEAD^{tree}")

        assert main(["-n", "3", "-y"]) == 0

        assert repo.git("rev-parse", "HEAD^{tree}") == tree_before

    def test_creates_backup_branch(self, repo):
        """The pre-squash tip is kept on a backup branch."""
        repo.commit_all("a", "b", "c")
        head_before = repo.git("rev-parse", "HEAD")

        assert main(["-n", "2", "-y"]) == 0

        backups = repo.backup_branches()
        assert len(backups) == 1
        assert repo.git("rev-parse", backups[0]) == head_before

    def test_recovery_from_backup(self, repo):
        """Resetting to the backup restores the original history."""
        repo.commit_all("a", "b", "c", "d")
        head_before = repo.git("rev-parse", "HEAD")

        assert main(["-n", "2", "-y"]) == 0
        repo.git("reset", "--hard", repo.backup_branches()[0])

        assert repo.git("rev-parse", "HEAD") == head_before

    def test_no_backup(self, repo):
        """-no-backup leaves no backup branch."""
        repo.commit_all("a", "b", "c")

        assert main(["-n", "2", "-no-backup", "-y"]) == 0

        assert repo.backup_branches() == []
        assert repo.commit_count() == 2

    def test_consecutive_runs_get_distinct_backups(self, repo):
        """Two runs in the same second still create two backup branches."""
        repo.commit_all("1", "2", "3", "4", "5", "6")

        assert main(["-n", "2", "-y"]) == 0
        assert main(["-n", "2", "-y"]) == 0

        backups = repo.backup_branches()
        assert len(backups) == 2
        assert len(set(backups)) == 2

    def test_stash_restores_dirty_tree(self, repo):
        """-stash keeps uncommitted and untracked content intact."""
        repo.commit_all("a", "b", "c")
        repo.write_file("dirty.txt", "uncommitted content")
        repo.run_git("add", "dirty.txt")
        repo.write_file("untracked.txt", "untracked content")
        repo.write_file("file.txt", repo.read_file("file.txt") + "local edit\n")

        assert main(["-n", "2", "-m", "squashed", "-stash", "-y"]) == 0

        assert repo.commit_count() == 2
        assert repo.read_file("dirty.txt") == "uncommitted content"
        assert repo.read_file("untracked.txt") == "untracked content"
        assert repo.read_file("file.txt").endswith("local edit\n")
        assert repo.stash_count() == 0

    def test_stash_keeps_unrelated_stash(self, repo):
        """An older stash entry survives the run."""
        repo.commit_all("a", "b", "c")
        repo.write_file("old.txt", "older stash")
        repo.run_git("stash", "push", "-u", "-m", "older")
        repo.write_file("dirty.txt", "new work")

        assert main(["-n", "2", "-stash", "-y"]) == 0

        assert repo.read_file("dirty.txt") == "new work"
        assert repo.stash_count() == 1

    def test_allow_empty(self, repo):
        """A fold with no net change succeeds with -allow-empty."""
        repo.commit("base", content="base\n")
        repo.commit("change", content="changed\n")
        repo.commit("revert", content="base\n")

        assert main(["-n", "2", "-allow-empty", "-y"]) == 0

        assert repo.commit_count() == 2
        assert repo.run_git("diff", "--quiet", "HEAD~1", "HEAD", check=False).returncode == 0

    def test_empty_oldest_message_with_override(self, repo):
        """An oldest commit with no message is still folded when -m is given."""
        repo.commit("A")
        repo.commit("", content="untitled\n")
        repo.commit("C")

        assert main(["-n", "2", "-m", "fixed message", "-y"]) == 0

        assert repo.commit_count() == 2
        assert repo.head_subject() == "fixed message"


class TestRefusals:
    """Runs that must fail without changing anything."""

    def test_entire_history(self, repo, capsys):
        """A 2-commit repository can't be squashed with -n 2."""
        repo.commit_all("only", "two")
        head_before = repo.git("rev-parse", "HEAD")

        assert main(["-n", "2", "-y"]) == 1

        assert "one commit must remain as the base" in capsys.readouterr().err
        assert repo.git("rev-parse", "HEAD") == head_before

    @pytest.mark.parametrize("count", ["0", "1"])
    def test_count_below_two(self, repo, capsys, count):
        """-n below 2 always fails."""
        repo.commit_all("a", "b", "c")

        assert main(["-n", count, "-y"]) == 1

        assert "must be at least 2" in capsys.readouterr().err

    def test_outside_repository(self, tmp_path, monkeypatch, capsys):
        """Running outside a repository fails."""
        plain = tmp_path / "plain"
        plain.mkdir()
        monkeypatch.chdir(plain)
        monkeypatch.setenv("GIT_CEILING_DIRECTORIES", str(tmp_path))

        assert main(["-n", "2", "-y"]) == 1

        assert "not a git repository" in capsys.readouterr().err

    def test_dirty_tree(self, repo, capsys):
        """Uncommitted changes without -stash fail a real run."""
        repo.commit_all("a", "b", "c")
        repo.write_file("dirty.txt", "uncommitted content")
        repo.run_git("add", "dirty.txt")

        assert main(["-n", "2", "-y"]) == 1

        assert "uncommitted changes detected" in capsys.readouterr().err
        assert repo.commit_count() == 3

    def test_no_net_change(self, repo, capsys):
        """Commits that cancel out need -allow-empty."""
        repo.commit("base", content="base\n")
        repo.commit("change", content="changed\n")
        repo.commit("revert", content="base\n")

        assert main(["-n", "2", "-y"]) == 1

        assert "no net changes" in capsys.readouterr().err
        assert repo.commit_count() == 3

    def test_empty_oldest_message_without_override(self, repo, capsys):
        """No -m and no oldest message leaves nothing to commit with."""
        repo.commit("A")
        repo.commit("", content="untitled\n")
        repo.commit("C")

        assert main(["-n", "2", "-y"]) == 1

        assert "has an empty message" in capsys.readouterr().err
        assert repo.commit_count() == 3

    def test_merge_in_progress(self, repo, capsys):
        """An unfinished merge blocks the squash."""
        repo.commit_all("a", "b")
        repo.run_git("checkout", "-b", "side")
        repo.commit("side change", content="side\n")
        repo.run_git("checkout", "main")
        repo.commit("main change", content="main\n")
        repo.run_git("merge", "side", check=False)

        assert main(["-n", "2", "-y"]) == 1

        assert "MERGE_HEAD" in capsys.readouterr().err


class TestPreviews:
    """Read-only modes."""

    @pytest.mark.parametrize("flags", [["-dry-run"], ["-print-recovery"],
                                       ["-dry-run", "-print-recovery", "-stash"]])
    def test_previews_change_nothing(self, repo, capsys, flags):
        """Previews leave HEAD, branches and stash untouched even when dirty."""
        repo.commit_all("a", "b", "c")
        repo.write_file("dirty.txt", "uncommitted content")
        head_before = repo.git("rev-parse", "HEAD")

        assert main(["-n", "2"] + flags) == 0

        assert repo.git("rev-parse", "HEAD") == head_before
        assert repo.backup_branches() == []
        assert repo.stash_count() == 0
        assert repo.read_file("dirty.txt") == "uncommitted content"
        if "-stash" not in flags:
            assert "Warning: uncommitted changes detected" in capsys.readouterr().err

    def test_dry_run_output(self, repo, capsys):
        """Dry run lists the commits and the commands."""
        repo.commit_all("a", "b", "c")

        assert main(["-n", "2", "-dry-run"]) == 0

        out = capsys.readouterr().out
        assert "Dry run" in out
        assert "The following 2 commits will be squashed:" in out
        assert "git reset --soft HEAD~2" in out
        assert f"git branch {BACKUP_PREFIX}" in out

    def test_print_recovery_output(self, repo, capsys):
        """Recovery preview shows the reset command."""
        repo.commit_all("a", "b", "c")

        assert main(["-n", "2", "-print-recovery"]) == 0

        out = capsys.readouterr().out
        assert "Recovery instructions" in out
        assert "git reset --hard" in out


class TestListBackups:
    """The -list-backups listing."""

    def test_lists_created_backups(self, repo, capsys):
        """Backups from earlier runs are listed."""
        repo.commit_all("a", "b", "c", "d")
        assert main(["-n", "2", "-y"]) == 0
        capsys.readouterr()

        assert main(["-list-backups"]) == 0

        out = capsys.readouterr().out
        assert repo.backup_branches()[0] in out

    def test_no_backups(self, repo, capsys):
        """An empty listing says so."""
        repo.commit_all("a", "b")

        assert main(["-list-backups"]) == 0

        assert "No backup branches found" in capsys.readouterr().out
