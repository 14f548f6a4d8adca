import shutil
import subprocess
import tempfile
import unittest
from pathlib import Path

from dockship.gitops import GitCommandError, GitRepositoryManager


def _git_available() -> bool:
    return shutil.which("git") is not None


def _run_git(args: list[str], cwd: Path) -> None:
    subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        check=True,
        capture_output=True,
        text=True,
    )


class GitRepositoryManagerTests(unittest.TestCase):
    def setUp(self) -> None:
        if not _git_available():
            self.skipTest("git binary not found")

    def test_clone_and_update_local_repo(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            origin = root / "origin"
            origin.mkdir()
            _run_git(["init", "--initial-branch=main"], origin)
            _run_git(["config", "user.email", "bot@example.com"], origin)
            _run_git(["config", "user.name", "Dockship"], origin)
            (origin / "Dockerfile").write_text("FROM python:3.11-slim\n", encoding="utf-8")
            _run_git(["add", "Dockerfile"], origin)
            _run_git(["commit", "-m", "initial"], origin)

            manager = GitRepositoryManager()
            target = root / "checkout"
            result = manager.clone_or_update(str(origin), target, branch="main")
            self.assertTrue(result.cloned)
            self.assertTrue((target / "Dockerfile").exists())
            self.assertEqual(len(result.commit_sha), 40)

            # A new commit in origin must be picked up by the existing checkout
            (origin / "Dockerfile").write_text("FROM python:3.12-slim\n", encoding="utf-8")
            _run_git(["commit", "-am", "update"], origin)

            result = manager.clone_or_update(str(origin), target, branch="main")
            self.assertFalse(result.cloned)
            self.assertIn("3.12", (target / "Dockerfile").read_text(encoding="utf-8"))

    def test_unknown_branch_fails(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp)
            origin = root / "origin"
            origin.mkdir()
            _run_git(["init", "--initial-branch=main"], origin)
            with self.assertRaises(GitCommandError):
                GitRepositoryManager().clone_or_update(str(origin), root / "checkout", branch="release")


class MissingGitBinaryTests(unittest.TestCase):
    def test_missing_binary_is_a_git_error(self) -> None:
        manager = GitRepositoryManager(git_binary="/nonexistent/git")
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(GitCommandError) as caught:
                manager.clone_or_update("https://github.com/acme/app.git", Path(tmp) / "checkout")
        self.assertEqual(caught.exception.exit_code, 127)
        self.assertEqual(caught.exception.command[:2], ["/nonexistent/git", "clone"])


class TokenRedactionTests(unittest.TestCase):
    def test_token_never_appears_in_errors(self) -> None:
        if shutil.which("false") is None:
            self.skipTest("false binary not found")
        manager = GitRepositoryManager(git_binary="false")
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(GitCommandError) as caught:
                manager.clone_or_update(
                    "https://github.com/acme/private.git",
                    Path(tmp) / "checkout",
                    token="s3cret",
                )
        self.assertNotIn("s3cret", str(caught.exception))
        self.assertIn("https://***@github.com/acme/private.git", caught.exception.command)


if __name__ == "__main__":
    unittest.main()
