"""Git integration for version control."""
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from ..config.constants import DEFAULT_BRANCH, DEFAULT_COMMIT_AUTHOR, DEFAULT_COMMIT_EMAIL, DEFAULT_REMOTE
from ..utils.logging import get_logger

# git missing from PATH surfaces as OSError, a failing command as CalledProcessError
GIT_FAILURES = (subprocess.CalledProcessError, OSError)

GITIGNORE = (
    "# Inkwell\n"
    ".DS_Store\n"
    "Thumbs.db\n"
    "*.tmp\n"
)


@dataclass
class GitResult:
    """Outcome of a git command whose output the user needs to see."""

    success: bool
    output: str = ""
    error: str = ""


class GitManager:
    """Manage git operations for a project."""

    def __init__(self, project_path: Path, identity: Optional[Any] = None):
        """
        Initialize git manager.

        Args:
            project_path: Path to project directory
            identity: Git preferences (``user_name``, ``user_email``,
                ``default_remote``, ``default_branch``); defaults apply if None
        """
        self.project_path = Path(project_path).resolve()
        self.identity = identity
        self.logger = get_logger("git")

    def _identity(self, attr: str, fallback: str) -> str:
        value = getattr(self.identity, attr, None) if self.identity is not None else None
        return value or fallback

    def is_repository(self) -> bool:
        """Check whether the project directory is inside a git work tree."""
        try:
            return self._run_git("rev-parse", "--is-inside-work-tree").strip() == "true"
        except GIT_FAILURES:
            return False

    def init(self) -> bool:
        """
        Initialize a new git repository.

        Returns:
            True if successful
        """
        try:
            self._run_git("init")
            branch = self._identity("default_branch", DEFAULT_BRANCH)
            self._run_git("symbolic-ref", "HEAD", f"refs/heads/{branch}")

            # Set local identity when none is configured
            try:
                self._run_git("config", "user.name")
            except subprocess.CalledProcessError:
                self._run_git("config", "user.name", self._identity("user_name", DEFAULT_COMMIT_AUTHOR))
                self._run_git("config", "user.email", self._identity("user_email", DEFAULT_COMMIT_EMAIL))

            gitignore = self.project_path / ".gitignore"
            if not gitignore.exists():
                gitignore.write_text(GITIGNORE, encoding='utf-8')

            self.logger.info(f"Initialized git repository in {self.project_path}")
            return True
        except GIT_FAILURES as e:
            self.logger.warning(f"git init failed in {self.project_path}: {_stderr(e)}")
            return False

    def status(self) -> str:
        """
        Get git status.

        Returns:
            Short status output (empty when clean)
        """
        try:
            return self._run_git("status", "--short")
        except GIT_FAILURES as e:
            return f"Error: {_stderr(e)}"

    def has_changes(self) -> bool:
        """Check if there are uncommitted changes."""
        try:
            return bool(self._run_git("status", "--short").strip())
        except GIT_FAILURES:
            return False

    def add(self, files: Optional[List[str]] = None) -> bool:
        """
        Add files to staging.

        Args:
            files: List of files to add (None for all)

        Returns:
            True if successful
        """
        try:
            if files:
                self._run_git("add", *files)
            else:
                self._run_git("add", ".")
            return True
        except GIT_FAILURES:
            return False

    def commit(self, message: str, files: Optional[List[str]] = None) -> bool:
        """
        Stage and commit changes.

        Args:
            message: Commit message
            files: Optional list of files to commit

        Returns:
            True if successful (including when there is nothing to commit)
        """
        try:
            if not self.add(files):
                return False

            if not self.has_changes():
                return True

            self._run_git("commit", "-m", message)
            self.logger.info(f"Committed in {self.project_path.name}: {message}")
            return True
        except GIT_FAILURES as e:
            self.logger.warning(f"git commit failed: {_stderr(e)}")
            return False

    def log(self, limit: int = 10, oneline: bool = True) -> str:
        """
        Get git log.

        Args:
            limit: Number of commits to show
            oneline: Use oneline format

        Returns:
            Log output
        """
        try:
            args = ["log", f"-{limit}"]
            if oneline:
                args.append("--oneline")
            return self._run_git(*args)
        except GIT_FAILURES:
            return ""

    def diff(self, first: Optional[str] = None, second: Optional[str] = None) -> str:
        """Diff the work tree, or between one or two revisions."""
        try:
            args = ["diff"] + [rev for rev in (first, second) if rev]
            return self._run_git(*args)
        except GIT_FAILURES:
            return ""

    def current_branch(self) -> Optional[str]:
        """Name of the checked-out branch, also before its first commit; "HEAD" when detached."""
        try:
            return self._run_git("symbolic-ref", "--short", "HEAD").strip()
        except GIT_FAILURES as e:
            self.logger.debug(f"HEAD is not a symbolic ref: {_stderr(e)}")
        try:
            return self._run_git("rev-parse", "--abbrev-ref", "HEAD").strip()
        except GIT_FAILURES:
            return None

    def list_branches(self, include_remote: bool = False) -> List[str]:
        """
        List branches.

        Args:
            include_remote: Also list remote-tracking branches

        Returns:
            List of branch names
        """
        try:
            args = ["branch", "-a"] if include_remote else ["branch"]
            output = self._run_git(*args)
        except GIT_FAILURES:
            return []

        branches = []
        for line in output.splitlines():
            branch = line.strip()
            if branch.startswith("*"):
                branch = branch[2:]
            if " -> " in branch:
                continue
            branches.append(branch)
        return branches

    def create_branch(self, name: str) -> bool:
        """Create and checkout a new branch."""
        try:
            self._run_git("checkout", "-b", name)
            return True
        except GIT_FAILURES:
            return False

    def checkout(self, branch: str) -> bool:
        try:
            self._run_git("checkout", branch)
            return True
        except GIT_FAILURES:
            return False

    def delete_branch(self, name: str, force: bool = False) -> bool:
        try:
            self._run_git("branch", "-D" if force else "-d", name)
            return True
        except GIT_FAILURES:
            return False

    def list_remotes(self) -> List[str]:
        try:
            return [line.strip() for line in self._run_git("remote").splitlines() if line.strip()]
        except GIT_FAILURES:
            return []

    def add_remote(self, name: str, url: str) -> bool:
        try:
            self._run_git("remote", "add", name, url)
            return True
        except GIT_FAILURES:
            return False

    def remove_remote(self, name: str) -> bool:
        try:
            self._run_git("remote", "remove", name)
            return True
        except GIT_FAILURES:
            return False

    def push(self, remote: Optional[str] = None, branch: Optional[str] = None) -> GitResult:
        """
        Push a branch (current branch by default) and set its upstream.

        Returns:
            GitResult with git's output or error text
        """
        remote = remote or self._identity("default_remote", DEFAULT_REMOTE)
        branch = branch or self.current_branch() or self._identity("default_branch", DEFAULT_BRANCH)
        return self._run_for_result("push", "-u", remote, branch)

    def pull(self, remote: Optional[str] = None, branch: Optional[str] = None) -> GitResult:
        remote = remote or self._identity("default_remote", DEFAULT_REMOTE)
        args = ["pull", remote]
        if branch:
            args.append(branch)
        return self._run_for_result(*args)

    def fetch(self, remote: Optional[str] = None) -> GitResult:
        return self._run_for_result("fetch", remote or self._identity("default_remote", DEFAULT_REMOTE))

    def _run_for_result(self, *args) -> GitResult:
        try:
            return GitResult(success=True, output=self._run_git(*args))
        except GIT_FAILURES as e:
            self.logger.warning(f"git {args[0]} failed: {_stderr(e)}")
            return GitResult(success=False, error=_stderr(e))

    def _run_git(self, *args) -> str:
        """
        Run a git command.

        Args:
            *args: Git command arguments

        Returns:
            Command output

        Raises:
            subprocess.CalledProcessError: If command fails
            OSError: If git cannot be executed
        """
        result = subprocess.run(
            ["git"] + list(args),
            cwd=self.project_path,
            capture_output=True,
            text=True,
            check=True
        )
        return result.stdout


def _stderr(error: Exception) -> str:
    stderr = getattr(error, 'stderr', None)
    return (stderr or str(error)).strip()
