"""Read-only helpers for inspecting the current Git branch."""

import subprocess


def _git(repo: str, *args: str) -> str | None:
    try:
        out = subprocess.run(
            ["git", "-C", repo, *args],
            capture_output=True,
            text=True,
            check=False,
        )
    except OSError:
        # git not installed
        return None
    if out.returncode != 0:
        return None
    return out.stdout.strip()


def is_repository(repo: str = ".") -> bool:
    return _git(repo, "rev-parse", "--git-dir") is not None


def current_branch(repo: str = ".") -> str | None:
    """Return the checked-out branch name, or None outside a repository.

    Older git versions lack `branch --show-current`, so fall back to rev-parse.
    """
    branch = _git(repo, "branch", "--show-current")
    if branch:
        return branch
    branch = _git(repo, "rev-parse", "--abbrev-ref", "HEAD")
    if branch and branch != "HEAD":
        return branch
    return None
