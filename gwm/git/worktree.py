"""``git`` subprocess implementation of the repository service.

All repository access goes through ``git -C <repo_root> ...`` so the
service works identically from the main checkout or any linked worktree.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from ..errors import BranchNotFoundError, GitError, NotARepositoryError, WorktreeExistsError
from .service import Branch, Worktree

logger = logging.getLogger(__name__)

GIT_TIMEOUT_SECONDS = 30.0
DEFAULT_BRANCH_CANDIDATES = ("main", "master")


def _run_git(
    cwd: Path,
    args: list[str],
    timeout_seconds: float = GIT_TIMEOUT_SECONDS,
) -> subprocess.CompletedProcess[str]:
    try:
        return subprocess.run(
            ["git", "-C", str(cwd), *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            check=False,
            timeout=timeout_seconds,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        raise GitError(f"git {' '.join(args)}: {exc}") from exc


def _git_output(cwd: Path, args: list[str]) -> str:
    proc = _run_git(cwd, args)
    if proc.returncode != 0:
        stderr = proc.stderr.strip()
        logger.debug("git %s failed (%s): %s", " ".join(args), proc.returncode, stderr)
        raise GitError(stderr or f"git {args[0]} exited with status {proc.returncode}", stderr=stderr)
    return proc.stdout


def _git_succeeds(cwd: Path, args: list[str]) -> bool:
    return _run_git(cwd, args).returncode == 0


def _linked_worktree_name(path: Path) -> str:
    """Return git's administrative name for a linked worktree.

    A linked worktree's ``.git`` is a file ``gitdir: <common>/worktrees/<name>``;
    when that cannot be read the directory name is used.
    """
    try:
        content = (path / ".git").read_text(encoding="utf-8")
    except OSError:
        return path.name
    if content.startswith("gitdir:"):
        gitdir = Path(content[len("gitdir:"):].strip())
        if gitdir.parent.name == "worktrees":
            return gitdir.name
    return path.name


def _parse_worktree_porcelain(output: str) -> list[tuple[Path, str | None]]:
    records: list[tuple[Path, str | None]] = []
    path: Path | None = None
    branch: str | None = None
    for line in output.splitlines() + [""]:
        if not line:
            if path is not None:
                records.append((path, branch))
            path, branch = None, None
            continue
        key, _sep, value = line.partition(" ")
        if key == "worktree":
            path = Path(value)
        elif key == "branch":
            branch = value.removeprefix("refs/heads/")
    return records


class GitWorktreeService:
    """Repository service bound to one repository's main checkout."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root.resolve()

    @classmethod
    def discover(cls, start: Path) -> GitWorktreeService:
        """Locate the main checkout for ``start``, even from inside a linked worktree."""
        proc = _run_git(start, ["rev-parse", "--git-common-dir"])
        if proc.returncode != 0:
            raise NotARepositoryError(f"Not a git repository: {start}", stderr=proc.stderr.strip())
        common_dir = Path(proc.stdout.strip())
        if not common_dir.is_absolute():
            common_dir = start / common_dir
        return cls(common_dir.resolve().parent)

    def list_worktrees(self) -> list[Worktree]:
        records = _parse_worktree_porcelain(_git_output(self.repo_root, ["worktree", "list", "--porcelain"]))
        worktrees: list[Worktree] = []
        for index, (path, branch) in enumerate(records):
            if index == 0:
                worktrees.append(Worktree(name=path.name or "main", path=path, branch=branch, is_main=True))
            else:
                worktrees.append(Worktree(name=_linked_worktree_name(path), path=path, branch=branch))
        return worktrees

    def list_branches(self) -> list[Branch]:
        output = _git_output(
            self.repo_root,
            ["for-each-ref", "--format=%(refname)%00%(HEAD)", "refs/heads", "refs/remotes"],
        )
        branches: list[Branch] = []
        for line in output.splitlines():
            refname, _sep, head_marker = line.partition("\0")
            if refname.startswith("refs/heads/"):
                branches.append(
                    Branch(name=refname.removeprefix("refs/heads/"), is_head=head_marker.strip() == "*")
                )
            elif refname.startswith("refs/remotes/"):
                name = refname.removeprefix("refs/remotes/")
                if name.endswith("/HEAD"):
                    continue
                branches.append(Branch(name=name, is_remote=True))
        return branches

    def _local_branch_exists(self, name: str) -> bool:
        return _git_succeeds(self.repo_root, ["show-ref", "--verify", "--quiet", f"refs/heads/{name}"])

    def _branch_tips(self) -> dict[str, str]:
        output = _git_output(self.repo_root, ["for-each-ref", "--format=%(refname:short)%00%(objectname)", "refs/heads"])
        tips: dict[str, str] = {}
        for line in output.splitlines():
            name, _sep, sha = line.partition("\0")
            if name:
                tips[name] = sha.strip()
        return tips

    def find_merged_branches(self, base_branch: str) -> list[str]:
        """Branches whose tip is a strict ancestor of ``base_branch``'s tip."""
        tips = self._branch_tips()
        base_tip = tips.get(base_branch)
        if base_tip is None:
            raise BranchNotFoundError(f"Branch not found: {base_branch}", stderr="")
        merged: list[str] = []
        for name, tip in tips.items():
            if name == base_branch or tip == base_tip:
                continue
            if _git_succeeds(self.repo_root, ["merge-base", "--is-ancestor", tip, base_tip]):
                merged.append(name)
        return merged

    def find_merged_worktrees(self, base_branch: str) -> list[Worktree]:
        merged = set(self.find_merged_branches(base_branch))
        return [wt for wt in self.list_worktrees() if not wt.is_main and wt.branch in merged]

    def create_worktree(self, name: str, branch: str, base_path: Path) -> Worktree:
        """Check out an existing local branch (or track ``origin/<branch>``) in a new worktree."""
        worktree_path = base_path / name
        if worktree_path.exists():
            raise WorktreeExistsError(f"Worktree already exists: {name}")
        if self._local_branch_exists(branch):
            args = ["worktree", "add", str(worktree_path), branch]
        elif _git_succeeds(self.repo_root, ["show-ref", "--verify", "--quiet", f"refs/remotes/origin/{branch}"]):
            args = ["worktree", "add", "--track", "-b", branch, str(worktree_path), f"origin/{branch}"]
        else:
            raise BranchNotFoundError(f"Branch not found: {branch}")
        _git_output(self.repo_root, args)
        logger.info("created worktree %s at %s on %s", name, worktree_path, branch)
        return Worktree(name=name, path=worktree_path, branch=branch)

    def create_worktree_with_new_branch(self, name: str, branch: str, base_path: Path) -> Worktree:
        worktree_path = base_path / name
        if worktree_path.exists():
            raise WorktreeExistsError(f"Worktree already exists: {name}")
        _git_output(self.repo_root, ["worktree", "add", "-b", branch, str(worktree_path)])
        logger.info("created worktree %s at %s with new branch %s", name, worktree_path, branch)
        return Worktree(name=name, path=worktree_path, branch=branch)

    def delete_worktree(self, name: str) -> None:
        """Remove a linked worktree's directory and its administrative metadata."""
        target = next((wt for wt in self.list_worktrees() if wt.name == name and not wt.is_main), None)
        if target is None:
            raise GitError(f"Worktree not found: {name}")
        _git_output(self.repo_root, ["worktree", "remove", "--force", str(target.path)])
        if target.path.exists():
            try:
                shutil.rmtree(target.path)
            except OSError as exc:
                raise GitError(f"Failed to remove {target.path}: {exc}") from exc
        _run_git(self.repo_root, ["worktree", "prune"])
        logger.info("deleted worktree %s", name)

    def delete_branch(self, name: str) -> None:
        """Force-delete a local branch (``git branch -D``)."""
        _git_output(self.repo_root, ["branch", "-D", name])
        logger.info("deleted branch %s", name)


__all__ = ["GitWorktreeService", "DEFAULT_BRANCH_CANDIDATES"]
