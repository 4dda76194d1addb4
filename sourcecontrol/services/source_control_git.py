"""
Source Control Git Service

GitPython-based transport for the source control working folder.

Every git failure is raised as TransportError carrying the failing command
and git's stderr. GitPython is synchronous; the async methods run it inline
so a single request never interleaves two git commands.
"""

import logging
from pathlib import Path

from git import GitCommandError, Repo
from git.remote import PushInfo

from sourcecontrol.core.constants import (
    DEFAULT_AUTHOR_EMAIL,
    DEFAULT_AUTHOR_NAME,
    ORIGIN,
)
from sourcecontrol.core.exceptions import TransportError
from sourcecontrol.models.contracts.source_control import (
    BranchesResult,
    CurrentBranch,
    GitPushResult,
    GitStatusResult,
    RenamedFile,
    SourceControlPreferences,
    SourceControlUser,
)

logger = logging.getLogger(__name__)


def _transport_error(action: str, error: GitCommandError) -> TransportError:
    command = error.command if isinstance(error.command, list) else [str(error.command)]
    stderr = (error.stderr or "").strip()
    return TransportError(
        f"git {action} failed: {stderr or error}",
        command=[str(part) for part in command],
        stderr=stderr,
    )


def parse_porcelain_status(porcelain: str) -> GitStatusResult:
    """
    Parse `git status --porcelain` (v1) output.

    XY codes: X is the index state, Y the worktree state.
    """
    status = GitStatusResult()

    for line in porcelain.splitlines():
        if len(line) < 4:
            continue
        x, y = line[0], line[1]
        path = line[3:]

        if x == "R" or y == "R":
            old, _, new = path.partition(" -> ")
            status.renamed.append(RenamedFile(from_path=_unquote(old), to=_unquote(new)))
            if x == "R":
                status.staged.append(_unquote(new))
            continue

        path = _unquote(path)

        if x == "?" and y == "?":
            status.not_added.append(path)
            continue
        if x == "!" and y == "!":
            status.ignored.append(path)
            continue
        if x == "U" or y == "U" or (x == y and x in "AD"):
            status.conflicted.append(path)
            continue

        if x == "A":
            status.created.append(path)
        elif x == "D" or y == "D":
            status.deleted.append(path)
        elif x == "M" or y == "M":
            status.modified.append(path)

        if x not in (" ", "?"):
            status.staged.append(path)

    return status


def _unquote(path: str) -> str:
    # Paths with special characters are quoted by git
    if path.startswith('"') and path.endswith('"'):
        return path[1:-1]
    return path


class SourceControlGitService:
    """
    Transport over a local git working folder and its `origin` remote.

    `repo` is None until init_service() succeeds; reset_service() drops it.
    """

    def __init__(self) -> None:
        self.repo: Repo | None = None
        self.git_folder: Path | None = None

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------

    async def init_service(
        self,
        preferences: SourceControlPreferences,
        git_folder: Path,
        ssh_folder: Path,
        ssh_key_path: Path,
    ) -> None:
        """Open (or init) the working folder and configure SSH for the remote."""
        git_folder.mkdir(parents=True, exist_ok=True)
        ssh_folder.mkdir(parents=True, exist_ok=True)

        try:
            if (git_folder / ".git").exists():
                repo = Repo(str(git_folder))
            else:
                logger.info(f"Initializing git working folder at {git_folder}")
                repo = Repo.init(str(git_folder))
        except GitCommandError as e:
            raise _transport_error("init", e) from e

        if ssh_key_path.exists():
            known_hosts = ssh_folder / "known_hosts"
            repo.git.update_environment(
                GIT_SSH_COMMAND=(
                    f"ssh -o UserKnownHostsFile={known_hosts} "
                    f"-o StrictHostKeyChecking=no -i {ssh_key_path}"
                )
            )

        self.repo = repo
        self.git_folder = git_folder

        if preferences.repository_url:
            self._ensure_remote(preferences.repository_url)

    def reset_service(self) -> None:
        self.repo = None
        self.git_folder = None

    async def init_repository(
        self,
        preferences: SourceControlPreferences,
        user: SourceControlUser,
    ) -> None:
        """
        Point the working folder at the preferred remote and set the author.

        On an unborn repository the initial branch is renamed to the
        preferred branch so the bootstrap commit lands there.
        """
        repo = self._require_repo()
        self._ensure_remote(preferences.repository_url)

        await self.set_git_user_details(
            preferences.author_name or user.full_name or DEFAULT_AUTHOR_NAME,
            preferences.author_email or user.email or DEFAULT_AUTHOR_EMAIL,
        )

        if preferences.initialize_repo and preferences.branch_name and not repo.head.is_valid():
            try:
                repo.git.symbolic_ref("HEAD", f"refs/heads/{preferences.branch_name}")
            except GitCommandError as e:
                raise _transport_error("symbolic-ref", e) from e

    # -----------------------------------------------------------------
    # Remote operations
    # -----------------------------------------------------------------

    async def fetch(self) -> None:
        repo = self._require_repo()
        try:
            repo.git.fetch(ORIGIN, "--prune")
        except GitCommandError as e:
            raise _transport_error("fetch", e) from e

    async def pull(self, ff_only: bool = True) -> None:
        repo = self._require_repo()
        args = ["--ff-only"] if ff_only else ["--no-rebase"]
        branch = self._active_branch_name()
        if branch:
            args += [ORIGIN, branch]
        try:
            repo.git.pull(*args)
        except GitCommandError as e:
            raise _transport_error("pull", e) from e

    async def push(self, branch: str, force: bool = False) -> GitPushResult:
        """
        Push HEAD to `branch` on origin.

        GitPython reports rejections through PushInfo flags rather than
        raising, so both paths are turned into TransportError.
        """
        repo = self._require_repo()
        refspec = f"HEAD:refs/heads/{branch}"
        try:
            push_infos = repo.remotes.origin.push(refspec=refspec, force=force)
        except GitCommandError as e:
            raise _transport_error("push", e) from e

        summary = ""
        for pi in push_infos:
            summary = pi.summary.strip() if pi.summary else ""
            if pi.flags & (PushInfo.ERROR | PushInfo.REJECTED | PushInfo.REMOTE_REJECTED):
                logger.error(f"Push to {branch} rejected: {summary}")
                raise TransportError(
                    f"git push failed: {summary or 'rejected'}",
                    command=["git", "push", ORIGIN, refspec],
                    stderr=summary,
                )

        commit_sha = repo.head.commit.hexsha
        logger.info(f"Pushed {commit_sha[:8]} to {ORIGIN}/{branch} (force={force})")
        return GitPushResult(
            branch=branch,
            remote=ORIGIN,
            commit_sha=commit_sha,
            forced=force,
            summary=summary,
        )

    # -----------------------------------------------------------------
    # Index / working tree
    # -----------------------------------------------------------------

    async def stage(self, files: set[str], deleted_files: set[str] | None = None) -> list[str]:
        """
        Stage additions/modifications and deletions.

        Paths are relative to the working folder. A path that no longer
        exists on disk is staged as a deletion.
        """
        repo = self._require_repo()
        root = Path(repo.working_tree_dir)

        to_add = sorted(f for f in files if (root / f).exists())
        to_remove = sorted(set(deleted_files or ()) | {f for f in files if not (root / f).exists()})

        try:
            if to_add:
                repo.git.add("-A", "--", *to_add)
            if to_remove:
                repo.git.rm("-r", "-f", "-q", "--ignore-unmatch", "--", *to_remove)
        except GitCommandError as e:
            raise _transport_error("stage", e) from e

        logger.debug(f"Staged {len(to_add)} files, removed {len(to_remove)}")
        return to_add + to_remove

    async def commit(self, message: str) -> str | None:
        """Commit the index. Returns the new sha, or None when nothing is staged."""
        repo = self._require_repo()
        try:
            staged = repo.git.diff("--cached", "--name-only").strip()
            if not staged:
                logger.info("Nothing staged, skipping commit")
                return None
            repo.git.commit("-m", message)
        except GitCommandError as e:
            raise _transport_error("commit", e) from e
        return repo.head.commit.hexsha

    async def reset_branch(self, hard: bool = False, target: str = "HEAD") -> None:
        """`git reset [--hard] <target>`; a plain reset only unstages."""
        repo = self._require_repo()
        try:
            if not repo.head.is_valid():
                # Nothing to reset to on an unborn branch
                if not hard:
                    repo.git.rm("-r", "--cached", "-q", "--ignore-unmatch", ".")
                return
            if hard:
                repo.git.reset("--hard", target)
            else:
                repo.git.reset(target)
        except GitCommandError as e:
            raise _transport_error("reset", e) from e

    async def status(self) -> GitStatusResult:
        repo = self._require_repo()
        try:
            porcelain = repo.git.status("--porcelain", "--untracked-files=all")
        except GitCommandError as e:
            raise _transport_error("status", e) from e
        return parse_porcelain_status(porcelain)

    # -----------------------------------------------------------------
    # Branches
    # -----------------------------------------------------------------

    async def get_branches(self) -> BranchesResult:
        """List remote branches (without the origin/ prefix) and the current branch."""
        repo = self._require_repo()
        try:
            output = repo.git.branch("-r")
        except GitCommandError as e:
            raise _transport_error("branch", e) from e

        prefix = f"{ORIGIN}/"
        branches = []
        for line in output.splitlines():
            name = line.strip()
            if not name or "->" in name:
                continue
            if name.startswith(prefix):
                name = name[len(prefix):]
            branches.append(name)

        return BranchesResult(branches=branches, current_branch=self._active_branch_name())

    async def set_branch(self, branch: str) -> BranchesResult:
        """Check out `branch` and track origin/<branch>."""
        repo = self._require_repo()
        try:
            repo.git.checkout(branch)
            repo.git.branch(f"--set-upstream-to={ORIGIN}/{branch}", branch)
        except GitCommandError as e:
            raise _transport_error("checkout", e) from e
        logger.info(f"Switched to branch {branch}")
        return await self.get_branches()

    async def get_current_branch(self) -> CurrentBranch:
        local = self._active_branch_name()
        return CurrentBranch(local=local, remote=f"{ORIGIN}/{local}")

    # -----------------------------------------------------------------
    # Diffs
    # -----------------------------------------------------------------

    async def diff_remote(self) -> list[str]:
        """Files changed on the remote branch since it diverged from HEAD."""
        current = await self.get_current_branch()
        return self._diff_names(f"...{current.remote}")

    async def diff_local(self) -> list[str]:
        """Files that differ between the remote branch and the working tree."""
        current = await self.get_current_branch()
        return self._diff_names(current.remote)

    def _diff_names(self, revision: str) -> list[str]:
        repo = self._require_repo()
        try:
            output = repo.git.diff("--name-only", "--ignore-all-space", revision)
        except GitCommandError as e:
            raise _transport_error("diff", e) from e
        return [line.strip() for line in output.splitlines() if line.strip()]

    # -----------------------------------------------------------------
    # Config
    # -----------------------------------------------------------------

    async def set_git_user_details(
        self,
        name: str = DEFAULT_AUTHOR_NAME,
        email: str = DEFAULT_AUTHOR_EMAIL,
    ) -> None:
        repo = self._require_repo()
        with repo.config_writer() as cw:
            cw.set_value("user", "name", name)
            cw.set_value("user", "email", email)

    # -----------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------

    def _require_repo(self) -> Repo:
        if self.repo is None:
            raise TransportError("Git service is not initialized")
        return self.repo

    def _ensure_remote(self, url: str) -> None:
        repo = self._require_repo()
        if not url:
            return
        if ORIGIN in [r.name for r in repo.remotes]:
            repo.remotes.origin.set_url(url)
        else:
            repo.create_remote(ORIGIN, url)

    def _active_branch_name(self) -> str:
        repo = self._require_repo()
        try:
            return repo.active_branch.name
        except TypeError:
            # Detached HEAD
            return ""
