"""Repository layout and configuration: where the git directory lives,
how it is initialised, and how refs are read and advanced."""

import os
from pathlib import Path

from minigit.object_store import ObjectStore

GIT_DIR_NAME = ".git"
GIT_DIR_ENV = "MINIGIT_DIR"
DEFAULT_BRANCH = "refs/heads/main"


class Repository:
    """A git directory plus the worktree that contains it."""

    def __init__(self, git_dir: Path) -> None:
        self.git_dir = Path(git_dir)
        self.objects = ObjectStore(self.git_dir / "objects")

    @classmethod
    def discover(cls, git_dir: str | None = None) -> "Repository":
        """Resolve the git directory: explicit path, then $MINIGIT_DIR, then ./.git."""
        if git_dir:
            return cls(Path(git_dir).resolve())
        env = os.environ.get(GIT_DIR_ENV)
        if env:
            return cls(Path(env).resolve())
        return cls(Path.cwd() / GIT_DIR_NAME)

    @property
    def worktree(self) -> Path:
        return self.git_dir.parent

    def is_initialized(self) -> bool:
        return self.objects.objects_dir.is_dir()

    def init(self) -> None:
        """Create the git directory layout. Refuses an existing directory."""
        self.git_dir.mkdir(parents=True)
        self.objects.objects_dir.mkdir()
        (self.git_dir / "refs" / "heads").mkdir(parents=True)
        (self.git_dir / "HEAD").write_text(f"ref: {DEFAULT_BRANCH}\n")

    def head_ref(self) -> str | None:
        """Return the ref HEAD points at, or None when HEAD is detached."""
        head = (self.git_dir / "HEAD").read_text().strip()
        if head.startswith("ref: "):
            return head[len("ref: "):].strip()
        return None

    def read_ref(self, ref: str) -> str | None:
        ref_path = self.git_dir / ref
        if not ref_path.exists():
            return None
        return ref_path.read_text().strip() or None

    def update_ref(self, ref: str, obj_hash: str) -> None:
        ref_path = self.git_dir / ref
        ref_path.parent.mkdir(parents=True, exist_ok=True)
        ref_path.write_text(obj_hash + "\n")
