"""minigit CLI: plumbing commands on top of the object store."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape

from minigit.codec import CHUNK_SIZE, Kind, NullSink
from minigit.commit import write_commit
from minigit.errors import StoreError
from minigit.objects import Object
from minigit.repository import GIT_DIR_NAME, Repository
from minigit.tree import encode_tree, format_entry, parse_tree, write_tree_for

app = typer.Typer(
    name="minigit",
    help="minigit: content-addressed object store with git-compatible records",
    no_args_is_help=True,
)
console = Console()

log = logging.getLogger("minigit.cli")


@app.callback()
def main(
    ctx: typer.Context,
    git_dir: str = typer.Option(
        None, "--git-dir", help="Git directory (default: $MINIGIT_DIR or ./.git)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
) -> None:
    log_level = logging.DEBUG if debug else logging.WARNING
    logging.basicConfig(level=log_level, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    ctx.obj = Repository.discover(git_dir)


@contextmanager
def _reporting_errors() -> Iterator[None]:
    try:
        yield
    except StoreError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1)


def _require_repo(ctx: typer.Context) -> Repository:
    repo: Repository = ctx.obj
    if not repo.is_initialized():
        console.print(f"[red]Error:[/red] not a minigit repository: {escape(str(repo.git_dir))}")
        raise typer.Exit(1)
    return repo


def _expect_kind(repo: Repository, obj_hash: str, kind: Kind) -> None:
    with repo.objects.read_object_sync(obj_hash) as obj:
        if obj.kind is not kind:
            console.print(f"[red]Error:[/red] {obj_hash} is a {obj.kind}, not a {kind}")
            raise typer.Exit(1)


@app.command()
def init(
    ctx: typer.Context,
    path: str = typer.Argument(None, help="Directory to create the repository in"),
) -> None:
    """Create an empty repository."""
    repo = Repository(Path(path).resolve() / GIT_DIR_NAME) if path else ctx.obj
    try:
        repo.init()
    except FileExistsError:
        console.print(f"[red]Error:[/red] already exists: {escape(str(repo.git_dir))}")
        raise typer.Exit(1)
    console.print(f"Initialized git directory in [bold]{escape(str(repo.git_dir))}[/bold]")


@app.command("cat-file")
def cat_file(
    ctx: typer.Context,
    obj_hash: str = typer.Argument(..., metavar="OBJECT", help="Object hash"),
    pretty_print: bool = typer.Option(False, "-p", help="Pretty-print the payload"),
    show_type: bool = typer.Option(False, "-t", help="Show the object kind"),
    show_size: bool = typer.Option(False, "-s", help="Show the payload size"),
) -> None:
    """Show the contents, kind or size of a stored object."""
    if pretty_print + show_type + show_size != 1:
        console.print("[red]Error:[/red] exactly one of -p, -t, -s is required")
        raise typer.Exit(2)
    repo = _require_repo(ctx)

    with _reporting_errors(), repo.objects.read_object_sync(obj_hash) as obj:
        if show_type:
            typer.echo(str(obj.kind))
        elif show_size:
            typer.echo(str(obj.expected_size))
        elif obj.kind is Kind.TREE:
            for entry in parse_tree(obj.read_all()):
                typer.echo(format_entry(entry))
        else:
            out = typer.get_binary_stream("stdout")
            while True:
                chunk = obj.reader.read(CHUNK_SIZE)
                if not chunk:
                    break
                out.write(chunk)
            out.flush()


@app.command("hash-object")
def hash_object(
    ctx: typer.Context,
    file: str = typer.Argument(..., help="File to hash as a blob"),
    write: bool = typer.Option(False, "-w", help="Also write the object into the store"),
) -> None:
    """Compute the blob hash of a file, optionally storing it."""
    repo = _require_repo(ctx) if write else ctx.obj
    with _reporting_errors(), Object.blob_from_file(file) as obj:
        digest = obj.write_to_store(repo.objects) if write else obj.write(NullSink())
    typer.echo(digest.hex())


@app.command("ls-tree")
def ls_tree(
    ctx: typer.Context,
    tree_hash: str = typer.Argument(..., metavar="TREE", help="Tree object hash"),
    name_only: bool = typer.Option(False, "--name-only", help="List only entry names"),
) -> None:
    """List the entries of a tree object."""
    repo = _require_repo(ctx)
    with _reporting_errors(), repo.objects.read_object_sync(tree_hash) as obj:
        if obj.kind is not Kind.TREE:
            console.print(f"[red]Error:[/red] {tree_hash} is not a tree object")
            raise typer.Exit(1)
        entries = parse_tree(obj.read_all())
    for entry in entries:
        typer.echo(format_entry(entry, name_only))


@app.command("write-tree")
def write_tree(ctx: typer.Context) -> None:
    """Store the worktree as tree objects and print the root tree hash."""
    repo = _require_repo(ctx)
    with _reporting_errors():
        digest = write_tree_for(repo.worktree, repo.objects, frozenset({repo.git_dir.name}))
        if digest is None:
            digest = Object.from_bytes(Kind.TREE, encode_tree([])).write_to_store(repo.objects)
    typer.echo(digest.hex())


@app.command("commit-tree")
def commit_tree(
    ctx: typer.Context,
    tree_hash: str = typer.Argument(..., metavar="TREE", help="Tree object hash"),
    message: str = typer.Option(..., "-m", help="Commit message"),
    parent_hash: str = typer.Option(None, "-p", help="Parent commit hash"),
) -> None:
    """Create a commit object for a tree."""
    repo = _require_repo(ctx)
    with _reporting_errors():
        _expect_kind(repo, tree_hash, Kind.TREE)
        if parent_hash:
            _expect_kind(repo, parent_hash, Kind.COMMIT)
        digest = write_commit(repo.objects, tree_hash, parent_hash, message)
    typer.echo(digest.hex())


@app.command()
def commit(
    ctx: typer.Context,
    message: str = typer.Option(..., "-m", help="Commit message"),
) -> None:
    """Commit the worktree onto the branch HEAD points at."""
    repo = _require_repo(ctx)
    head_ref = repo.head_ref()
    if head_ref is None:
        console.print("[red]Error:[/red] refusing to commit onto detached HEAD")
        raise typer.Exit(1)
    parent_hash = repo.read_ref(head_ref)

    with _reporting_errors():
        tree_digest = write_tree_for(repo.worktree, repo.objects, frozenset({repo.git_dir.name}))
        if tree_digest is None:
            console.print("[yellow]Not committing empty tree[/yellow]")
            return
        commit_hash = write_commit(repo.objects, tree_digest.hex(), parent_hash, message).hex()

    repo.update_ref(head_ref, commit_hash)
    log.debug("%s advanced to %s", head_ref, commit_hash)
    console.print(f"HEAD is now at {commit_hash}")


if __name__ == "__main__":
    app()
