"""CLI for the GitHub repository agent."""

import json
import logging
from pathlib import Path, PurePosixPath
from typing import Any, Callable

import click
import httpx

from .agent import RepositoryAgent, encode_content
from .config import ClientConfig
from .errors import GitHubAgentError
from .models import BlobFile, FileTreeEntry

logger = logging.getLogger(__name__)


def setup_logging(verbose: int) -> None:
    """Setup logging."""
    level = logging.DEBUG if verbose >= 2 else logging.INFO if verbose == 1 else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def echo_json(data: Any) -> None:
    click.echo(json.dumps(data, ensure_ascii=False, indent=2))


def get_agent(ctx: click.Context) -> RepositoryAgent:
    """Build the agent on first use so commands without API access skip config."""
    obj = ctx.find_root().obj
    if "agent" not in obj:
        try:
            config = ClientConfig.from_env(**obj["settings"])
        except GitHubAgentError as e:
            raise click.ClickException(str(e)) from e
        obj["agent"] = RepositoryAgent(config)
    return obj["agent"]


def run(fn: Callable[[], Any]) -> Any:
    """Run an agent call, turning API and network failures into CLI errors."""
    try:
        return fn()
    except GitHubAgentError as e:
        body = getattr(e, "body", None)
        if body:
            logger.debug("Error body: %s", body)
        raise click.ClickException(str(e)) from e
    except httpx.HTTPError as e:
        raise click.ClickException(f"Network error: {e}") from e


def read_content(content: str | None, from_file: str | None) -> str | bytes:
    if from_file:
        return Path(from_file).read_bytes()
    if content is None:
        raise click.UsageError("Either --content or --from-file is required")
    return content


# ============ CLI Group ============

@click.group()
@click.option("--owner", envvar="GITHUB_OWNER", help="Repository owner")
@click.option("--repository", envvar="GITHUB_REPOSITORY", help="Repository name (or owner/name)")
@click.option("--token", envvar="GITHUB_TOKEN", help="GitHub token")
@click.option("--use-gh-cli", is_flag=True, help="Use gh cli credentials")
@click.option("--host", help="API host")
@click.option("--port", type=int, help="API port")
@click.option("--retries", "-r", type=int, default=1, show_default=True, help="Attempts on network errors")
@click.option("-v", "--verbose", count=True, help="Verbosity (-v, -vv)")
@click.pass_context
def cli(
    ctx: click.Context,
    owner: str | None,
    repository: str | None,
    token: str | None,
    use_gh_cli: bool,
    host: str | None,
    port: int | None,
    retries: int,
    verbose: int,
) -> None:
    """GitHub repository automation CLI."""
    setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = {
        "token": token,
        "use_gh_cli": use_gh_cli,
        "owner": owner,
        "repository": repository,
        "host": host,
        "port": port,
        "max_retries": retries,
        "logs": verbose >= 1,
    }


# ============ Branches ============

@cli.command("create-branch")
@click.argument("name")
@click.option("-s", "--source", default="master", show_default=True, help="Branch to start from")
@click.pass_context
def create_branch(ctx, name, source):
    """Create a branch at the head of another one."""
    agent = get_agent(ctx)
    response = run(lambda: agent.create_branch(name, source=source))
    if response.status_code != 201:
        click.echo(f"Branch not created (HTTP {response.status_code})", err=True)
    echo_json(response.body)


@cli.command("current-branch")
def current_branch():
    """Print the branch being built."""
    click.echo(run(RepositoryAgent.get_current_branch))


# ============ Files ============

@cli.command("create-file")
@click.argument("path")
@click.option("-m", "--message", required=True, help="Commit message")
@click.option("-b", "--branch", help="Target branch")
@click.option("-c", "--content", help="File content")
@click.option("-f", "--from-file", type=click.Path(exists=True, dir_okay=False), help="Read content from a local file")
@click.pass_context
def create_file(ctx, path, message, branch, content, from_file):
    """Create a file in the repository."""
    data = read_content(content, from_file)
    agent = get_agent(ctx)
    echo_json(run(lambda: agent.create_file(data, path, message, branch=branch)))


@cli.command("update-file")
@click.argument("path")
@click.option("-m", "--message", required=True, help="Commit message")
@click.option("-b", "--branch", help="Target branch")
@click.option("-c", "--content", help="File content")
@click.option("-f", "--from-file", type=click.Path(exists=True, dir_okay=False), help="Read content from a local file")
@click.pass_context
def update_file(ctx, path, message, branch, content, from_file):
    """Replace an existing file in the repository."""
    data = read_content(content, from_file)
    agent = get_agent(ctx)
    echo_json(run(lambda: agent.update_file(data, path, message, branch=branch)))


@cli.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("-b", "--branch", default="master", show_default=True)
@click.option("-m", "--message", default="Automated commit.", show_default=True)
@click.pass_context
def push(ctx, files, branch, message):
    """
    Commit local files to a branch in a single commit.

    Paths are used as given and must be relative to the repository root,
    without "..". Binary files are uploaded as blobs first.
    """
    agent = get_agent(ctx)
    entries: list[FileTreeEntry] = []
    binaries: list[BlobFile] = []

    for name in files:
        repo_path = Path(name).as_posix()
        if Path(name).is_absolute() or ".." in PurePosixPath(repo_path).parts:
            raise click.BadParameter(f"{name} is not relative to the repository root", param_hint="FILES")
        raw = Path(name).read_bytes()
        try:
            entries.append(FileTreeEntry(path=repo_path, content=raw.decode("utf-8")))
        except UnicodeDecodeError:
            binaries.append(BlobFile(path=repo_path, content=encode_content(raw), encoding="base64"))

    if binaries:
        blobs = run(lambda: agent.create_blobs(binaries))
        entries.extend(FileTreeEntry(path=blob.path, sha=blob.sha) for blob in blobs)

    echo_json(run(lambda: agent.push_files(entries, branch=branch, message=message)))


# ============ Tags & releases ============

@cli.command()
@click.argument("tag")
@click.option("-b", "--branch", required=True, help="Branch to tag")
@click.option("-m", "--message", help="Tag message (defaults to the tag)")
@click.pass_context
def tag(ctx, tag, branch, message):
    """Tag the head of a branch."""
    agent = get_agent(ctx)
    echo_json(run(lambda: agent.tag_head(tag, branch, message=message)))


@cli.command("upload-release")
@click.argument("tag_name")
@click.argument("zip_path", type=click.Path(exists=True, dir_okay=False))
@click.option("-n", "--name", help="Release title")
@click.option("--body", help="Release notes")
@click.option("--prerelease", is_flag=True, help="Mark as pre-release")
@click.option("--asset-name", help="Asset name (defaults to the file name)")
@click.pass_context
def upload_release(ctx, tag_name, zip_path, name, body, prerelease, asset_name):
    """Create a release and upload a zip archive to it."""
    agent = get_agent(ctx)
    asset = run(
        lambda: agent.upload_release(
            tag_name,
            zip_path,
            zip_name=asset_name,
            name=name,
            body=body,
            prerelease=prerelease,
        )
    )
    echo_json(asset)


@cli.command()
@click.pass_context
def releases(ctx):
    """List releases."""
    agent = get_agent(ctx)
    for release in run(agent.get_releases):
        click.echo(f"{release['tag_name']}\t{release.get('name') or ''}")


# ============ Milestones & issues ============

@cli.command()
@click.option("-s", "--state", type=click.Choice(["open", "closed", "all"]), help="State filter")
@click.pass_context
def milestones(ctx, state):
    """List milestones."""
    agent = get_agent(ctx)
    for milestone in run(lambda: agent.get_milestones(state=state)):
        click.echo(f"#{milestone['number']}\t{milestone['state']}\t{milestone['title']}")


@cli.command("close-milestone")
@click.argument("number", type=int)
@click.pass_context
def close_milestone(ctx, number):
    """Close a milestone by number."""
    agent = get_agent(ctx)
    milestone = run(lambda: agent.close_milestone(number))
    click.echo(f"Closed milestone #{milestone['number']}: {milestone['title']}")


@cli.command()
@click.option("-s", "--state", type=click.Choice(["open", "closed", "all"]), help="State filter")
@click.option("--milestone", help="Milestone number, '*' or 'none'")
@click.pass_context
def issues(ctx, state, milestone):
    """List issues."""
    agent = get_agent(ctx)
    for issue in run(lambda: agent.get_issues(state=state, milestone=milestone)):
        click.echo(f"#{issue['number']}\t{issue['state']}\t{issue['title']}")


if __name__ == "__main__":
    cli()
