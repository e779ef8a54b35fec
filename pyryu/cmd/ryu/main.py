"""CLI entry point."""

import os
import sys
import click
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple
from click import Context

from ...auth import setup_instructions
from ...config import Config, default_config
from ...config.config_parser import parse_config
from ...errors import RemoteNotFound, RyuError
from ...git import RealGit
from ...platform import PlatformService, create_platform_service
from ...platform.detection import parse_repo_info
from ...pretty import print_report, print_stacks
from ...ryu import StackSubmitter
from ...submit.plan import SubmitOptions
from ...typing import Plan, Platform, PlatformConfig, Stack, SubmissionReport

# Get module logger
logger = logging.getLogger(__name__)

def check(err: Exception) -> None:
    """Log error and exit."""
    logger.error(f"{err}")
    sys.exit(1)

class AliasedGroup(click.Group):
    """Command group with support for aliases."""

    def __init__(self, name: Optional[str] = None, commands: Optional[Dict[str, click.Command]] = None, **attrs: Any) -> None:
        """Initialize with aliases map."""
        super().__init__(name, commands, **attrs)
        self.aliases: Dict[str, str] = {}

    def add_alias(self, alias: str, command: str) -> None:
        """Add an alias for a command."""
        self.aliases[alias] = command

    def get_command(self, ctx: Context, cmd_name: str) -> Optional[click.Command]:
        """Get a command by name, supporting aliases."""
        if cmd_name in self.aliases:
            cmd_name = self.aliases[cmd_name]
        return super().get_command(ctx, cmd_name)

@dataclass
class Repo:
    """Everything a command needs to know about the repository it runs in."""
    config: Config
    git_cmd: RealGit
    platform: PlatformService
    remote: str
    trunk: str
    trunk_ref: str

def load_repo(directory: Optional[str] = None, remote: Optional[str] = None) -> Repo:
    """Setup git, config and the hosting platform for the repository."""
    if directory:
        os.chdir(directory)

    root = RealGit(default_config()).root
    config = Config(parse_config(root))
    if remote:
        config.repo.remote = remote
    git_cmd = RealGit(config, root)

    remote_name = config.repo.remote
    url = git_cmd.remote_url(remote_name)
    if url is None:
        raise RemoteNotFound(remote_name, [r.name for r in git_cmd.remotes()])
    platform = create_platform_service(parse_repo_info(url))
    logger.debug(f"Using {platform.name} repository {platform.config.full_name}")

    trunk = config.repo.trunk or git_cmd.default_trunk(remote_name)
    trunk_ref = git_cmd.trunk_ref(remote_name, trunk)
    return Repo(config, git_cmd, platform, remote_name, trunk, trunk_ref)

def prompt_selection(stack: Stack) -> List[str]:
    """Ask which bookmarks of the stack to submit."""
    names = stack.names()
    click.echo("Bookmarks in stack (trunk first):")
    for i, name in enumerate(names, start=1):
        click.echo(f"  {i}. {name}")
    answer = click.prompt("Bookmarks to submit (numbers, comma separated)",
                          default=",".join(str(i) for i in range(1, len(names) + 1)))
    chosen: List[str] = []
    for part in answer.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit() or not 1 <= int(part) <= len(names):
            raise click.BadParameter(f"'{part}' is not a number between 1 and {len(names)}")
        chosen.append(names[int(part) - 1])
    return chosen

def confirm_plans(plans: Sequence[Plan]) -> bool:
    return click.confirm("Proceed with these changes?", default=False)

def make_submitter(repo: Repo) -> StackSubmitter:
    return StackSubmitter(repo.config, repo.git_cmd, repo.platform, repo.trunk,
                          trunk_ref=repo.trunk_ref, remote=repo.remote,
                          selector=prompt_selection, confirmer=confirm_plans)

def inherited(ctx: Context, directory: Optional[str], remote: Optional[str], verbose: int) -> Tuple[Optional[str], Optional[str], int]:
    """Fill in options given before the command name, e.g. `ryu --remote upstream submit`."""
    obj = ctx.obj or {}
    return directory or obj.get("directory"), remote or obj.get("remote"), verbose or obj.get("verbose", 0)

def finish(report: SubmissionReport, platform: PlatformService, options: SubmitOptions) -> None:
    if options.dry_run:
        return
    if report.completed():
        print_report(report, platform.reference_prefix)
    if not report.success:
        sys.exit(1)

@click.group(cls=AliasedGroup, invoke_without_command=True)
@click.option('-C', '--directory', type=click.Path(exists=True, file_okay=False, dir_okay=True),
              help='Run as if ryu was started in DIRECTORY instead of the current working directory')
@click.option('--remote', help="Git remote to use")
@click.option('-v', '--verbose', count=True, help="Increase verbosity (can be used multiple times for more verbosity)")
@click.pass_context
def cli(ctx: Context, directory: Optional[str], remote: Optional[str], verbose: int) -> None:
    """ryu - stacked pull requests on GitHub and GitLab.

    Without a command, shows the stacks in the repository.
    """
    ctx.ensure_object(dict)
    ctx.obj.update(directory=directory, remote=remote, verbose=verbose)
    if ctx.invoked_subcommand is not None:
        return
    from ... import setup_logging
    setup_logging(verbose)
    try:
        repo = load_repo(directory, remote)
        graph = make_submitter(repo).load_graph()
    except RyuError as e:
        check(e)
        return
    print_stacks(graph)

@cli.command(name="submit", help="Push a stack of bookmarks and create or update its pull requests")
@click.argument('bookmark')
@click.option('-C', '--directory', type=click.Path(exists=True, file_okay=False, dir_okay=True),
              help='Run as if ryu was started in DIRECTORY instead of the current working directory')
@click.option('--dry-run', is_flag=True, help="Show the plan without changing anything")
@click.option('--confirm', is_flag=True, help="Show the plan and ask before changing anything")
@click.option('--upto', help="Only submit up to (and including) this bookmark")
@click.option('--only', is_flag=True, help="Only submit BOOKMARK; its parent must already have a pull request")
@click.option('--stack', 'include_descendants', is_flag=True, help="Also submit bookmarks stacked above BOOKMARK")
@click.option('--update-only', is_flag=True, help="Only update existing pull requests, never create new ones")
@click.option('--select', is_flag=True, help="Interactively choose which bookmarks to submit")
@click.option('--draft', is_flag=True, help="Create new pull requests as drafts (also repo.draft in config)")
@click.option('--publish', is_flag=True, help="Mark draft pull requests in the stack ready for review")
@click.option('--remote', help="Git remote to push to")
@click.option('-v', '--verbose', count=True, help="Increase verbosity (can be used multiple times for more verbosity)")
@click.pass_context
def submit(ctx: Context, bookmark: str, directory: Optional[str], dry_run: bool, confirm: bool, upto: Optional[str],
           only: bool, include_descendants: bool, update_only: bool, select: bool, draft: bool,
           publish: bool, remote: Optional[str], verbose: int) -> None:
    """Submit command."""
    directory, remote, verbose = inherited(ctx, directory, remote, verbose)
    from ... import setup_logging
    setup_logging(verbose)

    if dry_run and confirm:
        raise click.UsageError("--dry-run and --confirm cannot be used together")
    if only and (upto or include_descendants):
        raise click.UsageError("--only cannot be combined with --upto or --stack")

    try:
        repo = load_repo(directory, remote)
        options = SubmitOptions(
            dry_run=dry_run, confirm=confirm, update_only=update_only,
            draft=draft or repo.config.repo.draft,
            publish=publish, upto=upto, only=only, include_descendants=include_descendants,
            select=select, remote=repo.remote)
        report = make_submitter(repo).submit(bookmark, options)
    except RyuError as e:
        check(e)
        return
    finish(report, repo.platform, options)

@cli.command(name="sync", help="Reconcile every stack in the repository with its pull requests")
@click.option('-C', '--directory', type=click.Path(exists=True, file_okay=False, dir_okay=True),
              help='Run as if ryu was started in DIRECTORY instead of the current working directory')
@click.option('--dry-run', is_flag=True, help="Show the plans without changing anything")
@click.option('--confirm', is_flag=True, help="Show the plans and ask before changing anything")
@click.option('--stack', help="Only sync stacks containing this bookmark")
@click.option('--remote', help="Git remote to push to")
@click.option('-v', '--verbose', count=True, help="Increase verbosity (can be used multiple times for more verbosity)")
@click.pass_context
def sync(ctx: Context, directory: Optional[str], dry_run: bool, confirm: bool, stack: Optional[str],
         remote: Optional[str], verbose: int) -> None:
    """Sync command."""
    directory, remote, verbose = inherited(ctx, directory, remote, verbose)
    from ... import setup_logging
    setup_logging(verbose)

    if dry_run and confirm:
        raise click.UsageError("--dry-run and --confirm cannot be used together")

    try:
        repo = load_repo(directory, remote)
        options = SubmitOptions(dry_run=dry_run, confirm=confirm, stack=stack,
                                draft=repo.config.repo.draft, remote=repo.remote)
        report = make_submitter(repo).sync(options)
    except RyuError as e:
        check(e)
        return
    finish(report, repo.platform, options)

@cli.command(name="auth", help="Check or set up authentication for a platform")
@click.argument('provider', type=click.Choice(['github', 'gitlab'], case_sensitive=False))
@click.argument('action', type=click.Choice(['test', 'setup'], case_sensitive=False))
@click.option('-v', '--verbose', count=True, help="Increase verbosity (can be used multiple times for more verbosity)")
@click.pass_context
def auth(ctx: Context, provider: str, action: str, verbose: int) -> None:
    """Auth command."""
    _, _, verbose = inherited(ctx, None, None, verbose)
    from ... import setup_logging
    setup_logging(verbose)

    platform = Platform(provider.lower())
    if action.lower() == "setup":
        click.echo(setup_instructions(platform))
        return

    host_var = "GH_HOST" if platform == Platform.GITHUB else "GITLAB_HOST"
    service = create_platform_service(PlatformConfig(platform, "", "", os.environ.get(host_var)))
    try:
        user = service.whoami()
    except RyuError as e:
        check(e)
        return
    click.echo(f"Authenticated as {user}")
    click.echo(f"  Token source: {service.auth.source}")
    click.echo(f"  Host: {service.auth.host}")

def main() -> None:
    """Main entry point."""
    cli.add_alias('s', 'submit')
    cli.add_alias('up', 'sync')
    cli(obj={})

if __name__ == "__main__":
    main()
