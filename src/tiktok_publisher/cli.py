"""Command-line interface using Typer."""

import webbrowser
from datetime import timedelta
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from tiktok_publisher import __version__
from tiktok_publisher.auth import TikTokAuthClient, callback_port, wait_for_callback
from tiktok_publisher.config import get_settings
from tiktok_publisher.domain.enums import PrivacyLevel
from tiktok_publisher.domain.models import PublishRequest
from tiktok_publisher.errors import TikTokError
from tiktok_publisher.logging import setup_logging
from tiktok_publisher.messages import describe_error, describe_result
from tiktok_publisher.orchestrator import PublishOrchestrator
from tiktok_publisher.publish import TikTokPublishClient
from tiktok_publisher.session import TikTokSession
from tiktok_publisher.storage import CredentialStore
from tiktok_publisher.utils.async_utils import run_async

app = typer.Typer(
    name="tiktok-publisher",
    help="Log in to TikTok and publish videos by URL",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"TikTok Publisher v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    verbose: bool = typer.Option(False, "--verbose", help="Log at DEBUG level."),
) -> None:
    """TikTok Publisher - OAuth login and pull-by-URL publishing."""
    setup_logging("DEBUG" if verbose else None)


def _build_session() -> TikTokSession:
    settings = get_settings()
    return TikTokSession(
        store=CredentialStore.from_settings(),
        auth_client=TikTokAuthClient.from_settings(),
        redirect_uri=settings.tiktok_redirect_uri,
        scopes=settings.tiktok_scopes,
        refresh_margin=timedelta(seconds=settings.token_refresh_margin_seconds),
    )


def _fail(error: Exception) -> None:
    console.print(f"[bold red]✗ {describe_error(error)}[/bold red]")
    raise typer.Exit(code=1)


@app.command()
def login(
    port: Optional[int] = typer.Option(
        None,
        "--port",
        "-p",
        help="Local port for the OAuth callback (defaults to the redirect URI's port)",
    ),
    no_browser: bool = typer.Option(False, "--no-browser", help="Only print the login URL"),
) -> None:
    """Log in to TikTok through the browser consent screen."""
    settings = get_settings()
    redirect_port = callback_port(settings.tiktok_redirect_uri)
    if port is not None and port != redirect_port:
        console.print(
            f"[bold red]✗ Port {port} does not match the redirect URI "
            f"{settings.tiktok_redirect_uri}[/bold red]"
        )
        raise typer.Exit(code=1)

    async def _complete_login(session: TikTokSession, code: str):
        try:
            return await session.complete_login(code)
        finally:
            await session.auth_client.aclose()

    try:
        session = _build_session()
        request = session.begin_login()
        console.print("\n[bold blue]Opening browser for TikTok authorization...[/bold blue]")
        console.print(f"If the browser doesn't open, go to:\n{request.url}\n")
        if not no_browser:
            webbrowser.open(request.url)

        console.print(f"[dim]Waiting for callback on port {redirect_port}...[/dim]")
        code = wait_for_callback(request.state, port=redirect_port)
        token = run_async(_complete_login(session, code))
    except TikTokError as e:
        _fail(e)

    console.print("[bold green]✓ Logged in to TikTok[/bold green]")
    if token.scope:
        console.print(f"[dim]Granted scopes: {token.scope}[/dim]")


@app.command()
def logout() -> None:
    """Revoke the stored access token and forget it."""

    async def _logout() -> bool:
        session = _build_session()
        try:
            return await session.logout()
        finally:
            await session.auth_client.aclose()

    try:
        revoked = run_async(_logout())
    except TikTokError as e:
        _fail(e)

    if revoked:
        console.print("[bold green]✓ Successfully logged out from TikTok![/bold green]")
    else:
        console.print("[yellow]No access token found. You are not logged in to TikTok.[/yellow]")


@app.command()
def status() -> None:
    """Show whether a valid access token is stored."""
    credential = CredentialStore.from_settings().get_credential()
    if credential is None:
        console.print("[yellow]Not logged in[/yellow]")
        raise typer.Exit(code=1)

    table = Table(title="TikTok Credential")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Access token", "present")
    table.add_row("Expires at", credential.expires_at.isoformat())
    table.add_row("Refresh token", "present" if credential.refresh_token else "missing")
    console.print(table)


@app.command()
def refresh() -> None:
    """Refresh the stored access token now."""

    async def _refresh() -> None:
        session = _build_session()
        try:
            await session.refresh()
        finally:
            await session.auth_client.aclose()

    try:
        run_async(_refresh())
    except TikTokError as e:
        _fail(e)
    console.print("[bold green]✓ Access token refreshed[/bold green]")


@app.command()
def whoami() -> None:
    """Show the logged-in user and their posting capabilities."""

    async def _whoami():
        session = _build_session()
        try:
            access_token = await session.ensure_access_token()
            user = await session.auth_client.get_user_info(access_token)
            creator = await session.auth_client.get_creator_info(access_token)
        finally:
            await session.auth_client.aclose()
        return user, creator

    try:
        user, creator = run_async(_whoami())
    except TikTokError as e:
        _fail(e)

    table = Table(title="TikTok Account")
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Display name", user.display_name or creator.display_name or "-")
    table.add_row("Username", creator.username or "-")
    table.add_row("Open ID", user.open_id or "-")
    table.add_row(
        "Privacy levels",
        ", ".join(level.label for level in creator.privacy_level_options) or "none",
    )
    table.add_row("Max video duration", f"{creator.max_video_post_duration_sec}s")
    table.add_row("Comments", "disabled" if creator.comment_disabled else "allowed")
    table.add_row("Duet", "disabled" if creator.duet_disabled else "allowed")
    table.add_row("Stitch", "disabled" if creator.stitch_disabled else "allowed")
    console.print(table)


@app.command()
def publish(
    video_url: str = typer.Argument(..., help="Public URL of a video on a verified domain"),
    title: str = typer.Option("", "--title", "-t", help="Video caption"),
    privacy: Optional[str] = typer.Option(
        None,
        "--privacy",
        help="PUBLIC, FRIENDS, FOLLOWERS or PRIVATE (or the TikTok value)",
    ),
    duration: Optional[float] = typer.Option(
        None, "--duration", "-d", help="Video duration in seconds, checked against your limit"
    ),
    no_comment: bool = typer.Option(False, "--no-comment", help="Disable comments"),
    no_duet: bool = typer.Option(False, "--no-duet", help="Disable duets"),
    no_stitch: bool = typer.Option(False, "--no-stitch", help="Disable stitches"),
    disclose: bool = typer.Option(False, "--disclose", help="Disclose commercial content"),
    your_brand: bool = typer.Option(False, "--your-brand", help="Promotes your own brand"),
    branded_content: bool = typer.Option(
        False, "--branded-content", help="Promotes a third party (paid partnership)"
    ),
    cover_ms: int = typer.Option(1000, "--cover-ms", help="Cover frame timestamp in ms"),
    max_attempts: Optional[int] = typer.Option(None, "--max-attempts", help="Status checks"),
    poll_interval: Optional[float] = typer.Option(
        None, "--poll-interval", help="Seconds between status checks"
    ),
) -> None:
    """Publish a video to TikTok by URL and wait for the result."""
    settings = get_settings()

    try:
        privacy_level = PrivacyLevel.parse(privacy) if privacy else None
    except ValueError as e:
        console.print(f"[bold red]✗ {e}[/bold red]")
        raise typer.Exit(code=1)

    request = PublishRequest(
        title=title,
        source_video_url=video_url,
        privacy_level=privacy_level,
        disable_comment=no_comment,
        disable_duet=no_duet,
        disable_stitch=no_stitch,
        commercial_disclosure=disclose,
        brand_organic=disclose and your_brand,
        branded_content=disclose and branded_content,
        video_cover_timestamp_ms=cover_ms,
    )

    async def _publish():
        session = _build_session()
        try:
            access_token = await session.ensure_access_token()
            creator = await session.auth_client.get_creator_info(access_token)
        finally:
            await session.auth_client.aclose()

        async with TikTokPublishClient(access_token, timeout=settings.http_timeout) as client:
            orchestrator = PublishOrchestrator(
                client,
                max_attempts=max_attempts or settings.publish_max_attempts,
                poll_interval=(
                    poll_interval if poll_interval is not None else settings.publish_poll_interval
                ),
            )
            console.print("[bold blue]Publishing video... Please wait.[/bold blue]")
            return await orchestrator.run(request, creator, duration)

    try:
        result = run_async(_publish())
    except TikTokError as e:
        _fail(e)

    for notice in result.notices:
        console.print(f"[yellow]{notice}[/yellow]")

    if result.succeeded:
        console.print(f"[bold green]✓ {describe_result(result)}[/bold green]")
        console.print(f"[dim]Publish ID: {result.job.publish_id}[/dim]")
    else:
        console.print(f"[bold red]✗ {describe_result(result)}[/bold red]")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
