"""Upload command for stashctl."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import click
from rich.live import Live

from stashctl.cli.common import Context, ExitCode, global_options, handle_errors, require_auth
from stashctl.core.client import StashClient
from stashctl.core.config import Profile
from stashctl.core.exceptions import SessionExpiredError
from stashctl.core.output import (
    OutputFormat,
    build_task_table,
    console,
    format_file_size,
    print_error,
    print_info,
    print_json,
    print_success,
    print_warning,
)
from stashctl.core.validation import validate_folder_id
from stashctl.models.base import Announcement
from stashctl.models.progress import TaskSnapshot, UploadSummary
from stashctl.services.site import SiteService
from stashctl.services.uploads import UploadService

LIVE_REFRESH_PER_SECOND = 8


def _show_announcement(announcement: Announcement) -> None:
    if not announcement.enabled or not announcement.message:
        return
    if announcement.type in ("warning", "error"):
        print_warning(announcement.message)
    else:
        print_info(announcement.message)


async def _run_upload(
    client: StashClient,
    profile: Profile,
    files: list[Path],
    *,
    folder_id: Optional[str],
    compress: bool,
    recursive: bool,
    live: bool,
) -> UploadSummary:
    async with client:
        site = SiteService(client)
        _show_announcement(await site.get_announcement())

        identity = await client.get_user()
        if identity is None:
            raise SessionExpiredError(client.base_url)
        await site.ensure_uploads_allowed(identity)

        service = UploadService(
            client,
            max_image_dimension=profile.max_image_dimension,
            max_image_size_bytes=profile.max_image_size_bytes,
        )

        if not live:
            return await service.upload_files(
                files,
                folder_id=folder_id,
                compress=compress,
                recursive=recursive,
            )

        tasks: dict[str, TaskSnapshot] = {}
        with Live(
            build_task_table([]),
            console=console,
            refresh_per_second=LIVE_REFRESH_PER_SECOND,
        ) as view:

            def on_update(snapshot: TaskSnapshot) -> None:
                tasks[snapshot.id] = snapshot
                view.update(build_task_table(list(tasks.values())))

            return await service.upload_files(
                files,
                folder_id=folder_id,
                compress=compress,
                recursive=recursive,
                on_update=on_update,
            )


@click.command("upload")
@click.argument(
    "files",
    nargs=-1,
    required=True,
    type=click.Path(exists=True, path_type=Path),
)
@click.option("--folder", "folder_id", default=None, help="Target folder ID")
@click.option("--no-compress", is_flag=True, help="Upload images without compressing them")
@click.option("--recursive", "-r", is_flag=True, help="Descend into subdirectories")
@global_options
@handle_errors
@require_auth
def upload(
    ctx: Context,
    files: tuple[Path, ...],
    folder_id: Optional[str],
    no_compress: bool,
    recursive: bool,
) -> None:
    """Upload files one at a time with live progress.

    Images are downscaled and recompressed before transfer unless
    --no-compress is given or the profile disables it.

    Example:
        stashctl upload photo.jpg report.pdf
        stashctl upload ./scans --folder 3f0c... -r
        stashctl upload *.png -o json
    """
    profile = ctx.get_profile()
    folder_id = folder_id or profile.default_folder
    if folder_id:
        folder_id = validate_folder_id(folder_id)

    compress = profile.compress_images and not no_compress
    live = ctx.output_format == OutputFormat.TABLE and not ctx.quiet

    try:
        summary = asyncio.run(
            _run_upload(
                ctx.get_client(),
                profile,
                list(files),
                folder_id=folder_id,
                compress=compress,
                recursive=recursive,
                live=live,
            )
        )
    except KeyboardInterrupt:
        print_warning("Upload cancelled")
        raise SystemExit(ExitCode.USER_CANCELLED)

    if ctx.output_format == OutputFormat.JSON:
        print_json(
            {
                "success": summary.success,
                "total": summary.total,
                "succeeded": summary.succeeded,
                "failed": summary.failed,
                "duration": round(summary.duration, 2),
                "total_bytes": summary.total_bytes,
                "uploaded_bytes": summary.uploaded_bytes,
                "throughput_mbps": round(summary.throughput_mbps, 3),
                "tasks": [t.to_dict() for t in summary.tasks],
            }
        )
    elif ctx.quiet:
        for task in summary.tasks:
            if task.storage_path:
                click.echo(task.storage_path)
    else:
        if summary.total == 0:
            print_warning("No files to upload")
        elif summary.failed == 0:
            print_success(
                f"Uploaded {summary.succeeded} {'file' if summary.succeeded == 1 else 'files'} "
                f"({format_file_size(summary.uploaded_bytes)}) in {summary.duration:.1f}s"
            )
        if summary.saved_bytes > 0:
            click.echo(f"Compression saved {format_file_size(summary.saved_bytes)}")
        for error in summary.errors:
            print_error(error)

    if summary.failed:
        raise SystemExit(ExitCode.GENERAL_ERROR)
