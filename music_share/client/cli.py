"""命令行客户端

驱动上传视图和分享视图：上传文件得到分享链接、
查看链接对应的文件，以及打开强制下载地址
"""

import asyncio
import sys

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from music_share.core.config import ClientSettings

from .api import MusicShareClient
from .views import Idle, Missing, Ready, Selected, Shared, ShareView, UploadView

console = Console()


def _share_view(client: MusicShareClient, link: str, opener=None) -> ShareView:
    """根据完整分享链接、/share/<id> 路径或单独的ID创建分享视图"""
    if "/" not in link:
        link = f"/share/{link}"
    kwargs = {"alert": lambda message: console.print(f"[bold red]{message}[/bold red]")}
    if opener is not None:
        kwargs["opener"] = opener
    try:
        return ShareView.from_path(client, link, **kwargs)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="LINK")


@click.group()
@click.version_option(version="1.0.0")
@click.option("--api", "api_base_url", envvar="MUSIC_SHARE_API_BASE_URL", help="服务端API地址")
@click.option("--origin", "client_origin", envvar="MUSIC_SHARE_CLIENT_ORIGIN", help="分享链接使用的站点地址")
@click.pass_context
def cli(ctx, api_base_url, client_origin):
    """
    🎵 音乐分享

    上传音频文件并分享链接
    """
    settings = ClientSettings()
    ctx.obj = {
        "api_base_url": api_base_url or settings.api_base_url,
        "client_origin": client_origin or settings.client_origin,
        "timeout": settings.timeout,
    }


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--type", "media_type", help="上报的媒体类型，默认根据文件名推断")
@click.pass_obj
def upload(obj, file, media_type):
    """上传FILE并输出分享链接"""

    async def run() -> int:
        async with MusicShareClient(obj["api_base_url"], timeout=obj["timeout"]) as client:
            view = UploadView(client, obj["client_origin"])
            state = view.choose(file, media_type)
            if isinstance(state, Idle):
                console.print(f"[bold red]{state.error}[/bold red]")
                return 1

            with console.status(f"Uploading {state.file.name}..."):
                state = await view.upload()
            await view.close()

        if isinstance(state, Shared):
            console.print(Panel.fit(
                f"[bold green]Upload Successful! 🎉[/bold green]\n\n{state.link}",
                border_style="green"
            ))
            return 0

        error = state.error if isinstance(state, Selected) else None
        console.print(f"[bold red]{error or 'Upload failed.'}[/bold red]")
        return 1

    sys.exit(asyncio.run(run()))


@cli.command()
@click.argument("link")
@click.pass_obj
def show(obj, link):
    """显示分享链接LINK对应的文件信息"""

    async def run() -> int:
        async with MusicShareClient(obj["api_base_url"], timeout=obj["timeout"]) as client:
            view = _share_view(client, link)
            with console.status("Loading file info..."):
                state = await view.load()

        if isinstance(state, Missing):
            console.print(f"[bold red]{state.reason}[/bold red]")
            return 1

        table = Table(title="🎵 Shared file", show_header=False)
        table.add_row("Name", state.info.filename)
        table.add_row("Size", state.info.size_label)
        table.add_row("Type", state.info.content_type or "-")
        if state.info.created_at:
            table.add_row("Uploaded", state.info.created_at.strftime("%Y-%m-%d %H:%M"))
        console.print(table)
        return 0

    sys.exit(asyncio.run(run()))


@cli.command()
@click.argument("link")
@click.option("--print-only", is_flag=True, help="只输出下载地址，不打开浏览器")
@click.pass_obj
def download(obj, link, print_only):
    """打开分享链接LINK的强制下载地址"""

    async def run() -> int:
        opener = (lambda url: console.print(url)) if print_only else None
        async with MusicShareClient(obj["api_base_url"], timeout=obj["timeout"]) as client:
            view = _share_view(client, link, opener=opener)
            state = await view.load()
            if not isinstance(state, Ready):
                console.print(f"[bold red]{state.reason}[/bold red]")
                return 1
            url = await view.download()

        if url and not print_only:
            console.print(f"Downloading [cyan]{state.info.filename}[/cyan] in your browser")
        return 0 if url else 1

    sys.exit(asyncio.run(run()))


if __name__ == "__main__":
    cli()
