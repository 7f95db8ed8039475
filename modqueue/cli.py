"""
CLI 模块

命令行接口实现。
"""

import asyncio
import json
from pathlib import Path

import click
import toml
import yaml
from loguru import logger

from modqueue.exceptions import ConfigParseError, ModQueueError
from modqueue.game import list_game_modes
from modqueue.logger import setup_logger
from modqueue.manager import ModManager
from modqueue.models import AppConfig


def load_config(config_path: str) -> dict:
    """加载配置文件"""
    path = Path(config_path)

    if not path.exists():
        raise click.ClickException(f"配置文件不存在: {config_path}")

    suffix = path.suffix.lower()

    try:
        if suffix == ".toml":
            return toml.load(config_path)
        elif suffix == ".json":
            return json.loads(path.read_text(encoding="utf-8"))
        elif suffix in (".yaml", ".yml"):
            return yaml.safe_load(path.read_text(encoding="utf-8"))
    except (toml.TomlDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(f"配置文件解析失败: {config_path}", context={"error": str(e)})

    raise click.ClickException(f"不支持的配置文件格式: {suffix}")


def build_manager(config_path: str) -> ModManager:
    config = AppConfig.from_dict(load_config(config_path))
    return ModManager(config)


async def run_async(config_path: str, uris: list[str]):
    """异步运行：恢复待处理获取、加入新的 URI 并等待结束"""
    manager = build_manager(config_path)
    stats = await manager.run(uris)

    by_status = stats["by_status"]
    logger.success(
        f"完成! {by_status.get('complete', 0)} 成功, "
        f"{by_status.get('failed', 0)} 失败, "
        f"{by_status.get('cancelled', 0)} 取消, "
        f"{by_status.get('paused', 0) + by_status.get('incomplete', 0)} 待续"
    )
    return stats


def _run(config_path: str, uris: list[str]):
    try:
        asyncio.run(run_async(config_path, uris))
    except ModQueueError as e:
        logger.error(f"错误: {e}")
        raise click.ClickException(str(e))


@click.group()
@click.option(
    "-c",
    "--config",
    type=click.Path(),
    default="modqueue.toml",
    show_default=True,
    help="配置文件路径",
)
@click.option("--debug", is_flag=True, help="启用调试模式")
@click.option("--log-file", type=click.Path(), help="额外写入的日志文件")
@click.version_option(version="0.1.0")
@click.pass_context
def main(ctx: click.Context, config: str, debug: bool, log_file: str):
    """ModQueue - 游戏模组获取队列"""
    setup_logger(level="DEBUG" if debug else None, log_file=log_file)
    ctx.obj = {"config": config}


@main.command()
@click.argument("uris", nargs=-1, required=True)
@click.pass_context
def add(ctx: click.Context, uris: tuple):
    """把模组加入获取队列并等待完成"""
    _run(ctx.obj["config"], list(uris))


@main.command()
@click.pass_context
def resume(ctx: click.Context):
    """恢复持久化的待处理获取"""
    _run(ctx.obj["config"], [])


@main.command()
@click.pass_context
def pending(ctx: click.Context):
    """列出待处理的获取"""
    try:
        manager = build_manager(ctx.obj["config"])
    except ModQueueError as e:
        raise click.ClickException(str(e))

    records = manager.pending()
    if not records:
        click.echo("没有待处理的获取")
        return
    click.echo(f"{manager.game_mode.name} 待处理的获取:")
    for record in records:
        status = record.descriptor.get("status", "queued")
        click.echo(f"  [{status}] {record.key}")


@main.command()
def games():
    """列出支持的游戏模式"""
    for mode in list_game_modes():
        click.echo(f"  {mode.mode_id:<10} {mode.name} ({', '.join(mode.executables)})")


if __name__ == "__main__":
    main()
