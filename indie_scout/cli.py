# === FILE: indie_scout/cli.py ===
#!/usr/bin/env python3
"""
Точка входа IndieScout для командной строки.

Команды:
  run           Обработать один батч очереди обхода
  enqueue       Поставить URL в очередь вручную
  stats         Статистика очереди
  queue         Постраничный просмотр очереди
  retry-failed  Вернуть все failed-элементы в pending
  cleanup       Удалить старые completed-элементы
  test-url      Обойти и оценить один URL без записи (dry run)
  config        Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --database PATH     SQLite-база очереди и каталога (override database)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (stderr, если не указан)
  --log-format FORMAT Формат логирования

Дополнительно:
  --version, -v       Показать версию IndieScout

Пример:
  indie-scout --database indie.db enqueue https://alice.example/ --extract-all-links
  indie-scout --database indie.db run --json reports/batch.json
"""
import sys
import json
from pathlib import Path

import click

from indie_scout import __version__
from indie_scout.config import config_to_dict, load_config
from indie_scout.engine import Engine
from indie_scout.logger import init_logging
from indie_scout.queue.models import QueueStatus
from indie_scout.report.json_report import render_json

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def _engine(ctx) -> Engine:
    try:
        return Engine(ctx.obj['config'])
    except Exception as e:
        print_error(f'Ошибка инициализации хранилища: {e}')


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='IndieScout, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--database', '-d', 'database',
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help='Путь к SQLite-базе (override database)'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов (stderr, если не указан)'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, database, log_level, log_file, log_format):
    """Группа команд IndieScout CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    if database is not None:
        cfg = cfg.model_copy(update={'database': database})
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('run', context_settings=CONTEXT_SETTINGS)
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить JSON-отчёт прогона в файл'
)
@click.option(
    '--pretty', is_flag=True,
    help='Преформатировать JSON-вывод (отступ 2)'
)
@click.pass_context
def run(ctx, json_output, pretty):
    """Обработать один батч очереди обхода."""
    engine = _engine(ctx)
    try:
        report = engine.run_batch()
    except TimeoutError:
        print_error(f'Прогон не завершён за {engine.config.queue.batch_timeout} секунд')
    except Exception as e:
        print_error(f'Ошибка при обработке очереди: {e}')

    if json_output:
        try:
            saved = render_json(report, json_output)
            click.echo(f'JSON report: {saved}')
        except OSError as e:
            print_error(f'Ошибка при сохранении JSON: {e}')
    else:
        click.echo(report.json(pretty=pretty))

    for error in report.errors:
        click.secho(error, fg='yellow', err=True)
    if report.aborted:
        sys.exit(1)


@cli.command('enqueue', context_settings=CONTEXT_SETTINGS)
@click.argument('urls', nargs=-1)
@click.option(
    '--file', '-f', 'url_file',
    default=None,
    type=click.File('r', encoding='utf-8'),
    help='Файл со списком URL (по одному в строке)'
)
@click.option('--priority', '-p', default=5, show_default=True, type=int, help='Приоритет элементов')
@click.option('--extract-all-links', is_flag=True, help='Хаб: собрать до 100 ссылок вместо 10')
@click.pass_context
def enqueue(ctx, urls, url_file, priority, extract_all_links):
    """Поставить URL в очередь обхода."""
    candidates = list(urls)
    if url_file is not None:
        candidates.extend(line.strip() for line in url_file if line.strip() and not line.startswith('#'))
    if not candidates:
        print_error('Не указано ни одного URL')

    try:
        result = _engine(ctx).enqueue(candidates, priority=priority, extract_all_links=extract_all_links)
    except Exception as e:
        print_error(f'Ошибка при постановке в очередь: {e}')

    click.echo(f'Added: {result.added}, already queued: {result.already_queued}')
    for bad in result.invalid:
        click.secho(f'Invalid URL skipped: {bad}', fg='yellow', err=True)


@cli.command('stats', context_settings=CONTEXT_SETTINGS)
@click.option('--json', 'as_json', is_flag=True, help='Вывести статистику в JSON')
@click.pass_context
def stats(ctx, as_json):
    """Показать статистику очереди."""
    try:
        result = _engine(ctx).stats()
    except Exception as e:
        print_error(f'Ошибка чтения очереди: {e}')

    data = result.to_dict()
    if as_json:
        click.echo(json.dumps(data, indent=2))
        return
    for key, value in data.items():
        click.echo(f'{key:>17}: {value if value is not None else "-"}')


@cli.command('queue', context_settings=CONTEXT_SETTINGS)
@click.option(
    '--status', '-s', 'status',
    default=None,
    type=click.Choice([s.value for s in QueueStatus]),
    help='Фильтр по статусу'
)
@click.option('--page', default=1, show_default=True, type=click.IntRange(min=1))
@click.option('--page-size', default=20, show_default=True, type=click.IntRange(min=1, max=500))
@click.pass_context
def show_queue(ctx, status, page, page_size):
    """Постраничный просмотр элементов очереди."""
    try:
        items = _engine(ctx).browse(
            status=QueueStatus(status) if status else None, page=page, page_size=page_size
        )
    except Exception as e:
        print_error(f'Ошибка чтения очереди: {e}')

    if not items:
        click.echo('Queue page is empty')
        return
    for item in items:
        line = (
            f'{item.status.value:<10} p={item.priority:<3} attempts={item.attempts} '
            f'at={item.scheduled_for.isoformat(timespec="seconds")} {item.url}'
        )
        if item.error_message:
            line += f'  [{item.error_message}]'
        click.echo(line)


@cli.command('retry-failed', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def retry_failed(ctx):
    """Вернуть все failed-элементы в pending с обнулёнными попытками."""
    try:
        count = _engine(ctx).retry_failed()
    except Exception as e:
        print_error(f'Ошибка при сбросе failed-элементов: {e}')
    click.echo(f'Reset {count} failed items')


@cli.command('cleanup', context_settings=CONTEXT_SETTINGS)
@click.option('--days', default=None, type=click.IntRange(min=1), help='Срок хранения (override retention_days)')
@click.pass_context
def cleanup(ctx, days):
    """Удалить completed-элементы старше срока хранения."""
    try:
        count = _engine(ctx).cleanup(days)
    except Exception as e:
        print_error(f'Ошибка при очистке очереди: {e}')
    click.echo(f'Deleted {count} completed items')


@cli.command('test-url', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')
@click.pass_context
def test_url(ctx, url, pretty):
    """Обойти и оценить один URL без записи в очередь и каталог."""
    try:
        result = _engine(ctx).test_url(url)
    except Exception as e:
        print_error(f'Ошибка при проверке URL: {e}')
    click.echo(json.dumps(result.to_dict(), ensure_ascii=False, indent=2 if pretty else None))


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(json.dumps(config_to_dict(cfg), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    cli()
