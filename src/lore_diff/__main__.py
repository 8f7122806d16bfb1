"""CLI エントリーポイント"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Mapping, Optional

from .adapters.http_repository import HttpLoreRepository
from .domain.models import IdentitySignature, NormalizeOptions
from .infrastructure.file_repository import FileLoreRepository
from .infrastructure.output_writer import OutputWriter
from .infrastructure.snapshot_store import SnapshotStore
from .orchestration.comparison_service import ComparisonResult, ComparisonService


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _env_flag(environ: Mapping[str, str], name: str, default: bool) -> bool:
    """環境変数の真偽値を解釈 (解釈できない値は既定値)"""
    value = environ.get(name, "").strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return default


def load_options(environ: Mapping[str, str], args: argparse.Namespace) -> NormalizeOptions:
    """
    正規化オプションを環境変数と CLI 引数から構築

    CLI 引数が指定された場合は環境変数より優先します。
    """
    defaults = NormalizeOptions()
    values = {
        "ignore_whitespace": _env_flag(environ, "LORE_DIFF_IGNORE_WHITESPACE", defaults.ignore_whitespace),
        "ignore_case": _env_flag(environ, "LORE_DIFF_IGNORE_CASE", defaults.ignore_case),
        "json_normalize": _env_flag(environ, "LORE_DIFF_JSON_NORMALIZE", defaults.json_normalize),
    }
    for field in values:
        override = getattr(args, field, None)
        if override is not None:
            values[field] = override
    return NormalizeOptions(**values)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="lore_diff",
        description="Compare two lore books and report added/removed/changed entries.",
    )
    parser.add_argument("a", help="比較元の名前")
    parser.add_argument("b", help="比較先の名前")
    parser.add_argument("--source-dir", default=None, help="JSON ファイルのディレクトリ")
    parser.add_argument("--base-url", default=None, help="world info API のベース URL")
    parser.add_argument("--output-dir", default=None, help="レポート出力ディレクトリ")
    parser.add_argument("--snapshot-dir", default=None, help="直近スナップショットの保存先")
    parser.add_argument("--entry", default=None, help="詳細比較する項目のラベルまたはキー")
    parser.add_argument("--ignore-whitespace", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--ignore-case", action=argparse.BooleanOptionalAction, default=None)
    parser.add_argument("--json-normalize", action=argparse.BooleanOptionalAction, default=None)
    return parser.parse_args(argv)


async def _run(
    service: ComparisonService,
    args: argparse.Namespace,
    logger: logging.Logger,
) -> ComparisonResult:
    result = await service.run_comparison(args.a, args.b)
    if not result.success:
        return result

    logger.info(service.summary())

    if args.entry:
        service.open_entry(IdentitySignature(label=args.entry))
        text_diff = await service.compare_entry_content()
        # ライブ更新後の表示状態
        inspection = service.inspector.current
        for warning in inspection.warnings:
            logger.warning(warning)
        logger.info(
            f"Entry '{args.entry}': "
            f"A {'present' if inspection.a_view.present else 'absent'}, "
            f"B {'present' if inspection.b_view.present else 'absent'}, "
            f"{len(text_diff.hunks)} hunks"
        )
        if text_diff.has_changes:
            logger.info("\n" + text_diff.unified())
    return result


def main(argv: Optional[List[str]] = None):
    """
    CLI エントリーポイント

    Usage:
        python -m lore_diff <A> <B> [--entry LABEL]

    Exit codes:
        0: 成功
        1: 失敗
    """
    # ロギング設定
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    logger = logging.getLogger(__name__)

    args = parse_args(argv)

    try:
        options = load_options(os.environ, args)

        # 取得元の選択: ベース URL があれば HTTP、なければファイル
        base_url = args.base_url or os.environ.get("LORE_DIFF_BASE_URL", "")
        if base_url:
            repository = HttpLoreRepository(base_url)
        else:
            source_dir = args.source_dir or os.environ.get("LORE_DIFF_SOURCE_DIR", "books")
            repository = FileLoreRepository(Path(source_dir))

        snapshot_store = SnapshotStore(
            Path(args.snapshot_dir or os.environ.get("LORE_DIFF_SNAPSHOT_DIR", "snapshots"))
        )
        output_writer = OutputWriter(
            Path(args.output_dir or os.environ.get("LORE_DIFF_OUTPUT_DIR", "output"))
        )

        service = ComparisonService(
            repository=repository,
            options=options,
            snapshot_store=snapshot_store,
            output_writer=output_writer,
        )

        logger.info("Starting comparison...")
        result = asyncio.run(_run(service, args, logger))

        if result.success:
            logger.info(
                f"Comparison completed successfully: "
                f"{result.changed_count} changed, "
                f"{result.added_count} added, "
                f"{result.removed_count} removed, "
                f"{result.same_count} unchanged"
            )
            sys.exit(0)
        else:
            logger.error(
                f"Comparison failed: {', '.join(result.errors)}"
            )
            sys.exit(1)

    except Exception as e:
        logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
