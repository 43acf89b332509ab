"""
lsdir: ディレクトリ直下のエントリを一覧表示する小ツール

このツールがやること：
- 指定ディレクトリ（省略時はカレント）の「直下」だけを読む（再帰しない）
- 隠しファイル / 種類（ディレクトリ or ファイル）でフィルタする
- 必要ならサイズ列を付けて、1エントリ1行で stdout に出す

構成は dirscan / logsum と同じ：
- 共通I/O（logger/.env/bool/明示オプション判定）は toolkit.py
- ここは lsdir 固有の「引数仕様、config仕様、走査、整形」に集中する

使い方：
    lsdir [directory] [-a] [-h] [-s] [--no-trailing-slash] [-d] [-f]
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator

import toolkit

__version__ = "0.1.0"

PROG = "lsdir"
LOGGER_NAME = "lsdir"
ENV_PREFIX = "LSDIR_"

# config / env で上書きできる store_true フラグ（argparse の dest 名）
BOOL_SETTINGS = (
    "all",
    "human_readable",
    "size",
    "no_trailing_slash",
    "directory_only",
    "file_only",
    "verbose",
)

SHORT_ALIASES = {
    "a": "--all",
    "h": "--human-readable",
    "s": "--size",
    "d": "--directory-only",
    "f": "--file-only",
}

SIZE_WIDTH = 10


# -------------------------
# エラー
# -------------------------


class LsdirError(Exception):
    """lsdir の失敗の基底クラス。main で終了コードに変換する。"""


class UsageError(LsdirError):
    """CLI引数が不正（未知のフラグ、値の形式違いなど）。"""

    def __init__(self, message: str, usage: str = "") -> None:
        super().__init__(message)
        self.usage = usage


class DirectoryAccessError(LsdirError):
    """対象ディレクトリを開けない（存在しない / ディレクトリでない / 権限なし）。"""


class EntryMetadataError(LsdirError):
    """個々のエントリの名前・種類・サイズが取れない。"""


# -------------------------
# CLIパース（I/O境界：入力）
# -------------------------


class _ArgumentParser(argparse.ArgumentParser):
    # argparse は失敗すると sys.exit(2) するので、例外に変えて main に任せる
    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message, usage=self.format_usage())


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    CLI引数を定義して、解析結果（args）を返す。

    -h は --human-readable に使うので、argparse の自動ヘルプは無効にしている。
    env/configの補完は resolve_effective_args でやる。
    """
    parser = _ArgumentParser(
        prog=PROG,
        description="List the entries of a directory.",
        add_help=False,
        allow_abbrev=False,
    )

    parser.add_argument(
        "directory",
        nargs="?",
        default=None,  # config/envで上書きできるように「未指定(None)」を区別する
        type=Path,
        help="The directory to list files and directories in (default: .)",
    )

    parser.add_argument("-a", "--all", action="store_true", help="Show hidden files and directories")
    parser.add_argument(
        "-h",
        "--human-readable",
        action="store_true",
        help="Display file sizes in human-readable format",
    )
    parser.add_argument("-s", "--size", action="store_true", help="Display file sizes in bytes")
    parser.add_argument(
        "--no-trailing-slash",
        action="store_true",
        help="Display directories as plain files, without trailing slashes",
    )
    parser.add_argument("-d", "--directory-only", action="store_true", help="Only list directories")
    parser.add_argument("-f", "--file-only", action="store_true", help="Only list files")

    parser.add_argument("-V", "--version", action="store_true", help="Print the version and exit")
    parser.add_argument("--verbose", action="store_true", help="処理中の詳細ログを stderr に表示する")
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON config file path (e.g., lsdir.json). CLI args override config.",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Load LSDIR_* settings from a .env file. CLI args override it.",
    )

    return parser.parse_args(argv)


# -------------------------
# 設定ファイル（JSON）と .env（I/O境界：入力）
# -------------------------


def load_config(path: Path, logger: logging.Logger) -> dict[str, Any]:
    """
    JSON設定ファイルを読み込む。読めなければ error ログを出して空の設定にする。

    期待する例：
      {"directory": "/tmp", "all": true, "size": true}
    """
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        logger.error("config load failed: %s (%s)", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.error("config must be a JSON object: %s", path)
        return {}
    return data


def _option_name(dest: str) -> str:
    return "--" + dest.replace("_", "-")


def apply_config(args: argparse.Namespace, cfg: dict[str, Any], provided: set[str], logger: logging.Logger) -> None:
    """
    configの値を args に反映する（ただしCLI指定が優先）。

    キー名は argparse の dest と同じ（all, human_readable, size, ...）。
    """
    if args.directory is None and "directory" in cfg:
        args.directory = Path(str(cfg["directory"]))

    for dest in BOOL_SETTINGS:
        if _option_name(dest) not in provided and dest in cfg:
            setattr(args, dest, bool(cfg[dest]))

    unknown = sorted(set(cfg) - set(BOOL_SETTINGS) - {"directory"})
    if unknown:
        logger.warning("unknown config keys ignored: %s", ", ".join(unknown))


def apply_env(
    args: argparse.Namespace,
    env_file: dict[str, str],
    provided: set[str],
    logger: logging.Logger,
    directory_from_cli: bool,
) -> None:
    """
    .env の値を args に反映する（ただしCLI指定が優先）。

    優先順位は CLI > env > config（configは先に適用しておく）。
    directory（位置引数）は「CLIで渡されたかどうか」を別扱いする。

    対応するキー：
      LSDIR_DIRECTORY, LSDIR_ALL, LSDIR_HUMAN_READABLE, LSDIR_SIZE,
      LSDIR_NO_TRAILING_SLASH, LSDIR_DIRECTORY_ONLY, LSDIR_FILE_ONLY,
      LSDIR_VERBOSE, LSDIR_CONFIG
    """
    if not directory_from_cli:
        v = toolkit.get_env(ENV_PREFIX + "DIRECTORY", env_file)
        if v:
            args.directory = Path(v)

    for dest in BOOL_SETTINGS:
        if _option_name(dest) in provided:
            continue
        v = toolkit.get_env(ENV_PREFIX + dest.upper(), env_file)
        if v is not None:
            setattr(args, dest, toolkit.parse_bool(v))

    logger.info("env applied (CLI overrides env)")


def resolve_effective_args(argv: list[str] | None) -> tuple[argparse.Namespace, logging.Logger]:
    """
    CLI / env-file / config を統合して「最終的に使う args」を確定する。

    引数が不正なら UsageError（parse_args から）。
    """
    args = parse_args(argv)
    directory_from_cli = args.directory is not None
    provided = toolkit.parse_provided_options(argv, SHORT_ALIASES)

    # まずはCLIのverboseで暫定loggerを作る（env/configでverboseが変わったら作り直す）
    logger = toolkit.setup_logger(LOGGER_NAME, args.verbose)

    env_file: dict[str, str] = {}
    if args.env_file is not None:
        env_file = toolkit.load_env_file(args.env_file, logger)

    # configは最下位なので、env-file に書かれた config パスも先に解決しておく
    if args.config is None:
        v = toolkit.get_env(ENV_PREFIX + "CONFIG", env_file)
        if v:
            args.config = Path(v)

    if args.config is not None:
        cfg = load_config(args.config, logger)
        apply_config(args, cfg, provided, logger)

    apply_env(args, env_file, provided, logger, directory_from_cli)

    logger = toolkit.setup_logger(LOGGER_NAME, args.verbose)
    return args, logger


# -------------------------
# データモデル（DTO）
# -------------------------


@dataclass(frozen=True)
class Options:
    """起動時に一度だけ確定する表示オプション。以後は読むだけ。"""

    directory: Path = Path(".")
    show_hidden: bool = False
    human_readable: bool = False
    show_size_bytes: bool = False
    no_trailing_slash: bool = False
    directories_only: bool = False
    files_only: bool = False


@dataclass(frozen=True)
class DirectoryEntry:
    """
    1エントリ分のDTO。走査のたびにOSから取り直し、表示したら捨てる。
    """

    name: str
    is_directory: bool
    size_bytes: int


def build_options(args: argparse.Namespace) -> Options:
    directory = args.directory if args.directory is not None else Path(".")
    return Options(
        directory=directory,
        show_hidden=args.all,
        human_readable=args.human_readable,
        show_size_bytes=args.size,
        no_trailing_slash=args.no_trailing_slash,
        directories_only=args.directory_only,
        files_only=args.file_only,
    )


# -------------------------
# フィルタ（副作用なし）
# -------------------------


def is_hidden(name: str) -> bool:
    return name.startswith(".")


def passes_type_filter(is_directory: bool, options: Options) -> bool:
    """
    種類フィルタ。

    directories_only と files_only を両方指定すると、どのエントリも通らない。
    """
    if options.directories_only and not is_directory:
        return False
    if options.files_only and is_directory:
        return False
    return True


def should_list(name: str, is_directory: bool, options: Options) -> bool:
    """隠しファイルフィルタ → 種類フィルタの順で判定する。"""
    if not options.show_hidden and is_hidden(name):
        return False
    return passes_type_filter(is_directory, options)


# -------------------------
# 走査（I/O）
# -------------------------


def iter_entries(options: Options, logger: logging.Logger) -> Iterator[DirectoryEntry]:
    """
    ディレクトリ直下を読み、フィルタを通ったエントリを順次yieldする。

    仕様として守りたいこと：
    - 並び順はOSが返す順のまま（ソートしない）
    - 開けなければ DirectoryAccessError、1件でも読めなければ EntryMetadataError
      （スキップして続けることはしない）
    - 種類・サイズはシンボリックリンクを辿らずに取る
    - サイズ（stat）はフィルタを通ったものだけ取りにいく
    """
    try:
        scanner = os.scandir(options.directory)
    except OSError as exc:
        raise DirectoryAccessError(f"cannot read directory {options.directory}: {exc.strerror or exc}") from exc

    listed = 0
    skipped = 0
    with scanner:
        while True:
            try:
                dirent = next(scanner)
            except StopIteration:
                break
            except OSError as exc:
                raise EntryMetadataError(f"cannot read entry in {options.directory}: {exc}") from exc

            name = dirent.name
            try:
                name.encode("utf-8")
            except UnicodeEncodeError as exc:
                raise EntryMetadataError(f"entry name is not valid UTF-8: {name!r}") from exc

            if not options.show_hidden and is_hidden(name):
                skipped += 1
                continue

            try:
                is_directory = dirent.is_dir(follow_symlinks=False)
            except OSError as exc:
                raise EntryMetadataError(f"cannot read file type of {name}: {exc}") from exc

            if not passes_type_filter(is_directory, options):
                skipped += 1
                continue

            try:
                size_bytes = dirent.stat(follow_symlinks=False).st_size
            except OSError as exc:
                raise EntryMetadataError(f"cannot read metadata of {name}: {exc}") from exc

            listed += 1
            yield DirectoryEntry(name=name, is_directory=is_directory, size_bytes=size_bytes)

    logger.info("scan done: listed=%d skipped=%d", listed, skipped)


# -------------------------
# 整形（副作用なし）
# -------------------------

# 1年 = 365.25日、1か月 = 30.44日として秒に直した値
_SECONDS_PER_YEAR = 31_557_600
_SECONDS_PER_MONTH = 2_630_016
_SECONDS_PER_DAY = 86_400


def format_duration(seconds: int) -> str:
    """
    秒数を "1h 8m 16s" のような表記にする。

    - 0 は "0s"
    - 0 の単位は出さない
    - year / month / day は複数形になる（"2years", "1day"）
    """
    if seconds == 0:
        return "0s"

    years, rest = divmod(seconds, _SECONDS_PER_YEAR)
    months, rest = divmod(rest, _SECONDS_PER_MONTH)
    days, rest = divmod(rest, _SECONDS_PER_DAY)
    hours, rest = divmod(rest, 3600)
    minutes, secs = divmod(rest, 60)

    parts: list[str] = []
    for value, unit in ((years, "year"), (months, "month"), (days, "day")):
        if value > 0:
            parts.append(f"{value}{unit}" + ("s" if value > 1 else ""))
    for value, unit in ((hours, "h"), (minutes, "m"), (secs, "s")):
        if value > 0:
            parts.append(f"{value}{unit}")
    return " ".join(parts)


def format_size(size_bytes: int, options: Options) -> str:
    """
    サイズ列の文字列を作る（列を出さないときは空文字）。

    -h はバイト数を「秒」として format_duration に通す（KB/MB表記ではない）。
    -s と -h が両方あれば -s を優先する。
    """
    if options.show_size_bytes:
        return str(size_bytes)
    if options.human_readable:
        return format_duration(size_bytes)
    return ""


def format_line(entry: DirectoryEntry, options: Options) -> str:
    """1エントリ分の出力行を組み立てる: [サイズ列(右寄せ10桁+空白)][名前][/]"""
    name = entry.name
    # "/" は名前の後ろに付ける（"/sub" や "/      4096 sub" のように行頭には置かない）
    if entry.is_directory and not options.no_trailing_slash:
        name += "/"
    if options.show_size_bytes or options.human_readable:
        return f"{format_size(entry.size_bytes, options):>{SIZE_WIDTH}} {name}"
    return name


def render_listing(options: Options, logger: logging.Logger) -> list[str]:
    """
    全エントリの出力行を先に作り切る。

    途中でエラーになったら例外がそのまま上がるので、一覧は1行も出ない。
    """
    return [format_line(entry, options) for entry in iter_entries(options, logger)]


# -------------------------
# 実行フロー
# -------------------------


def main(argv: list[str] | None = None) -> int:
    """
    実行入口（テストからも呼べる形）。

    終了コード：
    - 0: 成功（空のディレクトリ、全件フィルタされた場合も含む）
    - 1: ディレクトリ / エントリが読めない
    - 2: CLI引数が不正
    """
    try:
        args, logger = resolve_effective_args(argv)
    except UsageError as exc:
        if exc.usage:
            sys.stderr.write(exc.usage)
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    if args.version:
        print(f"{PROG} {__version__}")
        return 0

    options = build_options(args)
    if options.directories_only and options.files_only:
        logger.warning("--directory-only and --file-only are both set; nothing will be listed")

    logger.info("list start: %s", options)
    try:
        lines = render_listing(options, logger)
    except LsdirError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    for line in lines:
        print(line)
    return 0


def cli() -> None:
    """console script 用の入口。"""
    raise SystemExit(main(sys.argv[1:]))
