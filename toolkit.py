"""
小ツール共通の「I/Oまわり」部品集（toolkit）

狙い：
- lsdir 本体は「一覧表示そのもの（引数仕様、フィルタ、整形）」に集中させる
- logger構成、.env読み取り、bool変換、CLI明示オプションの判定はこちらに寄せる

注意：
- ここに入れるのは「どのツールでも同じ意味で使えるもの」だけ
- ツール固有の優先順位・キー名（LSDIR_* など）は lsdir 側で持つ
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path


def parse_provided_options(argv: list[str] | None, short_aliases: dict[str, str] | None = None) -> set[str]:
    """
    どのオプションが CLI で明示されたかを判定する（long名の集合で返す）。

    目的：
    - config/env が「既定値」を埋めるのはOK
    - ただし「ユーザーがCLIで明示した値」は上書きしない（= CLI優先を守る）

    short_aliases を渡すと短いフラグも long名に寄せる：
      {"a": "--all", "s": "--size"} なら "-as" は {"--all", "--size"} になる
    """
    if argv is None:
        return set()
    aliases = short_aliases or {}
    provided: set[str] = set()
    for token in argv:
        if token == "--":
            # 以降は位置引数
            break
        if token.startswith("--"):
            provided.add(token.split("=", 1)[0])
        elif token.startswith("-") and len(token) > 1:
            for ch in token[1:]:
                long_name = aliases.get(ch)
                if long_name is not None:
                    provided.add(long_name)
    return provided


def parse_bool(value: str) -> bool:
    """
    env用のboolパース（.env は文字列なので明示変換が必要）。

    true: 1, true, yes, y, on
    false: 0, false, no, n, off
    """
    v = value.strip().lower()
    if v in {"1", "true", "yes", "y", "on"}:
        return True
    if v in {"0", "false", "no", "n", "off"}:
        return False
    return bool(v)


def load_env_file(path: Path, logger: logging.Logger) -> dict[str, str]:
    """
    .env 形式（KEY=VALUE）を読む。

    対応範囲：
    - 空行/コメント(#...)は無視する
    - `export KEY=VALUE` を許容する
    - 値の前後のクォート（' "）は剥がす
    - `=` を含まない行は無視する（壊れた行で落とさない）
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("env file load failed: %s (%s)", path, exc)
        return {}

    env: dict[str, str] = {}
    for row in text.splitlines():
        line = row.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].lstrip()
        if "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        val = val.strip()
        if len(val) >= 2 and val[0] == val[-1] and val[0] in {'"', "'"}:
            val = val[1:-1]
        if key:
            env[key] = val
    return env


def get_env(name: str, env_file: dict[str, str]) -> str | None:
    """
    設定値を env_file（--env-file で読んだ内容）から取る。

    OS の環境変数は見ない：
    同じ引数なら同じ結果になるよう、入力は「CLI + CLIで指定したファイル」に限る。
    空文字は未指定扱い。
    """
    v = env_file.get(name)
    if v is not None and v != "":
        return v
    return None


def setup_logger(name: str, verbose: bool) -> logging.Logger:
    """
    ログをstderrに出すためのloggerを構成する。

    - stdoutは一覧の行だけにしたい（パイプで他コマンドに渡せるように）
    - 進捗/警告/失敗はstderrへ寄せる
    """
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO if verbose else logging.WARNING)
    logger.propagate = False

    logger.handlers.clear()

    handler = logging.StreamHandler(stream=sys.stderr)
    handler.setFormatter(logging.Formatter("[%(levelname)s] %(message)s"))
    logger.addHandler(handler)
    return logger
