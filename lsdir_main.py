"""
エントリーポイント（薄いラッパー）

- import される「実装本体」（lsdir.py）と、CLI実行の「入口」を分離する
- テストは lsdir.py を直接 import して行う
"""

from __future__ import annotations

import sys

if __name__ == "__main__":
    from lsdir import main

    raise SystemExit(main(sys.argv[1:]))
