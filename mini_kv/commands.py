"""Command dispatch for Mini-KV.

このモジュールは、コマンド名と位置引数によるコマンドのルーティングと、
3つのネームスペース（strings / numbers / hashes）の組み立てを担当します。

"""

import logging
from typing import Any, Callable

from mini_kv.config import Settings, get_settings
from mini_kv.counters import NumberOps
from mini_kv.errors import CommandError
from mini_kv.hashes import HashOps
from mini_kv.storage import KeyStore, LockTable
from mini_kv.strings import StringOps

logger = logging.getLogger(__name__)


class CommandHandler:
    """コマンドのハンドラ.

    責務:
    - コマンド名から各ネームスペースの操作へのルーティング
    - 引数の数の検証

    数値ネームスペースのGET/DELは、文字列のGET/DELと区別するためNGET/NDELとする。
    """

    def __init__(self, strings: StringOps, numbers: NumberOps, hashes: HashOps) -> None:
        """ハンドラを初期化.

        Args:
            strings: StringOpsのインスタンス
            numbers: NumberOpsのインスタンス
            hashes: HashOpsのインスタンス

        """
        self.strings = strings
        self.numbers = numbers
        self.hashes = hashes
        # コマンド名 -> (実行する関数, 引数の数)
        self._routes: dict[str, tuple[Callable[..., Any], int]] = {
            "GET": (strings.get, 1),
            "SET": (strings.set, 2),
            "SETNX": (strings.setnx, 2),
            "GETSET": (strings.getset, 2),
            "APPEND": (strings.append, 2),
            "LEN": (strings.len, 1),
            "STRLEN": (strings.len, 1),
            "MGET": (strings.mget, 1),
            "MSET": (strings.mset, 2),
            "MSETNX": (strings.msetnx, 2),
            "DEL": (strings.delete, 1),
            "NGET": (numbers.get, 1),
            "INCRBY": (numbers.incrby, 2),
            "INCR": (numbers.incr, 1),
            "DECRBY": (numbers.decrby, 2),
            "DECR": (numbers.decr, 1),
            "NDEL": (numbers.delete, 1),
            "HGET": (hashes.hget, 2),
            "HSET": (hashes.hset, 3),
            "HSETNX": (hashes.hsetnx, 3),
            "HDEL": (hashes.hdel, 2),
            "HEXISTS": (hashes.hexists, 2),
            "HKEYS": (hashes.hkeys, 1),
            "HVALUES": (hashes.hvalues, 1),
            "HVALS": (hashes.hvalues, 1),
            "HGETALL": (hashes.hgetall, 1),
            "HMGET": (hashes.hmget, 2),
            "HLEN": (hashes.hlen, 1),
        }

    def commands(self) -> list[str]:
        return sorted(self._routes)

    def execute(self, command: list[Any]) -> Any:
        """コマンドを実行する.

        Args:
            command: コマンド名と位置引数のリスト
                例: ["SET", "a", "hello"], ["MSET", ["a", "b"], ["1", "2"]]

        Returns:
            コマンドの実行結果（None / bool / int / str / list）

        Raises:
            CommandError: 空コマンド、未知のコマンド、引数の数や値が不正な場合
            StorageUnavailableError: ストレージが利用できない場合
        """
        if not command:
            raise CommandError("ERR empty command")

        # コマンド名を大文字に正規化
        cmd_name = str(command[0]).upper()
        args = command[1:]

        route = self._routes.get(cmd_name)
        if route is None:
            raise CommandError(f"ERR unknown command '{cmd_name}'")

        func, arity = route
        if len(args) != arity:
            raise CommandError(f"ERR wrong number of arguments for '{cmd_name.lower()}' command")

        return func(*args)

    def close(self) -> None:
        """全ネームスペースを閉じる. 以後のコマンドはStorageUnavailableErrorになる."""
        self.strings.close()
        self.numbers.close()
        self.hashes.close()


def create_handler(settings: Settings | None = None) -> CommandHandler:
    """3つのネームスペースを作成し、CommandHandlerを組み立てる."""
    settings = settings or get_settings()
    logging.getLogger("mini_kv").setLevel(settings.LOG_LEVEL)

    # ロックテーブルは全ネームスペースで共有する
    locks = LockTable(settings.LOCK_STRIPES)
    handler = CommandHandler(
        strings=StringOps(KeyStore("strings", locks)),
        numbers=NumberOps(KeyStore("numbers", locks), int_bits=settings.INT_BITS),
        hashes=HashOps(KeyStore("hashes", locks)),
    )
    logger.info(f"Mini-KV ready ({len(handler.commands())} commands)")
    return handler
