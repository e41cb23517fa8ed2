"""String commands for Mini-KV.

このモジュールは、文字列ネームスペースのコマンド
（GET, SET, SETNX, GETSET, APPEND, LEN, MGET, MSET, MSETNX, DEL）を担当します。
"""

import logging

from mini_kv.errors import CommandError
from mini_kv.storage import KeyStore

logger = logging.getLogger(__name__)


class StringOps:
    """文字列コマンド.

    MSET/MSETNXの値リストがキーより短い場合、足りない値はNoneとして書き込まれる。
    キーより長い場合、余った値は無視される。
    """

    def __init__(self, store: KeyStore[str | None]) -> None:
        self._store = store

    def get(self, key: str) -> str | None:
        return self._store.get(key)

    def set(self, key: str, value: str) -> None:
        self._store.upsert(key, _check_value(value))

    def setnx(self, key: str, value: str) -> bool:
        return self._store.try_insert(key, _check_value(value))

    def getset(self, key: str, value: str) -> str | None:
        return self._store.upsert(key, _check_value(value))

    def append(self, key: str, value: str) -> int:
        """APPEND: 値の末尾に文字列を追加し、新しい長さを返す.

        キーが存在しない場合は value がそのまま設定される。
        """
        _check_value(value)
        new_value = self._store.mutate(
            key, lambda current: (current if current is not None else "") + value
        )
        return len(new_value)

    def len(self, key: str) -> int | None:
        value = self._store.get(key)
        return len(value) if value is not None else None

    def mget(self, keys: list[str]) -> list[tuple[str, str | None]]:
        """MGET: 各キーの値を入力順に返す（重複キーもそのまま返す）."""
        return [(key, self._store.get(key)) for key in _check_keys(keys, "mget")]

    def mset(self, keys: list[str], values: list[str | None]) -> None:
        """MSET: 各ペアを個別にSETする（キー全体ではアトミックではない）."""
        for key, value in _pair(keys, values, "mset"):
            self._store.upsert(key, value)

    def msetnx(self, keys: list[str], values: list[str | None]) -> bool:
        """MSETNX: どのキーも存在しない場合のみ、全ペアを書き込む.

        Returns:
            True: 全キーを書き込んだ
            False: 既存のキーがあったため何も書き込まなかった
        """
        pairs = _pair(keys, values, "msetnx")
        with self._store.locked(*keys):
            if any(self._store.exists(key) for key in keys):
                return False
            for key, value in pairs:
                self._store.upsert(key, value)
        return True

    def delete(self, key: str) -> bool:
        return self._store.delete(key)

    def close(self) -> None:
        self._store.close()


def _check_keys(keys: list[str], command: str) -> list[str]:
    if not isinstance(keys, (list, tuple)) or not keys:
        raise CommandError(f"ERR '{command}' requires a non-empty list of keys")
    # 途中のキーで失敗して一部だけ書き込まれないよう、先に全キーを検証する
    for key in keys:
        if not isinstance(key, str) or not key:
            raise CommandError(f"ERR invalid key {key!r}")
    return list(keys)


def _pair(keys: list[str], values: list[str | None], command: str) -> list[tuple[str, str | None]]:
    keys = _check_keys(keys, command)
    if not isinstance(values, (list, tuple)):
        raise CommandError(f"ERR '{command}' requires a list of values")
    if len(values) != len(keys):
        # 長さの不一致は意図的な仕様（不足分はNone、余剰分は無視）
        logger.warning(
            f"{command}: {len(keys)} keys but {len(values)} values; "
            f"{'padding with None' if len(values) < len(keys) else 'ignoring extra values'}"
        )
    # 渡された値は文字列のみ。Noneになるのは不足分の埋め合わせだけ
    supplied = [_check_value(value) for value in values[: len(keys)]]
    padded = supplied + [None] * (len(keys) - len(values))
    return list(zip(keys, padded))


def _check_value(value: str) -> str:
    if not isinstance(value, str):
        raise CommandError(f"ERR value is not a string: {value!r}")
    return value
