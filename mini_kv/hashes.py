"""Hash commands for Mini-KV.

このモジュールは、ハッシュネームスペースのコマンド
（HGET, HSET, HSETNX, HDEL, HEXISTS, HKEYS, HVALUES, HGETALL, HMGET, HLEN）を担当します。

ハッシュの値はフィールド名→文字列のdict。保存済みのdictは変更せず、
書き込みのたびに新しいdictを作る。フィールドが0個のレコードは存在しない。
"""

from mini_kv.errors import CommandError
from mini_kv.storage import REMOVE, KeyStore


class HashOps:
    """ハッシュコマンド."""

    def __init__(self, store: KeyStore[dict[str, str]]) -> None:
        self._store = store

    def hget(self, key: str, field: str) -> str | None:
        _check_field(field)
        fields = self._store.get(key)
        return fields.get(field) if fields else None

    def hset(self, key: str, field: str, value: str) -> bool:
        """HSET: フィールドに値を設定する（キー・フィールドがなければ作成）.

        Returns:
            True: 新しいフィールドを作成した
            False: 既存のフィールドを上書きした
        """
        _check_field(field)
        _check_value(value)
        created = False

        def put(current: dict[str, str] | None) -> dict[str, str]:
            nonlocal created
            created = current is None or field not in current
            return {**(current or {}), field: value}

        self._store.mutate(key, put)
        return created

    def hsetnx(self, key: str, field: str, value: str) -> bool:
        """HSETNX: フィールドが存在しない場合のみ設定する.

        Returns:
            True: フィールドを設定した（キーがなければレコードも作成）
            False: フィールドが既に存在した（何も変更しない）
        """
        _check_field(field)
        _check_value(value)
        with self._store.locked(key):
            if self._store.try_insert(key, {field: value}):
                return True
            current = self._store.get(key)
            if field in current:
                return False
            self._store.mutate(key, lambda fields: {**fields, field: value})
            return True

    def hdel(self, key: str, field: str) -> bool:
        """HDEL: フィールドを削除する. 最後のフィールドならレコードごと削除する.

        Returns:
            True: フィールドを削除した
            False: キーまたはフィールドが存在しなかった
        """
        _check_field(field)
        with self._store.locked(key):
            current = self._store.get(key)
            if current is None or field not in current:
                return False
            remaining = {name: value for name, value in current.items() if name != field}
            self._store.mutate(key, lambda _: remaining or REMOVE)
        return True

    def hexists(self, key: str, field: str) -> bool:
        _check_field(field)
        fields = self._store.get(key)
        return fields is not None and field in fields

    def hkeys(self, key: str) -> list[str]:
        return [name for name, _ in self.hgetall(key)]

    def hvalues(self, key: str) -> list[str]:
        return [value for _, value in self.hgetall(key)]

    def hgetall(self, key: str) -> list[tuple[str, str]]:
        fields = self._store.get(key)
        return list(fields.items()) if fields else []

    def hmget(self, key: str, fields: list[str]) -> list[tuple[str, str | None]]:
        """HMGET: 指定フィールドの値を入力順に返す（重複もそのまま）."""
        if not isinstance(fields, (list, tuple)) or not fields:
            raise CommandError("ERR 'hmget' requires a non-empty list of fields")
        for name in fields:
            _check_field(name)
        current = self._store.get(key) or {}
        return [(name, current.get(name)) for name in fields]

    def hlen(self, key: str) -> int:
        fields = self._store.get(key)
        return len(fields) if fields else 0

    def close(self) -> None:
        self._store.close()


def _check_field(field: str) -> None:
    if not isinstance(field, str):
        raise CommandError(f"ERR invalid field {field!r}")


def _check_value(value: str) -> None:
    if not isinstance(value, str):
        raise CommandError(f"ERR value is not a string: {value!r}")
