"""Counter commands for Mini-KV.

このモジュールは、数値ネームスペースのコマンド
（GET, INCRBY, INCR, DECRBY, DECR, DEL）を担当します。
"""

from mini_kv.errors import CommandError
from mini_kv.storage import KeyStore

DEFAULT_INT_BITS = 64


class NumberOps:
    """整数カウンタのコマンド.

    値は符号付き int_bits ビットの範囲に制限される。
    範囲外になる増減はCommandErrorとなり、保存されている値は変更されない。
    """

    def __init__(self, store: KeyStore[int], int_bits: int = DEFAULT_INT_BITS) -> None:
        self._store = store
        self._min = -(2 ** (int_bits - 1))
        self._max = 2 ** (int_bits - 1) - 1

    def get(self, key: str) -> int | None:
        return self._store.get(key)

    def incrby(self, key: str, amount: int | str) -> int:
        """INCRBY: キーの値をamountだけ増加させ、増加後の値を返す.

        キーが存在しない場合は0から開始する。
        """
        amount = _to_int(amount)

        def add(current: int | None) -> int:
            new_value = (current or 0) + amount
            if not self._min <= new_value <= self._max:
                raise CommandError("ERR increment or decrement would overflow")
            return new_value

        return self._store.mutate(key, add)

    def incr(self, key: str) -> int:
        return self.incrby(key, 1)

    def decrby(self, key: str, amount: int | str) -> int:
        return self.incrby(key, -_to_int(amount))

    def decr(self, key: str) -> int:
        return self.decrby(key, 1)

    def delete(self, key: str) -> bool:
        return self._store.delete(key)

    def close(self) -> None:
        self._store.close()


def _to_int(value: int | str) -> int:
    # boolはintのサブクラスだが、カウンタの増減値としては受け付けない
    if isinstance(value, bool):
        raise CommandError("ERR value is not an integer or out of range")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    raise CommandError("ERR value is not an integer or out of range")
