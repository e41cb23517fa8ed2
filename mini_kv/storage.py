"""Atomic key-value tables for Mini-KV.

このモジュールは、ネームスペース（strings / numbers / hashes）ごとのテーブルと、
キー単位の排他制御を担当します。

コマンド層が使うアトミックな操作は以下の通りです:
- upsert(): 存在すれば更新、なければ挿入（直前の値を返す）
- try_insert(): キーが存在しない場合のみ挿入（一意制約に相当）
- delete(): 削除してレコードが存在したかを返す
- mutate(): 読み取り→変換→書き込みを1つのクリティカルセクションで実行
"""

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Generic, Iterator, TypeVar

from mini_kv.errors import CommandError, StorageUnavailableError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_LOCK_STRIPES = 64

# mutate()の変換関数がこの値を返すと、レコードは削除される（または作成されない）
REMOVE = object()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Record(Generic[T]):
    """テーブルの1レコード.

    Attributes:
        key: ネームスペース内で一意なキー
        value: 値（文字列、整数、またはフィールドのdict）
        created_at: 最初に挿入された時刻（以後変更されない）
        updated_at: 最後に値が変更された時刻

    レコードはイミュータブルで、更新のたびに新しいRecordに置き換えられる。
    そのため読み取り側はロックなしで一貫したスナップショットを得られる。
    """

    key: str
    value: T
    created_at: datetime
    updated_at: datetime


class LockTable:
    """キーをハッシュでストライプに振り分けるロックテーブル.

    異なるストライプのキーに対する操作は互いにブロックしない。
    ロックはRLockなので、保持中のスレッドは同じストライプを再取得できる。
    """

    def __init__(self, stripes: int = DEFAULT_LOCK_STRIPES) -> None:
        if stripes < 1:
            raise ValueError("stripes must be >= 1")
        self._locks = [threading.RLock() for _ in range(stripes)]

    def __len__(self) -> int:
        return len(self._locks)

    def stripe_for(self, key: str) -> int:
        return hash(key) % len(self._locks)

    @contextmanager
    def hold(self, *keys: str) -> Iterator[None]:
        """全キーのストライプを昇順で取得する（デッドロック回避）."""
        stripes = sorted({self.stripe_for(key) for key in keys})
        acquired: list[int] = []
        try:
            for stripe in stripes:
                self._locks[stripe].acquire()
                acquired.append(stripe)
            yield
        finally:
            for stripe in reversed(acquired):
                self._locks[stripe].release()


class KeyStore(Generic[T]):
    """1つのネームスペースのテーブル.

    責務:
    - キーの一意性の保証
    - アトミックなupsert / try_insert / delete / mutate
    - created_at / updated_at の管理

    読み取り（get, get_record, exists）はロックを取らない。
    書き込みはすべてキーのストライプロックの中で行われる。
    """

    def __init__(
        self,
        name: str,
        lock_table: LockTable | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """テーブルを初期化.

        Args:
            name: ネームスペース名（ログとエラーメッセージに使用）
            lock_table: 共有するLockTable（Noneの場合は新規作成）
            clock: 現在時刻を返す関数（テスト用）
        """
        self.name = name
        self._locks = lock_table if lock_table is not None else LockTable()
        self._clock = clock or _utcnow
        self._data: dict[str, Record[T]] = {}
        self._closed = False
        logger.info(f"KeyStore '{name}' created ({len(self._locks)} lock stripes)")

    def _check_available(self) -> None:
        if self._closed:
            raise StorageUnavailableError(self.name)

    def _check_key(self, key: str) -> None:
        self._check_available()
        if not isinstance(key, str) or not key:
            raise CommandError(f"ERR invalid key {key!r}")

    def get(self, key: str) -> T | None:
        record = self.get_record(key)
        return record.value if record else None

    def get_record(self, key: str) -> Record[T] | None:
        self._check_key(key)
        return self._data.get(key)

    def exists(self, key: str) -> bool:
        self._check_key(key)
        return key in self._data

    def upsert(self, key: str, value: T) -> T | None:
        """値を設定し、直前の値を返す.

        Returns:
            更新前の値（新規作成の場合はNone）
        """
        self._check_key(key)
        with self._locks.hold(key):
            now = self._clock()
            record = Record(key=key, value=value, created_at=now, updated_at=now)
            existing = self._data.setdefault(key, record)
            if existing is record:
                logger.debug(f"{self.name}: inserted {key!r}")
                return None
            self._data[key] = replace(existing, value=value, updated_at=now)
            logger.debug(f"{self.name}: updated {key!r}")
            return existing.value

    def try_insert(self, key: str, value: T) -> bool:
        """キーが存在しない場合のみ挿入.

        Returns:
            True: 挿入した
            False: キーが既に存在した（何も変更しない）
        """
        self._check_key(key)
        with self._locks.hold(key):
            now = self._clock()
            record = Record(key=key, value=value, created_at=now, updated_at=now)
            inserted = self._data.setdefault(key, record) is record
        if inserted:
            logger.debug(f"{self.name}: inserted {key!r}")
        return inserted

    def delete(self, key: str) -> bool:
        self._check_key(key)
        with self._locks.hold(key):
            existed = self._data.pop(key, None) is not None
        if existed:
            logger.debug(f"{self.name}: deleted {key!r}")
        return existed

    def mutate(self, key: str, fn: Callable[[T | None], T]) -> T | None:
        """現在の値を変換して書き戻す.

        Args:
            key: 対象のキー
            fn: 現在の値（存在しない場合はNone）を受け取り、新しい値を返す関数。
                REMOVEを返すとレコードを削除する。例外を送出した場合は何も書き込まない。

        Returns:
            新しい値（削除した場合はNone）
        """
        self._check_key(key)
        with self._locks.hold(key):
            existing = self._data.get(key)
            new_value = fn(existing.value if existing else None)
            if new_value is REMOVE:
                if existing is not None:
                    del self._data[key]
                    logger.debug(f"{self.name}: deleted {key!r}")
                return None
            now = self._clock()
            if existing is None:
                self._data[key] = Record(key=key, value=new_value, created_at=now, updated_at=now)
            else:
                self._data[key] = replace(existing, value=new_value, updated_at=now)
            logger.debug(f"{self.name}: mutated {key!r}")
            return new_value

    @contextmanager
    def locked(self, *keys: str) -> Iterator[None]:
        """複数キーのロックを保持するコンテキスト.

        ブロック内で他の操作（upsert等）を呼び出しても、同じスレッドなので
        ロックは再取得できる。他のスレッドの書き込みはブロック終了まで待たされる。
        """
        for key in keys:
            self._check_key(key)
        with self._locks.hold(*keys):
            yield

    def keys(self) -> list[str]:
        self._check_available()
        return list(self._data.keys())

    def __len__(self) -> int:
        self._check_available()
        return len(self._data)

    def close(self) -> None:
        """テーブルを利用不可にする. 以後の操作はStorageUnavailableErrorになる."""
        if self._closed:
            return
        self._closed = True
        logger.info(f"KeyStore '{self.name}' closed")
