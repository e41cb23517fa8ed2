"""Exceptions for Mini-KV.

このモジュールは、コマンド層からcallerへ伝播する例外を定義します。
キーやフィールドが存在しないことはエラーではなく、None/False/空リストで表現します。
"""


class CommandError(Exception):
    """コマンド実行エラー.

    不正な引数（キーの型、引数の数、整数でない値、オーバーフロー等）を表す。

    例:
        raise CommandError("ERR unknown command 'FOO'")
        raise CommandError("ERR wrong number of arguments for 'get' command")
        raise CommandError("ERR value is not an integer or out of range")
    """

    pass


class StorageUnavailableError(Exception):
    """ストレージが利用できない（closeされた）ことを表すエラー."""

    def __init__(self, namespace: str) -> None:
        super().__init__(f"ERR storage '{namespace}' is unavailable")
        self.namespace = namespace
