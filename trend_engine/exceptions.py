"""Исключения движка трендов."""


class TrendEngineError(Exception):
    """Базовое исключение движка трендов."""


class UnknownTrendKindError(TrendEngineError, KeyError):
    """Запрошен незарегистрированный вид трендов."""

    def __init__(self, kind: str):
        super().__init__(kind)
        self.kind = kind

    def __str__(self) -> str:
        return f"Unknown trend kind: {self.kind}"
