from usecases.read_text import ReadTextUseCase
from usecases.search_item import SearchItemUseCase
from usecases.search_text import SearchTextUseCase

__all__ = [
    "ReadTextUseCase",
    "SearchItemUseCase",
    "SearchTextUseCase",
]
