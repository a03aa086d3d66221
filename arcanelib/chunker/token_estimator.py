import math
from abc import ABC, abstractmethod


class TokenEstimator(ABC):
    @abstractmethod
    def estimate(self, text: str) -> int: ...


class CharTokenEstimator(TokenEstimator):
    """
    Estimación rápida sin dependencias externas.
    ~4 caracteres por token: suficiente para decidir cortes de chunk.
    """
    def __init__(self, chars_per_token: int = 4):
        self._chars_per_token = chars_per_token

    def estimate(self, text: str) -> int:
        return math.ceil(len(text) / self._chars_per_token)


_DEFAULT_ESTIMATOR = CharTokenEstimator()


def estimate_tokens(text: str) -> int:
    return _DEFAULT_ESTIMATOR.estimate(text)
