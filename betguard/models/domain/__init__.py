"""
도메인 모델 패키지
"""
from .player import Player

__all__ = [
    "Player",
]
