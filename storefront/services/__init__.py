# Services Module
from .money import to_decimal, round_money, multiply, percent

__all__ = ["to_decimal", "round_money", "multiply", "percent"]
