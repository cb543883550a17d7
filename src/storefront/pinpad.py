"""Ввод кода по одной цифре в ячейку (OTP и PIN)."""

from __future__ import annotations

from typing import Optional


DIGITS = frozenset("0123456789")


class DigitPad:
    """
    Ряд ячеек по одной цифре.

    Ввод цифры переводит фокус на следующую ячейку, Backspace в пустой ячейке
    возвращает фокус назад. Когда заполнена последняя ячейка, ``enter`` возвращает код.
    """

    def __init__(self, length: int = 6) -> None:
        self.length = length
        self.digits = [""] * length
        self.focus = 0

    @property
    def code(self) -> str:
        return "".join(self.digits)

    @property
    def is_complete(self) -> bool:
        return all(self.digits)

    def enter(self, index: int, value: str) -> Optional[str]:
        if not 0 <= index < self.length:
            raise IndexError(f"slot {index} out of range 0..{self.length - 1}")
        if value and value not in DIGITS:
            return None

        self.digits[index] = value
        if value and index < self.length - 1:
            self.focus = index + 1

        if index == self.length - 1 and value and self.is_complete:
            return self.code
        return None

    def press(self, digit: str) -> Optional[str]:
        return self.enter(self.focus, digit)

    def backspace(self, index: Optional[int] = None) -> None:
        index = self.focus if index is None else index
        if self.digits[index]:
            self.digits[index] = ""
            self.focus = index
        elif index > 0:
            self.focus = index - 1

    def fill(self, code: str) -> Optional[str]:
        """Ввести код целиком, как если бы цифры набирались по одной."""
        self.clear()
        if len(code) != self.length:
            return None
        result = None
        for index, digit in enumerate(code):
            if digit not in DIGITS:
                self.clear()
                return None
            result = self.enter(index, digit)
        return result

    def clear(self) -> None:
        self.digits = [""] * self.length
        self.focus = 0
