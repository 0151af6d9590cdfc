"""ESC/POS command bytes and the receipt instruction builder."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from comanda.config import RECEIPT_ENCODING, RULE_WIDTH

ESC = b"\x1b"
GS = b"\x1d"
LF = b"\n"


class Align(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class Size(str, Enum):
    NORMAL = "normal"
    DOUBLE_HEIGHT = "double_height"
    DOUBLE_WIDTH = "double_width"
    DOUBLE = "double"


_ALIGN_ARG = {Align.LEFT: b"\x00", Align.CENTER: b"\x01", Align.RIGHT: b"\x02"}
_SIZE_ARG = {
    Size.NORMAL: b"\x00",
    Size.DOUBLE_HEIGHT: b"\x01",
    Size.DOUBLE_WIDTH: b"\x10",
    Size.DOUBLE: b"\x11",
}


def init() -> bytes:
    """ESC @, reset the printer."""
    return ESC + b"@"


def align(mode: Align) -> bytes:
    """ESC a n."""
    return ESC + b"a" + _ALIGN_ARG[Align(mode)]


def bold(on: bool) -> bytes:
    """ESC E n."""
    return ESC + b"E" + (b"\x01" if on else b"\x00")


def size(mode: Size) -> bytes:
    """GS ! n, character width/height multiplier."""
    return GS + b"!" + _SIZE_ARG[Size(mode)]


def cut() -> bytes:
    """GS V 0, full cut."""
    return GS + b"V" + b"\x00"


def rule_line(char: str = "-", width: int = RULE_WIDTH) -> str:
    if len(char) != 1:
        raise ValueError("rule character must be a single character")
    return char * width


def encode_text(text: str, encoding: str = RECEIPT_ENCODING) -> bytes:
    return text.encode(encoding, errors="replace") + LF


@dataclass(frozen=True)
class Init:
    def encode(self, encoding: str) -> bytes:
        return init()


@dataclass(frozen=True)
class SetAlign:
    mode: Align

    def encode(self, encoding: str) -> bytes:
        return align(self.mode)


@dataclass(frozen=True)
class SetBold:
    on: bool

    def encode(self, encoding: str) -> bytes:
        return bold(self.on)


@dataclass(frozen=True)
class SetSize:
    mode: Size

    def encode(self, encoding: str) -> bytes:
        return size(self.mode)


@dataclass(frozen=True)
class TextLine:
    text: str

    def encode(self, encoding: str) -> bytes:
        return encode_text(self.text, encoding)


@dataclass(frozen=True)
class RuleLine:
    char: str = "-"
    width: int = RULE_WIDTH

    @property
    def text(self) -> str:
        return rule_line(self.char, self.width)

    def encode(self, encoding: str) -> bytes:
        return encode_text(self.text, encoding)


@dataclass(frozen=True)
class Feed:
    lines: int = 1

    def encode(self, encoding: str) -> bytes:
        return LF * self.lines


@dataclass(frozen=True)
class Cut:
    def encode(self, encoding: str) -> bytes:
        return cut()


Instruction = Init | SetAlign | SetBold | SetSize | TextLine | RuleLine | Feed | Cut


class Receipt:
    """
    Ordered list of printer instructions.

    Formatting code only appends instructions; bytes are produced by
    ``render`` once the whole ticket is known, so the layout can be asserted
    on ``lines()`` without decoding control codes.
    """

    def __init__(self) -> None:
        self.instructions: list[Instruction] = []

    def __len__(self) -> int:
        return len(self.instructions)

    def _add(self, instruction: Instruction) -> Receipt:
        self.instructions.append(instruction)
        return self

    def init(self) -> Receipt:
        return self._add(Init())

    def align(self, mode: Align) -> Receipt:
        return self._add(SetAlign(Align(mode)))

    def bold(self, on: bool = True) -> Receipt:
        return self._add(SetBold(on))

    def size(self, mode: Size) -> Receipt:
        return self._add(SetSize(Size(mode)))

    def normal(self) -> Receipt:
        """Back to normal size without bold."""
        return self.size(Size.NORMAL).bold(False)

    def text(self, line: str) -> Receipt:
        return self._add(TextLine(line))

    def rule(self, char: str = "-") -> Receipt:
        return self._add(RuleLine(char))

    def double_rule(self) -> Receipt:
        return self.rule("=")

    def feed(self, lines: int = 1) -> Receipt:
        if lines < 1:
            raise ValueError("feed needs at least one line")
        return self._add(Feed(lines))

    def cut(self) -> Receipt:
        return self._add(Cut())

    def lines(self) -> list[str]:
        """Printed text in order; blank feed lines come out as empty strings."""
        out: list[str] = []
        for instruction in self.instructions:
            if isinstance(instruction, (TextLine, RuleLine)):
                out.append(instruction.text)
            elif isinstance(instruction, Feed):
                out.extend([""] * instruction.lines)
        return out

    def render(self, encoding: str = RECEIPT_ENCODING) -> bytes:
        return b"".join(instruction.encode(encoding) for instruction in self.instructions)
