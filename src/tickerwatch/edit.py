"""Working copy of the symbol list while the user edits it."""

from pydantic import BaseModel, Field

from tickerwatch.models import normalize_symbol

MAX_INPUT_LENGTH = 15


class EditSession(BaseModel):
    """
    ✏️ Transient edit-mode state.

    Created as a copy of the committed symbol list. Nothing here touches the
    committed list: a save copies `symbols` out, a cancel simply drops the session.
    """

    symbols: list[str] = Field(default_factory=list, description="Working symbol list")
    cursor: int = Field(0, description="Index of the highlighted symbol")
    dirty: bool = Field(False, description="True once the working list changed")
    input_buffer: str = Field("", description="Symbol currently being typed")
    error: str | None = Field(None, description="Message shown under the input line")

    @classmethod
    def start(cls, symbols: list[str]) -> "EditSession":
        return cls(symbols=list(symbols), cursor=max(len(symbols) - 1, 0))

    def type_char(self, char: str) -> None:
        if len(self.input_buffer) < MAX_INPUT_LENGTH and char.isprintable():
            self.input_buffer += char
        self.error = None

    def backspace(self) -> None:
        self.input_buffer = self.input_buffer[:-1]
        self.error = None

    def submit_input(self) -> bool:
        """
        Add the typed symbol to the working list.

        Returns:
            True if the list changed. Blank input and duplicates are no-ops;
            invalid input sets `error` and keeps the buffer for correction.
        """
        if not self.input_buffer.strip():
            self.input_buffer = ""
            return False

        try:
            symbol = normalize_symbol(self.input_buffer)
        except ValueError as e:
            self.error = str(e)
            return False

        self.input_buffer = ""
        self.error = None
        if symbol in self.symbols:
            self.cursor = self.symbols.index(symbol)
            return False

        self.symbols.append(symbol)
        self.cursor = len(self.symbols) - 1
        self.dirty = True
        return True

    def delete_selected(self) -> str | None:
        """Remove the symbol under the cursor, returning it."""
        if not self.symbols:
            return None
        removed = self.symbols.pop(self.cursor)
        self.cursor = min(self.cursor, max(len(self.symbols) - 1, 0))
        self.dirty = True
        self.error = None
        return removed

    def move_cursor(self, delta: int) -> None:
        if not self.symbols:
            self.cursor = 0
            return
        self.cursor = max(0, min(self.cursor + delta, len(self.symbols) - 1))
