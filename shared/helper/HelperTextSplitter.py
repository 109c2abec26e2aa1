"""Recursive character text splitter used to chunk note text before embedding."""

DEFAULT_SEPARATORS = ["\n\n", "\n", " ", ""]


class HelperTextSplitter:
    """Split text into overlapping chunks, preferring natural boundaries.

    Separators are tried from coarsest to finest (paragraph, line, word,
    character). Pieces that are still too long are split again with the
    remaining separators, then neighbouring pieces are merged back up to
    chunk_size with up to chunk_overlap characters carried into the next chunk.
    """

    def __init__(self, chunk_size: int, chunk_overlap: int, separators: list[str] | None = None) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}.")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ValueError(
                f"chunk_overlap must be between 0 and chunk_size ({chunk_size}), got {chunk_overlap}."
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self._separators = separators or list(DEFAULT_SEPARATORS)

    ##########################################
    ################ SPLIT ###################
    ##########################################

    def split_text(self, text: str) -> list[str]:
        """Split text into ordered chunks.

        Args:
            text (str): Normalized note text.

        Returns:
            list[str]: Chunks in reading order. Empty if the text is blank.
        """
        if not text or not text.strip():
            return []
        return self._split(text, self._separators)

    def _split(self, text: str, separators: list[str]) -> list[str]:
        separator = separators[-1]
        remaining: list[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = candidate
                break
            if candidate in text:
                separator = candidate
                remaining = separators[i + 1:]
                break

        splits = text.split(separator) if separator else list(text)
        splits = [s for s in splits if s]

        chunks: list[str] = []
        fitting: list[str] = []
        for piece in splits:
            if len(piece) < self.chunk_size:
                fitting.append(piece)
                continue
            if fitting:
                chunks.extend(self._merge(fitting, separator))
                fitting = []
            if remaining:
                chunks.extend(self._split(piece, remaining))
            else:
                chunks.append(piece)
        if fitting:
            chunks.extend(self._merge(fitting, separator))
        return chunks

    ##########################################
    ################ MERGE ###################
    ##########################################

    def _merge(self, splits: list[str], separator: str) -> list[str]:
        sep_len = len(separator)
        chunks: list[str] = []
        current: list[str] = []
        total = 0

        for piece in splits:
            piece_len = len(piece)
            if total + piece_len + (sep_len if current else 0) > self.chunk_size:
                if current:
                    chunk = self._join(current, separator)
                    if chunk:
                        chunks.append(chunk)
                    # drop leading pieces until only the overlap is left and the next piece fits
                    while total > self.chunk_overlap or (
                        total + piece_len + (sep_len if current else 0) > self.chunk_size and total > 0
                    ):
                        total -= len(current[0]) + (sep_len if len(current) > 1 else 0)
                        current.pop(0)
            current.append(piece)
            total += piece_len + (sep_len if len(current) > 1 else 0)

        chunk = self._join(current, separator)
        if chunk:
            chunks.append(chunk)
        return chunks

    @staticmethod
    def _join(pieces: list[str], separator: str) -> str:
        return separator.join(pieces).strip()
