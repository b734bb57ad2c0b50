"""Split outbound text into channel-sized chunks."""


def chunk_text(text: str, limit: int) -> list[str]:
    """
    Split text into pieces of at most ``limit`` characters.

    Breaks prefer paragraph boundaries, then line breaks, then whitespace;
    a hard cut is used only when a single word exceeds the limit.
    """
    if limit <= 0:
        raise ValueError("limit must be positive")
    text = text or ""
    if len(text) <= limit:
        return [text] if text.strip() else []

    chunks: list[str] = []
    remaining = text
    while len(remaining) > limit:
        window = remaining[:limit]
        cut = -1
        for sep in ("\n\n", "\n", " "):
            idx = window.rfind(sep)
            if idx > 0:
                cut = idx
                break
        if cut <= 0:
            cut = limit
        piece = remaining[:cut].rstrip()
        if piece:
            chunks.append(piece)
        remaining = remaining[cut:].lstrip()
    if remaining.strip():
        chunks.append(remaining)
    return chunks
