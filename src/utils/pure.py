from typing import Any, List, Literal, Optional


def generate_markdown_table(
    headers: Optional[List[str]],
    rows: List[List[Any]],
    aligns: Optional[List[Literal["l", "c", "r"]]] = None,
) -> str:
    """
    Generate a Markdown table.

    Args:
        headers: List of column headers, or None to use first row as headers.
        rows: List of rows; cells are converted with str().
        aligns: List of alignments ('l', 'c', 'r') for each column.
                Defaults to all center ('c').

    Returns:
        str: Markdown formatted table.
    """
    if not rows:
        return ""

    if not headers:
        headers, rows = rows[0], rows[1:]

    headers = [_cell(h) for h in headers]
    rows = [[_cell(c) for c in row] for row in rows]

    num_cols = len(headers)
    if aligns is None:
        aligns = ["c"] * num_cols
    elif len(aligns) != num_cols:
        raise ValueError("Length of aligns must match number of headers.")

    align_map = {
        "l": ":---",
        "c": ":---:",
        "r": "---:",
    }

    header_line = "| " + " | ".join(headers) + " |"
    align_line = "| " + " | ".join(align_map[a] for a in aligns) + " |"
    row_lines = ["| " + " | ".join(row) + " |" for row in rows]

    return "\n".join([header_line, align_line, *row_lines])


def _cell(value: Any) -> str:
    # pipes would split the cell
    return str(value).replace("|", "\\|")


def richtext_to_paragraphs(doc: Any) -> List[str]:
    """
    Flatten a CMS rich-text document into plain-text paragraphs.

    Only ``paragraph`` blocks are kept, each one being the concatenation of
    its text nodes. Plain strings pass through as a single paragraph.
    """
    if not doc:
        return []
    if isinstance(doc, str):
        return [doc]
    if not isinstance(doc, dict):
        return []

    paragraphs = []
    for block in doc.get("content") or []:
        if not isinstance(block, dict) or block.get("type") != "paragraph":
            continue
        text = "".join(
            node.get("text", "")
            for node in block.get("content") or []
            if isinstance(node, dict)
        )
        if text:
            paragraphs.append(text)
    return paragraphs
