"""
Turns a user expression into a statement that rebinds the current document.

An expression `E` becomes `item = (E)`. A parenthesised group is a statement
block in jrq script, so `E` may hold several `;`-separated statements, and the
document is rebound to the value of the last one. That value always wins over
any in-place edit `E` made before it: `item.a = 1` leaves `item` equal to `1`,
while `item.a = 1; item` keeps the edited document.
"""

DOCUMENT_NAME = "item"

# Canonical statements for the read and write stages of the pipeline
READ_STATEMENT = f"{DOCUMENT_NAME} = read_json()"
PRINT_STATEMENT = f"print_json({DOCUMENT_NAME})"


def wrap(raw: str) -> str:
    # A '#' may open a line comment that would swallow the closing paren.
    if "\n" in raw or "#" in raw:
        return f"{DOCUMENT_NAME} = (\n{raw}\n)"
    return f"{DOCUMENT_NAME} = ({raw})"
