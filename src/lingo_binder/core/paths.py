"""Relative reference resolution inside the archive namespace."""

from urllib.parse import unquote


def resolve_path(base_path: str, reference: str) -> str:
    """Resolve ``reference`` against the file at ``base_path``.

    The reference is percent-decoded, the file name of ``base_path`` is
    dropped, ``.`` and empty segments are skipped and ``..`` pops one level.
    Popping past the archive root is a silent no-op; a bogus path simply
    fails the later entry lookup.

    Examples:
        resolve_path("Text/ch1.xhtml", "../Images/cover.jpg") -> "Images/cover.jpg"
        resolve_path("OEBPS/content.opf", "Text/ch1.xhtml") -> "OEBPS/Text/ch1.xhtml"
    """
    if not reference:
        return ""

    stack = base_path.split("/")[:-1]

    for part in unquote(reference).split("/"):
        if part in (".", ""):
            continue
        if part == "..":
            if stack:
                stack.pop()
        else:
            stack.append(part)

    return "/".join(stack)
