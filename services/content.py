"""
Embedded content rewriting.

Stored text refers to its attached files through the @@PLUGINFILE@@
placeholder; responses carry the public file URLs instead.
"""
from typing import Optional, Tuple

from config.settings import settings

PLUGINFILE_PLACEHOLDER = "@@PLUGINFILE@@"


def rewrite_pluginfile_urls(
    text: str,
    context_id: int,
    component: str,
    filearea: str,
    itemid: Optional[int] = None,
) -> str:
    """
    Replace the file placeholder with the pluginfile URL for the area.

    Args:
        text: Stored content
        context_id: Context the files belong to
        component: Owning component, e.g. "mod_forum"
        filearea: File area, e.g. "post" or "intro"
        itemid: Item id within the area, if the area uses one
    """
    if not text:
        return text
    base = f"{settings.wwwroot.rstrip('/')}/pluginfile.php/{context_id}/{component}/{filearea}"
    if itemid is not None:
        base = f"{base}/{itemid}"
    return text.replace(PLUGINFILE_PLACEHOLDER, base)


def format_text(
    text: str,
    textformat: int,
    context_id: int,
    component: str,
    filearea: str,
    itemid: Optional[int] = None,
) -> Tuple[str, int]:
    """Prepare stored text and its format for returning to a caller."""
    return rewrite_pluginfile_urls(text, context_id, component, filearea, itemid), textformat
