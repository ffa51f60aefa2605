from vimkit.facade.core import NotLoadedError, Vim, build_model_tree
from vimkit.facade.types import ImportSummary, Sections

__all__ = [
    "ImportSummary",
    "NotLoadedError",
    "Sections",
    "Vim",
    "build_model_tree",
]
