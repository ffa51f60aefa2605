from vimkit.facade import ImportSummary, NotLoadedError, Sections, Vim, build_model_tree

__all__ = [
    "ImportSummary",
    "NotLoadedError",
    "Sections",
    "Vim",
    "build_model_tree",
]
