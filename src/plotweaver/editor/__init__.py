"""Editor package containing the project model and its state machinery."""

from . import document_model, history, outline_tree, project_ops, selection

__all__ = ["document_model", "history", "outline_tree", "project_ops", "selection"]
