"""Script and report rendering."""

from .script import ScriptRenderer, write_artifact

__all__ = ['ScriptRenderer', 'write_artifact']
