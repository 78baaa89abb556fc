from formguard.lib.template import Template

__all__ = ["Template"]
