"""Transform Factory: file conversion and PDF tooling over HTTP."""

__version__ = "1.0.0"
