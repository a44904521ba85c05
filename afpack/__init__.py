"""afpack - keep large dependency folders inside ASIF sparse disk images."""

from .__version__ import __version__

__all__ = ["__version__"]
