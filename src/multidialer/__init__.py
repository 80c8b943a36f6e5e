"""multidialer — 9-line command-line dialer for Asterisk.

Manipulates virtual telephone lines on a remote switch through the
Asterisk Manager Interface using short, Hayes-like commands.
"""

from multidialer.version import __version__

__all__: list[str] = ["__version__"]
