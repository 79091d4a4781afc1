"""Command server - run named commands over HTTP.

Responses are either one buffered JSON envelope or a Server-Sent Events
stream, chosen by the command at runtime.
"""

__version__ = "0.1.0"
