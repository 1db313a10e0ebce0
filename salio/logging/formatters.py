"""Logging formatters and filters for stream routing."""

import logging


class StreamFormatter(logging.Formatter):
    """Logging formatter that prefixes warnings and errors with a marker."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with a severity marker for warnings and above.

        Parameters
        ----------
        record : logging.LogRecord
            Log record to format

        Returns
        -------
        str
            Formatted log message with ``[!]`` prepended for WARNING and above
        """
        msg = super().format(record)

        if record.levelno >= logging.WARNING and not msg.startswith("["):
            return f"[!] {msg}"

        return msg


class StreamRoutingFilter(logging.Filter):
    """Route records below WARNING to stdout and the rest to stderr.

    Parameters
    ----------
    stream : str
        Either "stdout" or "stderr"
    """

    def __init__(self, stream: str) -> None:
        super().__init__()
        if stream not in ("stdout", "stderr"):
            raise ValueError(f"Unknown stream: {stream}")
        self.stream = stream

    def filter(self, record: logging.LogRecord) -> bool:
        if self.stream == "stdout":
            return record.levelno < logging.WARNING
        return record.levelno >= logging.WARNING
