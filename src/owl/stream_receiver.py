"""Line-oriented receiver for captured or piped packets.

The gateway sends one XML document per datagram and never embeds a
newline inside a document, so a capture file (or a ``socat`` pipe on
stdin) holds one packet per line.  No socket handling happens here.
"""


class StreamReceiver:
    """Yields one candidate packet per non-blank line of a binary stream.

    Reads block until a full line or end of stream; ``recv`` cannot
    honour a timeout.  A loop waiting on a silent pipe therefore does not
    see a shutdown request until the next line arrives, so ``owl serve``
    runs it on a daemon thread.

    Args:
        stream: Binary file object, e.g. ``open(path, "rb")`` or
            ``sys.stdin.buffer``.
    """

    def __init__(self, stream):
        """Wrap *stream*; nothing is read until ``recv()``."""
        self._stream = stream
        self.eof = False

    def recv(self, timeout_s: float) -> bytes:
        """Return the next packet; *timeout_s* is not used.

        Returns:
            The stripped line bytes, or empty bytes at end of stream.
        """
        while not self.eof:
            line = self._stream.readline()
            if not line:
                self.eof = True
                break
            line = line.strip()
            if line:
                return line
        return b""

    def __enter__(self) -> "StreamReceiver":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the underlying stream."""
        self.eof = True
        self._stream.close()
