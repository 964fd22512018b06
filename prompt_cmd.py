import queue
import sys
import threading

from params import TEMPLATES


class PromptCommands:
    """
    Line-based prompt input from a text stream (stdin by default).

    Each non-empty line becomes one command:
      - a template name ("hearts", "saturn", ...) -> ("template", "HEARTS")
      - "reset" / "default"                      -> ("reset", "")
      - "quit" / "exit"                          -> ("quit", "")
      - anything else                            -> ("prompt", text) for the AI
    """

    def __init__(self, stream=None):
        self.stream = stream if stream is not None else sys.stdin
        self._cmd_q = queue.Queue()
        self._stop = threading.Event()
        self._thread = None

    def start(self):
        if self._thread and self._thread.is_alive():
            return

        def worker():
            for line in self.stream:
                if self._stop.is_set():
                    break
                cmd = parse_command(line)
                if cmd is not None:
                    self._cmd_q.put(cmd)

        self._thread = threading.Thread(target=worker, name="prompt-input", daemon=True)
        self._thread.start()

    def stop(self):
        # The reader may be parked inside readline(); it is a daemon and exits with the process
        self._stop.set()

    def pop_command(self):
        try:
            return self._cmd_q.get_nowait()
        except queue.Empty:
            return None


def parse_command(line: str):
    text = (line or "").strip()
    if not text:
        return None

    word = text.upper()
    if word in TEMPLATES:
        return ("template", word)
    if word in ("RESET", "DEFAULT"):
        return ("reset", "")
    if word in ("QUIT", "EXIT"):
        return ("quit", "")
    return ("prompt", text)
