"""Pseudo-terminal relay, run as a standalone script.

Usage: python pty_helper.py COLS ROWS SHELL [ARGS...]

Forks SHELL inside a pseudo-terminal and relays our stdin to it and its
output to our stdout. Resize requests arrive as JSON lines
({"cols": 100, "rows": 30}) on the file descriptor named by the
CONDUIT_PTY_CONTROL_FD environment variable. Exits with the child's code.

Standard library only: this runs under whatever interpreter was found.
"""

import errno
import fcntl
import json
import os
import pty
import select
import signal
import struct
import sys
import termios

CONTROL_FD_ENV = "CONDUIT_PTY_CONTROL_FD"
BUFFER_SIZE = 4096


def set_winsize(fd, cols, rows):
    winsize = struct.pack("HHHH", rows, cols, 0, 0)
    fcntl.ioctl(fd, termios.TIOCSWINSZ, winsize)


def apply_control(master_fd, pending, data):
    """Apply complete resize lines from data; return the unfinished rest."""
    pending += data
    while b"\n" in pending:
        line, pending = pending.split(b"\n", 1)
        try:
            request = json.loads(line)
            set_winsize(master_fd, int(request["cols"]), int(request["rows"]))
        except (ValueError, KeyError, TypeError, OSError):
            continue
    return pending


def write_all(fd, data):
    while data:
        written = os.write(fd, data)
        data = data[written:]


def exit_code_of(status):
    if os.WIFEXITED(status):
        return os.WEXITSTATUS(status)
    if os.WIFSIGNALED(status):
        return 128 + os.WTERMSIG(status)
    return 1


def relay(pid, master_fd, control_fd):
    stdin_fd = sys.stdin.fileno()
    stdout_fd = sys.stdout.fileno()
    inputs = [master_fd, stdin_fd]
    if control_fd is not None:
        inputs.append(control_fd)
    pending = b""

    while True:
        try:
            readable, _, _ = select.select(inputs, [], [])
        except InterruptedError:
            continue

        if master_fd in readable:
            try:
                data = os.read(master_fd, BUFFER_SIZE)
            except OSError as e:
                # EIO: the child closed its side of the terminal
                if e.errno != errno.EIO:
                    raise
                data = b""
            if not data:
                break
            write_all(stdout_fd, data)

        if stdin_fd in readable:
            data = os.read(stdin_fd, BUFFER_SIZE)
            if data:
                write_all(master_fd, data)
            else:
                inputs.remove(stdin_fd)

        if control_fd is not None and control_fd in readable:
            data = os.read(control_fd, BUFFER_SIZE)
            if data:
                pending = apply_control(master_fd, pending, data)
            else:
                inputs.remove(control_fd)

    _, status = os.waitpid(pid, 0)
    return exit_code_of(status)


def main(argv):
    if len(argv) < 4:
        sys.stderr.write("usage: pty_helper.py COLS ROWS SHELL [ARGS...]\n")
        return 2

    cols, rows = int(argv[1]), int(argv[2])
    command = argv[3:]
    control = os.environ.pop(CONTROL_FD_ENV, None)
    control_fd = int(control) if control else None

    pid, master_fd = pty.fork()
    if pid == 0:
        if control_fd is not None:
            os.close(control_fd)
        os.environ.setdefault("TERM", "xterm-256color")
        # Size the terminal before the program can query it
        set_winsize(sys.stdin.fileno(), cols, rows)
        try:
            os.execvp(command[0], command)
        except OSError as e:
            sys.stderr.write("pty_helper: cannot run %s: %s\n" % (command[0], e))
            os._exit(127)

    def forward_signal(signum, frame):
        try:
            os.kill(pid, signal.SIGHUP)
        except ProcessLookupError:
            pass

    signal.signal(signal.SIGTERM, forward_signal)
    signal.signal(signal.SIGHUP, forward_signal)

    return relay(pid, master_fd, control_fd)


if __name__ == "__main__":
    sys.exit(main(sys.argv))
