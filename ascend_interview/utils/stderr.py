"""
Silencing for native audio libraries that write to stderr from C code.
"""
import os
import functools
from contextlib import contextmanager

# Set before PortAudio or gRPC are first loaded
os.environ.setdefault("JACK_NO_START_SERVER", "1")
os.environ.setdefault("GRPC_VERBOSITY", "ERROR")
os.environ.setdefault("GLOG_minloglevel", "2")


@contextmanager
def native_stderr_silenced():
    """
    Point file descriptor 2 at /dev/null for the duration of the block.

    ALSA and PortAudio probe devices noisily below the Python layer, so
    swapping `sys.stderr` is not enough.
    """
    saved = None
    try:
        saved = os.dup(2)
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, 2)
        os.close(devnull)
    except OSError:
        # No usable fd 2 (e.g. detached process); run unsilenced
        if saved is not None:
            os.close(saved)
        saved = None

    try:
        yield
    finally:
        if saved is not None:
            os.dup2(saved, 2)
            os.close(saved)


def quiet_audio(func):
    """Decorator form of `native_stderr_silenced` for device-opening methods."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        with native_stderr_silenced():
            return func(*args, **kwargs)
    return wrapper
