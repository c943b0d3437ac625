"""
Runner exceptions.
"""

class RunnerError(Exception):
    """Base class for runner errors."""
    pass

class PipelineStopped(RunnerError):
    """Raised when the run's cancel token has been set."""

    def __init__(self, message: str = "Pipeline Stopped"):
        super().__init__(message)

class CommandTimeout(RunnerError):
    """Raised when a dispatched command gets no response in time."""

    def __init__(self, command: str, timeout: float):
        self.command = command
        self.timeout = timeout
        super().__init__(f"Command timed out ({timeout:g}s): {command}")

class BlockNotFound(RunnerError):
    """Raised when a block node references an unknown block id."""

    def __init__(self, block_id: str):
        self.block_id = block_id
        super().__init__(f"Block {block_id} not found")

class ImageMatchFailure(RunnerError):
    """Raised when a wait-for-image step does not find its template."""
    pass

class LoopBodyFailure(RunnerError):
    """Raised when an error escapes a loop body."""

    def __init__(self, loop_id: str, iteration: int, reason: str):
        self.loop_id = loop_id
        self.iteration = iteration
        super().__init__(f"Loop {loop_id} failed on iteration {iteration}: {reason}")

class ChannelNotConnected(RunnerError):
    """Raised when the device channel is not connected."""

    def __init__(self, message: str = "Socket not connected"):
        super().__init__(message)

class EngineBusy(RunnerError):
    """Raised when a run is requested while another is in progress."""
    pass
