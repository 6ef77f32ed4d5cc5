"""Custom exceptions for the condor encoding orchestrator"""

class CondorError(Exception):
    """Base exception for all condor errors"""
    def __init__(self, message: str, module: str = None):
        self.message = message
        self.module = module or "unknown"
        super().__init__(f"[{self.module}] {self.message}")

class ValidationError(CondorError):
    """Pre-flight validation failure, blocks the stage from running"""
    def __init__(self, message: str, module: str = None):
        super().__init__(f"Validation error: {message}", module)

class ConfigurationError(ValidationError):
    """Invalid stage or encoder configuration"""

class StageWarning(CondorError):
    """Non-fatal condition reported by a stage"""

class SceneFailure(StageWarning):
    """A single scene failed, other scenes continue"""
    def __init__(self, scene_index: int, message: str, module: str = None):
        self.scene_index = scene_index
        super().__init__(f"Scene {scene_index:05}: {message}", module)

class StageDataNotFoundError(CondorError):
    """Scene data for a stage has not been created yet"""

class FatalError(CondorError):
    """Unrecoverable error, aborts the remaining stages"""

class ZoneOverlapError(FatalError):
    """Two zones cover the same frames"""

class FailureThresholdExceeded(FatalError):
    """Too many scenes failed for the run to continue"""

class StageFailedError(FatalError):
    """Unexpected error raised while a stage was running"""

class EncoderError(CondorError):
    """External encoder or decoder failed"""
    def __init__(self, message: str, module: str = None):
        super().__init__(f"Encoding error: {message}", module)

class ProbeError(EncoderError):
    """Quality probe failed"""

class ConcatenationError(EncoderError):
    """Error during scene concatenation"""

class DependencyError(CondorError):
    """Missing required dependencies"""
