class VoiceLoopError(Exception):
    """Base class for all voiceloop failures."""


class ConfigError(VoiceLoopError):
    """Unusable configuration; fatal at startup."""


class StreamError(VoiceLoopError):
    """The capture source failed or ended. Fatal to the current session."""


class TranscriptionError(VoiceLoopError):
    pass


class SynthesisError(VoiceLoopError):
    pass


class GenerationError(VoiceLoopError):
    pass


class ListenTimeout(VoiceLoopError):
    """A listen request expired before a result was produced."""
