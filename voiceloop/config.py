import os

from .errors import ConfigError

# ─── ASR Service ──────────────────────────────────────────────────────────────
ASR_BASE_URL = os.getenv("ASR_BASE_URL", "http://localhost:8005")
ASR_ENDPOINT = f"{ASR_BASE_URL}/asr"

# ─── TTS Service ──────────────────────────────────────────────────────────────
TTS_BASE_URL = os.getenv("TTS_BASE_URL", "http://localhost:8006")
TTS_ENDPOINT = f"{TTS_BASE_URL}/generate"
TTS_VOICE    = os.getenv("TTS_VOICE", "default")
TTS_VOLUME_GAIN = float(os.getenv("TTS_VOLUME_GAIN", "1.0"))

# ─── LLM Service (OpenAI-compatible) ──────────────────────────────────────────
LLM_BASE_URL  = os.getenv("LLM_BASE_URL", "http://localhost:11434/v1")
LLM_API_KEY   = os.getenv("LLM_API_KEY",  "nokey")
LLM_MODEL     = os.getenv("LLM_MODEL",    "llama3")
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "500"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.7"))
LLM_SYSTEM_PROMPT = os.getenv(
    "LLM_SYSTEM_PROMPT",
    "You are a helpful voice assistant. Provide clear, concise responses suitable for "
    "text-to-speech output. Keep responses conversational and natural.",
)
# Number of user/assistant exchanges kept in the conversation history.
# 0 keeps everything.
LLM_HISTORY_TURNS = int(os.getenv("LLM_HISTORY_TURNS", "20"))

# Echo the command back instead of calling the LLM.
TEST_MODE = os.getenv("TEST_MODE", "false").lower() == "true"

# ─── Audio Devices ────────────────────────────────────────────────────────────
# PyAudio device indices — run the following to list available devices:
#   python -c "import pyaudio; pa=pyaudio.PyAudio(); [print(i, pa.get_device_info_by_index(i)['name']) for i in range(pa.get_device_count())]"
# Set to -1 to use system default.
MIC_DEVICE_INDEX = int(os.getenv("MIC_DEVICE_INDEX", "-1"))
SPK_DEVICE_INDEX = int(os.getenv("SPK_DEVICE_INDEX", "-1"))

# ─── Audio Capture ────────────────────────────────────────────────────────────
MIC_SAMPLE_RATE   = 16000   # Hz — required by ASR
MIC_CHANNELS      = 1
MIC_CHUNK_MS      = int(os.getenv("MIC_CHUNK_MS", "100"))
MIC_CHUNK_SAMPLES = int(MIC_SAMPLE_RATE * MIC_CHUNK_MS / 1000)
MIC_MAX_READ_ERRORS = int(os.getenv("MIC_MAX_READ_ERRORS", "50"))

# ─── Endpointing ──────────────────────────────────────────────────────────────
# Peak amplitude (0-32767) below which a chunk counts as silence.
# 0 disables silence-based endpointing.
VOLUME_THRESHOLD   = int(os.getenv("VOLUME_THRESHOLD", "400"))
SILENCE_DURATION_S = float(os.getenv("SILENCE_DURATION_S", "1.5"))
# Chunks ignored after entering a mode: the first absorbs recorder startup
# artifacts, command mode skips more to absorb acknowledgment playback.
STARTUP_SKIP_CHUNKS = int(os.getenv("STARTUP_SKIP_CHUNKS", "1"))
COMMAND_SKIP_CHUNKS = int(os.getenv("COMMAND_SKIP_CHUNKS", "5"))

# ─── Calibration ──────────────────────────────────────────────────────────────
CALIBRATE_ON_START    = os.getenv("CALIBRATE_ON_START", "false").lower() == "true"
CALIBRATION_WINDOW_S  = float(os.getenv("CALIBRATION_WINDOW_S", "3"))

# ─── Audio Playback ───────────────────────────────────────────────────────────
SPK_CHUNK_FRAMES = 1024

# ─── Logging ──────────────────────────────────────────────────────────────────
LOG_FILE  = os.getenv("LOG_FILE",  "/var/log/voice_assistant.log")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ─── HTTP timeouts (seconds) ──────────────────────────────────────────────────
ASR_TIMEOUT = int(os.getenv("ASR_TIMEOUT", "60"))
TTS_TIMEOUT = int(os.getenv("TTS_TIMEOUT", "60"))
LLM_TIMEOUT = int(os.getenv("LLM_TIMEOUT", "60"))

# ─── Wake Word ────────────────────────────────────────────────────────────────
# Matched as a substring of the lower-cased transcript. The alternate spelling
# catches a common mis-transcription of the phrase.
WAKE_PHRASE     = os.getenv("WAKE_PHRASE", "isis").lower().strip()
WAKE_PHRASE_ALT = os.getenv("WAKE_PHRASE_ALT", "ice is").lower().strip()

# ─── Session ──────────────────────────────────────────────────────────────────
WAKE_LISTEN_TIMEOUT_S    = float(os.getenv("WAKE_LISTEN_TIMEOUT_S", "30"))
COMMAND_LISTEN_TIMEOUT_S = float(os.getenv("COMMAND_LISTEN_TIMEOUT_S", "30"))
CONFIRM_CAPTURE_S        = float(os.getenv("CONFIRM_CAPTURE_S", "3"))
ACK_SETTLE_S             = float(os.getenv("ACK_SETTLE_S", "0.5"))
CYCLE_PAUSE_S            = float(os.getenv("CYCLE_PAUSE_S", "1"))
STREAM_RESTART_DELAY_S   = float(os.getenv("STREAM_RESTART_DELAY_S", "2"))
SENTENCES_PER_CHUNK      = int(os.getenv("SENTENCES_PER_CHUNK", "2"))

WAKE_WORD_ACK_PHRASE = os.getenv("WAKE_WORD_ACK_PHRASE", "Yes")
NO_SPEECH_PHRASE     = "I didn't hear anything"
CONTINUE_PROMPT      = "Should I continue?"
STOP_PHRASE          = "Okay, stopping here."
ERROR_PHRASE         = "I'm sorry, my system is having a problem. Can you ask again?"
AFFIRMATIVE_TOKENS   = ("yes", "yeah", "continue", "go ahead", "keep going")
RESET_PHRASES        = ("new conversation", "forget everything", "start over")
RESET_ACK_PHRASE     = "Okay, starting a new conversation."


def validate():
    """Raise ConfigError for settings the assistant cannot start with."""
    if not 0 <= VOLUME_THRESHOLD <= 32767:
        raise ConfigError(f"VOLUME_THRESHOLD must be within 0-32767, got {VOLUME_THRESHOLD}")
    if SILENCE_DURATION_S <= 0:
        raise ConfigError(f"SILENCE_DURATION_S must be positive, got {SILENCE_DURATION_S}")
    if MIC_CHUNK_SAMPLES <= 0:
        raise ConfigError(f"MIC_CHUNK_MS too small: {MIC_CHUNK_MS}")
    if not WAKE_PHRASE:
        raise ConfigError("WAKE_PHRASE must not be empty")
    if SENTENCES_PER_CHUNK < 1:
        raise ConfigError("SENTENCES_PER_CHUNK must be at least 1")
    if not TEST_MODE and not LLM_BASE_URL:
        raise ConfigError("LLM_BASE_URL is required unless TEST_MODE=true")
