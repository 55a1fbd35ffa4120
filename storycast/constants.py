"""All magic numbers and configuration constants."""

SAMPLE_RATE = 24000                 # Hz, provider PCM output rate
CHANNELS = 1                        # provider PCM output is mono
SAMPLE_WIDTH = 2                    # bytes, 16-bit little-endian PCM
SEGMENT_SILENCE_MS = 250            # ms silence appended after every synthesized segment
MERGE_CHAR_LIMIT = 800              # chars, cap for merging consecutive same-speaker lines
MAX_CONCURRENCY = 3                 # upper bound on simultaneous synthesis jobs
WORKERS_PER_CREDENTIAL = 2          # concurrency = min(MAX_CONCURRENCY, credentials * this)
MAX_RATE_LIMIT_RETRIES = 5          # requeues per job before it is dropped
CREDENTIAL_POLL_SECONDS = 2.0       # wait when every credential is suspended or over budget
SYNTHESIS_TIMEOUT_SECONDS = 90.0    # per-call timeout; a timeout drops the job
SUSPEND_DURATION_MS = 60000         # jail time after a rate-limit signal
RATE_WINDOW_SECONDS = 60            # request counters reset on this interval
MAX_REQUESTS_PER_WINDOW = 10        # per credential, per window
MIN_CREDENTIAL_LENGTH = 10          # shorter tokens are discarded as malformed
FALLBACK_CREDENTIALS = ()           # built-in default set used when configuration is invalid
ANALYSIS_MAX_CHARS = 25000          # chars of chapter text sent to the analysis model
ANALYSIS_MODEL = "gemini-2.5-flash"
TTS_MODEL = "gemini-2.5-flash-preview-tts"
NARRATOR = "Narrator"
DEFAULT_NARRATOR_VOICE = "Puck"
NARRATOR_ALIASES = ("narrator", "рассказчик", "narrateur", "erzähler", "narrador")
CREDENTIALS_ENV = "STORYCAST_API_KEYS"
FALLBACK_CREDENTIALS_ENV = "GEMINI_API_KEY"
VOICE_CATALOG_ENV = "STORYCAST_VOICE_CATALOG"  # optional JSON catalog path
OUTPUT_DIR = "output"
VERSION = "0.1.0"
