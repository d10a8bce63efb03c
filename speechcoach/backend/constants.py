LONG_PAUSE_MS = 800   # period after this gap
SHORT_PAUSE_MS = 300  # comma after this gap

MAX_SEGMENT_DURATION_MS = 25_000
LONG_SEGMENT_THRESHOLD_MS = 20_000
BASE_PAUSE_THRESHOLD_MS = 2_000
REDUCED_PAUSE_THRESHOLD_MS = 1_000  # used once a block runs past LONG_SEGMENT_THRESHOLD_MS

MAX_SENTENCES_PER_SEGMENT = 4
MIN_TOKENS_FOR_SENTENCE_SPLIT = 15
MIN_TERMINATORS_FOR_SENTENCE_SPLIT = 3

SLOW_WPM = 110
FAST_WPM = 160
VERY_FAST_WPM = 200
LONG_PAUSE_SEVERITY_MS = 4_000

MAX_ERROR_CHARS = 1200
