ISSUES_VERSION = "issues_v2"

USER_PROMPT_TEMPLATE = """You are a public speaking coach reviewing delivery statistics for one practice session.

Speech: {segment_count} segments, {filler_count} filler words, {fast_count} fast segments, {slow_count} slow segments, {hedging_count} segments with heavy hedging.
Per-segment flags (0-based index): {segment_flags}

Return 2-5 issues ranked from most to least important as a JSON object:
{"issues": [{"kind": "filler|pace|hedging|structure", "severity": "low|medium|high", "message": "10 words max", "segmentIndices": [0]}]}

Only reference segment indices listed above. Return ONLY JSON."""
