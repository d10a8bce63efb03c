HIGHLIGHTS_VERSION = "highlights_v2"

USER_PROMPT_TEMPLATE = """Analyze this speech and give personalized coaching feedback.

SPEECH EXCERPT: "{transcript_excerpt}"

METRICS:
- Duration: {duration_sec}s, {total_words} words
- Pace: {avg_wpm} WPM (ideal: 110-160), {pace_note}
- Fillers: {filler_count} total ({filler_per_minute}/min), examples: {filler_examples}

ISSUES: {issue_messages}

Give 2-3 specific strengths and 2-3 actionable improvements based on THIS speech.
Reference the actual content/topic when relevant. Be specific, not generic.

Return JSON:
{"highlights": [
  {"type": "strength", "title": "4-6 words", "detail": "20-30 words, specific to this speech"},
  {"type": "improvement", "title": "4-6 words", "detail": "20-30 words, actionable advice", "severity": "low|medium|high"}
]}"""
