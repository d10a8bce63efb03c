TITLE_VERSION = "title_v1"

USER_PROMPT_TEMPLATE = """Title this speech in 3-5 words: "{transcript_excerpt}"
Return JSON: {"title": "Your Title Here"}"""
