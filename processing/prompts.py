STRATEGY_SYSTEM_PROMPT = """You are an expert business strategist with experience \
helping small and medium businesses grow."""

STRATEGY_USER_PROMPT = """As an expert business strategist, analyze the following \
conversation with a business owner and create a strategic recommendation. Focus on:

1. Core Business Challenges
2. Immediate Opportunities
3. Strategic Recommendations
4. Action Steps

Conversation transcript:
\"\"\"
{transcription}
\"\"\"

Provide a structured analysis that the business owner can immediately act upon."""

CARD_OCR_PROMPT = """Transcribe every line of text printed on this business card, \
exactly as it appears, one line per line of output. Do not add labels, commentary \
or formatting."""


def format_strategy_prompt(transcription: str) -> str:
    # str.replace, not str.format: user text may contain braces.
    return STRATEGY_USER_PROMPT.replace("{transcription}", transcription)
