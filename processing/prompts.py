SUMMARY_SYSTEM_PROMPT = """You are an expert meeting summarizer. Write clear, \
concise and well structured summaries. Do not invent information that is not in \
the transcript."""

SUMMARY_USER_PROMPT = """Analyze the following meeting transcript and provide a \
comprehensive summary.

TRANSCRIPT:
{transcript}

Please provide a summary with the following sections:

## Overview
A brief 2-3 sentence overview of what the meeting was about.

## Key Discussion Points
Bullet points of the main topics discussed.

## Decisions Made
Any decisions that were reached during the meeting.

## Action Items
Tasks or follow-ups mentioned, with the responsible person if identified.

## Notable Quotes
Any particularly important or memorable statements (optional, include only if \
relevant).

Keep the summary concise but informative. Use clear, professional language."""

CONSOLIDATION_PROMPT = """Below are several partial summaries of the same meeting. \
Consolidate them into a single final summary with the same sections. Remove \
redundancies and merge the sections.

{partials}"""

ACTION_ITEMS_PROMPT = """Extract action items from this meeting transcript. \
Return ONLY a JSON array of strings, each being an action item. Include the \
responsible person if mentioned.

TRANSCRIPT:
{transcript}

Return format: ["Action item 1", "Action item 2", ...]"""

ACTION_ITEMS_SYSTEM_PROMPT = """You extract action items from meeting \
transcripts. Reply with a JSON array of strings and nothing else: no prose, no \
markdown fences."""
