import json
import logging

import groq
from groq import AsyncGroq

from microclass.config import settings
from microclass.errors import SummaryFailure
from microclass.models import Lecture

logger = logging.getLogger(__name__)

# Groq strict mode requires additionalProperties: false and every property
# listed in "required".
SUMMARY_SCHEMA = {
    "type": "object",
    "properties": {
        "summary": {"type": "string"},
    },
    "required": ["summary"],
    "additionalProperties": False,
}

SYSTEM_PROMPT = (
    "You are a study assistant. Given the raw transcript of a recorded "
    "lecture, write a concise summary as a markdown string: the main "
    "topics, key definitions and anything the lecturer stressed. "
    "Answer in the same language as the transcript. Do not invent "
    "information."
)


class SummaryService:
    """Summarize saved lecture transcripts with Groq's strict JSON mode.

    Usage::

        summary = await SummaryService().summarize(lecture)

    API, network and malformed-response errors all surface as
    ``SummaryFailure``; the lecture itself is never touched here.
    """

    def __init__(self, client: AsyncGroq | None = None, model: str | None = None) -> None:
        self.model = model or settings.default_model
        self._client = client or AsyncGroq(api_key=settings.groq_api_key)

    async def summarize(self, lecture: Lecture) -> str:
        """Return a short markdown summary, written in the transcript's language."""
        messages = [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": f"Lecture: {lecture.title}\n\nTranscript:\n{lecture.transcript}",
            },
        ]
        try:
            resp = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                response_format={
                    "type": "json_schema",
                    "json_schema": {
                        "name": "lecture_summary",
                        "strict": True,
                        "schema": SUMMARY_SCHEMA,
                    },
                },
            )
        except groq.APIError as e:
            logger.error("Groq summary request for lecture %s failed: %s", lecture.id, e)
            raise SummaryFailure(f"Summary request failed: {e}") from e

        return _parse_summary(resp.choices[0].message.content)


def _parse_summary(content: str | None) -> str:
    try:
        summary = json.loads(content or "")["summary"]
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        raise SummaryFailure(f"Malformed summary response: {content!r}") from e
    if not isinstance(summary, str):
        raise SummaryFailure(f"Malformed summary response: {content!r}")
    return summary.strip()
