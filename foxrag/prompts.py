"""Prompt text for the forensic analyst conversation."""

from __future__ import annotations

from typing import Iterable

from contracts.vector_db import SearchResult

SYSTEM_PROMPT = """
You are a helpful digital forensic analyst and expert witness, tasked with answering questions about text based log lines. Answer the given question solely based on the provided context. Answer the question in a very concise manner. Use an unbiased and professional tone. Cite relevant lines starting with their timestamp.

The lines are in Common Event Format (CEF) and not part of the conversation with the user. The lines are not in chronological order and start with a timestamp followed by the hostname and the message.

If you can't answer the question based on the provided context, answer with: "This information is not available". Do not repeat text. Don't make anything up.

If sure about something, answer with "It is CERTAIN ...".

If unsure about something, answer with "It APPEARS ...".
"""

QUERY_TEMPLATE = """
This is the question:
{question}

This is the context:
{context}
"""


def build_context(results: Iterable[SearchResult]) -> str:
    """Join retrieved lines, most relevant first, one per line."""
    return "".join(r.content + "\n" for r in results)


def build_query(question: str, context: str) -> str:
    return QUERY_TEMPLATE.format(question=question, context=context)
