"""Grounded prompt assembly.

- citation_label: the ``S<n>`` label shared by the prompt and the API's sources.
- build_context: enumerated source blocks (score, title, text, url).
- build_prompt: instruction + question + context, deterministic for equal inputs.
"""
from typing import List, Sequence

from newsrag.retrieval import RetrievalResult

INSTRUCTION = (
    "You are a helpful assistant that answers questions using ONLY the provided news context.\n"
    "Cite sources inline with [S1], [S2], etc., where the number corresponds to the source order. "
    "If you are unsure, say so briefly."
)


def citation_label(n: int) -> str:
    """Label for the n-th (1-based) source."""
    return f"S{n}"


def build_context(results: Sequence[RetrievalResult]) -> str:
    """Render results as ``Source N (score): title`` blocks separated by rules."""
    blocks: List[str] = []
    for i, r in enumerate(results, start=1):
        blocks.append(f"Source {i} ({r.score:.3f}): {r.title}\n{r.text}\nURL: {r.url}")
    return "\n\n---\n\n".join(blocks)


def build_prompt(query: str, results: Sequence[RetrievalResult]) -> str:
    """Assemble the grounded prompt for ``query`` from ordered ``results``.

    Results are neither truncated nor deduplicated; source N is cited as [SN].
    """
    return (
        f"{INSTRUCTION}\n\n"
        f"Question: {query}\n\n"
        f"Context:\n{build_context(results)}\n\n"
        "Answer:"
    )
