"""Prompt construction for Stage 2 (anonymous ranking) and Stage 3 (chairman synthesis)."""

from typing import List, Dict, Optional, Sequence, Tuple

from .models import ModelResponse, RankingResult

RANKING_TEMPLATE = """You are evaluating different responses to the following question:

Question: {question}

Here are the responses from different models (anonymized):

{responses}

Your task:
1. First, evaluate each response individually. For each response, explain what it does well and what it does poorly.
2. Then, at the very end of your response, provide a final ranking.

IMPORTANT: Your final ranking MUST be formatted EXACTLY as follows:
- Start with the line "FINAL RANKING:" (all caps, with colon)
- Then list the responses from best to worst as a numbered list
- Each line should be: number, period, space, then ONLY the response label (e.g., "1. Response A")
- Do not add any other text or explanations in the ranking section

Example of the correct format for your ENTIRE response:

Response A provides good detail on X but misses Y...
Response B is accurate but lacks depth on Z...
Response C offers the most comprehensive answer...

FINAL RANKING:
1. Response C
2. Response A
3. Response B

Now provide your evaluation and ranking:"""

CHAIRMAN_TEMPLATE = """You are the Chairman of an LLM Council. Multiple AI models have provided responses to a user's question, and then ranked each other's responses.

Original Question: {question}

STAGE 1 - Individual Responses:
{stage1}

STAGE 2 - Peer Rankings:
{stage2}

Your task as Chairman is to synthesize all of this information into a single, comprehensive, accurate answer to the user's original question. Consider:
- The individual responses and their insights
- The peer rankings and what they reveal about response quality
- Any patterns of agreement or disagreement

Provide a clear, well-reasoned final answer that represents the council's collective wisdom:"""


def label_for_index(index: int) -> str:
    """0 -> "A", 25 -> "Z", 26 -> "AA", spreadsheet style."""
    label = ""
    n = index + 1
    while n > 0:
        n, rem = divmod(n - 1, 26)
        label = chr(65 + rem) + label
    return label


def assign_labels(stage1_results: Sequence[ModelResponse]) -> List[Tuple[str, ModelResponse]]:
    """Pair each Stage 1 success with its anonymized label, in requested order."""
    return [(label_for_index(i), result) for i, result in enumerate(stage1_results)]


def label_to_model_map(labeled: Sequence[Tuple[str, ModelResponse]]) -> Dict[str, str]:
    return {f"Response {label}": result.model for label, result in labeled}


def build_ranking_prompt(
    user_query: str,
    labeled: Sequence[Tuple[str, ModelResponse]],
    template: Optional[str] = None,
) -> str:
    """One shared ranking prompt; model IDs never appear in it."""
    responses_text = "\n\n".join(
        f"Response {label}:\n{result.text}" for label, result in labeled
    )
    return (template or RANKING_TEMPLATE).format(question=user_query, responses=responses_text)


def build_chairman_prompt(
    user_query: str,
    stage1_results: Sequence[ModelResponse],
    stage2_results: Sequence[RankingResult],
    template: Optional[str] = None,
) -> str:
    """Chairman prompt with full provenance: every answer and ranking under its real model ID."""
    stage1_text = "\n\n".join(
        f"Model: {r.model}\nResponse: {r.text}" for r in stage1_results
    )
    stage2_text = "\n\n".join(
        f"Model: {r.model}\nRanking: {r.ranking}" for r in stage2_results
    )
    return (template or CHAIRMAN_TEMPLATE).format(
        question=user_query, stage1=stage1_text, stage2=stage2_text
    )
