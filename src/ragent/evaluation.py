"""Relevancy evaluation of agent answers against their retrieved context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from .chat import ChatClient
from .prompt import ChatOptions, PromptTemplate

if TYPE_CHECKING:
    from .agent import AgentResponse

EVALUATION_PROMPT = """Your task is to evaluate if the response for the query
is in line with the context information provided.

You have two options to answer. Either YES/ NO.

Answer - YES, if the response for the query
is in line with context information otherwise NO.

Query:
{query}

Response:
{response}

Context:
{context}

Answer:"""


@dataclass(frozen=True)
class EvaluationRequest:
    """A question, the fragments it was answered from, and the answer."""

    user_text: str
    context: tuple[str, ...]
    response_text: str

    @classmethod
    def from_agent_response(cls, response: AgentResponse) -> EvaluationRequest:
        ctx = response.context
        context = tuple(f.text for fragments in ctx.contents.values() for f in fragments)
        return cls(ctx.prompt.user_text, context, response.text)


@dataclass(frozen=True)
class EvaluationResponse:
    passed: bool
    score: float
    feedback: str


class RelevancyEvaluator:
    """Asks the model whether an answer is supported by its context."""

    def __init__(self, client: ChatClient, options: ChatOptions | None = None) -> None:
        self.client = client
        self.options = options or ChatOptions(temperature=0.0)
        self.template = PromptTemplate(EVALUATION_PROMPT)

    async def evaluate(self, request: EvaluationRequest) -> EvaluationResponse:
        prompt = self.template.create_prompt(
            self.options,
            query=request.user_text,
            response=request.response_text,
            context="\n".join(request.context),
        )
        result = await self.client.call(prompt)
        verdict = result.text.strip()
        passed = verdict.lower().startswith("yes")
        return EvaluationResponse(passed=passed, score=1.0 if passed else 0.0, feedback=verdict)
