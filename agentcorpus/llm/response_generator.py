"""
Response generator for agent chat turns.

Builds the grounded prompt from the agent's training corpus and the
conversation so far, asks the model for a structured reply and keeps
simple generation statistics.
"""

import json
import logging
import time
from typing import Any, Dict, Sequence

from .key_rotation import BackoffStrategy, KeyRotationClient, RetryPolicy
from .schemas import AGENT_RESPONSE_SCHEMA, validate_agent_response
from ..models import ChatMessage, ChatResponse, TrainingEntry

logger = logging.getLogger(__name__)


PROMPT_HEADER = """You are an AI sales assistant designed to provide exceptional customer service by responding to inquiries about products and services. Your responses must be based **EXCLUSIVELY** on the provided training data.

**Core Guidelines:**
1. ONLY reference information found in the training data below.
2. If the user asks about something not included, respond with:
   "I don't have specific information about that in my knowledge base, but I'd be happy to help with [relevant alternative]."
3. Keep responses concise, professional, and friendly.
4. Cite all information clearly with the appropriate source.
5. Format every reply as JSON with a message and the list of sources used."""

PROMPT_FOOTER = (
    "Always remember: You represent {brand_name}. Maintain a helpful and knowledgeable tone, "
    "and stay strictly within the scope of your training data."
)


class ResponseGenerator:
    """
    Produces structured, sourced answers from an agent's corpus.

    Features:
    - Fixed instruction header with the corpus and prior turns serialized as JSON
    - Declared response schema, validated before the reply is accepted
    - Per-key retry budget with a constant wait on transient errors
    - Generation statistics
    """

    def __init__(self, llm: KeyRotationClient, brand_name: str = "brandName"):
        """
        Initialize response generator.

        Args:
            llm: Resilient model client
            brand_name: Name the assistant represents in its replies
        """
        self.llm = llm
        self.brand_name = brand_name
        self.policy = RetryPolicy.per_key(
            llm.config.attempts_per_key,
            delay=llm.config.transient_delay,
            backoff=BackoffStrategy.FIXED,
        )

        self._generation_stats = {
            'total_responses': 0,
            'successful_responses': 0,
            'average_response_time': 0.0,
            'total_sources_cited': 0,
        }

        logger.info("ResponseGenerator initialized")

    def build_prompt(
        self,
        corpus: Sequence[TrainingEntry],
        previous_messages: Sequence[ChatMessage],
        current_message: str,
    ) -> str:
        training_data = json.dumps([entry.to_dict() for entry in corpus], indent=2)
        context = json.dumps([message.to_dict() for message in previous_messages], indent=2)

        return (
            f"{PROMPT_HEADER}\n\n"
            f"**Training Data:**\n{training_data}\n\n"
            f"**Conversation Context:**\n{context}\n\n"
            f"**Current User Message:**\n{current_message}\n\n"
            f"{PROMPT_FOOTER.format(brand_name=self.brand_name)}"
        )

    async def generate(
        self,
        corpus: Sequence[TrainingEntry],
        previous_messages: Sequence[ChatMessage],
        current_message: str,
    ) -> ChatResponse:
        """
        Generate a grounded answer for the current turn.

        Args:
            corpus: The agent's training entries, in insertion order
            previous_messages: Prior conversation turns
            current_message: Composed message for this turn

        Returns:
            ChatResponse with message and sources

        Raises:
            ExhaustedRetriesError: If the retry budget is spent
            ResponseSchemaError: If the reply does not match the schema
        """
        start_time = time.time()
        self._generation_stats['total_responses'] += 1

        logger.info(f"Generating response for message: {current_message[:100]}...")
        payload = await self.llm.generate_json(
            self.build_prompt(corpus, previous_messages, current_message),
            AGENT_RESPONSE_SCHEMA,
            validate_agent_response,
            policy=self.policy,
            operation_name="agent response",
        )

        response = ChatResponse(message=payload["message"], sources=payload["sources"])
        self._update_generation_stats(response, time.time() - start_time)

        logger.info(
            f"Response generated successfully: {len(response.message)} chars, "
            f"{len(response.sources)} sources"
        )
        return response

    def _update_generation_stats(self, response: ChatResponse, generation_time: float) -> None:
        self._generation_stats['successful_responses'] += 1
        self._generation_stats['total_sources_cited'] += len(response.sources)

        successful = self._generation_stats['successful_responses']
        current_avg = self._generation_stats['average_response_time']
        self._generation_stats['average_response_time'] = (
            (current_avg * (successful - 1) + generation_time) / successful
        )

    def get_generation_statistics(self) -> Dict[str, Any]:
        stats = self._generation_stats.copy()
        if stats['total_responses'] > 0:
            stats['success_rate'] = stats['successful_responses'] / stats['total_responses']
        else:
            stats['success_rate'] = 0.0
        return stats
