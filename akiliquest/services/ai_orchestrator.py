"""
AI exploration orchestrator.

Wraps every model call in a timeout and turns any failure into a
deterministic fallback, so callers always get a renderable result.
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Callable, List, Optional, Sequence

from ..models.core import AIResponse, AIResult, TopicValidation
from ..utils.bedrock_llm import BedrockLLM, BedrockLLMError
from ..utils.config import AppConfig, ConfigurationError
from ..utils.config import config as default_config
from ..utils.logging_config import get_logger
from .prompt_builder import (EXPLORATION_CONNECTIONS, build_deeper_exploration_prompt, build_exploration_prompt,
                             build_suggestion_prompt, build_validation_prompt)
from .response_parser import (ResponseParseError, parse_exploration_response, parse_suggestion_response,
                              parse_validation_response)

logger = get_logger(__name__)

FALLBACK_SUGGESTIONS = [
    'Black Holes',
    'Jazz',
    'Ancient Egypt',
    'AI Ethics',
    'Quantum Computing',
    'Mycelium Networks',
    'The Silk Road',
    'Game Theory',
]

SUGGESTION_MAX_TOKENS = 512


class AIGenerationError(Exception):
    """Raised internally when a generation call times out or fails."""
    pass


class AIOrchestrator:
    """Runs exploration, validation and suggestion requests against the model."""

    def __init__(self, llm: Optional[BedrockLLM] = None, app_config: Optional[AppConfig] = None):
        """Initialize the orchestrator.

        Args:
            llm: Client to use; built from configuration on first use if omitted
            app_config: Configuration, defaults to the process configuration
        """
        self.config = app_config or default_config
        self._llm = llm
        self._llm_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix='akiliquest-ai')
        logger.info('Initialized AIOrchestrator')

    @property
    def llm(self) -> BedrockLLM:
        """The model client, constructed once.

        Raises:
            ConfigurationError: If the Bedrock model id or region is missing
        """
        if self._llm is None:
            with self._llm_lock:
                if self._llm is None:
                    self._llm = BedrockLLM(self.config.bedrock_llm)
        return self._llm

    @property
    def model_id(self) -> str:
        return self.llm.model_id

    def _generate(self, prompt: str, max_tokens: Optional[int] = None, temperature: Optional[float] = None) -> str:
        """Run one generation call, giving up after the configured timeout."""
        llm = self.llm
        timeout = self.config.bedrock_llm.timeout_ms / 1000
        future = self._executor.submit(llm.generate_text, prompt, max_tokens, temperature)
        try:
            return future.result(timeout=timeout)
        except FutureTimeoutError:
            future.cancel()
            raise AIGenerationError(f'AI request timed out after {self.config.bedrock_llm.timeout_ms}ms')
        except BedrockLLMError as e:
            raise AIGenerationError(str(e))

    def _run(self, operation: str, call: Callable[[], AIResult], fallback: Callable[[str], AIResult]) -> AIResult:
        try:
            return call()
        except ConfigurationError:
            raise
        except (AIGenerationError, ResponseParseError) as e:
            reason = f'{operation} failed: {e}'
        except Exception as e:
            reason = f'{operation} failed unexpectedly: {e}'
        logger.warning(f'{reason}; using fallback')
        return fallback(reason)

    def explore_topic(self, topic: str) -> AIResult[AIResponse]:
        """
        Generate a summary and five connections for a topic.

        Args:
            topic: Topic to explore

        Returns:
            AIResult holding the parsed response, or a fallback response when degraded
        """
        topic = (topic or '').strip()

        def call():
            logger.info(f'Exploring topic: {topic}')
            text = self._generate(build_exploration_prompt(topic))
            response = parse_exploration_response(text, expected_connections=EXPLORATION_CONNECTIONS)
            logger.info(f'Generated {len(response.connections)} connections for {topic!r}')
            return AIResult.success(response)

        return self._run('Topic exploration', call, lambda reason: AIResult.fallback(fallback_response(topic), reason))

    def explore_deeper(self, topic: str, already_explored: Sequence[str]) -> AIResult[AIResponse]:
        """
        Generate more advanced connections that avoid already explored titles.

        Args:
            topic: Topic being explored
            already_explored: Titles that must not be repeated

        Returns:
            AIResult holding between one and five new connections, or a fallback
        """
        topic = (topic or '').strip()
        explored = list(already_explored)

        def call():
            logger.info(f'Exploring deeper into {topic!r} ({len(explored)} concepts already seen)')
            text = self._generate(build_deeper_exploration_prompt(topic, explored))
            response = parse_exploration_response(text, exclude_titles=explored)
            return AIResult.success(response)

        return self._run('Deeper exploration', call, lambda reason: AIResult.fallback(fallback_response(topic), reason))

    def length_problem(self, topic: str) -> Optional[str]:
        """Reason a stripped topic breaks the configured length limits, or None."""
        limits = self.config.exploration
        if len(topic) < limits.min_topic_length:
            return f'Topic is too short (minimum {limits.min_topic_length} characters)'
        if len(topic) > limits.max_topic_length:
            return f'Topic is too long (maximum {limits.max_topic_length} characters)'
        return None

    def validate_topic(self, topic_input: str) -> AIResult[TopicValidation]:
        """
        Check a user's topic input, locally first and then with the model.

        Length violations are rejected without a model call. When the model
        call fails the input is accepted unchanged.
        """
        stripped = (topic_input or '').strip()

        problem = self.length_problem(stripped)
        if problem:
            return AIResult.success(TopicValidation(is_valid=False, reason=problem))

        def call():
            text = self._generate(build_validation_prompt(stripped),
                                  max_tokens=self.config.bedrock_llm.validation_max_tokens,
                                  temperature=self.config.bedrock_llm.validation_temperature)
            return AIResult.success(parse_validation_response(text, stripped))

        return self._run('Topic validation', call,
                         lambda reason: AIResult.fallback(TopicValidation(is_valid=True, cleaned_topic=topic_input), reason))

    def suggest_topics(self, explored_topics: Sequence[str], count: int = 5) -> AIResult[List[str]]:
        """
        Suggest new topics related to what has been explored.

        Returns:
            AIResult holding at most ``count`` suggestions; never empty
        """
        explored = list(explored_topics)
        seen = {topic.strip().casefold() for topic in explored}

        def call():
            text = self._generate(build_suggestion_prompt(explored, count), max_tokens=SUGGESTION_MAX_TOKENS)
            suggestions = _dedupe(parse_suggestion_response(text), seen)[:count]
            if not suggestions:
                raise ResponseParseError('Every suggestion was already explored')
            return AIResult.success(suggestions)

        return self._run('Topic suggestion', call, lambda reason: AIResult.fallback(fallback_suggestions(explored, count), reason))

    def shutdown(self) -> None:
        """Stop the worker threads without waiting for abandoned calls."""
        self._executor.shutdown(wait=False)


def fallback_response(topic: str) -> AIResponse:
    """Placeholder exploration result used when the model is unavailable."""
    return AIResponse(summary=(f'{topic} is a fascinating subject with connections across many fields. '
                               'AI-generated insights are temporarily unavailable, so try exploring it again shortly.'),
                      connections=[],
                      keywords=['unavailable'],
                      difficulty='beginner',
                      estimated_reading_time=1)


def fallback_suggestions(explored_topics: Sequence[str], count: int = 5) -> List[str]:
    """Fixed suggestions minus explored topics; the full list if nothing is left."""
    seen = {topic.strip().casefold() for topic in explored_topics}
    remaining = _dedupe(FALLBACK_SUGGESTIONS, seen) or FALLBACK_SUGGESTIONS
    return list(remaining[:max(count, 1)])


def _dedupe(items: Sequence[str], seen) -> List[str]:
    seen = set(seen)
    result = []
    for item in items:
        key = item.strip().casefold()
        if key and key not in seen:
            seen.add(key)
            result.append(item.strip())
    return result
