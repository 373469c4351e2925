"""Generation backends: produce a cell value from a prompt or a column script.

The job engine only depends on the ``GenerationBackend`` protocol; the
LiteLLM implementation is constructed once at startup and injected.
"""

import logging
from typing import Dict, Protocol

from ..column_scripts import get_column_script
from ..exceptions import GenerationError, ScriptNotFoundError
from .circuit_breaker import CircuitBreakerOpen, CircuitBreakerRegistry, run_with_timeout

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = "You are a helpful assistant that provides concise, direct answers."


class GenerationBackend(Protocol):
    """Produces a result string or raises."""

    def run_script(self, script_id: str, input_value: str, row_context: Dict[str, str]) -> str:
        ...

    def run_prompt(self, prompt_text: str, use_augmented_search: bool) -> str:
        ...


class LiteLLMGenerationBackend:
    """Prompts through LiteLLM, scripts from the in-process registry.

    Each prompt call is bounded by ``timeout_seconds`` and guarded by a
    per-model circuit breaker. Nothing is retried here: a timeout or an
    open circuit surfaces as GenerationError and fails that one cell.
    """

    def __init__(
        self,
        model: str,
        api_key: str = "",
        api_base: str = "",
        web_search_model: str = "",
        web_search_api_key: str = "",
        timeout_seconds: float = 120,
        max_tokens: int = 1024,
        breakers: CircuitBreakerRegistry = None,
    ):
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self.web_search_model = web_search_model or model
        self.web_search_api_key = web_search_api_key or api_key
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens
        self.breakers = breakers or CircuitBreakerRegistry()

    @classmethod
    def from_settings(cls, settings) -> "LiteLLMGenerationBackend":
        return cls(
            model=settings.generation_model,
            api_key=settings.generation_api_key,
            api_base=settings.generation_api_base,
            web_search_model=settings.web_search_model,
            web_search_api_key=settings.web_search_api_key,
            timeout_seconds=settings.generation_timeout_seconds,
            max_tokens=settings.generation_max_tokens,
            breakers=CircuitBreakerRegistry(
                failure_threshold=settings.circuit_failure_threshold,
                cooldown_seconds=settings.circuit_cooldown_seconds,
            ),
        )

    def is_configured(self) -> bool:
        return bool(self.model)

    def run_script(self, script_id: str, input_value: str, row_context: Dict[str, str]) -> str:
        script = get_column_script(script_id)
        if script is None:
            raise ScriptNotFoundError(script_id)
        return script.execute(input_value, row_context)

    def run_prompt(self, prompt_text: str, use_augmented_search: bool) -> str:
        if not self.is_configured():
            raise GenerationError("Generation backend is not configured. Set GENERATION_MODEL.")

        model = self.web_search_model if use_augmented_search else self.model
        kwargs: dict = {
            "model": model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt_text},
            ],
            "max_tokens": self.max_tokens,
            "timeout": self.timeout_seconds,
        }
        api_key = self.web_search_api_key if use_augmented_search else self.api_key
        if api_key:
            kwargs["api_key"] = api_key
        if self.api_base and not use_augmented_search:
            kwargs["api_base"] = self.api_base
        if use_augmented_search:
            kwargs["web_search_options"] = {"search_context_size": "medium"}

        def _call():
            import litellm

            return litellm.completion(**kwargs)

        try:
            response = run_with_timeout(_call, self.timeout_seconds, self.breakers.get(model))
        except CircuitBreakerOpen as e:
            raise GenerationError(str(e)) from e
        except TimeoutError as e:
            raise GenerationError(f"Generation timed out: {e}") from e
        except Exception as e:
            logger.warning("Generation call to %s failed: %s", model, e)
            raise GenerationError(f"Generation call failed: {e}") from e

        return response.choices[0].message.content or ""
