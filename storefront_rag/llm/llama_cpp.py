"""Local LLM inference using llama-cpp-python."""

from typing import Optional, Dict, Any, List
import time

DEFAULT_STOP = ["User:", "\nUser", "###"]


class LlamaCppLLM:
    """Wrapper for llama-cpp-python completion."""

    def __init__(self, model_path: str, context_length: int = 4096,
                 temperature: float = 0.7, top_p: float = 0.9,
                 max_tokens: int = 512, stop: Optional[List[str]] = None):
        """
        Initialize Llama.cpp LLM.

        Args:
            model_path: Path to GGUF model file
            context_length: Context window size
            temperature: Sampling temperature
            top_p: Nucleus sampling mass
            max_tokens: Max output tokens
            stop: Stop sequences ending the assistant turn
        """
        if not model_path:
            raise ValueError("llm.model_path is required")

        try:
            from llama_cpp import Llama
        except ImportError:
            raise ImportError("Install: pip install 'storefront-rag[llm]'")

        self.model_path = model_path
        self.context_length = context_length
        self.temperature = temperature
        self.top_p = top_p
        self.max_tokens = max_tokens
        self.stop = stop or DEFAULT_STOP

        try:
            self.model = Llama(
                model_path=model_path,
                n_ctx=context_length,
                verbose=False
            )
        except (ValueError, OSError) as e:
            raise FileNotFoundError(f"Failed to load model {model_path}: {e}")

    def generate(self, prompt: str, max_tokens: Optional[int] = None,
                 temperature: Optional[float] = None) -> Dict[str, Any]:
        """
        Generate a completion.

        Args:
            prompt: Input prompt
            max_tokens: Override default max_tokens
            temperature: Override default temperature

        Returns:
            Dict with 'text', 'tokens', 'time_ms'
        """
        start_time = time.time()

        response = self.model(
            prompt,
            max_tokens=max_tokens or self.max_tokens,
            temperature=self.temperature if temperature is None else temperature,
            top_p=self.top_p,
            stop=self.stop
        )

        return {
            'text': response['choices'][0]['text'].strip(),
            'tokens': response['usage']['completion_tokens'],
            'time_ms': (time.time() - start_time) * 1000
        }

    def count_tokens(self, text: str) -> int:
        """Count tokens in text."""
        return len(self.model.tokenize(text.encode('utf-8')))


def get_llm(config: dict) -> LlamaCppLLM:
    """Get configured LLM instance."""
    return LlamaCppLLM(
        model_path=config.get('model_path'),
        context_length=config.get('context_length', 4096),
        temperature=config.get('temperature', 0.7),
        top_p=config.get('top_p', 0.9),
        max_tokens=config.get('max_tokens', 512),
        stop=config.get('stop'),
    )
