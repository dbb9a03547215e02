"""
Autoregressive generation loop.

The engine borrows the active ModelInstance for the duration of one call and
drives it through these states:

    Start -> Tokenized -> Stepping (repeats) -> Done
    Any state -> Failed (the error propagates, the session is discarded)

The first step feeds the whole prompt at position 0; every later step feeds
only the newest token at position ``len(history) - 1`` and relies on the KV
cache for the earlier context.
"""

import logging
from contextlib import closing
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple

import torch

from smollm_lite.core.config import EngineSettings, GenerationParams
from smollm_lite.core.errors import ForwardPassError, SamplingError, TokenizationError
from smollm_lite.core.lifecycle import ModelSlot
from smollm_lite.core.model_instance import ModelInstance
from smollm_lite.sampling.sampling import LogitsProcessor, sample

logger = logging.getLogger(__name__)

# End-of-sequence markers, in lookup order
EOS_MARKERS = ("</s>", "<|endoftext|>")
DEFAULT_EOS_TOKEN_ID = 2


def resolve_eos_token_id(tokenizer) -> int:
    """Look up the end-of-sequence id, falling back to DEFAULT_EOS_TOKEN_ID."""
    for marker in EOS_MARKERS:
        token_id = tokenizer.token_to_id(marker)
        if token_id is not None:
            return token_id
    return DEFAULT_EOS_TOKEN_ID


@dataclass
class GenerationSession:
    """State of one generate call.

    Attributes:
        tokens: Every token seen so far (prompt followed by generated ones).
        prompt_len: Number of prompt tokens at the front of ``tokens``.
        processor: Seeded sampler for this call.
        fed: How many tokens of ``tokens`` the backend has processed.
        fragments: Decoded text pieces in emission order.
    """

    tokens: List[int]
    prompt_len: int
    processor: LogitsProcessor
    fed: int = 0
    fragments: List[str] = field(default_factory=list)

    @property
    def generated(self) -> int:
        return len(self.tokens) - self.prompt_len

    def next_input(self) -> Tuple[List[int], int]:
        """Tokens not yet fed to the backend and the position of the first one."""
        return self.tokens[self.fed:], self.fed

    @property
    def text(self) -> str:
        return "".join(self.fragments)


class GenerationEngine:
    """Streams generated text from the model held in a ModelSlot."""

    def __init__(self, slot: ModelSlot, settings: Optional[EngineSettings] = None) -> None:
        self.slot = slot
        self.settings = settings or EngineSettings()

    def stream(
        self,
        prompt: str,
        params: Optional[GenerationParams] = None,
        blocking: Optional[bool] = None,
    ) -> Iterator[str]:
        """Generate text, yielding each decoded fragment as soon as it exists.

        The returned iterator is lazy, finite and single-use. It holds the
        model slot from the first ``next()`` until it is exhausted or closed,
        so abandon it with ``close()`` rather than leaving it suspended.

        Args:
            prompt: Input text.
            params: Generation parameters (defaults when omitted).
            blocking: Wait for a busy slot (True) or raise immediately
                (False). Defaults to ``not settings.fail_fast``.

        Raises:
            ModelNotLoadedError: If no model is installed.
            LockContentionError: If the slot is busy and not blocking.
            TokenizationError, ForwardPassError, SamplingError: From the
                failing stage of the loop.
        """
        params = params or GenerationParams()
        if blocking is None:
            blocking = not self.settings.fail_fast

        with self.slot.exclusive("generate", blocking=blocking) as slot:
            instance = slot.borrow()
            yield from self._run(instance, prompt, params)

    def generate(
        self,
        prompt: str,
        params: Optional[GenerationParams] = None,
        on_token: Optional[Callable[[str], None]] = None,
        blocking: Optional[bool] = None,
    ) -> str:
        """Generate text, calling ``on_token`` synchronously for every fragment.

        Returns:
            The concatenation of all emitted fragments.
        """
        fragments = []
        with closing(self.stream(prompt, params, blocking=blocking)) as stream:
            for fragment in stream:
                fragments.append(fragment)
                if on_token is not None:
                    on_token(fragment)
        return "".join(fragments)

    def _run(
        self,
        instance: ModelInstance,
        prompt: str,
        params: GenerationParams,
    ) -> Iterator[str]:
        logger.info(
            "Generating with max_tokens=%d, temp=%s",
            params.max_tokens,
            params.temperature,
        )

        tokenizer = instance.tokenizer
        prompt_tokens = list(tokenizer.encode(prompt, add_special_tokens=True))
        if not prompt_tokens:
            raise TokenizationError("Tokenization failed: prompt produced no tokens")

        logger.info("Prompt tokenized to %d tokens", len(prompt_tokens))

        session = GenerationSession(
            tokens=prompt_tokens,
            prompt_len=len(prompt_tokens),
            processor=LogitsProcessor(params.seed, params.temperature, params.top_p),
        )
        eos_token_id = resolve_eos_token_id(tokenizer)

        for _ in range(params.max_tokens):
            input_tokens, start_pos = session.next_input()

            logits = instance.forward(input_tokens, start_pos)
            session.fed = len(session.tokens)

            next_token = self._sample_next(logits, session, params)

            if next_token == eos_token_id:
                logger.info("EOS token reached")
                break

            session.tokens.append(next_token)

            fragment = self._decode(tokenizer, next_token)
            if fragment is None:
                continue
            session.fragments.append(fragment)
            yield fragment

        logger.info("Generation complete, %d tokens generated", session.generated)
        logger.debug("Generated text: %r", session.text)

    def _sample_next(
        self,
        logits: torch.Tensor,
        session: GenerationSession,
        params: GenerationParams,
    ) -> int:
        if logits.dim() != 2 or logits.shape[0] == 0:
            raise ForwardPassError(
                f"Forward pass failed: expected logits of shape [seq_len, vocab], "
                f"got {tuple(logits.shape)}"
            )
        try:
            return sample(logits[-1], session.tokens, params, session.processor)
        except (ValueError, RuntimeError) as e:
            raise SamplingError(f"Sampling failed: {e}") from e

    def _decode(self, tokenizer, token_id: int) -> Optional[str]:
        # Undecodable tokens stay in the history but produce no text
        try:
            return tokenizer.decode([token_id], skip_special_tokens=False)
        except Exception as e:
            logger.debug("Dropping token %d that failed to decode: %s", token_id, e)
            return None
