"""
Tokenization and detokenization.

Wraps a HuggingFace ``tokenizers.Tokenizer`` built from the JSON text of a
``tokenizer.json`` file.
"""

from typing import List, Optional, Sequence

from tokenizers import Tokenizer

from smollm_lite.core.errors import TokenizationError, TokenizerLoadError


class TokenizerManager:
    """Text <-> token id conversion for one loaded model."""

    def __init__(self, tokenizer: Tokenizer) -> None:
        self.tokenizer = tokenizer

    @classmethod
    def from_json(cls, tokenizer_json: str) -> "TokenizerManager":
        """Build the tokenizer from ``tokenizer.json`` text.

        Raises:
            TokenizerLoadError: If the definition cannot be parsed.
        """
        try:
            tokenizer = Tokenizer.from_str(tokenizer_json)
        except Exception as e:
            raise TokenizerLoadError(f"Failed to load tokenizer: {e}") from e
        return cls(tokenizer)

    @property
    def vocab_size(self) -> int:
        return self.tokenizer.get_vocab_size(with_added_tokens=True)

    def encode(self, text: str, add_special_tokens: bool = True) -> List[int]:
        """Encode text to token ids.

        Raises:
            TokenizationError: If the tokenizer rejects the input.
        """
        if text is None:
            raise TokenizationError("Tokenization failed: text cannot be None")
        try:
            encoding = self.tokenizer.encode(text, add_special_tokens=add_special_tokens)
        except Exception as e:
            raise TokenizationError(f"Tokenization failed: {e}") from e
        return list(encoding.ids)

    def decode(self, token_ids: Sequence[int], skip_special_tokens: bool = False) -> str:
        """Decode token ids to text.

        Errors from the underlying tokenizer propagate unchanged.
        """
        return self.tokenizer.decode(list(token_ids), skip_special_tokens=skip_special_tokens)

    def token_to_id(self, marker: str) -> Optional[int]:
        return self.tokenizer.token_to_id(marker)

