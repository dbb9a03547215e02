"""
Token sampling strategies and generation control.

Provides:
- LogitsProcessor: Seeded sampler (greedy or temperature + top-p)
- Repetition penalty over a trailing token window
- sample: Full next-token selection for one generation step
"""

from smollm_lite.sampling.sampling import LogitsProcessor, apply_repetition_penalty, sample

__all__ = ["LogitsProcessor", "apply_repetition_penalty", "sample"]
