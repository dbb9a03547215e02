"""
Core inference engine module.

Provides the main API and orchestrates all components:
- ModelManager / ModelSlot: Single-instance model lifecycle
- GenerationEngine: Autoregressive loop with streaming output
- TokenizerManager: Tokenization and detokenization
- GenerationParams / EngineSettings: Per-call and process configuration
- Error kinds raised by every boundary operation
"""

__all__ = []
