"""Example demonstrating streaming generation from a local SmolLM2 checkpoint.

Point it at a directory holding the three files of a HuggingFace checkpoint
(``model.safetensors``, ``tokenizer.json`` and ``config.json``), for example a
download of HuggingFaceTB/SmolLM2-135M-Instruct:

    python examples/streaming_generation_example.py ./SmolLM2-135M-Instruct "Once upon a time"
"""

import json
import sys
from pathlib import Path

import smollm_lite
from smollm_lite.utils import configure_logging


def main():
    """Load a checkpoint, stream one completion, then free the model."""
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    checkpoint = Path(sys.argv[1])
    prompt = sys.argv[2] if len(sys.argv) > 2 else "Once upon a time"

    configure_logging("INFO")
    print(f"=== smollm-lite {smollm_lite.get_version()} ===\n")

    smollm_lite.load_model_from_files(
        checkpoint / "model.safetensors",
        checkpoint / "tokenizer.json",
        checkpoint / "config.json",
    )
    print(f"Model loaded: {smollm_lite.is_model_loaded()}\n")

    # Sampled generation, printed as fragments arrive
    params = json.dumps({"max_tokens": 64, "temperature": 0.7, "top_p": 0.9, "seed": 42})
    print(prompt, end="", flush=True)
    text = smollm_lite.generate(prompt, params, on_token=lambda piece: print(piece, end="", flush=True))
    print(f"\n\n--- {len(text)} characters generated ---")

    # Greedy decoding ignores the seed
    greedy = json.dumps({"max_tokens": 32, "temperature": 0.0})
    print("\n=== Greedy ===\n")
    print(prompt + smollm_lite.generate(prompt, greedy))

    smollm_lite.clear_model()
    print(f"\nModel loaded after clear: {smollm_lite.is_model_loaded()}")


if __name__ == "__main__":
    main()
